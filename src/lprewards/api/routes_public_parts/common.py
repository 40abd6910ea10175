from __future__ import annotations

import time
from typing import Any, Dict, Optional

from fastapi import Request

from lprewards.api.errors import ApiError
from lprewards.ledger.constants import CATEGORIES

Json = Dict[str, Any]


def _engine(request: Request):
    eng = getattr(request.app.state, "engine", None)
    if eng is None:
        raise ApiError.internal("not_ready", "engine not attached to app.state", {})
    return eng


def _snapshot(request: Request) -> Json:
    return _engine(request).read_state()


def _now_param(v: Optional[int]) -> int:
    """Explicit ?now= wins; otherwise wall clock seconds."""
    if v is None:
        return int(time.time())
    if int(v) < 0:
        raise ApiError.bad_request("bad_timestamp", "timestamp must be >= 0", {"value": v})
    return int(v)


def _category(v: str) -> str:
    c = str(v or "").strip().lower()
    if c not in CATEGORIES:
        raise ApiError.not_found("unknown_category", "unknown pool category", {"category": v, "allowed": list(CATEGORIES)})
    return c
