# src/lprewards/api/structured_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from lprewards.runtime.sqlite_db import canon_json

Json = Dict[str, Any]

_FALSY = {"0", "false", "no", "n", "off"}


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Send stdlib logging to stdout as bare messages (the messages are JSONL).

    Level from the argument, else LPREWARDS_LOG_LEVEL, else INFO.
    Calling it again only updates the level.
    """
    raw = level_name or os.environ.get("LPREWARDS_LOG_LEVEL") or "INFO"
    level = getattr(logging, str(raw).strip().upper(), logging.INFO)

    root = logging.getLogger()
    if getattr(root, "_lprewards_configured", False):  # type: ignore[attr-defined]
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root.handlers = [handler]
    root.setLevel(level)
    setattr(root, "_lprewards_configured", True)  # type: ignore[attr-defined]


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per request.

    LPREWARDS_LOG_REQUESTS=0 disables it (default on).
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("LPREWARDS_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in _FALSY
        self._logger = logging.getLogger("lprewards.http")

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        started = time.monotonic()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id

        status = 500
        err: Optional[str] = None
        response: Optional[Response] = None

        try:
            response = await call_next(request)
            status = int(response.status_code)
            response.headers.setdefault("x-request-id", request_id)
            return response
        except Exception as e:
            err = str(e)
            raise
        finally:
            self._logger.info(
                canon_json(
                    {
                        "ts_ms": int(time.time() * 1000),
                        "event": "http_request",
                        "request_id": request_id,
                        "method": request.method,
                        "path": str(request.url.path or ""),
                        "status": status,
                        "duration_ms": int((time.monotonic() - started) * 1000),
                        "error": err,
                    }
                )
            )
