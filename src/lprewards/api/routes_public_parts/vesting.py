from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from lprewards.api.routes_public_parts.common import _engine, _now_param
from lprewards.api.schemas import VestingResponse

router = APIRouter()


@router.get("/vesting", response_model=VestingResponse)
def v1_vesting(request: Request, now: Optional[int] = None):
    ts = _now_param(now)
    eng = _engine(request)
    st = eng.read_state()
    v = st.get("vesting") or {}
    return VestingResponse(
        vault=str((st.get("params") or {}).get("vault") or ""),
        last_release_ts=int(v.get("last_release_ts", 0)),
        cumulative_debt=int(v.get("cumulative_debt", 0)),
        pending=int(eng.pending_vesting_rewards(now=ts)),
        now=ts,
    )
