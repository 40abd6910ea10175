from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from lprewards.api.routes_public_parts.common import _now_param, _snapshot
from lprewards.api.schemas import EmissionResponse
from lprewards.ledger.emission import schedule_from_state

router = APIRouter()


@router.get("/emission", response_model=EmissionResponse)
def v1_emission(request: Request, at: Optional[int] = None):
    ts = _now_param(at)
    schedule = schedule_from_state(_snapshot(request))
    epoch, elapsed = schedule.epoch_position(ts)
    return EmissionResponse(
        at=ts,
        epoch=epoch,
        elapsed_in_epoch=elapsed,
        epoch_budget=schedule.epoch_budget(epoch),
        cumulative_emission=schedule.cumulative_emission(ts),
    )
