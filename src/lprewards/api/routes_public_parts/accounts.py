from __future__ import annotations

from fastapi import APIRouter, Request

from lprewards.api.routes_public_parts.common import _snapshot
from lprewards.api.schemas import ClaimedResponse
from lprewards.ledger.state import RewardsView

router = APIRouter()


@router.get("/accounts/{account}/claimed", response_model=ClaimedResponse)
def v1_account_claimed(account: str, request: Request):
    view = RewardsView.from_state(_snapshot(request))
    return ClaimedResponse(account=account, claimed=view.claimed_by(account))
