from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from lprewards.api.errors import ApiError
from lprewards.api.routes_public_parts.common import _category, _engine, _now_param, _snapshot
from lprewards.api.schemas import PoolInfo, PoolListResponse, PositionResponse
from lprewards.ledger.constants import CATEGORY_AMM
from lprewards.ledger.state import RewardsView

router = APIRouter()


def _pool_info(view: RewardsView, category: str, address: str) -> PoolInfo:
    p = view.pool(category, address)
    if not p:
        raise ApiError.not_found("unknown_pool", "pool not found", {"category": category, "pool": address})
    return PoolInfo(
        category=category,
        address=address,
        whitelisted=bool(p.get("whitelisted")),
        alloc_points=int(p.get("alloc_points", 0)),
        last_reward_ts=int(p.get("last_reward_ts", 0)),
        acc_reward_per_share=int(p.get("acc_reward_per_share", 0)),
    )


@router.get("/pools/{category}", response_model=PoolListResponse)
def v1_pools_list(category: str, request: Request):
    cat = _category(category)
    view = RewardsView.from_state(_snapshot(request))
    return PoolListResponse(
        category=cat,
        total_alloc_points=view.total_alloc_points(cat),
        pools=[_pool_info(view, cat, addr) for addr in view.whitelisted(cat)],
    )


@router.get("/pools/{category}/{address}", response_model=PoolInfo)
def v1_pool_get(category: str, address: str, request: Request):
    cat = _category(category)
    return _pool_info(RewardsView.from_state(_snapshot(request)), cat, address)


@router.get("/pools/{category}/{address}/positions/{account}", response_model=PositionResponse)
def v1_position_get(category: str, address: str, account: str, request: Request, now: Optional[int] = None):
    cat = _category(category)
    ts = _now_param(now)
    eng = _engine(request)
    eng.pool_info(cat, address)

    pos = eng.position(cat, address, account)
    if cat == CATEGORY_AMM:
        pending = eng.pending_amm_rewards(account, pool=address, now=ts)
    else:
        pending = eng.pending_minter_rewards(account, collateral=address, now=ts)

    return PositionResponse(
        category=cat,
        pool=address,
        account=account,
        amount=int(pos["amount"]),
        reward_debt=int(pos["reward_debt"]),
        pending=int(pending),
        now=ts,
    )
