# src/lprewards/ledger/accumulator.py
from __future__ import annotations

"""Reward-per-share accumulator and position settlement.

Per pool:
  acc_reward_per_share  cumulative reward per unit of stake, scaled by 1e18;
                        never decreases
  last_reward_ts        timestamp up to which the accumulator is current

Per (pool, account):
  amount                stake currently attributed to the account
  reward_debt           amount * acc / SCALE at the account's last settlement

pending = amount * acc / SCALE - reward_debt

Every read of `acc` against a position happens right after refresh_pool(),
and pending is settled against the pre-change amount before the amount moves.
"""

import copy
from typing import Any, Dict, List, Optional

from lprewards.ledger.constants import BASIS_POINTS, SCALE
from lprewards.ledger.emission import schedule_from_state
from lprewards.ledger.fixed_point import (
    checked_add,
    checked_mul,
    checked_sub,
    mul_div,
    require_uint,
    scale_mul,
)
from lprewards.ledger.payouts import PayoutGuard
from lprewards.ledger.state import (
    ensure_category,
    ensure_position,
    get_position,
    ratio_bps,
    require_category,
    require_pool,
    require_whitelisted,
)
from lprewards.runtime.errors import INSUFFICIENT_BALANCE, INVARIANT_VIOLATION, RewardsError

Json = Dict[str, Any]


def _emit(events: Optional[List[Json]], event: str, **fields: Any) -> None:
    if events is not None:
        events.append({"event": event, **fields})


def refresh_pool(
    state: Json,
    *,
    category: str,
    pool_address: str,
    supply: int,
    now: int,
    events: Optional[List[Json]] = None,
) -> int:
    """Bring a pool's accumulator up to `now`. Returns the reward attributed.

    - now <= last_reward_ts: no-op
    - retired pool, zero weight or zero supply: checkpoint advances, the
      interval's emission is skipped (not carried forward)
    """
    cat_name = require_category(category)
    pool = require_pool(state, cat_name, pool_address)
    now_i = int(now)
    supply_i = int(supply)
    require_uint(supply_i)

    last = int(pool.get("last_reward_ts", 0))
    if now_i <= last:
        return 0

    pts = int(pool.get("alloc_points", 0))
    if supply_i == 0 or pts == 0 or not bool(pool.get("whitelisted")):
        pool["last_reward_ts"] = now_i
        return 0

    total_pts = int(ensure_category(state, cat_name).get("total_alloc_points", 0))
    if total_pts == 0:
        raise RewardsError(
            INVARIANT_VIOLATION,
            "zero_total_alloc_points",
            {"category": cat_name, "pool": pool_address, "alloc_points": pts},
        )

    delta = schedule_from_state(state).accrued_between(last, now_i)
    pool_reward = mul_div(
        checked_mul(delta, ratio_bps(state, cat_name)),
        pts,
        checked_mul(total_pts, BASIS_POINTS),
    )
    acc = checked_add(int(pool.get("acc_reward_per_share", 0)), mul_div(pool_reward, SCALE, supply_i))

    pool["acc_reward_per_share"] = acc
    pool["last_reward_ts"] = now_i

    _emit(
        events,
        "pool_refreshed",
        category=cat_name,
        pool=pool_address,
        acc_reward_per_share=acc,
        reward=pool_reward,
        supply=supply_i,
        ts=now_i,
    )
    return pool_reward


def pending_for(pool: Json, position: Json) -> int:
    accrued = scale_mul(int(position.get("amount", 0)), int(pool.get("acc_reward_per_share", 0)))
    debt = int(position.get("reward_debt", 0))
    if accrued < debt:
        raise RewardsError(
            INVARIANT_VIOLATION,
            "negative_pending_reward",
            {"accrued": accrued, "reward_debt": debt},
        )
    return accrued - debt


def _settle(
    state: Json,
    guard: PayoutGuard,
    *,
    category: str,
    pool_address: str,
    account: str,
    pool: Json,
    position: Json,
    events: Optional[List[Json]],
) -> int:
    pending = pending_for(pool, position) if int(position.get("amount", 0)) > 0 else 0
    return guard.pay(state, account, pending, events=events, reason=f"{category}:{pool_address}")


def deposit(
    state: Json,
    guard: PayoutGuard,
    *,
    category: str,
    pool_address: str,
    account: str,
    amount: int,
    supply_before: int,
    now: int,
    events: Optional[List[Json]] = None,
) -> Json:
    cat_name = require_category(category)
    amt = int(amount)
    require_uint(amt)
    pool = require_whitelisted(state, cat_name, pool_address)

    refresh_pool(state, category=cat_name, pool_address=pool_address, supply=supply_before, now=now, events=events)

    pos = ensure_position(state, cat_name, pool_address, account)
    paid = _settle(state, guard, category=cat_name, pool_address=pool_address, account=account, pool=pool, position=pos, events=events)

    new_amount = checked_add(int(pos.get("amount", 0)), amt)
    pos["amount"] = new_amount
    pos["reward_debt"] = scale_mul(new_amount, int(pool["acc_reward_per_share"]))

    _emit(events, "deposit", category=cat_name, pool=pool_address, account=account, amount=amt, position=new_amount, ts=int(now))
    return {
        "applied": "DEPOSIT",
        "category": cat_name,
        "pool": pool_address,
        "account": account,
        "amount": amt,
        "position": new_amount,
        "reward_paid": paid,
    }


def withdraw(
    state: Json,
    guard: PayoutGuard,
    *,
    category: str,
    pool_address: str,
    account: str,
    amount: int,
    supply_before: int,
    now: int,
    events: Optional[List[Json]] = None,
) -> Json:
    """Withdraw stake. Allowed on retired pools so positions can always exit."""
    cat_name = require_category(category)
    amt = int(amount)
    require_uint(amt)
    pool = require_pool(state, cat_name, pool_address)

    current = get_position(state, cat_name, pool_address, account)["amount"]
    if amt > current:
        raise RewardsError(
            INSUFFICIENT_BALANCE,
            "withdraw_exceeds_position",
            {"category": cat_name, "pool": pool_address, "account": account, "requested": amt, "position": current},
        )

    refresh_pool(state, category=cat_name, pool_address=pool_address, supply=supply_before, now=now, events=events)

    pos = ensure_position(state, cat_name, pool_address, account)
    paid = _settle(state, guard, category=cat_name, pool_address=pool_address, account=account, pool=pool, position=pos, events=events)

    new_amount = checked_sub(int(pos.get("amount", 0)), amt)
    pos["amount"] = new_amount
    pos["reward_debt"] = scale_mul(new_amount, int(pool["acc_reward_per_share"]))

    _emit(events, "withdraw", category=cat_name, pool=pool_address, account=account, amount=amt, position=new_amount, ts=int(now))
    return {
        "applied": "WITHDRAW",
        "category": cat_name,
        "pool": pool_address,
        "account": account,
        "amount": amt,
        "position": new_amount,
        "reward_paid": paid,
    }


def claim(
    state: Json,
    guard: PayoutGuard,
    *,
    category: str,
    pool_address: str,
    account: str,
    supply: int,
    now: int,
    events: Optional[List[Json]] = None,
) -> Json:
    cat_name = require_category(category)
    pool = require_pool(state, cat_name, pool_address)

    refresh_pool(state, category=cat_name, pool_address=pool_address, supply=supply, now=now, events=events)

    pos = ensure_position(state, cat_name, pool_address, account)
    paid = _settle(state, guard, category=cat_name, pool_address=pool_address, account=account, pool=pool, position=pos, events=events)
    pos["reward_debt"] = scale_mul(int(pos.get("amount", 0)), int(pool["acc_reward_per_share"]))

    return {
        "applied": "CLAIM",
        "category": cat_name,
        "pool": pool_address,
        "account": account,
        "position": int(pos.get("amount", 0)),
        "reward_paid": paid,
    }


def preview_pending(state: Json, *, category: str, pool_address: str, account: str, supply: int, now: int) -> int:
    """Pending reward as if the pool were refreshed at `now`. Does not mutate `state`."""
    cat_name = require_category(category)
    scratch = copy.deepcopy(state)
    pool = require_pool(scratch, cat_name, pool_address)
    refresh_pool(scratch, category=cat_name, pool_address=pool_address, supply=supply, now=now)
    pos = get_position(scratch, cat_name, pool_address, account)
    if pos["amount"] == 0:
        return 0
    return pending_for(pool, pos)
