# src/lprewards/ledger/vesting.py
from __future__ import annotations

"""Vault vesting releaser.

The vault is entitled to `vesting_ratio_bps` of everything emitted since
genesis. `cumulative_debt` tracks how much of that entitlement has already
been paid out; a release pays the difference.
"""

from typing import Any, Dict, List, Optional

from lprewards.ledger.emission import schedule_from_state
from lprewards.ledger.fixed_point import apply_bps, checked_sub
from lprewards.ledger.payouts import PayoutGuard
from lprewards.ledger.state import ensure_vesting, params
from lprewards.runtime.errors import INVALID_CONFIG, TEMPORAL_VIOLATION, RewardsError

Json = Dict[str, Any]


def vesting_entitlement(state: Json, now: int) -> int:
    schedule = schedule_from_state(state)
    if int(now) < schedule.genesis_ts:
        return 0
    total = schedule.cumulative_emission(int(now))
    return apply_bps(total, int(params(state).get("vesting_ratio_bps", 0)))


def pending_vesting_reward(state: Json, now: int) -> int:
    v = ensure_vesting(state)
    return checked_sub(vesting_entitlement(state, now), int(v.get("cumulative_debt", 0)))


def release(state: Json, guard: PayoutGuard, *, now: int, events: Optional[List[Json]] = None) -> Json:
    now_i = int(now)
    v = ensure_vesting(state)
    last = int(v.get("last_release_ts", 0))
    if now_i <= last:
        raise RewardsError(TEMPORAL_VIOLATION, "non_positive_release_interval", {"now": now_i, "last_release_ts": last})

    schedule = schedule_from_state(state)
    n, elapsed = schedule.epoch_position(now_i)
    if not 0 <= elapsed < schedule.epoch_length:
        raise RewardsError(
            TEMPORAL_VIOLATION,
            "fractional_epoch_out_of_range",
            {"elapsed": elapsed, "epoch_length": schedule.epoch_length, "epoch": n},
        )

    vault = str(params(state).get("vault") or "").strip()
    if not vault:
        raise RewardsError(INVALID_CONFIG, "vault_address_not_set", {})

    entitled = vesting_entitlement(state, now_i)
    pending = checked_sub(entitled, int(v.get("cumulative_debt", 0)))

    v["cumulative_debt"] = entitled
    v["last_release_ts"] = now_i
    guard.pay(state, vault, pending, events=events, reason="vesting")

    if events is not None:
        events.append({"event": "vesting_released", "vault": vault, "amount": pending, "epoch": n, "ts": now_i})
    return {"applied": "VESTING_RELEASE", "vault": vault, "amount": pending, "cumulative_debt": entitled, "ts": now_i}
