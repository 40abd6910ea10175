# src/lprewards/ledger/pools.py
from __future__ import annotations

"""Pool registry.

Two independent categories (amm, minter) each hold:
  - by_address: every pool ever added (retired pools are kept so positions
    can still settle)
  - active: ordered membership set of currently whitelisted pools
  - total_alloc_points: sum of alloc_points over `active`

A retired address can never be whitelisted again.
"""

from typing import Any, Dict, List, Optional

from lprewards.ledger.accumulator import refresh_pool
from lprewards.ledger.constants import CATEGORIES
from lprewards.ledger.fixed_point import checked_add, checked_sub, require_uint
from lprewards.ledger.state import (
    ensure_category,
    get_pool,
    params,
    require_address,
    require_category,
    require_whitelisted,
)
from lprewards.runtime.errors import ALREADY_WHITELISTED, RewardsError

Json = Dict[str, Any]


def _emit(events: Optional[List[Json]], event: str, **fields: Any) -> None:
    if events is not None:
        events.append({"event": event, **fields})


def checkpoint_ts(state: Json, now: int) -> int:
    """First timestamp from which a pool may accrue: max(now, genesis)."""
    return max(int(now), int(params(state).get("genesis_ts", 0)))


def add_pool(
    state: Json,
    *,
    category: str,
    address: str,
    alloc_points: int,
    now: int,
    events: Optional[List[Json]] = None,
) -> Json:
    cat_name = require_category(category)
    addr = require_address(address)
    pts = int(alloc_points)
    require_uint(pts)

    cat = ensure_category(state, cat_name)
    existing = get_pool(state, cat_name, addr)
    if existing is not None:
        reason = "pool_already_whitelisted" if bool(existing.get("whitelisted")) else "pool_retired"
        raise RewardsError(ALREADY_WHITELISTED, reason, {"category": cat_name, "pool": addr})

    ts = checkpoint_ts(state, now)
    cat["by_address"][addr] = {
        "address": addr,
        "whitelisted": True,
        "alloc_points": pts,
        "last_reward_ts": ts,
        "acc_reward_per_share": 0,
    }
    cat["active"][addr] = True
    cat["total_alloc_points"] = checked_add(int(cat["total_alloc_points"]), pts)

    _emit(events, "pool_added", category=cat_name, pool=addr, alloc_points=pts, ts=ts)
    return {"applied": "POOL_ADD", "category": cat_name, "pool": addr, "alloc_points": pts}


def remove_pool(
    state: Json,
    *,
    category: str,
    address: str,
    now: int,
    supply: int,
    events: Optional[List[Json]] = None,
) -> Json:
    """Retire a pool. Accrual up to `now` is settled into its accumulator first."""
    cat_name = require_category(category)
    addr = require_address(address)
    pool = require_whitelisted(state, cat_name, addr)

    refresh_pool(state, category=cat_name, pool_address=addr, supply=supply, now=now, events=events)

    cat = ensure_category(state, cat_name)
    pts = int(pool.get("alloc_points", 0))
    cat["total_alloc_points"] = checked_sub(int(cat["total_alloc_points"]), pts)
    pool["whitelisted"] = False
    cat["active"].pop(addr, None)

    _emit(events, "pool_removed", category=cat_name, pool=addr, ts=int(now))
    return {"applied": "POOL_REMOVE", "category": cat_name, "pool": addr}


def set_alloc_points(
    state: Json,
    *,
    category: str,
    address: str,
    alloc_points: int,
    events: Optional[List[Json]] = None,
) -> Json:
    """Change a pool's weight. Takes effect from the pool's next refresh."""
    cat_name = require_category(category)
    addr = require_address(address)
    pool = require_whitelisted(state, cat_name, addr)
    new_pts = int(alloc_points)
    require_uint(new_pts)

    cat = ensure_category(state, cat_name)
    old_pts = int(pool.get("alloc_points", 0))
    total = checked_sub(int(cat["total_alloc_points"]), old_pts)
    cat["total_alloc_points"] = checked_add(total, new_pts)
    pool["alloc_points"] = new_pts

    _emit(events, "pool_alloc_points_set", category=cat_name, pool=addr, old=old_pts, new=new_pts)
    return {"applied": "POOL_ALLOC_SET", "category": cat_name, "pool": addr, "alloc_points": new_pts}


def whitelisted_pools(state: Json, category: str) -> List[str]:
    cat = ensure_category(state, require_category(category))
    return list(cat["active"].keys())


def is_whitelisted(state: Json, category: str, address: str) -> bool:
    cat = ensure_category(state, require_category(category))
    return address in cat["active"]


def total_alloc_points(state: Json, category: str) -> int:
    return int(ensure_category(state, require_category(category))["total_alloc_points"])


def reset_checkpoints(state: Json, *, now: int) -> int:
    """Re-clamp every pool's last_reward_ts to max(now, genesis). Returns count."""
    ts = checkpoint_ts(state, now)
    n = 0
    for cat_name in CATEGORIES:
        cat = ensure_category(state, cat_name)
        for pool in cat["by_address"].values():
            if isinstance(pool, dict):
                pool["last_reward_ts"] = ts
                n += 1
    return n
