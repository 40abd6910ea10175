# src/lprewards/ledger/state.py
from __future__ import annotations

"""State roots and lookup helpers.

The engine state is one JSON-compatible dict:

  state["params"]     schedule, splits, role addresses
  state["pools"]      {category: {"total_alloc_points", "active", "by_address"}}
  state["positions"]  {category: {pool: {account: {"amount", "reward_debt"}}}}
  state["vesting"]    {"last_release_ts", "cumulative_debt"}
  state["claimed"]    {"by_account": {account: int}, "total": int}

`active` is an insertion-ordered dict used as a membership set: O(1)
add/remove/contains with stable enumeration order.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from lprewards.ledger.constants import BASIS_POINTS, CATEGORIES, STATE_VERSION
from lprewards.runtime.errors import INVALID_CONFIG, NOT_WHITELISTED, RewardsError

Json = Dict[str, Any]


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return int(default)


def _as_str(x: Any) -> str:
    return x.strip() if isinstance(x, str) else ""


def _ensure_root_dict(state: Json, key: str) -> Json:
    cur = state.get(key)
    if not isinstance(cur, dict):
        cur = {}
        state[key] = cur
    return cur


def require_category(category: str) -> str:
    c = _as_str(category).lower()
    if c not in CATEGORIES:
        raise RewardsError(INVALID_CONFIG, "unknown_category", {"category": category, "allowed": list(CATEGORIES)})
    return c


def require_address(address: Any, *, field_name: str = "address") -> str:
    a = _as_str(address)
    if not a:
        raise RewardsError(INVALID_CONFIG, "missing_address", {"field": field_name})
    return a


def params(state: Json) -> Json:
    return _ensure_root_dict(state, "params")


def ensure_category(state: Json, category: str) -> Json:
    pools = _ensure_root_dict(state, "pools")
    cat = pools.get(category)
    if not isinstance(cat, dict):
        cat = {}
        pools[category] = cat
    cat.setdefault("total_alloc_points", 0)
    if not isinstance(cat.get("active"), dict):
        cat["active"] = {}
    if not isinstance(cat.get("by_address"), dict):
        cat["by_address"] = {}
    return cat


def get_pool(state: Json, category: str, address: str) -> Optional[Json]:
    cat = ensure_category(state, category)
    pool = cat["by_address"].get(address)
    return pool if isinstance(pool, dict) else None


def require_pool(state: Json, category: str, address: str) -> Json:
    """Return a known pool record (whitelisted or retired)."""
    pool = get_pool(state, category, address)
    if pool is None:
        raise RewardsError(NOT_WHITELISTED, "unknown_pool", {"category": category, "pool": address})
    return pool


def require_whitelisted(state: Json, category: str, address: str) -> Json:
    pool = get_pool(state, category, address)
    if pool is None or not bool(pool.get("whitelisted")):
        raise RewardsError(NOT_WHITELISTED, "pool_not_whitelisted", {"category": category, "pool": address})
    return pool


def ensure_position(state: Json, category: str, pool: str, account: str) -> Json:
    positions = _ensure_root_dict(state, "positions")
    by_pool = positions.get(category)
    if not isinstance(by_pool, dict):
        by_pool = {}
        positions[category] = by_pool
    by_account = by_pool.get(pool)
    if not isinstance(by_account, dict):
        by_account = {}
        by_pool[pool] = by_account
    pos = by_account.get(account)
    if not isinstance(pos, dict):
        pos = {"amount": 0, "reward_debt": 0}
        by_account[account] = pos
    return pos


def get_position(state: Json, category: str, pool: str, account: str) -> Json:
    """Read-only lookup; missing positions read as zero."""
    pos = _as_dict(_as_dict(_as_dict(state.get("positions")).get(category)).get(pool)).get(account)
    if not isinstance(pos, dict):
        return {"amount": 0, "reward_debt": 0}
    return {"amount": _as_int(pos.get("amount")), "reward_debt": _as_int(pos.get("reward_debt"))}


def ensure_vesting(state: Json) -> Json:
    v = _ensure_root_dict(state, "vesting")
    genesis = _as_int(params(state).get("genesis_ts"))
    v.setdefault("last_release_ts", genesis)
    v.setdefault("cumulative_debt", 0)
    return v


def ensure_claimed(state: Json) -> Json:
    c = _ensure_root_dict(state, "claimed")
    if not isinstance(c.get("by_account"), dict):
        c["by_account"] = {}
    c.setdefault("total", 0)
    return c


def ratio_bps(state: Json, category: str) -> int:
    p = params(state)
    return _as_int(p.get(f"{category}_ratio_bps"))


def validate_split(amm_bps: int, minter_bps: int, vesting_bps: int) -> None:
    for name, v in (("amm_ratio_bps", amm_bps), ("minter_ratio_bps", minter_bps), ("vesting_ratio_bps", vesting_bps)):
        if int(v) < 0:
            raise RewardsError(INVALID_CONFIG, "negative_ratio", {"field": name, "value": int(v)})
    total = int(amm_bps) + int(minter_bps) + int(vesting_bps)
    if total > BASIS_POINTS:
        raise RewardsError(INVALID_CONFIG, "ratios_exceed_basis_points", {"sum": total, "max": BASIS_POINTS})


def init_state(
    *,
    owner: str,
    minter: str,
    vault: str,
    reward_token: str,
    treasury: str,
    genesis_ts: int,
    epoch_length: int,
    decay_base: int,
    starting_rewards: int,
    amm_ratio_bps: int,
    minter_ratio_bps: int,
    vesting_ratio_bps: int,
) -> Json:
    """Build a fresh state dict. Pools are added afterwards via the registry."""
    validate_split(amm_ratio_bps, minter_ratio_bps, vesting_ratio_bps)

    state: Json = {
        "state_version": STATE_VERSION,
        "params": {
            "owner": require_address(owner, field_name="owner"),
            "minter": _as_str(minter),
            "vault": _as_str(vault),
            "reward_token": _as_str(reward_token),
            "treasury": require_address(treasury, field_name="treasury"),
            "genesis_ts": int(genesis_ts),
            "epoch_length": int(epoch_length),
            "decay_base": int(decay_base),
            "starting_rewards": int(starting_rewards),
            "amm_ratio_bps": int(amm_ratio_bps),
            "minter_ratio_bps": int(minter_ratio_bps),
            "vesting_ratio_bps": int(vesting_ratio_bps),
        },
    }
    for c in CATEGORIES:
        ensure_category(state, c)
    _ensure_root_dict(state, "positions")
    ensure_vesting(state)
    ensure_claimed(state)
    return state


@dataclass(frozen=True, slots=True)
class RewardsView:
    """Immutable read-only view used by query paths (API, pending previews)."""

    params: Dict[str, Any] = field(default_factory=dict)
    pools: Dict[str, Any] = field(default_factory=dict)
    vesting: Dict[str, Any] = field(default_factory=dict)
    claimed: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_state(cls, state: Json) -> "RewardsView":
        return cls(
            params=copy.deepcopy(_as_dict(state.get("params"))),
            pools=copy.deepcopy(_as_dict(state.get("pools"))),
            vesting=copy.deepcopy(_as_dict(state.get("vesting"))),
            claimed=copy.deepcopy(_as_dict(state.get("claimed"))),
        )

    def whitelisted(self, category: str) -> List[str]:
        return list(_as_dict(_as_dict(self.pools.get(category)).get("active")).keys())

    def pool(self, category: str, address: str) -> Json:
        return _as_dict(_as_dict(_as_dict(self.pools.get(category)).get("by_address")).get(address))

    def total_alloc_points(self, category: str) -> int:
        return _as_int(_as_dict(self.pools.get(category)).get("total_alloc_points"))

    def claimed_by(self, account: str) -> int:
        return _as_int(_as_dict(self.claimed.get("by_account")).get(account))
