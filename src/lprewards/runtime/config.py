# src/lprewards/runtime/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from lprewards.ledger.constants import (
    BASIS_POINTS,
    DEFAULT_AMM_RATIO_BPS,
    DEFAULT_DECAY_BASE,
    DEFAULT_EPOCH_LENGTH_SECONDS,
    DEFAULT_MINTER_RATIO_BPS,
    DEFAULT_STARTING_REWARDS,
    DEFAULT_VESTING_RATIO_BPS,
    SCALE,
)

Json = Dict[str, Any]
PoolSpec = Tuple[str, int]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_pools(v: Any, default: List[PoolSpec]) -> List[PoolSpec]:
    """Accept [[address, points], ...] or [{"address": ..., "alloc_points": ...}, ...]."""
    if not isinstance(v, list):
        return list(default)
    out: List[PoolSpec] = []
    for rec in v:
        if isinstance(rec, (list, tuple)) and len(rec) == 2:
            addr, pts = rec[0], rec[1]
        elif isinstance(rec, dict):
            addr, pts = rec.get("address"), rec.get("alloc_points")
        else:
            raise ValueError(f"pool entry must be [address, points] or object; got: {rec!r}")
        a = str(addr or "").strip()
        if not a:
            raise ValueError(f"pool entry missing address: {rec!r}")
        out.append((a, _as_int(pts, 0)))
    return out


@dataclass(frozen=True)
class RewardsConfig:
    owner: str
    minter: str
    vault: str
    reward_token: str
    # Address holding the reward budget and LP custody.
    treasury: str

    # 0 means "genesis at boot time".
    genesis_ts: int
    epoch_length: int
    decay_base: int
    starting_rewards: int

    amm_ratio_bps: int
    minter_ratio_bps: int
    vesting_ratio_bps: int

    amm_pools: List[PoolSpec] = field(default_factory=list)
    minter_pools: List[PoolSpec] = field(default_factory=list)

    db_path: str = "./data/lprewards.db"
    api_host: str = "127.0.0.1"
    api_port: int = 8080
    log_level: str = "INFO"


def validate_rewards_config(cfg: RewardsConfig) -> None:
    """Fail-fast validation for operator config.

    A misconfigured schedule cannot be corrected once emission has started,
    so every schedule knob is checked before the engine is built.
    """

    if not isinstance(cfg.owner, str) or not cfg.owner.strip():
        raise ValueError("owner must be a non-empty string")

    if not isinstance(cfg.treasury, str) or not cfg.treasury.strip():
        raise ValueError("treasury must be a non-empty string")

    if int(cfg.genesis_ts) < 0:
        raise ValueError(f"genesis_ts must be >= 0; got: {cfg.genesis_ts}")

    if int(cfg.epoch_length) <= 0:
        raise ValueError(f"epoch_length must be > 0; got: {cfg.epoch_length}")

    if not 0 < int(cfg.decay_base) < SCALE:
        raise ValueError(f"decay_base must be in (0, {SCALE}); got: {cfg.decay_base}")

    if int(cfg.starting_rewards) < 0:
        raise ValueError(f"starting_rewards must be >= 0; got: {cfg.starting_rewards}")

    ratios = (cfg.amm_ratio_bps, cfg.minter_ratio_bps, cfg.vesting_ratio_bps)
    if any(int(r) < 0 for r in ratios):
        raise ValueError(f"ratios must be >= 0; got: {ratios}")
    if sum(int(r) for r in ratios) > BASIS_POINTS:
        raise ValueError(f"amm + minter + vesting ratios must be <= {BASIS_POINTS}; got: {sum(ratios)}")

    for name, pools in (("amm_pools", cfg.amm_pools), ("minter_pools", cfg.minter_pools)):
        seen = set()
        for addr, pts in pools:
            if addr in seen:
                raise ValueError(f"{name} lists {addr!r} more than once")
            seen.add(addr)
            if int(pts) < 0:
                raise ValueError(f"{name} alloc_points must be >= 0; got: {pts} for {addr!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")


def default_rewards_config() -> RewardsConfig:
    return RewardsConfig(
        owner="owner",
        minter="minter",
        vault="vault",
        reward_token="REWARD",
        treasury="rewards",
        genesis_ts=0,
        epoch_length=DEFAULT_EPOCH_LENGTH_SECONDS,
        decay_base=DEFAULT_DECAY_BASE,
        starting_rewards=DEFAULT_STARTING_REWARDS,
        amm_ratio_bps=DEFAULT_AMM_RATIO_BPS,
        minter_ratio_bps=DEFAULT_MINTER_RATIO_BPS,
        vesting_ratio_bps=DEFAULT_VESTING_RATIO_BPS,
    )


def read_rewards_config_file(path: str) -> RewardsConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("rewards config must be a JSON object")

    d = default_rewards_config()

    cfg = RewardsConfig(
        owner=_as_str(raw.get("owner"), d.owner),
        minter=_as_str(raw.get("minter"), d.minter),
        vault=_as_str(raw.get("vault"), d.vault),
        reward_token=_as_str(raw.get("reward_token"), d.reward_token),
        treasury=_as_str(raw.get("treasury"), d.treasury),
        genesis_ts=_as_int(raw.get("genesis_ts"), d.genesis_ts),
        epoch_length=_as_int(raw.get("epoch_length"), d.epoch_length),
        decay_base=_as_int(raw.get("decay_base"), d.decay_base),
        starting_rewards=_as_int(raw.get("starting_rewards"), d.starting_rewards),
        amm_ratio_bps=_as_int(raw.get("amm_ratio_bps"), d.amm_ratio_bps),
        minter_ratio_bps=_as_int(raw.get("minter_ratio_bps"), d.minter_ratio_bps),
        vesting_ratio_bps=_as_int(raw.get("vesting_ratio_bps"), d.vesting_ratio_bps),
        amm_pools=_as_pools(raw.get("amm_pools"), d.amm_pools),
        minter_pools=_as_pools(raw.get("minter_pools"), d.minter_pools),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level),
    )

    validate_rewards_config(cfg)
    return cfg


def load_rewards_config(*, config_path: Optional[str] = None) -> RewardsConfig:
    p = config_path or os.environ.get("LPREWARDS_CONFIG_PATH")
    if p:
        return read_rewards_config_file(p)

    cfg = default_rewards_config()
    validate_rewards_config(cfg)
    return cfg
