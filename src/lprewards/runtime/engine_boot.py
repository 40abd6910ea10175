# src/lprewards/runtime/engine_boot.py

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Dict, Optional

from lprewards.runtime.collaborators import InMemoryMinter, InMemoryTokenLedger, TokenLedger
from lprewards.runtime.config import RewardsConfig, load_rewards_config
from lprewards.runtime.engine import RewardsEngine
from lprewards.runtime.sqlite_db import SqliteDB, SqliteRewardsStore


@dataclass
class EngineBootConfig:
    config_path: Optional[str]
    db_path: Optional[str]


def boot_config_from_env() -> EngineBootConfig:
    return EngineBootConfig(
        config_path=os.environ.get("LPREWARDS_CONFIG_PATH") or None,
        db_path=os.environ.get("LPREWARDS_DB_PATH") or None,
    )


def build_engine(cfg: Optional[EngineBootConfig] = None, *, now: Optional[int] = None) -> RewardsEngine:
    """
    Build a RewardsEngine for a local host.

    - Rewards config comes from the boot config path (or defaults).
    - If the SQLite store already holds a snapshot, the engine resumes from it;
      otherwise a fresh state is created at `now` and persisted.
    - Token ledgers and the minter system are in-memory stand-ins; a host
      wired to real collaborators constructs RewardsEngine directly.
    """
    c = cfg or boot_config_from_env()
    rewards_cfg: RewardsConfig = load_rewards_config(config_path=c.config_path)

    store = SqliteRewardsStore(db=SqliteDB(path=c.db_path or rewards_cfg.db_path))

    reward_token = InMemoryTokenLedger(rewards_cfg.reward_token)
    lp_tokens: Dict[str, TokenLedger] = {addr: InMemoryTokenLedger(addr) for addr, _ in rewards_cfg.amm_pools}
    minter_system = InMemoryMinter()

    if store.exists():
        return RewardsEngine(
            state=store.read(),
            reward_token=reward_token,
            lp_tokens=lp_tokens,
            minter_system=minter_system,
            store=store,
        )

    return RewardsEngine.from_config(
        rewards_cfg,
        now=int(time.time()) if now is None else int(now),
        reward_token=reward_token,
        lp_tokens=lp_tokens,
        minter_system=minter_system,
        store=store,
    )
