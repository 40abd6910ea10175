from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, Sequence, Tuple

import pytest

# Ensure local "src/" takes precedence over any globally-installed "lprewards" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from lprewards.ledger.constants import SCALE, TOKEN  # noqa: E402
from lprewards.runtime.collaborators import InMemoryMinter, InMemoryTokenLedger  # noqa: E402
from lprewards.runtime.config import RewardsConfig  # noqa: E402
from lprewards.runtime.engine import RewardsEngine  # noqa: E402

# Small schedule used across tests: genesis 1000, 100s epochs, base 0.5,
# 1000 tokens starting -> epoch 0 emits 500 tokens, epoch 1 emits 250.
GENESIS = 1000
EPOCH = 100


def make_config(
    *,
    genesis_ts: int = GENESIS,
    amm_pools: Sequence[Tuple[str, int]] = (("LP1", 100),),
    minter_pools: Sequence[Tuple[str, int]] = (("COLL1", 100),),
    **overrides: Any,
) -> RewardsConfig:
    fields: Dict[str, Any] = dict(
        owner="owner",
        minter="minter",
        vault="vault",
        reward_token="REWARD",
        treasury="rewards",
        genesis_ts=genesis_ts,
        epoch_length=EPOCH,
        decay_base=SCALE // 2,
        starting_rewards=1000 * TOKEN,
        amm_ratio_bps=4000,
        minter_ratio_bps=4000,
        vesting_ratio_bps=2000,
        amm_pools=list(amm_pools),
        minter_pools=list(minter_pools),
    )
    fields.update(overrides)
    return RewardsConfig(**fields)


@pytest.fixture
def make_engine() -> Callable[..., SimpleNamespace]:
    """Engine + in-memory collaborators. Treasury starts with 1M reward tokens."""

    def _make(
        *,
        now: int = GENESIS,
        treasury_funds: int = 1_000_000 * TOKEN,
        reward_token: InMemoryTokenLedger | None = None,
        store: Any = None,
        **cfg_overrides: Any,
    ) -> SimpleNamespace:
        cfg = make_config(**cfg_overrides)
        reward = reward_token or InMemoryTokenLedger("REWARD")
        reward.mint(cfg.treasury, treasury_funds)
        lps = {addr: InMemoryTokenLedger(addr) for addr, _ in cfg.amm_pools}
        minter = InMemoryMinter()
        engine = RewardsEngine.from_config(
            cfg,
            now=now,
            reward_token=reward,
            lp_tokens=lps,
            minter_system=minter,
            store=store,
        )
        return SimpleNamespace(engine=engine, reward=reward, lps=lps, minter=minter, cfg=cfg)

    return _make
