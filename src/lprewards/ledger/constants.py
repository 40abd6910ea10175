# src/lprewards/ledger/constants.py
from __future__ import annotations

"""Monetary and schedule constants.

Anchors:
- Reward token has 18 decimals
- Accumulators and the decay base share the same 1e18 scale
- Splits are expressed in basis points (parts per 10,000)
- Default schedule: 30-day epochs, 0.813 per-epoch retention,
  7,500,000 tokens reference emission, 40/40/20 split
"""

# Fixed-point scale (1.0 == SCALE)
DECIMALS: int = 18
SCALE: int = 10**DECIMALS

# Token base units (1 token = 1e18 units)
TOKEN: int = 10**DECIMALS

BASIS_POINTS: int = 10_000

U256_MAX: int = (1 << 256) - 1

# Categories
CATEGORY_AMM: str = "amm"
CATEGORY_MINTER: str = "minter"
CATEGORIES = (CATEGORY_AMM, CATEGORY_MINTER)

# Schedule defaults
DEFAULT_EPOCH_LENGTH_SECONDS: int = 30 * 24 * 60 * 60  # 2,592,000
DEFAULT_DECAY_BASE: int = 813 * 10**15  # 0.813
DEFAULT_STARTING_REWARDS: int = 7_500_000 * TOKEN

DEFAULT_AMM_RATIO_BPS: int = 4_000
DEFAULT_MINTER_RATIO_BPS: int = 4_000
DEFAULT_VESTING_RATIO_BPS: int = 2_000

STATE_VERSION: int = 1
