# src/lprewards/ledger/__init__.py
"""Deterministic reward accounting over a JSON-compatible state dict.

Modules (leaves first):
  - fixed_point: checked 1e18-scaled integer math
  - emission: geometric-decay cumulative emission schedule
  - state: state roots and ensure/lookup helpers
  - pools: per-category pool registry
  - accumulator: reward-per-share refresh and position settlement
  - vesting: vault vesting releaser
  - payouts: treasury payout guard and claimed totals

NOTE: Keep this package free of I/O. External transfers are described, not
performed; the runtime engine executes them after commit.
"""

from __future__ import annotations

__all__ = [
    "constants",
    "fixed_point",
    "emission",
    "state",
    "pools",
    "accumulator",
    "vesting",
    "payouts",
]
