# src/lprewards/ledger/emission.py
from __future__ import annotations

"""Geometric-decay emission schedule.

Time since genesis is split into whole epochs plus a fractional remainder:

  n       = (at - genesis) // epoch_length
  elapsed = (at - genesis) %  epoch_length

Epoch k (0-indexed) emits `starting_rewards * decay_base^(k+1)`. The decay
factor is accumulated one epoch at a time rather than raised to a power, so
each step loses at most one unit of precision. The loop is O(n) in calendar
epochs, not in transaction volume.

Cumulative emission up to `at`:

  sum(budget_k for k < n) + budget_n * elapsed / epoch_length
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from lprewards.ledger.constants import SCALE
from lprewards.ledger.fixed_point import checked_add, checked_sub, mul_div, require_uint, scale_mul
from lprewards.runtime.errors import ARITHMETIC_ERROR, INVALID_CONFIG, TEMPORAL_VIOLATION, RewardsError

Json = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class EmissionSchedule:
    genesis_ts: int
    epoch_length: int
    decay_base: int
    starting_rewards: int

    def __post_init__(self) -> None:
        require_uint(self.genesis_ts, self.epoch_length, self.decay_base, self.starting_rewards)
        if self.epoch_length <= 0:
            raise RewardsError(INVALID_CONFIG, "epoch_length_must_be_positive", {"epoch_length": self.epoch_length})
        if not 0 < self.decay_base < SCALE:
            raise RewardsError(INVALID_CONFIG, "decay_base_out_of_range", {"decay_base": self.decay_base})

    @classmethod
    def from_params(cls, params: Json) -> "EmissionSchedule":
        return cls(
            genesis_ts=int(params["genesis_ts"]),
            epoch_length=int(params["epoch_length"]),
            decay_base=int(params["decay_base"]),
            starting_rewards=int(params["starting_rewards"]),
        )

    def epoch_position(self, at: int) -> Tuple[int, int]:
        """Return (complete epochs elapsed, seconds into the current epoch)."""
        at_i = int(at)
        if at_i < self.genesis_ts:
            raise RewardsError(TEMPORAL_VIOLATION, "before_genesis", {"at": at_i, "genesis_ts": self.genesis_ts})
        return divmod(at_i - self.genesis_ts, self.epoch_length)

    def epoch_budget(self, k: int) -> int:
        """Total emission of epoch k (0-indexed)."""
        factor = SCALE
        for _ in range(int(k) + 1):
            factor = scale_mul(factor, self.decay_base)
        return scale_mul(self.starting_rewards, factor)

    def cumulative_emission(self, at: int) -> int:
        n, elapsed = self.epoch_position(at)

        total = 0
        factor = SCALE
        for _ in range(n):
            factor = scale_mul(factor, self.decay_base)
            total = checked_add(total, scale_mul(self.starting_rewards, factor))

        if elapsed:
            factor = scale_mul(factor, self.decay_base)
            current_budget = scale_mul(self.starting_rewards, factor)
            total = checked_add(total, mul_div(current_budget, elapsed, self.epoch_length))

        return total

    def accrued_between(self, start: int, end: int) -> int:
        """Emission scheduled in [start, end). Callers guarantee end >= start."""
        if int(end) < int(start):
            raise RewardsError(ARITHMETIC_ERROR, "negative_interval", {"start": int(start), "end": int(end)})
        return checked_sub(self.cumulative_emission(end), self.cumulative_emission(start))


def schedule_from_state(state: Json) -> EmissionSchedule:
    params = state.get("params")
    if not isinstance(params, dict):
        raise RewardsError(INVALID_CONFIG, "missing_params", {})
    return EmissionSchedule.from_params(params)
