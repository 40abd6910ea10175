from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

Json = Dict[str, Any]

# Canonical error codes. Every rejected operation carries exactly one of these.
UNAUTHORIZED = "unauthorized"
NOT_WHITELISTED = "not_whitelisted"
ALREADY_WHITELISTED = "already_whitelisted"
INSUFFICIENT_BALANCE = "insufficient_balance"
TEMPORAL_VIOLATION = "temporal_violation"
INVARIANT_VIOLATION = "invariant_violation"
ARITHMETIC_ERROR = "arithmetic_error"
INVALID_CONFIG = "invalid_config"
TRANSFER_FAILED = "transfer_failed"


@dataclass
class RewardsError(Exception):
    """Canonical error type for rewards ledger and engine failures."""

    code: str
    reason: str
    details: Json = field(default_factory=dict)

    def __str__(self) -> str:
        if not self.details:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"
