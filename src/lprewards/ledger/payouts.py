# src/lprewards/ledger/payouts.py
from __future__ import annotations

"""Treasury payout guard.

A PayoutGuard is created per operation with the treasury balance observed at
the start of that operation. Every payout is checked against what is still
available (balance minus payouts already queued in the same operation) before
it is recorded. Transfers are only queued here; the runtime engine executes
them after the operation's state has been committed.

Nothing is reserved ahead of time for accrued-but-unclaimed rewards. An
underfunded treasury makes the claiming operation fail, never underpay.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from lprewards.ledger.fixed_point import checked_add, checked_sub, require_uint
from lprewards.ledger.state import ensure_claimed
from lprewards.runtime.errors import INSUFFICIENT_BALANCE, RewardsError

Json = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class Transfer:
    """A queued external token movement."""

    token: str  # "reward" or an LP token address
    sender: str
    to: str
    amount: int
    pull: bool = False  # True -> transfer_from(sender, to, amount)


@dataclass
class PayoutGuard:
    treasury: str
    treasury_balance: int
    transfers: List[Transfer] = field(default_factory=list)
    queued_total: int = 0

    def available(self) -> int:
        return checked_sub(int(self.treasury_balance), int(self.queued_total))

    def pay(self, state: Json, to: str, amount: int, *, events: Optional[List[Json]] = None, reason: str = "") -> int:
        amt = int(amount)
        require_uint(amt)
        if amt == 0:
            return 0

        avail = self.available()
        if amt > avail:
            raise RewardsError(
                INSUFFICIENT_BALANCE,
                "treasury_underfunded",
                {"requested": amt, "available": avail, "to": to},
            )

        claimed = ensure_claimed(state)
        by_account = claimed["by_account"]
        by_account[to] = checked_add(int(by_account.get(to, 0)), amt)
        claimed["total"] = checked_add(int(claimed.get("total", 0)), amt)

        self.queued_total = checked_add(int(self.queued_total), amt)
        self.transfers.append(Transfer(token="reward", sender=self.treasury, to=to, amount=amt))

        if events is not None:
            events.append({"event": "reward_paid", "to": to, "amount": amt, "reason": reason})
        return amt

    def move_principal(self, *, token: str, sender: str, to: str, amount: int, pull: bool = False) -> None:
        """Queue an LP principal movement into or out of custody."""
        amt = int(amount)
        require_uint(amt)
        if amt == 0:
            return
        self.transfers.append(Transfer(token=token, sender=sender, to=to, amount=amt, pull=pull))


def claimed_total(state: Json, account: str) -> int:
    return int(ensure_claimed(state)["by_account"].get(account, 0))


def claimed_grand_total(state: Json) -> int:
    return int(ensure_claimed(state).get("total", 0))
