# src/lprewards/runtime/collaborators.py
from __future__ import annotations

"""External collaborators the engine talks to.

  TokenLedger   one fungible token: balances and transfers
  MinterSystem  reports total collateral locked per collateral type

The engine never holds authoritative balances itself; it queries these and
asks them to move tokens. The in-memory versions back local hosts and tests.
"""

from typing import Dict, Protocol


class TokenLedger(Protocol):
    def balance_of(self, address: str) -> int: ...

    def transfer(self, sender: str, to: str, amount: int) -> bool: ...

    def transfer_from(self, owner: str, to: str, amount: int) -> bool: ...


class MinterSystem(Protocol):
    def total_collateral(self, collateral: str) -> int: ...


class InMemoryTokenLedger:
    """Process-local token balances. Transfers fail (return False) on shortfall."""

    def __init__(self, symbol: str, balances: Dict[str, int] | None = None) -> None:
        self.symbol = str(symbol)
        self._balances: Dict[str, int] = {k: int(v) for k, v in (balances or {}).items()}

    def balance_of(self, address: str) -> int:
        return int(self._balances.get(address, 0))

    def mint(self, to: str, amount: int) -> None:
        if int(amount) < 0:
            raise ValueError("mint amount must be >= 0")
        self._balances[to] = self.balance_of(to) + int(amount)

    def _move(self, sender: str, to: str, amount: int) -> bool:
        amt = int(amount)
        if amt < 0 or self.balance_of(sender) < amt:
            return False
        self._balances[sender] = self.balance_of(sender) - amt
        self._balances[to] = self.balance_of(to) + amt
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        return self._move(sender, to, amount)

    def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        return self._move(owner, to, amount)


class InMemoryMinter:
    """Collateral totals as reported by an external minting system."""

    def __init__(self, totals: Dict[str, int] | None = None) -> None:
        self._totals: Dict[str, int] = {k: int(v) for k, v in (totals or {}).items()}

    def total_collateral(self, collateral: str) -> int:
        return int(self._totals.get(collateral, 0))

    def set_total(self, collateral: str, amount: int) -> None:
        if int(amount) < 0:
            raise ValueError("collateral total must be >= 0")
        self._totals[collateral] = int(amount)

    def add(self, collateral: str, amount: int) -> int:
        self.set_total(collateral, self.total_collateral(collateral) + int(amount))
        return self.total_collateral(collateral)

    def sub(self, collateral: str, amount: int) -> int:
        self.set_total(collateral, self.total_collateral(collateral) - int(amount))
        return self.total_collateral(collateral)
