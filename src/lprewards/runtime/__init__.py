# src/lprewards/runtime/__init__.py
"""Hosting environment for the rewards ledger.

The ledger package is pure state-transition code. This package supplies what
the ledger assumes from its host:
  - errors: canonical RewardsError
  - gates: capability checks for owner/minter restricted operations
  - collaborators: token ledger / minter system protocols + in-memory versions
  - config: RewardsConfig loading and validation
  - engine: atomic, checks-effects-interactions operation runner
  - sqlite_db: snapshot persistence
"""

from __future__ import annotations

__all__ = [
    "errors",
    "gates",
    "collaborators",
    "config",
    "engine",
    "engine_boot",
    "sqlite_db",
]
