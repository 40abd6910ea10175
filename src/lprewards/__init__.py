# src/lprewards/__init__.py
"""
lprewards: multi-pool decay-emission rewards engine

Packages:
  - ledger: pure state transitions over a JSON-compatible state dict
  - runtime: atomic engine host, config, collaborators, persistence
  - api: read-only HTTP query surface
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["ledger", "runtime", "api", "__version__"]
