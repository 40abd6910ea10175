# src/lprewards/api/__init__.py
"""Read-only HTTP query surface over a RewardsEngine (FastAPI)."""

from __future__ import annotations

__all__ = ["app", "errors", "schemas", "structured_logging", "routes_public"]
