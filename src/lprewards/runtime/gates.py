# src/lprewards/runtime/gates.py
from __future__ import annotations

"""Capability gate for restricted operations.

Two capabilities exist, each held by exactly one address recorded in
state["params"]:

  owner   pool registry admin, allocation changes, ratio/address/genesis
          configuration, vesting release
  minter  deposit_minter / withdraw_minter / claim_minter

The engine only declares which operation needs which capability; the check
itself is delegated to a CapabilityGate so hosts can swap in their own
access-control collaborator.
"""

from typing import Any, Dict, Protocol

from lprewards.runtime.errors import UNAUTHORIZED, RewardsError

Json = Dict[str, Any]

OWNER = "owner"
MINTER = "minter"

# Declared requirements, keyed by engine operation name.
OPERATION_CAPABILITIES: Dict[str, str] = {
    "add_pool": OWNER,
    "remove_pool": OWNER,
    "set_alloc_points": OWNER,
    "set_minter_ratio": OWNER,
    "set_minter_address": OWNER,
    "set_vault_address": OWNER,
    "set_genesis_timestamp": OWNER,
    "release_vested_rewards": OWNER,
    "deposit_minter": MINTER,
    "withdraw_minter": MINTER,
    "claim_minter": MINTER,
}


class CapabilityGate(Protocol):
    def require(self, state: Json, caller: str, capability: str) -> None: ...


class SingleAddressGate:
    """Allow-one-address check against params[capability]."""

    def require(self, state: Json, caller: str, capability: str) -> None:
        params = state.get("params") if isinstance(state.get("params"), dict) else {}
        holder = str(params.get(capability) or "").strip()
        who = str(caller or "").strip()
        if not holder or who != holder:
            raise RewardsError(UNAUTHORIZED, f"{capability}_only", {"caller": who})
