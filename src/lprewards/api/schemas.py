from __future__ import annotations

"""Pydantic response schemas for the query API.

Amounts are integer token base units (18 decimals); accumulators are scaled
by 1e18.
"""

from typing import List

from pydantic import BaseModel, Field


class PoolInfo(BaseModel):
    category: str
    address: str
    whitelisted: bool
    alloc_points: int = Field(..., ge=0)
    last_reward_ts: int
    acc_reward_per_share: int = Field(..., ge=0)


class PoolListResponse(BaseModel):
    ok: bool = True
    category: str
    total_alloc_points: int
    pools: List[PoolInfo]


class PositionResponse(BaseModel):
    ok: bool = True
    category: str
    pool: str
    account: str
    amount: int
    reward_debt: int
    pending: int
    now: int


class VestingResponse(BaseModel):
    ok: bool = True
    vault: str
    last_release_ts: int
    cumulative_debt: int
    pending: int
    now: int


class EmissionResponse(BaseModel):
    ok: bool = True
    at: int
    epoch: int
    elapsed_in_epoch: int
    epoch_budget: int
    cumulative_emission: int


class ClaimedResponse(BaseModel):
    ok: bool = True
    account: str
    claimed: int
