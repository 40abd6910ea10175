# src/lprewards/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from lprewards.api.routes_public_parts.accounts import router as accounts_router
from lprewards.api.routes_public_parts.emission import router as emission_router
from lprewards.api.routes_public_parts.health import router as health_router
from lprewards.api.routes_public_parts.pools import router as pools_router
from lprewards.api.routes_public_parts.vesting import router as vesting_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(pools_router, prefix="/v1", tags=["pools"])
public_router.include_router(vesting_router, prefix="/v1", tags=["vesting"])
public_router.include_router(emission_router, prefix="/v1", tags=["emission"])
public_router.include_router(accounts_router, prefix="/v1", tags=["accounts"])
