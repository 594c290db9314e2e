# src/storemarket/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from storemarket.api.routes_public_parts.contracts import router as contracts_router
from storemarket.api.routes_public_parts.health import router as health_router
from storemarket.api.routes_public_parts.ledger import router as ledger_router
from storemarket.api.routes_public_parts.listings import router as listings_router
from storemarket.api.routes_public_parts.providers import router as providers_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(providers_router, prefix="/v1", tags=["providers"])
public_router.include_router(listings_router, prefix="/v1", tags=["listings"])
public_router.include_router(contracts_router, prefix="/v1", tags=["contracts"])
public_router.include_router(ledger_router, prefix="/v1", tags=["ledger"])
