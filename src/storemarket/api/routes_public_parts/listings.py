from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from storemarket.api.errors import ApiError
from storemarket.api.routes_public_parts.common import _submit, _view
from storemarket.api.schemas import ListingCreateRequest, StoragePurchaseRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/listings")
def listing_create(body: ListingCreateRequest, request: Request) -> Json:
    return _submit(request, "LISTING_CREATE", body.model_dump())


@router.get("/listings")
def listings_available(request: Request) -> Json:
    """Open listings only; sold listings stay readable by id."""
    items = [x.to_json() for x in _view(request).available_listings()]
    return {"ok": True, "items": items}


@router.get("/listings/{listing_id}")
def listing_get(listing_id: int, request: Request) -> Json:
    rec = _view(request).get_listing(listing_id)
    if rec is None:
        raise ApiError.not_found("listing_not_found", "listing not found", {"listing_id": listing_id})
    return {"ok": True, "listing": rec.to_json()}


@router.post("/storage/purchase")
def storage_purchase(body: StoragePurchaseRequest, request: Request) -> Json:
    return _submit(request, "STORAGE_PURCHASE", body.model_dump())
