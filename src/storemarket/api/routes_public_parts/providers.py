from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from storemarket.api.errors import ApiError
from storemarket.api.routes_public_parts.common import _submit, _view
from storemarket.api.schemas import ProviderRegisterRequest, ProviderUpdateRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/providers/register")
def provider_register(body: ProviderRegisterRequest, request: Request) -> Json:
    return _submit(request, "PROVIDER_REGISTER", body.model_dump())


@router.post("/providers/update")
def provider_update(body: ProviderUpdateRequest, request: Request) -> Json:
    return _submit(request, "PROVIDER_UPDATE", body.model_dump())


@router.get("/providers/{provider_id}")
def provider_get(provider_id: str, request: Request) -> Json:
    view = _view(request)
    rec = view.get_provider(provider_id)
    if rec is None:
        raise ApiError.not_found("provider_not_found", "provider not found", {"provider": provider_id})
    return {"ok": True, "provider": rec.to_json(), "registered": rec.active}


@router.get("/providers/{provider_id}/listings")
def provider_listings(provider_id: str, request: Request) -> Json:
    items = [x.to_json() for x in _view(request).listings_by_provider(provider_id)]
    return {"ok": True, "provider": provider_id, "items": items}


@router.get("/providers/{provider_id}/contracts")
def provider_contracts(provider_id: str, request: Request) -> Json:
    items = [c.to_json() for c in _view(request).contracts_for_provider(provider_id)]
    return {"ok": True, "provider": provider_id, "items": items}
