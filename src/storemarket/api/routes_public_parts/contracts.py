from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from storemarket.api.errors import ApiError
from storemarket.api.routes_public_parts.common import _submit, _view
from storemarket.api.schemas import DisputeResolveRequest

router = APIRouter()

Json = Dict[str, Any]


@router.get("/contracts/{contract_id}")
def contract_get(contract_id: int, request: Request) -> Json:
    rec = _view(request).get_contract(contract_id)
    if rec is None:
        raise ApiError.not_found("listing_not_found", "contract not found", {"contract_id": contract_id})
    return {"ok": True, "contract": rec.to_json()}


@router.get("/contracts/{contract_id}/files/{file_id}")
def contract_file(contract_id: int, file_id: int, request: Request) -> Json:
    rec = _view(request).get_file_metadata(contract_id, file_id)
    if rec is None:
        raise ApiError.not_found(
            "file_not_found", "file metadata not found", {"contract_id": contract_id, "file_id": file_id}
        )
    return {"ok": True, "file": rec.to_json()}


@router.get("/contracts/{contract_id}/dispute")
def contract_dispute_get(contract_id: int, request: Request) -> Json:
    rec = _view(request).get_dispute(contract_id)
    if rec is None:
        raise ApiError.not_found("dispute_not_found", "no dispute recorded", {"contract_id": contract_id})
    return {"ok": True, "dispute": rec.to_json()}


@router.post("/contracts/{contract_id}/dispute")
def contract_dispute_resolve(contract_id: int, body: DisputeResolveRequest, request: Request) -> Json:
    payload = body.model_dump()
    payload["contract_id"] = contract_id
    return _submit(request, "DISPUTE_RESOLVE", payload)


@router.get("/users/{user_id}/contracts")
def user_contracts(user_id: str, request: Request) -> Json:
    items = [c.to_json() for c in _view(request).contracts_for_user(user_id)]
    return {"ok": True, "user": user_id, "items": items}
