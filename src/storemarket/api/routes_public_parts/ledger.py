from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from storemarket.api.routes_public_parts.common import _executor, _int_param, _submit, _view
from storemarket.api.schemas import CustodySweepRequest

router = APIRouter()

Json = Dict[str, Any]


@router.get("/balances/{account_id}")
def balance_get(account_id: str, request: Request) -> Json:
    return {"ok": True, "account": account_id, "balance": _view(request).balance_of(account_id)}


@router.get("/custody")
def custody_get(request: Request) -> Json:
    view = _view(request)
    return {"ok": True, "custody_id": view.params.get("custody_id"), "balance": view.custody_balance()}


@router.post("/custody/sweep")
def custody_sweep(body: CustodySweepRequest, request: Request) -> Json:
    return _submit(request, "CUSTODY_SWEEP", body.model_dump())


@router.get("/events")
def events_list(request: Request, since: Optional[str] = None, limit: Optional[str] = None) -> Json:
    start = max(0, _int_param(since, 0))
    lim = min(max(1, _int_param(limit, 100)), 1000)
    items = _executor(request).events(since=start, limit=lim)
    return {"ok": True, "since": start, "next": start + len(items), "items": items}
