from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from storemarket.api.errors import ApiError
from storemarket.ledger.state import MarketView
from storemarket.runtime.errors import MarketError
from storemarket.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _view(request: Request) -> MarketView:
    return _executor(request).view()


def _caller(request: Request) -> str:
    """Caller identity as asserted by the trusted gateway in front of us."""
    cfg = getattr(request.app.state, "cfg", None)
    header = getattr(cfg, "caller_header", "X-Market-Caller")
    caller = (request.headers.get(header) or "").strip()
    if not caller:
        raise ApiError.unauthorized("missing_caller", f"missing {header} header", {"header": header})
    return caller


def _submit(request: Request, tx_type: str, payload: Json) -> Json:
    """Apply one tx for the request's caller; MarketError becomes ApiError."""
    ex = _executor(request)
    env = TxEnvelope(tx_type=tx_type, signer=_caller(request), payload=payload)
    try:
        meta = ex.apply(env)
    except MarketError as e:
        raise ApiError.from_market_error(e) from None
    out: Json = {"ok": True}
    out.update(meta)
    return out


def _int_param(v: Any, default: int) -> int:
    """Parse an int-ish query param safely."""
    if v is None:
        return int(default)
    try:
        s = str(v).strip()
        if s == "":
            return int(default)
        return int(s)
    except ValueError:
        return int(default)
