# src/storemarket/runtime/domain_dispatch.py

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from storemarket.runtime.errors import TX_UNIMPLEMENTED, MarketError
from storemarket.runtime.state_invariants import ensure_state
from storemarket.runtime.tx_admission_types import TxEnvelope

# Domain appliers (each returns Optional[Json]; returning None means "not claimed")
from storemarket.runtime.apply.dispute import DISPUTE_TX_TYPES, apply_dispute
from storemarket.runtime.apply.escrow import ESCROW_TX_TYPES, apply_escrow
from storemarket.runtime.apply.listing import LISTING_TX_TYPES, apply_listing
from storemarket.runtime.apply.provider import PROVIDER_TX_TYPES, apply_provider

Json = Dict[str, Any]
ApplyFn = Callable[[Json, Any], Optional[Json]]

# Order mirrors the component dependency chain.
_APPLIERS: Tuple[ApplyFn, ...] = (
    apply_provider,
    apply_listing,
    apply_escrow,
    apply_dispute,
)

SUPPORTED_TX_TYPES = frozenset(PROVIDER_TX_TYPES | LISTING_TX_TYPES | ESCROW_TX_TYPES | DISPUTE_TX_TYPES)


def _tx_type(env: Any) -> str:
    if isinstance(env, dict):
        return str(env.get("tx_type", "") or "").strip().upper()
    return str(getattr(env, "tx_type", "") or "").strip().upper()


def apply_tx(state: Json, env: Any) -> Json:
    """Route one envelope to the domain that owns its tx_type.

    Mutates `state` in place. Callers that need all-or-nothing semantics go
    through domain_apply.apply_tx_atomic.
    """
    ensure_state(state)
    env_norm = TxEnvelope.from_json(env.to_json() if isinstance(env, TxEnvelope) else env)
    t = _tx_type(env_norm)
    if t != env_norm.tx_type:
        env_norm = TxEnvelope(tx_type=t, signer=env_norm.signer, payload=env_norm.payload)

    # Custody only moves value as a side effect of market operations; it never signs one.
    params = state.get("params") or {}
    custody = str(params.get("custody_id") or "").strip()
    if t in SUPPORTED_TX_TYPES and custody and env_norm.signer.strip() == custody:
        raise MarketError.not_authorized("custody_account_cannot_sign", {"tx_type": t, "signer": env_norm.signer})

    for fn in _APPLIERS:
        meta = fn(state, env_norm)
        if meta is not None:
            return meta

    raise MarketError(TX_UNIMPLEMENTED, "tx_type_not_implemented", {"tx_type": t})


__all__ = ["apply_tx", "SUPPORTED_TX_TYPES"]
