# src/storemarket/runtime/apply/provider.py
from __future__ import annotations

"""storemarket.runtime.apply.provider

Provider registry apply semantics.

Key invariants:
  - provider_id == signer (providers are just accounts)
  - a provider record is never deleted; `active=false` takes it off the market
  - available_space never goes negative and reputation stays within [0, 100]
"""

from typing import Any, Dict, Optional

from storemarket.ledger.params import MarketParams
from storemarket.ledger.repo import MarketRepo
from storemarket.ledger.types import Provider
from storemarket.runtime.errors import MarketError
from storemarket.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _as_int(x: Any, default: int = 0) -> int:
    try:
        if isinstance(x, bool):
            return default
        return int(x)
    except Exception:
        return default


def _require_positive(payload: Json, *keys: str) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for k in keys:
        v = _as_int(payload.get(k), 0)
        if v <= 0:
            raise MarketError.invalid_amount(f"{k}_must_be_positive", {k: payload.get(k)})
        out[k] = v
    return out


def is_registered(repo: MarketRepo, identity: str) -> bool:
    """A provider counts as registered only while its record is active."""
    rec = repo.providers.get(identity)
    return rec is not None and rec.active


def _apply_provider_register(state: Json, env: TxEnvelope) -> Json:
    repo = MarketRepo(state)
    params = MarketParams.from_state(state)
    payload = _as_dict(env.payload)

    if is_registered(repo, env.signer):
        raise MarketError.already_registered("provider_already_active", {"provider": env.signer})

    q = _require_positive(payload, "available_space", "price_per_mb")

    prior = repo.providers.get(env.signer)
    if prior is not None:
        # Re-registration of a deactivated provider keeps its track record.
        rec = Provider(
            provider_id=env.signer,
            available_space=q["available_space"],
            price_per_mb=q["price_per_mb"],
            reputation_score=prior.reputation_score,
            total_completed=prior.total_completed,
            active=True,
        )
    else:
        rec = Provider(
            provider_id=env.signer,
            available_space=q["available_space"],
            price_per_mb=q["price_per_mb"],
            reputation_score=params.baseline_reputation,
            total_completed=0,
            active=True,
        )
    repo.providers.put(env.signer, rec)

    repo.emit(
        "ProviderRegistered",
        provider=env.signer,
        available_space=rec.available_space,
        price_per_mb=rec.price_per_mb,
        reputation_score=rec.reputation_score,
    )
    return {"applied": "PROVIDER_REGISTER", "provider": env.signer, "result": True}


def _apply_provider_update(state: Json, env: TxEnvelope) -> Json:
    repo = MarketRepo(state)
    payload = _as_dict(env.payload)

    prior = repo.providers.get(env.signer)
    if prior is None:
        raise MarketError.provider_not_found("provider_not_registered", {"provider": env.signer})

    q = _require_positive(payload, "available_space", "price_per_mb")
    active = payload.get("active")
    if not isinstance(active, bool):
        raise MarketError.invalid_payload("active_must_be_bool", {"active": active})

    rec = Provider(
        provider_id=env.signer,
        available_space=q["available_space"],
        price_per_mb=q["price_per_mb"],
        reputation_score=prior.reputation_score,
        total_completed=prior.total_completed,
        active=active,
    )
    repo.providers.put(env.signer, rec)

    repo.emit(
        "ProviderUpdated",
        provider=env.signer,
        available_space=rec.available_space,
        price_per_mb=rec.price_per_mb,
        active=rec.active,
    )
    return {"applied": "PROVIDER_UPDATE", "provider": env.signer, "result": True}


PROVIDER_TX_TYPES = {"PROVIDER_REGISTER", "PROVIDER_UPDATE"}


def apply_provider(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(getattr(env, "tx_type", "") or "").strip()

    if t == "PROVIDER_REGISTER":
        return _apply_provider_register(state, env)
    if t == "PROVIDER_UPDATE":
        return _apply_provider_update(state, env)

    return None
