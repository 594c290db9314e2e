# src/storemarket/runtime/apply/listing.py
from __future__ import annotations

"""Listing catalog apply semantics.

Capacity is checked against the provider's current available_space but is
not reserved until purchase, so a provider may have several open listings
whose combined space exceeds what it has left.
"""

from typing import Any, Dict, Optional

from storemarket.ledger.params import MarketParams
from storemarket.ledger.repo import MarketRepo
from storemarket.ledger.types import Listing
from storemarket.runtime.apply.provider import is_registered
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


def _apply_listing_create(state: Json, env: TxEnvelope) -> Json:
    repo = MarketRepo(state)
    params = MarketParams.from_state(state)
    payload = _as_dict(env.payload)

    provider = repo.providers.get(env.signer)
    if provider is None or not is_registered(repo, env.signer):
        raise MarketError.provider_not_found("provider_not_registered", {"provider": env.signer})

    space_mb = _as_int(payload.get("space_mb"), 0)
    price_per_block = _as_int(payload.get("price_per_block"), 0)
    min_blocks = _as_int(payload.get("min_blocks"), 0)
    max_blocks = _as_int(payload.get("max_blocks"), 0)

    if space_mb <= 0 or space_mb > provider.available_space:
        raise MarketError.invalid_amount(
            "space_exceeds_available",
            {"space_mb": space_mb, "available_space": provider.available_space},
        )
    if price_per_block <= 0:
        raise MarketError.invalid_amount("price_per_block_must_be_positive", {"price_per_block": price_per_block})
    if min_blocks < params.min_rental_blocks:
        raise MarketError.invalid_amount(
            "min_blocks_below_rental_floor",
            {"min_blocks": min_blocks, "min_rental_blocks": params.min_rental_blocks},
        )
    if max_blocks < min_blocks:
        raise MarketError.invalid_amount("max_blocks_below_min_blocks", {"min_blocks": min_blocks, "max_blocks": max_blocks})

    listing_id = repo.allocate_id("next_listing_id")
    repo.listings.put(
        listing_id,
        Listing(
            listing_id=listing_id,
            provider=env.signer,
            space_mb=space_mb,
            price_per_block=price_per_block,
            min_blocks=min_blocks,
            max_blocks=max_blocks,
            available=True,
        ),
    )

    repo.emit(
        "ListingCreated",
        listing_id=listing_id,
        provider=env.signer,
        space_mb=space_mb,
        price_per_block=price_per_block,
        min_blocks=min_blocks,
        max_blocks=max_blocks,
    )
    return {"applied": "LISTING_CREATE", "listing_id": listing_id, "result": listing_id}


LISTING_TX_TYPES = {"LISTING_CREATE"}


def apply_listing(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(getattr(env, "tx_type", "") or "").strip()

    if t == "LISTING_CREATE":
        return _apply_listing_create(state, env)

    return None
