# src/storemarket/runtime/apply/escrow.py
from __future__ import annotations

"""storemarket.runtime.apply.escrow

Escrowed purchase settlement.

Purchase flow (one atomic operation; the executor discards the snapshot if
any step raises):

  1. user pays total_cost into custody
  2. custody pays provider_payment to the provider; the fee stays in custody
  3. contract + file metadata (file id 1) are written
  4. the provider record is re-read and its available_space decremented
  5. the listing is marked unavailable

The provider record MUST be read after the transfers. A value captured
earlier can be stale and writing it back would clobber concurrent changes.
"""

from dataclasses import replace
from typing import Any, Dict, Optional

from storemarket.ledger.balances import BalanceLedger
from storemarket.ledger.constants import PURCHASE_FILE_ID
from storemarket.ledger.params import MarketParams
from storemarket.ledger.repo import MarketRepo, file_key
from storemarket.ledger.types import HASH_BYTES, ContractStatus, FileMetadata, Listing, StorageContract
from storemarket.runtime.errors import MarketError
from storemarket.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _as_str(x: Any) -> str:
    return x if isinstance(x, str) else ""


def _as_int(x: Any, default: int = 0) -> int:
    try:
        if isinstance(x, bool):
            return default
        return int(x)
    except Exception:
        return default


def _hash_field(payload: Json, key: str) -> bytes:
    raw = _as_str(payload.get(key)).strip().lower()
    try:
        b = bytes.fromhex(raw)
    except ValueError:
        raise MarketError.invalid_payload(f"{key}_must_be_hex", {key: payload.get(key)}) from None
    if len(b) != HASH_BYTES:
        raise MarketError.invalid_payload(f"{key}_must_be_{HASH_BYTES}_bytes", {key: payload.get(key)})
    return b


def settlement_amounts(params: MarketParams, price_per_block: int, blocks: int) -> Dict[str, int]:
    total_cost = int(price_per_block) * int(blocks)
    platform_fee = params.platform_fee(total_cost)
    return {
        "total_cost": total_cost,
        "platform_fee": platform_fee,
        "provider_payment": total_cost - platform_fee,
    }


def _open_listing(repo: MarketRepo, listing_id: int) -> Listing:
    listing = repo.listings.get(listing_id)
    if listing is None:
        raise MarketError.listing_not_found("listing_not_found", {"listing_id": listing_id})
    if not listing.available:
        raise MarketError.listing_not_found("listing_not_available", {"listing_id": listing_id})
    return listing


def _apply_storage_purchase(state: Json, env: TxEnvelope) -> Json:
    repo = MarketRepo(state)
    params = MarketParams.from_state(state)
    ledger = BalanceLedger(state)
    payload = _as_dict(env.payload)

    listing_id = _as_int(payload.get("listing_id"), 0)
    blocks = _as_int(payload.get("blocks"), 0)
    file_size_mb = _as_int(payload.get("file_size_mb"), 0)

    # Ordered preconditions; first failure wins.
    listing = _open_listing(repo, listing_id)
    if blocks < listing.min_blocks or blocks > listing.max_blocks:
        raise MarketError.invalid_amount(
            "blocks_out_of_range",
            {"blocks": blocks, "min_blocks": listing.min_blocks, "max_blocks": listing.max_blocks},
        )
    if file_size_mb > listing.space_mb:
        raise MarketError.invalid_amount(
            "file_exceeds_listing_space", {"file_size_mb": file_size_mb, "space_mb": listing.space_mb}
        )

    if file_size_mb <= 0:
        raise MarketError.invalid_amount("file_size_must_be_positive", {"file_size_mb": file_size_mb})

    provider = repo.providers.get(listing.provider)
    if provider is None or not provider.active:
        raise MarketError.provider_not_found("listing_provider_inactive", {"provider": listing.provider})

    file_hash = _hash_field(payload, "file_hash")
    encryption_key_hash = _hash_field(payload, "encryption_key_hash")
    file_name = _as_str(payload.get("file_name"))
    if not file_name or len(file_name) > params.max_file_name_len:
        raise MarketError.invalid_payload(
            "file_name_length", {"len": len(file_name), "max_len": params.max_file_name_len}
        )

    amounts = settlement_amounts(params, listing.price_per_block, blocks)
    user = env.signer

    ledger.transfer(amounts["total_cost"], user, params.custody_id)
    ledger.transfer(amounts["provider_payment"], params.custody_id, listing.provider)

    now = repo.height
    contract_id = repo.allocate_id("next_contract_id")
    contract = StorageContract(
        contract_id=contract_id,
        provider=listing.provider,
        user=user,
        listing_id=listing.listing_id,
        space_mb=listing.space_mb,
        price_per_block=listing.price_per_block,
        start_time=now,
        end_time=now + blocks,
        total_payment=amounts["total_cost"],
        status=ContractStatus.ACTIVE,
    )
    repo.contracts.put(contract_id, contract)

    repo.files.put(
        file_key(contract_id, PURCHASE_FILE_ID),
        FileMetadata(
            contract_id=contract_id,
            file_id=PURCHASE_FILE_ID,
            file_hash=file_hash,
            file_size_mb=file_size_mb,
            file_name=file_name,
            encryption_key_hash=encryption_key_hash,
        ),
    )

    # Fresh read: never reuse `provider` from above for the write.
    fresh = repo.providers.get(listing.provider)
    if fresh is None:
        raise MarketError.provider_not_found("listing_provider_missing", {"provider": listing.provider})
    if fresh.available_space < listing.space_mb:
        raise MarketError.invalid_amount(
            "provider_capacity_exhausted",
            {"available_space": fresh.available_space, "space_mb": listing.space_mb},
        )
    repo.providers.put(listing.provider, replace(fresh, available_space=fresh.available_space - listing.space_mb))

    repo.listings.put(listing.listing_id, replace(listing, available=False))

    repo.emit(
        "StoragePurchased",
        contract_id=contract_id,
        listing_id=listing.listing_id,
        provider=listing.provider,
        user=user,
        blocks=blocks,
        total_cost=amounts["total_cost"],
        platform_fee=amounts["platform_fee"],
        provider_payment=amounts["provider_payment"],
    )
    return {"applied": "STORAGE_PURCHASE", "contract_id": contract_id, "result": contract_id, **amounts}


def _apply_custody_sweep(state: Json, env: TxEnvelope) -> Json:
    params = MarketParams.from_state(state)
    repo = MarketRepo(state)
    ledger = BalanceLedger(state)
    payload = _as_dict(env.payload)

    if env.signer != params.owner_id:
        raise MarketError.owner_only("custody_sweep_owner_only", {"signer": env.signer})

    amount = _as_int(payload.get("amount"), 0)
    if amount <= 0:
        raise MarketError.invalid_amount("amount_must_be_positive", {"amount": payload.get("amount")})

    to = _as_str(payload.get("to")).strip() or params.owner_id
    if to == params.custody_id:
        raise MarketError.invalid_payload("sweep_target_is_custody", {"to": to})

    ledger.transfer(amount, params.custody_id, to)

    repo.emit("CustodySwept", amount=amount, to=to)
    return {"applied": "CUSTODY_SWEEP", "amount": amount, "to": to, "result": True}


ESCROW_TX_TYPES = {"STORAGE_PURCHASE", "CUSTODY_SWEEP"}


def apply_escrow(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(getattr(env, "tx_type", "") or "").strip()

    if t == "STORAGE_PURCHASE":
        return _apply_storage_purchase(state, env)
    if t == "CUSTODY_SWEEP":
        return _apply_custody_sweep(state, env)

    return None
