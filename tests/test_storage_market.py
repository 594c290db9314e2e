from __future__ import annotations

import hashlib

import pytest

from storemarket.ledger.types import ContractStatus
from storemarket.runtime.errors import MarketError
from storemarket.runtime.executor import MarketExecutor
from storemarket.runtime.market import StorageMarket


@pytest.fixture
def market(make_cfg) -> StorageMarket:
    cfg = make_cfg(genesis_balances={"alice": 1_000_000, "custody": 50_000})
    return StorageMarket(MarketExecutor(cfg))


def test_end_to_end_rental_and_arbitration(market: StorageMarket) -> None:
    assert market.register_as_provider(caller="prov", available_space=2000, price_per_mb=1) is True
    listing_id = market.create_storage_listing(
        caller="prov", space_mb=500, price_per_block=5, min_blocks=4320, max_blocks=8640
    )
    assert listing_id == 1
    assert [x.listing_id for x in market.available_listings()] == [1]

    file_hash = hashlib.sha256(b"payload").digest()
    key_hash = hashlib.sha256(b"key").digest()
    contract_id = market.purchase_storage(
        caller="alice",
        listing_id=listing_id,
        blocks=4320,
        file_hash=file_hash,
        file_size_mb=120,
        file_name="vacation.mp4",
        encryption_key_hash=key_hash,
    )
    assert contract_id == 1
    assert market.available_listings() == []

    c = market.get_contract(contract_id)
    assert c is not None and c.status is ContractStatus.ACTIVE
    assert c.end_time - c.start_time == 4320

    meta = market.get_file_metadata(contract_id)
    assert meta is not None and meta.file_hash == file_hash

    assert market.custody_balance() == 50_000 + 108
    assert market.balance_of("prov") == 21492

    assert market.resolve_storage_dispute(caller="owner", contract_id=contract_id, dispute_type="user-favored")
    assert market.balance_of("alice") == 1_000_000 - 21600 + 16200
    prov = market.get_provider("prov")
    assert prov is not None and prov.reputation_score == 72

    rec = market.get_dispute(contract_id)
    assert rec is not None and rec.outcome is ContractStatus.RESOLVED_USER


def test_reference_purchase_and_auto_resolution(market: StorageMarket) -> None:
    market.register_as_provider(caller="prov", available_space=1000, price_per_mb=10)
    listing_id = market.create_storage_listing(
        caller="prov", space_mb=500, price_per_block=5, min_blocks=4320, max_blocks=8640
    )
    contract_id = market.purchase_storage(
        caller="alice",
        listing_id=listing_id,
        blocks=4320,
        file_hash="11" * 32,
        file_size_mb=400,
        file_name="db.dump",
        encryption_key_hash="22" * 32,
    )

    c = market.get_contract(contract_id)
    assert c is not None
    assert (c.total_payment, c.status) == (21600, ContractStatus.ACTIVE)
    assert market.balance_of("prov") == 21492
    prov = market.get_provider("prov")
    assert prov is not None and prov.available_space == 500

    alice_before = market.balance_of("alice")
    market.resolve_storage_dispute(caller="alice", contract_id=contract_id, dispute_type="lost", evidence="e" * 200)
    assert market.balance_of("alice") == alice_before + 10800
    c2 = market.get_contract(contract_id)
    assert c2 is not None and c2.status is ContractStatus.AUTO_RESOLVED


def test_errors_surface_as_market_errors(market: StorageMarket) -> None:
    with pytest.raises(MarketError) as e:
        market.create_storage_listing(caller="nobody", space_mb=1, price_per_block=1, min_blocks=4320, max_blocks=4320)
    assert e.value.code == "provider_not_found"

    with pytest.raises(MarketError) as e:
        market.sweep_custody(caller="alice", amount=1)
    assert e.value.code == "owner_only"

    assert market.sweep_custody(caller="owner", amount=1000, to="treasury") is True
    assert market.balance_of("treasury") == 1000


def test_deactivation_via_update(market: StorageMarket) -> None:
    market.register_as_provider(caller="prov", available_space=10, price_per_mb=1)
    assert market.is_registered("prov")
    market.update_provider_details(caller="prov", available_space=10, price_per_mb=1, active=False)
    assert not market.is_registered("prov")
    assert market.get_provider("prov") is not None
