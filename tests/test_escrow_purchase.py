from __future__ import annotations

import copy

import pytest

from storemarket.ledger.balances import BalanceLedger
from storemarket.ledger.params import MarketParams
from storemarket.ledger.repo import MarketRepo
from storemarket.ledger.types import ContractStatus
from storemarket.runtime.apply.escrow import settlement_amounts
from storemarket.runtime.domain_apply import MarketError, apply_tx_atomic
from storemarket.runtime.tx_admission_types import TxEnvelope

FILE_HASH = "ab" * 32
KEY_HASH = "cd" * 32


def _market() -> dict:
    st = {
        "params": MarketParams(owner_id="owner", custody_id="custody").to_json(),
        "balances": {"alice": 1_000_000, "carol": 100},
        "height": 10,
    }
    apply_tx_atomic(st, TxEnvelope("PROVIDER_REGISTER", "prov", {"available_space": 2000, "price_per_mb": 1}))
    apply_tx_atomic(
        st,
        TxEnvelope(
            "LISTING_CREATE",
            "prov",
            {"space_mb": 500, "price_per_block": 5, "min_blocks": 4320, "max_blocks": 10000},
        ),
    )
    return st


def _purchase(st: dict, buyer: str = "alice", **over) -> dict:
    payload = {
        "listing_id": 1,
        "blocks": 4320,
        "file_hash": FILE_HASH,
        "file_size_mb": 100,
        "file_name": "backup.tar",
        "encryption_key_hash": KEY_HASH,
    }
    payload.update(over)
    return apply_tx_atomic(st, TxEnvelope("STORAGE_PURCHASE", buyer, payload))


def test_settlement_amounts_floor_the_fee() -> None:
    params = MarketParams(owner_id="o", custody_id="c")
    assert settlement_amounts(params, 5, 4320) == {
        "total_cost": 21600,
        "platform_fee": 108,
        "provider_payment": 21492,
    }
    # 199 * 5 / 1000 = 0.995 -> 0
    assert settlement_amounts(params, 1, 199)["platform_fee"] == 0


def test_purchase_settles_payment_and_opens_contract() -> None:
    st = _market()
    meta = _purchase(st)
    assert meta["result"] == 1
    assert (meta["total_cost"], meta["platform_fee"], meta["provider_payment"]) == (21600, 108, 21492)

    ledger = BalanceLedger(st)
    assert ledger.balance_of("alice") == 1_000_000 - 21600
    assert ledger.balance_of("prov") == 21492
    assert ledger.balance_of("custody") == 108

    repo = MarketRepo(st)
    c = repo.contracts.get(1)
    assert c is not None
    assert c.status is ContractStatus.ACTIVE
    assert (c.provider, c.user, c.listing_id, c.space_mb) == ("prov", "alice", 1, 500)
    assert (c.start_time, c.end_time, c.total_payment) == (10, 10 + 4320, 21600)

    f = repo.files.get("1:1")
    assert f is not None
    assert f.file_hash == bytes.fromhex(FILE_HASH)
    assert f.encryption_key_hash == bytes.fromhex(KEY_HASH)
    assert (f.file_size_mb, f.file_name) == (100, "backup.tar")

    prov = repo.providers.get("prov")
    assert prov is not None
    assert prov.available_space == 1500

    listing = repo.listings.get(1)
    assert listing is not None
    assert listing.available is False

    assert st["events"][-1]["event"] == "StoragePurchased"


def test_listing_is_single_use() -> None:
    st = _market()
    _purchase(st)
    with pytest.raises(MarketError) as e:
        _purchase(st)
    assert e.value.code == "listing_not_found"


def test_unknown_listing_fails_before_range_checks() -> None:
    st = _market()
    with pytest.raises(MarketError) as e:
        _purchase(st, listing_id=99, blocks=1, file_size_mb=10_000)
    assert e.value.code == "listing_not_found"


@pytest.mark.parametrize(
    "over",
    [
        {"blocks": 4319},
        {"blocks": 10001},
        {"file_size_mb": 501},
        {"file_size_mb": 0},
    ],
)
def test_purchase_amount_checks(over: dict) -> None:
    st = _market()
    before = copy.deepcopy(st)
    with pytest.raises(MarketError) as e:
        _purchase(st, **over)
    assert e.value.code == "invalid_amount"
    assert st == before


def test_insufficient_funds_rolls_back_everything() -> None:
    st = _market()
    before = copy.deepcopy(st)

    with pytest.raises(MarketError) as e:
        _purchase(st, buyer="carol")
    assert e.value.code == "insufficient_funds"
    assert e.value.details["account"] == "carol"
    assert st == before


def test_purchase_from_deactivated_provider_is_rejected() -> None:
    st = _market()
    apply_tx_atomic(
        st,
        TxEnvelope("PROVIDER_UPDATE", "prov", {"available_space": 2000, "price_per_mb": 1, "active": False}),
    )
    with pytest.raises(MarketError) as e:
        _purchase(st)
    assert e.value.code == "provider_not_found"


def test_purchase_never_drives_available_space_negative() -> None:
    st = _market()
    apply_tx_atomic(
        st,
        TxEnvelope("PROVIDER_UPDATE", "prov", {"available_space": 100, "price_per_mb": 1, "active": True}),
    )
    before = copy.deepcopy(st)
    with pytest.raises(MarketError) as e:
        _purchase(st)
    assert e.value.code == "invalid_amount"
    assert e.value.reason == "provider_capacity_exhausted"
    assert st == before


@pytest.mark.parametrize(
    "over,reason",
    [
        ({"file_hash": "zz" * 32}, "file_hash_must_be_hex"),
        ({"encryption_key_hash": "ab" * 31}, "encryption_key_hash_must_be_32_bytes"),
        ({"file_name": ""}, "file_name_length"),
        ({"file_name": "x" * 256}, "file_name_length"),
    ],
)
def test_purchase_rejects_malformed_file_metadata(over: dict, reason: str) -> None:
    st = _market()
    with pytest.raises(MarketError) as e:
        _purchase(st, **over)
    assert e.value.code == "invalid_payload"
    assert e.value.reason == reason


def test_custody_account_cannot_buy_storage() -> None:
    st = _market()
    BalanceLedger(st).credit("custody", 30_000)
    before = copy.deepcopy(st)

    with pytest.raises(MarketError) as e:
        _purchase(st, buyer="custody")
    assert e.value.code == "not_authorized"
    assert e.value.reason == "custody_account_cannot_sign"
    assert st == before
    assert BalanceLedger(st).balance_of("custody") == 30_000


@pytest.mark.parametrize(
    "tx_type,payload",
    [
        ("PROVIDER_REGISTER", {"available_space": 100, "price_per_mb": 1}),
        ("LISTING_CREATE", {"space_mb": 10, "price_per_block": 1, "min_blocks": 4320, "max_blocks": 4320}),
        ("DISPUTE_RESOLVE", {"contract_id": 1, "dispute_type": "lost"}),
        ("CUSTODY_SWEEP", {"amount": 1}),
    ],
)
def test_custody_account_cannot_sign_any_market_tx(tx_type: str, payload: dict) -> None:
    st = _market()
    before = copy.deepcopy(st)
    with pytest.raises(MarketError) as e:
        apply_tx_atomic(st, TxEnvelope(tx_type, "custody", payload))
    assert e.value.code == "not_authorized"
    assert st == before
