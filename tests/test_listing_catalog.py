from __future__ import annotations

import pytest

from storemarket.ledger.params import MarketParams
from storemarket.ledger.repo import MarketRepo
from storemarket.runtime.domain_apply import MarketError, apply_tx_atomic
from storemarket.runtime.tx_admission_types import TxEnvelope


def _state() -> dict:
    st = {"params": MarketParams(owner_id="owner", custody_id="custody").to_json(), "balances": {}}
    apply_tx_atomic(
        st, TxEnvelope("PROVIDER_REGISTER", "prov", {"available_space": 2000, "price_per_mb": 1})
    )
    return st


def _listing(st: dict, signer: str = "prov", **over) -> dict:
    payload = {"space_mb": 500, "price_per_block": 5, "min_blocks": 4320, "max_blocks": 10000}
    payload.update(over)
    return apply_tx_atomic(st, TxEnvelope("LISTING_CREATE", signer, payload))


def test_create_listing_returns_sequential_ids() -> None:
    st = _state()
    assert _listing(st)["result"] == 1
    assert _listing(st)["result"] == 2

    rec = MarketRepo(st).listings.get(1)
    assert rec is not None
    assert rec.provider == "prov"
    assert rec.available is True
    assert (rec.space_mb, rec.price_per_block, rec.min_blocks, rec.max_blocks) == (500, 5, 4320, 10000)


def test_unregistered_caller_cannot_list() -> None:
    st = _state()
    with pytest.raises(MarketError) as e:
        _listing(st, signer="stranger")
    assert e.value.code == "provider_not_found"


def test_inactive_provider_cannot_list() -> None:
    st = _state()
    apply_tx_atomic(
        st,
        TxEnvelope("PROVIDER_UPDATE", "prov", {"available_space": 2000, "price_per_mb": 1, "active": False}),
    )
    with pytest.raises(MarketError) as e:
        _listing(st)
    assert e.value.code == "provider_not_found"


@pytest.mark.parametrize(
    "over",
    [
        {"space_mb": 2001},
        {"space_mb": 0},
        {"price_per_block": 0},
        {"min_blocks": 4319, "max_blocks": 5000},
        {"min_blocks": 5000, "max_blocks": 4999},
    ],
)
def test_listing_bounds_are_enforced(over: dict) -> None:
    st = _state()
    with pytest.raises(MarketError) as e:
        _listing(st, **over)
    assert e.value.code == "invalid_amount"
    assert MarketRepo(st).peek_counter("next_listing_id") == 1


def test_min_blocks_at_rental_floor_is_accepted() -> None:
    st = _state()
    meta = _listing(st, min_blocks=4320, max_blocks=4320)
    assert meta["listing_id"] == 1


def test_capacity_is_not_reserved_until_purchase() -> None:
    st = _state()
    _listing(st, space_mb=1500)
    _listing(st, space_mb=1500)

    rec = MarketRepo(st).providers.get("prov")
    assert rec is not None
    assert rec.available_space == 2000
    assert len(MarketRepo(st).listings) == 2
