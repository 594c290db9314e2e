from __future__ import annotations

import json
import logging

import pytest

from storemarket.runtime.errors import ExecutorError, MarketError
from storemarket.runtime.executor import MarketExecutor
from storemarket.runtime.ledger_store import MemoryLedgerStore
from storemarket.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from storemarket.runtime.tx_admission_types import TxEnvelope


def _register(ex: MarketExecutor, who: str = "prov") -> dict:
    return ex.apply(TxEnvelope("PROVIDER_REGISTER", who, {"available_space": 2000, "price_per_mb": 1}))


class _FailingStore(MemoryLedgerStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def commit(self, st: dict, events) -> None:
        if self.fail:
            raise OSError("disk full")
        super().commit(st, events)


def test_genesis_writes_params_and_balances(market_cfg) -> None:
    ex = MarketExecutor(market_cfg)
    st = ex.read_state()
    assert st["market_id"] == "storemarket-test"
    assert st["params"]["owner_id"] == "owner"
    assert st["params"]["custody_id"] == "custody"
    assert st["params"]["fee_rate"] == 5
    assert st["params"]["fee_denominator"] == 1000
    assert st["balances"] == {"alice": 1_000_000, "bob": 50_000}
    assert ex.height == 0


def test_apply_advances_height_and_persists(market_cfg) -> None:
    store = MemoryLedgerStore()
    ex = MarketExecutor(market_cfg, store=store)
    writes = store.writes

    meta = _register(ex)
    assert meta["result"] is True
    assert ex.height == 1
    assert store.writes == writes + 1
    assert store.read()["providers"]["prov"]["active"] is True


def test_rejected_tx_leaves_state_and_store_untouched(market_cfg) -> None:
    store = MemoryLedgerStore()
    ex = MarketExecutor(market_cfg, store=store)
    _register(ex)
    before = ex.read_state()
    writes = store.writes

    with pytest.raises(MarketError) as e:
        _register(ex)
    assert e.value.code == "already_registered"
    assert ex.read_state() == before
    assert store.writes == writes


def test_admission_rejection_raises_market_error(market_cfg) -> None:
    ex = MarketExecutor(market_cfg)
    with pytest.raises(MarketError) as e:
        ex.apply({"tx_type": "LISTING_CREATE", "signer": "prov", "payload": {"space_mb": "big"}})
    assert e.value.code == "invalid_payload"
    assert ex.height == 0


def test_submit_tx_returns_plain_dicts(market_cfg) -> None:
    ex = MarketExecutor(market_cfg)
    env = {"tx_type": "PROVIDER_REGISTER", "signer": "prov", "payload": {"available_space": 10, "price_per_mb": 1}}

    ok = ex.submit_tx(env)
    assert ok["ok"] is True
    assert ok["applied"] == "PROVIDER_REGISTER"

    dup = ex.submit_tx(env)
    assert dup == {
        "ok": False,
        "error": "already_registered",
        "reason": "provider_already_active",
        "details": {"provider": "prov"},
    }

    assert ex.submit_tx("nope")["ok"] is False  # type: ignore[arg-type]


def test_failed_persist_leaves_memory_unchanged(market_cfg) -> None:
    store = _FailingStore()
    ex = MarketExecutor(market_cfg, store=store)
    before = ex.read_state()

    store.fail = True
    with pytest.raises(OSError):
        _register(ex)
    assert ex.read_state() == before
    assert ex.events() == []

    store.fail = False
    _register(ex)
    assert ex.view().is_registered("prov")


def test_clock_drives_height_and_must_not_regress(market_cfg) -> None:
    ticks = iter([100, 100, 99])
    ex = MarketExecutor(market_cfg, clock=lambda: next(ticks))

    _register(ex, "p1")
    assert ex.height == 100
    _register(ex, "p2")
    assert ex.height == 100

    with pytest.raises(ExecutorError):
        _register(ex, "p3")
    assert not ex.view().is_registered("p3")


def test_sqlite_store_survives_restart(make_cfg, tmp_path) -> None:
    db_path = str(tmp_path / "market.db")
    cfg = make_cfg(db_path=db_path)

    ex1 = MarketExecutor(cfg)
    _register(ex1)
    h = ex1.height

    ex2 = MarketExecutor(cfg)
    assert ex2.height == h
    assert ex2.view().is_registered("prov")
    # Genesis balances are only credited once.
    assert ex2.view().balance_of("alice") == 1_000_000


def test_sqlite_restart_with_other_market_id_fails_closed(make_cfg, tmp_path) -> None:
    db_path = str(tmp_path / "market.db")
    MarketExecutor(make_cfg(db_path=db_path))

    with pytest.raises(ExecutorError):
        MarketExecutor(make_cfg(db_path=db_path, market_id="another-market"))


def test_sqlite_store_update_round_trip(tmp_path) -> None:
    store = SqliteLedgerStore(db=SqliteDB(path=str(tmp_path / "s.db")))
    assert not store.exists()
    store.write({"height": 3, "market_id": "m", "balances": {"a": 1}})
    store.update(lambda st: st["balances"].update({"b": 2}))
    assert store.read()["balances"] == {"a": 1, "b": 2}


def test_events_are_logged(market_cfg, caplog) -> None:
    caplog.set_level(logging.INFO, logger="storemarket.executor")
    ex = MarketExecutor(market_cfg)
    _register(ex)

    msgs = [r.getMessage() for r in caplog.records if r.name == "storemarket.executor"]
    assert any('"event":"ProviderRegistered"' in m for m in msgs)
    assert any('"event":"tx_applied"' in m for m in msgs)


def _update(ex: MarketExecutor, who: str = "prov") -> dict:
    return ex.apply(
        TxEnvelope("PROVIDER_UPDATE", who, {"available_space": 2000, "price_per_mb": 1, "active": True})
    )


def test_snapshot_size_does_not_grow_with_event_history(market_cfg) -> None:
    store = MemoryLedgerStore()
    ex = MarketExecutor(market_cfg, store=store)
    _register(ex)
    for _ in range(10):
        _update(ex)
    size_early = len(json.dumps(store.read(), sort_keys=True))

    for _ in range(20):
        _update(ex)
    snap = store.read()
    assert snap["events"] == []
    assert ex.read_state()["events"] == []
    assert len(json.dumps(snap, sort_keys=True)) == size_early

    evs = ex.events(limit=1000)
    assert len(evs) == 31
    assert evs[0]["event"] == "ProviderRegistered"
    assert [e["event"] for e in ex.events(since=30)] == ["ProviderUpdated"]
    assert len(ex.events(since=5, limit=3)) == 3


def test_sqlite_event_log_survives_restart(make_cfg, tmp_path) -> None:
    cfg = make_cfg(db_path=str(tmp_path / "market.db"))
    ex1 = MarketExecutor(cfg)
    _register(ex1)
    _update(ex1)
    assert ex1.read_state()["events"] == []

    ex2 = MarketExecutor(cfg)
    assert [e["event"] for e in ex2.events()] == ["ProviderRegistered", "ProviderUpdated"]
    assert [e["height"] for e in ex2.events(since=1)] == [2]
    _update(ex2)
    assert len(ex2.events()) == 3


def test_custody_account_is_rejected_by_executor(market_cfg) -> None:
    ex = MarketExecutor(market_cfg)
    out = ex.submit_tx(
        {"tx_type": "PROVIDER_REGISTER", "signer": "custody", "payload": {"available_space": 10, "price_per_mb": 1}}
    )
    assert (out["ok"], out["error"], out["reason"]) == (False, "not_authorized", "custody_account_cannot_sign")
    assert ex.height == 0
