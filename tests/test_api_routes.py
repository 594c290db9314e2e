from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from storemarket.api import app as app_mod
from storemarket.api.app import create_app
from storemarket.runtime.executor import MarketExecutor

PURCHASE = {
    "listing_id": 1,
    "blocks": 4320,
    "file_hash": "ab" * 32,
    "file_size_mb": 100,
    "file_name": "notes.txt",
    "encryption_key_hash": "cd" * 32,
}


def _h(caller: str) -> dict:
    return {"X-Market-Caller": caller}


@pytest.fixture
def client(market_cfg, monkeypatch) -> TestClient:
    monkeypatch.delenv("STOREMARKET_CORS_ORIGINS", raising=False)
    monkeypatch.delenv("STOREMARKET_MAX_REQUEST_BYTES", raising=False)
    monkeypatch.delenv("STOREMARKET_SIZE_LIMIT_DISABLE", raising=False)
    app = create_app(boot_runtime=False)
    app.state.executor = MarketExecutor(market_cfg)
    return TestClient(app)


def _seed_listing(c: TestClient) -> None:
    r = c.post("/v1/providers/register", json={"available_space": 2000, "price_per_mb": 1}, headers=_h("prov"))
    assert r.status_code == 200
    r = c.post(
        "/v1/listings",
        json={"space_mb": 500, "price_per_block": 5, "min_blocks": 4320, "max_blocks": 10000},
        headers=_h("prov"),
    )
    assert r.status_code == 200
    assert r.json()["listing_id"] == 1


def test_health(client: TestClient) -> None:
    j = client.get("/v1/health").json()
    assert j["ok"] is True
    assert j["market_id"] == "storemarket-test"


def test_missing_caller_header_is_401(client: TestClient) -> None:
    r = client.post("/v1/providers/register", json={"available_space": 1, "price_per_mb": 1})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "missing_caller"


def test_register_conflict_maps_to_409(client: TestClient) -> None:
    body = {"available_space": 2000, "price_per_mb": 1}
    assert client.post("/v1/providers/register", json=body, headers=_h("prov")).json()["ok"] is True

    r = client.post("/v1/providers/register", json=body, headers=_h("prov"))
    assert r.status_code == 409
    j = r.json()
    assert j["ok"] is False
    assert j["error"]["code"] == "already_registered"

    p = client.get("/v1/providers/prov").json()
    assert p["provider"]["reputation_score"] == 80
    assert p["registered"] is True


def test_invalid_amount_maps_to_400(client: TestClient) -> None:
    r = client.post("/v1/providers/register", json={"available_space": 0, "price_per_mb": 1}, headers=_h("prov"))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid_amount"


def test_purchase_flow(client: TestClient) -> None:
    _seed_listing(client)

    r = client.post("/v1/storage/purchase", json=PURCHASE, headers=_h("alice"))
    assert r.status_code == 200
    j = r.json()
    assert (j["contract_id"], j["total_cost"], j["platform_fee"], j["provider_payment"]) == (1, 21600, 108, 21492)

    assert client.get("/v1/listings").json()["items"] == []
    assert client.get("/v1/listings/1").json()["listing"]["available"] is False
    assert client.get("/v1/contracts/1").json()["contract"]["status"] == "active"
    assert client.get("/v1/contracts/1/files/1").json()["file"]["file_name"] == "notes.txt"
    assert client.get("/v1/custody").json()["balance"] == 108
    assert client.get("/v1/balances/prov").json()["balance"] == 21492
    assert [c["contract_id"] for c in client.get("/v1/users/alice/contracts").json()["items"]] == [1]

    again = client.post("/v1/storage/purchase", json=PURCHASE, headers=_h("alice"))
    assert again.status_code == 404
    assert again.json()["error"]["code"] == "listing_not_found"


def test_insufficient_funds_maps_to_402(client: TestClient) -> None:
    _seed_listing(client)
    r = client.post("/v1/storage/purchase", json=PURCHASE, headers=_h("carol"))
    assert r.status_code == 402
    assert r.json()["error"]["code"] == "insufficient_funds"
    assert client.get("/v1/listings/1").json()["listing"]["available"] is True


def test_dispute_routes(client: TestClient) -> None:
    _seed_listing(client)
    client.post("/v1/storage/purchase", json=PURCHASE, headers=_h("alice"))

    r = client.post("/v1/contracts/1/dispute", json={"dispute_type": "x"}, headers=_h("mallory"))
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "not_authorized"

    r = client.post("/v1/contracts/1/dispute", json={"dispute_type": "slow", "evidence": "late"}, headers=_h("alice"))
    assert r.status_code == 200
    assert r.json()["status"] == "dispute_by_user"

    d = client.get("/v1/contracts/1/dispute").json()["dispute"]
    assert (d["filed_by"], d["outcome"], d["evidence"]) == ("alice", "dispute_by_user", "late")

    assert client.post("/v1/contracts/9/dispute", json={}, headers=_h("owner")).status_code == 404


def test_sweep_is_owner_only(client: TestClient) -> None:
    _seed_listing(client)
    client.post("/v1/storage/purchase", json=PURCHASE, headers=_h("alice"))

    r = client.post("/v1/custody/sweep", json={"amount": 50}, headers=_h("alice"))
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "owner_only"

    r = client.post("/v1/custody/sweep", json={"amount": 50}, headers=_h("owner"))
    assert r.status_code == 200
    assert client.get("/v1/balances/owner").json()["balance"] == 50

    events = client.get("/v1/events", params={"limit": "100"}).json()["items"]
    assert [e["event"] for e in events] == ["ProviderRegistered", "ListingCreated", "StoragePurchased", "CustodySwept"]


def test_request_size_limit_returns_413(market_cfg, monkeypatch) -> None:
    monkeypatch.setenv("STOREMARKET_MAX_REQUEST_BYTES", "128")
    monkeypatch.delenv("STOREMARKET_SIZE_LIMIT_DISABLE", raising=False)

    app = create_app(boot_runtime=False)
    app.state.executor = MarketExecutor(market_cfg)
    c = TestClient(app)

    payload = {"available_space": 1, "price_per_mb": 1, "pad": "x" * 500}
    r = c.post("/v1/providers/register", json=payload, headers=_h("prov"))
    assert r.status_code == 413
    assert r.json()["error"]["code"] == "request_too_large"


def test_boot_runtime_uses_build_executor(market_cfg, monkeypatch) -> None:
    monkeypatch.setattr(app_mod, "build_executor", lambda: MarketExecutor(market_cfg))
    app = create_app(boot_runtime=True)
    assert isinstance(app.state.executor, MarketExecutor)
