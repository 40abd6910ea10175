from __future__ import annotations

import json
import logging
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from lprewards.ledger.constants import TOKEN


@pytest.fixture
def client(make_engine, monkeypatch):
    monkeypatch.setenv("LPREWARDS_LOG_REQUESTS", "0")
    from lprewards.api.app import create_app

    env = make_engine(amm_pools=(("LP1", 100), ("LP2", 0)))
    env.lps["LP1"].mint("alice", 100 * TOKEN)
    env.engine.deposit_amm("alice", pool="LP1", amount=100 * TOKEN, now=1000)

    app = create_app(boot_runtime=False)
    app.state.engine = env.engine
    with TestClient(app) as c:
        yield c


def test_create_app_boot_runtime_false_has_no_engine() -> None:
    from lprewards.api.app import create_app

    app = create_app(boot_runtime=False)
    assert app.state.engine is None

    with TestClient(app) as c:
        assert c.get("/v1/health").json()["engine"] is False
        r = c.get("/v1/pools/amm")
        assert r.status_code == 500
        assert r.json()["error"]["code"] == "not_ready"


def test_create_app_boot_runtime_true_uses_build_engine(monkeypatch) -> None:
    from lprewards.api import app as api_app

    monkeypatch.setattr(api_app, "build_engine", lambda: SimpleNamespace(name="stub"))
    app = api_app.create_app(boot_runtime=True)
    assert app.state.engine.name == "stub"


def test_list_pools(client) -> None:
    j = client.get("/v1/pools/amm").json()
    assert j["ok"] is True
    assert j["total_alloc_points"] == 100
    assert [p["address"] for p in j["pools"]] == ["LP1", "LP2"]
    assert j["pools"][0]["whitelisted"] is True


def test_get_pool_and_unknown_pool(client) -> None:
    assert client.get("/v1/pools/amm/LP1").json()["alloc_points"] == 100

    r = client.get("/v1/pools/amm/NOPE")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "unknown_pool"

    r = client.get("/v1/pools/bonds")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "unknown_category"


def test_position_with_pending(client) -> None:
    j = client.get("/v1/pools/amm/LP1/positions/alice", params={"now": 1050}).json()
    assert j["amount"] == 100 * TOKEN
    assert j["pending"] == 100 * TOKEN
    assert j["now"] == 1050

    r = client.get("/v1/pools/amm/NOPE/positions/alice", params={"now": 1050})
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_whitelisted"


def test_vesting_and_emission(client) -> None:
    v = client.get("/v1/vesting", params={"now": 1050}).json()
    assert v["vault"] == "vault"
    assert v["pending"] == 50 * TOKEN

    e = client.get("/v1/emission", params={"at": 1150}).json()
    assert (e["epoch"], e["elapsed_in_epoch"]) == (1, 50)
    assert e["epoch_budget"] == 250 * TOKEN
    assert e["cumulative_emission"] == 625 * TOKEN


def test_before_genesis_maps_to_400(client) -> None:
    r = client.get("/v1/emission", params={"at": 10})
    assert r.status_code == 400
    body = r.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "temporal_violation"
    assert body["error"]["message"] == "before_genesis"


def test_claimed(client) -> None:
    j = client.get("/v1/accounts/alice/claimed").json()
    assert j == {"ok": True, "account": "alice", "claimed": 0}


def test_request_log_line(monkeypatch, caplog) -> None:
    monkeypatch.setenv("LPREWARDS_LOG_REQUESTS", "1")
    # keep caplog's handler on the root logger
    monkeypatch.setattr(logging.getLogger(), "_lprewards_configured", True, raising=False)
    from lprewards.api.app import create_app

    app = create_app(boot_runtime=False)
    with caplog.at_level("INFO", logger="lprewards.http"):
        with TestClient(app) as c:
            r = c.get("/v1/health", headers={"x-request-id": "req-1"})
    assert r.headers["x-request-id"] == "req-1"

    lines = [json.loads(rec.getMessage()) for rec in caplog.records if rec.name == "lprewards.http"]
    assert lines[-1]["event"] == "http_request"
    assert lines[-1]["request_id"] == "req-1"
    assert lines[-1]["path"] == "/v1/health"
    assert lines[-1]["status"] == 200
