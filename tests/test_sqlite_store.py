from __future__ import annotations

import json

import pytest

from lprewards.ledger.constants import TOKEN
from lprewards.runtime.engine_boot import EngineBootConfig, build_engine
from lprewards.runtime.errors import RewardsError
from lprewards.runtime.sqlite_db import SqliteDB, SqliteRewardsStore


def _store(tmp_path) -> SqliteRewardsStore:
    return SqliteRewardsStore(db=SqliteDB(path=str(tmp_path / "rewards.db")))


def test_store_round_trips_snapshot_and_events(tmp_path) -> None:
    store = _store(tmp_path)
    assert not store.exists()

    st = {"state_version": 1, "params": {"owner": "o"}, "big": 10**40}
    store.write(st, [{"event": "a", "x": 1}, {"event": "b"}])
    store.write({**st, "big": 1}, [{"event": "a", "x": 2}])

    assert store.exists()
    assert store.read()["big"] == 1
    assert [e["x"] for e in store.events(event="a")] == [1, 2]
    assert len(store.events()) == 3


def test_engine_writes_snapshot_on_every_commit(tmp_path, make_engine) -> None:
    store = _store(tmp_path)
    env = make_engine(store=store)
    env.lps["LP1"].mint("alice", 10 * TOKEN)
    env.engine.deposit_amm("alice", pool="LP1", amount=10 * TOKEN, now=1010)

    assert store.read() == env.engine.read_state()
    assert [e["event"] for e in store.events(event="deposit")] == ["deposit"]


def test_rejected_operation_does_not_touch_store(tmp_path, make_engine) -> None:
    store = _store(tmp_path)
    env = make_engine(store=store)
    before = store.read()
    with pytest.raises(RewardsError):
        env.engine.add_pool("mallory", category="amm", address="LPX", alloc_points=1, now=1000)
    assert store.read() == before


def test_build_engine_resumes_from_store(tmp_path, monkeypatch) -> None:
    cfg_path = tmp_path / "rewards.json"
    cfg_path.write_text(json.dumps({"amm_pools": [["LP1", 10]]}), encoding="utf-8")
    boot = EngineBootConfig(config_path=str(cfg_path), db_path=str(tmp_path / "boot.db"))

    first = build_engine(boot, now=5000)
    assert first.read_state()["params"]["genesis_ts"] == 5000
    first.add_pool("owner", category="minter", address="COLL1", alloc_points=3, now=5100)

    second = build_engine(boot, now=9999)
    assert second.read_state() == first.read_state()
    assert second.is_whitelisted("minter", "COLL1")


def test_schema_version_mismatch_refuses_to_open(tmp_path) -> None:
    db = SqliteDB(path=str(tmp_path / "old.db"))
    SqliteRewardsStore(db=db)
    with db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")

    with pytest.raises(RuntimeError):
        SqliteRewardsStore(db=db)
