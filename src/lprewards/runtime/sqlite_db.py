# src/lprewards/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

Json = Dict[str, Any]

_SYNC_MODES = ("OFF", "NORMAL", "FULL", "EXTRA")

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);",
    """
    CREATE TABLE IF NOT EXISTS engine_state (
      id INTEGER PRIMARY KEY CHECK (id = 1),
      state_json TEXT NOT NULL,
      updated_ts_ms INTEGER NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
      seq INTEGER PRIMARY KEY AUTOINCREMENT,
      event TEXT NOT NULL,
      event_json TEXT NOT NULL,
      created_ts_ms INTEGER NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_event ON events(event);",
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def canon_json(obj: Any) -> str:
    """Sorted, compact JSON. Non-JSON values raise instead of being stringified."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    raw = str(os.environ.get(name) or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


@dataclass(frozen=True)
class SqliteSettings:
    """Connection knobs, read from LPREWARDS_SQLITE_* env vars."""

    connect_timeout_ms: int = 30_000
    busy_timeout_ms: int = 30_000
    write_deadline_ms: int = 30_000
    synchronous: str = "FULL"

    @classmethod
    def from_env(cls) -> "SqliteSettings":
        connect_ms = max(0, _env_int("LPREWARDS_SQLITE_CONNECT_TIMEOUT_MS", 30_000))
        sync = (os.environ.get("LPREWARDS_SQLITE_SYNCHRONOUS") or "FULL").strip().upper()
        return cls(
            connect_timeout_ms=connect_ms,
            busy_timeout_ms=max(0, _env_int("LPREWARDS_SQLITE_BUSY_TIMEOUT_MS", connect_ms)),
            # 250ms floor
            write_deadline_ms=max(250, _env_int("LPREWARDS_SQLITE_WRITE_DEADLINE_MS", 30_000)),
            synchronous=sync if sync in _SYNC_MODES else "FULL",
        )


def _locked(e: sqlite3.OperationalError) -> bool:
    msg = str(e).lower()
    return "database is locked" in msg or "database is busy" in msg


class SqliteDB:
    """One SQLite file holding the engine snapshot and its event log.

    Connections are opened per use and never shared between threads.
    SQLite admits a single writer; write_tx() retries BEGIN IMMEDIATE with
    jittered exponential backoff until the write deadline.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str, settings: Optional[SqliteSettings] = None) -> None:
        self.path = str(path)
        self.settings = settings or SqliteSettings.from_env()

    def _open(self) -> sqlite3.Connection:
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        s = self.settings
        con = sqlite3.connect(
            self.path,
            timeout=s.connect_timeout_ms / 1000.0,
            isolation_level=None,  # explicit BEGIN/COMMIT
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row
        for pragma in (
            "journal_mode=WAL",
            f"synchronous={s.synchronous}",
            "foreign_keys=ON",
            f"busy_timeout={s.busy_timeout_ms}",
        ):
            con.execute(f"PRAGMA {pragma};")
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._open()
        try:
            yield con
        finally:
            con.close()

    def _begin_immediate(self, con: sqlite3.Connection) -> None:
        deadline = _now_ms() + self.settings.write_deadline_ms
        delay = 0.005
        while True:
            try:
                con.execute("BEGIN IMMEDIATE;")
                return
            except sqlite3.OperationalError as e:
                if not _locked(e) or _now_ms() >= deadline:
                    raise
            time.sleep(delay * random.uniform(0.5, 1.5))
            delay = min(0.25, delay * 2)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        with self.connection() as con:
            self._begin_immediate(con)
            try:
                yield con
            except BaseException:
                con.execute("ROLLBACK;")
                raise
            con.execute("COMMIT;")

    def init_schema(self) -> None:
        """Create tables; refuse to open a file written with another schema version."""
        with self.write_tx() as con:
            for stmt in _SCHEMA:
                con.execute(stmt)
            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
                return
            have = str(row["value"])
            if have != str(self.SCHEMA_VERSION):
                raise RuntimeError(f"sqlite schema_version mismatch: have={have} want={self.SCHEMA_VERSION}")


class SqliteRewardsStore:
    """The engine's durable snapshot (one row) plus an append-only event log.

    write() replaces the snapshot and appends the operation's events in the
    same transaction, so the log never runs ahead of the snapshot.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM engine_state WHERE id=1;").fetchone() is not None

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM engine_state WHERE id=1;").fetchone()
        if row is None:
            raise FileNotFoundError(f"no engine snapshot in {self._db.path}")
        st = json.loads(str(row["state_json"]))
        if not isinstance(st, dict):
            raise ValueError("engine snapshot is not a JSON object")
        return st

    def write(self, st: Json, events: Optional[Sequence[Json]] = None) -> None:
        if not isinstance(st, dict):
            raise ValueError("engine snapshot must be a dict")
        ts = _now_ms()
        payload = canon_json(st)
        rows = [(str(ev.get("event", "")), canon_json(ev), ts) for ev in events or ()]
        with self._db.write_tx() as con:
            con.execute(
                "INSERT INTO engine_state(id, state_json, updated_ts_ms) VALUES(1, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET state_json=excluded.state_json, updated_ts_ms=excluded.updated_ts_ms;",
                (payload, ts),
            )
            if rows:
                con.executemany("INSERT INTO events(event, event_json, created_ts_ms) VALUES(?, ?, ?);", rows)

    def events(self, *, event: Optional[str] = None, limit: int = 1000) -> List[Json]:
        where, args = ("WHERE event=?", [str(event)]) if event else ("", [])
        sql = f"SELECT event_json FROM events {where} ORDER BY seq ASC LIMIT ?;"
        with self._db.connection() as con:
            rows = con.execute(sql, (*args, max(1, int(limit)))).fetchall()
        return [json.loads(str(r["event_json"])) for r in rows]
