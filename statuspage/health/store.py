"""Result storage — a tiny key-value layer with per-key expiry.

Key layout:
  status:<target-id>  — latest ProbeResult for the target
  status:overall      — latest AggregateVerdict

Values are JSON documents. An expired key reads exactly like a missing one.
Store errors are not caught here: they belong to the invocation that hit them.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from statuspage.config import Settings
from statuspage.health.engine import AggregateVerdict, ProbeResult
from statuspage.targets.registry import RESERVED_ID, Target

logger = logging.getLogger(__name__)

RESULT_PREFIX = "status:"
OVERALL_KEY = f"{RESULT_PREFIX}{RESERVED_ID}"


def result_key(target_id: str) -> str:
    return f"{RESULT_PREFIX}{target_id}"


# ── Key-value backends ───────────────────────────────────────────────────────


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def put(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...


class MemoryKV:
    """In-process store. Good for tests and single-process deployments."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if expires_at <= self._clock():
                del self._data[key]
                return None
        return json.loads(raw)

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        raw = json.dumps(value)
        with self._lock:
            self._data[key] = (raw, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        now = self._clock()
        with self._lock:
            return [k for k, (_, exp) in self._data.items() if exp > now]

    def close(self) -> None:
        with self._lock:
            self._data.clear()


class SQLiteKV:
    """SQLite-backed store — one row per key, expiry checked on read."""

    def __init__(
        self,
        db_path: Path | str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._conn: sqlite3.Connection | None = None
        # The event loop and FastAPI's worker threads share one connection
        self._lock = threading.Lock()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def _init_db(self) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL
                );
            """)
            conn.commit()

    def get(self, key: str) -> Any | None:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT value FROM kv WHERE key = ? AND expires_at > ?",
                (key, self._clock()),
            ).fetchone()
        return json.loads(row["value"]) if row else None

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        raw = json.dumps(value)
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                "INSERT INTO kv (key, value, expires_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "expires_at = excluded.expires_at",
                (key, raw, self._clock() + ttl_seconds),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()

    def keys(self) -> list[str]:
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT key FROM kv WHERE expires_at > ? ORDER BY key", (self._clock(),),
            ).fetchall()
        return [r["key"] for r in rows]

    def purge_expired(self) -> int:
        """Delete expired rows and return how many were removed."""
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute("DELETE FROM kv WHERE expires_at <= ?", (self._clock(),))
            conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


def open_store(cfg: Settings) -> "ResultStore":
    """Build the ResultStore for the configured backend."""
    backend = cfg.store_backend.lower()
    if backend == "memory":
        kv: KeyValueStore = MemoryKV()
    elif backend == "sqlite":
        kv = SQLiteKV(cfg.store_path)
    else:
        raise ValueError(f"Unknown store backend: {cfg.store_backend!r} (expected 'sqlite' or 'memory')")
    logger.info("Result store opened: backend=%s", backend)
    return ResultStore(kv)


# ── Result store ─────────────────────────────────────────────────────────────


class ResultStore:
    """Reads and writes probe results and the verdict under their fixed keys."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def put_result(self, result: ProbeResult, ttl_seconds: int) -> None:
        self.kv.put(result_key(result.id), result.to_dict(), ttl_seconds)

    def get_result(self, target_id: str) -> dict[str, Any] | None:
        return self.kv.get(result_key(target_id))

    def put_verdict(self, verdict: AggregateVerdict, ttl_seconds: int) -> None:
        self.kv.put(OVERALL_KEY, verdict.to_dict(), ttl_seconds)

    def get_verdict(self) -> dict[str, Any] | None:
        return self.kv.get(OVERALL_KEY)

    def snapshot(self, targets: list[Target]) -> dict[str, Any]:
        """Current records for ``targets`` in order, with placeholders for missing ones."""
        items = []
        for t in targets:
            record = self.get_result(t.id)
            items.append(record if record is not None else {**t.to_dict(), "ok": None})
        return {"overall": self.get_verdict(), "items": items}

    def close(self) -> None:
        self.kv.close()
