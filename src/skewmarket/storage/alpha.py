"""Alpha ledger persistence - a JSON list of entries under one key.

Stores never raise: a failed read comes back as None and a failed write as False, and the
ledger keeps working in memory.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Protocol

import duckdb
import structlog

from skewmarket.storage.db import get_connection, init_schema

log = structlog.get_logger(__name__)

DEFAULT_STORAGE_KEY = "skewmarket_alpha_log"


class LedgerStore(Protocol):
    """Persistence port for the ledger's serialized entry list."""

    def load(self) -> list[dict[str, Any]] | None: ...
    def save(self, entries: list[dict[str, Any]]) -> bool: ...


class MemoryLedgerStore:
    """Process-local store; `fail_writes` simulates an unavailable backend."""

    def __init__(self, entries: list[dict[str, Any]] | None = None, fail_writes: bool = False):
        self.entries = entries
        self.fail_writes = fail_writes
        self.saves = 0

    def load(self) -> list[dict[str, Any]] | None:
        return list(self.entries) if self.entries is not None else None

    def save(self, entries: list[dict[str, Any]]) -> bool:
        if self.fail_writes:
            return False
        self.entries = list(entries)
        self.saves += 1
        return True


class DuckDBLedgerStore:
    """Keeps the ledger in the kv_store table. Opens a short-lived connection per call."""

    def __init__(self, db_path: str | Path, key: str = DEFAULT_STORAGE_KEY):
        self.db_path = db_path
        self.key = key

    def load(self) -> list[dict[str, Any]] | None:
        try:
            conn = get_connection(self.db_path)
            try:
                init_schema(conn)
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", [self.key]).fetchone()
            finally:
                conn.close()
        except (duckdb.Error, OSError) as e:
            log.warning("ledger_load_failed", db_path=str(self.db_path), error=str(e))
            return None
        if row is None:
            return None
        try:
            data = json.loads(row[0]) if isinstance(row[0], str) else row[0]
        except json.JSONDecodeError as e:
            log.warning("ledger_corrupt", key=self.key, error=str(e))
            return None
        if not isinstance(data, list):
            log.warning("ledger_corrupt", key=self.key, error="not a list")
            return None
        return [d for d in data if isinstance(d, dict)]

    def save(self, entries: list[dict[str, Any]]) -> bool:
        payload = json.dumps(entries, default=str)
        try:
            conn = get_connection(self.db_path)
            try:
                init_schema(conn)
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT (key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    [self.key, payload, int(time.time() * 1000)],
                )
            finally:
                conn.close()
        except (duckdb.Error, OSError) as e:
            log.warning("ledger_save_failed", db_path=str(self.db_path), error=str(e))
            return False
        return True
