"""SQLite-backed durable key-value store for namespaced JSON blobs."""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


class KeyValueStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self._configure_conn()
        self._init_db()

    def _configure_conn(self) -> None:
        cur = self.conn.cursor()
        try:
            cur.execute("PRAGMA journal_mode=WAL")
            cur.fetchone()
        except sqlite3.DatabaseError:
            pass
        try:
            cur.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.DatabaseError:
            pass

    def _init_db(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                namespace TEXT PRIMARY KEY,
                blob TEXT,
                updated_at TEXT
            )
            """
        )
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def __del__(self) -> None:
        try:
            self.close()
        except Exception:
            pass

    def get(self, namespace: str) -> Optional[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT blob FROM kv_store WHERE namespace = ?", (namespace,))
        row = cur.fetchone()
        if not row:
            return None
        return row["blob"]

    def set(self, namespace: str, blob: str) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            INSERT OR REPLACE INTO kv_store (namespace, blob, updated_at)
            VALUES (?, ?, ?)
            """,
            (namespace, blob, utc_now_iso()),
        )
        self.conn.commit()


def load_json(store: KeyValueStore, namespace: str, default: Any) -> Any:
    """Decode a namespace, substituting ``default`` for missing or corrupt data."""
    try:
        blob = store.get(namespace)
    except sqlite3.DatabaseError as exc:
        logger.warning("Store read failed for %s: %s", namespace, exc)
        return default
    if blob is None:
        return default
    try:
        value = json.loads(blob)
    except ValueError:
        logger.warning("Discarding corrupt data in namespace %s", namespace)
        return default
    if not isinstance(value, type(default)):
        logger.warning(
            "Discarding data of unexpected type %s in namespace %s",
            type(value).__name__,
            namespace,
        )
        return default
    return value


def save_json(store: KeyValueStore, namespace: str, value: Any) -> None:
    store.set(namespace, json.dumps(value, ensure_ascii=False, separators=(",", ":")))
