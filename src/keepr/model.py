import os
import sqlite3
import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from keepr.keepr_env import KeeprEnvironment
from .shared import log_msg


def now_string() -> str:
    """Return current local time as 'YYYYMMDDTHHMMSS'."""
    return datetime.now().strftime("%Y%m%dT%H%M%S")


def dumps(rows: list[dict[str, Any]]) -> str:
    return json.dumps(rows, ensure_ascii=False, sort_keys=True)


class DatabaseManager:
    def __init__(
        self,
        db_path: str,
        env: Optional[KeeprEnvironment] = None,
        reset: bool = False,
    ):
        self.db_path = str(db_path)
        self.env = env

        if reset and os.path.exists(self.db_path):
            os.remove(self.db_path)

        self.conn = sqlite3.connect(self.db_path)
        self.cursor = self.conn.cursor()
        self.setup_database()

    def setup_database(self):
        """
        Create (if missing) the two storage tables.

        Notes:
        - KeyValue holds one serialized JSON array per collection key.
        - Rows holds one JSON object per record; `position` keeps the
          in-memory order of the collection.
        - Timestamps are local 'YYYYMMDDTHHMMSS' text.
        """
        # ---------------- KeyValue ----------------
        self.cursor.execute("""
            CREATE TABLE IF NOT EXISTS KeyValue (
                key       TEXT PRIMARY KEY,
                value     TEXT NOT NULL,                -- JSON array
                modified  TEXT NOT NULL
            );
        """)

        # ---------------- Rows ----------------
        self.cursor.execute("""
            CREATE TABLE IF NOT EXISTS Rows (
                collection TEXT    NOT NULL,
                id         TEXT    NOT NULL,
                position   INTEGER NOT NULL,
                data       TEXT    NOT NULL,            -- JSON object
                modified   TEXT    NOT NULL,
                PRIMARY KEY (collection, id)
            );
        """)
        self.cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_rows_position
            ON Rows(collection, position);
        """)
        self.conn.commit()

    def close(self):
        self.conn.close()

    # ---------------- KeyValue access ----------------

    def get_value(self, key: str) -> Optional[str]:
        self.cursor.execute("SELECT value FROM KeyValue WHERE key = ?", (key,))
        row = self.cursor.fetchone()
        return row[0] if row else None

    def set_value(self, key: str, value: str) -> None:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO KeyValue (key, value, modified) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    modified = excluded.modified
                """,
                (key, value, now_string()),
            )

    def delete_value(self, key: str) -> bool:
        with self.conn:
            cur = self.conn.execute("DELETE FROM KeyValue WHERE key = ?", (key,))
        return cur.rowcount > 0

    def list_keys(self) -> list[str]:
        self.cursor.execute("SELECT key FROM KeyValue ORDER BY key")
        return [row[0] for row in self.cursor.fetchall()]

    # ---------------- Rows access ----------------

    def get_rows(self, collection: str) -> list[str]:
        self.cursor.execute(
            "SELECT data FROM Rows WHERE collection = ? ORDER BY position",
            (collection,),
        )
        return [row[0] for row in self.cursor.fetchall()]

    def replace_rows(self, collection: str, rows: list[tuple[str, str]]) -> None:
        """Rewrite every row of `collection` in a single transaction."""
        stamp = now_string()
        with self.conn:
            self.conn.execute("DELETE FROM Rows WHERE collection = ?", (collection,))
            self.conn.executemany(
                """
                INSERT INTO Rows (collection, id, position, data, modified)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (collection, record_id, position, data, stamp)
                    for position, (record_id, data) in enumerate(rows)
                ],
            )

    def query_rows(self, collection: str, equals: dict[str, Any]) -> list[str]:
        """Rows of `collection` whose top-level JSON fields equal the given values."""
        clauses = ["collection = ?"]
        params: list[Any] = [collection]
        for field, value in equals.items():
            if not field.isidentifier():
                raise ValueError(f"invalid field name: {field!r}")
            clauses.append(f"json_extract(data, '$.{field}') = ?")
            params.append(value)
        sql = f"SELECT data FROM Rows WHERE {' AND '.join(clauses)} ORDER BY position"
        self.cursor.execute(sql, params)
        return [row[0] for row in self.cursor.fetchall()]

    def count_rows(self, collection: str) -> int:
        self.cursor.execute(
            "SELECT COUNT(*) FROM Rows WHERE collection = ?", (collection,)
        )
        return self.cursor.fetchone()[0]


# ─── Backends ─────────────────────────────────────────────────


class Backend(ABC):
    """
    Persistence for one or more named collections.

    `save` always receives the complete collection; implementations
    serialize everything before touching storage so that a value that
    cannot be encoded leaves the stored copy as it was.
    """

    @abstractmethod
    def load(self, key: str) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    def save(self, key: str, rows: list[dict[str, Any]]) -> None:
        pass


class BlobBackend(Backend):
    """Each collection is one JSON array stored under a single key."""

    def __init__(self, dbm: DatabaseManager):
        self.dbm = dbm

    def load(self, key: str) -> list[dict[str, Any]]:
        text = self.dbm.get_value(key)
        if not text:
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            log_msg(f"stored value for {key!r} is not valid JSON, ignoring it: {e}")
            return []
        if not isinstance(data, list):
            log_msg(f"stored value for {key!r} is not a list, ignoring it")
            return []
        return [row for row in data if isinstance(row, dict)]

    def save(self, key: str, rows: list[dict[str, Any]]) -> None:
        payload = dumps(rows)
        self.dbm.set_value(key, payload)


class RowBackend(Backend):
    """Each record is its own row; supports simple equality queries."""

    def __init__(self, dbm: DatabaseManager):
        self.dbm = dbm

    def load(self, key: str) -> list[dict[str, Any]]:
        rows = []
        for text in self.dbm.get_rows(key):
            try:
                row = json.loads(text)
            except json.JSONDecodeError as e:
                log_msg(f"skipping unreadable row in {key!r}: {e}")
                continue
            if isinstance(row, dict):
                rows.append(row)
        return rows

    def save(self, key: str, rows: list[dict[str, Any]]) -> None:
        encoded = [
            (str(row["id"]), json.dumps(row, ensure_ascii=False, sort_keys=True))
            for row in rows
        ]
        self.dbm.replace_rows(key, encoded)

    def query(self, key: str, **equals: Any) -> list[dict[str, Any]]:
        return [json.loads(text) for text in self.dbm.query_rows(key, equals)]


class MemoryBackend(Backend):
    """Keeps serialized collections in a dict; nothing touches disk."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def load(self, key: str) -> list[dict[str, Any]]:
        text = self._data.get(key)
        return json.loads(text) if text else []

    def save(self, key: str, rows: list[dict[str, Any]]) -> None:
        self._data[key] = dumps(rows)

    def raw(self, key: str) -> Optional[str]:
        return self._data.get(key)


def backend_for(env: KeeprEnvironment, dbm: DatabaseManager) -> Backend:
    if env.config.storage.backend == "rows":
        return RowBackend(dbm)
    return BlobBackend(dbm)
