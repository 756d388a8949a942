from __future__ import annotations
from typing import List, Optional
import os, sqlite3, threading
from threema_msgapi.storage.provider import StorageProvider
from threema_msgapi.utils import bytes_to_hex, hex_to_bytes, now_ts

SCHEMA = """
CREATE TABLE IF NOT EXISTS pubkeys(
    identity TEXT PRIMARY KEY,
    pubkey_hex TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

UPSERT = (
    "INSERT INTO pubkeys(identity, pubkey_hex, updated_at) VALUES(?, ?, ?) "
    "ON CONFLICT(identity) DO UPDATE SET "
    "pubkey_hex=excluded.pubkey_hex, updated_at=excluded.updated_at"
)


class SQLiteStorage(StorageProvider):
    """Public keys persisted in a single SQLite file, shared across threads."""

    def __init__(self, path: str = "db/pubkeys.db"):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self.path = path
        self.db = sqlite3.connect(path, check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self.db:
            self.db.execute(SCHEMA)

    def fetch_public_key(self, identity: str) -> Optional[bytes]:
        with self._lock:
            row = self.db.execute(
                "SELECT pubkey_hex FROM pubkeys WHERE identity = ?", (identity,)
            ).fetchone()
        return hex_to_bytes(row[0]) if row else None

    def save(self, identity: str, public_key: bytes) -> None:
        # the connection context commits, or rolls back on error
        with self._lock, self.db:
            self.db.execute(UPSERT, (identity, bytes_to_hex(public_key), now_ts()))

    def list_identities(self) -> List[str]:
        with self._lock:
            rows = self.db.execute("SELECT identity FROM pubkeys ORDER BY identity").fetchall()
        return [identity for (identity,) in rows]

    def close(self) -> None:
        with self._lock:
            self.db.close()
