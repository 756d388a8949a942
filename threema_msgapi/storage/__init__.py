# threema_msgapi/storage/__init__.py

from .provider import StorageProvider
from .providers.memory_provider import InMemoryStorage
from .providers.sqlite_provider import SQLiteStorage
from .key_store import PublicKeyStore
from pathlib import Path
import os

DEFAULT_DB_PATH = "db/pubkeys.db"


def _memory(config: dict) -> StorageProvider:
    return InMemoryStorage()


def _sqlite(config: dict) -> StorageProvider:
    raw = config.get("sqlite_path") or os.getenv("MSGAPI_DB_PATH") or DEFAULT_DB_PATH
    return SQLiteStorage(str(Path(raw).expanduser()))


PROVIDERS = {
    "memory": _memory,
    "sqlite": _sqlite,
}


def load_storage_provider(config: dict | None = None) -> StorageProvider:
    """
    Pick the backing store for cached public keys.

    ``config["provider"]`` wins over ``MSGAPI_STORAGE_PROVIDER``; ``memory`` is the
    default. The SQLite file comes from ``config["sqlite_path"]`` or ``MSGAPI_DB_PATH``.
    """
    config = config or {}
    name = (config.get("provider") or os.getenv("MSGAPI_STORAGE_PROVIDER") or "memory").lower()
    builder = PROVIDERS.get(name)
    if builder is None:
        raise ValueError(f"Unknown storage provider: {name}")
    return builder(config)


__all__ = [
    "StorageProvider",
    "InMemoryStorage",
    "SQLiteStorage",
    "PublicKeyStore",
    "load_storage_provider",
]
