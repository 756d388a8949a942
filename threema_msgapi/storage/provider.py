from __future__ import annotations
from typing import Optional


class StorageProvider:
    """
    Backing store for resolved public keys.

    ``fetch_public_key`` is consulted on a cache miss and returns ``None`` when the
    identity is unknown to the store; ``save`` persists a newly learned key.
    """

    def fetch_public_key(self, identity: str) -> Optional[bytes]:
        raise NotImplementedError

    def save(self, identity: str, public_key: bytes) -> None:
        raise NotImplementedError
