from typing import Dict, Optional
from threema_msgapi.storage.provider import StorageProvider


class InMemoryStorage(StorageProvider):
    def __init__(self, keys: Optional[Dict[str, bytes]] = None):
        self.keys = dict(keys or {})

    def fetch_public_key(self, identity: str) -> Optional[bytes]:
        return self.keys.get(identity)

    def save(self, identity: str, public_key: bytes) -> None:
        self.keys[identity] = public_key
