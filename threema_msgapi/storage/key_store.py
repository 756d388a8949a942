from __future__ import annotations
from contextlib import contextmanager
from typing import Callable, Dict, Optional
import threading

from threema_msgapi.constants import KEY_LEN
from threema_msgapi.exceptions import InvalidKey
from threema_msgapi.logger import get_logger
from threema_msgapi.storage.provider import StorageProvider
from threema_msgapi.storage.providers.memory_provider import InMemoryStorage

log = get_logger("MsgApi.Storage")

Fetcher = Callable[[str], Optional[bytes]]


class PublicKeyStore:
    """
    Process-wide cache of identity → public key.

    A miss holds a per-identity lock while the provider (and, if given, the gateway
    fallback) is consulted, so concurrent callers for the same identity trigger one
    fetch. Unknown identities are not cached; the next lookup tries again.
    """

    def __init__(self, provider: Optional[StorageProvider] = None):
        self.provider = provider or InMemoryStorage()
        self._cache: Dict[str, bytes] = {}
        # identity -> [lock, holders and waiters]; dropped when nobody uses it
        self._locks: Dict[str, list] = {}
        self._map_lock = threading.Lock()

    @contextmanager
    def _lock_for(self, identity: str):
        with self._map_lock:
            entry = self._locks.get(identity)
            if entry is None:
                entry = self._locks[identity] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._map_lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[identity]

    def _cached(self, identity: str) -> Optional[bytes]:
        with self._map_lock:
            return self._cache.get(identity)

    def get_public_key(self, identity: str, fallback: Optional[Fetcher] = None) -> Optional[bytes]:
        key = self._cached(identity)
        if key is not None:
            return key

        with self._lock_for(identity):
            # another caller may have resolved it while we waited
            key = self._cached(identity)
            if key is not None:
                return key

            key = self.provider.fetch_public_key(identity)
            from_fallback = False
            if key is None and fallback is not None:
                key = fallback(identity)
                from_fallback = key is not None
            if key is None:
                log.info(f"[KEYSTORE] no public key for {identity}")
                return None

            if len(key) != KEY_LEN:
                raise InvalidKey(f"public key for {identity} has {len(key)} bytes")
            with self._map_lock:
                self._cache[identity] = key
            if from_fallback:
                self.provider.save(identity, key)
            log.debug(f"[KEYSTORE] cached public key for {identity}")
            return key

    def set_public_key(self, identity: str, public_key: bytes) -> None:
        if public_key is None or len(public_key) != KEY_LEN:
            raise InvalidKey(f"public key must be {KEY_LEN} bytes")
        with self._lock_for(identity):
            with self._map_lock:
                self._cache[identity] = public_key
            self.provider.save(identity, public_key)

    def has_public_key(self, identity: str) -> bool:
        return self._cached(identity) is not None
