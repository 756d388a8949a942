"""
threema_msgapi.keys
-------------------
Typed key wrapper and the one-line key file format:

    private:<64 hex chars>
    public:<64 hex chars>
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union
import re

from .constants import KEY_LEN
from .crypto import derive_public_key
from .exceptions import InvalidKey
from .utils import bytes_to_hex, hex_to_bytes

_KEY_HEX = re.compile(r"^[0-9a-fA-F]{64}$")


class KeyType(str, Enum):
    PRIVATE = "private"
    PUBLIC = "public"


@dataclass(frozen=True)
class Key:
    type: KeyType
    key: bytes

    def __post_init__(self):
        if len(self.key) != KEY_LEN:
            raise InvalidKey(f"{self.type.value} key must be {KEY_LEN} bytes, got {len(self.key)}")

    def encode(self) -> str:
        return f"{self.type.value}:{bytes_to_hex(self.key)}"

    def public_key(self) -> "Key":
        if self.type is KeyType.PUBLIC:
            return self
        return Key(KeyType.PUBLIC, derive_public_key(self.key))

    @classmethod
    def decode(cls, encoded: str, expected_type: Optional[KeyType] = None) -> "Key":
        parts = encoded.strip().split(":")
        if len(parts) != 2:
            raise InvalidKey("key must have the form <type>:<hex>")
        type_name, content = parts
        try:
            key_type = KeyType(type_name)
        except ValueError as e:
            raise InvalidKey(f"unknown key type {type_name!r}") from e
        if expected_type is not None and key_type is not expected_type:
            raise InvalidKey(f"expected a {expected_type.value} key, got {key_type.value}")
        if not _KEY_HEX.match(content):
            raise InvalidKey("key body must be 64 hex characters")
        return cls(key_type, hex_to_bytes(content))


def read_key_file(path: Union[str, Path], expected_type: Optional[KeyType] = None) -> Key:
    with open(path, "r", encoding="ascii") as f:
        line = f.readline()
    return Key.decode(line, expected_type)


def write_key_file(path: Union[str, Path], key: Key) -> None:
    with open(path, "w", encoding="ascii", newline="\n") as f:
        f.write(key.encode() + "\n")
