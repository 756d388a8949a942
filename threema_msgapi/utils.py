"""
threema_msgapi.utils
--------------------
Primitive codec helpers: hex and base64, little-endian u32 and big-endian u64 packing,
compact JSON, and the process-wide secure random source used for nonces and padding.
"""

from __future__ import annotations
import base64, binascii, json, random, re, string, struct, time
from typing import Any, Optional

from .constants import NONCE_LEN
from .exceptions import InvalidHex

# Shared by padding, nonces, blob keys and multipart boundaries.
secure_random = random.SystemRandom()

_WS = re.compile(r"\s+")
_HEX = re.compile(r"^[0-9a-fA-F]*$")


def bytes_to_hex(b: bytes) -> str:
    return binascii.hexlify(b).decode("ascii")


def hex_to_bytes(s: str) -> bytes:
    s = _WS.sub("", s)
    if len(s) % 2 != 0:
        raise InvalidHex(f"odd-length hex string ({len(s)} chars)")
    if not _HEX.match(s):
        raise InvalidHex("hex string contains non-hex characters")
    return binascii.unhexlify(s)


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")


def b64d(s: str) -> bytes:
    return base64.b64decode(s.encode("ascii"))


def pack_uint32_le(value: int) -> bytes:
    return struct.pack("<I", value)


def unpack_uint32_le(data: bytes, offset: int = 0) -> int:
    return struct.unpack_from("<I", data, offset)[0]


def pack_uint64_be(value: int) -> bytes:
    return struct.pack(">Q", value)


def unpack_uint64_be(data: bytes, offset: int = 0) -> int:
    return struct.unpack_from(">Q", data, offset)[0]


def random_bytes(n: int, rng: Optional[random.Random] = None) -> bytes:
    return (rng or secure_random).randbytes(n)


def random_nonce(rng: Optional[random.Random] = None) -> bytes:
    return random_bytes(NONCE_LEN, rng)


_BOUNDARY_CHARS = "-_" + string.digits + string.ascii_letters


def random_boundary(rng: Optional[random.Random] = None) -> str:
    rng = rng or secure_random
    return "".join(rng.choice(_BOUNDARY_CHARS) for _ in range(rng.randint(30, 40)))


def compact_json(obj: Any) -> bytes:
    # Key order is kept as given; the wire format relies on absent keys, not sorting.
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def now_ts() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
