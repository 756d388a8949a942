"""
threema_msgapi.envelope
-----------------------
Seals typed messages into end-to-end envelopes and opens them again:

    type byte ‖ body ‖ p × byte(p)      p uniform in [1, 255]

sealed with a NaCl box under a fresh 24-byte nonce.
"""

from __future__ import annotations
from typing import Optional
import random

from .constants import MAX_PADDING
from .crypto import box_decrypt, box_encrypt
from .exceptions import BadMessage
from .messages import ThreemaMessage, parse_message
from .results import EncryptResult
from .utils import random_nonce, secure_random


def pad(data: bytes, rng: Optional[random.Random] = None) -> bytes:
    p = (rng or secure_random).randint(1, MAX_PADDING)
    return data + bytes([p]) * p


def unpad(data: bytes) -> bytes:
    if not data:
        raise BadMessage("empty message")
    p = data[-1]
    if p < 1 or len(data) - p < 2:
        raise BadMessage(f"bad padding ({p}) for message of length {len(data)}")
    return data[:-p]


def encrypt_message(message: ThreemaMessage, private_key: bytes, public_key: bytes,
                    rng: Optional[random.Random] = None) -> EncryptResult:
    """Encrypt ``message`` for the holder of ``public_key``."""
    padded = pad(message.to_bytes(), rng)
    nonce = random_nonce(rng)
    box = box_encrypt(padded, nonce, private_key, public_key)
    return EncryptResult(result=box, nonce=nonce)


def decrypt_message(box: bytes, private_key: bytes, public_key: bytes, nonce: bytes) -> ThreemaMessage:
    """Open an envelope sent by the holder of ``public_key`` and parse the message inside."""
    data = box_decrypt(box, nonce, private_key, public_key)
    return parse_message(unpad(data))
