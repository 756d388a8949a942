"""
threema_msgapi.crypto
---------------------
Cryptographic primitives for the gateway protocol:

- X25519 key generation and public-key derivation (cryptography)
- NaCl box (Curve25519-XSalsa20-Poly1305) for message envelopes and legacy image blobs
- NaCl secret box with fixed nonces for file and thumbnail blobs
- HMAC-SHA256 hashing of e-mail addresses and phone numbers for identity lookups
"""

from __future__ import annotations
from typing import Optional, Tuple
import random, re

from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.asymmetric import x25519
from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey
from nacl.secret import SecretBox

from .constants import (
    BLOB_KEY_LEN, EMAIL_HMAC_KEY, FILE_NONCE, KEY_LEN, NONCE_LEN, PHONE_HMAC_KEY,
    THUMBNAIL_NONCE,
)
from .exceptions import DecryptionFailed, InvalidKey
from .results import EncryptResult
from .utils import random_bytes


def _check_key(key: bytes, what: str) -> bytes:
    if key is None or len(key) != KEY_LEN:
        raise InvalidKey(f"{what} must be {KEY_LEN} bytes")
    return bytes(key)


# --------- X25519 keys ----------
def generate_keypair() -> Tuple[bytes, bytes]:
    sk = x25519.X25519PrivateKey.generate()
    return sk.private_bytes_raw(), sk.public_key().public_bytes_raw()


def derive_public_key(private_key: bytes) -> bytes:
    sk = x25519.X25519PrivateKey.from_private_bytes(_check_key(private_key, "private key"))
    return sk.public_key().public_bytes_raw()


# --------- NaCl box ----------
def _box(private_key: bytes, public_key: bytes) -> Box:
    return Box(
        PrivateKey(_check_key(private_key, "private key")),
        PublicKey(_check_key(public_key, "public key")),
    )


def box_encrypt(data: bytes, nonce: bytes, private_key: bytes, public_key: bytes) -> bytes:
    if len(nonce) != NONCE_LEN:
        raise InvalidKey(f"nonce must be {NONCE_LEN} bytes")
    return _box(private_key, public_key).encrypt(data, nonce).ciphertext


def box_decrypt(box: bytes, nonce: bytes, private_key: bytes, public_key: bytes) -> bytes:
    if len(nonce) != NONCE_LEN:
        raise DecryptionFailed(f"nonce must be {NONCE_LEN} bytes")
    try:
        return _box(private_key, public_key).decrypt(box, nonce)
    except CryptoError as e:
        raise DecryptionFailed("box could not be opened") from e


# --------- blob secret box ----------
def _secret_encrypt(data: bytes, key: bytes, nonce: bytes) -> EncryptResult:
    if len(key) != BLOB_KEY_LEN:
        raise InvalidKey(f"blob key must be {BLOB_KEY_LEN} bytes")
    ct = SecretBox(key).encrypt(data, nonce).ciphertext
    return EncryptResult(result=ct, secret=key, nonce=nonce)


def _secret_decrypt(data: bytes, key: bytes, nonce: bytes) -> bytes:
    if key is None or len(key) != BLOB_KEY_LEN:
        raise InvalidKey(f"blob key must be {BLOB_KEY_LEN} bytes")
    try:
        return SecretBox(key).decrypt(data, nonce)
    except CryptoError as e:
        raise DecryptionFailed("blob could not be decrypted") from e


def encrypt_file_data(data: bytes, key: Optional[bytes] = None, rng: Optional[random.Random] = None) -> EncryptResult:
    """Encrypt a file blob; a fresh key is drawn unless one is given."""
    if key is None:
        key = random_bytes(BLOB_KEY_LEN, rng)
    return _secret_encrypt(data, key, FILE_NONCE)


def encrypt_file_thumbnail_data(data: bytes, key: bytes) -> EncryptResult:
    """Encrypt a thumbnail with the key of its file blob."""
    return _secret_encrypt(data, key, THUMBNAIL_NONCE)


def decrypt_file_data(data: bytes, key: bytes) -> bytes:
    return _secret_decrypt(data, key, FILE_NONCE)


def decrypt_file_thumbnail_data(data: bytes, key: bytes) -> bytes:
    return _secret_decrypt(data, key, THUMBNAIL_NONCE)


# --------- identity hashes ----------
def _hmac_sha256(key: bytes, data: bytes) -> bytes:
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(data)
    return h.finalize()


def hash_email(email: str) -> bytes:
    normalized = email.lower().strip()
    return _hmac_sha256(EMAIL_HMAC_KEY, normalized.encode("utf-8"))


def hash_phone_no(phone_no: str) -> bytes:
    normalized = re.sub(r"[^0-9]", "", phone_no)
    return _hmac_sha256(PHONE_HMAC_KEY, normalized.encode("utf-8"))
