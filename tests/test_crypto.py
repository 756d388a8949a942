import hashlib
import hmac

import pytest

from threema_msgapi.constants import EMAIL_HMAC_KEY, FILE_NONCE, PHONE_HMAC_KEY, THUMBNAIL_NONCE
from threema_msgapi.crypto import (
    box_decrypt, box_encrypt, decrypt_file_data, decrypt_file_thumbnail_data, derive_public_key,
    encrypt_file_data, encrypt_file_thumbnail_data, generate_keypair, hash_email, hash_phone_no,
)
from threema_msgapi.exceptions import DecryptionFailed, InvalidKey


def test_hmac_keys_are_protocol_constants():
    assert EMAIL_HMAC_KEY.hex() == "30a5500fed9701fa6defdb610841900febb8e430881f7ad816826264ec09bad7"
    assert PHONE_HMAC_KEY.hex() == "85adf8226953f3d96cfd5d09bf29555eb955fcd8aa5ec4f9fcd869e258370723"


def test_blob_nonces():
    assert FILE_NONCE == bytes(23) + b"\x01"
    assert THUMBNAIL_NONCE == bytes(23) + b"\x02"


def test_phone_hash_normalizes_digits():
    assert hash_phone_no("+41 79 000 00 00") == hash_phone_no("41790000000")


def test_email_hash_normalizes_case_and_whitespace():
    assert hash_email("  Abc@Example.COM ") == hash_email("abc@example.com")


def test_email_hash_matches_plain_hmac():
    expected = hmac.new(EMAIL_HMAC_KEY, b"test@mail.box", hashlib.sha256).digest()
    assert hash_email("test@mail.box") == expected
    assert len(hash_email("test@mail.box")) == 32


def test_derive_public_key_matches_generated_pair():
    priv, pub = generate_keypair()
    assert derive_public_key(priv) == pub


def test_derive_public_key_rejects_bad_length():
    with pytest.raises(InvalidKey):
        derive_public_key(b"short")


def test_box_roundtrip_and_tamper():
    a_priv, a_pub = generate_keypair()
    b_priv, b_pub = generate_keypair()
    nonce = bytes(range(24))
    box = box_encrypt(b"hello", nonce, a_priv, b_pub)
    assert box_decrypt(box, nonce, b_priv, a_pub) == b"hello"

    tampered = bytes([box[0] ^ 1]) + box[1:]
    with pytest.raises(DecryptionFailed):
        box_decrypt(tampered, nonce, b_priv, a_pub)


def test_file_and_thumbnail_share_key():
    file_res = encrypt_file_data(b"file contents")
    assert file_res.nonce == FILE_NONCE
    assert len(file_res.secret) == 32

    thumb_res = encrypt_file_thumbnail_data(b"thumb", file_res.secret)
    assert thumb_res.secret == file_res.secret
    assert thumb_res.nonce == THUMBNAIL_NONCE

    assert decrypt_file_data(file_res.result, file_res.secret) == b"file contents"
    assert decrypt_file_thumbnail_data(thumb_res.result, file_res.secret) == b"thumb"


def test_thumbnail_does_not_decrypt_with_file_nonce():
    res = encrypt_file_data(b"data")
    thumb = encrypt_file_thumbnail_data(b"thumb", res.secret)
    with pytest.raises(DecryptionFailed):
        decrypt_file_data(thumb.result, res.secret)


def test_fresh_key_per_file():
    assert encrypt_file_data(b"x").secret != encrypt_file_data(b"x").secret
