import base64

import pytest

from aimednet.core.exceptions import DecryptionError
from aimednet.crypto.cipher import decrypt, encrypt, split_payload, validate_encrypted_format
from aimednet.crypto.keys import derive_key, generate_master_key


@pytest.fixture
def key():
    return generate_master_key()


@pytest.mark.parametrize(
    "plaintext",
    ["Hello, World!", "", "Test message 🔐 with ünïcödé", "x" * 10_000],
)
def test_round_trip(key, plaintext):
    assert decrypt(encrypt(plaintext, key), key) == plaintext


def test_payload_format(key):
    payload = encrypt("hello", key)
    iv_segment, ciphertext_segment = payload.split(".")

    assert len(base64.b64decode(iv_segment)) == 12
    # 5 bytes of plaintext + 16-byte GCM tag
    assert len(base64.b64decode(ciphertext_segment)) == 5 + 16


def test_fresh_iv_per_call(key):
    first = encrypt("same text", key)
    second = encrypt("same text", key)

    assert first != second
    assert first.split(".")[0] != second.split(".")[0]
    assert decrypt(first, key) == decrypt(second, key) == "same text"


def test_wrong_key_fails(key):
    payload = encrypt("secret", key)
    with pytest.raises(DecryptionError):
        decrypt(payload, generate_master_key())


def test_personal_key_cannot_open_master_key_payload(key):
    payload = encrypt("secret", key)
    personal_key = derive_key("Password1!", "salt")
    with pytest.raises(DecryptionError):
        decrypt(payload, personal_key)


def test_tampered_ciphertext_fails(key):
    iv_segment, ciphertext_segment = encrypt("secret", key).split(".")
    raw = bytearray(base64.b64decode(ciphertext_segment))
    raw[0] ^= 0x01
    tampered = f"{iv_segment}.{base64.b64encode(bytes(raw)).decode()}"

    with pytest.raises(DecryptionError):
        decrypt(tampered, key)


@pytest.mark.parametrize(
    "payload",
    [
        "",
        "no-separator",
        "a.b.c",
        ".Y2lwaGVy",
        "aXY=.",
        "not base64!.Y2lwaGVy",
    ],
)
def test_malformed_payloads_are_rejected(key, payload):
    assert validate_encrypted_format(payload) is False
    with pytest.raises(DecryptionError):
        split_payload(payload)
    with pytest.raises(DecryptionError):
        decrypt(payload, key)


def test_validate_accepts_real_payload(key):
    assert validate_encrypted_format(encrypt("hi", key)) is True
