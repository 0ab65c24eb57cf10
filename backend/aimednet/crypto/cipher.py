"""AES-256-GCM message cipher using the `iv.ciphertext` payload format.

Every payload stored or transmitted by this system looks like::

    base64(iv) + "." + base64(ciphertext || tag)

with a fresh 12-byte IV for each call to `encrypt`.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidTag

from aimednet.core.config import settings
from aimednet.core.exceptions import DecryptionError
from aimednet.core.logger import get_logger

if TYPE_CHECKING:
    from aimednet.crypto.keys import SymmetricKey

SEPARATOR = "."


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(segment: str) -> bytes:
    return base64.b64decode(segment.encode("ascii"), validate=True)


def encrypt(plaintext: str, key: SymmetricKey) -> str:
    """Encrypt a UTF-8 string under `key` and return an EncryptedPayload."""
    iv = os.urandom(settings.AES_GCM_IV_SIZE)
    ciphertext = key.aead().encrypt(iv, plaintext.encode("utf-8"), None)
    return f"{_b64encode(iv)}{SEPARATOR}{_b64encode(ciphertext)}"


def split_payload(payload: str) -> tuple[bytes, bytes]:
    """
    Parse an EncryptedPayload into (iv, ciphertext).

    Raises:
        DecryptionError: if the payload is not exactly two non-empty,
            base64-decodable segments.
    """
    if not payload or not isinstance(payload, str):
        raise DecryptionError("Encrypted payload is empty")

    parts = payload.split(SEPARATOR)
    if len(parts) != 2:
        raise DecryptionError(
            f'Expected "iv.ciphertext", got {len(parts)} segment(s)'
        )

    iv_segment, ciphertext_segment = parts
    if not iv_segment:
        raise DecryptionError("IV segment is empty")
    if not ciphertext_segment:
        raise DecryptionError("Ciphertext segment is empty")

    try:
        return _b64decode(iv_segment), _b64decode(ciphertext_segment)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError("Invalid base64 in encrypted payload") from exc


def decrypt(payload: str, key: SymmetricKey) -> str:
    """
    Decrypt an EncryptedPayload produced by `encrypt`.

    Raises:
        DecryptionError: malformed payload, wrong key or tampered ciphertext.
    """
    iv, ciphertext = split_payload(payload)
    try:
        plaintext = key.aead().decrypt(iv, ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionError("Authentication failed: wrong key or tampered data") from exc
    except ValueError as exc:
        # e.g. an IV length AES-GCM refuses
        raise DecryptionError(f"Cannot decrypt payload: {exc}") from exc

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("Decrypted data is not valid UTF-8") from exc


def validate_encrypted_format(
    payload: str, logger: logging.Logger | None = None
) -> bool:
    """Return True if `payload` is a well-formed `iv.ciphertext` string."""
    log = get_logger("crypto", logger)
    try:
        split_payload(payload)
    except DecryptionError as exc:
        log.debug(f"Invalid encrypted format: {exc}")
        return False
    return True
