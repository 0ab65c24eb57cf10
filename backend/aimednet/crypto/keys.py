"""Password-derived personal keys and the wrapped per-account master key.

PBKDF2 + AES-GCM key hierarchy:

* the PersonalKey is derived from the login password and the profile salt and
  lives only in memory;
* the MasterKey is random, generated once per account, and is persisted only
  wrapped (encrypted) under the PersonalKey;
* message bodies are encrypted under per-conversation subkeys of the MasterKey.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import os
import secrets

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from aimednet.core.config import settings
from aimednet.core.exceptions import (
    ConfigurationError,
    DecryptionError,
    DerivationError,
    KeyLockedError,
    MasterKeyUnwrapError,
)
from aimednet.crypto.cipher import decrypt, encrypt

KEY_BYTES = 32
JWK_ALGORITHM = "A256GCM"
JWK_KEY_OPS = ["encrypt", "decrypt"]


class SymmetricKey:
    """In-memory AES-256-GCM key. Key material is never part of repr()."""

    kind = "symmetric"

    __slots__ = ("_material",)

    def __init__(self, material: bytes):
        if len(material) != KEY_BYTES:
            raise ValueError(f"{self.kind} key must be {KEY_BYTES} bytes")
        self._material: bytearray | None = bytearray(material)

    @property
    def cleared(self) -> bool:
        return self._material is None

    def aead(self) -> AESGCM:
        if self._material is None:
            raise KeyLockedError(f"{self.kind} key has been cleared")
        return AESGCM(bytes(self._material))

    def clear(self) -> None:
        """Zero the key material and drop it."""
        if self._material is not None:
            for i in range(len(self._material)):
                self._material[i] = 0
            self._material = None

    def __repr__(self) -> str:
        state = "cleared" if self.cleared else "active"
        return f"<{type(self).__name__} {state}>"


class PersonalKey(SymmetricKey):
    """Password-derived key. Only ever used to wrap and unwrap the master key."""

    kind = "personal"

    __slots__ = ()


class MasterKey(SymmetricKey):
    """Per-account random key protecting message content."""

    kind = "master"

    __slots__ = ()

    def _raw(self) -> bytes:
        if self._material is None:
            raise KeyLockedError("master key has been cleared")
        return bytes(self._material)


def generate_salt() -> str:
    """Random salt for a new account."""
    return secrets.token_hex(settings.ENCRYPTION_SALT_BYTES)


def derive_key(
    password: str, salt: str | None, iterations: int | None = None
) -> PersonalKey:
    """
    Derive the PersonalKey from a password and the stored profile salt.

    Raises:
        ConfigurationError: salt is missing.
        DerivationError: the KDF itself failed.
    """
    if not salt:
        raise ConfigurationError(
            "Encryption salt is missing; cannot derive the personal key"
        )
    try:
        material = hashlib.pbkdf2_hmac(
            "sha256",
            password.encode("utf-8"),
            salt.encode("utf-8"),
            iterations or settings.PBKDF2_ITERATIONS,
            dklen=settings.PBKDF2_KEY_LENGTH,
        )
        return PersonalKey(material)
    except (TypeError, ValueError, AttributeError) as exc:
        raise DerivationError(f"Key derivation failed: {exc}") from exc


def generate_master_key() -> MasterKey:
    return MasterKey(os.urandom(KEY_BYTES))


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def export_master_key(master_key: MasterKey) -> str:
    """Serialize the master key as JWK JSON, ready to be wrapped."""
    jwk = {
        "alg": JWK_ALGORITHM,
        "ext": True,
        "k": _b64url(master_key._raw()),
        "key_ops": JWK_KEY_OPS,
        "kty": "oct",
    }
    return json.dumps(jwk, sort_keys=True, separators=(",", ":"))


def import_master_key(serialized: str) -> MasterKey:
    """
    Rebuild a MasterKey from its JWK JSON.

    Raises:
        DecryptionError: the text is not an AES-256 JWK.
    """
    try:
        jwk = json.loads(serialized)
    except json.JSONDecodeError as exc:
        raise DecryptionError("Master key is not valid JSON") from exc

    if not isinstance(jwk, dict) or jwk.get("kty") != "oct" or "k" not in jwk:
        raise DecryptionError("Master key is not a symmetric JWK")

    try:
        material = _b64url_decode(jwk["k"])
    except (binascii.Error, ValueError, TypeError) as exc:
        raise DecryptionError("Master key material is not base64url") from exc

    if len(material) != KEY_BYTES:
        raise DecryptionError("Master key has the wrong length")
    return MasterKey(material)


def wrap_master_key(serialized_master_key: str, personal_key: PersonalKey) -> str:
    """Encrypt the exported master key under the personal key."""
    return encrypt(serialized_master_key, personal_key)


def unwrap_master_key(encrypted_master_key: str, personal_key: PersonalKey) -> MasterKey:
    """
    Decrypt `encrypted_user_master_key` and import it.

    Raises:
        MasterKeyUnwrapError: wrong password, or the stored field is corrupted.
    """
    try:
        return import_master_key(decrypt(encrypted_master_key, personal_key))
    except DecryptionError as exc:
        raise MasterKeyUnwrapError(
            "Could not unlock your encryption keys. Check your password."
        ) from exc


def conversation_key(master_key: MasterKey, conversation_id: int | str) -> MasterKey:
    """Subkey of the master key dedicated to one conversation."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=None,
        info=f"aimednet:conversation:{conversation_id}".encode("utf-8"),
    )
    return MasterKey(hkdf.derive(master_key._raw()))
