"""In-memory key session for one signed-in user.

Holds the PersonalKey and the unwrapped MasterKey for the lifetime of a login.
Nothing outside this class touches either key: message encryption and
decryption go through `encrypt_message` / `decrypt_message`.
"""

from __future__ import annotations

import asyncio
import logging

from aimednet.client.backend import ProfileStore
from aimednet.core.config import settings
from aimednet.core.exceptions import (
    BackendError,
    ConfigurationError,
    DecryptionError,
    KeyLockedError,
)
from aimednet.core.logger import get_logger
from aimednet.crypto import cipher
from aimednet.crypto.diagnostics import HealthReport, run_health_check
from aimednet.crypto.keys import (
    MasterKey,
    PersonalKey,
    conversation_key,
    derive_key,
    export_master_key,
    generate_master_key,
    unwrap_master_key,
    wrap_master_key,
)


class KeySession:
    def __init__(self, profiles: ProfileStore, logger: logging.Logger | None = None):
        self._profiles = profiles
        self._log = get_logger("keyring", logger)
        self._personal_key: PersonalKey | None = None
        self._master_key: MasterKey | None = None
        self._encrypted_master_key: str | None = None

    @property
    def is_unlocked(self) -> bool:
        return self._master_key is not None and not self._master_key.cleared

    async def unlock(self, password: str) -> None:
        """
        Derive the personal key and open the account's master key.

        A brand-new account (no wrapped master key on the profile) gets a
        master key generated, wrapped and created here; a concurrent first
        unlock elsewhere wins and its key is used.

        Raises:
            ConfigurationError: the profile has no encryption salt.
            DerivationError: the KDF failed.
            MasterKeyUnwrapError: wrong password or corrupted wrapped key.
            BackendError: the profile could not be read or written.
        """
        self.lock()
        profile = await self._profiles.get_profile_keys()
        if not profile.encryption_salt:
            raise ConfigurationError(
                "Your account is not configured for secure messaging. "
                "Please contact support."
            )

        personal_key = await asyncio.to_thread(
            derive_key, password, profile.encryption_salt
        )

        try:
            if profile.encrypted_user_master_key:
                encrypted_master_key = profile.encrypted_user_master_key
                master_key = self._unwrap(encrypted_master_key, personal_key)
            else:
                master_key, encrypted_master_key = await self._bootstrap(personal_key)
        except Exception:
            personal_key.clear()
            raise

        self._personal_key = personal_key
        self._master_key = master_key
        self._encrypted_master_key = encrypted_master_key
        self._log.info("Key session unlocked")

    def _unwrap(self, encrypted_master_key: str, personal_key: PersonalKey) -> MasterKey:
        try:
            return unwrap_master_key(encrypted_master_key, personal_key)
        except DecryptionError:
            self._log.warning("Master key unwrap failed; session stays locked")
            raise

    async def _bootstrap(self, personal_key: PersonalKey) -> tuple[MasterKey, str]:
        """
        Create and store the first master key of the account.

        If another device stored one first (409), that key is opened instead
        so both devices end up on the same master key.
        """
        self._log.info("No wrapped master key on profile; generating one")
        master_key = generate_master_key()
        encrypted_master_key = wrap_master_key(export_master_key(master_key), personal_key)
        try:
            await self._profiles.create_encrypted_master_key(encrypted_master_key)
        except BackendError as exc:
            master_key.clear()
            if exc.status_code != 409:
                raise
            self._log.info("Master key was created by another session; using it")
            profile = await self._profiles.get_profile_keys()
            if not profile.encrypted_user_master_key:
                raise
            return (
                self._unwrap(profile.encrypted_user_master_key, personal_key),
                profile.encrypted_user_master_key,
            )
        except Exception:
            master_key.clear()
            raise
        return master_key, encrypted_master_key

    def lock(self) -> None:
        """Zero and drop every key held by this session."""
        for key in (self._personal_key, self._master_key):
            if key is not None:
                key.clear()
        was_unlocked = self._master_key is not None
        self._personal_key = None
        self._master_key = None
        self._encrypted_master_key = None
        if was_unlocked:
            self._log.info("Key session locked")

    def _conversation_key(self, conversation_id: int | str) -> MasterKey:
        if not self.is_unlocked:
            raise KeyLockedError("Unlock secure messaging before reading or sending")
        return conversation_key(self._master_key, conversation_id)

    def encrypt_message(self, conversation_id: int | str, plaintext: str) -> str:
        key = self._conversation_key(conversation_id)
        try:
            return cipher.encrypt(plaintext, key)
        finally:
            key.clear()

    def decrypt_message(self, conversation_id: int | str, payload: str) -> str:
        key = self._conversation_key(conversation_id)
        try:
            return cipher.decrypt(payload, key)
        finally:
            key.clear()

    def decrypt_for_display(self, conversation_id: int | str, payload: str) -> str:
        """Decrypt, or return the placeholder text if the body cannot be opened."""
        try:
            return self.decrypt_message(conversation_id, payload)
        except DecryptionError as exc:
            self._log.warning(
                f"Could not decrypt a message in conversation {conversation_id}: {exc}"
            )
            return settings.UNDECRYPTABLE_PLACEHOLDER

    def health_check(self) -> HealthReport:
        return run_health_check(
            self._master_key,
            self._personal_key,
            self._encrypted_master_key,
            logger=self._log,
        )
