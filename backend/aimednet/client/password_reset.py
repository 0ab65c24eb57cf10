"""Password reset with end-to-end key rotation.

Resetting the password creates a brand-new master key. Messages encrypted
under the old master key can no longer be read afterwards, which is why the
caller must pass `acknowledge_data_loss=True`.

States::

    IDLE -> VERIFYING -> ROTATING_KEYS -> PERSISTING -> SIGNED_OUT

Any failure moves the flow to FAILED. All key material is produced before the
first remote write.
"""

from __future__ import annotations

import asyncio
import enum
import logging

from aimednet.client.backend import AuthGateway, ProfileStore
from aimednet.client.keyring import KeySession
from aimednet.core.config import settings
from aimednet.core.exceptions import (
    AIMedNetError,
    BackendError,
    ConfigurationError,
    KeyRotationInconsistentError,
    PasswordResetError,
)
from aimednet.core.logger import get_logger
from aimednet.crypto.keys import (
    derive_key,
    export_master_key,
    generate_master_key,
    wrap_master_key,
)

DATA_LOSS_WARNING = (
    "Resetting your password creates new encryption keys. You will permanently "
    "lose access to all previous encrypted messages."
)


class ResetState(str, enum.Enum):
    IDLE = "idle"
    VERIFYING = "verifying"
    ROTATING_KEYS = "rotating_keys"
    PERSISTING = "persisting"
    SIGNED_OUT = "signed_out"
    FAILED = "failed"


class PasswordResetFlow:
    """Single-use runner for one password reset."""

    def __init__(
        self,
        auth: AuthGateway,
        profiles: ProfileStore,
        keyring: KeySession | None = None,
        logger: logging.Logger | None = None,
    ):
        self._auth = auth
        self._profiles = profiles
        self._keyring = keyring
        self._log = get_logger("password_reset", logger)
        self.state = ResetState.IDLE
        self.error: AIMedNetError | None = None

    def _enter(self, state: ResetState) -> None:
        self._log.info(f"Password reset: {self.state.value} -> {state.value}")
        self.state = state

    async def run(
        self,
        new_password: str,
        confirm_password: str,
        *,
        acknowledge_data_loss: bool = False,
    ) -> None:
        """
        Change the password and replace the wrapped master key.

        Raises:
            PasswordResetError: validation failed or a step was aborted.
            KeyRotationInconsistentError: the password changed but the new
                wrapped key could not be stored; support must intervene.
            ConfigurationError: the profile has no encryption salt.
            DerivationError: the KDF failed.
        """
        if self.state is not ResetState.IDLE:
            raise PasswordResetError("This password reset has already run")

        try:
            salt = await self._verify(new_password, confirm_password, acknowledge_data_loss)
            encrypted_master_key = await self._rotate_keys(new_password, salt)
            await self._persist(new_password, encrypted_master_key)
        except AIMedNetError as exc:
            self.error = exc
            self._enter(ResetState.FAILED)
            self._log.error(f"Password reset aborted: {exc}")
            raise

        await self._sign_out()

    async def _verify(
        self, new_password: str, confirm_password: str, acknowledged: bool
    ) -> str:
        self._enter(ResetState.VERIFYING)

        if new_password != confirm_password:
            raise PasswordResetError("Passwords do not match.")
        if len(new_password) < settings.MIN_PASSWORD_LENGTH:
            raise PasswordResetError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long."
            )
        if not acknowledged:
            raise PasswordResetError(DATA_LOSS_WARNING)

        user = await self._auth.current_user()
        if user is None:
            raise PasswordResetError("You must be logged in to update your password.")

        profile = await self._profiles.get_profile_keys()
        if not profile.encryption_salt:
            raise ConfigurationError(
                "Critical error: Missing encryption salt. Cannot reset password. "
                "Please contact support."
            )
        return profile.encryption_salt

    async def _rotate_keys(self, new_password: str, salt: str) -> str:
        self._enter(ResetState.ROTATING_KEYS)

        # Same salt, new password: a new personal key in the same namespace
        personal_key = await asyncio.to_thread(derive_key, new_password, salt)
        master_key = generate_master_key()
        try:
            return wrap_master_key(export_master_key(master_key), personal_key)
        finally:
            master_key.clear()
            personal_key.clear()

    async def _persist(self, new_password: str, encrypted_master_key: str) -> None:
        self._enter(ResetState.PERSISTING)

        try:
            await self._auth.update_password(new_password)
        except BackendError as exc:
            raise PasswordResetError(
                f"Could not change your password; nothing was changed. ({exc})"
            ) from exc

        try:
            await self._profiles.save_encrypted_master_key(encrypted_master_key)
        except BackendError as exc:
            raise KeyRotationInconsistentError(
                "Your password was changed but your new encryption keys could not "
                "be saved. Please contact support before signing in again."
            ) from exc

    async def _sign_out(self) -> None:
        if self._keyring is not None:
            self._keyring.lock()
        try:
            await self._auth.sign_out()
        except BackendError as exc:
            self._log.warning(f"Sign-out after password reset failed: {exc}")
        self._enter(ResetState.SIGNED_OUT)
