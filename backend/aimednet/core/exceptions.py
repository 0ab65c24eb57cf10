"""Error taxonomy shared by the client library and the backend adapters."""


class AIMedNetError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(AIMedNetError):
    """Required secret material (e.g. the encryption salt) is missing."""


class DerivationError(AIMedNetError):
    """Password-based key derivation failed."""


class DecryptionError(AIMedNetError):
    """Malformed payload or failed authentication while decrypting."""


class MasterKeyUnwrapError(DecryptionError):
    """The wrapped master key could not be opened with the personal key.

    Usually a wrong password or a corrupted profile field. Callers must surface
    this to the user instead of generating a replacement master key.
    """


class KeyLockedError(AIMedNetError):
    """A key operation was attempted while the key session is locked."""


class BackendError(AIMedNetError):
    """Any failure reported by, or while talking to, the remote store."""

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.detail
        return f"{self.status_code}: {self.detail}"


class PasswordResetError(AIMedNetError):
    """The password-reset key rotation was refused or aborted."""

    requires_support = False


class KeyRotationInconsistentError(PasswordResetError):
    """The auth password changed but the new wrapped master key was not saved."""

    requires_support = True
