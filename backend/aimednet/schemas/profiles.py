from pydantic import BaseModel


class ProfileKeys(BaseModel):
    """Key fields of the profile record. Never contains a plaintext key."""

    encryption_salt: str | None = None
    encrypted_user_master_key: str | None = None


class MasterKeyUpdate(BaseModel):
    """Replace the wrapped master key (first unlock or password reset)."""

    encrypted_user_master_key: str
