from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class UserBase(SQLModel):
    """Base profile fields."""

    email: str = Field(unique=True, index=True)
    full_name: str = Field(max_length=100)
    is_active: bool = True


class User(UserBase, table=True):
    """Profile record, including the end-to-end encryption key fields."""

    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str

    # Generated once at signup; no route ever rewrites it
    encryption_salt: str
    # "iv.ciphertext" of the master key, wrapped client side; None until first unlock
    encrypted_user_master_key: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
