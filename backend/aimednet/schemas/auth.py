from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    """Signup request schema."""

    email: str = Field(..., min_length=1, max_length=254)
    full_name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)


class SignupResponse(BaseModel):
    """Signup response schema."""

    id: int
    email: str
    full_name: str
    encryption_salt: str


class LoginRequest(BaseModel):
    """Login request schema."""

    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=500)


class SessionUser(BaseModel):
    """Authenticated user, as returned by login and /auth/me."""

    id: int
    email: str
    full_name: str
    encryption_salt: str
    encrypted_user_master_key: str | None = None  # For client-side unwrapping
    csrf_token: str | None = None


class PasswordUpdateRequest(BaseModel):
    """Change the login password of the current session's user."""

    new_password: str = Field(..., min_length=8, max_length=128)


class StatusResponse(BaseModel):
    message: str
