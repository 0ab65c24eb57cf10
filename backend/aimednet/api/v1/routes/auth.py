"""Authentication routes with Redis session store and encryption salt issuance."""

# ENDPOINTS:
# POST   /auth/signup    - Registration; issues the immutable encryption salt
# POST   /auth/login     - Login with session creation
# POST   /auth/logout    - Logout and session deletion
# GET    /auth/me        - Current user with key fields
# POST   /auth/password  - Change login password (hash only; keys are client side)

import asyncio
import re
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlmodel import Session, select

from aimednet.core.config import settings
from aimednet.core.db import get_db_session
from aimednet.core.logger import logger
from aimednet.core.rate_limiter import RateLimiter
from aimednet.core.security import get_password_hash, verify_password
from aimednet.core.sessions import create_session, delete_session, get_session
from aimednet.crypto.keys import generate_salt
from aimednet.models.user import User
from aimednet.schemas.auth import (
    LoginRequest,
    PasswordUpdateRequest,
    SessionUser,
    SignupRequest,
    SignupResponse,
    StatusResponse,
)

router = APIRouter(prefix="/auth", tags=["auth"])

EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_password_length(password: str) -> None:
    if (
        len(password) < settings.MIN_PASSWORD_LENGTH
        or len(password) > settings.MAX_PASSWORD_LENGTH
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Password must be {settings.MIN_PASSWORD_LENGTH}-"
                f"{settings.MAX_PASSWORD_LENGTH} characters"
            ),
        )


def validate_email_format(email: str) -> str:
    """Validate email format and return normalized email."""
    email = (email or "").strip().lower()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is required",
        )
    if len(email) > 254 or not EMAIL_REGEX.match(email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid email format",
        )
    return email


def get_current_user(
    request: Request,
    db_session: Session = Depends(get_db_session),
) -> User:
    """
    Get current authenticated user from session cookie.

    Raises:
        HTTPException: If session is invalid or user not found
    """
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    session_data = get_session(session_id)
    if not session_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )

    user = db_session.get(User, session_data.user_id)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def _session_user(user: User, csrf_token: str | None = None) -> SessionUser:
    return SessionUser(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        encryption_salt=user.encryption_salt,
        encrypted_user_master_key=user.encrypted_user_master_key,
        csrf_token=csrf_token,
    )


@router.post(
    "/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED
)
def signup(
    signup_request: SignupRequest,
    db_session: Session = Depends(get_db_session),
) -> User:
    """
    Register a new user.

    The encryption salt is generated here, once. The master key is created
    and wrapped by the client on its first unlock.
    """
    email = validate_email_format(signup_request.email)
    validate_password_length(signup_request.password)

    existing_user = db_session.exec(select(User).where(User.email == email)).first()
    if existing_user:
        # Generic error to prevent email enumeration
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unable to create account",
        )

    db_user = User(
        email=email,
        full_name=signup_request.full_name.strip(),
        hashed_password=get_password_hash(signup_request.password),
        encryption_salt=generate_salt(),
    )
    db_session.add(db_user)
    db_session.commit()
    db_session.refresh(db_user)

    logger.info(f"Registered user {db_user.id}")
    return db_user


@router.post("/login", response_model=SessionUser)
async def login(
    login_request: LoginRequest,
    response: Response,
    db_session: Session = Depends(get_db_session),
) -> SessionUser:
    """
    Authenticate user and create session.

    Rate limited to 5 attempts per 5 minutes per email, with a small
    artificial delay and a generic error message.
    """
    email = validate_email_format(login_request.email)

    if RateLimiter.is_rate_limited(email, max_attempts=5):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts",
        )
    RateLimiter.record_attempt(email)

    await asyncio.sleep(0.1 + (hash(email) % 200) / 1000)

    user = db_session.exec(select(User).where(User.email == email)).first()
    if not user or not verify_password(login_request.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account inactive",
        )

    session_id, csrf_token = create_session(user_id=user.id)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        secure=True,
        samesite="lax",
        max_age=settings.SESSION_TIMEOUT_MINUTES * 60,
    )
    return _session_user(user, csrf_token)


@router.post("/logout", response_model=StatusResponse)
def logout(
    request: Request,
    response: Response,
    _: User = Depends(get_current_user),
) -> StatusResponse:
    """Log out user and delete session."""
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if session_id:
        delete_session(session_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return StatusResponse(message="Logged out successfully")


@router.get("/me", response_model=SessionUser)
def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> SessionUser:
    return _session_user(current_user)


@router.post("/password", response_model=StatusResponse)
def update_password(
    update_request: PasswordUpdateRequest,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> StatusResponse:
    """
    Change the login password.

    Only the Argon2 hash changes. The salt is left untouched and the client is
    responsible for replacing the wrapped master key afterwards.
    """
    validate_password_length(update_request.new_password)

    current_user.hashed_password = get_password_hash(update_request.new_password)
    current_user.updated_at = datetime.now(UTC)
    db_session.add(current_user)
    db_session.commit()

    logger.info(f"Password changed for user {current_user.id}")
    return StatusResponse(message="Password updated")
