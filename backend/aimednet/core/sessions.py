"""Redis-backed login sessions and the shared Redis client."""

from __future__ import annotations

import json
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import redis

from aimednet.core.config import settings
from aimednet.core.logger import logger

redis_client: redis.Redis | None = None


@dataclass
class SessionData:
    """Server-side session data."""

    user_id: int
    csrf_token: str
    created_at: datetime
    last_activity: datetime

    def to_json(self) -> str:
        return json.dumps(
            {
                "user_id": self.user_id,
                "csrf_token": self.csrf_token,
                "created_at": self.created_at.isoformat(),
                "last_activity": self.last_activity.isoformat(),
            }
        )

    @staticmethod
    def from_json(raw: str) -> SessionData:
        data = json.loads(raw)
        return SessionData(
            user_id=data["user_id"],
            csrf_token=data["csrf_token"],
            created_at=datetime.fromisoformat(data["created_at"]),
            last_activity=datetime.fromisoformat(data["last_activity"]),
        )

    def is_expired(self) -> bool:
        expiry_time = self.created_at + timedelta(
            minutes=settings.SESSION_TIMEOUT_MINUTES
        )
        return datetime.now(timezone.utc) > expiry_time


def _get_redis_client() -> redis.Redis:
    """
    Lazy initialization of Redis client.
    Each worker process will initialize on first use.
    """
    global redis_client

    if redis_client is not None:
        return redis_client

    last_error = None
    for attempt in range(1, 6):
        try:
            client = redis.from_url(settings.REDIS_URL, decode_responses=True)
            client.ping()
            redis_client = client
            logger.info(f"Connected to Redis (attempt {attempt})")
            return redis_client
        except redis.RedisError as exc:
            last_error = exc
            logger.warning(
                f"Redis connection attempt {attempt}/5 failed",
                extra={"error": str(exc)},
            )
            if attempt < 5:
                time.sleep(2.0)

    logger.critical(
        "Could not connect to Redis after 5 attempts",
        extra={"redis_url": settings.REDIS_URL, "error": str(last_error)},
    )
    raise RuntimeError(f"Redis connection failed: {last_error}")


def init_redis() -> None:
    """Initialize Redis connection with retry logic."""
    _get_redis_client()


def _session_key(session_id: str) -> str:
    return settings.REDIS_SESSION_PREFIX + session_id


def create_session(user_id: int) -> tuple[str, str]:
    """
    Create a new session.

    Returns:
        Tuple of (session_id, csrf_token)
    """
    client = _get_redis_client()

    session_id = secrets.token_urlsafe(settings.SESSION_ID_LENGTH)
    csrf_token = secrets.token_urlsafe(32)
    now = datetime.now(timezone.utc)

    session_data = SessionData(
        user_id=user_id,
        csrf_token=csrf_token,
        created_at=now,
        last_activity=now,
    )
    client.setex(
        _session_key(session_id),
        settings.SESSION_TIMEOUT_MINUTES * 60,
        session_data.to_json(),
    )
    return session_id, csrf_token


def get_session(session_id: str) -> SessionData | None:
    """Return the live session for an id, refreshing its activity stamp."""
    client = _get_redis_client()
    raw = client.get(_session_key(session_id))
    if raw is None:
        return None

    session_data = SessionData.from_json(raw)
    if session_data.is_expired():
        delete_session(session_id)
        return None

    session_data.last_activity = datetime.now(timezone.utc)
    client.setex(
        _session_key(session_id),
        settings.SESSION_TIMEOUT_MINUTES * 60,
        session_data.to_json(),
    )
    return session_data


def delete_session(session_id: str) -> bool:
    """Delete a session. Returns False if it did not exist."""
    client = _get_redis_client()
    return client.delete(_session_key(session_id)) > 0
