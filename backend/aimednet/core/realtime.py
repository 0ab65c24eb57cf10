"""Publishing side of the change feed and the notification outbox."""

import json
from datetime import UTC, datetime
from typing import Any

import redis

from aimednet.core.config import settings
from aimednet.core.logger import logger
from aimednet.core.sessions import _get_redis_client
from aimednet.schemas.realtime import ChangeEvent, ChangeType

# table -> columns naming the users a row concerns
AUDIENCE_COLUMNS: dict[str, tuple[str, ...]] = {
    "connections": ("requester_id", "addressee_id"),
    "direct_messages": ("sender_id", "recipient_id"),
    "notifications": ("user_id",),
    "profiles": ("id",),
}


def channel_for(table: str, user_id: int) -> str:
    """Per-user channel: a subscriber only ever sees rows that concern it."""
    return f"{settings.REALTIME_CHANNEL_PREFIX}{table}:{user_id}"


def audience(table: str, *records: dict[str, Any]) -> set[int]:
    users = set()
    for record in records:
        for column in AUDIENCE_COLUMNS.get(table, ()):
            value = record.get(column)
            if value is not None:
                users.add(int(value))
    return users


def publish_change(
    table: str,
    event_type: ChangeType,
    record: dict[str, Any] | None = None,
    old_record: dict[str, Any] | None = None,
) -> None:
    """Announce a committed row change. Never fails the calling request."""
    event = ChangeEvent(
        table=table,
        event_type=event_type,
        record=record or {},
        old_record=old_record or {},
        commit_timestamp=datetime.now(UTC),
    )
    users = audience(table, event.record, event.old_record)
    if not users:
        logger.warning(f"No audience for {event_type} on {table}; not published")
        return

    message = event.model_dump_json()
    try:
        redis_client = _get_redis_client()
        for user_id in sorted(users):
            redis_client.publish(channel_for(table, user_id), message)
    except (redis.RedisError, RuntimeError) as exc:
        logger.warning(f"Could not publish {event_type} on {table}: {exc}")


def enqueue_notification(kind: str, payload: dict[str, Any]) -> bool:
    """Push a downstream (e.g. email) notification job onto the outbox."""
    job = json.dumps({"type": kind, "payload": payload}, default=str)
    try:
        _get_redis_client().rpush(settings.NOTIFICATION_OUTBOX_KEY, job)
    except (redis.RedisError, RuntimeError) as exc:
        logger.warning(f"Could not enqueue {kind} notification: {exc}")
        return False
    return True


def row_payload(row) -> dict[str, Any]:
    """JSON-safe column values of a SQLModel row."""
    return row.model_dump(mode="json")
