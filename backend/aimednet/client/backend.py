"""Collaborator contracts the client services depend on.

The encryption and counter components never talk to a concrete backend; they
receive objects satisfying these protocols. `aimednet.client.http.ApiBackend`
and `aimednet.client.realtime.RedisRealtimeClient` are the production
implementations; tests pass in-memory doubles.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any, Protocol

from aimednet.core.logger import get_logger
from aimednet.schemas.auth import SessionUser
from aimednet.schemas.messages import ConversationRead, DirectMessageRead
from aimednet.schemas.profiles import ProfileKeys
from aimednet.schemas.realtime import ChangeEvent

ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]


class AuthGateway(Protocol):
    async def current_user(self) -> SessionUser | None: ...

    async def update_password(self, new_password: str) -> None: ...

    async def sign_out(self) -> None: ...


class ProfileStore(Protocol):
    async def get_profile_keys(self) -> ProfileKeys: ...

    async def create_encrypted_master_key(self, encrypted_master_key: str) -> None: ...

    async def save_encrypted_master_key(self, encrypted_master_key: str) -> None: ...


class MessageStore(Protocol):
    async def list_conversations(self) -> list[ConversationRead]: ...

    async def list_messages(self, conversation_id: int) -> list[DirectMessageRead]: ...

    async def post_message(
        self,
        conversation_id: int,
        content: str,
        parent_message_id: int | None = None,
    ) -> DirectMessageRead: ...

    async def edit_message(self, message_id: int, content: str) -> DirectMessageRead: ...

    async def mark_conversation_read(self, conversation_id: int) -> None: ...


class CountsBackend(Protocol):
    async def count_pending_requests(self) -> int: ...

    async def count_unread_messages(self) -> int: ...

    async def count_unread_notifications(self) -> int: ...

    async def mark_notification_read(self, notification_id: int) -> None: ...


class NotificationDispatcher(Protocol):
    async def dispatch(self, kind: str, payload: dict[str, Any]) -> None: ...


_subscription_ids = itertools.count(1)


@dataclass(eq=False)
class Subscription:
    """A live change-feed listener for one table, optionally row-filtered."""

    table: str
    handler: ChangeHandler
    column: str | None = None
    value: Any = None
    id: int = field(default_factory=lambda: next(_subscription_ids))

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.column is None:
            return True
        return str(event.column_value(self.column)) == str(self.value)


class RealtimeClient(Protocol):
    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        *,
        column: str | None = None,
        value: Any = None,
    ) -> Subscription: ...

    async def unsubscribe(self, subscription: Subscription) -> None: ...


# Strong references so pending fire-and-forget tasks are not garbage collected
_background_tasks: set[asyncio.Task] = set()


def fire_and_forget(
    coro: Coroutine[Any, Any, Any],
    description: str,
    logger: logging.Logger | None = None,
) -> asyncio.Task:
    """Run `coro` in the background; its failure is logged and nothing else."""
    log = get_logger("client", logger)
    task = asyncio.ensure_future(coro)
    _background_tasks.add(task)

    def _done(finished: asyncio.Task) -> None:
        _background_tasks.discard(finished)
        if finished.cancelled():
            return
        exc = finished.exception()
        if exc is not None:
            log.warning(f"{description} failed: {exc}")

    task.add_done_callback(_done)
    return task
