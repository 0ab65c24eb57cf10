"""Live badge counts: pending requests, unread messages, unread notifications.

Counts are never patched from event contents. Any change event on a watched
table triggers a refetch of the authoritative count for that table.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from aimednet.client.backend import CountsBackend, RealtimeClient, Subscription
from aimednet.client.optimistic import optimistic_update
from aimednet.core.exceptions import BackendError
from aimednet.core.logger import get_logger
from aimednet.schemas.realtime import ChangeEvent

REQUESTS = "requests"
INBOX = "inbox"
NOTIFICATIONS = "notifications"

# counter -> (table, column holding the user the row is addressed to)
WATCHED_TABLES = {
    REQUESTS: ("connections", "addressee_id"),
    INBOX: ("direct_messages", "recipient_id"),
    NOTIFICATIONS: ("notifications", "user_id"),
}


@dataclass(frozen=True)
class CountsSnapshot:
    request_count: int
    unread_inbox_count: int
    unread_notif_count: int


CountsListener = Callable[[CountsSnapshot], None]


class SocialCounters:
    def __init__(
        self,
        backend: CountsBackend,
        realtime: RealtimeClient,
        logger: logging.Logger | None = None,
    ):
        self._backend = backend
        self._realtime = realtime
        self._log = get_logger("counters", logger)
        self._counts = {name: 0 for name in WATCHED_TABLES}
        # Refetch tokens: the newest one issued and the one whose value is shown
        self._issued = {name: 0 for name in WATCHED_TABLES}
        self._applied = {name: 0 for name in WATCHED_TABLES}
        self._subscriptions: list[Subscription] = []
        self._listeners: list[CountsListener] = []
        self._generation = 0
        self.user_id: int | None = None

    @property
    def request_count(self) -> int:
        return self._counts[REQUESTS]

    @property
    def unread_inbox_count(self) -> int:
        return self._counts[INBOX]

    @property
    def unread_notif_count(self) -> int:
        return self._counts[NOTIFICATIONS]

    def snapshot(self) -> CountsSnapshot:
        return CountsSnapshot(
            request_count=self.request_count,
            unread_inbox_count=self.unread_inbox_count,
            unread_notif_count=self.unread_notif_count,
        )

    def add_listener(self, listener: CountsListener) -> Callable[[], None]:
        """Call `listener` with a snapshot on every change. Returns a remover."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _set(self, counter: str, value: int) -> None:
        if self._counts[counter] == value:
            return
        self._counts[counter] = value
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def _fetcher(self, counter: str) -> Callable[[], Awaitable[int]]:
        return {
            REQUESTS: self._backend.count_pending_requests,
            INBOX: self._backend.count_unread_messages,
            NOTIFICATIONS: self._backend.count_unread_notifications,
        }[counter]

    async def start(self, user_id: int) -> None:
        """Fetch every count once, then follow changes for `user_id`."""
        if self.user_id is not None:
            await self.stop()
        self.user_id = user_id
        self._generation += 1

        await asyncio.gather(*(self.refresh(name) for name in WATCHED_TABLES))

        for counter, (table, column) in WATCHED_TABLES.items():
            subscription = await self._realtime.subscribe(
                table,
                self._handler_for(counter),
                column=column,
                value=user_id,
            )
            self._subscriptions.append(subscription)
        self._log.info(f"Following social counts for user {user_id}")

    def _handler_for(self, counter: str):
        async def on_change(event: ChangeEvent) -> None:
            self._log.debug(f"{event.event_type} on {event.table}; refetching {counter}")
            await self.refresh(counter)

        return on_change

    async def refresh(self, counter: str) -> None:
        """
        Refetch one count. A result older than the value already shown is
        discarded; a failed fetch keeps the stale value.
        """
        generation = self._generation
        self._issued[counter] += 1
        token = self._issued[counter]

        try:
            value = await self._fetcher(counter)()
        except BackendError as exc:
            self._log.error(f"Failed to fetch {counter} count: {exc}")
            return

        if generation != self._generation:
            return
        if token < self._applied[counter]:
            self._log.debug(f"Dropping stale {counter} count (token {token})")
            return
        self._applied[counter] = token
        self._set(counter, value)

    async def mark_notification_as_read(self, notification_id: int) -> None:
        """
        Decrement the unread notification count now, confirm remotely, then
        refetch the authoritative count.

        Raises:
            BackendError: the update was rejected. The count is restored
                unless a newer fetched count was applied in the meantime.
        """
        generation = self._generation
        applied = self._applied[NOTIFICATIONS]

        def unchanged_since_call() -> bool:
            return (
                generation == self._generation
                and applied == self._applied[NOTIFICATIONS]
            )

        try:
            await optimistic_update(
                lambda: self._counts[NOTIFICATIONS],
                lambda value: self._set(NOTIFICATIONS, value),
                max(0, self._counts[NOTIFICATIONS] - 1),
                lambda: self._backend.mark_notification_read(notification_id),
                restore_if=unchanged_since_call,
            )
        except BackendError as exc:
            self._log.error(f"Could not mark notification {notification_id} read: {exc}")
            raise

        # An already-read notification publishes no change event
        if generation == self._generation:
            await self.refresh(NOTIFICATIONS)

    async def stop(self) -> None:
        """Release every subscription and reset the counts."""
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await self._realtime.unsubscribe(subscription)
        self._generation += 1
        if self.user_id is not None:
            self._log.info(f"Stopped social counts for user {self.user_id}")
        self.user_id = None
        for name in WATCHED_TABLES:
            self._issued[name] = 0
            self._applied[name] = 0
            self._set(name, 0)
