"""Subscriber side of the backend change feed (Redis pub/sub)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as aioredis
from pydantic import ValidationError

from aimednet.client.backend import ChangeHandler, Subscription
from aimednet.core.config import settings
from aimednet.core.logger import get_logger
from aimednet.core.realtime import channel_for
from aimednet.schemas.realtime import ChangeEvent


class RedisRealtimeClient:
    """
    Delivers one user's ChangeEvents (`realtime:<table>:<user_id>`) to
    subscribers. The server only publishes a row on the channels of the users
    it concerns; column filters are still applied here.

    One pub/sub connection is shared by every subscription; a channel is
    joined on its first subscriber and left when its last one goes away.
    """

    def __init__(
        self,
        user_id: int,
        redis_url: str | None = None,
        client: aioredis.Redis | None = None,
        logger: logging.Logger | None = None,
    ):
        self._redis = client or aioredis.from_url(
            redis_url or settings.REDIS_URL, decode_responses=True
        )
        self.user_id = user_id
        self._log = get_logger("realtime", logger)
        self._pubsub = self._redis.pubsub()
        self._subscriptions: dict[int, Subscription] = {}
        self._listener: asyncio.Task | None = None

    def _channels_in_use(self) -> set[str]:
        return {channel_for(s.table, self.user_id) for s in self._subscriptions.values()}

    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        *,
        column: str | None = None,
        value: Any = None,
    ) -> Subscription:
        subscription = Subscription(table=table, handler=handler, column=column, value=value)
        channel = channel_for(table, self.user_id)
        if channel not in self._channels_in_use():
            await self._pubsub.subscribe(channel)
        self._subscriptions[subscription.id] = subscription

        if self._listener is None or self._listener.done():
            self._listener = asyncio.create_task(self._listen())
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscriptions.pop(subscription.id, None) is None:
            return
        channel = channel_for(subscription.table, self.user_id)
        if channel not in self._channels_in_use():
            await self._pubsub.unsubscribe(channel)

    async def _listen(self) -> None:
        while self._subscriptions:
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message is None or message.get("type") != "message":
                continue
            await self.deliver(message["data"])

    async def deliver(self, raw: str | bytes) -> None:
        """Parse one published event and run every matching handler."""
        try:
            event = ChangeEvent.model_validate_json(raw)
        except ValidationError as exc:
            self._log.warning(f"Ignoring malformed change event: {exc}")
            return

        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(event):
                continue
            try:
                await subscription.handler(event)
            except Exception:
                self._log.exception(
                    f"Change handler for {subscription.table} raised"
                )

    async def aclose(self) -> None:
        """Drop every subscription and close the connection."""
        self._subscriptions.clear()
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self._pubsub.unsubscribe()
        await self._pubsub.aclose()
        await self._redis.aclose()
