"""Encrypted direct messaging on top of the key session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from aimednet.client.backend import MessageStore, NotificationDispatcher, fire_and_forget
from aimednet.client.keyring import KeySession
from aimednet.client.optimistic import optimistic_update
from aimednet.core.exceptions import BackendError
from aimednet.core.logger import get_logger
from aimednet.schemas.messages import ConversationRead, DirectMessageRead


@dataclass
class DecryptedMessage:
    id: int
    conversation_id: int
    sender_id: int
    recipient_id: int
    content: str
    created_at: datetime
    is_read: bool = False
    is_edited: bool = False
    parent_message_id: int | None = None
    parent: DecryptedMessage | None = None


class ConversationService:
    def __init__(
        self,
        messages: MessageStore,
        keyring: KeySession,
        dispatcher: NotificationDispatcher | None = None,
        logger: logging.Logger | None = None,
    ):
        self._messages = messages
        self._keyring = keyring
        self._dispatcher = dispatcher
        self._log = get_logger("messaging", logger)

    def _to_plain(
        self, row: DirectMessageRead, content: str | None = None
    ) -> DecryptedMessage:
        if content is None:
            content = self._keyring.decrypt_for_display(row.conversation_id, row.content)
        return DecryptedMessage(
            id=row.id,
            conversation_id=row.conversation_id,
            sender_id=row.sender_id,
            recipient_id=row.recipient_id,
            content=content,
            created_at=row.created_at,
            is_read=row.is_read,
            is_edited=row.is_edited,
            parent_message_id=row.parent_message_id,
        )

    async def send_message(
        self,
        conversation_id: int,
        recipient_id: int,
        plaintext: str,
        parent_message_id: int | None = None,
    ) -> DecryptedMessage:
        """
        Encrypt and post a message, then request a downstream notification.

        The notification request runs in the background; its failure is logged
        and does not affect the send.
        """
        payload = self._keyring.encrypt_message(conversation_id, plaintext)
        row = await self._messages.post_message(conversation_id, payload, parent_message_id)

        if self._dispatcher is not None:
            fire_and_forget(
                self._dispatcher.dispatch(
                    "new_direct_message",
                    {
                        "conversation_id": conversation_id,
                        "recipient_id": recipient_id,
                        "message_id": row.id,
                    },
                ),
                description="new_direct_message dispatch",
                logger=self._log,
            )

        return self._to_plain(row, plaintext)

    async def load_messages(self, conversation_id: int) -> list[DecryptedMessage]:
        """Decrypted messages in send order, with reply parents attached."""
        rows = await self._messages.list_messages(conversation_id)
        plain = [self._to_plain(row) for row in rows]

        by_id = {message.id: message for message in plain}
        for message in plain:
            if message.parent_message_id is not None:
                message.parent = by_id.get(message.parent_message_id)

        return sorted(plain, key=lambda m: (m.created_at, m.id))

    async def edit_message(
        self, conversation_id: int, message_id: int, plaintext: str
    ) -> DecryptedMessage:
        payload = self._keyring.encrypt_message(conversation_id, plaintext)
        row = await self._messages.edit_message(message_id, payload)
        return self._to_plain(row, plaintext)


class Inbox:
    """Conversation list with per-conversation unread counts."""

    def __init__(self, messages: MessageStore, logger: logging.Logger | None = None):
        self._messages = messages
        self._log = get_logger("inbox", logger)
        self.conversations: list[ConversationRead] = []

    @property
    def total_unread(self) -> int:
        return sum(conversation.unread_count for conversation in self.conversations)

    async def refresh(self) -> list[ConversationRead]:
        self.conversations = await self._messages.list_conversations()
        return self.conversations

    def _find(self, conversation_id: int) -> ConversationRead:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        raise KeyError(conversation_id)

    async def mark_read(self, conversation_id: int) -> None:
        """
        Zero the conversation's unread count immediately, then confirm.

        Raises:
            BackendError: the backend rejected the update; the count is restored.
        """
        conversation = self._find(conversation_id)

        def apply(value: int) -> None:
            conversation.unread_count = value

        try:
            await optimistic_update(
                lambda: conversation.unread_count,
                apply,
                0,
                lambda: self._messages.mark_conversation_read(conversation_id),
            )
        except BackendError as exc:
            self._log.error(f"Could not mark conversation {conversation_id} read: {exc}")
            raise
