from datetime import datetime

from pydantic import BaseModel, Field


class ConversationStart(BaseModel):
    """Open (or reuse) the conversation with another user."""

    recipient_id: int


class ConversationRead(BaseModel):
    """Inbox row."""

    id: int
    other_user_id: int
    other_user_name: str
    unread_count: int = 0
    last_message_at: datetime | None = None


class DirectMessageCreate(BaseModel):
    """Post an already-encrypted message body."""

    content: str = Field(..., min_length=1)
    parent_message_id: int | None = None


class DirectMessageUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class DirectMessageRead(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    recipient_id: int
    parent_message_id: int | None = None
    content: str  # EncryptedPayload
    is_read: bool
    is_edited: bool
    created_at: datetime
    updated_at: datetime
