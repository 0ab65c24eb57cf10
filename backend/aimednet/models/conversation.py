from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class Conversation(SQLModel, table=True):
    """A one-to-one direct-message thread."""

    id: int | None = Field(default=None, primary_key=True)
    # Stored ordered (user_a_id < user_b_id) so a pair maps to one row
    user_a_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    user_b_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_message_at: datetime | None = None

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user_a_id, self.user_b_id)

    def other_participant(self, user_id: int) -> int:
        return self.user_b_id if user_id == self.user_a_id else self.user_a_id


class DirectMessage(SQLModel, table=True):
    """
    Direct message row. `content` is an EncryptedPayload produced client side;
    the server cannot read it.
    """

    __tablename__ = "direct_messages"

    id: int | None = Field(default=None, primary_key=True)
    conversation_id: int = Field(
        foreign_key="conversation.id", ondelete="CASCADE", index=True
    )
    sender_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    recipient_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    parent_message_id: int | None = Field(
        default=None, foreign_key="direct_messages.id"
    )
    content: str

    is_read: bool = False
    is_edited: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
