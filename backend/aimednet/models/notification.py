from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class Notification(SQLModel, table=True):
    """In-app notification addressed to one user."""

    __tablename__ = "notifications"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    actor_id: int | None = Field(default=None, foreign_key="user.id")
    type: str = Field(max_length=64)
    entity_id: int | None = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
