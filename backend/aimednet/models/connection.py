from datetime import UTC, datetime

from sqlmodel import Field, SQLModel

CONNECTION_PENDING = "pending"
CONNECTION_ACCEPTED = "accepted"
CONNECTION_DECLINED = "declined"


class Connection(SQLModel, table=True):
    """Connection request from `requester_id` to `addressee_id`."""

    __tablename__ = "connections"

    id: int | None = Field(default=None, primary_key=True)
    requester_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    addressee_id: int = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    status: str = Field(default=CONNECTION_PENDING, max_length=16)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
