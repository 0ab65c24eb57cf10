from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationRead(BaseModel):
    id: int
    user_id: int
    actor_id: int | None = None
    type: str
    entity_id: int | None = None
    is_read: bool
    created_at: datetime


class DispatchRequest(BaseModel):
    """Fire-and-forget request for a downstream (e.g. email) notification."""

    type: str = Field(..., min_length=1, max_length=64)
    payload: dict[str, Any] = {}
