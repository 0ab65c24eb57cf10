from datetime import datetime

from pydantic import BaseModel


class ConnectionCreate(BaseModel):
    addressee_id: int


class ConnectionRead(BaseModel):
    id: int
    requester_id: int
    addressee_id: int
    status: str
    created_at: datetime
