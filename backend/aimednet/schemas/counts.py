from pydantic import BaseModel


class CountResponse(BaseModel):
    """Authoritative count returned by the count endpoints."""

    count: int
