from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

ChangeType = Literal["INSERT", "UPDATE", "DELETE"]


class ChangeEvent(BaseModel):
    """A row change on one backend table, as delivered to subscribers."""

    table: str
    event_type: ChangeType
    record: dict[str, Any] = {}
    old_record: dict[str, Any] = {}
    commit_timestamp: datetime | None = None

    def column_value(self, column: str) -> Any:
        """Value of a column in the new row, falling back to the old row."""
        if column in self.record:
            return self.record[column]
        return self.old_record.get(column)
