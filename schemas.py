from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EntryIn(BaseModel):
    """Create payload.

    Enum membership, ranges and the note denylist are checked by
    ``validation.validate_entry``, which reports every violation at once.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    kind: Optional[str] = Field(default=None, alias="type")
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    note: Optional[str] = None
    occurred_at: Optional[datetime] = Field(default=None, alias="date")


class EntryPatch(BaseModel):
    """Partial update; only fields present in the request are applied."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    kind: Optional[str] = Field(default=None, alias="type")
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    note: Optional[str] = None
    occurred_at: Optional[datetime] = Field(default=None, alias="date")

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True)
