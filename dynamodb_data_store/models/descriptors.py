"""
Item models exchanged between the data store and the SDK.

The store never deserializes payloads: an ItemDescriptor carries the caller's
version, a deleted flag, and the opaque serialized item.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ItemDescriptor(BaseModel):
    """A versioned, serialized item or a tombstone."""

    version: int = Field(..., ge=0, description="Caller-assigned monotonic version")
    deleted: bool = Field(default=False, description="True if this item is a tombstone")
    serialized_item: Optional[str] = Field(default=None, description="Opaque serialized payload")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def validate_payload(self):
        """Live items must carry a payload."""
        if not self.deleted and self.serialized_item is None:
            raise ValueError("serialized_item is required unless the item is deleted")
        return self


class UpsertOutcome(str, Enum):
    """Result of a conditional upsert."""
    APPLIED = "applied"
    SUPERSEDED = "superseded"


class UpsertResult(BaseModel):
    """Outcome of an upsert.

    A superseded result means another writer already stored an equal or newer
    version. ``current`` holds that stored item when read-back was requested.
    """

    outcome: UpsertOutcome
    current: Optional[ItemDescriptor] = None

    model_config = ConfigDict(frozen=True)

    @property
    def applied(self) -> bool:
        return self.outcome == UpsertOutcome.APPLIED
