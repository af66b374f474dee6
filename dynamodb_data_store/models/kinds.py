"""
Data kind descriptors.

A kind names a collection of items (feature flags, segments) and knows how to
build the serialized form of its own tombstones. Kinds are plain data: add a
new one by constructing a DataKind, not by subclassing.
"""

import json
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from .descriptors import ItemDescriptor


def serialize_tombstone(key: str, version: int) -> str:
    """Default serialized tombstone: the minimal JSON object for a deleted item."""
    return json.dumps({'key': key, 'version': version, 'deleted': True}, separators=(',', ':'))


class DataKind(BaseModel):
    """Descriptor for one kind of stored entity."""

    name: str = Field(..., min_length=1, description="Kind name, used as the namespace")
    make_tombstone: Callable[[str, int], str] = Field(
        default=serialize_tombstone,
        description="Builds the serialized placeholder for a deleted item"
    )

    model_config = ConfigDict(frozen=True)

    def tombstone(self, key: str, version: int) -> ItemDescriptor:
        """Return a deleted ItemDescriptor for key at version."""
        return ItemDescriptor(
            version=version,
            deleted=True,
            serialized_item=self.make_tombstone(key, version)
        )

    def __str__(self) -> str:
        return self.name


FEATURES = DataKind(name="features")
SEGMENTS = DataKind(name="segments")

ALL_KINDS = (FEATURES, SEGMENTS)
