from .descriptors import ItemDescriptor, UpsertOutcome, UpsertResult
from .kinds import ALL_KINDS, FEATURES, SEGMENTS, DataKind, serialize_tombstone

__all__ = [
    # Kinds
    "DataKind",
    "FEATURES",
    "SEGMENTS",
    "ALL_KINDS",
    "serialize_tombstone",

    # Items
    "ItemDescriptor",
    "UpsertOutcome",
    "UpsertResult",
]
