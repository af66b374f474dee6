"""
DynamoDB Data Store

A persistent data store for feature-flag SDKs backed by a single DynamoDB
table. Full data sets are written with a put-then-purge batch protocol,
individual updates use version-conditional writes, and readiness is signalled
by an inited marker item.
"""

from .config import DynamoDBConfig
from .exceptions import (
    BatchWriteError,
    ConflictError,
    ConnectionError,
    DataCorruptionError,
    DataStoreError,
    RetryableError,
    ValidationError,
)
from .models import (
    ALL_KINDS,
    FEATURES,
    SEGMENTS,
    DataKind,
    ItemDescriptor,
    UpsertOutcome,
    UpsertResult,
)
from .core import (
    TableGateway,
    create_table_gateway,
)
from .store import (
    BlockingDataStore,
    DynamoDBDataStore,
    create_blocking_data_store,
    create_data_store,
)
from .utils import PARTITION_KEY, SORT_KEY

__version__ = "1.0.0"
__all__ = [
    # Configuration
    "DynamoDBConfig",

    # Exceptions
    "BatchWriteError",
    "ConflictError",
    "ConnectionError",
    "DataCorruptionError",
    "DataStoreError",
    "RetryableError",
    "ValidationError",

    # Kinds and items
    "DataKind",
    "FEATURES",
    "SEGMENTS",
    "ALL_KINDS",
    "ItemDescriptor",
    "UpsertOutcome",
    "UpsertResult",

    # Table schema
    "PARTITION_KEY",
    "SORT_KEY",

    # Gateway
    "TableGateway",
    "create_table_gateway",

    # Data store
    "DynamoDBDataStore",
    "create_data_store",
    "BlockingDataStore",
    "create_blocking_data_store",
]
