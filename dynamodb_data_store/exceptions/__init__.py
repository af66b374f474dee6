# Base exception class
from .base import DataStoreError

from .domain_exceptions import (
    BatchWriteError,
    ConflictError,
    ConnectionError,
    DataCorruptionError,
    RetryableError,
    ValidationError,
)

__all__ = [
    # Base exception
    "DataStoreError",

    # Domain exceptions (alphabetically ordered)
    "BatchWriteError",
    "ConflictError",
    "ConnectionError",
    "DataCorruptionError",
    "RetryableError",
    "ValidationError",
]
