"""
Core infrastructure for DynamoDB access.

- TableGateway: async wrapper over a boto3 DynamoDB table
- Batch writer and query/scan iterators used by the data store
"""

from .batching import (
    MAX_BATCH_SIZE,
    batch_write_requests,
    delete_request,
    iter_query,
    iter_scan,
    iterate_query,
    iterate_scan,
    put_request,
)
from .table_gateway import TableGateway, create_table_gateway, map_dynamodb_error

__all__ = [
    "TableGateway",
    "create_table_gateway",
    "map_dynamodb_error",
    "MAX_BATCH_SIZE",
    "batch_write_requests",
    "put_request",
    "delete_request",
    "iter_query",
    "iter_scan",
    "iterate_query",
    "iterate_scan",
]
