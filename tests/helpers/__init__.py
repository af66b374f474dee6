"""
Test helpers for the DynamoDB data store.

- LimitedBatchGateway: gateway that enforces a small BatchWriteItem ceiling
  and only acknowledges part of every call
- clear_all_data: removes every item belonging to a prefix
"""

from typing import Any, Dict, List, Optional

from dynamodb_data_store import PARTITION_KEY, SORT_KEY, TableGateway, ValidationError
from dynamodb_data_store.core import batch_write_requests, delete_request, iterate_scan
from dynamodb_data_store.utils import build_projection_expression


class LimitedBatchGateway(TableGateway):
    """TableGateway whose batch writes accept at most max_items_per_call requests
    and process only accept_per_call of them, reporting the rest as unprocessed."""

    def __init__(self, config, dynamodb, max_items_per_call: int = 2, accept_per_call: int = 1):
        super().__init__(config, dynamodb)
        self.max_items_per_call = max_items_per_call
        self.accept_per_call = accept_per_call
        self.batch_calls: List[int] = []

    async def batch_write_item(self, requests: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.batch_calls.append(len(requests))
        if len(requests) > self.max_items_per_call:
            raise ValidationError(
                f"Too many items requested for the BatchWriteItem call: {len(requests)}"
            )
        accepted = requests[:self.accept_per_call]
        unprocessed = await super().batch_write_item(accepted)
        return unprocessed + requests[self.accept_per_call:]


async def clear_all_data(gateway: TableGateway, prefix: Optional[str] = None) -> None:
    """Delete every item whose namespace belongs to prefix (all items if None)."""
    key_prefix = "" if prefix is None else f"{prefix}:"
    projection, names = build_projection_expression([PARTITION_KEY, SORT_KEY])
    delete_requests = []

    def collect(item):
        if item[PARTITION_KEY].startswith(key_prefix):
            delete_requests.append(delete_request({PARTITION_KEY: item[PARTITION_KEY], SORT_KEY: item[SORT_KEY]}))

    await iterate_scan(
        gateway,
        collect,
        ConsistentRead=True,
        ProjectionExpression=projection,
        ExpressionAttributeNames=names
    )
    await batch_write_requests(gateway, delete_requests)
