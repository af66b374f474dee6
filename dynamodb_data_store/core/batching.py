"""
Batch and pagination helpers.

Bounded batch writer:
    Splits an unbounded list of write requests into BatchWriteItem-sized
    chunks and resubmits whatever DynamoDB reports as unprocessed until the
    chunk is fully acknowledged. A round in which nothing was acknowledged
    counts as stalled; only a run of stalled rounds is fatal.

Query/scan iterator:
    Follows LastEvaluatedKey/ExclusiveStartKey until the result set is
    exhausted, handing items to the caller one at a time.
"""

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List

from ..exceptions import BatchWriteError, RetryableError

logger = logging.getLogger(__name__)

# DynamoDB BatchWriteItem limit
MAX_BATCH_SIZE = 25


def put_request(item: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap an item as a BatchWriteItem put request."""
    return {'PutRequest': {'Item': item}}


def delete_request(keys: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a primary key as a BatchWriteItem delete request."""
    return {'DeleteRequest': {'Key': keys}}


async def batch_write_requests(
    gateway,
    requests: List[Dict[str, Any]],
    batch_size: int = MAX_BATCH_SIZE,
    max_stalled_retries: int = 10,
    base_delay: float = 0.05,
    max_delay: float = 2.0
) -> int:
    """Write all requests in chunks of at most batch_size.

    Chunks are submitted in order, so requests earlier in the list are
    acknowledged before later chunks are attempted.

    Args:
        gateway: Table gateway providing batch_write_item
        requests: PutRequest/DeleteRequest entries
        batch_size: Per-call item ceiling (1..25)
        max_stalled_retries: Consecutive rounds without progress before failing
        base_delay: Initial backoff in seconds
        max_delay: Backoff ceiling in seconds

    Returns:
        Number of requests written

    Raises:
        BatchWriteError: A chunk stopped making progress
        ConnectionError: Non-retryable failure from the store
    """
    if not 1 <= batch_size <= MAX_BATCH_SIZE:
        raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}")

    for i in range(0, len(requests), batch_size):
        chunk = requests[i:i + batch_size]
        await _write_chunk_with_retry(gateway, chunk, max_stalled_retries, base_delay, max_delay)

    logger.debug(f"Batch wrote {len(requests)} requests to {gateway.table_name}")
    return len(requests)


async def _write_chunk_with_retry(
    gateway,
    chunk: List[Dict[str, Any]],
    max_stalled_retries: int,
    base_delay: float,
    max_delay: float
) -> None:
    """Write a single chunk, resubmitting unprocessed requests until none remain."""
    pending = chunk
    stalled = 0
    attempt = 0

    while pending:
        try:
            unprocessed = await gateway.batch_write_item(pending)
            error = None
        except RetryableError as e:
            unprocessed = pending
            error = e

        if not unprocessed:
            return

        if len(unprocessed) < len(pending):
            stalled = 0
        else:
            stalled += 1
            if stalled > max_stalled_retries:
                logger.error(
                    f"Failed to process {len(unprocessed)} items after "
                    f"{max_stalled_retries} retries without progress"
                )
                raise BatchWriteError(
                    f"Batch write failed for {len(unprocessed)} items after "
                    f"{max_stalled_retries} retries without progress",
                    len(unprocessed),
                    original_error=error
                ) from error

        # Exponential backoff with jitter
        delay = min(base_delay * (2 ** attempt), max_delay) + base_delay * (time.time() % 1)
        reason = f"throttled ({error.message})" if error else "unprocessed"
        logger.warning(
            f"Retrying {len(unprocessed)} {reason} items after {delay:.2f}s "
            f"(stalled rounds: {stalled}/{max_stalled_retries})"
        )
        await asyncio.sleep(delay)

        pending = unprocessed
        attempt += 1


async def _iter_pages(
    fetch: Callable[..., Awaitable[Dict[str, Any]]],
    kwargs: Dict[str, Any]
) -> AsyncIterator[Dict[str, Any]]:
    request = dict(kwargs)
    while True:
        response = await fetch(**request)
        for item in response.get('Items', []):
            yield item
        last_key = response.get('LastEvaluatedKey')
        if not last_key:
            return
        request['ExclusiveStartKey'] = last_key


def iter_query(gateway, **query_kwargs) -> AsyncIterator[Dict[str, Any]]:
    """Lazily yield every item of a paginated query.

    Example:
        async for item in iter_query(gateway, KeyConditionExpression=Key('namespace').eq('features')):
            ...
    """
    return _iter_pages(gateway.query, query_kwargs)


def iter_scan(gateway, **scan_kwargs) -> AsyncIterator[Dict[str, Any]]:
    """Lazily yield every item of a paginated scan."""
    return _iter_pages(gateway.scan, scan_kwargs)


async def iterate_query(gateway, visitor: Callable[[Dict[str, Any]], None], **query_kwargs) -> None:
    """Run a query to completion, calling visitor for each item."""
    async for item in iter_query(gateway, **query_kwargs):
        visitor(item)


async def iterate_scan(gateway, visitor: Callable[[Dict[str, Any]], None], **scan_kwargs) -> None:
    """Run a scan to completion, calling visitor for each item."""
    async for item in iter_scan(gateway, **scan_kwargs):
        visitor(item)
