"""
Tests for the batch writer and the query/scan iterators.

- Chunking to the BatchWriteItem ceiling
- UnprocessedItems resubmission and progress tracking
- Throttling treated as a stalled round
- LastEvaluatedKey pagination
"""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from dynamodb_data_store.core.batching import (
    batch_write_requests,
    delete_request,
    iter_query,
    iterate_query,
    iterate_scan,
    put_request,
)
from dynamodb_data_store.exceptions import BatchWriteError, ConnectionError, RetryableError


def make_requests(count):
    return [put_request({'namespace': 'features', 'key': f'k{i}', 'version': 1, 'item': '{}'}) for i in range(count)]


@pytest.fixture
def mock_gateway():
    """Mock TableGateway for testing."""
    gateway = Mock()
    gateway.table_name = "test-table"
    gateway.batch_write_item = AsyncMock(return_value=[])
    gateway.query = AsyncMock()
    gateway.scan = AsyncMock()
    return gateway


@pytest.fixture
def mock_sleep():
    with patch('dynamodb_data_store.core.batching.asyncio.sleep', new_callable=AsyncMock) as sleep:
        yield sleep


class TestRequestBuilders:

    def test_put_request(self):
        assert put_request({'namespace': 'n', 'key': 'k'}) == {'PutRequest': {'Item': {'namespace': 'n', 'key': 'k'}}}

    def test_delete_request(self):
        assert delete_request({'namespace': 'n', 'key': 'k'}) == {'DeleteRequest': {'Key': {'namespace': 'n', 'key': 'k'}}}


@pytest.mark.asyncio
class TestBatchWriteRequests:

    async def test_empty_request_list_makes_no_calls(self, mock_gateway):
        written = await batch_write_requests(mock_gateway, [])

        assert written == 0
        mock_gateway.batch_write_item.assert_not_called()

    async def test_chunks_to_batch_size(self, mock_gateway):
        requests = make_requests(60)

        written = await batch_write_requests(mock_gateway, requests)

        assert written == 60
        sizes = [len(c.args[0]) for c in mock_gateway.batch_write_item.call_args_list]
        assert sizes == [25, 25, 10]

    async def test_chunks_preserve_request_order(self, mock_gateway):
        requests = make_requests(5)

        await batch_write_requests(mock_gateway, requests, batch_size=2)

        submitted = [r for c in mock_gateway.batch_write_item.call_args_list for r in c.args[0]]
        assert submitted == requests

    @pytest.mark.parametrize("batch_size", [0, 26])
    async def test_rejects_invalid_batch_size(self, mock_gateway, batch_size):
        with pytest.raises(ValueError, match="batch_size"):
            await batch_write_requests(mock_gateway, make_requests(1), batch_size=batch_size)

    async def test_resubmits_only_unprocessed_items(self, mock_gateway, mock_sleep):
        requests = make_requests(3)
        mock_gateway.batch_write_item.side_effect = [[requests[2]], []]

        await batch_write_requests(mock_gateway, requests)

        assert mock_gateway.batch_write_item.call_count == 2
        assert mock_gateway.batch_write_item.call_args_list[1].args[0] == [requests[2]]
        mock_sleep.assert_awaited_once()

    async def test_keeps_retrying_while_progress_is_made(self, mock_gateway, mock_sleep):
        requests = make_requests(20)
        # One item acknowledged per call: far more rounds than the stall limit
        mock_gateway.batch_write_item.side_effect = lambda pending: pending[1:]

        await batch_write_requests(mock_gateway, requests, max_stalled_retries=2)

        assert mock_gateway.batch_write_item.call_count == 20

    async def test_stalled_rounds_raise_batch_write_error(self, mock_gateway, mock_sleep):
        requests = make_requests(2)
        mock_gateway.batch_write_item.side_effect = lambda pending: list(pending)

        with pytest.raises(BatchWriteError, match="Batch write failed for 2 items after 3 retries") as exc_info:
            await batch_write_requests(mock_gateway, requests, max_stalled_retries=3)

        assert exc_info.value.unprocessed_count == 2
        # Initial attempt plus three stalled retries
        assert mock_gateway.batch_write_item.call_count == 4

    async def test_batch_write_error_is_a_connection_error(self, mock_gateway, mock_sleep):
        mock_gateway.batch_write_item.side_effect = lambda pending: list(pending)

        with pytest.raises(ConnectionError):
            await batch_write_requests(mock_gateway, make_requests(1), max_stalled_retries=0)

    async def test_progress_resets_stall_counter(self, mock_gateway, mock_sleep):
        requests = make_requests(3)
        mock_gateway.batch_write_item.side_effect = [
            list(requests),       # stalled
            requests[1:],         # progress
            requests[1:],         # stalled
            [],
        ]

        await batch_write_requests(mock_gateway, requests, max_stalled_retries=1)

        assert mock_gateway.batch_write_item.call_count == 4

    async def test_throttling_is_retried(self, mock_gateway, mock_sleep):
        requests = make_requests(2)
        mock_gateway.batch_write_item.side_effect = [RetryableError("Throttling - slow down"), []]

        await batch_write_requests(mock_gateway, requests)

        assert mock_gateway.batch_write_item.call_count == 2
        assert mock_gateway.batch_write_item.call_args_list[1].args[0] == requests

    async def test_persistent_throttling_raises(self, mock_gateway, mock_sleep):
        throttle = RetryableError("Throttling - slow down")
        mock_gateway.batch_write_item.side_effect = throttle

        with pytest.raises(BatchWriteError) as exc_info:
            await batch_write_requests(mock_gateway, make_requests(1), max_stalled_retries=2)

        assert exc_info.value.original_error is throttle

    async def test_non_retryable_error_propagates_immediately(self, mock_gateway, mock_sleep):
        mock_gateway.batch_write_item.side_effect = ConnectionError("Table not found")

        with pytest.raises(ConnectionError, match="Table not found"):
            await batch_write_requests(mock_gateway, make_requests(30))

        assert mock_gateway.batch_write_item.call_count == 1
        mock_sleep.assert_not_awaited()

    async def test_backoff_grows_and_is_capped(self, mock_gateway, mock_sleep):
        mock_gateway.batch_write_item.side_effect = lambda pending: list(pending)

        with patch('dynamodb_data_store.core.batching.time.time', return_value=100.0):
            with pytest.raises(BatchWriteError):
                await batch_write_requests(
                    mock_gateway, make_requests(1), max_stalled_retries=4, base_delay=1.0, max_delay=4.0
                )

        delays = [c.args[0] for c in mock_sleep.await_args_list]
        assert delays == [1.0, 2.0, 4.0, 4.0]


@pytest.mark.asyncio
class TestIterators:

    async def test_iterate_query_follows_pagination(self, mock_gateway):
        mock_gateway.query.side_effect = [
            {'Items': [{'key': 'a'}, {'key': 'b'}], 'LastEvaluatedKey': {'key': 'b'}},
            {'Items': [{'key': 'c'}], 'LastEvaluatedKey': {'key': 'c'}},
            {'Items': []},
        ]
        seen = []

        await iterate_query(mock_gateway, lambda item: seen.append(item['key']), ConsistentRead=True)

        assert seen == ['a', 'b', 'c']
        calls = mock_gateway.query.call_args_list
        assert 'ExclusiveStartKey' not in calls[0].kwargs
        assert calls[1].kwargs['ExclusiveStartKey'] == {'key': 'b'}
        assert calls[2].kwargs['ExclusiveStartKey'] == {'key': 'c'}
        assert all(c.kwargs['ConsistentRead'] is True for c in calls)

    async def test_iterate_scan_single_page(self, mock_gateway):
        mock_gateway.scan.return_value = {'Items': [{'key': 'x'}]}
        seen = []

        await iterate_scan(mock_gateway, seen.append, ProjectionExpression='#f0')

        assert seen == [{'key': 'x'}]
        mock_gateway.scan.assert_awaited_once_with(ProjectionExpression='#f0')

    async def test_iter_query_is_lazy(self, mock_gateway):
        mock_gateway.query.side_effect = [
            {'Items': [{'key': 'a'}], 'LastEvaluatedKey': {'key': 'a'}},
            {'Items': [{'key': 'b'}]},
        ]

        iterator = iter_query(mock_gateway)
        mock_gateway.query.assert_not_called()

        first = await iterator.__anext__()
        assert first == {'key': 'a'}
        assert mock_gateway.query.call_count == 1

        rest = [item async for item in iterator]
        assert rest == [{'key': 'b'}]
        assert mock_gateway.query.call_count == 2

    async def test_visitor_errors_propagate(self, mock_gateway):
        mock_gateway.query.return_value = {'Items': [{'key': 'a'}]}

        def visitor(item):
            raise RuntimeError("bad item")

        with pytest.raises(RuntimeError, match="bad item"):
            await iterate_query(mock_gateway, visitor)
