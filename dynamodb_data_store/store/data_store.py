"""
DynamoDB Persistent Data Store

Implementation notes:

* Feature flags, segments, and any other kind of entity the SDK stores all
  live in the same table. The only required attributes are "namespace" (the
  optionally prefixed kind name) and "key".

* DynamoDB restricts attribute values (empty strings are not allowed), so each
  item is stored as one serialized string in the "item" attribute. The
  version is kept in its own attribute because conditional upserts compare it.

* DynamoDB has no multi-item transactions, so initialize() cannot be atomic.
  Rather than wiping the table first, it writes every received item and only
  then deletes keys that are no longer present. A concurrent upsert of one of
  those stale keys can still be deleted; the process that ran initialize()
  normally receives that update shortly afterwards and upserts it again.

* Each item must fit within DynamoDB's 400KB item size limit.
"""

import logging
from typing import Dict, Mapping, Optional, Set, Tuple

from boto3.dynamodb.conditions import Attr, Key

from ..config import DynamoDBConfig
from ..core import (
    TableGateway,
    batch_write_requests,
    create_table_gateway,
    delete_request,
    iterate_query,
    put_request,
)
from ..exceptions import ConflictError
from ..models import DataKind, ItemDescriptor, UpsertOutcome, UpsertResult
from ..utils import (
    INITED_BASE_KEY,
    PARTITION_KEY,
    SORT_KEY,
    VERSION_ATTRIBUTE,
    build_projection_expression,
    make_keys,
    marshal_item,
    prefixed_namespace,
    unmarshal_item,
)

logger = logging.getLogger(__name__)

FullDataSet = Mapping[DataKind, Mapping[str, ItemDescriptor]]


class DynamoDBDataStore:
    """
    Persistent data store backed by a single DynamoDB table.

    All operations are coroutines. The store keeps no mutable in-process state,
    so independent get/upsert calls may run concurrently. Callers that need
    strict ordering between initialize() and upsert() in one process must
    serialize those calls themselves.
    """

    def __init__(
        self,
        gateway: TableGateway,
        prefix: Optional[str] = None,
        batch_size: int = 25,
        max_stalled_batch_retries: int = 10,
        batch_retry_base_delay: float = 0.05,
        batch_retry_max_delay: float = 2.0
    ):
        """Initialize the data store.

        Args:
            gateway: Table gateway for the store's table
            prefix: Optional namespace prefix; empty means no prefix
            batch_size: Requests per BatchWriteItem call
            max_stalled_batch_retries: Batch rounds without progress before failing
            batch_retry_base_delay: Initial batch retry backoff in seconds
            batch_retry_max_delay: Batch retry backoff ceiling in seconds
        """
        self.gateway = gateway
        self.prefix = prefix or None
        self.batch_size = batch_size
        self.max_stalled_batch_retries = max_stalled_batch_retries
        self.batch_retry_base_delay = batch_retry_base_delay
        self.batch_retry_max_delay = batch_retry_max_delay

        if self.prefix is None:
            logger.info(f'Using DynamoDB data store with table name "{gateway.table_name}" and no prefix')
        else:
            logger.info(
                f'Using DynamoDB data store with table name "{gateway.table_name}" and prefix "{self.prefix}"'
            )

    @property
    def inited_key(self) -> str:
        """Namespace and key of the inited marker item."""
        return prefixed_namespace(self.prefix, INITED_BASE_KEY)

    def namespace_for_kind(self, kind: DataKind) -> str:
        return prefixed_namespace(self.prefix, kind.name)

    async def initialize(self, all_data: FullDataSet) -> None:
        """
        Replace the stored data set with all_data.

        Writes every item in all_data, deletes previously stored items of the
        same kinds that are not in all_data, then writes the inited marker.
        Not rolled back on failure.

        Args:
            all_data: Mapping of kind to (key -> ItemDescriptor)

        Raises:
            ValidationError: An item exceeds the DynamoDB size limit
            BatchWriteError: The batch writer stopped making progress
            ConnectionError: Any other storage failure
        """
        # Read existing keys first; any of these not in all_data get deleted
        unused_old_keys = await self._read_existing_keys(all_data.keys())

        requests = []
        num_items = 0

        for kind, items in all_data.items():
            namespace = self.namespace_for_kind(kind)
            for key, item in items.items():
                requests.append(put_request(marshal_item(namespace, key, item)))
                unused_old_keys.discard((namespace, key))
                num_items += 1

        inited_key = self.inited_key
        for namespace, key in unused_old_keys:
            if namespace != inited_key:
                requests.append(delete_request(make_keys(namespace, key)))

        # Written last; is_initialized() checks for it
        requests.append(put_request(make_keys(inited_key, inited_key)))

        await batch_write_requests(
            self.gateway,
            requests,
            batch_size=self.batch_size,
            max_stalled_retries=self.max_stalled_batch_retries,
            base_delay=self.batch_retry_base_delay,
            max_delay=self.batch_retry_max_delay
        )

        logger.info(
            f"Initialized table {self.gateway.table_name} with {num_items} items "
            f"({len(requests) - num_items - 1} stale items deleted)"
        )

    async def is_initialized(self) -> bool:
        """Return True if initialize() has completed at least once for this prefix."""
        inited_key = self.inited_key
        item = await self.gateway.get_item(make_keys(inited_key, inited_key), consistent_read=True)
        return bool(item)

    async def get(self, kind: DataKind, key: str) -> Optional[ItemDescriptor]:
        """
        Read one item with a strongly consistent read.

        Returns:
            The item (possibly a tombstone), or None if absent

        Raises:
            DataCorruptionError: The stored item cannot be unmarshaled
        """
        item = await self.gateway.get_item(make_keys(self.namespace_for_kind(kind), key), consistent_read=True)
        return unmarshal_item(item)

    async def get_all(self, kind: DataKind) -> Dict[str, ItemDescriptor]:
        """
        Read every item of a kind, including tombstones.

        Returns:
            Mapping of key to ItemDescriptor in no particular order
        """
        results: Dict[str, ItemDescriptor] = {}

        def collect(item):
            descriptor = unmarshal_item(item)
            if descriptor is not None:
                results[item[SORT_KEY]] = descriptor

        await iterate_query(
            self.gateway,
            collect,
            KeyConditionExpression=Key(PARTITION_KEY).eq(self.namespace_for_kind(kind)),
            ConsistentRead=True
        )
        return results

    async def upsert(
        self,
        kind: DataKind,
        key: str,
        item: ItemDescriptor,
        read_back: bool = False
    ) -> UpsertResult:
        """
        Store item unless an equal or newer version is already stored.

        DynamoDB Operation: PutItem with ConditionExpression
        Condition: no stored item, or stored version < item.version

        Args:
            kind: Kind of the item
            key: Item key
            item: New item or tombstone
            read_back: On a superseded write, fetch and return the stored item

        Returns:
            UpsertResult with outcome APPLIED or SUPERSEDED
        """
        namespace = self.namespace_for_kind(kind)
        encoded = marshal_item(namespace, key, item)

        condition = (
            Attr(PARTITION_KEY).not_exists()
            | Attr(SORT_KEY).not_exists()
            | Attr(VERSION_ATTRIBUTE).lt(item.version)
        )

        try:
            await self.gateway.put_item(encoded, condition_expression=condition)
        except ConflictError:
            logger.debug(f"Upsert of {namespace}/{key} version {item.version} superseded by stored version")
            current = await self.get(kind, key) if read_back else None
            return UpsertResult(outcome=UpsertOutcome.SUPERSEDED, current=current)

        return UpsertResult(outcome=UpsertOutcome.APPLIED)

    async def is_available(self) -> bool:
        """Return False if the table cannot be queried; never raises."""
        try:
            # Only whether the request succeeds matters, not the answer
            await self.is_initialized()
            return True
        except Exception as e:
            logger.warning(f"DynamoDB data store is unavailable: {e}")
            return False

    def close(self) -> None:
        """Release the DynamoDB client if the store created it."""
        self.gateway.close()

    async def __aenter__(self) -> 'DynamoDBDataStore':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def _read_existing_keys(self, kinds) -> Set[Tuple[str, str]]:
        keys: Set[Tuple[str, str]] = set()
        projection, names = build_projection_expression([PARTITION_KEY, SORT_KEY])

        for kind in kinds:
            await iterate_query(
                self.gateway,
                lambda item: keys.add((item[PARTITION_KEY], item[SORT_KEY])),
                KeyConditionExpression=Key(PARTITION_KEY).eq(self.namespace_for_kind(kind)),
                ProjectionExpression=projection,
                ExpressionAttributeNames=names,
                ConsistentRead=True
            )
        return keys


def create_data_store(config: DynamoDBConfig, dynamodb=None) -> DynamoDBDataStore:
    """
    Factory function to create a DynamoDBDataStore.

    Args:
        config: Data store configuration
        dynamodb: Optional existing boto3 DynamoDB resource. The store will not
            close a resource it did not create.

    Returns:
        Configured DynamoDBDataStore instance
    """
    if config.enable_debug_logging:
        logging.getLogger(__name__.split('.')[0]).setLevel(logging.DEBUG)

    gateway = create_table_gateway(config, dynamodb)
    return DynamoDBDataStore(
        gateway,
        prefix=config.prefix,
        batch_size=config.batch_write_size,
        max_stalled_batch_retries=config.max_stalled_batch_retries,
        batch_retry_base_delay=config.batch_retry_base_delay,
        batch_retry_max_delay=config.batch_retry_max_delay
    )
