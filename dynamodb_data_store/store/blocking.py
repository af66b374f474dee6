"""
Synchronous facade over DynamoDBDataStore.

The data store itself is async. Callers that cannot await (for example a
synchronous SDK caching layer) use BlockingDataStore, which runs a private
event loop on a daemon thread and blocks on each submitted coroutine.
"""

import asyncio
import logging
import threading
from typing import Dict, Optional

from ..config import DynamoDBConfig
from ..models import DataKind, ItemDescriptor, UpsertResult
from .data_store import DynamoDBDataStore, FullDataSet, create_data_store

logger = logging.getLogger(__name__)


class BlockingDataStore:
    """Blocking wrapper exposing the DynamoDBDataStore operations synchronously."""

    def __init__(self, store: DynamoDBDataStore):
        self.store = store
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="dynamodb-data-store-loop",
            daemon=True
        )
        self._closed = False
        self._thread.start()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _run(self, coro):
        if self._closed:
            coro.close()
            raise RuntimeError("BlockingDataStore is closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def initialize(self, all_data: FullDataSet) -> None:
        self._run(self.store.initialize(all_data))

    def is_initialized(self) -> bool:
        return self._run(self.store.is_initialized())

    def get(self, kind: DataKind, key: str) -> Optional[ItemDescriptor]:
        return self._run(self.store.get(kind, key))

    def get_all(self, kind: DataKind) -> Dict[str, ItemDescriptor]:
        return self._run(self.store.get_all(kind))

    def upsert(self, kind: DataKind, key: str, item: ItemDescriptor, read_back: bool = False) -> UpsertResult:
        return self._run(self.store.upsert(kind, key, item, read_back=read_back))

    def is_available(self) -> bool:
        return self._run(self.store.is_available())

    def close(self) -> None:
        """Close the store and stop the event loop thread. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            self.store.close()
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join()
            self._loop.close()
            logger.debug("Stopped data store event loop")

    def __enter__(self) -> 'BlockingDataStore':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def create_blocking_data_store(config: DynamoDBConfig, dynamodb=None) -> BlockingDataStore:
    """Create a BlockingDataStore around a new DynamoDBDataStore."""
    return BlockingDataStore(create_data_store(config, dynamodb))
