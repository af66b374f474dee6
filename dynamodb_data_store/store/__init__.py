from .blocking import BlockingDataStore, create_blocking_data_store
from .data_store import DynamoDBDataStore, FullDataSet, create_data_store

__all__ = [
    "DynamoDBDataStore",
    "FullDataSet",
    "create_data_store",
    "BlockingDataStore",
    "create_blocking_data_store",
]
