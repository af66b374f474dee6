"""
Async DynamoDB Table Gateway

This module provides the table client the data store is built on. It is a thin
wrapper around a boto3 DynamoDB service resource that:

1. Exposes only the operations the synchronization protocol needs
   (GetItem, Query, Scan, conditional PutItem, BatchWriteItem)
2. Runs each blocking boto3 call in a worker thread so callers can await it
3. Maps botocore errors to data store exceptions

The gateway records whether it created the boto3 resource itself. Only a
gateway that owns its resource closes the underlying client.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    ConnectionError,
    ConflictError,
    ValidationError,
    RetryableError
)
from ..utils import PARTITION_KEY, SORT_KEY

logger = logging.getLogger(__name__)


def map_dynamodb_error(
    error: ClientError,
    operation: str,
    table_name: str,
    resource_id: Optional[str] = None
) -> Exception:
    """Map DynamoDB ClientError to data store exceptions.

    Args:
        error: The boto3 ClientError
        operation: The operation that failed (e.g., "GetItem", "PutItem")
        table_name: The DynamoDB table name
        resource_id: Optional item identifier for context

    Returns:
        ConflictError for conditional check failures, RetryableError for
        throttling and transient faults, ValidationError for rejected requests,
        ConnectionError for everything else
    """
    error_code = error.response.get('Error', {}).get('Code', 'Unknown')
    error_message = error.response.get('Error', {}).get('Message', str(error))

    context = f"{operation} on {table_name}"
    if resource_id:
        context += f" (resource: {resource_id})"

    full_message = f"{context}: {error_message}"

    if error_code == 'ConditionalCheckFailedException':
        return ConflictError(f"Conditional check failed - {full_message}", resource_id, original_error=error)

    elif error_code == 'ResourceNotFoundException':
        return ConnectionError(f"Table not found - {full_message}", original_error=error)

    elif error_code == 'ValidationException':
        return ValidationError(f"Validation failed - {full_message}", original_error=error)

    elif error_code == 'ItemCollectionSizeLimitExceededException':
        return ValidationError(f"Item collection size limit exceeded - {full_message}", original_error=error)

    elif error_code in [
        'ProvisionedThroughputExceededException', 'RequestLimitExceeded',
        'ThrottlingException', 'TooManyRequestsException'
    ]:
        return RetryableError(f"Throttling - {full_message}", original_error=error)

    elif error_code in [
        'InternalServerError', 'ServiceUnavailable', 'ServiceUnavailableException',
        'RequestTimeoutException'
    ]:
        return RetryableError(f"Service unavailable - {full_message}", original_error=error)

    elif error_code in ['UnrecognizedClientException', 'AccessDeniedException']:
        return ConnectionError(f"Authentication/authorization failed - {full_message}", original_error=error)

    elif error_code in ['ExpiredTokenException', 'TokenRefreshRequiredException']:
        return ConnectionError(f"Token expired - {full_message}", original_error=error)

    logger.warning(f"Unknown DynamoDB error code '{error_code}' mapped to ConnectionError")
    return ConnectionError(f"DynamoDB operation failed - {full_message}", original_error=error)


class TableGateway:
    """
    Async gateway for a single DynamoDB table.

    Every method awaits a boto3 call executed with asyncio.to_thread; calls
    from one logical operation are awaited sequentially by the caller. The
    gateway holds no per-request state, so concurrent calls are independent.
    """

    def __init__(self, config: DynamoDBConfig, dynamodb=None):
        """Initialize table gateway.

        Args:
            config: Data store configuration
            dynamodb: Existing boto3 DynamoDB service resource. When given, the
                gateway uses it as-is and never closes it.
        """
        self.config = config
        self.table_name = config.table_name
        self._dynamodb = dynamodb
        self._owns_client = dynamodb is None
        self._table = None

    @property
    def owns_client(self) -> bool:
        """True if the gateway created the boto3 resource and must close it."""
        return self._owns_client

    @property
    def dynamodb(self):
        """Lazy initialization of DynamoDB resource."""
        if self._dynamodb is None:
            try:
                session = boto3.Session(
                    aws_access_key_id=self.config.aws_access_key_id,
                    aws_secret_access_key=self.config.aws_secret_access_key,
                    region_name=self.config.region_name
                )

                dynamodb_config = {
                    'region_name': self.config.region_name
                }

                if self.config.endpoint_url:
                    dynamodb_config['endpoint_url'] = self.config.endpoint_url

                boto_config = Config(
                    retries={'max_attempts': self.config.retries},
                    max_pool_connections=self.config.max_pool_connections,
                    read_timeout=self.config.timeout_seconds,
                    connect_timeout=self.config.timeout_seconds
                )
                dynamodb_config['config'] = boto_config

                self._dynamodb = session.resource('dynamodb', **dynamodb_config)
            except Exception as e:
                logger.error(f"Failed to create DynamoDB resource: {e}")
                raise ConnectionError(f"Failed to connect to DynamoDB: {e}", e) from e
        return self._dynamodb

    @property
    def table(self):
        """boto3 Table resource for the configured table."""
        if self._table is None:
            try:
                self._table = self.dynamodb.Table(self.table_name)
            except ConnectionError:
                raise
            except Exception as e:
                logger.error(f"Failed to access table '{self.table_name}': {e}")
                raise ConnectionError(f"Failed to access table '{self.table_name}': {e}", e) from e
        return self._table

    async def _call(self, operation: str, fn: Callable[..., Any], resource_id: Optional[str] = None, **kwargs) -> Any:
        """Run a blocking boto3 call in a worker thread and map its errors."""
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, operation, self.table_name, resource_id) from e
        except BotoCoreError as e:
            logger.error(f"{operation} on {self.table_name} failed: {e}")
            raise ConnectionError(f"{operation} on {self.table_name} failed: {e}", e) from e

    async def get_item(self, key: Dict[str, Any], consistent_read: bool = True) -> Optional[Dict[str, Any]]:
        """
        Read a single item by primary key.

        Args:
            key: Primary key of the item
            consistent_read: Use a strongly consistent read

        Returns:
            The item, or None if it does not exist
        """
        response = await self._call(
            "GetItem", self.table.get_item,
            resource_id=_describe_key(key),
            Key=key,
            ConsistentRead=consistent_read
        )
        return response.get('Item') or None

    async def query(self, **kwargs) -> Dict[str, Any]:
        """
        Execute one page of a DynamoDB Query.

        Args:
            **kwargs: All boto3 query parameters (KeyConditionExpression,
                ProjectionExpression, ConsistentRead, ExclusiveStartKey, ...)

        Returns:
            Raw DynamoDB response
        """
        return await self._call("Query", self.table.query, **kwargs)

    async def scan(self, **kwargs) -> Dict[str, Any]:
        """
        Execute one page of a DynamoDB Scan.

        Scans read the whole table; use a ProjectionExpression to limit the
        data transferred.
        """
        if 'ProjectionExpression' not in kwargs:
            logger.warning(f"Scan on {self.table_name} without ProjectionExpression - consider adding one")
        return await self._call("Scan", self.table.scan, **kwargs)

    async def put_item(self, item: Dict[str, Any], condition_expression=None) -> None:
        """
        Put item into the table.

        Args:
            item: Item to store
            condition_expression: Optional boto3 condition for the put

        Raises:
            ConflictError: The condition evaluated to false
        """
        put_kwargs = {'Item': item}
        if condition_expression is not None:
            put_kwargs['ConditionExpression'] = condition_expression

        await self._call("PutItem", self.table.put_item, resource_id=_describe_key(item), **put_kwargs)
        logger.debug(f"Put item in {self.table_name}: {_describe_key(item)}")

    async def batch_write_item(self, requests: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Submit one BatchWriteItem call.

        Args:
            requests: PutRequest/DeleteRequest entries, at most 25

        Returns:
            The requests DynamoDB reported as unprocessed (empty when all succeeded)
        """
        response = await self._call(
            "BatchWriteItem", self.dynamodb.batch_write_item,
            RequestItems={self.table_name: requests}
        )
        return response.get('UnprocessedItems', {}).get(self.table_name, [])

    def close(self) -> None:
        """Close the underlying client if this gateway created it."""
        if not self._owns_client or self._dynamodb is None:
            return
        try:
            self._dynamodb.meta.client.close()
            logger.debug(f"Closed DynamoDB client for {self.table_name}")
        finally:
            self._dynamodb = None
            self._table = None


def _describe_key(item: Dict[str, Any]) -> Optional[str]:
    namespace = item.get(PARTITION_KEY)
    key = item.get(SORT_KEY)
    if namespace is None and key is None:
        return None
    return f"{namespace}/{key}"


def create_table_gateway(config: DynamoDBConfig, dynamodb=None) -> TableGateway:
    """
    Factory function to create a TableGateway instance.

    Args:
        config: Data store configuration
        dynamodb: Optional existing boto3 DynamoDB resource (not owned)

    Returns:
        Configured TableGateway instance
    """
    return TableGateway(config, dynamodb)
