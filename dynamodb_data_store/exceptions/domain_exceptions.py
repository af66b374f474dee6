"""
Domain-Specific Exceptions for the DynamoDB Data Store

All exceptions extend DataStoreError. Organized by category:
1. Request Validation Errors
2. Stored Data Errors
3. Conflict and Conditional Errors
4. Infrastructure and Retry Errors
"""

from typing import Any, Dict, Optional

from .base import DataStoreError


# =============================================================================
# Request Validation Errors
# =============================================================================

class ValidationError(DataStoreError):
    """Raised when a request is rejected before or by DynamoDB as invalid.

    Used for:
    - Items exceeding the 400KB DynamoDB item size limit
    - DynamoDB ValidationException responses
    - Invalid item descriptors
    """

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        """Initialize validation error.

        Args:
            message: Human-readable error message
            errors: Dictionary of field-level validation errors
            original_error: The original exception that caused this error
        """
        self.errors = errors or {}
        context = {}
        if self.errors:
            context['validation_errors'] = self.errors
        super().__init__(message, original_error, context)


# =============================================================================
# Stored Data Errors
# =============================================================================

class DataCorruptionError(DataStoreError):
    """Raised when an item read from the table cannot be unmarshaled.

    Missing attributes and non-numeric versions are never defaulted or coerced.
    """

    def __init__(self, message: str, namespace: Optional[str] = None, key: Optional[str] = None):
        self.namespace = namespace
        self.key = key
        context = {}
        if namespace is not None:
            context['namespace'] = namespace
        if key is not None:
            context['key'] = key
        super().__init__(message, None, context)


# =============================================================================
# Conflict and Conditional Errors
# =============================================================================

class ConflictError(DataStoreError):
    """Raised when a conditional write fails.

    The data store converts this into a superseded upsert result; it only
    reaches callers that use the TableGateway directly.
    """

    def __init__(self, message: str, resource_id: Optional[str] = None, original_error: Optional[Exception] = None):
        """Initialize conflict error.

        Args:
            message: Human-readable error message
            resource_id: Identifier of the conflicting item
            original_error: The original exception that caused this error
        """
        self.resource_id = resource_id
        context = {}
        if resource_id:
            context['resource_id'] = resource_id
        super().__init__(message, original_error, context)


# =============================================================================
# Infrastructure and Retry Errors
# =============================================================================

class ConnectionError(DataStoreError):
    """Raised when DynamoDB cannot be reached or refuses the request.

    Used for:
    - Network connectivity issues
    - Authentication/authorization failures
    - Missing tables
    - Invalid endpoint configurations
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, original_error, context)


class RetryableError(DataStoreError):
    """Raised when an operation fails due to throttling or a transient service fault.

    Used for:
    - ProvisionedThroughputExceededException
    - RequestLimitExceeded errors
    - Temporary service unavailability
    """

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, original_error: Optional[Exception] = None):
        """Initialize retryable error.

        Args:
            message: Human-readable error message
            retry_after_seconds: Suggested retry delay in seconds
            original_error: The original exception that caused this error
        """
        self.retry_after_seconds = retry_after_seconds
        context = {}
        if retry_after_seconds:
            context['retry_after_seconds'] = retry_after_seconds
        super().__init__(message, original_error, context)


class BatchWriteError(ConnectionError):
    """Raised when the batch writer stops making progress on unprocessed items."""

    def __init__(self, message: str, unprocessed_count: int, original_error: Optional[Exception] = None):
        self.unprocessed_count = unprocessed_count
        super().__init__(message, original_error, {'unprocessed_count': unprocessed_count})
