"""
Root of the data store exception hierarchy.

Every error the store raises carries the message shown to the SDK, the
botocore error (if any) it was mapped from, and key/value context such as
the namespace and key of the item involved.
"""

from typing import Any, Dict, Optional


class DataStoreError(Exception):
    """Raised for any failure inside the DynamoDB data store.

    Catch this to handle every store failure in one place; catch a subclass
    to tell corrupt data, rejected writes and connectivity problems apart.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{name}={value}" for name, value in self.context.items())
        return f"{self.message} [{details}]"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.message!r}, "
            f"original_error={self.original_error!r}, context={self.context!r})"
        )
