"""
Data Store Utilities - Consolidated Module

Schema constants plus the helpers that translate between ItemDescriptors and
DynamoDB items:
- Key building for namespaced items and the inited marker
- Marshaling and strict unmarshaling of stored items
- Projection expressions with reserved-word-safe attribute names
- Item size validation against the 400KB DynamoDB limit

Storage schema (shared with every process using the same table):
    namespace (partition key, S): [prefix:]kind or [prefix:]$inited
    key       (sort key, S):      item key or [prefix:]$inited
    version   (N):                caller-assigned version
    item      (S):                serialized item, or "null" for a tombstone
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import DataCorruptionError, ValidationError
from .models import ItemDescriptor

logger = logging.getLogger(__name__)


# =============================================================================
# Schema Constants
# =============================================================================

# Names of the table's key attributes; the table must be created with these
PARTITION_KEY = "namespace"
SORT_KEY = "key"

# Application code should never access these attributes directly
VERSION_ATTRIBUTE = "version"
ITEM_ATTRIBUTE = "item"

# DynamoDB does not allow empty strings, so tombstones store this instead
DELETED_ITEM_PLACEHOLDER = "null"

INITED_BASE_KEY = "$inited"

MAX_ITEM_SIZE_BYTES = 400 * 1024


# =============================================================================
# Key Building
# =============================================================================

def prefixed_namespace(prefix: Optional[str], base: str) -> str:
    """Qualify a namespace with the optional prefix.

    Example:
        >>> prefixed_namespace("app1", "features")
        'app1:features'
        >>> prefixed_namespace(None, "features")
        'features'
    """
    return base if not prefix else f"{prefix}:{base}"


def make_keys(namespace: str, key: str) -> Dict[str, str]:
    """Build the primary key map for an item."""
    return {PARTITION_KEY: namespace, SORT_KEY: key}


# =============================================================================
# Marshaling
# =============================================================================

def marshal_item(namespace: str, key: str, item: ItemDescriptor) -> Dict[str, Any]:
    """Convert an ItemDescriptor to a DynamoDB item.

    Raises:
        ValidationError: If the resulting item exceeds the DynamoDB size limit
    """
    encoded = make_keys(namespace, key)
    encoded[VERSION_ATTRIBUTE] = item.version
    encoded[ITEM_ATTRIBUTE] = DELETED_ITEM_PLACEHOLDER if item.deleted else item.serialized_item

    item_size = calculate_item_size(encoded)
    if item_size > MAX_ITEM_SIZE_BYTES:
        raise ValidationError(
            f"Item size {item_size} bytes exceeds 400KB DynamoDB limit for {namespace}/{key}",
            errors={'item_size': item_size}
        )
    return encoded


def unmarshal_item(item: Optional[Dict[str, Any]]) -> Optional[ItemDescriptor]:
    """Convert a DynamoDB item back to an ItemDescriptor.

    Returns:
        None for a missing or empty item

    Raises:
        DataCorruptionError: Missing item/version attribute or non-integral version
    """
    if not item:
        return None

    namespace = item.get(PARTITION_KEY)
    key = item.get(SORT_KEY)

    serialized = item.get(ITEM_ATTRIBUTE)
    if not isinstance(serialized, str):
        raise DataCorruptionError("Invalid data in DynamoDB: missing item attribute", namespace, key)

    if VERSION_ATTRIBUTE not in item:
        raise DataCorruptionError("Invalid data in DynamoDB: missing version attribute", namespace, key)
    version = parse_version(item[VERSION_ATTRIBUTE])
    if version is None:
        raise DataCorruptionError("Invalid data in DynamoDB: non-numeric version", namespace, key)

    if serialized == DELETED_ITEM_PLACEHOLDER:
        return ItemDescriptor(version=version, deleted=True)
    return ItemDescriptor(version=version, serialized_item=serialized)


def parse_version(raw: Any) -> Optional[int]:
    """Parse a stored version, returning None unless it is a non-negative integer.

    The boto3 resource layer returns numbers as Decimal. String attributes are
    rejected even when they hold digits: the upsert condition compares the
    stored version as a number, so a string version could never be replaced.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        version = raw
    elif isinstance(raw, Decimal):
        if not raw.is_finite() or raw != raw.to_integral_value():
            return None
        version = int(raw)
    else:
        return None
    return version if version >= 0 else None


# =============================================================================
# Expression Building
# =============================================================================

def build_projection_expression(fields: Optional[List[str]]) -> Tuple[Optional[str], Optional[Dict[str, str]]]:
    """Build ProjectionExpression with ExpressionAttributeNames.

    Both "namespace" and "key" are DynamoDB reserved words, so every field is
    referenced through an expression attribute name.

    Example:
        >>> build_projection_expression(['namespace', 'key'])
        ('#f0, #f1', {'#f0': 'namespace', '#f1': 'key'})
    """
    if not fields:
        return None, None

    expression_names = {}
    projection_parts = []

    for i, field in enumerate(fields):
        attr_name = f"#f{i}"
        expression_names[attr_name] = field
        projection_parts.append(attr_name)

    return ', '.join(projection_parts), expression_names


def calculate_item_size(item: Dict[str, Any]) -> int:
    """Item size in bytes as DynamoDB counts it against the 400KB limit.

    Each attribute counts its UTF-8 name length plus its value size. Strings
    count their UTF-8 length, numbers their digits, booleans and nulls one
    byte, and lists and maps three bytes plus one byte per element.

    Example:
        >>> calculate_item_size({'key': 'f1', 'version': 12})
        14
    """
    return sum(len(name.encode('utf-8')) + _attribute_value_size(value) for name, value in item.items())


def _attribute_value_size(value: Any) -> int:
    if isinstance(value, str):
        return len(value.encode('utf-8'))
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    if value is None or isinstance(value, bool):
        return 1
    if isinstance(value, (int, float, Decimal)):
        return max(len(Decimal(str(value)).as_tuple().digits), 1)
    if isinstance(value, dict):
        return 3 + sum(len(str(k).encode('utf-8')) + _attribute_value_size(v) + 1 for k, v in value.items())
    if isinstance(value, (list, tuple, set)):
        return 3 + sum(_attribute_value_size(v) + 1 for v in value)
    return len(str(value).encode('utf-8'))
