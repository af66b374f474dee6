import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables from .env file if it exists
load_dotenv()


class DynamoDBConfig(BaseModel):
    """Configuration for the DynamoDB data store and its connection."""

    # Table configuration
    table_name: str = Field(
        default_factory=lambda: os.getenv("DYNAMODB_DATA_STORE_TABLE", ""),
        validate_default=True,
        description="Name of the existing DynamoDB table (partition key 'namespace', sort key 'key')"
    )

    prefix: Optional[str] = Field(
        default_factory=lambda: os.getenv("DYNAMODB_DATA_STORE_PREFIX"),
        validate_default=True,
        description="Optional namespace prefix for sharing one table between data sets"
    )

    aws_access_key_id: Optional[str] = Field(
        default_factory=lambda: os.getenv("AWS_ACCESS_KEY_ID"),
        description="AWS access key ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("AWS_SECRET_ACCESS_KEY"),
        description="AWS secret access key"
    )

    region_name: str = Field(
        default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"),
        description="AWS region name"
    )

    # DynamoDB specific settings
    endpoint_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("DYNAMODB_ENDPOINT_URL"),
        description="DynamoDB endpoint URL (for local development)"
    )

    # Connection settings
    max_pool_connections: int = Field(
        default=50,
        description="Maximum number of connections in the connection pool"
    )

    retries: int = Field(
        default=3,
        description="Number of retry attempts botocore makes for failed requests"
    )

    timeout_seconds: float = Field(
        default=30.0,
        description="Request timeout in seconds"
    )

    # Batch write settings
    batch_write_size: int = Field(
        default=25,
        ge=1,
        le=25,
        description="Maximum number of requests per BatchWriteItem call"
    )

    max_stalled_batch_retries: int = Field(
        default=10,
        ge=0,
        description="Consecutive batch rounds without progress before giving up"
    )

    batch_retry_base_delay: float = Field(
        default=0.05,
        ge=0,
        description="Initial backoff in seconds before resubmitting unprocessed items"
    )

    batch_retry_max_delay: float = Field(
        default=2.0,
        ge=0,
        description="Upper bound in seconds for the batch retry backoff"
    )

    # Logging settings
    enable_debug_logging: bool = Field(
        default_factory=lambda: os.getenv("DYNAMODB_DEBUG_LOGGING", "false").lower() == "true",
        description="Enable debug logging for DynamoDB operations"
    )

    @field_validator('table_name')
    @classmethod
    def validate_table_name(cls, v):
        """Validate DynamoDB table name."""
        if not v:
            raise ValueError("DynamoDB table name is required")
        return v

    @field_validator('prefix')
    @classmethod
    def normalize_prefix(cls, v):
        """An empty prefix means no prefix."""
        return v or None

    @field_validator('region_name')
    @classmethod
    def validate_region(cls, v):
        """Validate AWS region name."""
        if not v:
            raise ValueError("AWS region name is required")
        return v

    @classmethod
    def from_env(cls) -> 'DynamoDBConfig':
        """Create configuration from environment variables.

        Returns:
            DynamoDBConfig instance
        """
        return cls()

    @classmethod
    def for_local_development(cls, table_name: str, prefix: Optional[str] = None) -> 'DynamoDBConfig':
        """Create configuration for a local DynamoDB instance.

        Args:
            table_name: Name of the table in the local instance
            prefix: Optional namespace prefix

        Returns:
            DynamoDBConfig instance configured for local development
        """
        return cls(
            table_name=table_name,
            prefix=prefix,
            aws_access_key_id="local",
            aws_secret_access_key="local",
            region_name="us-east-1",
            endpoint_url="http://localhost:8000",
            enable_debug_logging=True
        )

    model_config = ConfigDict(
        validate_assignment=True
    )
