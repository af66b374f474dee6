"""
Test configuration and fixtures for the DynamoDB data store.

Provides a moto-backed DynamoDB table with the data store schema
(partition key "namespace", sort key "key") and stores bound to it.
"""

import os
import sys
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path so we can import dynamodb_data_store
sys.path.insert(0, str(Path(__file__).parent.parent))

import boto3
import pytest
from moto import mock_aws

from dynamodb_data_store import (
    PARTITION_KEY,
    SORT_KEY,
    DynamoDBConfig,
    create_data_store,
)

TABLE_NAME = "test-dynamodb-table"


@pytest.fixture
def aws_credentials():
    """Fake AWS credentials so boto3 never reaches a real account."""
    env = {
        "AWS_ACCESS_KEY_ID": "testing",
        "AWS_SECRET_ACCESS_KEY": "testing",
        "AWS_SECURITY_TOKEN": "testing",
        "AWS_SESSION_TOKEN": "testing",
        "AWS_DEFAULT_REGION": "us-east-1",
    }
    with patch.dict(os.environ, env):
        yield


@pytest.fixture
def dynamodb_config():
    """Data store configuration for mocked testing."""
    return DynamoDBConfig(
        table_name=TABLE_NAME,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name="us-east-1",
        endpoint_url=None,  # Use default AWS endpoint for moto
        batch_retry_base_delay=0.0,
    )


@pytest.fixture
def mock_dynamodb_resource(aws_credentials):
    """Mock DynamoDB resource."""
    with mock_aws():
        yield boto3.resource('dynamodb', region_name='us-east-1')


@pytest.fixture
def data_store_table(mock_dynamodb_resource):
    """Create the data store table the way operators are expected to."""
    table = mock_dynamodb_resource.create_table(
        TableName=TABLE_NAME,
        KeySchema=[
            {'AttributeName': PARTITION_KEY, 'KeyType': 'HASH'},
            {'AttributeName': SORT_KEY, 'KeyType': 'RANGE'}
        ],
        AttributeDefinitions=[
            {'AttributeName': PARTITION_KEY, 'AttributeType': 'S'},
            {'AttributeName': SORT_KEY, 'AttributeType': 'S'}
        ],
        BillingMode='PROVISIONED',
        ProvisionedThroughput={'ReadCapacityUnits': 5, 'WriteCapacityUnits': 5}
    )
    return table


@pytest.fixture
def store(dynamodb_config, mock_dynamodb_resource, data_store_table):
    """Data store without prefix, using the shared mocked resource."""
    return create_data_store(dynamodb_config, mock_dynamodb_resource)


@pytest.fixture
def make_store(dynamodb_config, mock_dynamodb_resource, data_store_table):
    """Factory for data stores with a given prefix on the shared table."""
    def _make(prefix=None, **overrides):
        config = dynamodb_config.model_copy(update={'prefix': prefix, **overrides})
        return create_data_store(config, mock_dynamodb_resource)
    return _make
