"""
Test configuration and fixtures for optimistic_ddb.

Provides common fixtures for testing OptimisticDdbClient against moto's mocked
DynamoDB, plus a Mock-based gateway for failure paths moto cannot produce.
"""

import sys
from pathlib import Path
from unittest.mock import Mock

# Add parent directory to path so we can import optimistic_ddb and tests.helpers
sys.path.insert(0, str(Path(__file__).parent.parent))

import boto3
import pytest
from moto import mock_aws

from optimistic_ddb import DynamoDBConfig, OptimisticDdbClient
from optimistic_ddb.core import StoreGateway
from tests.helpers import TABLE_DEFINITIONS


@pytest.fixture
def mock_dynamodb_config():
    """DynamoDB configuration for mocked testing."""
    return DynamoDBConfig(
        aws_access_key_id="test_key",
        aws_secret_access_key="test_secret",
        region_name="us-east-1",
        endpoint_url=None,  # Use default AWS endpoint for moto
        table_prefix=""
    )


@pytest.fixture
def mock_dynamodb_resource():
    """Mock DynamoDB resource."""
    with mock_aws():
        yield boto3.resource('dynamodb', region_name='us-east-1')


@pytest.fixture
def all_tables(mock_dynamodb_resource):
    """Create every table declared in tests.helpers."""
    tables = {}
    for definition in TABLE_DEFINITIONS:
        table = mock_dynamodb_resource.create_table(**definition)
        tables[definition['TableName']] = table
    return tables


@pytest.fixture
def client(mock_dynamodb_config, mock_dynamodb_resource, all_tables):
    """OptimisticDdbClient wired to the mocked DynamoDB resource."""
    return OptimisticDdbClient(mock_dynamodb_config, mock_dynamodb_resource)


@pytest.fixture
def second_client(mock_dynamodb_config, mock_dynamodb_resource, all_tables):
    """An independent client, standing in for a concurrent writer."""
    return OptimisticDdbClient(mock_dynamodb_config, mock_dynamodb_resource)


@pytest.fixture
def mock_gateway():
    """Mock StoreGateway for failure paths."""
    gateway = Mock(spec=StoreGateway)
    gateway.transact_write_items.return_value = None
    return gateway


@pytest.fixture
def mock_client(mock_dynamodb_config, mock_gateway):
    """OptimisticDdbClient whose gateway is a Mock."""
    client = OptimisticDdbClient(mock_dynamodb_config)
    client.gateway = mock_gateway
    client._reads.gateway = mock_gateway
    client._writes.gateway = mock_gateway
    return client
