"""
Thin DynamoDB Store Gateway

This module is the transport boundary of the library: a lightweight wrapper
around boto3's DynamoDB resource that the read and write handlers compose.

The gateway focuses on:
- Creating the boto3 resource and Table handles lazily from DynamoDBConfig
- Point reads, batched reads, queries and scans
- Atomic TransactWriteItems
- Mapping botocore ClientErrors to library exceptions

It does not know about item shapes, versions or tracking. Values crossing it
are boto3 values (Decimal numbers, Binary blobs).
"""

import logging
import re
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    ConnectionError,
    RetryableError,
    StoreValidationError,
    TransactionCanceledError,
)

logger = logging.getLogger(__name__)

_RETRYABLE_ERROR_CODES = (
    'ProvisionedThroughputExceededException', 'RequestLimitExceeded', 'ThrottlingException',
    'InternalServerError', 'ServiceUnavailable', 'TransactionInProgressException',
    'TransactionConflictException', 'RequestTimeoutException',
)

_AUTH_ERROR_CODES = (
    'UnrecognizedClientException', 'AccessDeniedException', 'ExpiredTokenException',
    'InvalidSignatureException', 'IncompleteSignatureException',
)

_CANCELLATION_REASONS_IN_MESSAGE = re.compile(r"\[([^\]]*)\]\s*$")


def get_cancellation_reasons(error: ClientError) -> List[str]:
    """Extract the per-operation cancellation reason codes of a TransactionCanceledException.

    botocore exposes them as a structured CancellationReasons member; when it is
    missing, the codes are recovered from the message, which DynamoDB formats as
    "... specific reasons [ConditionalCheckFailed, None]".
    """
    reasons = error.response.get('CancellationReasons') or error.response['Error'].get('CancellationReasons')
    if reasons:
        return [reason.get('Code', 'None') for reason in reasons]
    match = _CANCELLATION_REASONS_IN_MESSAGE.search(error.response['Error'].get('Message', ''))
    if match is None:
        return []
    return [reason.strip() for reason in match.group(1).split(',') if reason.strip()]


def map_dynamodb_error(
    error: ClientError,
    operation: str,
    table_name: Optional[str] = None
) -> Exception:
    """Map DynamoDB ClientError to library exceptions.

    Args:
        error: The boto3 ClientError
        operation: The operation that failed (e.g., "GetItem", "TransactWriteItems")
        table_name: The DynamoDB table name, when the operation targets one table

    Returns:
        Appropriate library exception
    """
    error_code = error.response['Error']['Code']
    error_message = error.response['Error'].get('Message', '')

    context = operation if table_name is None else f"{operation} on {table_name}"
    full_message = f"{context}: {error_message}"

    if error_code == 'TransactionCanceledException':
        reasons = get_cancellation_reasons(error)
        return TransactionCanceledError(
            f"Transaction cancelled - {full_message}", reasons, original_error=error
        )

    elif error_code == 'ValidationException':
        return StoreValidationError(f"Validation failed - {full_message}", original_error=error)

    elif error_code in _RETRYABLE_ERROR_CODES:
        return RetryableError(f"Throttling/service issue - {full_message}", original_error=error)

    elif error_code == 'ResourceNotFoundException':
        return ConnectionError(f"Table not found - {full_message}", original_error=error)

    elif error_code in _AUTH_ERROR_CODES:
        return ConnectionError(f"Authentication/authorization failed - {full_message}", original_error=error)

    logger.warning(f"Unknown DynamoDB error code '{error_code}' mapped to ConnectionError")
    return ConnectionError(f"DynamoDB operation failed - {full_message}", original_error=error)


class StoreGateway:
    """
    Thin gateway for the DynamoDB operations the client needs.

    One gateway serves every table the client touches; table names passed in
    are the declared names and are resolved through config.get_table_name().
    """

    def __init__(self, config: DynamoDBConfig, dynamodb_resource=None):
        """Initialize store gateway.

        Args:
            config: DynamoDB configuration
            dynamodb_resource: Optional pre-built boto3 DynamoDB resource
        """
        self.config = config
        self._dynamodb = dynamodb_resource
        self._tables: Dict[str, Any] = {}

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

    def resolve_table_name(self, table_name: str) -> str:
        return self.config.get_table_name(table_name)

    def table(self, table_name: str):
        """Get (and cache) the boto3 Table resource for a declared table name."""
        if table_name not in self._tables:
            self._tables[table_name] = self.dynamodb.Table(self.resolve_table_name(table_name))
        return self._tables[table_name]

    def get_item(self, table_name: str, key: Dict[str, Any], consistent_read: bool = True) -> Optional[Dict[str, Any]]:
        """
        Execute DynamoDB GetItem.

        Returns:
            The stored item, or None when no item has this key
        """
        try:
            response = self.table(table_name).get_item(Key=key, ConsistentRead=consistent_read)
        except ClientError as e:
            raise map_dynamodb_error(e, "GetItem", table_name) from e
        logger.debug(f"GetItem on {table_name}: {key} (found={'Item' in response})")
        return response.get('Item')

    def batch_get_item(
        self,
        table_name: str,
        keys: List[Dict[str, Any]],
        consistent_read: bool = True
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Execute one DynamoDB BatchGetItem call for a single table.

        Args:
            table_name: Declared table name
            keys: Up to 100 distinct keys

        Returns:
            {'items': found items, 'unprocessed_keys': keys DynamoDB did not process}
        """
        resolved_name = self.resolve_table_name(table_name)
        try:
            response = self.dynamodb.meta.client.batch_get_item(
                RequestItems={
                    resolved_name: {
                        'Keys': keys,
                        'ConsistentRead': consistent_read
                    }
                }
            )
        except ClientError as e:
            raise map_dynamodb_error(e, "BatchGetItem", table_name) from e
        items = response.get('Responses', {}).get(resolved_name, [])
        unprocessed_keys = response.get('UnprocessedKeys', {}).get(resolved_name, {}).get('Keys', [])
        logger.debug(
            f"BatchGetItem on {table_name}: requested={len(keys)} found={len(items)} "
            f"unprocessed={len(unprocessed_keys)}"
        )
        return {'items': items, 'unprocessed_keys': unprocessed_keys}

    def query(self, table_name: str, **kwargs) -> Dict[str, Any]:
        """
        Execute DynamoDB Query operation.

        Raw pass-through to boto3 with error handling; kwargs are boto3 query
        parameters (IndexName, KeyConditionExpression, ExclusiveStartKey, Limit...).
        """
        try:
            return self.table(table_name).query(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Query", table_name) from e

    def scan(self, table_name: str, **kwargs) -> Dict[str, Any]:
        """
        Execute DynamoDB Scan operation.

        Raw pass-through to boto3 with error handling.
        """
        try:
            return self.table(table_name).scan(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Scan", table_name) from e

    def transact_write_items(self, transact_items: List[Dict[str, Any]]) -> None:
        """
        Execute transactional write operations.

        TableName in each operation is the declared table name; it is resolved
        here.

        Example:
            gateway.transact_write_items([
                {
                    'Put': {
                        'TableName': 'Resources',
                        'Item': {'id': 'aaaa', 'status': 'available', 'version': 0},
                        'ConditionExpression': 'attribute_not_exists(#id_0)',
                        'ExpressionAttributeNames': {'#id_0': 'id'}
                    }
                }
            ])

        Raises:
            TransactionCanceledError: The transaction was cancelled as a whole
        """
        resolved_items = []
        for transact_item in transact_items:
            ((operation, params),) = transact_item.items()
            resolved_items.append({
                operation: {**params, 'TableName': self.resolve_table_name(params['TableName'])}
            })
        try:
            self.dynamodb.meta.client.transact_write_items(TransactItems=resolved_items)
        except ClientError as e:
            raise map_dynamodb_error(e, "TransactWriteItems") from e
        logger.info(f"Transaction of {len(resolved_items)} operation(s) completed")
