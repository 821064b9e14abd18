"""DynamoDB service wrapper for table operations and write transactions.

DynamoDB is the system's transactional store:
- Single-item reads are strongly consistent (`ConsistentRead=True`)
- Multi-item writes go through `TransactWriteItems`, all or nothing
- Conflicting concurrent transactions are cancelled by DynamoDB
- Optimistic row locks are expressed as condition expressions

Every storage-layer failure is surfaced as `TransactionFailure`; the raw
boto3 error is logged and never returned to callers.
"""

import os
from contextlib import contextmanager
from typing import Any, Iterator

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from fleet.config import Settings, get_settings
from fleet.models.errors import TransactionFailure
from fleet.utils.logging import get_logger

logger = get_logger(__name__)

# Module-level singleton for connection reuse
_dynamodb_service_instance: "DynamoDBService | None" = None

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
TRANSACTION_CANCELED = "TransactionCanceledException"

_serializer = TypeSerializer()


def get_dynamodb_service() -> "DynamoDBService":
    """Get or create the singleton DynamoDB service instance.

    Returns:
        Shared DynamoDBService instance
    """
    global _dynamodb_service_instance
    if _dynamodb_service_instance is None:
        _dynamodb_service_instance = DynamoDBService()
    return _dynamodb_service_instance


def reset_dynamodb_service() -> None:
    """Reset the singleton instance (for testing only).

    This allows tests to create a fresh DynamoDBService inside
    a mock_aws context.
    """
    global _dynamodb_service_instance
    _dynamodb_service_instance = None


def serialize_item(item: dict[str, Any]) -> dict[str, Any]:
    """Serialize a plain dict into DynamoDB attribute-value format.

    None values are dropped; DynamoDB has no use for absent attributes.
    """
    return {k: _serializer.serialize(v) for k, v in item.items() if v is not None}


def serialize_values(values: dict[str, Any]) -> dict[str, Any]:
    """Serialize expression attribute values (None kept as NULL)."""
    return {k: _serializer.serialize(v) for k, v in values.items()}


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate boto3/botocore failures into TransactionFailure.

    Covers throttling, timeouts and connection errors. Conditional-check
    failures are handled by the callers that expect them.
    """
    try:
        yield
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "Unknown")
        logger.error("DynamoDB %s failed: %s (%s)", operation, code, e)
        raise TransactionFailure(details={"operation": operation}) from e
    except BotoCoreError as e:
        logger.error("DynamoDB %s failed: %s", operation, e)
        raise TransactionFailure(details={"operation": operation}) from e


class DynamoDBService:
    """Service for DynamoDB operations with environment-aware table names."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize DynamoDB service.

        Args:
            settings: Runtime settings. Defaults to get_settings().
        """
        self.settings = settings or get_settings()
        self.environment = self.settings.environment
        self.name_prefix = self.settings.table_prefix

        # Bounded timeouts so no storage call blocks indefinitely
        client_config = Config(
            connect_timeout=self.settings.dynamodb_connect_timeout,
            read_timeout=self.settings.dynamodb_read_timeout,
            retries={
                "max_attempts": self.settings.dynamodb_max_retries,
                "mode": "standard",
            },
        )
        region = self.settings.aws_region or os.getenv("AWS_DEFAULT_REGION")
        self._dynamodb = boto3.resource("dynamodb", region_name=region, config=client_config)
        self._client = boto3.client("dynamodb", region_name=region, config=client_config)

    def table_name(self, table: str) -> str:
        """Get full table name with prefix."""
        return f"{self.name_prefix}-{table}"

    def _get_table(self, table: str) -> Any:
        """Get DynamoDB table resource."""
        return self._dynamodb.Table(self.table_name(table))

    # Generic CRUD operations

    def get_item(
        self,
        table: str,
        key: dict[str, Any],
        consistent: bool = True,
    ) -> dict[str, Any] | None:
        """Get a single item by key.

        Args:
            table: Table name without prefix
            key: Primary key dict
            consistent: Use a strongly consistent read (default True)

        Returns:
            Item dict or None if not found
        """
        with storage_errors(f"get_item:{table}"):
            response = self._get_table(table).get_item(Key=key, ConsistentRead=consistent)
        item: dict[str, Any] | None = response.get("Item")
        return item

    def put_item(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> bool:
        """Put an item into the table.

        Args:
            table: Table name without prefix
            item: Item to store
            condition_expression: Optional condition for write

        Returns:
            True if successful, False if condition failed
        """
        kwargs: dict[str, Any] = {"Item": {k: v for k, v in item.items() if v is not None}}
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression
        with storage_errors(f"put_item:{table}"):
            try:
                self._get_table(table).put_item(**kwargs)
            except ClientError as e:
                if e.response["Error"]["Code"] == CONDITIONAL_CHECK_FAILED:
                    return False
                raise
        return True

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Update an item with expressions.

        Args:
            table: Table name without prefix
            key: Primary key dict
            update_expression: DynamoDB update expression
            expression_attribute_values: Values for expression
            expression_attribute_names: Names for expression (for reserved words)
            condition_expression: Optional condition for update

        Returns:
            Updated attributes or None if condition failed
        """
        kwargs: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": expression_attribute_values,
            "ReturnValues": "ALL_NEW",
        }
        if expression_attribute_names:
            kwargs["ExpressionAttributeNames"] = expression_attribute_names
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression

        with storage_errors(f"update_item:{table}"):
            try:
                response = self._get_table(table).update_item(**kwargs)
            except ClientError as e:
                if e.response["Error"]["Code"] == CONDITIONAL_CHECK_FAILED:
                    return None
                raise
        attrs: dict[str, Any] | None = response.get("Attributes")
        return attrs

    def query(
        self,
        table: str,
        key_condition: Any,
        index_name: str | None = None,
        filter_expression: Any | None = None,
        consistent: bool = False,
        scan_index_forward: bool = True,
    ) -> list[dict[str, Any]]:
        """Query table or GSI, following pagination.

        Args:
            table: Table name without prefix
            key_condition: Boto3 Key condition
            index_name: GSI name (optional)
            filter_expression: Additional filter (optional)
            consistent: Strongly consistent read (base tables only)
            scan_index_forward: Sort order (True=ascending)

        Returns:
            List of items
        """
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": scan_index_forward,
        }
        if index_name:
            kwargs["IndexName"] = index_name
        elif consistent:
            kwargs["ConsistentRead"] = True
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression

        items: list[dict[str, Any]] = []
        with storage_errors(f"query:{table}"):
            while True:
                response = self._get_table(table).query(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        return items

    def scan(
        self,
        table: str,
        filter_expression: Any | None = None,
    ) -> list[dict[str, Any]]:
        """Scan a table, following pagination.

        Only used for small tables (the fleet).
        """
        kwargs: dict[str, Any] = {}
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression

        items: list[dict[str, Any]] = []
        with storage_errors(f"scan:{table}"):
            while True:
                response = self._get_table(table).scan(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        return items

    def transact_write(
        self,
        items: list[dict[str, Any]],
    ) -> bool:
        """Execute transactional write for multiple items.

        Args:
            items: List of TransactWriteItem dicts (low-level format)

        Returns:
            True if committed, False if DynamoDB cancelled the transaction
            (a condition failed or a concurrent transaction conflicted)

        Raises:
            TransactionFailure: On any other storage error
        """
        with storage_errors("transact_write"):
            try:
                self._client.transact_write_items(TransactItems=items)  # type: ignore[arg-type]
            except ClientError as e:
                if e.response["Error"]["Code"] == TRANSACTION_CANCELED:
                    reasons = [
                        r.get("Code", "None")
                        for r in e.response.get("CancellationReasons", [])
                    ]
                    logger.info("Transaction cancelled: %s", reasons or "no reasons")
                    return False
                raise
        return True

    def query_by_gsi(
        self,
        table: str,
        index_name: str,
        partition_key_name: str,
        partition_key_value: str,
    ) -> list[dict[str, Any]]:
        """Query a GSI by partition key."""
        key_condition = Key(partition_key_name).eq(partition_key_value)
        return self.query(table, key_condition, index_name=index_name)

    def transaction(self) -> "WriteTransaction":
        """Start collecting writes for one atomic commit."""
        return WriteTransaction(self)


class WriteTransaction:
    """Unit of work collecting writes for one TransactWriteItems call.

    Nothing reaches storage until commit(); dropping the object without
    committing is the rollback.

    Usage:
        tx = db.transaction()
        tx.put("rentals", item, condition="attribute_not_exists(rental_id)")
        tx.update("vehicles", {"vehicle_id": vid}, "SET ...", {...})
        if not tx.commit():
            ...  # a condition failed, nothing was written
    """

    # DynamoDB limit per TransactWriteItems call
    MAX_ITEMS = 100

    def __init__(self, db: DynamoDBService) -> None:
        self._db = db
        self._items: list[dict[str, Any]] = []
        self.committed = False

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> list[dict[str, Any]]:
        return list(self._items)

    def put(
        self,
        table: str,
        item: dict[str, Any],
        condition: str | None = None,
        names: dict[str, str] | None = None,
        values: dict[str, Any] | None = None,
    ) -> None:
        """Queue a Put of a full item."""
        op: dict[str, Any] = {
            "TableName": self._db.table_name(table),
            "Item": serialize_item(item),
        }
        self._add("Put", op, condition, names, values)

    def update(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        values: dict[str, Any],
        names: dict[str, str] | None = None,
        condition: str | None = None,
    ) -> None:
        """Queue an Update with expressions."""
        op: dict[str, Any] = {
            "TableName": self._db.table_name(table),
            "Key": serialize_item(key),
            "UpdateExpression": update_expression,
        }
        self._add("Update", op, condition, names, values)

    def _add(
        self,
        kind: str,
        op: dict[str, Any],
        condition: str | None,
        names: dict[str, str] | None,
        values: dict[str, Any] | None,
    ) -> None:
        if self.committed:
            raise RuntimeError("transaction already committed")
        if len(self._items) >= self.MAX_ITEMS:
            raise ValueError(f"a transaction holds at most {self.MAX_ITEMS} items")
        if condition:
            op["ConditionExpression"] = condition
        if names:
            op["ExpressionAttributeNames"] = names
        if values:
            op["ExpressionAttributeValues"] = serialize_values(values)
        self._items.append({kind: op})

    def commit(self) -> bool:
        """Commit all queued writes atomically.

        Returns:
            True if committed, False if a condition failed or the
            transaction lost to a concurrent one

        Raises:
            TransactionFailure: On storage errors
        """
        if not self._items:
            self.committed = True
            return True
        ok = self._db.transact_write(self._items)
        self.committed = ok
        return ok

