"""
DynamoDB storage gateway for habit-service

Thin key-value layer over the three logical tables:
- habits       (userId, habitId)
- completions  (userId, completionDate#habitId)
- users        (userId)

Store failures surface as StorageError; rejected conditional writes as
ConditionFailedError.
"""
import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from decimal import Decimal
import threading
import logging

from app.config import Settings, TableConfig
from app.exceptions import ConditionFailedError, StorageError

logger = logging.getLogger(__name__)

HABITS = "habits"
COMPLETIONS = "completions"
USERS = "users"

COMPLETION_SORT_KEY = "completionDate#habitId"

# Partition key attribute per logical table
PARTITION_KEYS = {
    HABITS: "userId",
    COMPLETIONS: "userId",
    USERS: "userId",
}


class StorageGateway:
    """
    DynamoDB gateway with lazy initialization

    Shared by every request thread. The resource and the Table objects are
    created once under a lock; afterwards only Table actions are called,
    which go straight to the (thread-safe) low-level client.
    """

    def __init__(self, tables: TableConfig, settings: Settings):
        self.tables = tables
        self.settings = settings
        self._dynamodb = None
        self._tables: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def dynamodb(self):
        """Lazy initialization of DynamoDB resource"""
        if self._dynamodb is None:
            with self._lock:
                if self._dynamodb is None:
                    self._dynamodb = self._create_resource()
        return self._dynamodb

    def _create_resource(self):
        kwargs = {
            'region_name': self.settings.AWS_REGION,
        }

        # Only use endpoint_url for LocalStack
        if self.settings.DYNAMODB_ENDPOINT:
            kwargs['endpoint_url'] = self.settings.DYNAMODB_ENDPOINT

        # Explicit credentials only in LocalStack mode, otherwise boto3 uses the IAM role
        if self.settings.DYNAMODB_ENDPOINT and self.settings.AWS_ACCESS_KEY_ID:
            kwargs['aws_access_key_id'] = self.settings.AWS_ACCESS_KEY_ID
            kwargs['aws_secret_access_key'] = self.settings.AWS_SECRET_ACCESS_KEY
            logger.info("Using explicit AWS credentials (LocalStack mode)")
        else:
            logger.info("Using IAM role credentials (AWS mode)")

        # Own session: boto3's module-level default session is not thread-safe
        return boto3.session.Session().resource('dynamodb', **kwargs)

    def table(self, name: str):
        """Resolve a logical table name to a boto3 Table"""
        table = self._tables.get(name)
        if table is None:
            physical = getattr(self.tables, name, None)
            if physical is None:
                raise ValueError(f"Unknown table: {name}")
            resource = self.dynamodb
            with self._lock:
                table = self._tables.setdefault(name, resource.Table(physical))
        return table

    # ============= OPERATIONS =============

    def get_item(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Get a single record by its full key

        Returns:
            Record dict or None if not found
        """
        try:
            response = self.table(table).get_item(Key=key, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise self._storage_error(e, table, "get_item")

        if 'Item' not in response:
            return None
        return python_dict(response['Item'])

    def put_item(self, table: str, item: Dict[str, Any], if_not_exists: bool = False) -> None:
        """
        Write a full record

        Args:
            table: Logical table name
            item: Record including its key attributes
            if_not_exists: Reject the write if a record with the same key exists

        Raises:
            ConditionFailedError: If if_not_exists is set and the record exists
        """
        kwargs: Dict[str, Any] = {'Item': item}
        if if_not_exists:
            kwargs['ConditionExpression'] = 'attribute_not_exists(#pk)'
            kwargs['ExpressionAttributeNames'] = {'#pk': PARTITION_KEYS[table]}

        try:
            self.table(table).put_item(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._storage_error(e, table, "put_item")

    def update_item(
        self,
        table: str,
        key: Dict[str, Any],
        add: Optional[Dict[str, Any]] = None,
        set_fields: Optional[Dict[str, Any]] = None,
        set_if_absent: Optional[Dict[str, Any]] = None,
        condition: Optional[str] = None,
        condition_values: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Atomically apply additive deltas and field assignments to one record.

        The record is created if it does not exist (DynamoDB upsert semantics).

        Args:
            table: Logical table name
            key: Full key of the record
            add: Attribute -> numeric delta, applied with ADD
            set_fields: Attribute -> value, applied with SET
            set_if_absent: Attribute -> value, only set when the attribute is missing
            condition: Optional ConditionExpression; may reference attributes
                directly and its own placeholders from condition_values
            condition_values: Values referenced by condition

        Returns:
            The full record after the update

        Raises:
            ConditionFailedError: If condition does not hold
        """
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        set_parts: List[str] = []
        add_parts: List[str] = []

        def placeholder(attribute: str, value: Any) -> tuple:
            index = len(names)
            names[f'#a{index}'] = attribute
            values[f':a{index}'] = value
            return f'#a{index}', f':a{index}'

        for attribute, delta in (add or {}).items():
            name, value = placeholder(attribute, delta)
            add_parts.append(f'{name} {value}')

        for attribute, new_value in (set_fields or {}).items():
            name, value = placeholder(attribute, new_value)
            set_parts.append(f'{name} = {value}')

        for attribute, default in (set_if_absent or {}).items():
            name, value = placeholder(attribute, default)
            set_parts.append(f'{name} = if_not_exists({name}, {value})')

        if not add_parts and not set_parts:
            raise ValueError("update_item requires at least one attribute to change")

        update_expr = ''
        if add_parts:
            update_expr += 'ADD ' + ', '.join(add_parts)
        if set_parts:
            update_expr += (' ' if update_expr else '') + 'SET ' + ', '.join(set_parts)

        kwargs: Dict[str, Any] = {
            'Key': key,
            'UpdateExpression': update_expr,
            'ExpressionAttributeNames': names,
            'ExpressionAttributeValues': values,
            'ReturnValues': 'ALL_NEW',
        }
        if condition:
            kwargs['ConditionExpression'] = condition
            values.update(condition_values or {})

        try:
            response = self.table(table).update_item(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._storage_error(e, table, "update_item")

        return python_dict(response.get('Attributes', {}))

    def query_partition(self, table: str, partition_value: str) -> List[Dict[str, Any]]:
        """Return every record sharing one partition key, following pagination"""
        kwargs: Dict[str, Any] = {
            'KeyConditionExpression': Key(PARTITION_KEYS[table]).eq(partition_value),
        }
        items: List[Dict[str, Any]] = []
        try:
            while True:
                response = self.table(table).query(**kwargs)
                items.extend(python_dict(item) for item in response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except (ClientError, BotoCoreError) as e:
            raise self._storage_error(e, table, "query")

        return items

    def delete_item(
        self,
        table: str,
        key: Dict[str, Any],
        condition: Optional[str] = None,
        condition_values: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Delete a single record by its full key

        Raises:
            ConditionFailedError: If condition does not hold
        """
        kwargs: Dict[str, Any] = {'Key': key}
        if condition:
            kwargs['ConditionExpression'] = condition
            if condition_values:
                kwargs['ExpressionAttributeValues'] = condition_values

        try:
            self.table(table).delete_item(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._storage_error(e, table, "delete_item")

    def _storage_error(self, error: Exception, table: str, operation: str) -> StorageError:
        if isinstance(error, ClientError):
            code = error.response.get('Error', {}).get('Code')
            if code == 'ConditionalCheckFailedException':
                logger.info(f"Conditional {operation} rejected on {table}")
                return ConditionFailedError(
                    f"Condition failed for {operation} on {table}",
                    table=table,
                    operation=operation,
                )

        logger.error(f"DynamoDB {operation} failed on {table}: {str(error)}")
        return StorageError(f"Storage {operation} failed on {table}", table=table, operation=operation)


# ============= HELPER FUNCTIONS =============

def python_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert DynamoDB dict to Python dict (handles Decimal)"""
    return {k: python_value(v) for k, v in data.items()}


def python_value(value: Any) -> Any:
    """Convert DynamoDB value to Python value"""
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    elif isinstance(value, dict):
        return {k: python_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [python_value(item) for item in value]
    return value


def completion_sort_key(date: str, habit_id: str) -> str:
    """Build the completions sort key: '{YYYY-MM-DD}#{habitId}'"""
    return f"{date}#{habit_id}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix"""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
