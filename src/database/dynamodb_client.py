"""
DynamoDB repository implementations for comparator persistence.

Provides the append-only Diff Log and Alert stores used by the dual-mode
authorization comparator, plus the read-only membership lookup backing the
legacy RBAC adapter. Dependency injection of the boto3 resource keeps every
repository testable against moto.
"""

import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Union

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError, BotoCoreError

from src.domain.comparison import AlertRecord, MismatchRecord, StoredRecord
from src.utils.logger import get_logger
from .exceptions import (
    DynamoDBException,
    ThrottlingError,
    NetworkError,
    PermissionError,
)


logger = get_logger(__name__)

RECORD_KIND_ATTRIBUTE = "recordKind"
CREATED_AT_ATTRIBUTE = "createdAt"
CREATED_AT_INDEX = "recordKind-createdAt-index"


class AppendOnlyRepository:
    """
    Append-only record store in DynamoDB.

    Records are never updated or deleted. Each item carries a store-assigned
    ``id`` and a constant ``recordKind`` partition attribute so that the
    ``recordKind-createdAt-index`` GSI yields all records of this store
    ordered by creation time.

    Table Schema:
        Partition Key: id (uuid4 hex)
        GSI recordKind-createdAt-index: recordKind (HASH), createdAt (RANGE)
    """

    RECORD_KIND = "record"

    def __init__(
        self,
        table_name: str,
        dynamodb_resource: Optional[Any] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
    ):
        """
        Initialize the repository.

        Args:
            table_name: DynamoDB table name
            dynamodb_resource: boto3 DynamoDB resource (default: creates new)
            max_retries: Number of retries for throttling errors
            backoff_base: Base exponential backoff multiplier (seconds)

        Raises:
            ValueError: If max_retries is less than 1
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")

        self.table_name = table_name
        self.dynamodb = dynamodb_resource or boto3.resource("dynamodb")
        self.table = self.dynamodb.Table(table_name)
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    @staticmethod
    def create_table(dynamodb_resource: Any, table_name: str) -> Any:
        """
        Create a table with the layout this repository expects.

        Used by local tooling and tests; production tables are provisioned
        by infrastructure code with the same key schema.
        """
        return dynamodb_resource.create_table(
            TableName=table_name,
            KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
            AttributeDefinitions=[
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": RECORD_KIND_ATTRIBUTE, "AttributeType": "S"},
                {"AttributeName": CREATED_AT_ATTRIBUTE, "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": CREATED_AT_INDEX,
                    "KeySchema": [
                        {"AttributeName": RECORD_KIND_ATTRIBUTE, "KeyType": "HASH"},
                        {"AttributeName": CREATED_AT_ATTRIBUTE, "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            BillingMode="PAY_PER_REQUEST",
        )

    def append(self, record: Union[MismatchRecord, AlertRecord, Dict[str, Any]]) -> str:
        """
        Append a record.

        Args:
            record: Domain record (serialized with to_dict) or wire-format dict
                that contains at least ``createdAt``

        Returns:
            Store-assigned record id

        Raises:
            DynamoDBException: If validation fails or DynamoDB error
            ThrottlingError: If throttled after max retries
            NetworkError: If connection fails
        """
        data = record.to_dict() if hasattr(record, "to_dict") else dict(record)

        if CREATED_AT_ATTRIBUTE not in data:
            raise DynamoDBException(f"Missing required field: {CREATED_AT_ATTRIBUTE}")

        record_id = uuid.uuid4().hex
        item = {key: value for key, value in data.items() if value is not None}
        item["id"] = record_id
        item[RECORD_KIND_ATTRIBUTE] = self.RECORD_KIND

        context = {"table": self.table_name, "record_id": record_id}

        self._execute("append", context, lambda: self.table.put_item(Item=item))
        return record_id

    def recent_ordered_by_created_at_desc(self, limit: int) -> List[StoredRecord]:
        """
        Fetch the most recent records, newest first.

        Args:
            limit: Maximum number of records to return

        Returns:
            List of StoredRecord (id + wire data), at most ``limit`` long

        Raises:
            DynamoDBException: If the query fails
            NetworkError: If connection fails
        """
        if limit <= 0:
            return []

        context = {"table": self.table_name, "limit": limit}
        items: List[Dict[str, Any]] = []
        query_kwargs: Dict[str, Any] = {
            "IndexName": CREATED_AT_INDEX,
            "KeyConditionExpression": Key(RECORD_KIND_ATTRIBUTE).eq(self.RECORD_KIND),
            "ScanIndexForward": False,
        }

        while len(items) < limit:
            query_kwargs["Limit"] = limit - len(items)
            response = self._execute(
                "recent_ordered_by_created_at_desc",
                context,
                lambda: self.table.query(**query_kwargs),
            )
            items.extend(response.get("Items", []))

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            query_kwargs["ExclusiveStartKey"] = last_key

        return [self._to_stored_record(item) for item in items[:limit]]

    def total_count(self) -> int:
        """
        Count every record in the store.

        Raises:
            DynamoDBException: If the query fails
            NetworkError: If connection fails
        """
        context = {"table": self.table_name}
        total = 0
        query_kwargs: Dict[str, Any] = {
            "IndexName": CREATED_AT_INDEX,
            "KeyConditionExpression": Key(RECORD_KIND_ATTRIBUTE).eq(self.RECORD_KIND),
            "Select": "COUNT",
        }

        while True:
            response = self._execute(
                "total_count", context, lambda: self.table.query(**query_kwargs)
            )
            total += int(response.get("Count", 0))

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return total
            query_kwargs["ExclusiveStartKey"] = last_key

    @staticmethod
    def _to_stored_record(item: Dict[str, Any]) -> StoredRecord:
        data = {
            key: value
            for key, value in item.items()
            if key not in ("id", RECORD_KIND_ATTRIBUTE)
        }
        return StoredRecord(id=str(item["id"]), data=data)

    def _execute(  # type: ignore[return]
        self, operation: str, context: Dict[str, Any], call: Callable[[], Any]
    ) -> Any:
        """Run a DynamoDB call with throttling retries and exception translation."""
        for attempt in range(self.max_retries):
            try:
                start_time = time.time()
                response = call()
                duration_ms = (time.time() - start_time) * 1000

                logger.debug(
                    f"{operation} succeeded in {duration_ms:.2f}ms",
                    operation=operation,
                    context=context,
                )
                return response

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")

                if error_code == "ProvisionedThroughputExceededException":
                    if attempt < self.max_retries - 1:
                        wait_time = self.backoff_base * (2**attempt)
                        logger.warning(
                            f"Throttled, retrying after {wait_time}s",
                            operation=operation,
                            context=context,
                            error=error_code,
                        )
                        time.sleep(wait_time)
                        continue
                    else:
                        logger.error(
                            "Throttling after max retries",
                            operation=operation,
                            context=context,
                            error=error_code,
                        )
                        raise ThrottlingError(
                            f"DynamoDB throttled after {self.max_retries} retries"
                        )

                elif error_code == "AccessDeniedException":
                    logger.error(
                        "Permission denied",
                        operation=operation,
                        context=context,
                        error=error_code,
                    )
                    raise PermissionError(f"Insufficient IAM permissions: {error_code}")

                else:
                    logger.error(
                        "DynamoDB error",
                        operation=operation,
                        context=context,
                        error=str(e),
                    )
                    raise DynamoDBException(f"DynamoDB error: {e}")

            except (BotoCoreError, OSError) as e:
                logger.error(
                    "Network error",
                    operation=operation,
                    context=context,
                    error=str(e),
                )
                raise NetworkError(f"Network error: {e}")


class MismatchLogRepository(AppendOnlyRepository):
    """Diff Log Store: one item per engine disagreement."""

    RECORD_KIND = "mismatch"

    def __init__(self, table_name: str = "authz_mismatch_log", **kwargs: Any):
        super().__init__(table_name, **kwargs)


class AlertRepository(AppendOnlyRepository):
    """Alert Store: one item per access-blocking disagreement."""

    RECORD_KIND = "alert"

    def __init__(self, table_name: str = "authz_mismatch_alerts", **kwargs: Any):
        super().__init__(table_name, **kwargs)


class TenantMembershipRepository:
    """
    Read-only lookup of the legacy engine's role assignments.

    Table Schema:
        Partition Key: userId
        Attributes: tenantId, role, customPermissions (list), planType
    """

    def __init__(
        self,
        table_name: str = "tenant_memberships",
        dynamodb_resource: Optional[Any] = None,
    ):
        """
        Initialize TenantMembershipRepository.

        Args:
            table_name: DynamoDB table name (default: "tenant_memberships")
            dynamodb_resource: boto3 DynamoDB resource (default: creates new)
        """
        self.table_name = table_name
        self.dynamodb = dynamodb_resource or boto3.resource("dynamodb")
        self.table = self.dynamodb.Table(table_name)

    def get_membership(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a user's membership.

        Returns None when the user has no membership (not an exception).

        Args:
            user_id: Acting-subject identifier

        Returns:
            Membership dict or None if not found

        Raises:
            PermissionError: If IAM permissions insufficient
            DynamoDBException: On any other DynamoDB error
            NetworkError: If connection fails
        """
        context = {"user_id": user_id}

        try:
            start_time = time.time()
            response = self.table.get_item(Key={"userId": user_id})
            duration_ms = (time.time() - start_time) * 1000

            item = response.get("Item")

            if item is None:
                logger.debug(
                    "Membership not found",
                    operation="get_membership",
                    context=context,
                )
                return None

            logger.debug(
                f"Membership retrieved in {duration_ms:.2f}ms",
                operation="get_membership",
                context=context,
            )
            return dict(item)

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")

            if error_code == "AccessDeniedException":
                logger.error(
                    "Permission denied",
                    operation="get_membership",
                    context=context,
                    error=error_code,
                )
                raise PermissionError(f"Insufficient IAM permissions: {error_code}")

            logger.error(
                "DynamoDB error",
                operation="get_membership",
                context=context,
                error=str(e),
            )
            raise DynamoDBException(f"DynamoDB error: {e}")

        except (BotoCoreError, OSError) as e:
            logger.error(
                "Network error",
                operation="get_membership",
                context=context,
                error=str(e),
            )
            raise NetworkError(f"Network error: {e}")
