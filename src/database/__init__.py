"""Database module - DynamoDB repository pattern implementation."""

from .dynamodb_client import (
    AlertRepository,
    AppendOnlyRepository,
    MismatchLogRepository,
    TenantMembershipRepository,
)
from .exceptions import (
    DynamoDBException,
    ThrottlingError,
    NetworkError,
    PermissionError,
)

__all__ = [
    "AlertRepository",
    "AppendOnlyRepository",
    "MismatchLogRepository",
    "TenantMembershipRepository",
    "DynamoDBException",
    "ThrottlingError",
    "NetworkError",
    "PermissionError",
]
