"""
Custom exception hierarchy for DynamoDB operations.

This module defines domain-specific exceptions used by the mismatch, alert
and membership repositories to handle failure scenarios in a granular,
testable way.
"""


class DynamoDBException(Exception):
    """
    Base exception for all DynamoDB-related errors.

    Used for recoverable and unrecoverable errors from DynamoDB operations.
    """

    pass


class ThrottlingError(DynamoDBException):
    """
    Raised when DynamoDB returns throttling errors after retry exhaustion.

    The comparator treats this like any other write failure; the stats
    aggregator surfaces it to the operator.
    """

    pass


class NetworkError(DynamoDBException):
    """
    Raised when network-level failures occur (connection timeout, DNS failure, etc.).

    This is unrecoverable at the repository level and indicates infrastructure issues.
    """

    pass


class PermissionError(DynamoDBException):
    """
    Raised when IAM permissions are insufficient for the operation.

    Indicates a configuration/security issue that must be fixed by an administrator.
    """

    pass
