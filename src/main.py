"""
Composition root for the dual-mode authorization comparator.

Wires settings, boto3 resources, repositories, the legacy RBAC adapter,
the structured logger and the clock into the comparator, its background
dispatcher and the stats aggregator. Host request-handling code imports
these builders once at startup; construction fails fast on bad config.
"""

from typing import Any, Optional

import boto3

from src.auth.legacy_permissions import RoleBasedPermissionAdapter
from src.config.settings import Settings
from src.database.dynamodb_client import (
    AlertRepository,
    MismatchLogRepository,
    TenantMembershipRepository,
)
from src.monitoring.comparison import BackgroundComparisonDispatcher, PermissionComparator
from src.monitoring.stats import ComparisonStatsAggregator
from src.utils.clock import utc_now
from src.utils.logger import get_logger

logger = get_logger(__name__)


def _dynamodb(settings: Settings, dynamodb_resource: Optional[Any]) -> Any:
    return dynamodb_resource or boto3.resource("dynamodb", region_name=settings.region_name)


def build_permission_comparator(
    settings: Optional[Settings] = None,
    dynamodb_resource: Optional[Any] = None,
) -> PermissionComparator:
    """
    Build a PermissionComparator backed by DynamoDB.

    The kill switch follows ``settings.reload()`` without reconstruction.

    Raises:
        ConfigurationError: If settings are malformed
        ValueError: If the role permission matrix fails validation
        FileNotFoundError: If the role permission files are missing
    """
    settings = settings or Settings()
    dynamodb = _dynamodb(settings, dynamodb_resource)

    role_config = settings.role_permissions or settings.load_role_permissions()
    memberships = TenantMembershipRepository(
        table_name=settings.tenant_membership_table, dynamodb_resource=dynamodb
    )
    legacy_adapter = RoleBasedPermissionAdapter.from_config(
        memberships.get_membership, role_config
    )

    comparator = PermissionComparator(
        enabled=settings.is_comparison_enabled,
        legacy_adapter=legacy_adapter,
        mismatch_store=MismatchLogRepository(
            table_name=settings.mismatch_log_table, dynamodb_resource=dynamodb
        ),
        alert_store=AlertRepository(
            table_name=settings.mismatch_alert_table, dynamodb_resource=dynamodb
        ),
        logger=get_logger("src.monitoring.comparison"),
        clock=utc_now,
    )

    logger.info(
        "Dual-mode comparator initialized",
        operation="build_permission_comparator",
        context={
            "enabled": settings.is_comparison_enabled(),
            "mismatch_log_table": settings.mismatch_log_table,
            "mismatch_alert_table": settings.mismatch_alert_table,
        },
    )
    return comparator


def build_dispatcher(
    settings: Optional[Settings] = None,
    dynamodb_resource: Optional[Any] = None,
) -> BackgroundComparisonDispatcher:
    """Build a background dispatcher around a DynamoDB-backed comparator."""
    settings = settings or Settings()
    comparator = build_permission_comparator(settings, dynamodb_resource)
    return BackgroundComparisonDispatcher(comparator, max_workers=settings.max_workers)


def build_stats_aggregator(
    settings: Optional[Settings] = None,
    dynamodb_resource: Optional[Any] = None,
) -> ComparisonStatsAggregator:
    """Build the stats aggregator over the same DynamoDB tables as the comparator."""
    settings = settings or Settings()
    dynamodb = _dynamodb(settings, dynamodb_resource)

    return ComparisonStatsAggregator(
        enabled=settings.is_comparison_enabled,
        mismatch_store=MismatchLogRepository(
            table_name=settings.mismatch_log_table, dynamodb_resource=dynamodb
        ),
        alert_store=AlertRepository(
            table_name=settings.mismatch_alert_table, dynamodb_resource=dynamodb
        ),
        clock=utc_now,
    )
