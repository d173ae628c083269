"""
Comparison statistics for operational visibility.

Read side of the dual-mode comparator: summarizes recent mismatch and alert
activity for the migration-health dashboard, and optionally publishes the
summary as CloudWatch metrics. Unlike the comparator, store failures here
propagate to the operator.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import boto3

from src.config.settings import ConfigurationError
from src.domain.comparison import MismatchType, StatsSnapshot
from src.monitoring.comparison import EnabledFlag, KillSwitch, RecordStore
from src.utils.clock import Clock
from src.utils.logger import StructuredLogger, get_logger, log_operation


class ComparisonStatsAggregator:
    """
    Stats Aggregator.

    The breakdown is tallied from the fetched recent-mismatch sample only,
    so its values sum to ``len(recent_mismatches)`` (less any items lacking a
    ``mismatchType``) and undercount the historical distribution once the
    store holds more than ``limit`` records.
    The total counts are true store sizes.
    """

    def __init__(
        self,
        enabled: EnabledFlag,
        mismatch_store: RecordStore,
        alert_store: RecordStore,
        clock: Clock,
    ):
        if mismatch_store is None or alert_store is None:
            raise ConfigurationError("mismatch_store and alert_store are required")
        if clock is None or not callable(clock):
            raise ConfigurationError("clock must be callable")

        self.kill_switch = KillSwitch(enabled)
        self.mismatch_store = mismatch_store
        self.alert_store = alert_store
        self.clock = clock

    @log_operation("get_stats")
    def get_stats(self, limit: int) -> StatsSnapshot:
        """
        Summarize recent comparator activity across all tenants.

        Args:
            limit: Maximum number of recent mismatches and of recent alerts

        Returns:
            StatsSnapshot

        Raises:
            ValueError: If limit is not a positive integer
            DynamoDBException: If either store query fails
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")

        mismatch_count = self.mismatch_store.total_count()
        recent_mismatches = self.mismatch_store.recent_ordered_by_created_at_desc(limit)

        alerts_count = self.alert_store.total_count()
        recent_alerts = self.alert_store.recent_ordered_by_created_at_desc(limit)

        # Items without a mismatchType are left out of the tally.
        breakdown = Counter(
            record.data["mismatchType"]
            for record in recent_mismatches
            if record.data.get("mismatchType")
        )

        return StatsSnapshot(
            enabled=self.kill_switch.is_enabled(),
            mismatch_count=mismatch_count,
            alerts_count=alerts_count,
            breakdown=dict(breakdown),
            recent_mismatches=list(recent_mismatches),
            recent_alerts=list(recent_alerts),
            last_updated=self.clock(),
        )


class ComparisonMetricsPublisher:
    """
    Publishes stats snapshots to CloudWatch.

    Metrics:
    - mismatch_count: Total mismatch records
    - alerts_count: Total access-blocking alerts
    - mismatch_sample: Per-type tally of the sampled recent mismatches
    """

    NAMESPACE = "authz/dual-mode-comparison"

    def __init__(
        self,
        region_name: str = "ap-northeast-2",
        cloudwatch_client: Optional[Any] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Initialize metrics publisher.

        Args:
            region_name: AWS region for CloudWatch
            cloudwatch_client: Optional boto3 CloudWatch client (default: creates new)
            logger: Optional structured logger instance
        """
        self.region_name = region_name
        self.cloudwatch_client = cloudwatch_client or boto3.client(
            "cloudwatch", region_name=region_name
        )
        self.logger = logger or get_logger(__name__)

    def build_metric_data(self, snapshot: StatsSnapshot) -> List[Dict[str, Any]]:
        """Translate a snapshot into CloudWatch MetricData entries."""
        timestamp = snapshot.last_updated or datetime.now(timezone.utc)

        metric_data: List[Dict[str, Any]] = [
            {
                "MetricName": "mismatch_count",
                "Value": snapshot.mismatch_count,
                "Unit": "Count",
                "Timestamp": timestamp,
            },
            {
                "MetricName": "alerts_count",
                "Value": snapshot.alerts_count,
                "Unit": "Count",
                "Timestamp": timestamp,
            },
        ]

        for mismatch_type in MismatchType:
            metric_data.append(
                {
                    "MetricName": "mismatch_sample",
                    "Value": snapshot.breakdown.get(mismatch_type.value, 0),
                    "Unit": "Count",
                    "Timestamp": timestamp,
                    "Dimensions": [{"Name": "MismatchType", "Value": mismatch_type.value}],
                }
            )

        return metric_data

    def publish_snapshot(self, snapshot: StatsSnapshot) -> bool:
        """
        Publish snapshot metrics. Failures are logged, never raised.

        Returns:
            True if CloudWatch accepted every batch
        """
        try:
            metric_data = self.build_metric_data(snapshot)

            # CloudWatch limit: 20 metrics per request
            for i in range(0, len(metric_data), 20):
                batch = metric_data[i : i + 20]
                self.cloudwatch_client.put_metric_data(Namespace=self.NAMESPACE, MetricData=batch)

            self.logger.info(
                "Comparison metrics published",
                operation="publish_snapshot",
                context={
                    "mismatch_count": snapshot.mismatch_count,
                    "alerts_count": snapshot.alerts_count,
                    "enabled": snapshot.enabled,
                },
            )
            return True

        except Exception as e:  # noqa: BLE001
            self.logger.error(
                "Failed to publish comparison metrics",
                operation="publish_snapshot",
                error=str(e),
            )
            return False
