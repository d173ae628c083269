"""
Unit tests for comparison statistics (src/monitoring/stats.py)

Tests covering:
- Recent lists bounded by limit and ordered newest-first
- Sample-based breakdown vs. true total counts
- End-to-end snapshot from seeded stores
- Read failures propagate to the operator
- CloudWatch metrics publishing
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from src.config.settings import ConfigurationError
from src.domain.comparison import (
    AlertRecord,
    Impact,
    MismatchRecord,
    MismatchType,
    Severity,
)
from src.monitoring.stats import ComparisonMetricsPublisher, ComparisonStatsAggregator
from src.utils.logger import StructuredLogger

from tests.support.fakes import BASE_TIME, InMemoryRecordStore, StepClock


def seed_mismatch(store, mismatch_type, created_at, user_id="user-42"):
    allow_deny = mismatch_type is MismatchType.RBAC_ALLOW_REBAC_DENY
    store.append(
        MismatchRecord(
            tenant_id="tenant-acme",
            user_id=user_id,
            permission="view_users",
            subject_ref=f"user:{user_id}",
            object_ref="tenant:tenant-acme",
            rebac_allowed=not allow_deny,
            legacy_allowed=allow_deny,
            mismatch_type=mismatch_type,
            impact=Impact.ACCESS_BLOCKED if allow_deny else Impact.UNEXPECTED_ACCESS,
            severity=Severity.HIGH if allow_deny else Severity.MEDIUM,
            created_at=created_at,
        )
    )


def seed_alert(store, created_at, user_id="user-42"):
    store.append(
        AlertRecord(
            tenant_id="tenant-acme",
            user_id=user_id,
            permission="view_users",
            alert_type=MismatchType.RBAC_ALLOW_REBAC_DENY,
            created_at=created_at,
        )
    )


@pytest.fixture
def mismatch_store():
    return InMemoryRecordStore()


@pytest.fixture
def alert_store():
    return InMemoryRecordStore()


@pytest.fixture
def aggregator(mismatch_store, alert_store):
    return ComparisonStatsAggregator(
        enabled=True,
        mismatch_store=mismatch_store,
        alert_store=alert_store,
        clock=StepClock(start=BASE_TIME + timedelta(hours=1)),
    )


class TestGetStats:
    """Tests for get_stats()."""

    def test_end_to_end_scenario(self, aggregator, mismatch_store, alert_store):
        """Seeded stores produce the documented snapshot."""
        seed_mismatch(mismatch_store, MismatchType.RBAC_ALLOW_REBAC_DENY, BASE_TIME)
        seed_mismatch(
            mismatch_store,
            MismatchType.RBAC_DENY_REBAC_ALLOW,
            BASE_TIME + timedelta(minutes=5),
        )
        seed_alert(alert_store, BASE_TIME)

        snapshot = aggregator.get_stats(10)

        assert snapshot.mismatch_count == 2
        assert snapshot.alerts_count == 1
        assert snapshot.breakdown == {
            "rbac_allow_rebac_deny": 1,
            "rbac_deny_rebac_allow": 1,
        }
        assert len(snapshot.recent_mismatches) == 2
        assert snapshot.recent_mismatches[0].data["mismatchType"] == "rbac_deny_rebac_allow"
        assert snapshot.recent_mismatches[1].data["mismatchType"] == "rbac_allow_rebac_deny"
        assert len(snapshot.recent_alerts) == 1

    def test_recent_lists_bounded_and_sorted_desc(self, aggregator, mismatch_store, alert_store):
        for minute in (3, 1, 4, 0, 2):
            seed_mismatch(
                mismatch_store,
                MismatchType.RBAC_DENY_REBAC_ALLOW,
                BASE_TIME + timedelta(minutes=minute),
            )
            seed_alert(alert_store, BASE_TIME + timedelta(minutes=minute))

        snapshot = aggregator.get_stats(3)

        for recent in (snapshot.recent_mismatches, snapshot.recent_alerts):
            assert len(recent) == 3
            created = [r.data["createdAt"] for r in recent]
            assert created == sorted(created, reverse=True)
            assert created[0] == "2024-05-01T09:04:00.000Z"

    def test_breakdown_is_sampled_from_recent_mismatches(self, aggregator, mismatch_store):
        """Breakdown sums to the sample size, not the true total."""
        for minute in range(4):
            seed_mismatch(
                mismatch_store,
                MismatchType.RBAC_ALLOW_REBAC_DENY,
                BASE_TIME + timedelta(minutes=minute),
            )
        for minute in range(10, 12):
            seed_mismatch(
                mismatch_store,
                MismatchType.RBAC_DENY_REBAC_ALLOW,
                BASE_TIME + timedelta(minutes=minute),
            )

        snapshot = aggregator.get_stats(3)

        assert snapshot.mismatch_count == 6
        assert sum(snapshot.breakdown.values()) == len(snapshot.recent_mismatches) == 3
        assert snapshot.breakdown == {
            "rbac_deny_rebac_allow": 2,
            "rbac_allow_rebac_deny": 1,
        }

    def test_breakdown_skips_records_without_type(self, aggregator, mismatch_store):
        seed_mismatch(mismatch_store, MismatchType.RBAC_ALLOW_REBAC_DENY, BASE_TIME)
        mismatch_store.append(
            {"tenantId": "tenant-acme", "createdAt": "2024-05-01T09:01:00.000Z"}
        )

        snapshot = aggregator.get_stats(10)

        assert snapshot.mismatch_count == 2
        assert len(snapshot.recent_mismatches) == 2
        assert snapshot.breakdown == {"rbac_allow_rebac_deny": 1}
        assert sorted(snapshot.breakdown.items()) == [("rbac_allow_rebac_deny", 1)]

    def test_counts_reflect_true_store_size(self, aggregator, mismatch_store, alert_store):
        for minute in range(7):
            seed_mismatch(
                mismatch_store,
                MismatchType.RBAC_ALLOW_REBAC_DENY,
                BASE_TIME + timedelta(minutes=minute),
            )
            seed_alert(alert_store, BASE_TIME + timedelta(minutes=minute))

        for limit in (1, 5, 50):
            snapshot = aggregator.get_stats(limit)
            assert snapshot.mismatch_count == 7
            assert snapshot.alerts_count == 7

    def test_empty_stores(self, aggregator):
        snapshot = aggregator.get_stats(10)

        assert snapshot.mismatch_count == 0
        assert snapshot.alerts_count == 0
        assert snapshot.breakdown == {}
        assert snapshot.recent_mismatches == []
        assert snapshot.recent_alerts == []

    def test_snapshot_carries_kill_switch_and_timestamp(self, mismatch_store, alert_store):
        aggregator = ComparisonStatsAggregator(
            enabled=False,
            mismatch_store=mismatch_store,
            alert_store=alert_store,
            clock=StepClock(start=BASE_TIME),
        )

        snapshot = aggregator.get_stats(5)

        assert snapshot.enabled is False
        assert snapshot.last_updated == BASE_TIME
        assert snapshot.to_dict()["lastUpdated"] == "2024-05-01T09:00:00.000Z"

    def test_snapshot_wire_format(self, aggregator, mismatch_store, alert_store):
        seed_mismatch(mismatch_store, MismatchType.RBAC_ALLOW_REBAC_DENY, BASE_TIME)
        seed_alert(alert_store, BASE_TIME)

        data = aggregator.get_stats(10).to_dict()

        assert set(data) == {
            "enabled",
            "mismatchCount",
            "alertsCount",
            "breakdown",
            "recentMismatches",
            "recentAlerts",
            "lastUpdated",
        }
        assert data["recentMismatches"][0]["id"] == "rec-1"
        assert data["recentMismatches"][0]["impact"] == "access_blocked"
        assert data["recentAlerts"][0]["severity"] == "critical"

    @pytest.mark.parametrize("limit", [0, -1, "10", True, None])
    def test_invalid_limit_raises(self, aggregator, limit):
        with pytest.raises(ValueError):
            aggregator.get_stats(limit)

    def test_read_failure_propagates(self, alert_store):
        aggregator = ComparisonStatsAggregator(
            enabled=True,
            mismatch_store=InMemoryRecordStore(fail_on_read=True),
            alert_store=alert_store,
            clock=StepClock(),
        )

        with pytest.raises(RuntimeError, match="store unreachable"):
            aggregator.get_stats(10)

    def test_alert_store_read_failure_propagates(self, mismatch_store):
        aggregator = ComparisonStatsAggregator(
            enabled=True,
            mismatch_store=mismatch_store,
            alert_store=InMemoryRecordStore(fail_on_read=True),
            clock=StepClock(),
        )

        with pytest.raises(RuntimeError):
            aggregator.get_stats(10)

    def test_missing_store_raises_configuration_error(self, mismatch_store):
        with pytest.raises(ConfigurationError):
            ComparisonStatsAggregator(
                enabled=True,
                mismatch_store=mismatch_store,
                alert_store=None,
                clock=StepClock(),
            )


class TestComparisonMetricsPublisher:
    """Tests for CloudWatch publishing of stats snapshots."""

    @pytest.fixture
    def snapshot(self, aggregator, mismatch_store, alert_store):
        seed_mismatch(mismatch_store, MismatchType.RBAC_ALLOW_REBAC_DENY, BASE_TIME)
        seed_mismatch(
            mismatch_store,
            MismatchType.RBAC_ALLOW_REBAC_DENY,
            BASE_TIME + timedelta(minutes=1),
        )
        seed_alert(alert_store, BASE_TIME)
        return aggregator.get_stats(10)

    def test_build_metric_data(self, snapshot):
        publisher = ComparisonMetricsPublisher(
            cloudwatch_client=MagicMock(), logger=MagicMock(spec=StructuredLogger)
        )

        metrics = {
            (m["MetricName"], tuple(d["Value"] for d in m.get("Dimensions", []))): m["Value"]
            for m in publisher.build_metric_data(snapshot)
        }

        assert metrics[("mismatch_count", ())] == 2
        assert metrics[("alerts_count", ())] == 1
        assert metrics[("mismatch_sample", ("rbac_allow_rebac_deny",))] == 2
        assert metrics[("mismatch_sample", ("rbac_deny_rebac_allow",))] == 0

    def test_publish_snapshot(self, snapshot):
        client = MagicMock()
        publisher = ComparisonMetricsPublisher(
            cloudwatch_client=client, logger=MagicMock(spec=StructuredLogger)
        )

        assert publisher.publish_snapshot(snapshot) is True

        client.put_metric_data.assert_called_once()
        assert client.put_metric_data.call_args.kwargs["Namespace"] == "authz/dual-mode-comparison"

    def test_publish_failure_is_logged_not_raised(self, snapshot):
        client = MagicMock()
        client.put_metric_data.side_effect = RuntimeError("cloudwatch down")
        logger = MagicMock(spec=StructuredLogger)
        publisher = ComparisonMetricsPublisher(cloudwatch_client=client, logger=logger)

        assert publisher.publish_snapshot(snapshot) is False
        logger.error.assert_called_once()
