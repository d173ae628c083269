"""
Unit tests for comparison domain models (src/domain/comparison.py)
"""

from datetime import datetime, timezone

import pytest

from src.domain.comparison import (
    AlertRecord,
    ComparisonContext,
    ComparisonInput,
    Impact,
    MismatchRecord,
    MismatchType,
    Severity,
    StoredRecord,
    classify_disagreement,
)
from src.utils.clock import from_iso8601, to_iso8601

CREATED = datetime(2024, 5, 1, 9, 30, 15, 250000, tzinfo=timezone.utc)


class TestClassifyDisagreement:
    """Tests for classify_disagreement()."""

    @pytest.mark.parametrize("verdict", [True, False])
    def test_agreement_returns_none(self, verdict):
        assert classify_disagreement(verdict, verdict) is None

    def test_legacy_allow_rebac_deny(self):
        result = classify_disagreement(legacy_allowed=True, rebac_allowed=False)

        assert result.mismatch_type is MismatchType.RBAC_ALLOW_REBAC_DENY
        assert result.impact is Impact.ACCESS_BLOCKED
        assert result.severity is Severity.HIGH
        assert result.raises_alert is True

    def test_legacy_deny_rebac_allow(self):
        result = classify_disagreement(legacy_allowed=False, rebac_allowed=True)

        assert result.mismatch_type is MismatchType.RBAC_DENY_REBAC_ALLOW
        assert result.impact is Impact.UNEXPECTED_ACCESS
        assert result.severity is Severity.MEDIUM
        assert result.raises_alert is False


class TestEnumLiterals:
    """Wire literals consumed by external reporting tooling."""

    def test_literals(self):
        assert [m.value for m in MismatchType] == [
            "rbac_allow_rebac_deny",
            "rbac_deny_rebac_allow",
        ]
        assert [i.value for i in Impact] == ["access_blocked", "unexpected_access"]
        assert {s.value for s in Severity} == {"low", "medium", "high", "critical"}


class TestComparisonInput:
    """Tests for ComparisonInput.from_dict()."""

    def test_from_middleware_payload(self):
        comparison = ComparisonInput.from_dict(
            {
                "tenantId": "tenant-acme",
                "userId": "user-42",
                "permission": "export_data",
                "subjectRef": "user:user-42",
                "objectRef": "report:7",
                "rebacAllowed": True,
                "path": "/api/reports/7/export",
                "context": {
                    "ip": "198.51.100.7",
                    "userAgent": "curl/8.0",
                    "correlationId": "corr-1",
                    "sessionId": "sess-1",
                },
            }
        )

        assert comparison.subject_id == "user-42"
        assert comparison.rebac_allowed is True
        assert comparison.request_path == "/api/reports/7/export"
        assert comparison.context == ComparisonContext(
            ip="198.51.100.7",
            user_agent="curl/8.0",
            correlation_id="corr-1",
            session_id="sess-1",
        )

    def test_missing_context_defaults_to_empty(self):
        comparison = ComparisonInput.from_dict(
            {
                "tenantId": "t",
                "userId": "u",
                "permission": "p",
                "subjectRef": "user:u",
                "objectRef": "tenant:t",
                "rebacAllowed": False,
            }
        )

        assert comparison.context == ComparisonContext()
        assert comparison.request_path == ""

    def test_missing_required_field_raises(self):
        with pytest.raises(KeyError):
            ComparisonInput.from_dict({"tenantId": "t"})


class TestRecords:
    """Tests for MismatchRecord / AlertRecord serialization."""

    def test_mismatch_record_round_trip(self):
        record = MismatchRecord(
            tenant_id="tenant-acme",
            user_id="user-42",
            permission="manage_users",
            subject_ref="user:user-42",
            object_ref="tenant:tenant-acme",
            rebac_allowed=False,
            legacy_allowed=True,
            mismatch_type=MismatchType.RBAC_ALLOW_REBAC_DENY,
            impact=Impact.ACCESS_BLOCKED,
            severity=Severity.HIGH,
            created_at=CREATED,
        )

        data = record.to_dict()

        assert data["createdAt"] == "2024-05-01T09:30:15.250Z"
        assert MismatchRecord.from_dict(data) == record

    def test_alert_record_defaults_to_critical(self):
        alert = AlertRecord(
            tenant_id="tenant-acme",
            user_id="user-42",
            permission="manage_users",
            alert_type=MismatchType.RBAC_ALLOW_REBAC_DENY,
            created_at=CREATED,
        )

        assert alert.to_dict() == {
            "tenantId": "tenant-acme",
            "userId": "user-42",
            "permission": "manage_users",
            "type": "rbac_allow_rebac_deny",
            "severity": "critical",
            "createdAt": "2024-05-01T09:30:15.250Z",
        }
        assert AlertRecord.from_dict(alert.to_dict()) == alert

    def test_stored_record_flattens_id(self):
        stored = StoredRecord(id="abc", data={"permission": "view_users"})

        assert stored.to_dict() == {"id": "abc", "permission": "view_users"}


class TestClock:
    """Tests for ISO-8601 helpers."""

    def test_naive_datetime_is_treated_as_utc(self):
        assert to_iso8601(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05.000Z"

    def test_fixed_width_strings_sort_chronologically(self):
        earlier = to_iso8601(datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc))
        later = to_iso8601(datetime(2024, 1, 1, 0, 0, 0, 500000, tzinfo=timezone.utc))

        assert earlier < later

    def test_from_iso8601_is_aware(self):
        parsed = from_iso8601("2024-05-01T09:30:15.250Z")

        assert parsed == CREATED
        assert parsed.tzinfo is not None
