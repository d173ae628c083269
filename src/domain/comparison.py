"""
Dual-mode authorization comparison domain model.

Represents one shadow-mode authorization check (legacy RBAC verdict vs. new
ReBAC verdict) and the append-only records persisted when they disagree.

Wire format:
    Persisted records and the stats snapshot use camelCase field names and
    the literal enum values below. External reporting/export tooling reads
    these documents directly, so the names must not change.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from src.utils.clock import from_iso8601, to_iso8601


class MismatchType(Enum):
    """Direction of a disagreement between the two engines."""

    RBAC_ALLOW_REBAC_DENY = "rbac_allow_rebac_deny"
    RBAC_DENY_REBAC_ALLOW = "rbac_deny_rebac_allow"


class Impact(Enum):
    """What cutting over to the new engine would do to the caller."""

    ACCESS_BLOCKED = "access_blocked"
    UNEXPECTED_ACCESS = "unexpected_access"


class Severity(Enum):
    """Severity tags. LOW is reserved for future mismatch categories."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class MismatchClassification:
    """Result of classifying one disagreement."""

    mismatch_type: MismatchType
    impact: Impact
    severity: Severity
    raises_alert: bool


_ACCESS_BLOCKED = MismatchClassification(
    mismatch_type=MismatchType.RBAC_ALLOW_REBAC_DENY,
    impact=Impact.ACCESS_BLOCKED,
    severity=Severity.HIGH,
    raises_alert=True,
)

_UNEXPECTED_ACCESS = MismatchClassification(
    mismatch_type=MismatchType.RBAC_DENY_REBAC_ALLOW,
    impact=Impact.UNEXPECTED_ACCESS,
    severity=Severity.MEDIUM,
    raises_alert=False,
)


def classify_disagreement(
    legacy_allowed: bool, rebac_allowed: bool
) -> Optional[MismatchClassification]:
    """
    Classify a pair of verdicts.

    Args:
        legacy_allowed: Verdict of the legacy RBAC engine
        rebac_allowed: Verdict of the new ReBAC engine

    Returns:
        None when both engines agree, otherwise the classification for the
        direction of the disagreement.
    """
    if legacy_allowed == rebac_allowed:
        return None
    if legacy_allowed:
        return _ACCESS_BLOCKED
    return _UNEXPECTED_ACCESS


@dataclass
class ComparisonContext:
    """Request context carried along for investigation of a mismatch."""

    ip: Optional[str] = None
    user_agent: Optional[str] = None
    correlation_id: Optional[str] = None
    session_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ComparisonContext":
        """Build from a camelCase (or snake_case) dict; missing keys become None."""
        data = data or {}
        return cls(
            ip=data.get("ip"),
            user_agent=data.get("userAgent", data.get("user_agent")),
            correlation_id=data.get("correlationId", data.get("correlation_id")),
            session_id=data.get("sessionId", data.get("session_id")),
        )


@dataclass
class ComparisonInput:
    """
    One authorization check as seen by the new engine.

    Attributes:
        tenant_id: Tenant the request was made in
        subject_id: Acting user id, as understood by the legacy engine
        permission: Permission name that was checked
        subject_ref: Subject reference in the relationship model (e.g. "user:42")
        object_ref: Object reference in the relationship model (e.g. "tenant:acme")
        rebac_allowed: The new engine's verdict
        request_path: Originating request path
        context: Caller IP, user-agent, correlation id and session id
    """

    tenant_id: str
    subject_id: str
    permission: str
    subject_ref: str
    object_ref: str
    rebac_allowed: bool
    request_path: str = ""
    context: ComparisonContext = field(default_factory=ComparisonContext)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComparisonInput":
        """
        Create ComparisonInput from the camelCase payload a middleware emits.

        Args:
            data: Dictionary with tenantId, userId, permission, subjectRef,
                objectRef, rebacAllowed, path and an optional context dict

        Returns:
            ComparisonInput instance

        Raises:
            KeyError: If a required field is missing
        """
        return cls(
            tenant_id=data["tenantId"],
            subject_id=data["userId"],
            permission=data["permission"],
            subject_ref=data["subjectRef"],
            object_ref=data["objectRef"],
            rebac_allowed=data["rebacAllowed"],
            request_path=data.get("path", ""),
            context=ComparisonContext.from_dict(data.get("context")),
        )


@dataclass
class MismatchRecord:
    """Append-only record of one disagreement between the two engines."""

    tenant_id: str
    user_id: str
    permission: str
    subject_ref: str
    object_ref: str
    rebac_allowed: bool
    legacy_allowed: bool
    mismatch_type: MismatchType
    impact: Impact
    severity: Severity
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted wire schema."""
        return {
            "tenantId": self.tenant_id,
            "userId": self.user_id,
            "permission": self.permission,
            "subjectRef": self.subject_ref,
            "objectRef": self.object_ref,
            "rebacAllowed": self.rebac_allowed,
            "legacyAllowed": self.legacy_allowed,
            "mismatchType": self.mismatch_type.value,
            "impact": self.impact.value,
            "severity": self.severity.value,
            "createdAt": to_iso8601(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MismatchRecord":
        """Create MismatchRecord from a stored document."""
        return cls(
            tenant_id=data["tenantId"],
            user_id=data["userId"],
            permission=data["permission"],
            subject_ref=data["subjectRef"],
            object_ref=data["objectRef"],
            rebac_allowed=bool(data["rebacAllowed"]),
            legacy_allowed=bool(data["legacyAllowed"]),
            mismatch_type=MismatchType(data["mismatchType"]),
            impact=Impact(data["impact"]),
            severity=Severity(data["severity"]),
            created_at=from_iso8601(data["createdAt"]),
        )


@dataclass
class AlertRecord:
    """Append-only alert raised for an access-blocking mismatch."""

    tenant_id: str
    user_id: str
    permission: str
    alert_type: MismatchType
    created_at: datetime
    severity: Severity = Severity.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted wire schema."""
        return {
            "tenantId": self.tenant_id,
            "userId": self.user_id,
            "permission": self.permission,
            "type": self.alert_type.value,
            "severity": self.severity.value,
            "createdAt": to_iso8601(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertRecord":
        """Create AlertRecord from a stored document."""
        return cls(
            tenant_id=data["tenantId"],
            user_id=data["userId"],
            permission=data["permission"],
            alert_type=MismatchType(data["type"]),
            severity=Severity(data["severity"]),
            created_at=from_iso8601(data["createdAt"]),
        )


@dataclass
class StoredRecord:
    """A persisted document together with its store-assigned identifier."""

    id: str
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.data}


@dataclass
class StatsSnapshot:
    """Migration-health summary computed on demand by the stats aggregator."""

    enabled: bool
    mismatch_count: int
    alerts_count: int
    breakdown: Dict[str, int]
    recent_mismatches: List[StoredRecord]
    recent_alerts: List[StoredRecord]
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire schema consumed by the operations surface."""
        return {
            "enabled": self.enabled,
            "mismatchCount": self.mismatch_count,
            "alertsCount": self.alerts_count,
            "breakdown": dict(self.breakdown),
            "recentMismatches": [r.to_dict() for r in self.recent_mismatches],
            "recentAlerts": [r.to_dict() for r in self.recent_alerts],
            "lastUpdated": to_iso8601(self.last_updated),
        }
