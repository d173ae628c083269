"""
Dual-mode Authorization Comparator

Shadow-mode validation of the new relationship-based (ReBAC) engine against
the currently-authoritative role-based (RBAC) engine on live traffic.

The comparator never enforces access: the caller has already acted on its
authorization decision before the comparator runs. Disagreements are
persisted to the mismatch log; access-blocking ones additionally raise a
critical alert and a warning log so an operator can investigate a potential
regression before cutover.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from src.config.settings import ConfigurationError
from src.domain.comparison import (
    AlertRecord,
    ComparisonInput,
    MismatchClassification,
    MismatchRecord,
    StoredRecord,
    classify_disagreement,
)
from src.auth.legacy_permissions import LegacyDecisionAdapter
from src.utils.clock import Clock
from src.utils.logger import StructuredLogger, get_logger, mask_ip


class RecordStore(Protocol):
    """Append-only persistence contract shared by the mismatch and alert stores."""

    def append(self, record: Any) -> Any: ...

    def recent_ordered_by_created_at_desc(self, limit: int) -> List[StoredRecord]: ...

    def total_count(self) -> int: ...


EnabledFlag = Union[bool, Callable[[], bool]]


class KillSwitch:
    """
    Global on/off gate for the comparator.

    Accepts a fixed bool, or a zero-argument callable (e.g. a bound
    ``Settings.is_comparison_enabled``) evaluated on every check so that a
    configuration reload takes effect without reconstruction.
    """

    def __init__(self, enabled: EnabledFlag):
        if isinstance(enabled, bool):
            self._provider: Callable[[], bool] = lambda: enabled
        elif callable(enabled):
            self._provider = enabled
        else:
            raise ConfigurationError(
                f"enabled must be a bool or a callable returning bool, got {type(enabled).__name__}"
            )

    def is_enabled(self) -> bool:
        return self._provider() is True


def _require(name: str, value: Any) -> Any:
    if value is None:
        raise ConfigurationError(f"{name} is required")
    return value


class PermissionComparator:
    """
    Comparator Orchestrator.

    Per call, side effects are exactly one of:
        - nothing (kill switch off, verdicts agree, or legacy check failed)
        - one mismatch record (legacy denies, ReBAC allows)
        - one mismatch record + one critical alert + one warning log
          (legacy allows, ReBAC denies)

    When the mismatch write fails, no alert is written but the warning log
    for an access-blocking disagreement is still emitted.

    ``compare_permission`` is a hard error boundary: nothing raised by the
    adapter, the stores, or the input itself escapes to the caller.
    """

    def __init__(
        self,
        enabled: EnabledFlag,
        legacy_adapter: LegacyDecisionAdapter,
        mismatch_store: RecordStore,
        alert_store: RecordStore,
        logger: StructuredLogger,
        clock: Clock,
    ):
        """
        Initialize the comparator.

        Args:
            enabled: Kill switch (bool or callable returning bool)
            legacy_adapter: Legacy RBAC engine with has_permission()
            mismatch_store: Diff Log Store
            alert_store: Alert Store
            logger: Structured logger
            clock: Time source returning an aware datetime

        Raises:
            ConfigurationError: If any collaborator is missing or malformed
        """
        self.kill_switch = KillSwitch(_require("enabled", enabled))
        self.legacy_adapter = _require("legacy_adapter", legacy_adapter)
        self.mismatch_store = _require("mismatch_store", mismatch_store)
        self.alert_store = _require("alert_store", alert_store)
        self.logger = _require("logger", logger)
        self.clock = _require("clock", clock)

        if not callable(getattr(self.legacy_adapter, "has_permission", None)):
            raise ConfigurationError("legacy_adapter must provide has_permission()")
        for name, store in (("mismatch_store", mismatch_store), ("alert_store", alert_store)):
            if not callable(getattr(store, "append", None)):
                raise ConfigurationError(f"{name} must provide append()")
        if not callable(self.clock):
            raise ConfigurationError("clock must be callable")

    def compare_permission(self, comparison: ComparisonInput) -> None:
        """
        Compare the ReBAC verdict for one authorization check against legacy RBAC.

        Never raises.

        Args:
            comparison: The new engine's verdict plus identifying context
        """
        try:
            if not self.kill_switch.is_enabled():
                return
            self._compare(comparison)
        except Exception as e:  # noqa: BLE001
            self.logger.error(
                "Dual-mode comparison aborted",
                operation="compare_permission",
                context=self._safe_context(comparison),
                error=str(e),
            )

    def _compare(self, comparison: ComparisonInput) -> None:
        if not isinstance(comparison, ComparisonInput):
            raise TypeError(
                f"Expected ComparisonInput, got {type(comparison).__name__}"
            )
        if not isinstance(comparison.rebac_allowed, bool):
            raise TypeError("rebac_allowed must be a bool")

        try:
            legacy_allowed = self.legacy_adapter.has_permission(
                comparison.subject_id, comparison.permission
            )
            if not isinstance(legacy_allowed, bool):
                raise TypeError(
                    f"Legacy adapter returned {type(legacy_allowed).__name__}, expected bool"
                )
        except Exception as e:  # noqa: BLE001
            self.logger.error(
                "Legacy permission check failed; comparison abandoned",
                operation="legacy_permission_check",
                context=self._investigation_context(comparison),
                error=str(e),
            )
            return

        classification = classify_disagreement(legacy_allowed, comparison.rebac_allowed)
        if classification is None:
            return

        created_at = self.clock()

        recorded = self._record_mismatch(comparison, legacy_allowed, classification, created_at)

        if classification.raises_alert:
            # Alerts require a persisted mismatch; the warning does not.
            self._raise_alert(comparison, classification, created_at, persist=recorded)
        elif recorded:
            self.logger.info(
                "ReBAC engine more permissive than legacy RBAC",
                operation="compare_permission",
                context=self._investigation_context(comparison, classification),
            )

    def _record_mismatch(
        self,
        comparison: ComparisonInput,
        legacy_allowed: bool,
        classification: MismatchClassification,
        created_at: Any,
    ) -> bool:
        record = MismatchRecord(
            tenant_id=comparison.tenant_id,
            user_id=comparison.subject_id,
            permission=comparison.permission,
            subject_ref=comparison.subject_ref,
            object_ref=comparison.object_ref,
            rebac_allowed=comparison.rebac_allowed,
            legacy_allowed=legacy_allowed,
            mismatch_type=classification.mismatch_type,
            impact=classification.impact,
            severity=classification.severity,
            created_at=created_at,
        )
        try:
            self.mismatch_store.append(record)
            return True
        except Exception as e:  # noqa: BLE001
            self.logger.error(
                "Failed to persist mismatch record",
                operation="append_mismatch",
                context=self._investigation_context(comparison, classification),
                error=str(e),
            )
            return False

    def _raise_alert(
        self,
        comparison: ComparisonInput,
        classification: MismatchClassification,
        created_at: Any,
        persist: bool = True,
    ) -> None:
        if persist:
            alert = AlertRecord(
                tenant_id=comparison.tenant_id,
                user_id=comparison.subject_id,
                permission=comparison.permission,
                alert_type=classification.mismatch_type,
                created_at=created_at,
            )
            try:
                self.alert_store.append(alert)
            except Exception as e:  # noqa: BLE001
                self.logger.error(
                    "Failed to persist mismatch alert",
                    operation="append_alert",
                    context=self._investigation_context(comparison, classification),
                    error=str(e),
                )

        self.logger.warning(
            "ReBAC engine would block access granted by legacy RBAC",
            operation="compare_permission",
            context=self._investigation_context(comparison, classification),
        )

    @staticmethod
    def _investigation_context(
        comparison: ComparisonInput,
        classification: Optional[MismatchClassification] = None,
    ) -> Dict[str, Any]:
        ctx = comparison.context
        context: Dict[str, Any] = {
            "tenant_id": comparison.tenant_id,
            "user_id": comparison.subject_id,
            "permission": comparison.permission,
            "subject_ref": comparison.subject_ref,
            "object_ref": comparison.object_ref,
            "request_path": comparison.request_path,
            "correlation_id": ctx.correlation_id if ctx else None,
            "session_id": ctx.session_id if ctx else None,
            "ip_masked": mask_ip(ctx.ip) if ctx else "unknown",
            "user_agent": ctx.user_agent if ctx else None,
        }
        if classification is not None:
            context["mismatch_type"] = classification.mismatch_type.value
            context["impact"] = classification.impact.value
            context["severity"] = classification.severity.value
        return context

    @classmethod
    def _safe_context(cls, comparison: Any) -> Dict[str, Any]:
        try:
            return cls._investigation_context(comparison)
        except Exception:  # noqa: BLE001
            return {"input_type": type(comparison).__name__}


class BackgroundComparisonDispatcher:
    """
    Runs comparisons off the request path.

    Authorization middleware calls :meth:`dispatch` after it has committed to
    its decision; the comparison runs on a worker thread. Awaiting the
    returned future is only needed where completion must be observed (tests).
    """

    def __init__(
        self,
        comparator: PermissionComparator,
        max_workers: int = 4,
        executor: Optional[ThreadPoolExecutor] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            comparator: PermissionComparator to run
            max_workers: Worker threads when no executor is supplied
            executor: Optional pre-built executor (shared pools, tests)
            logger: Optional structured logger instance
        """
        self.comparator = _require("comparator", comparator)
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="authz-comparison"
        )
        self.logger = logger or get_logger(__name__)

    def dispatch(self, comparison: ComparisonInput) -> Optional[Future]:
        """
        Schedule one comparison. Never raises.

        Returns:
            Future for the scheduled comparison, or None if it could not be scheduled
        """
        try:
            return self.executor.submit(self.comparator.compare_permission, comparison)
        except RuntimeError as e:
            self.logger.error(
                "Comparison dispatch rejected",
                operation="dispatch_comparison",
                error=str(e),
            )
            return None

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting comparisons; with wait=True, drain pending ones first."""
        self.executor.shutdown(wait=wait)

    def __enter__(self) -> "BackgroundComparisonDispatcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)
