"""
Legacy RBAC decision adapter.

Answers "does the legacy engine allow this permission for this user?" from
the user's tenant membership (role, custom permissions, plan) and the
configured role/plan permission matrix.
"""

from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

from src.utils.logger import get_logger

logger = get_logger(__name__)

WILDCARD = "*"

MembershipLookup = Callable[[str], Optional[Dict[str, Any]]]
PermissionSet = Union[str, Iterable[str]]


@runtime_checkable
class LegacyDecisionAdapter(Protocol):
    """Read-only view of the currently-authoritative RBAC engine."""

    def has_permission(self, subject_id: str, permission: str) -> bool: ...


def _normalize(permissions: PermissionSet) -> Optional[FrozenSet[str]]:
    """Return None for the wildcard, otherwise a frozenset of permission names."""
    if permissions == WILDCARD:
        return None
    return frozenset(permissions)


class RoleBasedPermissionAdapter:
    """
    RBAC engine evaluation.

    Effective permissions are the role defaults plus the member's custom
    permissions, intersected with the plan's permission limits. A plan whose
    limit is ``"*"`` (enterprise) imposes no limitation; an unknown plan
    allows nothing. Users without a membership are denied.

    Lookup failures are not caught here; the comparator treats them as
    adapter failures.
    """

    def __init__(
        self,
        membership_lookup: MembershipLookup,
        roles: Dict[str, PermissionSet],
        plans: Dict[str, PermissionSet],
        default_plan: Optional[str] = None,
    ):
        """
        Initialize the adapter.

        Args:
            membership_lookup: Callable returning the membership dict for a
                user id (``role``, ``customPermissions``, ``planType``) or None
            roles: Role name -> permission list or "*"
            plans: Plan name -> permission limit list or "*"
            default_plan: Plan applied when a membership has no planType
        """
        self.membership_lookup = membership_lookup
        self.roles = {name: _normalize(perms) for name, perms in roles.items()}
        self.plans = {name: _normalize(perms) for name, perms in plans.items()}
        self.default_plan = default_plan

    @classmethod
    def from_config(
        cls, membership_lookup: MembershipLookup, config: Dict[str, Any]
    ) -> "RoleBasedPermissionAdapter":
        """Build from the dict returned by ``Settings.load_role_permissions``."""
        return cls(
            membership_lookup=membership_lookup,
            roles=config["roles"],
            plans=config["plans"],
            default_plan=config.get("default_plan"),
        )

    def has_permission(self, subject_id: str, permission: str) -> bool:
        """
        Check whether the legacy engine allows ``permission`` for ``subject_id``.

        Args:
            subject_id: Acting user id
            permission: Permission name

        Returns:
            True if allowed, False otherwise
        """
        membership = self.membership_lookup(subject_id)
        if membership is None:
            logger.debug(
                "No membership for subject; legacy engine denies",
                operation="legacy_has_permission",
                context={"subject_id": subject_id, "permission": permission},
            )
            return False

        if not self._role_grants(membership, permission):
            return False

        return self._plan_allows(membership, permission)

    def _role_grants(self, membership: Dict[str, Any], permission: str) -> bool:
        custom = membership.get("customPermissions") or []
        if permission in custom:
            return True

        role_permissions = self.roles.get(membership.get("role", ""), frozenset())
        return role_permissions is None or permission in role_permissions

    def _plan_allows(self, membership: Dict[str, Any], permission: str) -> bool:
        plan = membership.get("planType") or self.default_plan
        if plan not in self.plans:
            return False

        limits = self.plans[plan]
        return limits is None or permission in limits
