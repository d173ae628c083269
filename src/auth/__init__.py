"""Auth module - legacy RBAC decision adapter"""

from .legacy_permissions import LegacyDecisionAdapter, RoleBasedPermissionAdapter

__all__ = ["LegacyDecisionAdapter", "RoleBasedPermissionAdapter"]
