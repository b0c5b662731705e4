"""
Authorization gate.

A decision is made in two steps: the effective role must hold the action's
permission, then an organization-scoped resource must belong to the effective
organization. A SUPER_ADMIN without an organization override skips the scope
step; one who is viewing as a specific organization is bound by it.
"""
from dataclasses import dataclass
from typing import Optional

from kingdomops.core.errors import DenyReason, OrganizationMismatchError, PermissionDeniedError
from kingdomops.services.identity import EffectiveIdentity
from kingdomops.services.roles import Permission, Role, role_has_permission, role_rank


@dataclass(frozen=True)
class ResourceScope:
    organization_id: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def authorize(identity: EffectiveIdentity, action: Permission, scope: Optional[ResourceScope] = None) -> Decision:
    if not role_has_permission(identity.role, action):
        return Decision(
            False,
            DenyReason.INSUFFICIENT_ROLE,
            f"Role {identity.role.value} lacks permission {action.value}",
        )
    if scope is None or scope.organization_id is None:
        return ALLOW
    if identity.role is Role.SUPER_ADMIN and not identity.organization_overridden:
        return ALLOW
    if identity.organization_id is None or identity.organization_id != scope.organization_id:
        return Decision(
            False,
            DenyReason.ORGANIZATION_MISMATCH,
            f"Access denied to organization {scope.organization_id}",
        )
    return ALLOW


def require(identity: EffectiveIdentity, action: Permission, scope: Optional[ResourceScope] = None) -> None:
    decision = authorize(identity, action, scope)
    if decision.allowed:
        return
    if decision.reason is DenyReason.ORGANIZATION_MISMATCH:
        raise OrganizationMismatchError(decision.message, required=action.value)
    raise PermissionDeniedError(decision.message, required=action.value)


def can_manage_user(identity: EffectiveIdentity, target_role: Role, target_organization_id: Optional[str]) -> bool:
    """Managers must share the target's organization and outrank them."""
    if identity.role is Role.SUPER_ADMIN and not identity.organization_overridden:
        return True
    if identity.organization_id is None or identity.organization_id != target_organization_id:
        return False
    return role_rank(identity.role) > role_rank(target_role)
