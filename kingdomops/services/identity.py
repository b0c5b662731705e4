"""
Effective identity resolution.

The effective identity is the (role, organization) pair every authorization
and data-scoping check uses. It equals the authenticated principal's own
values unless that principal is a SUPER_ADMIN with an active view context, in
which case the context's role and organization take their place field by field.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from kingdomops.core.errors import PermissionDeniedError
from kingdomops.core.timeutils import utcnow
from kingdomops.services.roles import Role
from kingdomops.services.view_context import DEFAULT_TTL, ViewContext, ViewContextStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    id: str
    role: Role
    organization_id: Optional[str] = None


@dataclass(frozen=True)
class EffectiveIdentity:
    principal_id: str
    role: Role
    organization_id: Optional[str]
    principal_role: Role
    organization_overridden: bool = False
    view_context: Optional[ViewContext] = None

    @property
    def is_viewing_as(self) -> bool:
        return self.view_context is not None

    @classmethod
    def of(cls, principal: Principal) -> "EffectiveIdentity":
        return cls(
            principal_id=principal.id,
            role=principal.role,
            organization_id=principal.organization_id,
            principal_role=principal.role,
        )


def context_applies(principal: Principal, context: Optional[ViewContext], now: Optional[datetime] = None) -> bool:
    return (
        context is not None
        and principal.role is Role.SUPER_ADMIN
        and context.original_principal_id == principal.id
        and not context.is_expired(now)
    )


def resolve(principal: Principal, context: Optional[ViewContext] = None, now: Optional[datetime] = None) -> EffectiveIdentity:
    if not context_applies(principal, context, now):
        return EffectiveIdentity.of(principal)
    overridden = context.view_as_organization_id is not None
    return EffectiveIdentity(
        principal_id=principal.id,
        role=context.view_as_role or principal.role,
        organization_id=context.view_as_organization_id if overridden else principal.organization_id,
        principal_role=principal.role,
        organization_overridden=overridden,
        view_context=context,
    )


class IdentityResolver:
    """Resolves effective identities against a view-context store."""

    def __init__(self, store: ViewContextStore, ttl: timedelta = DEFAULT_TTL):
        self.store = store
        self.ttl = ttl

    def get_view_context(self, principal: Principal, now: Optional[datetime] = None) -> Optional[ViewContext]:
        context = self.store.get(principal.id, now)
        if context is None:
            return None
        if not context_applies(principal, context, now):
            logger.info(f"Discarding stale view context for {principal.id}")
            self.store.clear(principal.id)
            return None
        return context

    def resolve(self, principal: Principal, now: Optional[datetime] = None) -> EffectiveIdentity:
        return resolve(principal, self.get_view_context(principal, now), now)

    def set_view_as(
        self,
        principal: Principal,
        role: Optional[Role] = None,
        organization_id: Optional[str] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ViewContext:
        if principal.role is not Role.SUPER_ADMIN:
            raise PermissionDeniedError("Only a super admin may use view-as", required=Role.SUPER_ADMIN.value)
        context = ViewContext(
            original_principal_id=principal.id,
            view_as_role=role,
            view_as_organization_id=organization_id,
            view_as_user_id=user_id,
            created_at=now or utcnow(),
            ttl=self.ttl,
        )
        self.store.set(context)
        logger.info(
            f"View context set for {principal.id}: role={role.value if role else None} "
            f"organization={organization_id} user={user_id}"
        )
        return context

    def clear_view_as(self, principal: Principal) -> None:
        self.store.clear(principal.id)
        logger.info(f"View context cleared for {principal.id}")
