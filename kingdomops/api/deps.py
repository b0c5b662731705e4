from datetime import timedelta
from functools import lru_cache
from fastapi import Depends
from kingdomops.core.auth import get_principal
from kingdomops.core.config import settings
from kingdomops.services.authorization import require
from kingdomops.services.identity import EffectiveIdentity, IdentityResolver, Principal
from kingdomops.services.results import ResultPolicy
from kingdomops.services.roles import Permission
from kingdomops.services.view_context import ViewContextStore, build_view_context_store

@lru_cache()
def get_view_context_store() -> ViewContextStore:
    return build_view_context_store(settings.VIEW_CONTEXT_BACKEND)

def get_resolver(store: ViewContextStore = Depends(get_view_context_store)) -> IdentityResolver:
    return IdentityResolver(store, timedelta(hours=settings.VIEW_CONTEXT_TTL_HOURS))

def get_identity(principal: Principal = Depends(get_principal), resolver: IdentityResolver = Depends(get_resolver)) -> EffectiveIdentity:
    return resolver.resolve(principal)

def get_policy() -> ResultPolicy:
    return ResultPolicy.from_settings(settings)

def require_permission(permission: Permission):
    def checker(identity: EffectiveIdentity = Depends(get_identity)) -> EffectiveIdentity:
        require(identity, permission)
        return identity
    return checker
