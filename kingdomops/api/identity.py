from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from kingdomops.api.deps import get_identity, get_resolver
from kingdomops.core.auth import get_principal
from kingdomops.services.identity import EffectiveIdentity, IdentityResolver, Principal
from kingdomops.services.roles import Role, permissions_for
from kingdomops.services.view_context import ViewContext

router = APIRouter()

class ViewAsRequest(BaseModel):
    role: Optional[Role] = None
    organization_id: Optional[str] = None
    user_id: Optional[str] = None

class ViewContextOut(BaseModel):
    original_principal_id: str
    view_as_role: Optional[Role] = None
    view_as_organization_id: Optional[str] = None
    view_as_user_id: Optional[str] = None
    created_at: datetime
    expires_at: datetime

class IdentityOut(BaseModel):
    principal_id: str
    principal_role: Role
    role: Role
    organization_id: Optional[str] = None
    permissions: List[str]
    view_context: Optional[ViewContextOut] = None

def _context_out(context: Optional[ViewContext]) -> Optional[ViewContextOut]:
    if context is None:
        return None
    return ViewContextOut(
        original_principal_id=context.original_principal_id,
        view_as_role=context.view_as_role,
        view_as_organization_id=context.view_as_organization_id,
        view_as_user_id=context.view_as_user_id,
        created_at=context.created_at,
        expires_at=context.expires_at,
    )

@router.get("/me", response_model=IdentityOut)
def me(identity: EffectiveIdentity = Depends(get_identity)):
    return IdentityOut(
        principal_id=identity.principal_id,
        principal_role=identity.principal_role,
        role=identity.role,
        organization_id=identity.organization_id,
        permissions=sorted(p.value for p in permissions_for(identity.role)),
        view_context=_context_out(identity.view_context),
    )

@router.post("/super-admin/view-as")
def set_view_as(payload: ViewAsRequest, principal: Principal = Depends(get_principal), resolver: IdentityResolver = Depends(get_resolver)):
    context = resolver.set_view_as(principal, role=payload.role, organization_id=payload.organization_id, user_id=payload.user_id)
    message = "Now managing organization" if payload.organization_id else f"Now viewing as {payload.role.value if payload.role else principal.role.value}"
    return {"success": True, "view_context": _context_out(context), "message": message}

@router.delete("/super-admin/view-as")
def clear_view_as(principal: Principal = Depends(get_principal), resolver: IdentityResolver = Depends(get_resolver)):
    resolver.clear_view_as(principal)
    return {"success": True, "message": "Returned to admin view"}

@router.get("/super-admin/view-context")
def view_context(principal: Principal = Depends(get_principal), resolver: IdentityResolver = Depends(get_resolver)):
    return {"view_context": _context_out(resolver.get_view_context(principal))}
