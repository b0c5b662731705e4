from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional
from kingdomops.core.auth import create_token
from kingdomops.core.config import settings
from kingdomops.services.roles import Role

router = APIRouter()

class MockLogin(BaseModel):
    user_id: str
    role: Role = Role.PARTICIPANT
    organization_id: Optional[str] = None

@router.post("/mock-login")
def mock_login(payload: MockLogin):
    if not settings.ENABLE_MOCK_LOGIN or settings.is_production():
        raise HTTPException(404, "Not found")
    token = create_token(payload.user_id, payload.role, payload.organization_id)
    return {"access_token": token, "token_type": "bearer", "role": payload.role.value, "organization_id": payload.organization_id}
