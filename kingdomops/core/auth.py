from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import jwt
from datetime import datetime, timedelta, timezone
from kingdomops.core.config import settings
from kingdomops.services.identity import Principal
from kingdomops.services.roles import Role, parse_role

bearer = HTTPBearer()

def create_token(user_id: str, role: Role, organization_id: Optional[str] = None, ttl_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {"sub": user_id, "role": role.value, "org": organization_id, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl)).timestamp())}
    return jwt.encode(payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)

def decode_principal(token: str) -> Principal:
    payload = jwt.decode(token, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
    role = parse_role(payload.get("role"))
    if role is None or not payload.get("sub"):
        raise jwt.InvalidTokenError("Token carries no usable role")
    return Principal(id=str(payload["sub"]), role=role, organization_id=payload.get("org"))

def get_principal(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> Principal:
    try:
        return decode_principal(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
