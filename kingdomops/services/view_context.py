"""
View-as context storage.

A view context records that a super-admin is temporarily acting with another
role and/or organization scope. The server-side store is the single source of
truth: every request reads it, and expiry is checked lazily on read, so there
is no background sweep. Writes are last-write-wins per principal.
"""
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Protocol

from kingdomops.core.cache import get_redis, view_context_key
from kingdomops.core.timeutils import utcnow
from kingdomops.services.roles import Role, parse_role

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)


@dataclass(frozen=True)
class ViewContext:
    original_principal_id: str
    view_as_role: Optional[Role] = None
    view_as_organization_id: Optional[str] = None
    view_as_user_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    ttl: timedelta = DEFAULT_TTL

    @property
    def expires_at(self) -> datetime:
        return self.created_at + self.ttl

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) - self.created_at > self.ttl

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_principal_id": self.original_principal_id,
            "view_as_role": self.view_as_role.value if self.view_as_role else None,
            "view_as_organization_id": self.view_as_organization_id,
            "view_as_user_id": self.view_as_user_id,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewContext":
        created_at = datetime.fromisoformat(data["created_at"])
        expires_at = datetime.fromisoformat(data["expires_at"])
        role = data.get("view_as_role")
        if role is not None and parse_role(role) is None:
            raise ValueError(f"Unknown view-as role {role!r}")
        return cls(
            original_principal_id=str(data["original_principal_id"]),
            view_as_role=parse_role(role) if role is not None else None,
            view_as_organization_id=data.get("view_as_organization_id"),
            view_as_user_id=data.get("view_as_user_id"),
            created_at=created_at,
            ttl=expires_at - created_at,
        )


class ViewContextStore(Protocol):
    def set(self, context: ViewContext) -> None: ...

    def get(self, principal_id: str, now: Optional[datetime] = None) -> Optional[ViewContext]: ...

    def clear(self, principal_id: str) -> None: ...


class MemoryViewContextStore:
    """Process-local store, used in tests and single-worker development."""

    def __init__(self):
        self._contexts: Dict[str, ViewContext] = {}
        self._lock = threading.Lock()

    def set(self, context: ViewContext) -> None:
        with self._lock:
            self._contexts[context.original_principal_id] = context

    def get(self, principal_id: str, now: Optional[datetime] = None) -> Optional[ViewContext]:
        with self._lock:
            context = self._contexts.get(principal_id)
            if context is None:
                return None
            if context.is_expired(now):
                del self._contexts[principal_id]
                logger.info(f"View context for {principal_id} expired, cleared")
                return None
            return context

    def clear(self, principal_id: str) -> None:
        with self._lock:
            self._contexts.pop(principal_id, None)


class RedisViewContextStore:
    """Redis-backed store. The JSON payload carries an explicit expires_at and
    the key gets a matching redis TTL."""

    def __init__(self, client=None):
        self.redis = client if client is not None else get_redis()

    def set(self, context: ViewContext) -> None:
        remaining = int((context.expires_at - utcnow()).total_seconds())
        key = view_context_key(context.original_principal_id)
        if remaining <= 0:
            self.redis.delete(key)
            return
        self.redis.set(key, json.dumps(context.to_dict()), ex=remaining)

    def get(self, principal_id: str, now: Optional[datetime] = None) -> Optional[ViewContext]:
        key = view_context_key(principal_id)
        raw = self.redis.get(key)
        if raw is None:
            return None
        try:
            context = ViewContext.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable view context for {principal_id}: {e}")
            self.redis.delete(key)
            return None
        if context.is_expired(now):
            self.redis.delete(key)
            logger.info(f"View context for {principal_id} expired, cleared")
            return None
        return context

    def clear(self, principal_id: str) -> None:
        self.redis.delete(view_context_key(principal_id))


def build_view_context_store(backend: str) -> ViewContextStore:
    if backend == "memory":
        return MemoryViewContextStore()
    return RedisViewContextStore()
