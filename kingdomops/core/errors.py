"""
Error taxonomy shared by the scoring, lifecycle and identity services.

State and permission violations are raised and reach the caller unmodified.
Scoring problems are returned as data on ``ScoreResult`` and only become a
``ValidationError`` when a caller asks for strict submission.
"""
import enum
from typing import List, Optional


class DenyReason(str, enum.Enum):
    """Machine-readable reason attached to a denied authorization."""
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    ORGANIZATION_MISMATCH = "ORGANIZATION_MISMATCH"


class KingdomOpsError(Exception):
    """Base class for every error raised by the core."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(KingdomOpsError):
    """Malformed or out-of-range answer data."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class InvalidStateError(KingdomOpsError):
    """A lifecycle transition that is not allowed from the current state."""


class NotFoundError(KingdomOpsError):
    """The record does not exist or does not belong to the requester."""


class AuthorizationError(KingdomOpsError):
    reason: DenyReason

    def __init__(self, message: str, required: Optional[str] = None):
        super().__init__(message)
        self.required = required


class PermissionDeniedError(AuthorizationError):
    """The effective role lacks the permission, or may not set a view context."""
    reason = DenyReason.INSUFFICIENT_ROLE


class OrganizationMismatchError(AuthorizationError):
    """The effective organization scope does not cover the resource."""
    reason = DenyReason.ORGANIZATION_MISMATCH
