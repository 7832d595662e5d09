"""Staff schema definitions.

This module defines the StaffMember data model, its lifecycle states and the
request/response models used by the staff API.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, Field

from core.exceptions import InvalidTransitionError


class StaffRole(str, Enum):
    """Permission level of a staff member."""

    OWNER = "owner"
    ADMINISTRATOR = "administrator"
    EDITOR = "editor"
    AUTHOR = "author"
    CONTRIBUTOR = "contributor"


class StaffStatus(str, Enum):
    """Lifecycle state of a staff record."""

    PENDING = "pending"
    ACTIVE = "active"
    DELETED = "deleted"


# Deleted is terminal
ALLOWED_TRANSITIONS: Dict[StaffStatus, FrozenSet[StaffStatus]] = {
    StaffStatus.PENDING: frozenset({StaffStatus.ACTIVE, StaffStatus.DELETED}),
    StaffStatus.ACTIVE: frozenset({StaffStatus.DELETED}),
    StaffStatus.DELETED: frozenset(),
}


def ensure_transition(current: StaffStatus, target: StaffStatus) -> None:
    """Check a lifecycle transition against the transition table.

    Raises:
        InvalidTransitionError: If ``current`` cannot move to ``target``.
    """
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)


class TimedCode(BaseModel):
    """A one-time code together with the instant it stops being usable."""

    code: str
    expiry: datetime


class StaffMember(BaseModel):
    staff_id: Optional[str] = Field(
        default=None,
        description="Assigned by the repository on insert, immutable afterwards.",
    )
    name: Optional[str] = None
    email: str
    password_hash: Optional[str] = Field(
        default=None,
        description="Bcrypt hash. None while the invite is pending.",
    )
    role: StaffRole
    email_verified: bool = False
    status: StaffStatus
    invite_code: Optional[TimedCode] = None
    reset_token: Optional[TimedCode] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
    version: int = 1

    @property
    def is_active(self) -> bool:
        return self.status == StaffStatus.ACTIVE


class StaffResponse(BaseModel):
    """Staff member as exposed to API clients, without secrets."""

    staff_id: str
    name: Optional[str] = None
    email: str
    role: StaffRole
    email_verified: bool
    status: StaffStatus
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None


class LoginResult(BaseModel):
    staff: StaffMember
    token: str
    expires_at: datetime


class ForgotPasswordResult(BaseModel):
    """Identical for known and unknown emails."""

    success: bool = True
    message: str = (
        "If an account exists for this email, a password reset link has been sent."
    )


# --- Requests ---


class StaffRegisterRequest(BaseModel):
    name: str
    email: str
    password: str


class StaffInviteRequest(BaseModel):
    email: str
    role: StaffRole


class StaffResendInviteRequest(BaseModel):
    email: str


class StaffAcceptInviteRequest(BaseModel):
    email: str
    code: str
    password: str
    confirm_password: str


class StaffLoginRequest(BaseModel):
    email: str
    password: str


class StaffLoginResponse(BaseModel):
    staff: StaffResponse
    token: str
    expires_at: datetime


class StaffUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[StaffRole] = None


class StaffChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class StaffForgotPasswordRequest(BaseModel):
    email: str


class StaffResetPasswordRequest(BaseModel):
    email: str
    token: str
    new_password: str
