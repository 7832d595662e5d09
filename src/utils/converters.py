"""Conversions between SQLAlchemy models and pydantic schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from models.site_settings import SiteSettingsModel
from models.staff import StaffModel
from schemas.settings import SiteSettings
from schemas.staff import StaffMember, StaffRole, StaffStatus, TimedCode

IMMUTABLE_FIELDS = frozenset({"staff_id", "created_at", "version"})


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _timed_code(code: Optional[str], expiry: Optional[str]) -> Optional[TimedCode]:
    if not code or not expiry:
        return None
    return TimedCode(code=code, expiry=from_iso(expiry))


def staff_to_columns(staff: StaffMember) -> Dict[str, Any]:
    """Flatten a StaffMember into StaffModel column values (without the id)."""
    return {
        "name": staff.name,
        "email": staff.email,
        "password_hash": staff.password_hash,
        "role": staff.role.value,
        "email_verified": staff.email_verified,
        "status": staff.status.value,
        "invite_code": staff.invite_code.code if staff.invite_code else None,
        "invite_expires_at": to_iso(staff.invite_code.expiry) if staff.invite_code else None,
        "reset_token": staff.reset_token.code if staff.reset_token else None,
        "reset_expires_at": to_iso(staff.reset_token.expiry) if staff.reset_token else None,
        "created_at": to_iso(staff.created_at),
        "updated_at": to_iso(staff.updated_at),
        "deleted_at": to_iso(staff.deleted_at),
        "version": staff.version,
    }


def patch_to_columns(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a partial StaffMember update into StaffModel column values.

    Raises:
        ValueError: If the patch touches an immutable field.
    """
    columns: Dict[str, Any] = {}
    for key, value in patch.items():
        if key in IMMUTABLE_FIELDS:
            raise ValueError(f"Field '{key}' cannot be updated")
        if key in ("invite_code", "reset_token"):
            expires_column = "invite_expires_at" if key == "invite_code" else "reset_expires_at"
            columns[key] = value.code if value else None
            columns[expires_column] = to_iso(value.expiry) if value else None
        elif isinstance(value, datetime):
            columns[key] = to_iso(value)
        elif isinstance(value, Enum):
            columns[key] = value.value
        else:
            columns[key] = value
    return columns


def staff_to_model(staff: StaffMember) -> StaffModel:
    return StaffModel(staff_id=staff.staff_id, **staff_to_columns(staff))


def model_to_staff(model: StaffModel) -> StaffMember:
    return StaffMember(
        staff_id=model.staff_id,
        name=model.name,
        email=model.email,
        password_hash=model.password_hash,
        role=StaffRole(model.role),
        email_verified=bool(model.email_verified),
        status=StaffStatus(model.status),
        invite_code=_timed_code(model.invite_code, model.invite_expires_at),
        reset_token=_timed_code(model.reset_token, model.reset_expires_at),
        created_at=from_iso(model.created_at),
        updated_at=from_iso(model.updated_at),
        deleted_at=from_iso(model.deleted_at),
        version=model.version,
    )


def model_to_settings(model: SiteSettingsModel) -> SiteSettings:
    return SiteSettings(
        site_name=model.site_name,
        description=model.description,
        url=model.url,
        language=model.language,
        updated_at=from_iso(model.updated_at),
    )
