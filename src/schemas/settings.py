"""Site settings schema definitions."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from schemas.staff import StaffRegisterRequest, StaffResponse


class SiteSettingsInput(BaseModel):
    site_name: str = Field(description="Public name of the site.")
    description: Optional[str] = None
    url: Optional[str] = None
    language: str = "en"


class SiteSettings(SiteSettingsInput):
    updated_at: datetime


class SetupRequest(BaseModel):
    """First-run request: the owner account plus initial settings."""

    owner: StaffRegisterRequest
    settings: SiteSettingsInput


class SetupResponse(BaseModel):
    staff: StaffResponse
    settings: SiteSettings
