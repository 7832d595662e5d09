"""Database models.

Importing this package registers every model with ``Base.metadata``.
"""

from .base import Base
from .site_settings import SiteSettingsModel
from .staff import StaffModel
from .staff_session import StaffSessionModel

__all__ = ["Base", "SiteSettingsModel", "StaffModel", "StaffSessionModel"]
