"""Site settings database model.

The table is capped to a single row: the primary key is pinned to 1.
"""

from sqlalchemy import CheckConstraint, Column, Integer, String

from .base import Base

SETTINGS_ROW_ID = 1


class SiteSettingsModel(Base):
    """Global site settings, at most one row."""

    __tablename__ = "site_settings"

    settings_id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    site_name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    url = Column(String, nullable=True)
    language = Column(String, nullable=False, default="en")
    updated_at = Column(String, nullable=False)  # ISO format string

    __table_args__ = (
        CheckConstraint(f"settings_id = {SETTINGS_ROW_ID}", name="ck_site_settings_single_row"),
    )
