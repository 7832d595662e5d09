"""Staff database model.

This module defines the Staff database model using SQLAlchemy.
"""

from sqlalchemy import Boolean, Column, Index, Integer, String, text

from .base import Base


class StaffModel(Base):
    """Staff (admin user) database model."""

    __tablename__ = "staff"

    staff_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=True)
    email = Column(String, nullable=False, index=True)
    password_hash = Column(String, nullable=True)  # None while pending
    role = Column(String, nullable=False)
    email_verified = Column(Boolean, nullable=False, default=False)
    status = Column(String, nullable=False)  # 'pending', 'active' or 'deleted'

    invite_code = Column(String, nullable=True)
    invite_expires_at = Column(String, nullable=True)  # ISO format string
    reset_token = Column(String, nullable=True)
    reset_expires_at = Column(String, nullable=True)  # ISO format string

    created_at = Column(String, nullable=False)  # ISO format string
    updated_at = Column(String, nullable=False)  # ISO format string
    deleted_at = Column(String, nullable=True)  # ISO format string

    # Bumped on every write, compared on conditional updates
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        # Email is unique among records that are not soft-deleted
        Index(
            "uq_staff_email_live",
            "email",
            unique=True,
            sqlite_where=text("status != 'deleted'"),
            postgresql_where=text("status != 'deleted'"),
        ),
    )
