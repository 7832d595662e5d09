"""Staff login session database model."""

from sqlalchemy import Column, ForeignKey, String

from .base import Base


class StaffSessionModel(Base):
    """A login session; the JWT handed to the client carries its id."""

    __tablename__ = "staff_sessions"

    session_id = Column(String, primary_key=True, index=True)
    staff_id = Column(String, ForeignKey("staff.staff_id"), index=True, nullable=False)
    created_at = Column(String, nullable=False)  # ISO format string
    expires_at = Column(String, nullable=False)  # ISO format string
    revoked_at = Column(String, nullable=True)  # ISO format string
