"""Dependency injection module for FastAPI.

The database engine, repositories and StaffManager are built once per process
and handed to routes through these dependencies.
"""

from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.database import create_db_engine, create_session_factory, init_db
from schemas.staff import StaffMember
from utils.notifications import get_email_provider
from utils.session_store import SessionStore
from utils.settings_manager import SettingsRepository
from utils.staff_manager import StaffManager, StaffPolicy
from utils.staff_repository import StaffRepository

# Singleton for StaffManager
_staff_manager_instance: Optional[StaffManager] = None

# HTTP Bearer token security
security = HTTPBearer()


def build_staff_manager() -> StaffManager:
    """Wire StaffManager from configuration.

    Returns:
        A StaffManager backed by the configured database and email provider.
    """
    engine = create_db_engine()
    init_db(engine)
    session_factory = create_session_factory(engine)
    return StaffManager(
        repository=StaffRepository(session_factory),
        sessions=SessionStore(session_factory),
        email_provider=get_email_provider(),
        settings=SettingsRepository(session_factory),
        policy=StaffPolicy(),
    )


def get_staff_manager() -> StaffManager:
    """Get StaffManager singleton instance.

    Returns:
        StaffManager instance (singleton).
    """
    global _staff_manager_instance
    if _staff_manager_instance is None:
        _staff_manager_instance = build_staff_manager()
    return _staff_manager_instance


def set_staff_manager(manager: Optional[StaffManager]) -> None:
    """Replace the singleton, e.g. at startup or in tests."""
    global _staff_manager_instance
    _staff_manager_instance = manager


def get_settings_repository(
    staff_manager: StaffManager = Depends(get_staff_manager),
) -> SettingsRepository:
    return staff_manager.settings


# Type aliases for dependency injection
StaffManagerDep = Annotated[StaffManager, Depends(get_staff_manager)]
SettingsRepositoryDep = Annotated[SettingsRepository, Depends(get_settings_repository)]


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    return credentials.credentials


def get_current_staff(
    staff_manager: StaffManagerDep,
    token: str = Depends(get_bearer_token),
) -> StaffMember:
    """Get the staff member behind the bearer token.

    Raises:
        InvalidCredentialsError: If the session is not live.
    """
    return staff_manager.authenticate(token)


BearerTokenDep = Annotated[str, Depends(get_bearer_token)]
CurrentStaffDep = Annotated[StaffMember, Depends(get_current_staff)]
