"""Site settings and first-run setup routes."""

from fastapi import APIRouter, status

from api.routes.staff import require_admin, to_response
from core.dependencies import CurrentStaffDep, SettingsRepositoryDep, StaffManagerDep
from schemas.settings import SetupRequest, SetupResponse, SiteSettings, SiteSettingsInput

router = APIRouter(prefix="/api", tags=["Settings"])


@router.post("/setup", response_model=SetupResponse, status_code=status.HTTP_201_CREATED)
def setup(req: SetupRequest, staff_manager: StaffManagerDep) -> SetupResponse:
    """Create the owner account and initial settings on a fresh install."""
    staff, settings = staff_manager.setup(
        req.owner.name, req.owner.email, req.owner.password, req.settings
    )
    return SetupResponse(staff=to_response(staff), settings=settings)


@router.get("/settings", response_model=SiteSettings)
def get_settings(settings_repository: SettingsRepositoryDep) -> SiteSettings:
    return settings_repository.details()


@router.put("/settings", response_model=SiteSettings)
def save_settings(
    req: SiteSettingsInput,
    current_staff: CurrentStaffDep,
    staff_manager: StaffManagerDep,
) -> SiteSettings:
    require_admin(current_staff, "change site settings")
    return staff_manager.save_settings(req)
