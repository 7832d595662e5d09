"""Staff routes.

This module handles HTTP endpoints for staff invitations, profile updates,
login/logout and the password lifecycle. Errors raised by StaffManager are
translated by ``api.error_handlers``.
"""

from fastapi import APIRouter, HTTPException, status

from core.dependencies import BearerTokenDep, CurrentStaffDep, StaffManagerDep
from schemas.staff import (
    ForgotPasswordResult,
    StaffAcceptInviteRequest,
    StaffChangePasswordRequest,
    StaffForgotPasswordRequest,
    StaffInviteRequest,
    StaffLoginRequest,
    StaffLoginResponse,
    StaffMember,
    StaffResendInviteRequest,
    StaffResetPasswordRequest,
    StaffResponse,
    StaffRole,
    StaffUpdateRequest,
)

router = APIRouter(prefix="/api/staff", tags=["Staff"])

ADMIN_ROLES = (StaffRole.OWNER, StaffRole.ADMINISTRATOR)


def to_response(staff: StaffMember) -> StaffResponse:
    """Strip secrets from a staff member."""
    return StaffResponse.model_validate(staff.model_dump())


def require_admin(current_staff: StaffMember, action: str) -> None:
    if current_staff.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only owners and administrators can {action}.",
        )


@router.post("/invite", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def send_invite(
    req: StaffInviteRequest,
    current_staff: CurrentStaffDep,
    staff_manager: StaffManagerDep,
) -> StaffResponse:
    """Invite a new staff member by email.

    Permission requirements:
    - Owner/Administrator: Can invite any non-owner role
    - Others: No permission
    """
    require_admin(current_staff, "invite staff")
    staff = staff_manager.send_invite(req.email, req.role)
    return to_response(staff)


@router.post("/invite/resend", response_model=StaffResponse)
def resend_invite(
    req: StaffResendInviteRequest,
    current_staff: CurrentStaffDep,
    staff_manager: StaffManagerDep,
) -> StaffResponse:
    require_admin(current_staff, "resend invites")
    return to_response(staff_manager.resend_invite(req.email))


@router.post("/accept-invite", response_model=StaffResponse)
def accept_invite(req: StaffAcceptInviteRequest, staff_manager: StaffManagerDep) -> StaffResponse:
    staff = staff_manager.accept_invite(
        req.email, req.code, req.password, req.confirm_password
    )
    return to_response(staff)


@router.post("/login", response_model=StaffLoginResponse)
def login(req: StaffLoginRequest, staff_manager: StaffManagerDep) -> StaffLoginResponse:
    result = staff_manager.login(req.email, req.password)
    return StaffLoginResponse(
        staff=to_response(result.staff),
        token=result.token,
        expires_at=result.expires_at,
    )


@router.post("/logout")
def logout(token: BearerTokenDep, staff_manager: StaffManagerDep) -> dict:
    """End the session behind the bearer token. Always succeeds."""
    staff_manager.logout(token)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=StaffResponse)
def get_me(current_staff: CurrentStaffDep) -> StaffResponse:
    return to_response(current_staff)


@router.patch("/{staff_id}", response_model=StaffResponse)
def update_staff(
    staff_id: str,
    req: StaffUpdateRequest,
    current_staff: CurrentStaffDep,
    staff_manager: StaffManagerDep,
) -> StaffResponse:
    """Update name, email or role.

    Permission requirements:
    - Anyone: Can update their own name and email
    - Owner/Administrator: Can update anyone, including roles
    - Only the owner can update the owner account; nobody gains or loses
      the owner role here
    """
    if staff_id != current_staff.staff_id or req.role is not None:
        require_admin(current_staff, "update other staff or roles")
    staff = staff_manager.update(
        staff_id,
        name=req.name,
        email=req.email,
        role=req.role,
        acting_staff_id=current_staff.staff_id,
    )
    return to_response(staff)


@router.delete("/{staff_id}", response_model=StaffResponse)
def delete_staff(
    staff_id: str,
    current_staff: CurrentStaffDep,
    staff_manager: StaffManagerDep,
) -> StaffResponse:
    require_admin(current_staff, "delete staff")
    if staff_id == current_staff.staff_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account.",
        )
    return to_response(staff_manager.delete(staff_id, acting_staff_id=current_staff.staff_id))


@router.post("/change-password", response_model=StaffResponse)
def change_password(
    req: StaffChangePasswordRequest,
    current_staff: CurrentStaffDep,
    staff_manager: StaffManagerDep,
) -> StaffResponse:
    staff = staff_manager.change_password(
        current_staff.staff_id, req.old_password, req.new_password
    )
    return to_response(staff)


@router.post("/forgot-password", response_model=ForgotPasswordResult)
def forgot_password(
    req: StaffForgotPasswordRequest, staff_manager: StaffManagerDep
) -> ForgotPasswordResult:
    return staff_manager.forgot_password(req.email)


@router.post("/reset-password", response_model=StaffResponse)
def reset_password(req: StaffResetPasswordRequest, staff_manager: StaffManagerDep) -> StaffResponse:
    staff = staff_manager.reset_password(req.email, req.token, req.new_password)
    return to_response(staff)
