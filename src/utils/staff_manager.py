"""Staff identity and invitation lifecycle.

This module orchestrates staff registration, invitations, login/logout and
the password lifecycle on top of the staff repository, the session store and
the email provider.

A staff record moves through ``pending -> active -> deleted``. Invite codes
and password reset tokens are single-use and valid for a fixed TTL; a code
that matches but has expired is always reported as expired, never as invalid.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

import pytz

from config import (
    ALLOW_EMAIL_REUSE_AFTER_DELETE,
    BLOCK_LOGIN_DURING_RESET,
    INVITE_CODE_TTL_HOURS,
    RESET_TOKEN_TTL_HOURS,
    ROLLBACK_INVITE_ON_NOTIFICATION_FAILURE,
)
from core.exceptions import (
    ConfigurationError,
    ConflictError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidTransitionError,
    InviteCodeExpiredError,
    InviteCodeInvalidError,
    NotificationFailedError,
    PasswordMismatchError,
    PermissionDeniedError,
    ResetTokenExpiredError,
    ResetTokenInvalidError,
    SetupAlreadyCompletedError,
    StaffNotFoundError,
    ValidationError,
)
from schemas.settings import SiteSettings, SiteSettingsInput
from schemas.staff import (
    ForgotPasswordResult,
    LoginResult,
    StaffMember,
    StaffRole,
    StaffStatus,
    TimedCode,
    ensure_transition,
)
from utils.credentials import (
    codes_match,
    dummy_hash,
    generate_invite_code,
    hash_password,
    is_expired,
    verify_password,
)
from utils.notifications import EmailProvider, invite_message, password_reset_message
from utils.session_store import SessionStore
from utils.settings_manager import SettingsRepository
from utils.staff_repository import StaffRepository, normalize_email

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


@dataclass(frozen=True)
class StaffPolicy:
    """Product decisions the staff lifecycle leaves open.

    Attributes:
        allow_email_reuse_after_delete: Whether an email held only by
            soft-deleted records can be registered or invited again.
        rollback_invite_on_notification_failure: Whether a pending record is
            removed when its invite email cannot be delivered.
        block_login_during_reset: Whether login is refused while an unexpired
            password reset token is outstanding.
        invite_ttl: Lifetime of an invite code.
        reset_ttl: Lifetime of a password reset token.
    """

    allow_email_reuse_after_delete: bool = ALLOW_EMAIL_REUSE_AFTER_DELETE
    rollback_invite_on_notification_failure: bool = ROLLBACK_INVITE_ON_NOTIFICATION_FAILURE
    block_login_during_reset: bool = BLOCK_LOGIN_DURING_RESET
    invite_ttl: timedelta = timedelta(hours=INVITE_CODE_TTL_HOURS)
    reset_ttl: timedelta = timedelta(hours=RESET_TOKEN_TTL_HOURS)


class StaffManager:
    """Staff account service. Built once per process and shared."""

    def __init__(
        self,
        repository: StaffRepository,
        sessions: SessionStore,
        email_provider: EmailProvider,
        settings: Optional[SettingsRepository] = None,
        policy: StaffPolicy = StaffPolicy(),
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize StaffManager.

        Args:
            repository: Staff record persistence.
            sessions: Login session store.
            email_provider: Gateway used for invite and reset emails.
            settings: Site settings persistence, required by ``setup``.
            policy: Open lifecycle decisions.
            clock: Returns the current timezone-aware time.
        """
        self.repository = repository
        self.sessions = sessions
        self.email_provider = email_provider
        self.settings = settings
        self.policy = policy
        self._clock = clock

    # --- helpers ---

    @staticmethod
    def _validate_email(email: str) -> str:
        email = normalize_email(email or "")
        local, _, domain = email.partition("@")
        if not local or "." not in domain:
            raise ValidationError(f"Invalid email address: '{email}'")
        return email

    def _ensure_email_available(self, email: str, staff_id: Optional[str] = None) -> None:
        try:
            existing = self.repository.find_by_email(
                email, include_deleted=not self.policy.allow_email_reuse_after_delete
            )
        except StaffNotFoundError:
            return
        if existing.staff_id != staff_id:
            raise DuplicateEmailError(email)

    def _deliver_invite(self, staff: StaffMember, rollback: bool) -> None:
        message = invite_message(
            staff.email,
            staff.invite_code.code,
            staff.role.value,
            staff.invite_code.expiry,
        )
        result = self.email_provider.send(message)
        if result.success:
            logger.info("Sent invite email to staff %s", staff.staff_id)
            return

        logger.error(
            "Invite email to staff %s failed via %s: %s",
            staff.staff_id,
            result.provider,
            result.error_message,
        )
        if rollback:
            self.repository.remove_pending(staff.staff_id)
            raise NotificationFailedError(result.error_message)
        raise NotificationFailedError(result.error_message, staff=staff)

    # --- registration and invites ---

    def register(self, name: str, email: str, password: str) -> StaffMember:
        """Create an active owner account directly, without an invite.

        Raises:
            ValidationError: If the email or password is malformed.
            DuplicateEmailError: If the email is already registered.
        """
        email = self._validate_email(email)
        self._ensure_email_available(email)
        password_hash = hash_password(password)
        now = self._clock()
        staff = StaffMember(
            name=name,
            email=email,
            password_hash=password_hash,
            role=StaffRole.OWNER,
            email_verified=False,
            status=StaffStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        staff_id = self.repository.insert(staff)
        logger.info("Registered staff %s", staff_id)
        return staff.model_copy(update={"staff_id": staff_id})

    def send_invite(self, email: str, role: StaffRole) -> StaffMember:
        """Create a pending staff record and email it an invite code.

        If the email cannot be delivered the pending record is kept and
        ``NotificationFailedError`` carries it, unless the policy asks for a
        rollback.

        Raises:
            ValidationError: If the email is malformed or the role is owner.
            DuplicateEmailError: If the email is already registered.
            NotificationFailedError: If the invite email was not delivered.
        """
        email = self._validate_email(email)
        if role == StaffRole.OWNER:
            raise ValidationError("The owner role cannot be assigned by invite")
        self._ensure_email_available(email)

        now = self._clock()
        staff = StaffMember(
            email=email,
            role=role,
            status=StaffStatus.PENDING,
            invite_code=TimedCode(code=generate_invite_code(), expiry=now + self.policy.invite_ttl),
            created_at=now,
            updated_at=now,
        )
        staff = staff.model_copy(update={"staff_id": self.repository.insert(staff)})
        logger.info("Invited staff %s as %s", staff.staff_id, role.value)

        self._deliver_invite(staff, rollback=self.policy.rollback_invite_on_notification_failure)
        return staff

    def resend_invite(self, email: str) -> StaffMember:
        """Issue a fresh invite code for a pending record and email it.

        Raises:
            StaffNotFoundError: If no record exists for the email.
            InvalidTransitionError: If the record is no longer pending.
            NotificationFailedError: If the invite email was not delivered.
        """
        staff = self.repository.find_by_email(email)
        if staff.status != StaffStatus.PENDING:
            raise InvalidTransitionError(staff.status.value, StaffStatus.PENDING.value)

        now = self._clock()
        invite = TimedCode(code=generate_invite_code(), expiry=now + self.policy.invite_ttl)
        staff = self.repository.update(
            staff.staff_id,
            {"invite_code": invite, "updated_at": now},
            expected_version=staff.version,
        )
        logger.info("Reissued invite for staff %s", staff.staff_id)
        self._deliver_invite(staff, rollback=False)
        return staff

    def accept_invite(
        self, email: str, code: str, password: str, confirm_password: str
    ) -> StaffMember:
        """Redeem an invite code and activate the account.

        The code is cleared on success, so repeating the call with the same
        code fails with ``InviteCodeInvalidError``.

        Raises:
            PasswordMismatchError: If the two passwords differ.
            StaffNotFoundError: If no record exists for the email.
            InviteCodeInvalidError: If no invite is pending or the code differs.
            InviteCodeExpiredError: If the code matches but has expired.
            ConflictError: If a concurrent call redeemed the invite first.
        """
        if password != confirm_password:
            raise PasswordMismatchError()

        staff = self.repository.find_by_email(email)
        invite = staff.invite_code
        if (
            staff.status != StaffStatus.PENDING
            or invite is None
            or not codes_match(invite.code, code)
        ):
            raise InviteCodeInvalidError()

        now = self._clock()
        if is_expired(invite.expiry, now):
            raise InviteCodeExpiredError()

        ensure_transition(staff.status, StaffStatus.ACTIVE)
        staff = self.repository.update(
            staff.staff_id,
            {
                "password_hash": hash_password(password),
                "invite_code": None,
                "email_verified": True,
                "status": StaffStatus.ACTIVE,
                "updated_at": now,
            },
            expected_version=staff.version,
        )
        logger.info("Staff %s accepted invite", staff.staff_id)
        return staff

    # --- sessions ---

    def login(self, email: str, password: str) -> LoginResult:
        """Verify credentials and open a session.

        Raises:
            InvalidCredentialsError: For unknown, deleted or pending accounts
                and wrong passwords alike.
        """
        try:
            staff = self.repository.find_by_email(email)
        except StaffNotFoundError:
            staff = None

        # Every failure path pays for exactly one bcrypt check
        if staff is None or not staff.is_active:
            verify_password(password, dummy_hash())
            logger.info("Login failed: no active account for the given email")
            raise InvalidCredentialsError()
        if not verify_password(password, staff.password_hash):
            logger.info("Login failed for staff %s", staff.staff_id)
            raise InvalidCredentialsError()

        now = self._clock()
        if (
            self.policy.block_login_during_reset
            and staff.reset_token is not None
            and not is_expired(staff.reset_token.expiry, now)
        ):
            logger.info("Login refused for staff %s: password reset in progress", staff.staff_id)
            raise InvalidCredentialsError()

        token, expires_at = self.sessions.create(staff.staff_id, now)
        return LoginResult(staff=staff, token=token, expires_at=expires_at)

    def logout(self, token: str) -> None:
        """End a session. Unknown or already ended sessions are ignored."""
        if not self.sessions.revoke(token, self._clock()):
            logger.debug("Logout for a session that was not live")

    def authenticate(self, token: str) -> StaffMember:
        """Resolve a session token to its active staff member.

        Raises:
            InvalidCredentialsError: If the session is not live or the staff
                member is no longer active.
        """
        staff_id = self.sessions.resolve(token, self._clock())
        if staff_id is None:
            raise InvalidCredentialsError("Invalid or expired session")
        try:
            staff = self.repository.find_by_id(staff_id)
        except StaffNotFoundError:
            raise InvalidCredentialsError("Invalid or expired session") from None
        if not staff.is_active:
            raise InvalidCredentialsError("Invalid or expired session")
        return staff

    # --- profile ---

    def get(self, staff_id: str) -> StaffMember:
        return self.repository.find_by_id(staff_id)

    def _ensure_may_modify(self, target: StaffMember, acting_staff_id: Optional[str]) -> None:
        """Only the owner may modify or delete the owner record."""
        if (
            acting_staff_id is None
            or target.role != StaffRole.OWNER
            or acting_staff_id == target.staff_id
        ):
            return
        acting = self.repository.find_by_id(acting_staff_id)
        if acting.role != StaffRole.OWNER:
            logger.warning(
                "Staff %s tried to modify owner %s", acting_staff_id, target.staff_id
            )
            raise PermissionDeniedError("Only the owner can modify the owner account")

    def update(
        self,
        staff_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[StaffRole] = None,
        acting_staff_id: Optional[str] = None,
    ) -> StaffMember:
        """Update name, email and/or role.

        The owner role cannot be gained or given up through an update.

        Args:
            staff_id: Record to update.
            name: New display name.
            email: New email address.
            role: New role.
            acting_staff_id: Staff member performing the update, if any.

        Raises:
            StaffNotFoundError: If the record does not exist or is deleted.
            PermissionDeniedError: If a non-owner targets the owner record.
            ValidationError: If the update would change who holds the owner
                role, or the email is malformed.
            DuplicateEmailError: If the new email is taken.
            ConflictError: If the record changed concurrently.
        """
        staff = self.repository.find_by_id(staff_id)
        self._ensure_may_modify(staff, acting_staff_id)
        if role is not None and (role == StaffRole.OWNER) != (staff.role == StaffRole.OWNER):
            raise ValidationError("The owner role cannot be granted or removed by update")

        patch = {}
        if name is not None:
            patch["name"] = name
        if email is not None:
            email = self._validate_email(email)
            if email != staff.email:
                self._ensure_email_available(email, staff_id=staff_id)
                patch["email"] = email
        if role is not None:
            patch["role"] = role
        if not patch:
            return staff

        patch["updated_at"] = self._clock()
        staff = self.repository.update(staff_id, patch, expected_version=staff.version)
        logger.info("Updated staff %s (%s)", staff_id, ", ".join(sorted(patch)))
        return staff

    def delete(self, staff_id: str, acting_staff_id: Optional[str] = None) -> StaffMember:
        """Soft-delete a staff member and end their sessions.

        Raises:
            StaffNotFoundError: If the record does not exist or is already
                deleted.
            PermissionDeniedError: If a non-owner targets the owner record.
            ConflictError: If the record changed concurrently.
        """
        staff = self.repository.find_by_id(staff_id)
        self._ensure_may_modify(staff, acting_staff_id)
        ensure_transition(staff.status, StaffStatus.DELETED)
        now = self._clock()
        staff = self.repository.soft_delete(
            staff_id,
            {
                "deleted_at": now,
                "updated_at": now,
                "invite_code": None,
                "reset_token": None,
            },
            expected_version=staff.version,
        )
        self.sessions.revoke_all(staff_id, now)
        logger.info("Soft-deleted staff %s", staff_id)
        return staff

    # --- passwords ---

    def change_password(self, staff_id: str, old_password: str, new_password: str) -> StaffMember:
        """Replace the password of an active account.

        Any outstanding reset token is discarded.

        Raises:
            InvalidCredentialsError: If the old password does not verify.
            ValidationError: If the new password is empty or too long.
            ConflictError: If the record changed concurrently.
        """
        staff = self.repository.find_by_id(staff_id)
        if not staff.is_active or not verify_password(old_password, staff.password_hash):
            raise InvalidCredentialsError("Invalid password")

        staff = self.repository.update(
            staff_id,
            {
                "password_hash": hash_password(new_password),
                "reset_token": None,
                "updated_at": self._clock(),
            },
            expected_version=staff.version,
        )
        logger.info("Staff %s changed password", staff_id)
        return staff

    def forgot_password(self, email: str) -> ForgotPasswordResult:
        """Email a password reset token to an active account.

        The result is the same whether or not the email belongs to an
        account and whether or not delivery worked; only logs tell them
        apart.
        """
        result = ForgotPasswordResult()
        try:
            staff = self.repository.find_by_email(email)
        except StaffNotFoundError:
            logger.info("Password reset requested for an unknown email")
            return result
        if not staff.is_active:
            logger.info("Password reset requested for non-active staff %s", staff.staff_id)
            return result

        now = self._clock()
        reset_token = TimedCode(code=generate_invite_code(), expiry=now + self.policy.reset_ttl)
        try:
            self.repository.update(
                staff.staff_id,
                {"reset_token": reset_token, "updated_at": now},
                expected_version=staff.version,
            )
        except ConflictError:
            logger.warning("Password reset for staff %s lost a concurrent write", staff.staff_id)
            return result

        delivery = self.email_provider.send(
            password_reset_message(staff.email, reset_token.code, reset_token.expiry)
        )
        if delivery.success:
            logger.info("Sent password reset email to staff %s", staff.staff_id)
        else:
            logger.error(
                "Password reset email to staff %s failed via %s: %s",
                staff.staff_id,
                delivery.provider,
                delivery.error_message,
            )
        return result

    def reset_password(self, email: str, token: str, new_password: str) -> StaffMember:
        """Set a new password with a reset token and end all sessions.

        Raises:
            ResetTokenInvalidError: If no reset is in flight for the email or
                the token differs.
            ResetTokenExpiredError: If the token matches but has expired.
            ValidationError: If the new password is empty or too long.
            ConflictError: If the record changed concurrently.
        """
        try:
            staff = self.repository.find_by_email(email)
        except StaffNotFoundError:
            raise ResetTokenInvalidError() from None

        pending = staff.reset_token
        if not staff.is_active or pending is None or not codes_match(pending.code, token):
            raise ResetTokenInvalidError()

        now = self._clock()
        if is_expired(pending.expiry, now):
            raise ResetTokenExpiredError()

        staff = self.repository.update(
            staff.staff_id,
            {
                "password_hash": hash_password(new_password),
                "reset_token": None,
                "updated_at": now,
            },
            expected_version=staff.version,
        )
        self.sessions.revoke_all(staff.staff_id, now)
        logger.info("Staff %s reset password", staff.staff_id)
        return staff

    # --- first run ---

    def setup(
        self, name: str, email: str, password: str, settings: SiteSettingsInput
    ) -> Tuple[StaffMember, SiteSettings]:
        """Register the owner and save the initial site settings.

        Inserting the settings row is what completes setup. If it fails, or
        a concurrent setup inserted it first, the owner created here is
        removed again so the call can be retried.

        Raises:
            SetupAlreadyCompletedError: If settings already exist.
        """
        if self.settings is None:
            raise ConfigurationError("Setup requires a settings repository")
        if self.settings.exists():
            raise SetupAlreadyCompletedError()

        staff = self.register(name, email, password)
        try:
            saved = self.settings.create_settings(settings, self._clock())
        except Exception:
            logger.warning("Setup did not complete, removing owner %s", staff.staff_id)
            self.repository.purge(staff.staff_id)
            raise
        logger.info("Completed setup with owner %s", staff.staff_id)
        return staff, saved

    def save_settings(self, settings: SiteSettingsInput) -> SiteSettings:
        if self.settings is None:
            raise ConfigurationError("Saving settings requires a settings repository")
        return self.settings.save_settings(settings, self._clock())
