"""Custom exception classes for the Looped CMS backend.

This module defines application-specific exceptions following Google Python
Style Guide. Every error kind raised by the staff core derives from
``CMSError`` so the API layer can translate them in one place.
"""

from typing import Any, Optional


class CMSError(Exception):
    """Base exception for all Looped CMS errors."""

    pass


class ConfigurationError(CMSError):
    """Raised when there is a configuration error."""

    pass


class ValidationError(CMSError):
    """Raised when input validation fails."""

    pass


class StaffNotFoundError(CMSError):
    """Raised when a requested staff member cannot be found."""

    def __init__(self, key: str):
        """Initialize the exception.

        Args:
            key: The email or staff id that was looked up.
        """
        self.key = key
        super().__init__(f"Staff '{key}' not found")


class DuplicateEmailError(CMSError):
    """Raised when an email is already taken by another staff record."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Staff with email '{email}' already exists")


class PasswordMismatchError(ValidationError):
    """Raised when password and confirm password do not match."""

    def __init__(self):
        super().__init__("Password and confirm password do not match")


class InvalidCredentialsError(CMSError):
    """Raised when credentials cannot be verified.

    Used uniformly for unknown accounts, wrong passwords and accounts that
    are not active, so callers cannot tell which emails are registered.
    """

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class InviteCodeInvalidError(CMSError):
    """Raised when an invite code does not match a pending invite."""

    def __init__(self):
        super().__init__("Invalid invite code")


class InviteCodeExpiredError(CMSError):
    """Raised when an invite code matches but is past its expiry."""

    def __init__(self):
        super().__init__("Invite code has expired, request a new invite")


class ResetTokenInvalidError(CMSError):
    """Raised when a password reset token does not match."""

    def __init__(self):
        super().__init__("Invalid password reset token")


class ResetTokenExpiredError(CMSError):
    """Raised when a password reset token matches but has expired."""

    def __init__(self):
        super().__init__("Password reset token has expired, request a new one")


class ConflictError(CMSError):
    """Raised when a conditional update loses against a concurrent write."""

    def __init__(self, staff_id: str):
        self.staff_id = staff_id
        super().__init__(
            f"Staff '{staff_id}' was modified concurrently, reload and retry"
        )


class NotificationFailedError(CMSError):
    """Raised when the notification gateway fails to deliver an email.

    Attributes:
        staff: The staff record that was persisted before delivery failed,
            if it was kept.
        reason: Provider error message. Logged, never shown to clients.
    """

    def __init__(self, reason: Optional[str], staff: Any = None):
        self.reason = reason
        self.staff = staff
        super().__init__("Failed to send email")


class CryptoError(CMSError):
    """Raised when the password hashing primitive fails."""

    pass


class UnavailableError(CMSError):
    """Raised when the store cannot be reached in time. Retryable."""

    pass


class InvalidTransitionError(CMSError):
    """Raised when a staff lifecycle transition is not allowed."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move staff from '{current}' to '{target}'")


class SettingsNotFoundError(CMSError):
    """Raised when site settings have not been saved yet."""

    def __init__(self):
        super().__init__("No settings found")


class SetupAlreadyCompletedError(CMSError):
    """Raised when setup is attempted on an already configured site."""

    def __init__(self):
        super().__init__("Site has already been set up")


class PermissionDeniedError(CMSError):
    """Raised when the acting staff member may not touch the target record."""

    def __init__(self, message: str = "You do not have permission to modify this staff member"):
        super().__init__(message)
