"""Error types shared across services and routers."""

from __future__ import annotations

from enum import Enum


class AuthErrorCode(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    WEAK_PASSWORD = "weak_password"
    EMAIL_IN_USE = "email_in_use"
    NETWORK_ERROR = "network_error"
    USER_NOT_FOUND = "user_not_found"
    NOT_AUTHENTICATED = "not_authenticated"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        return _AUTH_DESCRIPTIONS[self]

    @classmethod
    def from_vendor_code(cls, code: str | None) -> "AuthErrorCode":
        """Map an identity-provider error code (e.g. ``auth/weak-password``) to a known code."""

        if not code:
            return cls.UNKNOWN
        return _VENDOR_CODES.get(code.strip().lower(), cls.UNKNOWN)


_AUTH_DESCRIPTIONS: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIALS: "Invalid email or password. Please try again.",
    AuthErrorCode.WEAK_PASSWORD: "Password must be at least 6 characters long.",
    AuthErrorCode.EMAIL_IN_USE: "An account with this email already exists.",
    AuthErrorCode.NETWORK_ERROR: "Network error. Please check your connection.",
    AuthErrorCode.USER_NOT_FOUND: "No account found for this user.",
    AuthErrorCode.NOT_AUTHENTICATED: "You need to sign in to do that.",
    AuthErrorCode.UNKNOWN: "An unknown error occurred. Please try again.",
}

_VENDOR_CODES: dict[str, AuthErrorCode] = {
    "auth/wrong-password": AuthErrorCode.INVALID_CREDENTIALS,
    "auth/invalid-email": AuthErrorCode.INVALID_CREDENTIALS,
    "auth/invalid-credential": AuthErrorCode.INVALID_CREDENTIALS,
    "auth/weak-password": AuthErrorCode.WEAK_PASSWORD,
    "auth/email-already-in-use": AuthErrorCode.EMAIL_IN_USE,
    "auth/network-request-failed": AuthErrorCode.NETWORK_ERROR,
    "auth/user-not-found": AuthErrorCode.USER_NOT_FOUND,
}


class AuthError(Exception):
    """Raised when the caller cannot be identified or registered."""

    def __init__(self, code: AuthErrorCode, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or code.description)


class ServiceError(RuntimeError):
    """Raised when an external service call fails; the message carries the raw response body."""


class UploadError(ValueError):
    """Raised when an upload cannot be started for the given file."""


class UploadTooLargeError(UploadError):
    """Raised when a file exceeds a size ceiling."""


class InvalidStatusTransition(ValueError):
    """Raised when a processing status would move backwards."""


class NotFoundError(LookupError):
    """Raised when a requested record does not exist."""
