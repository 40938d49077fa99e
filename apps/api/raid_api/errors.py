"""Domain error taxonomy.

Every failure the core reports is a RaidSystemError subclass carrying a
stable machine-readable ``code``. main.py renders them as RFC 9457 Problem
Details; clients branch on status/code, never on message text.

    AuthError           401  caller unauthenticated (bad/expired/malformed token)
    AuthorizationError  403  caller known, not entitled to the resource
    NotFoundError       404  referenced entity absent
    ValidationError     400  field-level rule violated
    ConflictError       409  state-dependent invariant violated (duplicate, full)
    StorageError        503  persistence collaborator failure
    InternalError       500  anything unexpected (detail never leaked)
"""

from enum import Enum


class RaidSystemError(Exception):
    """Base class for typed failures surfaced to callers."""

    status_code: int = 500
    title: str = "Internal Server Error"

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class AuthFailure(str, Enum):
    """Reasons a bearer token is rejected."""

    MISSING = "token_missing"
    INVALID_SIGNATURE = "token_invalid_signature"
    EXPIRED = "token_expired"
    MALFORMED = "token_malformed"


class AuthError(RaidSystemError):
    status_code = 401
    title = "Unauthorized"

    _MESSAGES = {
        AuthFailure.MISSING: "Authentication required. Provide: Authorization: Bearer <token>",
        AuthFailure.INVALID_SIGNATURE: "Token signature verification failed",
        AuthFailure.EXPIRED: "Token has expired. Log in again to obtain a new token.",
        AuthFailure.MALFORMED: "Token could not be parsed",
    }

    def __init__(self, reason: AuthFailure, message: str | None = None):
        super().__init__(reason.value, message or self._MESSAGES[reason])
        self.reason = reason


class AuthorizationError(RaidSystemError):
    status_code = 403
    title = "Forbidden"

    def __init__(self, message: str, code: str = "not_character_owner"):
        super().__init__(code, message)


class NotFoundError(RaidSystemError):
    status_code = 404
    title = "Not Found"

    def __init__(self, resource: str, message: str | None = None):
        super().__init__(f"{resource}_not_found", message or f"{resource.capitalize()} not found")
        self.resource = resource


class ValidationError(RaidSystemError):
    status_code = 400
    title = "Validation Failed"


class ConflictError(RaidSystemError):
    status_code = 409
    title = "Conflict"


class StorageError(RaidSystemError):
    status_code = 503
    title = "Service Unavailable"

    def __init__(self, message: str = "Storage is temporarily unavailable. Please retry."):
        super().__init__("storage_unavailable", message)


class InternalError(RaidSystemError):
    status_code = 500
    title = "Internal Server Error"

    def __init__(self, message: str = "An unexpected error occurred. Please try again later."):
        super().__init__("internal_error", message)


# Validation codes
EMPTY_NAME = "empty_name"
NEGATIVE_LEVEL = "negative_level"
EMPTY_TITLE = "empty_title"
START_TIME_TOO_FAR_IN_PAST = "start_time_too_far_in_past"
HAS_ACTIVE_SIGNUPS = "has_active_signups"

# Conflict codes
DUPLICATE_SIGNUP = "duplicate_signup"
RAID_FULL = "raid_full"

# Authorization codes
NOT_CHARACTER_OWNER = "not_character_owner"
NOT_RAID_CREATOR = "not_raid_creator"
