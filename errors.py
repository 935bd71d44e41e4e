"""
Error types shared by the store, auth and media layers, and the single
normalization function that turns any of them into a message fit for display.
"""
from typing import Optional

PERMISSION_DENIED = "permission-denied"
NOT_FOUND = "not-found"
ALREADY_EXISTS = "already-exists"
UNAVAILABLE = "unavailable"
INVALID_CREDENTIAL = "invalid-credential"

GENERIC_MESSAGE = "An unexpected error occurred."

MESSAGES = {
    PERMISSION_DENIED: "You do not have permission to perform this action.",
    NOT_FOUND: "The requested resource was not found.",
    ALREADY_EXISTS: "The resource already exists.",
    UNAVAILABLE: "The service is currently unavailable. Please try again later.",
    INVALID_CREDENTIAL: "Invalid email or password.",
}


class StoreError(Exception):
    """Failure reported by a document store, tagged with a short code."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code
        self.message = message


class AuthError(StoreError):
    pass


class UploadError(Exception):
    def __init__(self, message: str = "Upload failed", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def error_code(exc: BaseException) -> Optional[str]:
    return getattr(exc, "code", None) if isinstance(exc, StoreError) else None


def normalize_error(exc: BaseException) -> str:
    code = error_code(exc)
    if code in MESSAGES:
        return MESSAGES[code]
    message = getattr(exc, "message", None) or str(exc)
    return message or GENERIC_MESSAGE
