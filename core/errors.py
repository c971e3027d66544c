"""
Error taxonomy shared by routers and services.

Every error carries a machine code, a short title and a readable message so
clients can render them directly (title + description).
"""
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError


class MarketplaceError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "UNKNOWN_ERROR"
    title = "Error"

    def __init__(self, message: str = "An unexpected error occurred.", code: str = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(status_code=self.status_code, detail=self.code)

    def to_dict(self):
        return {"code": self.code, "title": self.title, "message": self.message}


class ValidationFailed(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    title = "Validation Error"


class AuthenticationRequired(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_REQUIRED"
    title = "Authentication Required"


class PermissionDenied(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "ACCESS_DENIED"
    title = "Access Denied"


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    title = "Not Found"


class DuplicateEntry(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "DUPLICATE_ENTRY"
    title = "Already Exists"


class InvalidReference(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "INVALID_REFERENCE"
    title = "Invalid Reference"


class InvalidTransition(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "INVALID_STATUS_TRANSITION"
    title = "Action Not Allowed"


class RateLimited(MarketplaceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    title = "Rate Limited"


def translate_integrity_error(exc: IntegrityError) -> MarketplaceError:
    """Maps a constraint violation raised by the database to a client error."""
    text = str(getattr(exc, "orig", exc)).lower()

    if "foreign key" in text:
        return InvalidReference("Referenced item does not exist.")

    if "unique" in text or "duplicate" in text:
        if "email" in text:
            return DuplicateEntry("An account with this email already exists.")
        if "handle" in text:
            return DuplicateEntry("This username is already taken. Please choose another.")
        if "tx_hash" in text:
            return DuplicateEntry("This transaction hash has already been submitted.")
        return DuplicateEntry("This entry already exists.")

    return MarketplaceError("Database error occurred.", code="DATABASE_ERROR")
