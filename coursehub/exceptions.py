import logging
from enum import Enum
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    MISSING_FIELD = "MISSING_FIELD"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_PHONE_FORMAT = "INVALID_PHONE_FORMAT"
    DUPLICATE_ACCOUNT = "DUPLICATE_ACCOUNT"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    NO_PENDING_OTP = "NO_PENDING_OTP"
    OTP_EXPIRED = "OTP_EXPIRED"
    INVALID_OTP = "INVALID_OTP"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    DELIVERY_FAILED = "DELIVERY_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INVALID_ROLE = "INVALID_ROLE"
    NO_CHANGES = "NO_CHANGES"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AuthError(Exception):
    """Base class for every failure the account service reports to callers.

    Subclasses fix ``kind`` and ``status_code``; callers branch on ``kind``,
    never on the message text.
    """

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    status_code: int = 500
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)


class MissingField(AuthError):
    kind = ErrorKind.MISSING_FIELD
    status_code = 400

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"{field} is required.", field=field)


class WeakPassword(AuthError):
    kind = ErrorKind.WEAK_PASSWORD
    status_code = 400
    default_message = "Password does not meet the password policy."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="password")


class InvalidEmail(AuthError):
    kind = ErrorKind.INVALID_EMAIL
    status_code = 400
    default_message = "Please provide a valid email address or leave it empty."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="email")


class InvalidPhoneFormat(AuthError):
    kind = ErrorKind.INVALID_PHONE_FORMAT
    status_code = 400
    default_message = "Please provide a valid Indian phone number (10 digits starting with 6-9)."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="phone_number")


class DuplicateAccount(AuthError):
    kind = ErrorKind.DUPLICATE_ACCOUNT
    status_code = 400

    def __init__(self, field: str):
        label = "email" if field == "email" else "phone number"
        super().__init__(f"A user with this {label} already exists.", field=field)


class NotFound(AuthError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "User not found."


class AlreadyVerified(AuthError):
    kind = ErrorKind.ALREADY_VERIFIED
    status_code = 400
    default_message = "Account is already verified."


class NoPendingOTP(AuthError):
    kind = ErrorKind.NO_PENDING_OTP
    status_code = 400
    default_message = "No verification code found. Please request a new one."


class OTPExpired(AuthError):
    kind = ErrorKind.OTP_EXPIRED
    status_code = 400
    default_message = "Verification code has expired. Please request a new one."


class InvalidOTP(AuthError):
    kind = ErrorKind.INVALID_OTP
    status_code = 400
    default_message = "Invalid verification code."


class InvalidCredential(AuthError):
    kind = ErrorKind.INVALID_CREDENTIAL
    status_code = 401
    default_message = "Invalid password."


class DeliveryFailed(AuthError):
    kind = ErrorKind.DELIVERY_FAILED
    status_code = 500
    default_message = "Failed to send verification code. Please try again later."


class ConfigurationError(AuthError):
    kind = ErrorKind.CONFIGURATION_ERROR
    status_code = 500
    default_message = "Authentication is not configured."


class StorageUnavailable(AuthError):
    kind = ErrorKind.STORAGE_UNAVAILABLE
    status_code = 503
    default_message = "Account storage is unavailable. Please try again later."


class InvalidRole(AuthError):
    kind = ErrorKind.INVALID_ROLE
    status_code = 400
    default_message = "Invalid role - must be USER, ADMIN, or INSTRUCTOR."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="role")


class NoChanges(AuthError):
    kind = ErrorKind.NO_CHANGES
    status_code = 400
    default_message = "No changes provided for update."


def create_error_response(kind: str, message: str, status_code: int, field: Optional[str] = None) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "error": kind,
        "message": message,
        "status_code": status_code,
        "field": field,
    }

def create_success_response(message: str, data: Optional[dict] = None) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "message": message,
        "data": data or {},
    }

async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.kind.value} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind.value} on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.kind.value, exc.message, exc.status_code, exc.field),
    )

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    if exc.status_code == 401:
        kind = ErrorKind.UNAUTHORIZED
    elif exc.status_code == 403:
        kind = ErrorKind.FORBIDDEN
    elif exc.status_code == 404:
        kind = ErrorKind.NOT_FOUND
    else:
        kind = ErrorKind.INTERNAL_ERROR
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(kind.value, str(exc.detail), exc.status_code),
        headers=getattr(exc, "headers", None),
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported as a missing field"""
    field = None
    errors = exc.errors()
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part != "body" and not isinstance(part, int)]
        field = loc[-1] if loc else None
    message = f"{field} is required." if field else "Request body is required."
    return JSONResponse(
        status_code=400,
        content=create_error_response(ErrorKind.MISSING_FIELD.value, message, 400, field),
    )
