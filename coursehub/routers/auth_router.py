# coursehub/routers/auth_router.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response

from ..dependencies import (
    ServiceContainer,
    get_account_service,
    get_current_account,
    get_current_account_id,
    get_optional_account_id,
    get_services,
    require_admin,
)
from ..exceptions import create_success_response
from ..application.ports.user_repo import AccountRecord
from ..application.services.account_service import AccountService
from ..application.services.session_issuer import IssuedSession
from ..schemas import (
    AccountSummary,
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResendOTPRequest,
    UpdateProfileRequest,
    UpdateRoleRequest,
    VerifyOTPRequest,
)

logger = logging.getLogger(__name__)

_error_responses = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}

router = APIRouter(tags=["Authentication"], responses=_error_responses)


def _set_session_cookie(response: Response, services: ServiceContainer, session: IssuedSession, samesite: str) -> None:
    response.set_cookie(
        key=services.settings.SESSION_COOKIE_NAME,
        value=session.token,
        httponly=True,
        secure=services.settings.is_production,
        samesite=samesite,
        max_age=session.max_age,
    )


def _summary(account: AccountRecord) -> dict:
    return AccountSummary.from_record(account).to_payload()


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    payload: RegisterRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
    services: ServiceContainer = Depends(get_services),
):
    """
    Create an unverified account and text it a one-time code
    """
    result = service.register(
        name=payload.name,
        phone_number=payload.phone_number,
        password=payload.password,
        email=payload.email,
    )
    _set_session_cookie(response, services, result.session, samesite="strict")
    return create_success_response(
        "Registration successful. Please verify your phone number.",
        {
            "user": _summary(result.account),
            "token": result.session.token,
            "otp_sent": result.otp_sent,
            "otp_expires_in": result.otp_expires_in,
        },
    )


def _verify(payload: VerifyOTPRequest, response: Response, service: AccountService, services: ServiceContainer) -> dict:
    result = service.verify_otp(payload.user_id, payload.otp)
    _set_session_cookie(response, services, result.session, samesite="strict")
    return create_success_response(
        "Account verified successfully.",
        {
            "user": _summary(result.account),
            "token": result.session.token,
        },
    )


@router.post("/verify-otp", response_model=AuthResponse)
def verify_otp(
    payload: VerifyOTPRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
    services: ServiceContainer = Depends(get_services),
):
    """
    Confirm the one-time code and issue a post-verification session
    """
    return _verify(payload, response, service, services)


# Backward-compatible alias for older clients posting to /verify-phone
@router.post("/verify-phone", response_model=AuthResponse)
def verify_phone(
    payload: VerifyOTPRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
    services: ServiceContainer = Depends(get_services),
):
    return _verify(payload, response, service, services)


@router.post("/resend-otp", response_model=AuthResponse)
def resend_otp(payload: ResendOTPRequest, service: AccountService = Depends(get_account_service)):
    result = service.resend_otp(payload.user_id)
    return create_success_response(
        "Verification code sent successfully.",
        {"otp_expires_in": result.otp_expires_in},
    )


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
    services: ServiceContainer = Depends(get_services),
):
    result = service.login(
        password=payload.password,
        phone_number=payload.phone_number,
        email=payload.email,
    )
    _set_session_cookie(response, services, result.session, samesite="lax")
    return create_success_response(
        "Login successful",
        {
            "user": _summary(result.account),
            "token": result.session.token,
        },
    )


@router.api_route("/logout", methods=["GET", "POST"], response_model=MessageResponse)
def logout(
    response: Response,
    service: AccountService = Depends(get_account_service),
    services: ServiceContainer = Depends(get_services),
    account_id: Optional[str] = Depends(get_optional_account_id),
):
    service.logout(account_id)
    response.set_cookie(
        key=services.settings.SESSION_COOKIE_NAME,
        value="",
        httponly=True,
        secure=services.settings.is_production,
        samesite="lax",
        max_age=0,
    )
    return {"success": True, "message": "Logged out successfully."}


@router.get("/profile", response_model=AuthResponse)
def get_profile(current: AccountRecord = Depends(get_current_account)):
    return create_success_response("Profile loaded", {"user": _summary(current)})


@router.put("/profile/update", response_model=AuthResponse)
def update_profile(
    payload: UpdateProfileRequest,
    account_id: str = Depends(get_current_account_id),
    service: AccountService = Depends(get_account_service),
):
    account = service.update_profile(account_id, name=payload.name, photo_url=payload.photo_url)
    return create_success_response("Profile updated successfully.", {"user": _summary(account)})


@router.get("/users", response_model=AuthResponse)
def list_users(
    admin: AccountRecord = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
):
    accounts = service.list_accounts()
    return create_success_response(
        "Users retrieved successfully",
        {"users": [_summary(a) for a in accounts], "count": len(accounts)},
    )


@router.get("/database-stats", response_model=AuthResponse)
def database_stats(
    admin: AccountRecord = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
):
    stats = service.account_stats()
    return create_success_response(
        "Statistics loaded",
        {
            "totalUsers": stats.total,
            "usersByRole": stats.by_role,
            "verificationStats": {
                "verified": stats.verified,
                "unverified": stats.unverified,
            },
        },
    )


@router.put("/user/role", response_model=AuthResponse)
def update_user_role(
    payload: UpdateRoleRequest,
    admin: AccountRecord = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
):
    account = service.update_role(payload.user_id, payload.role)
    return create_success_response(
        f"User role updated to {account.role} successfully",
        {"user": _summary(account)},
    )
