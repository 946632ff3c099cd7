import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.engine import Engine
from sqlmodel import Session

from .core.config import Settings
from .database import create_db_engine, session_scope
from .exceptions import NotFound
from .application.ports.audit_logger import AuditLogger
from .application.ports.notification_gateway import NotificationGateway
from .application.ports.password_hasher import PasswordHasher
from .application.ports.user_repo import AccountRecord, Role
from .application.services.account_service import AccountService
from .application.services.otp_issuer import OTPIssuer
from .application.services.session_issuer import AuthSessionIssuer
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.otp.console_provider import ConsoleNotificationGateway
from .infrastructure.otp.twilio_provider import TwilioNotificationGateway
from .infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserDirectory
from .infrastructure.security.bcrypt_hasher import BcryptPasswordHasher
from .infrastructure.security.jwt_signer import JwtTokenSigner

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Process-wide collaborators, built once at startup from the settings."""

    settings: Settings
    engine: Engine
    gateway: NotificationGateway
    hasher: PasswordHasher
    sessions: AuthSessionIssuer
    otp_issuer: OTPIssuer
    audit: AuditLogger


def build_notification_gateway(settings: Settings) -> NotificationGateway:
    if settings.twilio_configured:
        logger.info("Using Twilio for OTP delivery")
        return TwilioNotificationGateway(settings)
    logger.warning("Twilio not configured; OTP codes will only be logged outside production")
    return ConsoleNotificationGateway(reveal_codes=not settings.is_production)


def build_services(settings: Settings, engine: Optional[Engine] = None) -> ServiceContainer:
    # raises ConfigurationError when JWT_SECRET is missing
    signer = JwtTokenSigner(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    return ServiceContainer(
        settings=settings,
        engine=engine or create_db_engine(settings.DATABASE_URL, echo=settings.DEBUG),
        gateway=build_notification_gateway(settings),
        hasher=BcryptPasswordHasher(rounds=settings.BCRYPT_ROUNDS),
        sessions=AuthSessionIssuer(
            signer,
            standard_ttl=timedelta(days=settings.STANDARD_SESSION_DAYS),
            verified_ttl=timedelta(days=settings.VERIFIED_SESSION_DAYS),
        ),
        otp_issuer=OTPIssuer(ttl=timedelta(minutes=settings.OTP_EXPIRY_MINUTES), length=settings.OTP_LENGTH),
        audit=StdAuditLogger(),
    )


# ------------------------
# FastAPI dependencies
# ------------------------
bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_session(services: ServiceContainer = Depends(get_services)):
    yield from session_scope(services.engine)


def get_account_service(
    services: ServiceContainer = Depends(get_services),
    session: Session = Depends(get_session),
) -> AccountService:
    return AccountService(
        users=SqlUserDirectory(session),
        gateway=services.gateway,
        hasher=services.hasher,
        sessions=services.sessions,
        otp_issuer=services.otp_issuer,
        audit=services.audit,
        country_code=services.settings.PHONE_COUNTRY_CODE,
    )


def _session_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials], services: ServiceContainer) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    # Fallback to cookie
    return request.cookies.get(services.settings.SESSION_COOKIE_NAME)


def get_current_account_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: ServiceContainer = Depends(get_services),
) -> str:
    token = _session_token(request, credentials, services)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    account_id = services.sessions.account_id_from(token)
    if not account_id:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return account_id


def get_optional_account_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: ServiceContainer = Depends(get_services),
) -> Optional[str]:
    token = _session_token(request, credentials, services)
    return services.sessions.account_id_from(token) if token else None


def get_current_account(
    account_id: str = Depends(get_current_account_id),
    service: AccountService = Depends(get_account_service),
) -> AccountRecord:
    try:
        return service.get_profile(account_id)
    except NotFound:
        raise HTTPException(status_code=401, detail="User not found")


def require_admin(account: AccountRecord = Depends(get_current_account)) -> AccountRecord:
    if account.role != Role.ADMIN.value:
        logger.warning(f"User {account.id} attempted an admin-only action")
        raise HTTPException(status_code=403, detail="Admin access required")
    return account
