import hmac
import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ...core.clock import utc_now
from ...exceptions import (
    AlreadyVerified,
    DeliveryFailed,
    DuplicateAccount,
    InvalidCredential,
    InvalidOTP,
    InvalidRole,
    MissingField,
    NoChanges,
    NoPendingOTP,
    NotFound,
    OTPExpired,
    StorageUnavailable,
)
from ..ports.audit_logger import AuditLogger
from ..ports.notification_gateway import DeliveryResult, NotificationGateway
from ..ports.password_hasher import PasswordHasher
from ..ports.user_repo import AccountRecord, DuplicateKeyError, PendingOTP, Role, StorageError, UserDirectory
from .credentials import validate_email, validate_password
from .otp_issuer import OTPIssuer
from .phone import DEFAULT_COUNTRY_CODE, normalize_phone
from .session_issuer import AuthSessionIssuer, IssuedSession, SessionPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    account: AccountRecord
    session: IssuedSession
    otp_sent: bool
    otp_expires_in: int


@dataclass(frozen=True)
class VerificationResult:
    account: AccountRecord
    session: IssuedSession


@dataclass(frozen=True)
class ResendResult:
    account: AccountRecord
    otp_expires_in: int


@dataclass(frozen=True)
class LoginResult:
    account: AccountRecord
    session: IssuedSession


@dataclass(frozen=True)
class AccountStats:
    total: int
    by_role: Dict[str, int]
    verified: int
    unverified: int


@dataclass
class AccountService:
    """Registration, phone verification and login for platform accounts.

    An account starts unverified with a pending OTP, and becomes verified once
    the code is confirmed before it expires. Every request works on a fresh
    copy of the account read from ``users``; nothing is cached between calls.
    """

    users: UserDirectory
    gateway: NotificationGateway
    hasher: PasswordHasher
    sessions: AuthSessionIssuer
    otp_issuer: OTPIssuer
    audit: Optional[AuditLogger] = None
    country_code: str = DEFAULT_COUNTRY_CODE
    clock: Callable[[], datetime] = utc_now

    # ------------------------
    # Helpers
    # ------------------------
    @contextmanager
    def _storage(self, action: str):
        try:
            yield
        except DuplicateKeyError as e:
            logger.info(f"Duplicate key on {e.field} during {action}")
            raise DuplicateAccount(e.field) from e
        except StorageError as e:
            logger.error(f"Storage error during {action}: {e}")
            raise StorageUnavailable() from e

    def _audit(self, action: str, phone: Optional[str] = None, user_id: Optional[str] = None, success: bool = True, **details) -> None:
        if self.audit is not None:
            self.audit.log(action, phone=phone, user_id=user_id, success=success, details=details or None)

    def _load(self, account_id: str, action: str) -> AccountRecord:
        with self._storage(action):
            account = self.users.find_by_id(account_id)
        if account is None:
            logger.info(f"{action}: user {account_id} not found")
            raise NotFound()
        return account

    def _deliver(self, account: AccountRecord, otp: PendingOTP) -> DeliveryResult:
        try:
            result = self.gateway.send_otp(account.phone_number, otp.code)
        except Exception as e:
            logger.error(f"OTP delivery raised for user {account.id}: {e}")
            result = DeliveryResult.failed(str(e))
        if result.sent:
            logger.info(f"OTP sent to user {account.id}")
        else:
            logger.warning(f"Failed to send OTP to user {account.id}: {result.error}")
        self._audit("otp_sent", account.phone_number, account.id, result.sent, error=result.error)
        return result

    # ------------------------
    # Registration and verification
    # ------------------------
    def register(self, name: Optional[str], phone_number: Optional[str], password: Optional[str], email: Optional[str] = None) -> RegistrationResult:
        name = name.strip() if name else name
        if not name:
            raise MissingField("name")
        if not phone_number:
            raise MissingField("phone_number")
        if not password:
            raise MissingField("password")

        validate_password(password)
        email = (email.strip() or None) if email else None
        if email:
            validate_email(email)
        phone = normalize_phone(phone_number, self.country_code)

        with self._storage("register"):
            if self.users.find_one({"phone_number": phone}) is not None:
                self._audit("register", phone, success=False, error="DUPLICATE_PHONE")
                raise DuplicateAccount("phone_number")
            if email and self.users.find_one({"email": email}) is not None:
                self._audit("register", phone, success=False, error="DUPLICATE_EMAIL")
                raise DuplicateAccount("email")

        password_hash = self.hasher.hash(password)
        otp = self.otp_issuer.issue(self.clock())

        with self._storage("register"):
            account = self.users.create({
                "name": name,
                "phone_number": phone,
                "email": email,
                "password_hash": password_hash,
                "is_verified": False,
                "otp_code": otp.code,
                "otp_expires_at": otp.expires_at,
                "role": Role.USER.value,
            })
        logger.info(f"User {account.id} registered")

        # registration stands even if the SMS never arrives
        delivery = self._deliver(account, otp)

        session = self.sessions.issue(account, SessionPolicy.STANDARD)
        self._audit("register", phone, account.id, True)
        return RegistrationResult(
            account=account,
            session=session,
            otp_sent=delivery.sent,
            otp_expires_in=self.otp_issuer.expires_in_seconds,
        )

    def verify_otp(self, account_id: Optional[str], code: Optional[str]) -> VerificationResult:
        if not account_id:
            raise MissingField("user_id")
        if not code:
            raise MissingField("otp")
        code = str(code).strip()

        account = self._load(account_id, "verify_otp")
        if account.is_verified:
            raise AlreadyVerified()

        pending = account.pending_otp
        if pending is None:
            raise NoPendingOTP()
        if pending.is_expired(self.clock()):
            self._audit("verify_otp", account.phone_number, account.id, False, error="OTP_EXPIRED")
            raise OTPExpired()
        if not hmac.compare_digest(pending.code.encode(), code.encode()):
            self._audit("verify_otp", account.phone_number, account.id, False, error="INVALID_OTP")
            raise InvalidOTP()

        with self._storage("verify_otp"):
            verified = self.users.update_where(
                account.id,
                expected={"is_verified": False, "otp_code": pending.code, "otp_expires_at": pending.expires_at},
                changes={"is_verified": True, "otp_code": None, "otp_expires_at": None},
            )
            if verified is None:
                current = self.users.find_by_id(account.id)
        if verified is None:
            # lost a race against another verify or a resend
            if current is not None and current.is_verified:
                raise AlreadyVerified()
            raise InvalidOTP()

        session = self.sessions.issue(verified, SessionPolicy.POST_VERIFICATION)
        self._audit("verify_otp", verified.phone_number, verified.id, True)
        return VerificationResult(account=verified, session=session)

    def resend_otp(self, account_id: Optional[str]) -> ResendResult:
        if not account_id:
            raise MissingField("user_id")

        account = self._load(account_id, "resend_otp")
        if account.is_verified:
            raise AlreadyVerified()

        otp = self.otp_issuer.issue(self.clock())
        with self._storage("resend_otp"):
            updated = self.users.update_where(
                account.id,
                expected={"is_verified": False},
                changes={"otp_code": otp.code, "otp_expires_at": otp.expires_at},
            )
            if updated is None:
                current = self.users.find_by_id(account.id)
        if updated is None:
            # verified or removed since it was loaded
            if current is None:
                raise NotFound()
            raise AlreadyVerified()

        delivery = self._deliver(updated, otp)
        if not delivery.sent:
            raise DeliveryFailed()
        return ResendResult(account=updated, otp_expires_in=self.otp_issuer.expires_in_seconds)

    # ------------------------
    # Login / logout
    # ------------------------
    def login(self, password: Optional[str], phone_number: Optional[str] = None, email: Optional[str] = None) -> LoginResult:
        if not phone_number and not email:
            raise MissingField("phone_number", "Please provide either phone number or email.")
        if not password:
            raise MissingField("password", "Password is required.")

        if phone_number:
            filters = {"phone_number": normalize_phone(phone_number, self.country_code)}
        else:
            filters = {"email": email.strip()}

        with self._storage("login"):
            account = self.users.find_one(filters)
        if account is None:
            self._audit("login", filters.get("phone_number"), success=False, error="NOT_FOUND")
            raise NotFound("No account found with these credentials.")

        if not self.hasher.verify(password, account.password_hash):
            self._audit("login", account.phone_number, account.id, False, error="INVALID_CREDENTIAL")
            raise InvalidCredential()

        session = self.sessions.issue(account, SessionPolicy.STANDARD)
        with self._storage("login"):
            account = self.users.save(replace(account, last_login=self.clock()))

        self._audit("login", account.phone_number, account.id, True)
        return LoginResult(account=account, session=session)

    def logout(self, account_id: Optional[str] = None) -> None:
        # sessions are not stored server-side; the caller drops the cookie
        self._audit("logout", user_id=account_id)

    # ------------------------
    # Profile and administration
    # ------------------------
    def get_profile(self, account_id: str) -> AccountRecord:
        return self._load(account_id, "get_profile")

    def update_profile(self, account_id: str, name: Optional[str] = None, photo_url: Optional[str] = None) -> AccountRecord:
        changes = {}
        if name and name.strip():
            changes["name"] = name.strip()
        if photo_url:
            changes["photo_url"] = photo_url
        if not changes:
            raise NoChanges()

        account = self._load(account_id, "update_profile")
        with self._storage("update_profile"):
            return self.users.save(replace(account, **changes))

    def list_accounts(self) -> List[AccountRecord]:
        with self._storage("list_accounts"):
            return self.users.list_all()

    def account_stats(self) -> AccountStats:
        with self._storage("account_stats"):
            return AccountStats(
                total=self.users.count_documents(),
                by_role=self.users.count_by_role(),
                verified=self.users.count_documents({"is_verified": True}),
                unverified=self.users.count_documents({"is_verified": False}),
            )

    def update_role(self, account_id: Optional[str], role: Optional[str]) -> AccountRecord:
        if not account_id:
            raise MissingField("user_id")
        if not role:
            raise MissingField("role")
        try:
            new_role = Role(role)
        except ValueError:
            raise InvalidRole()

        account = self._load(account_id, "update_role")
        with self._storage("update_role"):
            updated = self.users.save(replace(account, role=new_role.value))
        logger.info(f"User {account.id} role changed from {account.role} to {updated.role}")
        self._audit("update_role", account.phone_number, account.id, True, role=updated.role)
        return updated
