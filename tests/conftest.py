import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from coursehub.application.ports.notification_gateway import DeliveryResult
from coursehub.application.ports.user_repo import AccountRecord, DuplicateKeyError, StorageError
from coursehub.application.services.account_service import AccountService
from coursehub.application.services.otp_issuer import OTPIssuer
from coursehub.application.services.session_issuer import AuthSessionIssuer
from coursehub.infrastructure.security.jwt_signer import JwtTokenSigner

TEST_SECRET = "test-secret-please-ignore-0123456789"


class FakeClock:
    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeUserDirectory:
    def __init__(self):
        self.users: Dict[str, AccountRecord] = {}
        self.fail_with: Optional[Exception] = None

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def _matches(self, record: AccountRecord, filters: Dict[str, Any]) -> bool:
        return all(getattr(record, k) == v for k, v in filters.items())

    def _ensure_unique(self, record: AccountRecord) -> None:
        for other in self.users.values():
            if other.id == record.id:
                continue
            if other.phone_number == record.phone_number:
                raise DuplicateKeyError("phone_number")
            if record.email and other.email == record.email:
                raise DuplicateKeyError("email")

    def find_one(self, filters):
        self._check()
        for record in self.users.values():
            if self._matches(record, filters):
                return record
        return None

    def find_by_id(self, account_id):
        self._check()
        return self.users.get(account_id)

    def create(self, fields):
        self._check()
        record = AccountRecord(id=str(uuid.uuid4()), created_at=datetime(2024, 1, 1, tzinfo=timezone.utc), **fields)
        self._ensure_unique(record)
        self.users[record.id] = record
        return record

    def save(self, record):
        self._check()
        if record.id not in self.users:
            raise StorageError("missing")
        self._ensure_unique(record)
        self.users[record.id] = record
        return record

    def count_documents(self, filters=None):
        self._check()
        return sum(1 for r in self.users.values() if self._matches(r, filters or {}))

    def update_where(self, account_id, expected, changes):
        self._check()
        record = self.users.get(account_id)
        if record is None or not self._matches(record, expected):
            return None
        record = replace(record, **changes)
        self.users[account_id] = record
        return record

    def list_all(self) -> List[AccountRecord]:
        self._check()
        seen = [r for r in self.users.values() if r.last_login]
        never = [r for r in self.users.values() if not r.last_login]
        return sorted(seen, key=lambda r: r.last_login, reverse=True) + never

    def count_by_role(self):
        self._check()
        counts: Dict[str, int] = {}
        for r in self.users.values():
            counts[r.role] = counts.get(r.role, 0) + 1
        return counts


class FakeGateway:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.raise_error: Optional[Exception] = None
        self.sent: List[tuple] = []

    def send_otp(self, destination, code):
        if self.raise_error is not None:
            raise self.raise_error
        self.sent.append((destination, code))
        if self.succeed:
            return DeliveryResult.ok("SM123")
        return DeliveryResult.failed("carrier rejected")

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


class FakeHasher:
    def hash(self, plaintext):
        return "hashed:" + plaintext[::-1]

    def verify(self, plaintext, digest):
        return digest == self.hash(plaintext)


class FakeAudit:
    def __init__(self):
        self.entries = []

    def log(self, action, phone=None, user_id=None, success=True, details=None):
        self.entries.append((action, user_id, success))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def directory():
    return FakeUserDirectory()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def audit():
    return FakeAudit()


@pytest.fixture
def sessions(clock):
    return AuthSessionIssuer(JwtTokenSigner(TEST_SECRET), clock=clock)


@pytest.fixture
def service(directory, gateway, audit, sessions, clock):
    return AccountService(
        users=directory,
        gateway=gateway,
        hasher=FakeHasher(),
        sessions=sessions,
        otp_issuer=OTPIssuer(),
        audit=audit,
        clock=clock,
    )
