from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    INSTRUCTOR = "INSTRUCTOR"


@dataclass(frozen=True)
class PendingOTP:
    code: str = field(repr=False)
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class AccountRecord:
    """Transient copy of an account as stored in the user directory."""

    id: str
    name: str
    phone_number: str
    password_hash: str = field(repr=False)
    email: Optional[str] = None
    is_verified: bool = False
    otp_code: Optional[str] = field(default=None, repr=False)
    otp_expires_at: Optional[datetime] = None
    role: str = Role.USER.value
    photo_url: Optional[str] = None
    last_login: Optional[datetime] = None
    enrolled_course_ids: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def pending_otp(self) -> Optional[PendingOTP]:
        # both halves or nothing
        if self.otp_code and self.otp_expires_at:
            return PendingOTP(code=self.otp_code, expires_at=self.otp_expires_at)
        return None


class StorageError(Exception):
    """The directory could not be reached or the operation failed."""


class DuplicateKeyError(StorageError):
    def __init__(self, field: str, message: str = ""):
        self.field = field
        super().__init__(message or f"duplicate value for {field}")


class UserDirectory(Protocol):
    def find_one(self, filters: Dict[str, Any]) -> Optional[AccountRecord]:
        ...

    def find_by_id(self, account_id: str) -> Optional[AccountRecord]:
        ...

    def create(self, fields: Dict[str, Any]) -> AccountRecord:
        ...

    def save(self, record: AccountRecord) -> AccountRecord:
        ...

    def count_documents(self, filters: Optional[Dict[str, Any]] = None) -> int:
        ...

    def update_where(self, account_id: str, expected: Dict[str, Any], changes: Dict[str, Any]) -> Optional[AccountRecord]:
        """Apply ``changes`` only if every ``expected`` column still holds its value.

        Returns the updated record, or None when the account is missing or a
        concurrent writer changed one of the expected columns.
        """
        ...

    def list_all(self) -> List[AccountRecord]:
        ...

    def count_by_role(self) -> Dict[str, int]:
        ...
