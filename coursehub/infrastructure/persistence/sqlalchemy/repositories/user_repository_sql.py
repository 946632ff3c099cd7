import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select, func

from .....core.clock import as_utc, utc_now
from .....db.models import User
from .....application.ports.user_repo import (
    AccountRecord,
    DuplicateKeyError,
    StorageError,
    UserDirectory,
)

logger = logging.getLogger(__name__)

_UNIQUE_FIELDS = ("phone_number", "email")
# sqlite: "UNIQUE constraint failed: users.email"; postgres: "Key (email)=(...) already exists"
_DUPLICATE_PATTERNS = (
    re.compile(r"users\.(\w+)"),
    re.compile(r"Key \((\w+)\)"),
    re.compile(r"ix_users_(\w+)"),
)
_WRITABLE = (
    "name", "phone_number", "email", "password_hash", "is_verified", "otp_code",
    "otp_expires_at", "role", "photo_url", "last_login",
)


def duplicate_field(error: IntegrityError) -> str:
    message = str(getattr(error, "orig", error))
    for pattern in _DUPLICATE_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1) in _UNIQUE_FIELDS:
            return match.group(1)
    return "phone_number"


class SqlUserDirectory(UserDirectory):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, user: User) -> AccountRecord:
        return AccountRecord(
            id=user.id,
            name=user.name,
            phone_number=user.phone_number,
            password_hash=user.password_hash,
            email=user.email,
            is_verified=bool(user.is_verified),
            otp_code=user.otp_code,
            otp_expires_at=as_utc(user.otp_expires_at),
            role=user.role,
            photo_url=user.photo_url,
            last_login=as_utc(user.last_login),
            enrolled_course_ids=tuple(user.enrolled_course_ids or ()),
            created_at=as_utc(user.created_at),
            updated_at=as_utc(user.updated_at),
        )

    def _where(self, statement, filters: Optional[Dict[str, Any]]):
        for key, value in (filters or {}).items():
            statement = statement.where(getattr(User, key) == value)
        return statement

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateKeyError(duplicate_field(e)) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error during {action}: {e}")
            raise StorageError(str(e)) from e

    def find_one(self, filters: Dict[str, Any]) -> Optional[AccountRecord]:
        try:
            user = self.session.exec(self._where(select(User), filters)).first()
        except SQLAlchemyError as e:
            logger.error(f"Error finding user: {e}")
            raise StorageError(str(e)) from e
        return self._to_record(user) if user else None

    def find_by_id(self, account_id: str) -> Optional[AccountRecord]:
        try:
            user = self.session.get(User, account_id)
        except SQLAlchemyError as e:
            logger.error(f"Error getting user by ID {account_id}: {e}")
            raise StorageError(str(e)) from e
        return self._to_record(user) if user else None

    def create(self, fields: Dict[str, Any]) -> AccountRecord:
        user = User(**fields)
        self.session.add(user)
        self._commit("create user")
        self.session.refresh(user)
        return self._to_record(user)

    def save(self, record: AccountRecord) -> AccountRecord:
        user = self.session.get(User, record.id)
        if user is None:
            raise StorageError(f"user {record.id} vanished before save")
        for key in _WRITABLE:
            setattr(user, key, getattr(record, key))
        user.updated_at = utc_now()
        self.session.add(user)
        self._commit("save user")
        self.session.refresh(user)
        return self._to_record(user)

    def update_where(self, account_id: str, expected: Dict[str, Any], changes: Dict[str, Any]) -> Optional[AccountRecord]:
        statement = self._where(update(User).where(User.id == account_id), expected)
        statement = statement.values(**changes, updated_at=utc_now())
        try:
            result = self.session.execute(statement)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error updating user {account_id}: {e}")
            raise StorageError(str(e)) from e
        self._commit("conditional update")
        if result.rowcount != 1:
            return None
        self.session.expire_all()
        return self.find_by_id(account_id)

    def count_documents(self, filters: Optional[Dict[str, Any]] = None) -> int:
        try:
            return self.session.exec(self._where(select(func.count()).select_from(User), filters)).one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting users: {e}")
            raise StorageError(str(e)) from e

    def list_all(self) -> List[AccountRecord]:
        try:
            users = self.session.exec(
                select(User).order_by(User.last_login.is_(None), User.last_login.desc())
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing users: {e}")
            raise StorageError(str(e)) from e
        return [self._to_record(u) for u in users]

    def count_by_role(self) -> Dict[str, int]:
        try:
            rows = self.session.exec(select(User.role, func.count()).group_by(User.role)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error counting users by role: {e}")
            raise StorageError(str(e)) from e
        return {role: count for role, count in rows}
