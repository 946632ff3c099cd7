# coursehub/schemas/users/user.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from ..auth.auth import _Request
from ...application.ports.user_repo import AccountRecord


class AccountSummary(BaseModel):
    """Public view of an account. Password hash and OTP never leave the service."""

    id: str
    name: str
    phone_number: str
    email: Optional[str] = None
    role: str
    is_verified: bool = Field(..., serialization_alias="isVerified")
    photo_url: Optional[str] = None
    last_login: Optional[datetime] = None
    enrolled_course_ids: List[str] = []
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: AccountRecord) -> "AccountSummary":
        return cls(
            id=record.id,
            name=record.name,
            phone_number=record.phone_number,
            email=record.email,
            role=record.role,
            is_verified=record.is_verified,
            photo_url=record.photo_url,
            last_login=record.last_login,
            enrolled_course_ids=list(record.enrolled_course_ids),
            created_at=record.created_at,
        )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UpdateProfileRequest(_Request):
    name: Optional[str] = Field(None, description="New display name")
    photo_url: Optional[str] = Field(None, alias="photoUrl", description="URL of an already uploaded avatar")


class UpdateRoleRequest(_Request):
    user_id: Optional[str] = Field(None, alias="userId")
    role: Optional[str] = Field(None, description="USER, ADMIN or INSTRUCTOR")
