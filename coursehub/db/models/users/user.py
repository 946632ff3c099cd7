# coursehub/db/models/users/user.py
from typing import Optional, List
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON
from datetime import datetime
import uuid

from ....core.clock import utc_now

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(max_length=100)
    phone_number: str = Field(max_length=20, unique=True, index=True)
    email: Optional[str] = Field(max_length=100, default=None, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    is_verified: bool = Field(default=False, index=True)
    # pending OTP, both set or both null
    otp_code: Optional[str] = Field(max_length=10, default=None)
    otp_expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    role: str = Field(max_length=20, default="USER", index=True)
    photo_url: Optional[str] = Field(max_length=255, default=None)
    last_login: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    enrolled_course_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    # all timestamps are UTC
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
