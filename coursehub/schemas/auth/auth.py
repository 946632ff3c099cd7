# coursehub/schemas/auth/auth.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Dict, Any


class _Request(BaseModel):
    # accept both snake_case and the camelCase names older clients send
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def normalize_blank(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        # some clients post phone numbers and codes as JSON numbers
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class RegisterRequest(_Request):
    name: Optional[str] = Field(None, description="Display name")
    phone_number: Optional[str] = Field(None, alias="phoneNumber", description="Indian mobile number, with or without +91")
    password: Optional[str] = Field(None, description="8-50 chars, upper, lower, digit and one of !@#$%^&*")
    email: Optional[str] = Field(None, description="Optional email address")


class VerifyOTPRequest(_Request):
    user_id: Optional[str] = Field(None, alias="userId", description="Account ID returned by /register")
    otp: Optional[str] = Field(None, description="Numeric one-time code")


class ResendOTPRequest(_Request):
    user_id: Optional[str] = Field(None, alias="userId", description="Account ID returned by /register")


class LoginRequest(_Request):
    phone_number: Optional[str] = Field(None, alias="phoneNumber", description="Registered mobile number")
    email: Optional[str] = Field(None, description="Registered email (used when no phone number is given)")
    password: Optional[str] = Field(None, description="Account password")


class AuthResponse(BaseModel):
    success: bool
    message: str
    data: Dict[str, Any]
