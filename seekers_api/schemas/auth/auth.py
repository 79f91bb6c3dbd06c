# seekers_api/schemas/auth/auth.py
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
OTP_RE = re.compile(r"[0-9]{6}")


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_RE.match(v):
        raise ValueError("Invalid email format")
    return v


def _check_otp(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not OTP_RE.fullmatch(v):
        raise ValueError("OTP must be exactly 6 digits")
    return v


class AccountType(str, Enum):
    CLIENT = "Client"
    ESCORT = "Escort"
    CREATOR = "Creator"
    ADMIN = "Admin"


class EmailRequest(BaseModel):
    email: str = Field(..., max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _normalize_email(v)


class SignupRequest(EmailRequest):
    account_type: AccountType
    display_name: str = Field(..., min_length=2, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=100)
    adult_policy: bool = True

    @field_validator("display_name", "city")
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v


class VerifyOtpRequest(EmailRequest):
    otp: str

    @field_validator("otp")
    @classmethod
    def validate_otp(cls, v):
        return _check_otp(v)


class LoginRequest(EmailRequest):
    password: str = Field(..., min_length=1, max_length=100)


class ResetPasswordRequest(EmailRequest):
    otp: Optional[str] = None
    new_pass: str = Field(..., min_length=8, max_length=100)
    old_pass: Optional[str] = Field(None, min_length=8, max_length=100)

    @field_validator("otp")
    @classmethod
    def validate_otp(cls, v):
        return _check_otp(v)


class AccountResponse(BaseModel):
    id: int
    name: str
    profile_name: str
    username: str
    email: str
    role: str
    status: str
    is_verified: bool
    city: Optional[str] = None
    profile_photo: Optional[str] = None

    @classmethod
    def from_dto(cls, account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            profile_name=account.profile_name,
            username=account.username,
            email=account.email,
            role=account.role,
            status=account.status,
            is_verified=account.is_verified,
            city=account.city,
            profile_photo=account.profile_photo,
        )
