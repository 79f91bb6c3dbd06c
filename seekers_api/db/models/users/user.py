# seekers_api/db/models/users/user.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime

from ....core.clock import utcnow


class User(SQLModel, table=True):
    __tablename__ = "users"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    profile_name: str = Field(max_length=100)
    username: str = Field(max_length=150, unique=True, index=True)
    email: str = Field(max_length=255, unique=True, index=True)
    password: Optional[str] = Field(default=None, max_length=255)
    profile_photo: Optional[str] = Field(default=None, max_length=500)
    city: Optional[str] = Field(default=None, max_length=100)
    role: str = Field(default="Client", max_length=20)
    status: str = Field(default="Pending", max_length=20)
    pass_status: str = Field(default="Default", max_length=20)
    is_verified: bool = Field(default=False)
    daily_free_unlocks: int = Field(default=3)

    # Password reset OTP
    reset_password_otp: Optional[str] = Field(default=None, max_length=6)
    reset_password_otp_sent_at: Optional[datetime] = Field(default=None)
    reset_password_otp_attempts: int = Field(default=0)
    reset_password_otp_first_attempt_at: Optional[datetime] = Field(default=None)

    # Login OTP
    login_otp: Optional[str] = Field(default=None, max_length=6)
    login_otp_sent_at: Optional[datetime] = Field(default=None)
    login_otp_attempts: int = Field(default=0)
    login_otp_first_attempt_at: Optional[datetime] = Field(default=None)

    deleted_at: Optional[datetime] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
