# seekers_api/db/models/auth/pending_signup.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime

from ....core.clock import utcnow


class PendingSignup(SQLModel, table=True):
    __tablename__ = "temp_users"
    id: Optional[int] = Field(default=None, primary_key=True)
    account_type: str = Field(max_length=20)
    display_name: str = Field(max_length=100)
    email: str = Field(max_length=255, unique=True, index=True)
    city: str = Field(max_length=100)
    password: str = Field(max_length=255)
    adult_policy: bool = Field(default=True)
    current_otp: Optional[str] = Field(default=None, max_length=6)
    is_verified: bool = Field(default=False)
    otp_attempts: int = Field(default=0)
    last_otp_sent_at: Optional[datetime] = Field(default=None)
    first_otp_attempt_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
