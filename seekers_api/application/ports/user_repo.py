from typing import Protocol, Optional, Dict, Iterable
from dataclasses import dataclass
from datetime import datetime

from .pending_signup_repo import PendingSignupDto


@dataclass
class UserSummary:
    id: int
    name: str
    username: str
    profile_name: str
    profile_photo: Optional[str] = None


@dataclass
class AccountDto:
    id: int
    name: str
    profile_name: str
    username: str
    email: str
    password: Optional[str]
    role: str
    status: str
    is_verified: bool
    pass_status: str = "Default"
    city: Optional[str] = None
    profile_photo: Optional[str] = None
    reset_password_otp: Optional[str] = None
    reset_password_otp_sent_at: Optional[datetime] = None
    reset_password_otp_attempts: int = 0
    reset_password_otp_first_attempt_at: Optional[datetime] = None
    login_otp: Optional[str] = None
    login_otp_sent_at: Optional[datetime] = None
    login_otp_attempts: int = 0
    login_otp_first_attempt_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserRepository(Protocol):
    def get_by_email(self, email: str) -> Optional[AccountDto]:
        ...

    def get_by_id(self, user_id: int) -> Optional[AccountDto]:
        ...

    def save(self, account: AccountDto) -> None:
        ...

    def create_from_signup(self, signup: PendingSignupDto, username: str, role: str) -> AccountDto:
        """Insert the account and delete the pending signup in one transaction."""
        ...

    def get_summaries(self, user_ids: Iterable[int]) -> Dict[int, UserSummary]:
        ...
