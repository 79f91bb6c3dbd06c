from typing import Protocol, Optional
from dataclasses import dataclass
from datetime import datetime


@dataclass
class PendingSignupDto:
    email: str
    account_type: str
    display_name: str
    city: str
    password: str
    adult_policy: bool = True
    current_otp: Optional[str] = None
    is_verified: bool = False
    otp_attempts: int = 0
    last_otp_sent_at: Optional[datetime] = None
    first_otp_attempt_at: Optional[datetime] = None
    id: Optional[int] = None


class PendingSignupRepository(Protocol):
    def get_by_email(self, email: str) -> Optional[PendingSignupDto]:
        ...

    def create(self, signup: PendingSignupDto) -> PendingSignupDto:
        ...

    def save(self, signup: PendingSignupDto) -> None:
        ...

    def delete(self, signup_id: int) -> None:
        ...
