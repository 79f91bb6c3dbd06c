from typing import Optional

from sqlmodel import Session, select

from .....core.clock import as_utc, utcnow
from .....db.models import PendingSignup
from .....application.ports.pending_signup_repo import PendingSignupDto, PendingSignupRepository

SIGNUP_FIELDS = (
    "account_type",
    "display_name",
    "city",
    "password",
    "adult_policy",
    "current_otp",
    "is_verified",
    "otp_attempts",
    "last_otp_sent_at",
    "first_otp_attempt_at",
)


class SqlPendingSignupRepository(PendingSignupRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, row: PendingSignup) -> PendingSignupDto:
        return PendingSignupDto(
            id=row.id,
            email=row.email,
            account_type=row.account_type,
            display_name=row.display_name,
            city=row.city,
            password=row.password,
            adult_policy=bool(row.adult_policy),
            current_otp=row.current_otp,
            is_verified=bool(row.is_verified),
            otp_attempts=row.otp_attempts or 0,
            last_otp_sent_at=as_utc(row.last_otp_sent_at),
            first_otp_attempt_at=as_utc(row.first_otp_attempt_at),
        )

    def get_by_email(self, email: str) -> Optional[PendingSignupDto]:
        row = self.session.exec(select(PendingSignup).where(PendingSignup.email == email)).first()
        return self._to_dto(row) if row else None

    def create(self, signup: PendingSignupDto) -> PendingSignupDto:
        row = PendingSignup(email=signup.email, **{name: getattr(signup, name) for name in SIGNUP_FIELDS})
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return self._to_dto(row)

    def save(self, signup: PendingSignupDto) -> None:
        row = self.session.get(PendingSignup, signup.id)
        if not row:
            return
        for name in SIGNUP_FIELDS:
            setattr(row, name, getattr(signup, name))
        row.updated_at = utcnow()
        self.session.add(row)
        self.session.commit()

    def delete(self, signup_id: int) -> None:
        row = self.session.get(PendingSignup, signup_id)
        if not row:
            return
        self.session.delete(row)
        self.session.commit()
