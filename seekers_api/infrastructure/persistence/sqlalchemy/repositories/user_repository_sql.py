from typing import Dict, Iterable, Optional

from sqlmodel import Session, select

from .....core.clock import as_utc, utcnow
from .....db.models import PendingSignup, User
from .....application.ports.pending_signup_repo import PendingSignupDto
from .....application.ports.user_repo import AccountDto, UserRepository, UserSummary

# Columns an AccountDto may write back on save
MUTABLE_FIELDS = (
    "name",
    "profile_name",
    "password",
    "city",
    "profile_photo",
    "status",
    "pass_status",
    "is_verified",
    "reset_password_otp",
    "reset_password_otp_sent_at",
    "reset_password_otp_attempts",
    "reset_password_otp_first_attempt_at",
    "login_otp",
    "login_otp_sent_at",
    "login_otp_attempts",
    "login_otp_first_attempt_at",
)


class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: User) -> AccountDto:
        return AccountDto(
            id=user.id,
            name=user.name,
            profile_name=user.profile_name,
            username=user.username,
            email=user.email,
            password=user.password,
            role=user.role,
            status=user.status,
            is_verified=bool(user.is_verified),
            pass_status=user.pass_status,
            city=user.city,
            profile_photo=user.profile_photo,
            reset_password_otp=user.reset_password_otp,
            reset_password_otp_sent_at=as_utc(user.reset_password_otp_sent_at),
            reset_password_otp_attempts=user.reset_password_otp_attempts or 0,
            reset_password_otp_first_attempt_at=as_utc(user.reset_password_otp_first_attempt_at),
            login_otp=user.login_otp,
            login_otp_sent_at=as_utc(user.login_otp_sent_at),
            login_otp_attempts=user.login_otp_attempts or 0,
            login_otp_first_attempt_at=as_utc(user.login_otp_first_attempt_at),
            created_at=as_utc(user.created_at),
        )

    def _active(self):
        return select(User).where(User.deleted_at.is_(None))

    def get_by_email(self, email: str) -> Optional[AccountDto]:
        user = self.session.exec(self._active().where(User.email == email)).first()
        return self._to_dto(user) if user else None

    def get_by_id(self, user_id: int) -> Optional[AccountDto]:
        user = self.session.exec(self._active().where(User.id == user_id)).first()
        return self._to_dto(user) if user else None

    def save(self, account: AccountDto) -> None:
        user = self.session.get(User, account.id)
        if not user:
            return
        for name in MUTABLE_FIELDS:
            setattr(user, name, getattr(account, name))
        user.updated_at = utcnow()
        self.session.add(user)
        self.session.commit()

    def create_from_signup(self, signup: PendingSignupDto, username: str, role: str) -> AccountDto:
        user = User(
            name=signup.display_name,
            profile_name=signup.display_name,
            username=username,
            email=signup.email,
            password=signup.password,
            city=signup.city,
            role=role,
            status="Pending",
            is_verified=True,
        )
        self.session.add(user)
        pending = self.session.get(PendingSignup, signup.id) if signup.id is not None else None
        if pending:
            self.session.delete(pending)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(user)
        return self._to_dto(user)

    def get_summaries(self, user_ids: Iterable[int]) -> Dict[int, UserSummary]:
        ids = set(user_ids)
        if not ids:
            return {}
        users = self.session.exec(select(User).where(User.id.in_(ids))).all()
        return {
            u.id: UserSummary(
                id=u.id,
                name=u.name,
                username=u.username,
                profile_name=u.profile_name,
                profile_photo=u.profile_photo,
            )
            for u in users
        }
