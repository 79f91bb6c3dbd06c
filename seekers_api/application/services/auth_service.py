"""Account lifecycle: signup with email OTP, login with a second OTP step,
password reset/change and logout.

Every OTP-bearing record (pending signup, login OTP, reset OTP) goes through
the same helpers; ``OtpFields`` names the four attributes of a slot.
"""
import hmac
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ...exceptions import ErrorKind, ServiceError
from ...core.clock import utcnow
from ...core.messages import get_message
from ..ports.audit_logger import AuditLogger
from ..ports.email_sender import EmailSender
from ..ports.password_hasher import PasswordHasher
from ..ports.pending_signup_repo import PendingSignupDto, PendingSignupRepository
from ..ports.token_issuer import TokenClaims, TokenIssuer
from ..ports.user_repo import AccountDto, UserRepository
from .otp_policy import OtpPolicy, minutes_left

logger = logging.getLogger(__name__)

ROLE_BY_ACCOUNT_TYPE = {
    "Admin": "Admin",
    "Creator": "Creator",
    "Client": "Client",
    "Escort": "Escort",
}

BLOCKED_STATUSES = {
    "Block": "ACCOUNT_BLOCKED",
    "Suspend": "ACCOUNT_SUSPENDED",
    "Inactive": "ACCOUNT_INACTIVE",
}


@dataclass(frozen=True)
class OtpFields:
    code: str
    sent_at: str
    attempts: str
    first_attempt_at: str


SIGNUP_OTP = OtpFields("current_otp", "last_otp_sent_at", "otp_attempts", "first_otp_attempt_at")
LOGIN_OTP = OtpFields("login_otp", "login_otp_sent_at", "login_otp_attempts", "login_otp_first_attempt_at")
RESET_OTP = OtpFields(
    "reset_password_otp",
    "reset_password_otp_sent_at",
    "reset_password_otp_attempts",
    "reset_password_otp_first_attempt_at",
)


@dataclass(frozen=True)
class EmailTemplates:
    signup: Optional[int] = None
    login: Optional[int] = None
    reset_password: Optional[int] = None


@dataclass
class OtpDispatch:
    message: str
    email: str


@dataclass
class AuthResult:
    message: str
    token: str
    account: AccountDto


@dataclass
class AuthService:
    user_repo: UserRepository
    signup_repo: PendingSignupRepository
    email_sender: EmailSender
    token_issuer: TokenIssuer
    password_hasher: PasswordHasher
    audit_logger: Optional[AuditLogger] = None
    policy: OtpPolicy = field(default_factory=OtpPolicy)
    templates: EmailTemplates = field(default_factory=EmailTemplates)
    clock: Callable[[], datetime] = utcnow

    # ------------------------
    # Signup
    # ------------------------
    async def signup(self, email: str, account_type: str, display_name: str, city: str,
                     password: str, adult_policy: bool = True) -> OtpDispatch:
        now = self.clock()
        if self.user_repo.get_by_email(email):
            raise ServiceError(ErrorKind.CONFLICT, "EMAIL_ALREADY_REGISTERED")

        signup = self.signup_repo.get_by_email(email)
        if signup:
            self._ensure_can_send(signup, SIGNUP_OTP, now, "OTP_COOLDOWN_WAIT", "OTP_LIMIT_REACHED")
            signup.account_type = account_type
            signup.display_name = display_name
            signup.city = city
            signup.password = self.password_hasher.hash(password)
            signup.adult_policy = adult_policy
            self._issue_code(signup, SIGNUP_OTP, now)
            self.signup_repo.save(signup)
        else:
            signup = self.signup_repo.create(PendingSignupDto(
                email=email,
                account_type=account_type,
                display_name=display_name,
                city=city,
                password=self.password_hasher.hash(password),
                adult_policy=adult_policy,
                current_otp=self.policy.generate_code(),
                otp_attempts=1,
                last_otp_sent_at=now,
                first_otp_attempt_at=now,
            ))

        # The signup row stays persisted even if delivery fails below
        await self._send_otp(email, "Welcome! Verify Your Email", self.templates.signup,
                             signup.display_name, signup.current_otp)
        self._audit("signup_otp_sent", email)
        return OtpDispatch(message=get_message("OTP_SENT_SUCCESS"), email=signup.email)

    async def resend_otp(self, email: str) -> OtpDispatch:
        now = self.clock()
        if self.user_repo.get_by_email(email):
            raise ServiceError(ErrorKind.CONFLICT, "EMAIL_ALREADY_REGISTERED")

        signup = self.signup_repo.get_by_email(email)
        if not signup:
            raise ServiceError(ErrorKind.NOT_FOUND, "NO_SIGNUP_FOUND")
        if signup.is_verified:
            raise ServiceError(ErrorKind.CONFLICT, "EMAIL_ALREADY_VERIFIED")

        self._ensure_can_send(signup, SIGNUP_OTP, now, "OTP_COOLDOWN_WAIT", "OTP_LIMIT_REACHED")
        self._issue_code(signup, SIGNUP_OTP, now)
        self.signup_repo.save(signup)

        await self._send_otp(email, "Welcome! Verify Your Email", self.templates.signup,
                             signup.display_name, signup.current_otp)
        self._audit("signup_otp_resent", email)
        return OtpDispatch(message=get_message("OTP_SENT_SUCCESS"), email=signup.email)

    async def verify_otp(self, email: str, otp: str) -> AuthResult:
        now = self.clock()
        signup = self.signup_repo.get_by_email(email)
        if not signup:
            raise ServiceError(ErrorKind.NOT_FOUND, "INVALID_EMAIL_OR_OTP")
        if signup.is_verified:
            raise ServiceError(ErrorKind.CONFLICT, "EMAIL_ALREADY_VERIFIED")

        self._check_code(signup, SIGNUP_OTP, otp, now, self.signup_repo.save)

        if self.user_repo.get_by_email(email):
            self.signup_repo.delete(signup.id)
            raise ServiceError(ErrorKind.CONFLICT, "EMAIL_ALREADY_REGISTERED")

        role = ROLE_BY_ACCOUNT_TYPE.get(signup.account_type, "Client")
        username = f"{signup.email.split('@')[0]}_{int(time.time() * 1000)}"
        account = self.user_repo.create_from_signup(signup, username=username, role=role)
        self._audit("signup_verified", email, user_id=account.id)

        return AuthResult(
            message=get_message("EMAIL_VERIFIED_SUCCESS"),
            token=self._issue_token(account),
            account=account,
        )

    # ------------------------
    # Login
    # ------------------------
    async def login(self, email: str, password: str) -> OtpDispatch:
        now = self.clock()
        account = self.user_repo.get_by_email(email)
        # Same error for unknown email and wrong password
        if not account or not account.password or not self.password_hasher.verify(password, account.password):
            self._audit("login", email, success=False)
            raise ServiceError(ErrorKind.UNAUTHORIZED, "INVALID_EMAIL_OR_PASSWORD")

        self._ensure_can_login(account)

        if not self.policy.can_send(account.login_otp_sent_at, now):
            until = self.policy.cooldown_ends_at(account.login_otp_sent_at)
            raise ServiceError(ErrorKind.THROTTLED, "OTP_COOLDOWN_ACTIVE", minutes_left=minutes_left(until, now))

        account.login_otp = self.policy.generate_code()
        account.login_otp_sent_at = now
        limit = self.policy.check_limit(account.login_otp_attempts, account.login_otp_first_attempt_at, now)
        if limit.allowed and account.login_otp_attempts >= self.policy.max_attempts:
            account.login_otp_attempts = 0
            account.login_otp_first_attempt_at = None
        self.user_repo.save(account)

        await self._send_otp(account.email, "Login Verification - Seductive Seekers", self.templates.login,
                             account.name or account.profile_name or account.email, account.login_otp)
        self._audit("login_otp_sent", email, user_id=account.id)
        return OtpDispatch(message=get_message("LOGIN_OTP_SENT"), email=account.email)

    async def verify_login_otp(self, email: str, otp: str) -> AuthResult:
        now = self.clock()
        account = self.user_repo.get_by_email(email)
        if not account:
            raise ServiceError(ErrorKind.NOT_FOUND, "EMAIL_NOT_FOUND")
        if not account.login_otp:
            raise ServiceError(ErrorKind.NOT_FOUND, "OTP_NOT_FOUND")

        self._check_code(account, LOGIN_OTP, otp, now, self.user_repo.save, start_window=True)

        self._clear_code(account, LOGIN_OTP)
        self.user_repo.save(account)
        self._audit("login", email, user_id=account.id)

        return AuthResult(
            message=get_message("LOGIN_SUCCESS"),
            token=self._issue_token(account),
            account=account,
        )

    async def resend_login_otp(self, email: str) -> OtpDispatch:
        now = self.clock()
        account = self.user_repo.get_by_email(email)
        if not account:
            raise ServiceError(ErrorKind.NOT_FOUND, "EMAIL_NOT_FOUND")

        self._ensure_can_login(account)
        self._ensure_can_send(account, LOGIN_OTP, now, "OTP_COOLDOWN_ACTIVE", "OTP_MAX_ATTEMPTS_REACHED")
        self._issue_code(account, LOGIN_OTP, now)
        self.user_repo.save(account)

        await self._send_otp(account.email, "Login Verification - Seductive Seekers", self.templates.login,
                             account.name or account.profile_name or account.email, account.login_otp)
        self._audit("login_otp_resent", email, user_id=account.id)
        return OtpDispatch(message=get_message("LOGIN_OTP_SENT"), email=account.email)

    def logout(self) -> str:
        # Tokens are not persisted; the transport only clears the cookie
        return get_message("LOGOUT_SUCCESS")

    # ------------------------
    # Password reset / change
    # ------------------------
    async def forgot_password(self, email: str) -> OtpDispatch:
        now = self.clock()
        account = self.user_repo.get_by_email(email)
        if not account:
            raise ServiceError(ErrorKind.NOT_FOUND, "EMAIL_NOT_FOUND")

        self._ensure_can_send(account, RESET_OTP, now, "OTP_COOLDOWN_WAIT", "OTP_LIMIT_REACHED")
        self._issue_code(account, RESET_OTP, now)
        self.user_repo.save(account)

        await self._send_otp(account.email, "Reset Your Password", self.templates.reset_password,
                             account.name or account.profile_name or "User", account.reset_password_otp)
        self._audit("password_reset_otp_sent", email, user_id=account.id)
        return OtpDispatch(message=get_message("PASSWORD_RESET_OTP_SENT"), email=account.email)

    async def reset_password(self, email: str, new_pass: str, otp: Optional[str] = None,
                             old_pass: Optional[str] = None) -> str:
        now = self.clock()
        account = self.user_repo.get_by_email(email)
        if not account:
            raise ServiceError(ErrorKind.NOT_FOUND, "EMAIL_NOT_FOUND")

        if old_pass:
            if old_pass == new_pass:
                raise ServiceError(ErrorKind.VALIDATION, "OLD_NEW_PASSWORD_SAME")
            if not account.password or not self.password_hasher.verify(old_pass, account.password):
                raise ServiceError(ErrorKind.VALIDATION, "INVALID_OLD_PASSWORD")
        else:
            if not otp:
                raise ServiceError(ErrorKind.VALIDATION, "OTP_REQUIRED")
            self._check_code(account, RESET_OTP, otp, now, self.user_repo.save)

        account.password = self.password_hasher.hash(new_pass)
        account.pass_status = "Changed"
        if not old_pass:
            self._clear_code(account, RESET_OTP)
        self.user_repo.save(account)

        self._audit("password_changed" if old_pass else "password_reset", email, user_id=account.id)
        return get_message("PASSWORD_CHANGE_SUCCESS" if old_pass else "PASSWORD_RESET_SUCCESS")

    def get_account(self, user_id: int) -> AccountDto:
        account = self.user_repo.get_by_id(user_id)
        if not account:
            raise ServiceError(ErrorKind.NOT_FOUND, "USER_NOT_FOUND")
        return account

    # ------------------------
    # OTP slot helpers
    # ------------------------
    def _ensure_can_send(self, record: Any, fields: OtpFields, now: datetime,
                         cooldown_code: str, limit_code: str) -> None:
        last_sent_at = getattr(record, fields.sent_at)
        if not self.policy.can_send(last_sent_at, now):
            until = self.policy.cooldown_ends_at(last_sent_at)
            raise ServiceError(ErrorKind.THROTTLED, cooldown_code, minutes_left=minutes_left(until, now))

        limit = self.policy.check_limit(getattr(record, fields.attempts), getattr(record, fields.first_attempt_at), now)
        if not limit.allowed:
            raise ServiceError(ErrorKind.THROTTLED, limit_code, minutes_left=minutes_left(limit.reset_at, now))

    def _issue_code(self, record: Any, fields: OtpFields, now: datetime) -> str:
        """Start a fresh code, resetting the attempt window first if it has elapsed."""
        if self.policy.window_elapsed(getattr(record, fields.first_attempt_at), now):
            setattr(record, fields.attempts, 0)
            setattr(record, fields.first_attempt_at, None)

        code = self.policy.generate_code()
        setattr(record, fields.code, code)
        setattr(record, fields.attempts, getattr(record, fields.attempts) + 1)
        setattr(record, fields.sent_at, now)
        if getattr(record, fields.first_attempt_at) is None:
            setattr(record, fields.first_attempt_at, now)
        return code

    def _check_code(self, record: Any, fields: OtpFields, submitted: str, now: datetime,
                    save: Callable[[Any], None], start_window: bool = False) -> None:
        """Validate a submitted code.

        A mismatch always counts as an attempt and is persisted; the window is
        never reset here, only on the next send. Expiry is checked after the
        match so an expired but correct code does not count as an attempt.
        """
        stored = getattr(record, fields.code)
        if not stored or not hmac.compare_digest(stored.encode(), submitted.encode()):
            if start_window and getattr(record, fields.first_attempt_at) is None:
                setattr(record, fields.first_attempt_at, now)
            setattr(record, fields.attempts, getattr(record, fields.attempts) + 1)
            limit = self.policy.check_limit(getattr(record, fields.attempts), getattr(record, fields.first_attempt_at), now)
            save(record)
            if not limit.allowed:
                raise ServiceError(ErrorKind.THROTTLED, "OTP_MAX_ATTEMPTS_REACHED",
                                   minutes_left=minutes_left(limit.reset_at, now))
            raise ServiceError(ErrorKind.VALIDATION, "INVALID_OTP")

        if self.policy.is_expired(getattr(record, fields.sent_at), now):
            raise ServiceError(ErrorKind.EXPIRED, "OTP_EXPIRED")

    @staticmethod
    def _clear_code(record: Any, fields: OtpFields) -> None:
        setattr(record, fields.code, None)
        setattr(record, fields.sent_at, None)
        setattr(record, fields.attempts, 0)
        setattr(record, fields.first_attempt_at, None)

    def _ensure_can_login(self, account: AccountDto) -> None:
        if not account.is_verified:
            raise ServiceError(ErrorKind.FORBIDDEN, "ACCOUNT_NOT_VERIFIED")
        blocked_code = BLOCKED_STATUSES.get(account.status)
        if blocked_code:
            raise ServiceError(ErrorKind.FORBIDDEN, blocked_code)

    async def _send_otp(self, to: str, subject: str, template_id: Optional[int], name: str, otp: str) -> None:
        variables: Dict[str, str] = {"name": name, "otp": otp}
        try:
            await self.email_sender.send(to, subject, template_id, variables)
        except Exception as e:
            logger.error(f"Error sending OTP email to {to}: {e}", exc_info=True)
            raise ServiceError(ErrorKind.UPSTREAM, "EMAIL_SEND_FAILED") from e

    def _issue_token(self, account: AccountDto) -> str:
        return self.token_issuer.issue(TokenClaims(id=account.id, email=account.email, role=account.role))

    def _audit(self, action: str, email: str, user_id: Optional[int] = None, success: bool = True) -> None:
        if self.audit_logger is not None:
            self.audit_logger.log(action, email, user_id=user_id, success=success)
