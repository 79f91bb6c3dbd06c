import re
from datetime import timedelta

import pytest

from seekers_api.application.services.auth_service import AuthService
from seekers_api.exceptions import ErrorKind, ServiceError
from tests.fakes import FakeClock, FakeEmailSender, FakeHasher, FakeSignupRepo, FakeTokenIssuer, FakeUserRepo

EMAIL = "a@x.com"


def make_service(fail_email: bool = False):
    clock = FakeClock()
    signups = FakeSignupRepo()
    users = FakeUserRepo(signups)
    email = FakeEmailSender(fail=fail_email)
    svc = AuthService(
        user_repo=users,
        signup_repo=signups,
        email_sender=email,
        token_issuer=FakeTokenIssuer(),
        password_hasher=FakeHasher(),
        clock=clock,
    )
    return svc, users, signups, email, clock


def wrong_code(code: str) -> str:
    return "000000" if code != "000000" else "111111"


async def signup(svc, email=EMAIL, account_type="Client"):
    return await svc.signup(email, account_type, "Alice", "Paris", "secret123")


# ------------------------
# Signup / verification
# ------------------------
@pytest.mark.asyncio
async def test_signup_creates_pending_signup_and_sends_code():
    svc, _, signups, email, clock = make_service()
    result = await signup(svc)

    row = signups.rows[EMAIL]
    assert result.message.startswith("OTP sent")
    assert row.otp_attempts == 1
    assert row.first_otp_attempt_at == clock.now
    assert row.last_otp_sent_at == clock.now
    assert row.password == "hashed:secret123"
    assert email.sent[0]["to"] == EMAIL
    assert email.last_otp == row.current_otp


@pytest.mark.asyncio
async def test_signup_rejects_registered_email():
    svc, users, _, _, _ = make_service()
    users.add(EMAIL)
    with pytest.raises(ServiceError) as exc:
        await signup(svc)
    assert exc.value.code == "EMAIL_ALREADY_REGISTERED"
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_wrong_codes_reach_max_attempts_with_minutes_left():
    svc, _, signups, email, clock = make_service()
    await signup(svc)
    bad = wrong_code(email.last_otp)
    clock.advance(minutes=1)

    with pytest.raises(ServiceError) as first:
        await svc.verify_otp(EMAIL, bad)
    assert first.value.code == "INVALID_OTP"
    assert signups.rows[EMAIL].otp_attempts == 2

    with pytest.raises(ServiceError) as second:
        await svc.verify_otp(EMAIL, bad)
    assert second.value.code == "OTP_MAX_ATTEMPTS_REACHED"
    assert second.value.kind == ErrorKind.THROTTLED
    assert second.value.minutes_left == 14
    assert "14 minute" in second.value.message


@pytest.mark.asyncio
async def test_verify_otp_promotes_signup_and_code_is_single_use():
    svc, users, signups, email, _ = make_service()
    await signup(svc, account_type="Escort")
    code = email.last_otp

    result = await svc.verify_otp(EMAIL, code)
    assert result.token.startswith("token:")
    assert result.account.role == "Escort"
    assert result.account.status == "Pending"
    assert result.account.is_verified
    assert re.fullmatch(r"a_\d{13}", result.account.username)
    assert EMAIL not in signups.rows
    assert users.get_by_email(EMAIL) is not None

    with pytest.raises(ServiceError) as exc:
        await svc.verify_otp(EMAIL, code)
    assert exc.value.code == "INVALID_EMAIL_OR_OTP"


@pytest.mark.asyncio
async def test_expired_code_is_rejected_without_counting_attempt():
    svc, _, signups, email, clock = make_service()
    await signup(svc)
    clock.advance(minutes=10, seconds=1)

    with pytest.raises(ServiceError) as exc:
        await svc.verify_otp(EMAIL, email.last_otp)
    assert exc.value.code == "OTP_EXPIRED"
    assert exc.value.status_code == 400
    assert signups.rows[EMAIL].otp_attempts == 1


@pytest.mark.asyncio
async def test_verify_otp_when_account_appeared_meanwhile():
    svc, users, signups, email, _ = make_service()
    await signup(svc)
    users.add(EMAIL)

    with pytest.raises(ServiceError) as exc:
        await svc.verify_otp(EMAIL, email.last_otp)
    assert exc.value.code == "EMAIL_ALREADY_REGISTERED"
    assert EMAIL not in signups.rows


@pytest.mark.asyncio
async def test_resend_cooldown_then_allowed_after_five_minutes():
    svc, _, signups, email, clock = make_service()
    await signup(svc)

    with pytest.raises(ServiceError) as exc:
        await svc.resend_otp(EMAIL)
    assert exc.value.code == "OTP_COOLDOWN_WAIT"
    assert exc.value.minutes_left == 5

    clock.advance(minutes=5, seconds=1)
    await svc.resend_otp(EMAIL)
    assert signups.rows[EMAIL].otp_attempts == 2
    assert len(email.sent) == 2


@pytest.mark.asyncio
async def test_resend_blocked_inside_window_and_reset_after_it():
    svc, _, signups, _, clock = make_service()
    await signup(svc)
    policy = svc.policy

    row = signups.rows[EMAIL]
    row.otp_attempts = 3
    row.first_otp_attempt_at = clock.now - (policy.window - timedelta(seconds=1))
    row.last_otp_sent_at = clock.now - timedelta(minutes=6)

    with pytest.raises(ServiceError) as exc:
        await svc.resend_otp(EMAIL)
    assert exc.value.code == "OTP_LIMIT_REACHED"
    assert exc.value.minutes_left == 1

    row = signups.rows[EMAIL]
    row.first_otp_attempt_at = clock.now - (policy.window + timedelta(seconds=1))
    await svc.resend_otp(EMAIL)
    assert signups.rows[EMAIL].otp_attempts == 1
    assert signups.rows[EMAIL].first_otp_attempt_at == clock.now


@pytest.mark.asyncio
async def test_resend_requires_pending_signup():
    svc, _, _, _, _ = make_service()
    with pytest.raises(ServiceError) as exc:
        await svc.resend_otp(EMAIL)
    assert exc.value.code == "NO_SIGNUP_FOUND"
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_email_failure_keeps_persisted_signup():
    svc, _, signups, _, _ = make_service(fail_email=True)
    with pytest.raises(ServiceError) as exc:
        await signup(svc)
    assert exc.value.code == "EMAIL_SEND_FAILED"
    assert exc.value.status_code == 500
    assert EMAIL in signups.rows


@pytest.mark.asyncio
@pytest.mark.parametrize("submitted", ["١٢٣٤٥٦", "²²²²²²"])
async def test_non_ascii_digits_count_as_wrong_code(submitted):
    svc, _, signups, _, _ = make_service()
    await signup(svc)

    with pytest.raises(ServiceError) as exc:
        await svc.verify_otp(EMAIL, submitted)
    assert exc.value.code == "INVALID_OTP"
    assert exc.value.status_code == 400
    assert signups.rows[EMAIL].otp_attempts == 2


# ------------------------
# Login
# ------------------------
@pytest.mark.asyncio
async def test_login_then_verify_login_otp_issues_token_and_clears_fields():
    svc, users, _, email, clock = make_service()
    account = users.add(EMAIL, password="hashed:secret123")

    result = await svc.login(EMAIL, "secret123")
    assert result.message.startswith("Login OTP sent")
    assert not hasattr(result, "token")

    clock.advance(minutes=9)
    session = await svc.verify_login_otp(EMAIL, email.last_otp)
    assert session.token == f"token:{account.id}:{EMAIL}:Client"

    stored = users.get_by_id(account.id)
    assert stored.login_otp is None
    assert stored.login_otp_sent_at is None
    assert stored.login_otp_attempts == 0
    assert stored.login_otp_first_attempt_at is None


@pytest.mark.asyncio
async def test_login_does_not_distinguish_unknown_email_from_bad_password():
    svc, users, _, _, _ = make_service()
    users.add(EMAIL, password="hashed:secret123")

    with pytest.raises(ServiceError) as bad_password:
        await svc.login(EMAIL, "nope")
    with pytest.raises(ServiceError) as unknown:
        await svc.login("b@x.com", "secret123")
    assert bad_password.value.code == unknown.value.code == "INVALID_EMAIL_OR_PASSWORD"
    assert bad_password.value.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("status,is_verified,code", [
    ("Active", False, "ACCOUNT_NOT_VERIFIED"),
    ("Block", True, "ACCOUNT_BLOCKED"),
    ("Suspend", True, "ACCOUNT_SUSPENDED"),
    ("Inactive", True, "ACCOUNT_INACTIVE"),
])
async def test_login_rejects_unusable_accounts(status, is_verified, code):
    svc, users, _, _, _ = make_service()
    users.add(EMAIL, status=status, is_verified=is_verified)
    with pytest.raises(ServiceError) as exc:
        await svc.login(EMAIL, "secret123")
    assert exc.value.code == code
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_second_login_inside_cooldown_is_throttled():
    svc, users, _, _, clock = make_service()
    users.add(EMAIL)
    await svc.login(EMAIL, "secret123")
    clock.advance(minutes=2)

    with pytest.raises(ServiceError) as exc:
        await svc.login(EMAIL, "secret123")
    assert exc.value.code == "OTP_COOLDOWN_ACTIVE"
    assert exc.value.minutes_left == 3


@pytest.mark.asyncio
async def test_wrong_login_codes_are_throttled_on_third_attempt():
    svc, users, _, email, _ = make_service()
    users.add(EMAIL)
    await svc.login(EMAIL, "secret123")
    bad = wrong_code(email.last_otp)

    for _ in range(2):
        with pytest.raises(ServiceError) as exc:
            await svc.verify_login_otp(EMAIL, bad)
        assert exc.value.code == "INVALID_OTP"

    with pytest.raises(ServiceError) as exc:
        await svc.verify_login_otp(EMAIL, bad)
    assert exc.value.code == "OTP_MAX_ATTEMPTS_REACHED"
    assert exc.value.minutes_left == 15


@pytest.mark.asyncio
async def test_verify_login_otp_without_pending_code():
    svc, users, _, _, _ = make_service()
    users.add(EMAIL)
    with pytest.raises(ServiceError) as exc:
        await svc.verify_login_otp(EMAIL, "123456")
    assert exc.value.code == "OTP_NOT_FOUND"


@pytest.mark.asyncio
async def test_resend_login_otp_unknown_email():
    svc, _, _, _, _ = make_service()
    with pytest.raises(ServiceError) as exc:
        await svc.resend_login_otp(EMAIL)
    assert exc.value.code == "EMAIL_NOT_FOUND"


# ------------------------
# Password reset / change
# ------------------------
@pytest.mark.asyncio
async def test_forgot_then_reset_password_with_code():
    svc, users, _, email, _ = make_service()
    account = users.add(EMAIL)

    await svc.forgot_password(EMAIL)
    message = await svc.reset_password(EMAIL, "newsecret1", otp=email.last_otp)
    assert message == "Password reset successfully."

    stored = users.get_by_id(account.id)
    assert stored.password == "hashed:newsecret1"
    assert stored.pass_status == "Changed"
    assert stored.reset_password_otp is None
    assert stored.reset_password_otp_attempts == 0


@pytest.mark.asyncio
async def test_change_password_with_old_password():
    svc, users, _, _, _ = make_service()
    account = users.add(EMAIL, password="hashed:secret123")

    with pytest.raises(ServiceError) as same:
        await svc.reset_password(EMAIL, "secret123", old_pass="secret123")
    assert same.value.code == "OLD_NEW_PASSWORD_SAME"

    with pytest.raises(ServiceError) as wrong:
        await svc.reset_password(EMAIL, "newsecret1", old_pass="notmine12")
    assert wrong.value.code == "INVALID_OLD_PASSWORD"

    message = await svc.reset_password(EMAIL, "newsecret1", old_pass="secret123")
    assert message == "Password changed successfully."
    assert users.get_by_id(account.id).password == "hashed:newsecret1"


@pytest.mark.asyncio
async def test_reset_password_requires_code_without_old_password():
    svc, users, _, _, _ = make_service()
    users.add(EMAIL)
    with pytest.raises(ServiceError) as exc:
        await svc.reset_password(EMAIL, "newsecret1")
    assert exc.value.code == "OTP_REQUIRED"


def test_logout_is_stateless():
    svc, _, _, _, _ = make_service()
    assert svc.logout() == "Logged out successfully."


@pytest.mark.asyncio
async def test_login_resets_counters_once_window_has_elapsed():
    svc, users, _, _, clock = make_service()
    account = users.add(EMAIL)
    stored = users.accounts[account.id]
    stored.login_otp_attempts = 3
    stored.login_otp_first_attempt_at = clock.now - timedelta(minutes=16)
    stored.login_otp_sent_at = clock.now - timedelta(minutes=16)

    await svc.login(EMAIL, "secret123")
    after = users.get_by_id(account.id)
    assert after.login_otp_attempts == 0
    assert after.login_otp_first_attempt_at is None
    assert after.login_otp_sent_at == clock.now


@pytest.mark.asyncio
async def test_login_keeps_counters_inside_window():
    svc, users, _, _, clock = make_service()
    account = users.add(EMAIL)
    stored = users.accounts[account.id]
    stored.login_otp_attempts = 3
    stored.login_otp_first_attempt_at = clock.now - timedelta(minutes=10)
    stored.login_otp_sent_at = clock.now - timedelta(minutes=10)

    await svc.login(EMAIL, "secret123")
    assert users.get_by_id(account.id).login_otp_attempts == 3


@pytest.mark.asyncio
async def test_resend_login_otp_after_cooldown_sends_fresh_code():
    svc, users, _, email, clock = make_service()
    account = users.add(EMAIL)
    await svc.login(EMAIL, "secret123")
    clock.advance(minutes=5, seconds=1)

    result = await svc.resend_login_otp(EMAIL)
    assert result.message.startswith("Login OTP sent")
    assert len(email.sent) == 2

    stored = users.get_by_id(account.id)
    assert stored.login_otp == email.last_otp
    assert stored.login_otp_sent_at == clock.now
    assert stored.login_otp_attempts == 1


@pytest.mark.asyncio
async def test_resend_login_otp_limit_inside_window():
    svc, users, _, email, clock = make_service()
    account = users.add(EMAIL)
    stored = users.accounts[account.id]
    stored.login_otp = "123456"
    stored.login_otp_attempts = 3
    stored.login_otp_first_attempt_at = clock.now - timedelta(minutes=5)
    stored.login_otp_sent_at = clock.now - timedelta(minutes=6)

    with pytest.raises(ServiceError) as exc:
        await svc.resend_login_otp(EMAIL)
    assert exc.value.code == "OTP_MAX_ATTEMPTS_REACHED"
    assert exc.value.status_code == 429
    assert exc.value.minutes_left == 10
    assert email.sent == []


@pytest.mark.asyncio
async def test_forgot_password_cooldown():
    svc, users, _, email, clock = make_service()
    users.add(EMAIL)
    await svc.forgot_password(EMAIL)
    clock.advance(minutes=2)

    with pytest.raises(ServiceError) as exc:
        await svc.forgot_password(EMAIL)
    assert exc.value.code == "OTP_COOLDOWN_WAIT"
    assert exc.value.minutes_left == 3
    assert len(email.sent) == 1


@pytest.mark.asyncio
async def test_forgot_password_limit_inside_window():
    svc, users, _, email, clock = make_service()
    account = users.add(EMAIL)
    stored = users.accounts[account.id]
    stored.reset_password_otp = "123456"
    stored.reset_password_otp_attempts = 3
    stored.reset_password_otp_first_attempt_at = clock.now - timedelta(minutes=10)
    stored.reset_password_otp_sent_at = clock.now - timedelta(minutes=6)

    with pytest.raises(ServiceError) as exc:
        await svc.forgot_password(EMAIL)
    assert exc.value.code == "OTP_LIMIT_REACHED"
    assert exc.value.minutes_left == 5
    assert email.sent == []


@pytest.mark.asyncio
async def test_wrong_reset_codes_are_counted_until_throttled():
    svc, users, _, email, clock = make_service()
    account = users.add(EMAIL, password="hashed:secret123")
    await svc.forgot_password(EMAIL)
    bad = wrong_code(email.last_otp)

    with pytest.raises(ServiceError) as first:
        await svc.reset_password(EMAIL, "newsecret1", otp=bad)
    assert first.value.code == "INVALID_OTP"
    assert users.get_by_id(account.id).reset_password_otp_attempts == 2

    clock.advance(minutes=1)
    with pytest.raises(ServiceError) as second:
        await svc.reset_password(EMAIL, "newsecret1", otp=bad)
    assert second.value.code == "OTP_MAX_ATTEMPTS_REACHED"
    assert second.value.minutes_left == 14

    stored = users.get_by_id(account.id)
    assert stored.reset_password_otp_attempts == 3
    assert stored.password == "hashed:secret123"


@pytest.mark.asyncio
async def test_expired_reset_code_leaves_password_unchanged():
    svc, users, _, email, clock = make_service()
    account = users.add(EMAIL, password="hashed:secret123")
    await svc.forgot_password(EMAIL)
    clock.advance(minutes=10, seconds=1)

    with pytest.raises(ServiceError) as exc:
        await svc.reset_password(EMAIL, "newsecret1", otp=email.last_otp)
    assert exc.value.code == "OTP_EXPIRED"

    stored = users.get_by_id(account.id)
    assert stored.password == "hashed:secret123"
    assert stored.reset_password_otp_attempts == 1
