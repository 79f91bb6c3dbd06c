from datetime import datetime, timedelta, timezone

from seekers_api.application.services.otp_policy import OtpPolicy, minutes_left

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_generate_code_is_six_digits():
    policy = OtpPolicy()
    for _ in range(50):
        code = policy.generate_code()
        assert len(code) == 6
        assert code.isdigit()


def test_can_send_respects_cooldown():
    policy = OtpPolicy()
    assert policy.can_send(None, NOW)
    assert not policy.can_send(NOW - timedelta(minutes=4, seconds=59), NOW)
    assert policy.can_send(NOW - timedelta(minutes=5), NOW)


def test_check_limit_blocks_inside_window():
    policy = OtpPolicy()
    first = NOW - (policy.window - timedelta(seconds=1))
    result = policy.check_limit(3, first, NOW)
    assert not result.allowed
    assert result.reset_at == first + policy.window


def test_check_limit_allows_after_window_or_below_max():
    policy = OtpPolicy()
    assert policy.check_limit(3, NOW - (policy.window + timedelta(seconds=1)), NOW).allowed
    assert policy.check_limit(2, NOW, NOW).allowed
    assert policy.check_limit(5, None, NOW).allowed


def test_is_expired_boundary():
    policy = OtpPolicy()
    assert not policy.is_expired(NOW - timedelta(minutes=10), NOW)
    assert policy.is_expired(NOW - timedelta(minutes=10, seconds=1), NOW)
    assert not policy.is_expired(None, NOW)


def test_minutes_left_rounds_up():
    assert minutes_left(NOW + timedelta(seconds=1), NOW) == 1
    assert minutes_left(NOW + timedelta(minutes=4, seconds=1), NOW) == 5
    assert minutes_left(NOW + timedelta(minutes=15), NOW) == 15
