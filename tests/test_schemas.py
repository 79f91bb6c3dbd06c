import pytest
from pydantic import ValidationError

from seekers_api.schemas.auth.auth import ResetPasswordRequest, SignupRequest, VerifyOtpRequest


def test_verify_otp_request_normalizes_email():
    body = VerifyOtpRequest(email="  Alice@X.COM ", otp="012345")
    assert body.email == "alice@x.com"
    assert body.otp == "012345"


@pytest.mark.parametrize("otp", ["١٢٣٤٥٦", "²²²²²²", "12345", "1234567", "12 456", "abcdef"])
def test_verify_otp_request_requires_six_ascii_digits(otp):
    with pytest.raises(ValidationError):
        VerifyOtpRequest(email="a@x.com", otp=otp)


def test_reset_password_request_otp_is_optional_but_checked():
    assert ResetPasswordRequest(email="a@x.com", new_pass="newsecret1").otp is None
    with pytest.raises(ValidationError):
        ResetPasswordRequest(email="a@x.com", new_pass="newsecret1", otp="١٢٣٤٥٦")


def test_signup_request_rejects_blank_display_name():
    with pytest.raises(ValidationError):
        SignupRequest(email="a@x.com", account_type="Client", display_name="   ", city="Paris", password="secret123")
