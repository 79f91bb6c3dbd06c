"""Seekers API: email OTP account lifecycle and one-to-one chat."""

__version__ = "1.0.0"
