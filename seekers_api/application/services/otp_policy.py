"""One-time password policy.

Pure decisions over persisted OTP counters: whether a new code may be sent
(cooldown), whether the attempt window still blocks (rate limit) and whether a
submitted code is past its validity. Callers pass ``now`` explicitly.
"""
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional


@dataclass(frozen=True)
class LimitCheck:
    allowed: bool
    reset_at: Optional[datetime] = None


@dataclass(frozen=True)
class OtpPolicy:
    max_attempts: int = 3
    window: timedelta = timedelta(minutes=15)
    cooldown: timedelta = timedelta(minutes=5)
    expiry: timedelta = timedelta(minutes=10)
    code_length: int = 6

    def generate_code(self) -> str:
        return str(secrets.randbelow(10 ** self.code_length)).zfill(self.code_length)

    def can_send(self, last_sent_at: Optional[datetime], now: datetime) -> bool:
        if last_sent_at is None:
            return True
        return now - last_sent_at >= self.cooldown

    def cooldown_ends_at(self, last_sent_at: datetime) -> datetime:
        return last_sent_at + self.cooldown

    def check_limit(self, attempts: int, first_attempt_at: Optional[datetime], now: datetime) -> LimitCheck:
        if attempts < self.max_attempts:
            return LimitCheck(allowed=True)
        # No window was ever started
        if first_attempt_at is None:
            return LimitCheck(allowed=True)
        if now - first_attempt_at >= self.window:
            return LimitCheck(allowed=True)
        return LimitCheck(allowed=False, reset_at=first_attempt_at + self.window)

    def window_elapsed(self, first_attempt_at: Optional[datetime], now: datetime) -> bool:
        return first_attempt_at is not None and now - first_attempt_at >= self.window

    def is_expired(self, sent_at: Optional[datetime], now: datetime) -> bool:
        if sent_at is None:
            return False
        return now - sent_at > self.expiry


def minutes_left(until: datetime, now: datetime) -> int:
    return math.ceil((until - now).total_seconds() / 60)
