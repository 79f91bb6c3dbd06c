from typing import Protocol


class RateLimiter(Protocol):
    """Counts hits per key (``ip:<address>``) inside a rolling or fixed window."""

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        """Record one hit for ``key`` and report whether it is still under the limit."""
        ...
