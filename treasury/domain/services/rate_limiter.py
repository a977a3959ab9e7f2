"""
RATE LIMITER
Rolling daily swap-volume budget

RULES:
❌ No refund of a reservation (failed swaps still consume budget)
✅ Window rolls lazily on the first call after it expires
✅ daily_used never exceeds daily_limit, including after the limit is lowered
"""

from dataclasses import dataclass
from decimal import Decimal

from treasury.domain.errors import DailyLimitExceeded
from treasury.domain.models.entities import ZERO, quantize_amount

DAY_SECONDS = 86_400


@dataclass(frozen=True)
class RateLimitView:
    daily_used: Decimal
    daily_limit: Decimal
    remaining: Decimal
    time_until_reset: int


class RateLimiter:
    """Daily budget for swapped amounts"""

    def __init__(self, daily_limit: Decimal, window_seconds: int = DAY_SECONDS, start: int = 0):
        if daily_limit <= 0:
            raise ValueError("daily_limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.daily_limit = quantize_amount(daily_limit)
        self.window_seconds = window_seconds
        self.daily_used = ZERO
        self.window_start = start

    def _expired(self, now: int) -> bool:
        return now - self.window_start >= self.window_seconds

    def _roll(self, now: int) -> None:
        if self._expired(now):
            self.daily_used = ZERO
            self.window_start = now

    def try_reserve(self, amount: Decimal, now: int) -> Decimal:
        """Reserve amount from the current window; returns the new daily_used."""
        if amount <= 0:
            raise ValueError("Reservation amount must be positive")
        self._roll(now)
        amount = quantize_amount(amount)
        if self.daily_used + amount > self.daily_limit:
            raise DailyLimitExceeded(
                f"{amount} exceeds remaining budget {self.daily_limit - self.daily_used}"
            )
        self.daily_used += amount
        return self.daily_used

    def remaining(self, now: int) -> Decimal:
        return self.view(now).remaining

    def time_until_reset(self, now: int) -> int:
        return self.view(now).time_until_reset

    def set_daily_limit(self, limit: Decimal) -> None:
        """Replace the limit, clamping daily_used down to it."""
        if limit <= 0:
            raise ValueError("daily_limit must be positive")
        self.daily_limit = quantize_amount(limit)
        if self.daily_used > self.daily_limit:
            self.daily_used = self.daily_limit

    def view(self, now: int) -> RateLimitView:
        """Window state as of now, without rolling stored state."""
        if self._expired(now):
            used = ZERO
            until_reset = self.window_seconds
        else:
            used = self.daily_used
            until_reset = max(0, self.window_seconds - (now - self.window_start))
        return RateLimitView(
            daily_used=used,
            daily_limit=self.daily_limit,
            remaining=max(ZERO, self.daily_limit - used),
            time_until_reset=until_reset,
        )
