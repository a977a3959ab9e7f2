"""
CIRCUIT BREAKER
Failure counting, trip, and gradual recovery of the swap budget

STATE MACHINE:
    CLOSED     --threshold consecutive failures-->  OPEN
    OPEN       --trip duration elapsed-->           RECOVERING
    RECOVERING --any failure-->                     OPEN
    RECOVERING --ramp complete-->                   CLOSED

While not CLOSED the rate limiter's daily limit is forced down to the
recovery floor and raised back in equal steps across the recovery window.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from treasury.domain.models import BreakerPhase
from treasury.domain.models.entities import quantize_amount
from treasury.domain.services.config_engine import CircuitBreakerSettings
from treasury.domain.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CircuitBreakerView:
    phase: BreakerPhase
    tripped: bool
    fail_count: int
    time_since_last_failure: Optional[int]
    time_until_reset: int
    gradual_recovery_active: bool
    daily_limit: Decimal


class CircuitBreaker:
    def __init__(self, settings: CircuitBreakerSettings, rate_limiter: RateLimiter):
        self.settings = settings
        self.rate_limiter = rate_limiter

        self.phase = BreakerPhase.CLOSED
        self.fail_count = 0
        self.last_failure_at: Optional[int] = None
        self.pre_recovery_daily_limit: Optional[Decimal] = None

    # ------------------------------------------------------------------
    # Derived flags
    # ------------------------------------------------------------------

    @property
    def tripped(self) -> bool:
        return self.fail_count >= self.settings.trip_threshold

    @property
    def is_open(self) -> bool:
        return self.phase == BreakerPhase.OPEN

    @property
    def gradual_recovery_active(self) -> bool:
        return self.phase == BreakerPhase.RECOVERING

    @property
    def recovery_started_at(self) -> Optional[int]:
        if self.last_failure_at is None or self.phase == BreakerPhase.CLOSED:
            return None
        return self.last_failure_at + self.settings.trip_duration_seconds

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _project(self, now: int) -> Tuple[BreakerPhase, Decimal]:
        """Phase and daily limit the machine should have at now."""
        if self.phase == BreakerPhase.CLOSED:
            return self.phase, self.rate_limiter.daily_limit

        floor = self.settings.recovery_floor
        started = self.recovery_started_at
        if now < started:
            return BreakerPhase.OPEN, floor

        step = (now - started) * self.settings.recovery_steps // self.settings.recovery_window_seconds
        if step >= self.settings.recovery_steps:
            return BreakerPhase.CLOSED, self.pre_recovery_daily_limit

        span = self.pre_recovery_daily_limit - floor
        limit = quantize_amount(floor + span * step / self.settings.recovery_steps)
        return BreakerPhase.RECOVERING, limit

    def refresh(self, now: int) -> BreakerPhase:
        """Apply elapsed time: OPEN -> RECOVERING, ramp steps, ramp completion."""
        if self.phase == BreakerPhase.CLOSED:
            return self.phase

        phase, limit = self._project(now)
        if phase != self.phase:
            logger.info("🔁 Circuit breaker %s -> %s (limit %s)", self.phase.value, phase.value, limit)
        if phase == BreakerPhase.CLOSED:
            self.fail_count = 0
            self.pre_recovery_daily_limit = None
        self.phase = phase
        self.rate_limiter.set_daily_limit(limit)
        return self.phase

    def record_success(self, now: int) -> None:
        if self.phase == BreakerPhase.CLOSED:
            self.fail_count = 0
            return
        # Recovering: success keeps the ramp going
        self.refresh(now)

    def record_failure(self, now: int) -> None:
        self.fail_count += 1
        self.last_failure_at = now

        if self.phase == BreakerPhase.CLOSED:
            if self.fail_count < self.settings.trip_threshold:
                return
            self.pre_recovery_daily_limit = self.rate_limiter.daily_limit
            logger.warning(
                "🚨 Circuit breaker tripped after %s failures; daily limit %s -> %s",
                self.fail_count,
                self.pre_recovery_daily_limit,
                self.settings.recovery_floor,
            )
        else:
            logger.warning("🚨 Failure during %s; circuit breaker re-opened", self.phase.value)

        self.phase = BreakerPhase.OPEN
        self.rate_limiter.set_daily_limit(min(self.settings.recovery_floor, self.pre_recovery_daily_limit))

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    def view(self, now: int) -> CircuitBreakerView:
        phase, limit = self._project(now)
        fail_count = 0 if (phase == BreakerPhase.CLOSED and self.phase != BreakerPhase.CLOSED) else self.fail_count

        if phase == BreakerPhase.OPEN:
            until_reset = max(0, self.recovery_started_at - now)
        elif phase == BreakerPhase.RECOVERING:
            until_reset = max(0, self.recovery_started_at + self.settings.recovery_window_seconds - now)
        else:
            until_reset = 0

        since_failure = None if self.last_failure_at is None else max(0, now - self.last_failure_at)
        return CircuitBreakerView(
            phase=phase,
            tripped=fail_count >= self.settings.trip_threshold,
            fail_count=fail_count,
            time_since_last_failure=since_failure,
            time_until_reset=until_reset,
            gradual_recovery_active=phase == BreakerPhase.RECOVERING,
            daily_limit=limit,
        )
