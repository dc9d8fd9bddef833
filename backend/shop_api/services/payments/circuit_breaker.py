"""
Circuit breaker for outbound gateway calls (Paymob, SMS).

States:
- CLOSED: calls go through; consecutive failures are counted
- OPEN: calls are rejected immediately until the cool-down elapses
- HALF_OPEN: a few trial calls decide whether to close or re-open

Usage:
    from shop_api.services.payments.circuit_breaker import paymob_breaker

    async with paymob_breaker.call():
        response = await client.post(...)
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncGenerator

from shared.config.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    name: str
    failure_threshold: int = 5       # consecutive failures that open the circuit
    success_threshold: int = 2       # half-open successes that close it again
    timeout_seconds: float = 30.0    # cool-down before half-open
    half_open_max_calls: int = 2     # concurrent trial calls while half-open


@dataclass
class CircuitBreakerStats:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None


class CircuitBreakerError(Exception):
    """Call rejected because the circuit is open."""

    def __init__(self, breaker_name: str, retry_after: float):
        self.breaker_name = breaker_name
        self.retry_after = retry_after
        super().__init__(f"Circuit '{breaker_name}' open, retry in {retry_after:.1f}s")


class CircuitBreaker:
    """Async circuit breaker; state changes are serialized with an asyncio lock."""

    def __init__(self, config: CircuitBreakerConfig):
        self.config = config
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at: float | None = None
        self._trial_calls = 0
        self._lock = asyncio.Lock()
        self._stats = CircuitBreakerStats()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        return self._stats

    def _set_state(self, new_state: CircuitState) -> None:
        logger.info(
            "Circuit state change",
            breaker=self.config.name,
            old_state=self._state.value,
            new_state=new_state.value,
            failures=self._failures,
        )
        self._state = new_state
        self._stats.state_changes += 1
        if new_state == CircuitState.CLOSED:
            self._failures = 0
            self._successes = 0
        elif new_state == CircuitState.HALF_OPEN:
            self._successes = 0
            self._trial_calls = 0

    async def _admit(self) -> tuple[bool, float]:
        """Whether a call may go out now, and if not, seconds until it may."""
        async with self._lock:
            if self._state == CircuitState.CLOSED:
                return True, 0.0

            if self._state == CircuitState.OPEN:
                elapsed = time.time() - (self._opened_at or 0)
                if elapsed < self.config.timeout_seconds:
                    return False, self.config.timeout_seconds - elapsed
                self._set_state(CircuitState.HALF_OPEN)

            if self._trial_calls < self.config.half_open_max_calls:
                self._trial_calls += 1
                return True, 0.0
            return False, 1.0

    async def record_success(self) -> None:
        async with self._lock:
            now = time.time()
            self._stats.total_calls += 1
            self._stats.successful_calls += 1
            self._stats.last_success_time = now

            if self._state == CircuitState.HALF_OPEN:
                self._successes += 1
                self._trial_calls = max(0, self._trial_calls - 1)
                if self._successes >= self.config.success_threshold:
                    self._set_state(CircuitState.CLOSED)
            else:
                self._failures = 0

    async def record_failure(self, error: Exception | None = None) -> None:
        async with self._lock:
            now = time.time()
            self._stats.total_calls += 1
            self._stats.failed_calls += 1
            self._stats.last_failure_time = now
            self._failures += 1

            logger.warning(
                "Gateway call failed",
                breaker=self.config.name,
                error=str(error) if error else None,
                failures=self._failures,
                threshold=self.config.failure_threshold,
            )

            if self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED
                and self._failures >= self.config.failure_threshold
            ):
                self._opened_at = now
                self._set_state(CircuitState.OPEN)

    @asynccontextmanager
    async def call(self) -> AsyncGenerator[None, None]:
        """
        Guard one outbound call.

        Raises:
            CircuitBreakerError: circuit is open
        """
        allowed, retry_after = await self._admit()
        if not allowed:
            self._stats.rejected_calls += 1
            raise CircuitBreakerError(self.config.name, retry_after)

        try:
            yield
        except Exception as exc:
            await self.record_failure(exc)
            raise
        await self.record_success()

    async def reset(self) -> None:
        async with self._lock:
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._successes = 0
            self._trial_calls = 0
            self._opened_at = None
            logger.info("Circuit manually reset", breaker=self.config.name)


# =============================================================================
# Gateway breakers
# =============================================================================

paymob_breaker = CircuitBreaker(
    CircuitBreakerConfig(
        name="paymob",
        failure_threshold=5,
        success_threshold=2,
        timeout_seconds=30.0,
        half_open_max_calls=2,
    )
)

# SMS is best effort, give up on it sooner
sms_breaker = CircuitBreaker(
    CircuitBreakerConfig(
        name="sms",
        failure_threshold=3,
        success_threshold=1,
        timeout_seconds=60.0,
        half_open_max_calls=1,
    )
)

BREAKERS: dict[str, CircuitBreaker] = {
    "paymob": paymob_breaker,
    "sms": sms_breaker,
}


def get_all_breaker_stats() -> dict[str, dict]:
    """Breaker states and counters for the health endpoint."""
    return {
        name: {
            "state": breaker.state.value,
            "total_calls": breaker.stats.total_calls,
            "successful_calls": breaker.stats.successful_calls,
            "failed_calls": breaker.stats.failed_calls,
            "rejected_calls": breaker.stats.rejected_calls,
            "state_changes": breaker.stats.state_changes,
        }
        for name, breaker in BREAKERS.items()
    }
