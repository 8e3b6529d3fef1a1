"""
Circuit breaker for calls to collaborators that may be down.

Used by the stock ledger adapter and the Redis event publisher so that
an unavailable dependency fails fast instead of costing a timeout on
every request.

Works from both sync request handlers (threadpool) and async tasks,
so state is guarded by a threading.Lock.
"""

from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass
from enum import Enum

from shared.config.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failure mode - calls rejected
    HALF_OPEN = "half_open"  # Recovery testing


@dataclass
class CircuitBreakerConfig:
    """Configuration for a circuit breaker instance."""
    name: str
    failure_threshold: int = 5       # Consecutive failures before opening
    recovery_timeout: float = 30.0   # Seconds before trying half-open
    half_open_max_calls: int = 1     # Probe calls allowed while half-open


class CircuitBreaker:
    """
    Lightweight circuit breaker.

    Usage:
        if not breaker.can_execute():
            return failed_outcome
        try:
            call()
        except Exception:
            breaker.record_failure()
            raise
        breaker.record_success()
    """

    def __init__(self, config: CircuitBreakerConfig):
        self.config = config
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0
        self._half_open_calls = 0
        self._rejected_count = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> CircuitState:
        return self._state

    def can_execute(self) -> bool:
        """Return True if a call may proceed, False if the circuit is open."""
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True

            if self._state == CircuitState.OPEN:
                if time.monotonic() - self._last_failure_time >= self.config.recovery_timeout:
                    self._state = CircuitState.HALF_OPEN
                    self._half_open_calls = 1
                    logger.info("Circuit breaker half-open", breaker=self.config.name)
                    return True
                self._rejected_count += 1
                return False

            # HALF_OPEN
            if self._half_open_calls >= self.config.half_open_max_calls:
                self._rejected_count += 1
                return False
            self._half_open_calls += 1
            return True

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.error("Circuit breaker OPEN (half-open probe failed)", breaker=self.config.name)
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.config.failure_threshold:
                self._state = CircuitState.OPEN
                logger.error(
                    "Circuit breaker OPEN",
                    breaker=self.config.name,
                    failure_count=self._failure_count,
                    threshold=self.config.failure_threshold,
                )

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info("Circuit breaker recovered to CLOSED", breaker=self.config.name)
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._half_open_calls = 0

    def reset(self) -> None:
        """Manually reset the breaker to closed state."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._half_open_calls = 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "name": self.config.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "rejected_count": self._rejected_count,
            }


def calculate_retry_delay_with_jitter(attempt: int, base_delay: float = 0.5) -> float:
    """
    Exponential backoff with jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base_delay: Base delay in seconds

    Returns:
        Delay in seconds, between base_delay and min(base_delay * 2^attempt, 10)
    """
    exp_delay = min(base_delay * (2 ** attempt), 10.0)
    return random.uniform(base_delay, exp_delay)
