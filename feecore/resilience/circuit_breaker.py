"""Circuit breaker for the reference-data API.

States:
- CLOSED: Healthy, requests pass through
- OPEN: Failing, requests short-circuited (fail fast)
- HALF_OPEN: Testing recovery, limited requests allowed

Defaults come from settings: 5 failures → OPEN, 60s cooldown → HALF_OPEN,
1 success → CLOSED.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum

from feecore.config import settings

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Thread-safe circuit breaker for collaborator calls."""

    def __init__(
        self,
        name: str,
        failure_threshold: int | None = None,
        recovery_timeout: float | None = None,
        success_threshold: int = 1,
    ):
        self.name = name
        self.failure_threshold = failure_threshold or settings.breaker_failure_threshold
        self.recovery_timeout = (
            recovery_timeout if recovery_timeout is not None else settings.breaker_recovery_timeout
        )
        self.success_threshold = success_threshold

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            if self._state == CircuitState.OPEN and time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
                logger.info("Circuit %s → HALF_OPEN", self.name)
            return self._state

    def allow_request(self) -> bool:
        return self.state != CircuitState.OPEN

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    self._state = CircuitState.CLOSED
                    self._failure_count = 0
                    logger.info("Circuit %s → CLOSED (recovered)", self.name)
            else:
                self._failure_count = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                logger.warning("Circuit %s → OPEN (half-open probe failed)", self.name)
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                logger.warning("Circuit %s → OPEN (%d failures)", self.name, self._failure_count)

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0


_breakers: dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_breaker(name: str) -> CircuitBreaker:
    """Get or create the shared breaker for a collaborator."""
    with _registry_lock:
        if name not in _breakers:
            _breakers[name] = CircuitBreaker(name=name)
        return _breakers[name]


def get_all_states() -> dict[str, str]:
    return {name: breaker.state.value for name, breaker in list(_breakers.items())}
