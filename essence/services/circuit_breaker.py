"""
Circuit Breaker pattern for the external voice provider.

Stops hammering a provider that keeps failing and lets it recover.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Provider failing, requests are rejected immediately
- HALF_OPEN: One probe request decides whether to close again
"""

import time
from enum import Enum
from typing import Callable, Optional

from essence.core.errors import CircuitBreakerOpenError
from essence.core.logging import get_logger
from essence.core.metrics import get_metrics

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Usage:
        breaker = CircuitBreaker("elevenlabs", failure_threshold=5)

        breaker.before_call("synthesize")
        try:
            result = await provider_call()
        except ProviderError:
            breaker.record_failure()
            raise
        breaker.record_success()
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._recovery_elapsed():
            return CircuitState.HALF_OPEN.value
        return self._state.value

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _recovery_elapsed(self) -> bool:
        return (
            self._opened_at is not None
            and self._clock() - self._opened_at >= self.recovery_timeout
        )

    def allow_request(self) -> bool:
        """Check if a request should be allowed through."""
        if self._state == CircuitState.OPEN:
            if not self._recovery_elapsed():
                return False
            self._transition_to(CircuitState.HALF_OPEN)
        return True

    def before_call(self, operation: str) -> None:
        """Raise CircuitBreakerOpenError if the request must not go out."""
        if not self.allow_request():
            logger.warning(
                f"Circuit breaker '{self.name}' is open, blocking request",
                extra={"circuit_breaker": self.name, "operation": operation},
            )
            raise CircuitBreakerOpenError(self.name, operation=operation)

    def record_success(self) -> None:
        self._failure_count = 0
        if self._state != CircuitState.CLOSED:
            self._transition_to(CircuitState.CLOSED)

    def record_failure(self) -> None:
        self._failure_count += 1

        if self._state == CircuitState.HALF_OPEN:
            # The probe failed
            self._transition_to(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
            self._transition_to(CircuitState.OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state

        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.CLOSED:
            self._opened_at = None
            self._failure_count = 0

        get_metrics().set_circuit_open(self.name, new_state == CircuitState.OPEN)
        logger.info(
            f"Circuit breaker '{self.name}' transitioned: {old_state.value} -> {new_state.value}",
            extra={
                "circuit_breaker": self.name,
                "old_state": old_state.value,
                "new_state": new_state.value,
                "failure_count": self._failure_count,
            },
        )

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
