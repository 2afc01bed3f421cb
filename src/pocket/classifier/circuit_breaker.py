"""Circuit breaker for LLM provider resilience.

Stops the fallback chain from hammering a provider that keeps failing.
After ``failure_threshold`` consecutive failures the provider is skipped
until ``reset_timeout`` has passed; a few probe calls then decide whether
the circuit closes again.

Pattern based on:
- Martin Fowler: https://martinfowler.com/bliki/CircuitBreaker.html

All calls happen on the event loop thread, so no locking is needed.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

logger = logging.getLogger("pocket.classifier.circuit_breaker")

__all__ = ["CircuitBreaker", "CircuitState"]


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, skip provider
    HALF_OPEN = "half_open"  # Probing recovery


@dataclass
class _ProviderCircuit:
    consecutive_failures: int = 0
    opened_at: float = 0.0
    state: CircuitState = CircuitState.CLOSED
    probes: int = 0


class CircuitBreaker:
    """Per-provider circuit breaker.

    Example:
        >>> breaker = CircuitBreaker(failure_threshold=5, reset_timeout=60)
        >>> if breaker.is_available("gemini"):
        ...     ...
        ...     breaker.record_success("gemini")
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        half_open_max_attempts: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening circuit
            reset_timeout: Seconds before an open circuit allows probes
            half_open_max_attempts: Probe calls allowed while half open
            clock: Monotonic clock, injectable for tests
        """
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.half_open_max_attempts = half_open_max_attempts
        self._clock = clock
        self._circuits: dict[str, _ProviderCircuit] = {}

    def _circuit(self, provider: str) -> _ProviderCircuit:
        return self._circuits.setdefault(provider, _ProviderCircuit())

    def state(self, provider: str) -> CircuitState:
        return self._circuit(provider).state

    def is_available(self, provider: str) -> bool:
        """Check whether a call to ``provider`` should be attempted.

        Moves an open circuit to half open once the reset timeout has
        passed, and counts probe calls while half open.
        """
        circuit = self._circuit(provider)

        if circuit.state == CircuitState.CLOSED:
            return True

        if circuit.state == CircuitState.OPEN:
            elapsed = self._clock() - circuit.opened_at
            if elapsed < self.reset_timeout:
                logger.debug(
                    "circuit_open_request_rejected",
                    extra={
                        "provider": provider,
                        "time_until_reset": self.reset_timeout - elapsed,
                    },
                )
                return False
            circuit.state = CircuitState.HALF_OPEN
            circuit.probes = 0
            logger.info("circuit_half_open", extra={"provider": provider})

        if circuit.probes < self.half_open_max_attempts:
            circuit.probes += 1
            return True
        return False

    def record_success(self, provider: str) -> None:
        circuit = self._circuit(provider)
        previous = circuit.state
        circuit.consecutive_failures = 0
        circuit.state = CircuitState.CLOSED
        circuit.probes = 0
        if previous != CircuitState.CLOSED:
            logger.info(
                "circuit_closed",
                extra={"provider": provider, "previous_state": previous.value},
            )

    def record_failure(self, provider: str, error_type: str = "unknown") -> None:
        """Record a failed call, opening the circuit at the threshold.

        A failure while half open reopens the circuit immediately.

        Args:
            provider: Provider name
            error_type: Failure kind (timeout, connection, rate_limit, ...)
        """
        circuit = self._circuit(provider)
        circuit.consecutive_failures += 1

        logger.debug(
            "circuit_failure_recorded",
            extra={
                "provider": provider,
                "consecutive_failures": circuit.consecutive_failures,
                "error_type": error_type,
            },
        )

        if circuit.state == CircuitState.HALF_OPEN or (
            circuit.state == CircuitState.CLOSED
            and circuit.consecutive_failures >= self.failure_threshold
        ):
            circuit.state = CircuitState.OPEN
            circuit.opened_at = self._clock()
            logger.warning(
                "circuit_opened",
                extra={
                    "provider": provider,
                    "failures": circuit.consecutive_failures,
                    "threshold": self.failure_threshold,
                    "timeout_seconds": self.reset_timeout,
                },
            )

    def get_status(self, provider: str) -> dict:
        circuit = self._circuit(provider)
        return {
            "provider": provider,
            "state": circuit.state.value,
            "consecutive_failures": circuit.consecutive_failures,
        }

    def reset(self) -> None:
        self._circuits.clear()
