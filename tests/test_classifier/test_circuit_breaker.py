"""Tests for the provider circuit breaker."""

from src.pocket.classifier.circuit_breaker import CircuitBreaker, CircuitState


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    def test_initial_state_closed(self):
        """New circuit breaker should start in CLOSED state."""
        breaker = CircuitBreaker(failure_threshold=5, reset_timeout=60)
        assert breaker.is_available("gemini") is True
        assert breaker.state("gemini") == CircuitState.CLOSED

    def test_circuit_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=3, reset_timeout=60)
        for _ in range(3):
            breaker.record_failure("gemini")
        assert breaker.is_available("gemini") is False
        assert breaker.state("gemini") == CircuitState.OPEN

    def test_success_resets_failure_count(self):
        breaker = CircuitBreaker(failure_threshold=3, reset_timeout=60)
        breaker.record_failure("gemini")
        breaker.record_failure("gemini")
        breaker.record_success("gemini")
        breaker.record_failure("gemini")
        assert breaker.is_available("gemini") is True

    def test_half_open_after_timeout(self):
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=2, reset_timeout=10, clock=clock)
        breaker.record_failure("gemini")
        breaker.record_failure("gemini")

        clock.now = 5
        assert breaker.is_available("gemini") is False
        clock.now = 11
        assert breaker.is_available("gemini") is True
        assert breaker.state("gemini") == CircuitState.HALF_OPEN

    def test_half_open_limits_probes(self):
        clock = FakeClock()
        breaker = CircuitBreaker(
            failure_threshold=1, reset_timeout=1, half_open_max_attempts=2, clock=clock
        )
        breaker.record_failure("gemini")
        clock.now = 2
        assert breaker.is_available("gemini") is True
        assert breaker.is_available("gemini") is True
        assert breaker.is_available("gemini") is False

    def test_failure_while_half_open_reopens(self):
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=3, reset_timeout=1, clock=clock)
        for _ in range(3):
            breaker.record_failure("gemini")
        clock.now = 2
        assert breaker.is_available("gemini") is True

        breaker.record_failure("gemini")
        assert breaker.state("gemini") == CircuitState.OPEN
        assert breaker.is_available("gemini") is False

    def test_success_while_half_open_closes(self):
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=1, clock=clock)
        breaker.record_failure("gemini")
        clock.now = 2
        breaker.is_available("gemini")
        breaker.record_success("gemini")
        assert breaker.state("gemini") == CircuitState.CLOSED

    def test_independent_provider_states(self):
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=60)
        breaker.record_failure("openrouter")
        assert breaker.is_available("openrouter") is False
        assert breaker.is_available("gemini") is True

    def test_get_status(self):
        breaker = CircuitBreaker(failure_threshold=5, reset_timeout=60)
        breaker.record_failure("gemini", "timeout")
        status = breaker.get_status("gemini")
        assert status == {"provider": "gemini", "state": "closed", "consecutive_failures": 1}
