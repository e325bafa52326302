"""Circuit breaker with a time limiter, guarding gateway routes."""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CallNotPermittedError(Exception):
    """Raised when the breaker is open and rejects a call."""

    def __init__(self, name: str):
        super().__init__(f"CircuitBreaker '{name}' is OPEN and does not permit further calls")
        self.name = name


@dataclass
class CircuitBreakerConfig:
    """Thresholds for one breaker. Durations are seconds."""

    timeout: float = 1.0
    failure_rate_threshold: float = 50.0
    sliding_window_size: int = 100
    minimum_number_of_calls: int = 100
    wait_duration_in_open_state: float = 60.0
    permitted_calls_in_half_open_state: int = 10

    def __post_init__(self):
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if not 0 < self.failure_rate_threshold <= 100:
            raise ValueError("failure_rate_threshold must be in (0, 100]")
        if self.sliding_window_size < 1 or self.minimum_number_of_calls < 1:
            raise ValueError("window sizes must be at least 1")


class CircuitBreaker:
    """Count-based sliding window breaker; timeouts count as failures."""

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._window: deque[bool] = deque(maxlen=self.config.sliding_window_size)
        self._opened_at = 0.0
        self._half_open_results: list[bool] = []
        self._half_open_admitted = 0

    @property
    def state(self) -> CircuitState:
        if (
            self._state == CircuitState.OPEN
            and self._clock() - self._opened_at >= self.config.wait_duration_in_open_state
        ):
            self._transition(CircuitState.HALF_OPEN)
        return self._state

    @property
    def failure_rate(self) -> float:
        """Failure percentage of the current window, -1 below the minimum calls."""
        if len(self._window) < min(self.config.minimum_number_of_calls, self._window.maxlen):
            return -1.0
        failures = sum(1 for ok in self._window if not ok)
        return failures * 100.0 / len(self._window)

    def _transition(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return
        logger.info("CircuitBreaker '%s' changed state from %s to %s", self.name, self._state.value, new_state.value)
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_results = []
            self._half_open_admitted = 0
        elif new_state == CircuitState.CLOSED:
            self._window.clear()

    def try_acquire(self) -> bool:
        """Admit a call; in HALF_OPEN at most the permitted number, counted on admission."""
        state = self.state
        if state == CircuitState.OPEN:
            return False
        if state == CircuitState.HALF_OPEN:
            if self._half_open_admitted >= self.config.permitted_calls_in_half_open_state:
                return False
            self._half_open_admitted += 1
        return True

    def _record(self, success: bool) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._half_open_results.append(success)
            if len(self._half_open_results) >= self.config.permitted_calls_in_half_open_state:
                failures = self._half_open_results.count(False)
                rate = failures * 100.0 / len(self._half_open_results)
                if rate >= self.config.failure_rate_threshold:
                    self._transition(CircuitState.OPEN)
                else:
                    self._transition(CircuitState.CLOSED)
            return

        self._window.append(success)
        rate = self.failure_rate
        if rate >= 0 and rate >= self.config.failure_rate_threshold:
            self._transition(CircuitState.OPEN)

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run ``func`` under the time limit.

        Raises:
            CallNotPermittedError: breaker is open.
            asyncio.TimeoutError: the call exceeded ``config.timeout``.
        """
        if not self.try_acquire():
            raise CallNotPermittedError(self.name)
        try:
            result = await asyncio.wait_for(func(), timeout=self.config.timeout)
        except Exception:
            self._record(False)
            raise
        self._record(True)
        return result


class CircuitBreakerRegistry:
    """Creates breakers on demand from named or default configurations."""

    def __init__(self, default_config: CircuitBreakerConfig | None = None):
        self._default = default_config or CircuitBreakerConfig()
        self._configs: dict[str, CircuitBreakerConfig] = {}
        self._breakers: dict[str, CircuitBreaker] = {}

    def add_configuration(self, name: str, config: CircuitBreakerConfig) -> None:
        self._configs[name] = config
        self._breakers.pop(name, None)

    def circuit_breaker(self, name: str) -> CircuitBreaker:
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(name, self._configs.get(name, self._default))
        return self._breakers[name]
