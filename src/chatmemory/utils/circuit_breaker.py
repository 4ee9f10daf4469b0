"""Circuit breaker guarding calls to a flaky collaborator (e.g. a summarizer)."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Calls allowed
    OPEN = "open"  # Calls short-circuited until the cooldown elapses
    HALF_OPEN = "half_open"  # One trial call allowed


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 3  # Consecutive failures before opening
    cooldown: float = 60.0  # Seconds the circuit stays open


class CircuitBreaker:
    """Counts consecutive failures and short-circuits calls once a threshold is hit.

    After ``cooldown`` seconds the breaker lets a single trial call through
    (half-open). A success closes the circuit, a failure reopens it.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        name: str = "collaborator",
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            config: Thresholds and cooldown (defaults if None)
            name: Label used in log messages
            clock: Monotonic time source, injectable for tests
        """
        self.config = config or CircuitBreakerConfig()
        self.name = name
        self._clock = clock
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: float = 0.0

    def can_attempt(self) -> bool:
        """Check whether a call may be attempted now."""
        if self.state == CircuitState.OPEN:
            if self._clock() - self.opened_at >= self.config.cooldown:
                self.state = CircuitState.HALF_OPEN
                logger.info("Circuit for %s half-open after cooldown", self.name)
                return True
            return False
        return True

    def record_success(self) -> None:
        """Record a successful call."""
        if self.state != CircuitState.CLOSED:
            logger.info("Circuit for %s closed after successful call", self.name)
        self.state = CircuitState.CLOSED
        self.failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call, opening the circuit if needed."""
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN or (
            self.failure_count >= self.config.failure_threshold
        ):
            if self.state != CircuitState.OPEN:
                logger.warning(
                    "Circuit for %s opened after %d failures", self.name, self.failure_count
                )
            self.state = CircuitState.OPEN
            self.opened_at = self._clock()
