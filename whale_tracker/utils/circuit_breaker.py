"""Circuit breaker guarding block processing.

The breaker counts consecutive errors of selected classes. Once the count
reaches the limit it opens, and every request is refused until the cooldown
elapses. It then closes again with the counter reset.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple, Type

from whale_tracker.logging_config import get_logger
from whale_tracker.utils.error_handling import BadDataError

logger = get_logger(__name__)


class BreakerState(str, Enum):
    """Breaker positions."""

    CLOSED = "closed"
    OPEN = "open"


@dataclass
class CircuitBreakerState:
    """Snapshot of a breaker for status endpoints."""

    name: str
    state: BreakerState
    error_count: int
    max_errors: int
    opened_at: Optional[float] = None
    reopens_in: Optional[float] = None
    last_error: Optional[str] = None


class CircuitBreaker:
    """Two-state circuit breaker with a time based reset."""

    def __init__(
        self,
        name: str,
        max_errors: int = 10,
        cooldown: float = 300.0,
        counted_errors: Tuple[Type[BaseException], ...] = (BadDataError,),
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            name: Label used in log lines
            max_errors: Consecutive counted errors that open the breaker
            cooldown: Seconds the breaker stays open
            counted_errors: Exception classes that increment the counter
            clock: Monotonic time source
        """
        self.name = name
        self.max_errors = max_errors
        self.cooldown = cooldown
        self.counted_errors = counted_errors
        self._clock = clock
        self._state = BreakerState.CLOSED
        self._error_count = 0
        self._opened_at: Optional[float] = None
        self._last_error: Optional[str] = None

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def state(self) -> BreakerState:
        """Current state, closing the breaker first if the cooldown has passed."""
        if self._state == BreakerState.OPEN and self._cooldown_elapsed():
            logger.info(f"Circuit breaker '{self.name}' cooldown elapsed, resuming")
            self.reset()
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == BreakerState.OPEN

    def allow_request(self) -> bool:
        """Whether work guarded by this breaker may proceed."""
        return self.state == BreakerState.CLOSED

    def record_success(self) -> None:
        """A guarded operation succeeded; consecutive count starts over."""
        if self._state == BreakerState.CLOSED:
            self._error_count = 0

    def record_failure(self, error: BaseException) -> bool:
        """
        Register a failed operation.

        Args:
            error: The exception raised by the guarded operation

        Returns:
            True if the error was counted
        """
        if not isinstance(error, self.counted_errors):
            return False

        self._error_count += 1
        self._last_error = str(error)

        if self._state == BreakerState.CLOSED and self._error_count >= self.max_errors:
            self._state = BreakerState.OPEN
            self._opened_at = self._clock()
            logger.error(
                f"Circuit breaker '{self.name}' opened after {self._error_count} errors; "
                f"pausing for {self.cooldown:.0f}s"
            )
        return True

    def reset(self) -> None:
        """Close the breaker and clear its counters."""
        self._state = BreakerState.CLOSED
        self._error_count = 0
        self._opened_at = None

    def snapshot(self) -> CircuitBreakerState:
        """Return the breaker state for reporting."""
        state = self.state
        reopens_in = None
        if state == BreakerState.OPEN and self._opened_at is not None:
            reopens_in = max(self.cooldown - (self._clock() - self._opened_at), 0.0)
        return CircuitBreakerState(
            name=self.name,
            state=state,
            error_count=self._error_count,
            max_errors=self.max_errors,
            opened_at=self._opened_at,
            reopens_in=reopens_in,
            last_error=self._last_error,
        )

    def _cooldown_elapsed(self) -> bool:
        return self._opened_at is not None and self._clock() - self._opened_at >= self.cooldown
