"""Fixed-count, fixed-delay retry policy for remote calls."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from radsec_operations.lib.logging_config import LOGGER

T = TypeVar("T")


class AttemptFailed(Exception):
    """Raised by an operation to signal a retryable failure."""


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    """Outcome of a retried operation: either a value or the last error text."""

    value: T | None
    error: str | None
    attempts: int
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an operation up to max_attempts times, waiting delay seconds between tries.

    The wait is not exponential. A cancel event or a monotonic deadline stops
    the loop early; both are checked before every attempt and interrupt the
    wait between attempts.
    """

    max_attempts: int = 10
    delay: float = 2.0

    def run(
        self,
        operation: Callable[[], T],
        description: str,
        cancel_event: threading.Event | None = None,
        deadline: float | None = None,
    ) -> RetryResult[T]:
        """Call operation until it returns without raising AttemptFailed.

        Args:
            operation: Zero-argument callable; raises AttemptFailed to request a retry
            description: Human-readable name used in log lines
            cancel_event: Optional event that aborts the loop when set
            deadline: Optional time.monotonic() value after which no attempt starts

        Returns:
            RetryResult with the value on success, or the last error message
        """
        last_error = "no attempt made"
        attempts = 0

        for attempt in range(1, self.max_attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                return RetryResult(None, f"{description} cancelled", attempts, cancelled=True)
            if deadline is not None and time.monotonic() >= deadline:
                return RetryResult(
                    None, f"{description} deadline exceeded", attempts, cancelled=True
                )

            attempts = attempt
            try:
                return RetryResult(operation(), None, attempts)
            except AttemptFailed as e:
                last_error = str(e)
                LOGGER.warning(
                    "%s failed (attempt %d/%d): %s",
                    description,
                    attempt,
                    self.max_attempts,
                    last_error,
                )

            if attempt < self.max_attempts and self.delay > 0:
                wait = self.delay
                if deadline is not None:
                    wait = max(0.0, min(wait, deadline - time.monotonic()))
                if cancel_event is not None:
                    cancel_event.wait(wait)
                else:
                    time.sleep(wait)

        return RetryResult(None, last_error, attempts)
