"""Exponential backoff retry for classified-retryable failures."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """Immutable retry policy with exponential delay and no jitter.

    The first attempt runs immediately. Before retry `n` (1-based) the policy
    sleeps `starting_delay_seconds * multiplier ** (n - 1)`.

    Attributes:
        starting_delay_seconds: Delay before the first retry.
        multiplier: Growth factor between consecutive retries.
        max_attempts: Total attempts including the first one.
        sleep: Blocking sleep function.
    """

    starting_delay_seconds: float = 2.0
    multiplier: float = 2.0
    max_attempts: int = 5
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.starting_delay_seconds < 0:
            raise ValueError("starting_delay_seconds must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def backoff_calculate_delay_seconds(self, retry_number: int) -> float:
        """Calculate the delay preceding one retry.

        Args:
            retry_number: 1-based retry number (attempt 2 is retry 1).

        Returns:
            float: Delay in seconds.

        Raises:
            ValueError: Raised when retry number is not positive.
        """

        if retry_number < 1:
            raise ValueError("retry_number must be >= 1")
        return float(self.starting_delay_seconds * (self.multiplier ** (retry_number - 1)))

    def backoff_retry(self, operation: Callable[[], T], classify: Callable[[Exception], bool]) -> T:
        """Run an operation, retrying while failures are classified retryable.

        Args:
            operation: Zero-argument callable to run.
            classify: Returns True when an exception may be retried.

        Returns:
            T: Result of the first successful attempt.

        Raises:
            Exception: The last error, unchanged, when it is not retryable or attempts ran out.
        """

        attempt = 1
        while True:
            try:
                return operation()
            except Exception as error:
                retryable = classify(error)
                logger.info(
                    "backoff_attempt_failed",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    retryable=retryable,
                    error=str(error),
                )
                if not retryable or attempt >= self.max_attempts:
                    raise
                delay_seconds = self.backoff_calculate_delay_seconds(retry_number=attempt)
                logger.info("backoff_retry_scheduled", next_attempt=attempt + 1, delay_seconds=delay_seconds)
                self.sleep(delay_seconds)
                attempt += 1
