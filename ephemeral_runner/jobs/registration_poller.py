"""Registry polling until the new runner reports online or a deadline passes."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import structlog

from ephemeral_runner.adapters import RegistrationTimeoutError, RunnerRegistryPort
from ephemeral_runner.domain import RegistryLookupOutcome, RegistryRecord

logger = structlog.get_logger(__name__)


class RegistrationPollState(str, Enum):
    """States of one registration wait."""

    QUIET_PERIOD = "quiet_period"
    POLLING = "polling"
    REGISTERED = "registered"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class RegistrationPollerConfig:
    """Timing configuration for registration polling.

    Attributes:
        quiet_period_seconds: Wait before the first lookup.
        interval_seconds: Wait between lookups.
        timeout_seconds: Polling gives up once time since the first lookup exceeds this.
    """

    quiet_period_seconds: float = 30.0
    interval_seconds: float = 30.0
    timeout_seconds: float = 300.0


@dataclass(frozen=True)
class RegistrationPollResult:
    """Successful registration wait result.

    Attributes:
        record: Online registry record.
        poll_count: Number of lookups issued.
        elapsed_seconds: Time spent polling after the quiet period.
    """

    record: RegistryRecord
    poll_count: int
    elapsed_seconds: float


class RegistrationPoller:
    """Wait for a runner to come online with a quiet period and a monotonic deadline.

    The wait is a plain loop on the calling thread, so exactly one lookup is in
    flight at a time and nothing keeps running once `poller_run` returns or raises.
    """

    def __init__(
        self,
        registry: RunnerRegistryPort,
        config: RegistrationPollerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize registration poller.

        Args:
            registry: Registry used for lookups.
            config: Timing configuration.
            clock: Monotonic clock in seconds.
            sleep: Blocking sleep function.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when timing values are invalid.
        """

        resolved_config = config or RegistrationPollerConfig()
        if resolved_config.quiet_period_seconds < 0:
            raise ValueError("quiet_period_seconds must be >= 0")
        if resolved_config.interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if resolved_config.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self._registry = registry
        self._config = resolved_config
        self._clock = clock
        self._sleep = sleep
        self.state = RegistrationPollState.QUIET_PERIOD

    def poller_run(self, label: str, name: str | None) -> RegistrationPollResult:
        """Block until the runner matching label or name reports online.

        Not-found, offline and unavailable lookups keep polling; only the
        deadline ends an unsuccessful wait.

        Args:
            label: Correlation label.
            name: Runner name used as lookup fallback.

        Returns:
            RegistrationPollResult: Online record and polling statistics.

        Raises:
            RegistrationTimeoutError: Raised when polling time exceeds the timeout.
        """

        self.state = RegistrationPollState.QUIET_PERIOD
        logger.info(
            "registration_quiet_period_started",
            quiet_period_seconds=self._config.quiet_period_seconds,
        )
        self._sleep(self._config.quiet_period_seconds)

        self.state = RegistrationPollState.POLLING
        logger.info("registration_polling_started", interval_seconds=self._config.interval_seconds)
        polling_started_at = self._clock()
        poll_count = 0
        unavailable_count = 0

        while True:
            lookup_result = self._registry.registry_lookup(label=label, name=name)
            poll_count += 1
            elapsed_seconds = self._clock() - polling_started_at

            if lookup_result.is_online:
                self.state = RegistrationPollState.REGISTERED
                logger.info(
                    "registration_completed",
                    runner_name=lookup_result.record.name,
                    poll_count=poll_count,
                    elapsed_seconds=elapsed_seconds,
                )
                return RegistrationPollResult(
                    record=lookup_result.record,
                    poll_count=poll_count,
                    elapsed_seconds=elapsed_seconds,
                )

            if lookup_result.outcome is RegistryLookupOutcome.UNAVAILABLE:
                unavailable_count += 1

            if elapsed_seconds > self._config.timeout_seconds:
                self.state = RegistrationPollState.TIMED_OUT
                logger.error(
                    "registration_timed_out",
                    poll_count=poll_count,
                    unavailable_count=unavailable_count,
                    elapsed_seconds=elapsed_seconds,
                )
                raise RegistrationTimeoutError(
                    elapsed_seconds=elapsed_seconds,
                    timeout_seconds=self._config.timeout_seconds,
                )

            logger.info(
                "registration_poll_pending",
                outcome=lookup_result.outcome.value,
                poll_count=poll_count,
                sleep_seconds=self._config.interval_seconds,
            )
            self._sleep(self._config.interval_seconds)
