"""Project-native typed exceptions for compute and registry adapter failures."""

from __future__ import annotations


class WorkerLifecycleError(Exception):
    """Base exception for every fatal runner lifecycle failure."""


class ComputeProviderError(WorkerLifecycleError):
    """Compute provider rejected or failed a request.

    Attributes:
        error_code: Provider error code, for example `RequestLimitExceeded`.
    """

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class ComputeProviderConnectionError(ComputeProviderError, ConnectionError):
    """Provider could not be reached or credentials could not be resolved."""


class ComputeWaitError(ComputeProviderError):
    """Instance reached a terminal failure state or the provider wait timed out."""


class RegistryError(WorkerLifecycleError):
    """Registry rejected or failed a request.

    Attributes:
        status_code: HTTP status code when the registry answered.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RegistryConnectionError(RegistryError, ConnectionError):
    """Transport-level failure while talking to the registry."""


class RegistryUnavailableError(RegistryError):
    """Registry could not be listed, so a record decision cannot be made."""


class RegistrationTimeoutError(WorkerLifecycleError, TimeoutError):
    """Runner did not come online in the registry before the deadline.

    Attributes:
        elapsed_seconds: Time spent polling before giving up.
        timeout_seconds: Configured polling deadline.
    """

    def __init__(self, elapsed_seconds: float, timeout_seconds: float):
        super().__init__(
            f"A timeout of {timeout_seconds:g}s is exceeded after waiting {elapsed_seconds:g}s. "
            "The instance was not able to register itself as a new self-hosted runner."
        )
        self.elapsed_seconds = elapsed_seconds
        self.timeout_seconds = timeout_seconds
