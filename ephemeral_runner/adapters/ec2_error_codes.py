"""Canonical EC2 error-code semantics for provisioning and teardown routing."""

from __future__ import annotations

from enum import Enum
from typing import Final

from .errors import ComputeProviderError


class Ec2ErrorCode(str, Enum):
    """EC2 API error codes used by lifecycle routing logic."""

    REQUEST_LIMIT_EXCEEDED = "RequestLimitExceeded"
    INSTANCE_ID_NOT_FOUND = "InvalidInstanceID.NotFound"


EC2_RETRYABLE_START_CODES: Final[frozenset[str]] = frozenset({Ec2ErrorCode.REQUEST_LIMIT_EXCEEDED.value})

EC2_ALREADY_TERMINATED_CODES: Final[frozenset[str]] = frozenset({Ec2ErrorCode.INSTANCE_ID_NOT_FOUND.value})


def ec2_error_is_retryable_start_failure(error: Exception) -> bool:
    """Classify a provisioning failure as retryable.

    Args:
        error: Exception raised by the provisioner start call.

    Returns:
        bool: True only for provider rate-limit errors.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return isinstance(error, ComputeProviderError) and error.error_code in EC2_RETRYABLE_START_CODES


def ec2_error_is_already_terminated(error_code: str | None) -> bool:
    """Return whether a terminate failure means the instance no longer exists.

    Args:
        error_code: EC2 error code from the failed terminate call.

    Returns:
        bool: True when the instance is already gone.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return error_code in EC2_ALREADY_TERMINATED_CODES
