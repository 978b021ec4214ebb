"""Correlation label generation and validation."""

from __future__ import annotations

import secrets
import string
from typing import Final

_LABEL_ALPHABET: Final[str] = string.ascii_lowercase + string.digits
DEFAULT_LABEL_LENGTH: Final[int] = 10


def domain_generate_correlation_label(length: int = DEFAULT_LABEL_LENGTH) -> str:
    """Generate a random label that ties one provisioning attempt to its runner record.

    Args:
        length: Number of characters in the label.

    Returns:
        str: Lowercase alphanumeric label.

    Raises:
        ValueError: Raised when length is not positive.
    """

    if length < 1:
        raise ValueError("length must be >= 1")
    return "".join(secrets.choice(_LABEL_ALPHABET) for _ in range(length))


def domain_validate_correlation_label(value: str) -> str:
    """Validate a generated or caller-supplied correlation label.

    Args:
        value: Candidate label.

    Returns:
        str: Stripped label.

    Raises:
        ValueError: Raised when label is blank or contains whitespace or commas.
    """

    normalized_value = value.strip()
    if not normalized_value:
        raise ValueError("label must not be blank")
    # config.sh takes a comma separated label list
    if "," in normalized_value or any(character.isspace() for character in normalized_value):
        raise ValueError("label must not contain commas or whitespace")
    return normalized_value
