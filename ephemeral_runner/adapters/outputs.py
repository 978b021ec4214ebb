"""Invocation output publishing for workflow runners and plain shells."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import TextIO

import structlog

from .interfaces import LifecycleOutputPort

logger = structlog.get_logger(__name__)


class GitHubOutputWriter(LifecycleOutputPort):
    """Write `name=value` outputs to the `GITHUB_OUTPUT` file, or to stdout outside Actions."""

    def __init__(self, output_path: str | None = None, stream: TextIO | None = None):
        """Initialize output writer.

        Args:
            output_path: Output file path; defaults to the `GITHUB_OUTPUT` environment variable.
            stream: Fallback stream used when no output file is configured.

        Returns:
            None: Initializer does not return a value.

        Raises:
            RuntimeError: Initializer does not raise runtime errors.
        """

        resolved_path = output_path if output_path is not None else os.environ.get("GITHUB_OUTPUT")
        self._output_path = Path(resolved_path) if resolved_path else None
        self._stream = stream

    def output_emit(self, name: str, value: str) -> None:
        """Append one output value.

        Args:
            name: Output name.
            value: Output value; must be a single line.

        Returns:
            None: Writes as side effect.

        Raises:
            ValueError: Raised when the name is blank or the value spans lines.
        """

        if not name.strip():
            raise ValueError("output name must not be blank")
        if "\n" in value or "\r" in value:
            raise ValueError("output value must be a single line")

        line = f"{name}={value}\n"
        if self._output_path is not None:
            with self._output_path.open("a", encoding="utf-8") as output_file:
                output_file.write(line)
        else:
            stream = self._stream or sys.stdout
            stream.write(line)
            stream.flush()
        logger.info("lifecycle_output_emitted", output_name=name, output_value=value)
