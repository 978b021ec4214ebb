"""Structured logging setup with structlog on top of stdlib logging."""

import logging
import sys

import structlog


def config_configure_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog and the root stdlib handler for one process.

    Args:
        log_level: Standard logging level name.
        log_format: `json` for machine-readable lines, anything else for console output.

    Returns:
        None: Logging is configured as a process-wide side effect.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )
    # botocore logs every credential lookup at INFO
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    formatter = structlog.stdlib.ProcessorFormatter(processor=renderer)
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def config_bind_log_context(**context: object) -> None:
    """Bind invocation-wide context values such as mode and label to every log line."""

    structlog.contextvars.bind_contextvars(**context)
