"""Lifecycle stage timeline helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def domain_build_stage_event(
    stage: str,
    status: str,
    details: dict[str, Any] | None = None,
) -> dict[str, object]:
    """Build one structured timeline event payload.

    Args:
        stage: Lifecycle stage name, for example `provision` or `registration`.
        status: Stage status marker (`started`, `completed`, `skipped`, `failed`).
        details: Optional structured details object.

    Returns:
        dict[str, object]: Structured timeline event.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    event_payload: dict[str, object] = {
        "stage": stage,
        "status": status,
        "at_utc": datetime.now(timezone.utc).isoformat(),
    }
    if details is not None:
        event_payload["details"] = details
    return event_payload


def domain_find_failed_stage(timeline: list[dict[str, object]]) -> str | None:
    """Return the name of the first non-`run` stage that failed, if any.

    Args:
        timeline: Recorded stage events in order.

    Returns:
        str | None: Failed stage name, or None when no stage failed.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    for event in timeline:
        if event.get("status") == "failed" and event.get("stage") != "run":
            return str(event["stage"])
    return None
