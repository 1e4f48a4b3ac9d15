"""Structured run timeline events persisted as processing run diagnostics."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def domain_build_stage_event(
    stage: str,
    status: str,
    details: dict[str, Any] | None = None,
) -> dict[str, object]:
    """Build one timeline event for a processing stage.

    Args:
        stage: Stage name, e.g. `snapshot_restore` or `apply`.
        status: Stage status marker (`started`, `completed`, `failed`, ...).
        details: Optional JSON-compatible details.

    Returns:
        dict[str, object]: Timeline event with a UTC timestamp.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    stage_event: dict[str, object] = {
        "stage": stage,
        "status": status,
        "at_utc": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        stage_event["details"] = details
    return stage_event


def domain_elapsed_ms(started_at_utc: datetime) -> int:
    """Return non-negative milliseconds elapsed since `started_at_utc`."""

    return max(0, int((datetime.now(timezone.utc) - started_at_utc).total_seconds() * 1000))
