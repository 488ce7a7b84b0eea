"""Shared health and timeline diagnostics contracts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class HealthStatus:
    """Health response contract used by health-check surfaces.

    Attributes:
        status: Overall status text for service health.
        detail: Additional message suitable for operational diagnostics.
    """

    status: str
    detail: str


def domain_build_stage_event(
    stage: str,
    status: str,
    details: dict[str, Any] | None = None,
    order_key: tuple[int, int] | None = None,
) -> dict[str, object]:
    """Build one structured replay timeline event payload.

    Args:
        stage: Stage name.
        status: Stage status marker.
        details: Optional structured details object.
        order_key: Optional `(block_number, log_index)` of the event being processed.

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
    if order_key is not None:
        event_payload["block_number"] = order_key[0]
        event_payload["log_index"] = order_key[1]
    if details is not None:
        event_payload["details"] = details
    return event_payload
