"""JSON Lines event batch reader.

Each non-blank line is one JSON object whose `kind` names the event class
(`TokenTransfer`, `CampaignDeposit`, ...) and whose remaining keys are that
class's fields. Raw amounts may be JSON numbers or decimal strings.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from marks_ledger.domain import DOMAIN_EVENT_TYPES, ChainEvent

_EVENT_ADAPTERS: dict[str, TypeAdapter] = {
    kind: TypeAdapter(event_type) for kind, event_type in DOMAIN_EVENT_TYPES.items()
}


class EventBatchError(ValueError):
    """Raised when an event batch line cannot be parsed into a known event.

    Attributes:
        line_number: One-based line number of the offending line.
    """

    def __init__(self, message: str, line_number: int):
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number


def job_parse_event(payload: dict[str, Any], line_number: int = 1) -> ChainEvent:
    """Parse one decoded event object into its typed event.

    Args:
        payload: Decoded JSON object with a `kind` key.
        line_number: Source line used in error messages.

    Returns:
        ChainEvent: Typed event instance.

    Raises:
        EventBatchError: Raised when kind is unknown or fields are invalid.
    """

    if not isinstance(payload, dict):
        raise EventBatchError("event line must be a JSON object", line_number)

    fields = dict(payload)
    kind = fields.pop("kind", None)
    event_adapter = _EVENT_ADAPTERS.get(kind) if isinstance(kind, str) else None
    if event_adapter is None:
        raise EventBatchError(f"unsupported event kind={kind}", line_number)

    try:
        return event_adapter.validate_python(fields)
    except ValidationError as error:
        raise EventBatchError(f"invalid {kind} fields: {error.errors(include_url=False)}", line_number) from error


def job_read_event_batch(batch_path: str | Path) -> list[ChainEvent]:
    """Read a JSON Lines batch and return its events in replay order.

    Args:
        batch_path: Path of the JSON Lines file.

    Returns:
        list[ChainEvent]: Events sorted by `(block_number, log_index)`.

    Raises:
        OSError: Raised when the batch file cannot be read.
        EventBatchError: Raised when a line is malformed.
    """

    events: list[ChainEvent] = []
    with Path(batch_path).open("r", encoding="utf-8") as batch_file:
        for line_number, line in enumerate(batch_file, start=1):
            stripped_line = line.strip()
            if not stripped_line:
                continue
            try:
                payload = json.loads(stripped_line)
            except json.JSONDecodeError as error:
                raise EventBatchError(f"invalid JSON: {error.msg}", line_number) from error
            events.append(job_parse_event(payload, line_number))

    events.sort(key=lambda event: event.event_order_key())
    return events
