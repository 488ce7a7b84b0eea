"""Tests for JSON Lines event batch parsing."""

from __future__ import annotations

import pytest

from marks_ledger.domain import BlockTick, CampaignDeposit, TokenTransfer
from marks_ledger.jobs import EventBatchError, job_parse_event, job_read_event_batch

CAMPAIGN = "0x" + "7" * 40
USER_A = "0x" + "a" * 40


def test_job_parse_event_builds_typed_event_with_string_amounts() -> None:
    """Raw amounts given as decimal strings are coerced to integers.

    Returns:
        None: Assertions validate typed parsing.

    Raises:
        AssertionError: Raised when parsed fields differ.
    """

    event = job_parse_event(
        {
            "kind": "CampaignDeposit",
            "block_number": 12,
            "log_index": 4,
            "block_timestamp": 1_700_000_000,
            "campaign_address": CAMPAIGN,
            "user": USER_A,
            "amount_in": "100000000000000000000",
        }
    )

    assert isinstance(event, CampaignDeposit)
    assert event.amount_in == 100 * 10**18
    assert event.event_order_key() == (12, 4)
    assert event.event_kind == "CampaignDeposit"


def test_job_parse_event_rejects_unknown_kind_and_missing_fields() -> None:
    with pytest.raises(EventBatchError, match="unsupported event kind"):
        job_parse_event({"kind": "Liquidation", "block_number": 1, "log_index": 0, "block_timestamp": 1})
    with pytest.raises(EventBatchError, match="invalid BlockTick fields"):
        job_parse_event({"kind": "BlockTick", "block_number": 1}, line_number=9)
    with pytest.raises(EventBatchError, match="JSON object"):
        job_parse_event(["BlockTick"])


def test_job_read_event_batch_skips_blank_lines_and_sorts_by_order_key(tmp_path) -> None:
    """Blank lines are ignored and events come back in `(block, log_index)` order.

    Returns:
        None: Assertions validate batch ordering.

    Raises:
        AssertionError: Raised when order or count is wrong.
    """

    batch_path = tmp_path / "events.jsonl"
    batch_path.write_text(
        "\n".join(
            [
                '{"kind": "BlockTick", "block_number": 5, "log_index": 0, "block_timestamp": 1700000100}',
                "",
                '{"kind": "TokenTransfer", "block_number": 3, "log_index": 2, "block_timestamp": 1700000000,'
                ' "token_address": "0x' + "3" * 40 + '", "from_address": "0x' + "0" * 40 + '",'
                ' "to_address": "0x' + "a" * 40 + '", "amount": 10}',
                "   ",
                '{"kind": "BlockTick", "block_number": 3, "log_index": 1, "block_timestamp": 1700000000}',
            ]
        )
        + "\n",
        encoding="utf-8",
    )

    events = job_read_event_batch(batch_path)

    assert [event.event_order_key() for event in events] == [(3, 1), (3, 2), (5, 0)]
    assert isinstance(events[0], BlockTick)
    assert isinstance(events[1], TokenTransfer)
    assert events[1].amount == 10


def test_job_read_event_batch_reports_line_number_of_invalid_json(tmp_path) -> None:
    batch_path = tmp_path / "events.jsonl"
    batch_path.write_text(
        '{"kind": "BlockTick", "block_number": 1, "log_index": 0, "block_timestamp": 1}\n{not json\n',
        encoding="utf-8",
    )

    with pytest.raises(EventBatchError, match="invalid JSON") as error_info:
        job_read_event_batch(batch_path)

    assert error_info.value.line_number == 2
