"""Tests for event and change-plan formatters."""

import json
from datetime import datetime, timezone

import pytest

from stacksync.formatter import (
    EventSeverity,
    classify_status,
    event_text,
    format_changes_json,
    format_changes_markdown,
    format_changes_table,
    format_event,
)
from stacksync.models import Change, Operation, Stack, Tag
from tests.conftest import make_event


def _changes():
    return [
        Change(Operation.INSERT, Stack(name="prod-api", tags=(Tag("Env", "prod"),))),
        Change(Operation.DELETE, Stack(name="prod-old")),
        Change(Operation.UPDATE, Stack(name="prod-db")),
        Change(Operation.DELETE, Stack(name="prod-older")),
    ]


@pytest.mark.parametrize(
    "status,severity",
    [
        ("CREATE_FAILED", EventSeverity.ERROR),
        ("UPDATE_FAILED", EventSeverity.ERROR),
        ("DELETE_IN_PROGRESS", EventSeverity.ERROR),
        ("DELETE_COMPLETE", EventSeverity.ERROR),
        ("UPDATE_IN_PROGRESS", EventSeverity.WARN),
        ("UPDATE_ROLLBACK_COMPLETE", EventSeverity.WARN),
        ("CREATE_COMPLETE", EventSeverity.INFO),
        ("REVIEW_IN_PROGRESS", EventSeverity.NEUTRAL),
        ("IMPORT_COMPLETE", EventSeverity.NEUTRAL),
    ],
)
def test_classify_status(status, severity):
    assert classify_status(status) == severity


def test_format_event_columns():
    ts = datetime(2026, 2, 25, 13, 30, 0, tzinfo=timezone.utc)
    event = make_event(
        "e1",
        "MyQueue",
        "CREATE_FAILED",
        timestamp=ts,
        reason="Resource creation cancelled",
        resource_type="AWS::SQS::Queue",
    )

    line = format_event(event)

    assert line.startswith(ts.astimezone().strftime("%Y/%m/%d %H:%M:%S") + " MyQueue")
    assert line.index("AWS::SQS::Queue") == 20 + 26
    assert line.index("CREATE_FAILED") == 20 + 26 + 36
    assert line.endswith("Resource creation cancelled")


def test_format_event_without_reason_has_no_trailing_space():
    assert not format_event(make_event("e1", "app", "CREATE_COMPLETE")).endswith(" ")


def test_event_text_styled_by_severity():
    assert str(event_text(make_event("e1", "app", "CREATE_FAILED")).style) == "red"
    assert str(event_text(make_event("e1", "app", "UPDATE_COMPLETE")).style) == "yellow"
    assert str(event_text(make_event("e1", "app", "CREATE_COMPLETE")).style) == "green"


def test_event_text_keeps_brackets():
    text = event_text(make_event("e1", "app", "CREATE_FAILED", reason="[Queue] failed"))

    assert "[Queue] failed" in text.plain


def test_format_changes_json():
    data = json.loads(format_changes_json(_changes()))

    assert data["summary"] == {"total_changes": 4, "insert": 1, "update": 1, "delete": 2}
    assert [c["stack_name"] for c in data["changes"]] == [
        "prod-older",
        "prod-old",
        "prod-api",
        "prod-db",
    ]
    assert data["changes"][2]["tags"] == {"Env": "prod"}


def test_format_changes_json_empty():
    data = json.loads(format_changes_json([]))

    assert data["summary"]["total_changes"] == 0
    assert data["changes"] == []


def test_format_changes_markdown():
    output = format_changes_markdown(_changes())

    assert "1 to create, 1 to update, 2 to delete" in output
    assert "| 1 | delete | prod-older |" in output
    assert "| 4 | update | prod-db |" in output


def test_format_changes_markdown_escapes_pipes():
    output = format_changes_markdown([Change(Operation.INSERT, Stack(name="a|b"))])

    assert "a\\|b" in output


def test_format_changes_markdown_empty():
    assert format_changes_markdown([]) == "No changes."


def test_format_changes_table():
    output = format_changes_table(_changes())

    assert "Change Plan" in output
    assert "prod-api" in output
    assert "Env=prod" in output
    assert output.index("prod-older") < output.index("prod-api")


def test_format_changes_table_empty():
    assert format_changes_table([]) == "No changes."
