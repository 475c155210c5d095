"""Tests for stacksync data models."""
from datetime import UTC, datetime

import pytest

from stacksync.models import (
    DELETED_STATUSES,
    TERMINAL_RESOURCE_STATUSES,
    Change,
    Operation,
    Page,
    ResourceStatus,
    Stack,
    StackEvent,
    StackStatus,
    StackSummary,
    Tag,
)


def test_operation_values():
    """Test Operation enum renders as lower-case verbs."""
    assert Operation.INSERT.value == "insert"
    assert Operation.UPDATE.value == "update"
    assert Operation.DELETE.value == "delete"


def test_enums_are_string_enums():
    """Test enums inherit from str so raw API values compare equal."""
    assert isinstance(StackStatus.CREATE_COMPLETE, str)
    assert isinstance(ResourceStatus.UPDATE_FAILED, str)
    assert StackStatus.DELETE_COMPLETE == "DELETE_COMPLETE"


def test_deleted_statuses():
    assert DELETED_STATUSES == {StackStatus.DELETE_COMPLETE, StackStatus.DELETE_FAILED}


def test_terminal_resource_statuses():
    assert "CREATE_COMPLETE" in TERMINAL_RESOURCE_STATUSES
    assert "DELETE_FAILED" in TERMINAL_RESOURCE_STATUSES
    assert "UPDATE_ROLLBACK_COMPLETE" not in TERMINAL_RESOURCE_STATUSES
    assert "CREATE_IN_PROGRESS" not in TERMINAL_RESOURCE_STATUSES
    assert len(TERMINAL_RESOURCE_STATUSES) == 6


@pytest.mark.parametrize(
    "status,deleted",
    [
        (StackStatus.DELETE_COMPLETE, True),
        (StackStatus.DELETE_FAILED, True),
        ("DELETE_COMPLETE", True),
        (StackStatus.DELETE_IN_PROGRESS, False),
        (StackStatus.CREATE_COMPLETE, False),
    ],
)
def test_summary_deleted(status, deleted):
    assert StackSummary(name="s", status=status).deleted is deleted


def test_stack_is_frozen():
    """Test Stack cannot be modified after construction."""
    stack = Stack(name="app", template_body="{}", tags=(Tag("Env", "prod"),))
    with pytest.raises(AttributeError):
        stack.name = "other"


def test_change_str():
    change = Change(operation=Operation.INSERT, stack=Stack(name="prod-api"))
    assert str(change) == "insert prod-api"


def test_tag_to_api():
    assert Tag("Env", "prod").to_api() == {"Key": "Env", "Value": "prod"}


def test_stack_event_creation():
    """Test StackEvent dataclass can be created with all fields."""
    ts = datetime(2026, 2, 25, 13, 30, 0, tzinfo=UTC)
    event = StackEvent(
        event_id="evt-1",
        timestamp=ts,
        logical_id="MyQueue",
        resource_type="AWS::SQS::Queue",
        status="CREATE_COMPLETE",
        reason="",
    )
    assert event.timestamp == ts
    assert event.logical_id == "MyQueue"


def test_page_defaults():
    page = Page()
    assert page.items == []
    assert page.next_token is None
