"""Output formatters for stack events and change plans."""

import json
from enum import IntEnum

from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from stacksync.changes import apply_order
from stacksync.models import Change, Operation, StackEvent


class EventSeverity(IntEnum):
    """Display severity of a stack event. Higher value = more severe."""

    NEUTRAL = 0
    INFO = 1
    WARN = 2
    ERROR = 3


SEVERITY_STYLES = {
    EventSeverity.ERROR: "red",
    EventSeverity.WARN: "yellow",
    EventSeverity.INFO: "green",
    EventSeverity.NEUTRAL: "blue",
}

OPERATION_STYLES = {
    Operation.INSERT: "green",
    Operation.UPDATE: "yellow",
    Operation.DELETE: "red",
}


def classify_status(status: str) -> EventSeverity:
    """Classify an event status by the words it contains."""
    if "FAILED" in status or "DELETE" in status:
        return EventSeverity.ERROR
    if "UPDATE" in status:
        return EventSeverity.WARN
    if "CREATE" in status:
        return EventSeverity.INFO
    return EventSeverity.NEUTRAL


def format_event(event: StackEvent) -> str:
    """Render one event as a fixed-width log line, timestamp in local time."""
    timestamp = event.timestamp.astimezone().strftime("%Y/%m/%d %H:%M:%S")
    return (
        f"{timestamp} {event.logical_id:<25} {event.resource_type:<35} "
        f"{event.status:<35} {event.reason or ''}"
    ).rstrip()


def event_text(event: StackEvent) -> Text:
    """A rich Text for the event, styled by severity."""
    style = SEVERITY_STYLES[classify_status(event.status)]
    return Text(format_event(event), style=style)


def _summary(changes: list[Change]) -> dict[str, int]:
    counts = {op.value: 0 for op in Operation}
    for change in changes:
        counts[change.operation.value] += 1
    return counts


def _escape_md_cell(value: str) -> str:
    """Escape characters that break markdown table cells."""
    return value.replace("|", "\\|").replace("\n", " ")


def format_changes_json(changes: list[Change]) -> str:
    """Format a change plan as JSON, in application order."""
    ordered = apply_order(changes)
    return json.dumps(
        {
            "summary": {"total_changes": len(ordered), **_summary(ordered)},
            "changes": [
                {
                    "operation": c.operation.value,
                    "stack_name": c.stack.name,
                    "tags": {t.key: t.value for t in c.stack.tags},
                }
                for c in ordered
            ],
        },
        indent=2,
    )


def format_changes_markdown(changes: list[Change]) -> str:
    """Format a change plan as Markdown."""
    if not changes:
        return "No changes."

    ordered = apply_order(changes)
    counts = _summary(ordered)
    lines = [
        f"## Change Plan: {counts['insert']} to create, {counts['update']} to update, "
        f"{counts['delete']} to delete",
        "",
        "| # | Operation | Stack |",
        "|---|-----------|-------|",
    ]
    for i, change in enumerate(ordered, start=1):
        lines.append(f"| {i} | {change.operation.value} | {_escape_md_cell(change.stack.name)} |")
    lines.append("")
    return "\n".join(lines)


def format_changes_table(changes: list[Change]) -> str:
    """Format a change plan as a Rich tree view, returned as a string."""
    if not changes:
        return "No changes."

    console = Console(record=True, width=120)
    tree = Tree("[bold]Change Plan[/bold]")

    for change in apply_order(changes):
        style = OPERATION_STYLES[change.operation]
        branch = tree.add(Text(f"{change.operation.value:<6} {change.stack.name}", style=style))
        for tag in change.stack.tags:
            branch.add(Text(f"{tag.key}={tag.value}", style="dim"))

    console.print(tree)
    return console.export_text()
