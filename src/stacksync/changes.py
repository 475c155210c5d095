"""Compute the changes needed to move deployed stacks toward desired stacks."""

from stacksync.models import Change, Operation, Stack, StackSummary


def calculate_changes(observed: list[StackSummary], desired: list[Stack]) -> list[Change]:
    """Diff observed stack summaries against desired stacks by name.

    Inserts and updates follow the order of ``desired``; deletes follow, in the
    order of ``observed``. Summaries in a deleted state are ignored.
    """
    observed = [s for s in observed if not s.deleted]
    observed_names = {s.name for s in observed}
    desired_names = {s.name for s in desired}

    changes = []
    for stack in desired:
        operation = Operation.UPDATE if stack.name in observed_names else Operation.INSERT
        changes.append(Change(operation=operation, stack=stack))

    for summary in observed:
        if summary.name not in desired_names:
            changes.append(Change(operation=Operation.DELETE, stack=Stack(name=summary.name)))

    return changes


def apply_order(changes: list[Change]) -> list[Change]:
    """Order changes for application: deletes last-to-first, then inserts and updates."""
    deletes = [c for c in reversed(changes) if c.operation == Operation.DELETE]
    upserts = [c for c in changes if c.operation != Operation.DELETE]
    return deletes + upserts
