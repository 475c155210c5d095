"""Applies stack changes against CloudFormation and streams their progress."""

import logging
import threading
import time
from collections.abc import Iterator
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from contextlib import contextmanager

from botocore.exceptions import BotoCoreError, ClientError, WaiterError
from rich.console import Console

from stacksync.aws.client import WAIT_CREATE, WAIT_DELETE, WAIT_UPDATE, StackAPI
from stacksync.changes import apply_order
from stacksync.errors import (
    DOES_NOT_EXIST_MESSAGE,
    NO_UPDATES_MESSAGE,
    ApplyError,
    OperationCancelled,
    StackOperationError,
    StackSyncError,
    TemplateError,
    is_validation_error,
)
from stacksync.models import Change, Export, Operation, Stack, StackSummary
from stacksync.observer import POLL_INTERVAL, RETRY_INTERVAL, EventObserver
from stacksync.options import Options
from stacksync.template import declared_parameters, parse_template

logger = logging.getLogger(__name__)

# How often a blocked operation re-checks the caller's cancel event.
CANCEL_CHECK_INTERVAL = 0.5


@contextmanager
def _timed(action: str, stack_name: str) -> Iterator[None]:
    begin = time.monotonic()
    try:
        yield
    except Exception as e:
        logger.error(
            "%s failed for stack, %s (%.1fs) - %s", action, stack_name, time.monotonic() - begin, e
        )
        raise
    logger.info("%s stack, %s (%.1fs)", action, stack_name, time.monotonic() - begin)


def _check_cancelled(cancel: threading.Event | None, stack_name: str) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelled(stack_name)


class Manager:
    """Reconciles CloudFormation stacks one operation at a time."""

    def __init__(
        self,
        client: StackAPI,
        options: Options | None = None,
        console: Console | None = None,
        poll_interval: float = POLL_INTERVAL,
        retry_interval: float = RETRY_INTERVAL,
    ):
        self._client = client
        self._options = options or Options()
        self._console = console or Console()
        self._poll_interval = poll_interval
        self._retry_interval = retry_interval

    @property
    def options(self) -> Options:
        return self._options

    def apply(self, changes: list[Change], cancel: threading.Event | None = None) -> None:
        """Apply deletes in reverse order, then inserts and updates in order.

        Stops at the first failure; already applied changes are kept.
        """
        begin = time.monotonic()
        applied = 0
        try:
            for change in apply_order(changes):
                _check_cancelled(cancel, change.stack.name)
                try:
                    self._apply_change(change, cancel)
                except OperationCancelled:
                    raise
                except StackSyncError as e:
                    raise ApplyError(change, e) from e
                applied += 1
        finally:
            logger.info(
                "applied %d of %d cloudformation changes (%.1fs)",
                applied,
                len(changes),
                time.monotonic() - begin,
            )

    def _apply_change(self, change: Change, cancel: threading.Event | None) -> None:
        if change.operation == Operation.DELETE:
            self.delete(change.stack.name, cancel)
        elif change.operation == Operation.INSERT:
            self.create(change.stack, cancel)
        elif change.operation == Operation.UPDATE:
            self.update(change.stack, cancel)

    def create(self, stack: Stack, cancel: threading.Event | None = None) -> None:
        """Create a stack and block until CloudFormation reports it complete."""
        if self._options.dry_run:
            logger.info("dry run, create not applied for stack, %s", stack.name)
            return

        with _timed("created", stack.name):
            try:
                self._client.create_stack(
                    stack.name,
                    stack.template_body,
                    self._parameters(stack),
                    self._tags(stack),
                    self._options.capabilities,
                )
            except (BotoCoreError, ClientError) as e:
                raise StackOperationError("create", stack.name, "unable to create stack") from e

            try:
                self._await(stack.name, WAIT_CREATE, cancel)
            except (BotoCoreError, ClientError) as e:
                raise StackOperationError(
                    "create", stack.name, "failed while waiting for create to finish for stack"
                ) from e

    def update(self, stack: Stack, cancel: threading.Event | None = None) -> None:
        """Update a stack; an update with nothing to change is a no-op."""
        if self._options.dry_run:
            logger.info("dry run, update not applied for stack, %s", stack.name)
            return

        with _timed("updated", stack.name):
            try:
                self._client.update_stack(
                    stack.name,
                    stack.template_body,
                    self._parameters(stack),
                    self._tags(stack),
                    self._options.capabilities,
                )
            except ClientError as e:
                if is_validation_error(e, NO_UPDATES_MESSAGE):
                    logger.info("skipping update, no updates required for stack, %s", stack.name)
                    return
                raise StackOperationError("update", stack.name, "unable to update stack") from e
            except BotoCoreError as e:
                raise StackOperationError("update", stack.name, "unable to update stack") from e

            try:
                self._await(stack.name, WAIT_UPDATE, cancel)
            except (BotoCoreError, ClientError) as e:
                raise StackOperationError(
                    "update", stack.name, "failed while waiting for update to finish for stack"
                ) from e

    def delete(self, stack_name: str, cancel: threading.Event | None = None) -> None:
        """Delete a stack; a stack that never becomes ready is treated as gone."""
        if self._options.dry_run:
            logger.info("dry run, delete not applied for stack, %s", stack_name)
            return

        with _timed("deleted", stack_name):
            try:
                self._client.delete_stack(stack_name)
            except (BotoCoreError, ClientError) as e:
                raise StackOperationError("delete", stack_name, "failed to delete stack") from e

            try:
                self._await(stack_name, WAIT_DELETE, cancel)
            except WaiterError as e:
                logger.info("stack not ready while waiting for delete, %s - %s", stack_name, e)
            except (BotoCoreError, ClientError) as e:
                raise StackOperationError(
                    "delete", stack_name, "failed while waiting for delete to finish for stack"
                ) from e

    def upsert(self, stack: Stack, cancel: threading.Event | None = None) -> None:
        """Create the stack if absent, otherwise update it when its template changed."""
        try:
            current = self._client.get_template(stack.name)
        except ClientError as e:
            if is_validation_error(e, DOES_NOT_EXIST_MESSAGE):
                self.create(stack, cancel)
                return
            raise StackOperationError("upsert", stack.name, "unable to upsert stack") from e
        except BotoCoreError as e:
            raise StackOperationError("upsert", stack.name, "unable to upsert stack") from e

        try:
            got = parse_template(current)
        except TemplateError as e:
            raise StackOperationError(
                "upsert", stack.name, "unable to upsert stack: unable to parse current template"
            ) from e
        try:
            want = parse_template(stack.template_body)
        except TemplateError as e:
            raise StackOperationError(
                "upsert", stack.name, "unable to upsert stack: unable to parse new template"
            ) from e

        if got == want:
            logger.info("template unchanged, skipping update for stack, %s", stack.name)
            return
        self.update(stack, cancel)

    def list_stacks(self) -> list[StackSummary]:
        """All stack summaries whose names start with the configured prefix."""
        begin = time.monotonic()
        summaries: list[StackSummary] = []
        next_token = None
        while True:
            try:
                page = self._client.list_stacks(next_token)
            except (BotoCoreError, ClientError) as e:
                raise StackSyncError(f"failed to list stacks: {e}") from e

            summaries.extend(s for s in page.items if s.name.startswith(self._options.prefix))

            next_token = page.next_token
            if not next_token:
                break

        logger.info(
            "retrieved %d stack summaries (%.1fs, prefix: %r)",
            len(summaries),
            time.monotonic() - begin,
            self._options.prefix,
        )
        return summaries

    def exports(self) -> list[Export]:
        """All exports in the account and region, across every page."""
        exports: list[Export] = []
        next_token = None
        while True:
            try:
                page = self._client.list_exports(next_token)
            except (BotoCoreError, ClientError) as e:
                raise StackSyncError(f"unable to list cloudformation exports: {e}") from e

            exports.extend(page.items)

            next_token = page.next_token
            if not next_token:
                return exports

    def _await(self, stack_name: str, waiter_name: str, cancel: threading.Event | None) -> None:
        """Block until the waiter returns, the observer sees a terminal event, or cancel is set.

        Waiter errors propagate. Both workers share one stop event and are
        joined before returning.
        """
        stop = threading.Event()
        observer = EventObserver(
            self._client,
            stack_name,
            stop,
            console=self._console,
            poll_interval=self._poll_interval,
            retry_interval=self._retry_interval,
        )
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix=f"stacksync-{stack_name}")
        try:
            watching = executor.submit(observer.run)
            waiting = executor.submit(self._client.wait, waiter_name, stack_name, stop)
            pending = {watching, waiting}

            while True:
                _check_cancelled(cancel, stack_name)
                done, pending = wait(
                    pending, timeout=CANCEL_CHECK_INTERVAL, return_when=FIRST_COMPLETED
                )
                if waiting in done:
                    waiting.result()
                    return
                if watching in done:
                    if watching.exception() is not None:
                        logger.warning(
                            "event observer failed for stack, %s - %s",
                            stack_name,
                            watching.exception(),
                        )
                        continue
                    event = watching.result()
                    if event is not None:
                        if event.status.endswith("_FAILED"):
                            logger.warning(
                                "stack reached %s, %s - %s", event.status, stack_name, event.reason
                            )
                        return
        finally:
            stop.set()
            executor.shutdown(wait=True, cancel_futures=True)

    def _parameters(self, stack: Stack) -> list[dict[str, str]]:
        """Configured parameters that the stack's template declares."""
        if not self._options.parameters:
            return []
        try:
            declared = declared_parameters(stack.template_body)
        except TemplateError as e:
            raise StackOperationError("parameters", stack.name, f"unable to read parameters: {e}") from e
        return [
            {"ParameterKey": name, "ParameterValue": self._options.parameters[name]}
            for name in declared
            if name in self._options.parameters
        ]

    def _tags(self, stack: Stack) -> list[dict[str, str]]:
        """Configured tags merged with the stack's own; stack tags win on a shared key."""
        merged = {tag.key: tag for tag in self._options.tags}
        merged.update((tag.key, tag) for tag in stack.tags)
        return [tag.to_api() for tag in merged.values()]
