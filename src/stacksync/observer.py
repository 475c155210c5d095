"""Live event log for a single stack while an operation is in flight."""

import logging
import threading
from datetime import UTC, datetime, timedelta

from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console

from stacksync.aws.client import StackAPI
from stacksync.errors import is_validation_error
from stacksync.formatter import event_text
from stacksync.models import TERMINAL_RESOURCE_STATUSES, StackEvent

logger = logging.getLogger(__name__)

POLL_INTERVAL = 6.0
RETRY_INTERVAL = 12.0
LOOKBACK = 12.0


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=UTC)


class EventObserver:
    """Polls a stack's events, prints each new one, and reports the terminal event.

    Events older than ``lookback`` seconds before the observer started are
    ignored. A terminal event for the stack itself only counts from the second
    tick on, so a stale completion from an earlier operation is not mistaken
    for this one.
    """

    def __init__(
        self,
        client: StackAPI,
        stack_name: str,
        stop: threading.Event,
        console: Console | None = None,
        poll_interval: float = POLL_INTERVAL,
        retry_interval: float = RETRY_INTERVAL,
        lookback: float = LOOKBACK,
    ):
        self._client = client
        self._stack_name = stack_name
        self._stop = stop
        self._console = console or Console()
        self._poll_interval = poll_interval
        self._retry_interval = retry_interval
        self._lookback = lookback

    def run(self) -> StackEvent | None:
        """Observe until a terminal event is seen (returned) or stop is set (None)."""
        since = datetime.now(UTC) - timedelta(seconds=self._lookback)
        seen: set[str] = set()
        iteration = 0
        backed_off = False

        # a retry after a backoff goes straight to the fetch
        while backed_off or not self._stop.wait(self._poll_interval):
            backed_off = False
            try:
                events = self._fetch(since, seen)
            except (BotoCoreError, ClientError) as e:
                if not is_validation_error(e):
                    self._console.print(
                        f"describe stack events failed for stack, {self._stack_name} - {e}",
                        markup=False,
                    )
                if self._stop.wait(self._retry_interval):
                    return None
                iteration += 1
                backed_off = True
                continue

            # pages arrive newest first
            for event in reversed(events):
                seen.add(event.event_id)
                self._console.print(event_text(event))
                if iteration > 0 and self.is_complete(event):
                    logger.debug("observed terminal event for stack, %s: %s", self._stack_name, event.status)
                    return event

            iteration += 1

        return None

    def is_complete(self, event: StackEvent) -> bool:
        return event.logical_id == self._stack_name and event.status in TERMINAL_RESOURCE_STATUSES

    def _fetch(self, since: datetime, seen: set[str]) -> list[StackEvent]:
        """Unseen events newer than since, across all pages, newest first."""
        events: list[StackEvent] = []
        batch: set[str] = set()
        next_token = None

        while True:
            page = self._client.describe_stack_events(self._stack_name, next_token)
            for event in page.items:
                if _aware(event.timestamp) < since:
                    break
                if event.event_id in seen or event.event_id in batch:
                    continue
                batch.add(event.event_id)
                events.append(event)

            next_token = page.next_token
            if not next_token:
                return events
