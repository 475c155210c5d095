"""Thin boto3 wrapper for the CloudFormation calls used by reconciliation."""

import json
import threading
from collections.abc import Sequence
from typing import Protocol

import boto3
from botocore.exceptions import WaiterError

from stacksync.models import Export, Page, StackEvent, StackStatus, StackSummary

WAIT_CREATE = "stack_create_complete"
WAIT_UPDATE = "stack_update_complete"
WAIT_DELETE = "stack_delete_complete"

# Reason botocore gives when a waiter runs out of attempts without reaching a
# success or failure state.
MAX_ATTEMPTS_REASON = "Max attempts exceeded"


class StackAPI(Protocol):
    """The remote operations the manager and observer depend on."""

    def create_stack(
        self,
        stack_name: str,
        template_body: str,
        parameters: Sequence[dict[str, str]],
        tags: Sequence[dict[str, str]],
        capabilities: Sequence[str],
    ) -> str: ...

    def update_stack(
        self,
        stack_name: str,
        template_body: str,
        parameters: Sequence[dict[str, str]],
        tags: Sequence[dict[str, str]],
        capabilities: Sequence[str],
    ) -> str: ...

    def delete_stack(self, stack_name: str) -> None: ...

    def get_template(self, stack_name: str) -> str: ...

    def list_stacks(self, next_token: str | None = None) -> Page[StackSummary]: ...

    def list_exports(self, next_token: str | None = None) -> Page[Export]: ...

    def describe_stack_events(
        self, stack_name: str, next_token: str | None = None
    ) -> Page[StackEvent]: ...

    def wait(
        self, waiter_name: str, stack_name: str, stop: threading.Event | None = None
    ) -> None: ...


def _status(value: str) -> StackStatus | str:
    try:
        return StackStatus(value)
    except ValueError:
        return value


class CloudFormationClient:
    """Wraps boto3 CloudFormation calls and returns stacksync dataclasses."""

    def __init__(self, region: str | None = None, client=None):
        self._client = client or boto3.client(
            "cloudformation", **({"region_name": region} if region else {})
        )

    def create_stack(self, stack_name, template_body, parameters, tags, capabilities) -> str:
        """Start creating a stack. Returns the stack id."""
        resp = self._client.create_stack(
            StackName=stack_name,
            TemplateBody=template_body,
            Parameters=list(parameters),
            Tags=list(tags),
            Capabilities=list(capabilities),
        )
        return resp["StackId"]

    def update_stack(self, stack_name, template_body, parameters, tags, capabilities) -> str:
        """Start updating a stack. Returns the stack id."""
        resp = self._client.update_stack(
            StackName=stack_name,
            TemplateBody=template_body,
            Parameters=list(parameters),
            Tags=list(tags),
            Capabilities=list(capabilities),
        )
        return resp["StackId"]

    def delete_stack(self, stack_name: str) -> None:
        self._client.delete_stack(StackName=stack_name)

    def get_template(self, stack_name: str) -> str:
        """Fetch the deployed template body.

        boto3 decodes JSON bodies into dicts; they are re-serialised here.
        """
        body = self._client.get_template(StackName=stack_name)["TemplateBody"]
        if isinstance(body, str):
            return body
        return json.dumps(body)

    def list_stacks(self, next_token: str | None = None) -> Page[StackSummary]:
        kwargs = {"NextToken": next_token} if next_token else {}
        resp = self._client.list_stacks(**kwargs)
        summaries = [
            StackSummary(
                name=s["StackName"],
                status=_status(s["StackStatus"]),
                stack_id=s.get("StackId"),
            )
            for s in resp.get("StackSummaries", [])
        ]
        return Page(items=summaries, next_token=resp.get("NextToken"))

    def list_exports(self, next_token: str | None = None) -> Page[Export]:
        kwargs = {"NextToken": next_token} if next_token else {}
        resp = self._client.list_exports(**kwargs)
        exports = [
            Export(
                name=e["Name"],
                value=e["Value"],
                exporting_stack_id=e.get("ExportingStackId", ""),
            )
            for e in resp.get("Exports", [])
        ]
        return Page(items=exports, next_token=resp.get("NextToken"))

    def describe_stack_events(
        self, stack_name: str, next_token: str | None = None
    ) -> Page[StackEvent]:
        """Fetch one page of stack events, newest first."""
        kwargs = {"StackName": stack_name}
        if next_token:
            kwargs["NextToken"] = next_token

        resp = self._client.describe_stack_events(**kwargs)
        events = [
            StackEvent(
                event_id=e["EventId"],
                timestamp=e["Timestamp"],
                logical_id=e.get("LogicalResourceId", ""),
                resource_type=e.get("ResourceType", ""),
                status=e.get("ResourceStatus", ""),
                reason=e.get("ResourceStatusReason", ""),
            )
            for e in resp.get("StackEvents", [])
        ]
        return Page(items=events, next_token=resp.get("NextToken"))

    def wait(
        self, waiter_name: str, stack_name: str, stop: threading.Event | None = None
    ) -> None:
        """Block until the named boto3 waiter succeeds, raises WaiterError, or stop is set.

        The waiter runs one attempt at a time with the waiter's own delay and
        attempt budget, so a set stop event is seen between attempts.
        """
        stop = stop or threading.Event()
        waiter = self._client.get_waiter(waiter_name)
        delay = waiter.config.delay
        max_attempts = waiter.config.max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                waiter.wait(StackName=stack_name, WaiterConfig={"Delay": delay, "MaxAttempts": 1})
                return
            except WaiterError as e:
                reason = e.kwargs.get("reason", "")
                if not reason.startswith(MAX_ATTEMPTS_REASON) or attempt == max_attempts:
                    raise
            if stop.wait(delay):
                return
