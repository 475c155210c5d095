"""Exceptions raised by stacksync and helpers for inspecting remote errors."""

from botocore.exceptions import ClientError

VALIDATION_ERROR = "ValidationError"
NO_UPDATES_MESSAGE = "No updates are to be performed"
DOES_NOT_EXIST_MESSAGE = "does not exist"


class StackSyncError(Exception):
    """Base class for stacksync errors."""


class ConfigError(StackSyncError):
    """Invalid configuration or desired stack set."""


class TemplateError(StackSyncError):
    """A template body could not be parsed."""


class StackOperationError(StackSyncError):
    """A remote call for a single stack failed."""

    def __init__(self, operation: str, stack_name: str, message: str):
        super().__init__(f"{message}, {stack_name}")
        self.operation = operation
        self.stack_name = stack_name


class ApplyError(StackSyncError):
    """Applying a batch of changes stopped at the first failing change."""

    def __init__(self, change, cause: Exception):
        super().__init__(f"failed to apply changes: {cause}")
        self.change = change


class OperationCancelled(StackSyncError):
    """The caller cancelled an in-flight operation."""

    def __init__(self, stack_name: str):
        super().__init__(f"operation cancelled for stack, {stack_name}")
        self.stack_name = stack_name


def error_code(err: Exception) -> str | None:
    """Return the remote error code of a botocore ClientError, if any."""
    if isinstance(err, ClientError):
        return err.response.get("Error", {}).get("Code")
    return None


def error_message(err: Exception) -> str:
    if isinstance(err, ClientError):
        return err.response.get("Error", {}).get("Message", "")
    return str(err)


def is_validation_error(err: Exception, text: str | None = None) -> bool:
    """True when err is a ValidationError, optionally mentioning text."""
    if error_code(err) != VALIDATION_ERROR:
        return False
    return text is None or text in error_message(err)
