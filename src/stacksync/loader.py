"""Build desired Stack values from template files."""

from collections.abc import Iterable
from pathlib import PurePath

from stacksync.errors import ConfigError
from stacksync.models import Stack
from stacksync.options import Options


def stack_name_for(filename: str, options: Options) -> str:
    """Stack name for a template file: prefix + formatted base name without extension."""
    return options.prefix + options.format_name(PurePath(filename).stem)


def load_stack(filename: str, body: str | bytes, options: Options) -> Stack:
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    return Stack(
        name=stack_name_for(filename, options),
        template_body=body,
        tags=options.tags,
    )


def load_stacks(templates: Iterable[tuple[str, str | bytes]], options: Options) -> list[Stack]:
    """Load stacks from ordered (filename, body) pairs.

    Raises ConfigError when two files resolve to the same stack name.
    """
    stacks: list[Stack] = []
    sources: dict[str, str] = {}
    for filename, body in templates:
        stack = load_stack(filename, body, options)
        if stack.name in sources:
            raise ConfigError(
                f"Duplicate stack name {stack.name!r} from {sources[stack.name]!r} and {filename!r}"
            )
        sources[stack.name] = filename
        stacks.append(stack)
    return stacks
