"""Reconciliation options and their accumulation builders."""

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from stacksync.errors import ConfigError
from stacksync.models import Tag

DEFAULT_CAPABILITIES = ("CAPABILITY_IAM", "CAPABILITY_NAMED_IAM", "CAPABILITY_AUTO_EXPAND")

TRUE_VALUES = {"1", "true", "yes", "on"}


def default_name_formatter(name: str) -> str:
    return name


@dataclass(frozen=True)
class Options:
    """Immutable settings shared by the loader and the manager."""

    dry_run: bool = False
    prefix: str = ""
    parameters: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    tags: tuple[Tag, ...] = ()
    format_name: Callable[[str], str] = default_name_formatter
    capabilities: tuple[str, ...] = DEFAULT_CAPABILITIES


Option = Callable[[Options], Options]


def with_dry_run(dry_run: bool) -> Option:
    def apply(options: Options) -> Options:
        return replace(options, dry_run=dry_run)

    return apply


def with_prefix(prefix: str) -> Option:
    """Prefix stack names; the prefix always ends with a single dash."""
    normalized = prefix.rstrip("-") + "-" if prefix else ""

    def apply(options: Options) -> Options:
        return replace(options, prefix=normalized)

    return apply


def with_parameters(parameters: Mapping[str, str]) -> Option:
    def apply(options: Options) -> Options:
        merged = {**options.parameters, **parameters}
        return replace(options, parameters=MappingProxyType(merged))

    return apply


def with_tags(*tags: Tag) -> Option:
    def apply(options: Options) -> Options:
        return replace(options, tags=options.tags + tuple(tags))

    return apply


def with_name_formatter(fn: Callable[[str], str] | None) -> Option:
    def apply(options: Options) -> Options:
        return replace(options, format_name=fn or default_name_formatter)

    return apply


def with_capabilities(*capabilities: str) -> Option:
    def apply(options: Options) -> Options:
        return replace(options, capabilities=tuple(capabilities))

    return apply


def build_options(*opts: Option) -> Options:
    """Fold the given options over the defaults."""
    options = Options()
    for opt in opts:
        options = opt(options)
    return options


def _parse_pairs(value: str, variable: str) -> dict[str, str]:
    pairs = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, val = item.partition("=")
        if not sep or not key:
            raise ConfigError(f"Invalid {variable} entry {item!r} (expected KEY=VALUE)")
        pairs[key.strip()] = val.strip()
    return pairs


def options_from_env(environ: Mapping[str, str] | None = None) -> Options:
    """Build Options from STACKSYNC_* environment variables."""
    environ = os.environ if environ is None else environ

    opts: list[Option] = [
        with_dry_run(environ.get("STACKSYNC_DRY_RUN", "").strip().lower() in TRUE_VALUES),
    ]
    if prefix := environ.get("STACKSYNC_PREFIX"):
        opts.append(with_prefix(prefix))
    if tags := environ.get("STACKSYNC_TAGS"):
        pairs = _parse_pairs(tags, "STACKSYNC_TAGS")
        opts.append(with_tags(*(Tag(k, v) for k, v in pairs.items())))
    if parameters := environ.get("STACKSYNC_PARAMETERS"):
        opts.append(with_parameters(_parse_pairs(parameters, "STACKSYNC_PARAMETERS")))

    return build_options(*opts)
