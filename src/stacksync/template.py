"""Format-aware parsing and comparison of CloudFormation template bodies."""

import json
from collections.abc import Mapping
from typing import Any

import yaml

from stacksync.errors import TemplateError


class TemplateLoader(yaml.SafeLoader):
    """SafeLoader that keeps dates as strings and decodes short-form intrinsic tags."""


TemplateLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _construct_intrinsic(loader: TemplateLoader, suffix: str, node: yaml.Node) -> dict:
    key = suffix if suffix in ("Ref", "Condition") else f"Fn::{suffix}"

    if isinstance(node, yaml.ScalarNode):
        value: Any = loader.construct_scalar(node)
        if suffix == "GetAtt":
            value = value.split(".", 1)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)

    return {key: value}


TemplateLoader.add_multi_constructor("!", _construct_intrinsic)


def parse_template(body: str | Mapping) -> dict:
    """Parse a JSON or YAML template body into a plain dict."""
    if isinstance(body, Mapping):
        return json.loads(json.dumps(body))

    try:
        document = json.loads(body)
    except ValueError:
        try:
            document = yaml.load(body, Loader=TemplateLoader)
        except yaml.YAMLError as e:
            raise TemplateError(f"unable to parse template: {e}") from e

    if not isinstance(document, dict):
        raise TemplateError(f"template must be a mapping, got {type(document).__name__}")
    return document


def templates_equal(current: str | Mapping, desired: str | Mapping) -> bool:
    """Compare two templates by content, ignoring formatting and key order."""
    return parse_template(current) == parse_template(desired)


def declared_parameters(body: str | Mapping) -> list[str]:
    """Names of the parameters declared by a template."""
    parameters = parse_template(body).get("Parameters") or {}
    return list(parameters)
