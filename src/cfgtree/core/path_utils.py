"""
Name resolution utilities for configuration trees.

This module turns a node and its ancestor chain into the external key used
by one namespace (environment variable, command-line flag, document key or
a display name), applying tag overrides, case conversion, prefix
suppression and ignore rules.
"""

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import inflection

from cfgtree.core.types import LeafKind
from cfgtree.exceptions import TagUsageError

if TYPE_CHECKING:
    from cfgtree.core.tree_node import Node
    from cfgtree.structure.builder import NodeSet

OMIT_PREFIX = "omitprefix"
EXCLUDE = "-"
STRING_OPTION = "string"

IGNORE_TAG = "ignore"
CONFIG_TAG = "config"


def to_screaming_snake(name: str) -> str:
    """Convert a field name to SCREAMING_SNAKE case (e.g., "runDuration" -> "RUN_DURATION")."""
    return inflection.underscore(name).upper()


def to_kebab(name: str) -> str:
    """Convert a field name to kebab case (e.g., "run_duration" -> "run-duration")."""
    return inflection.dasherize(inflection.underscore(name))


def to_snake(name: str) -> str:
    """Convert a field name to snake case."""
    return inflection.underscore(name)


@dataclass(frozen=True)
class Namespace:
    """
    Naming rules for one external surface.

    Params:
        name: Namespace identifier (e.g., "env", "flag")
        tag: Tag key consulted for name overrides, None for display-only namespaces
        separator: Joins the contributions of the ancestor chain
        convert: Case conversion applied to untagged field names
    """

    name: str
    tag: str | None
    separator: str
    convert: Callable[[str], str]


ENV = Namespace("env", "env", "_", to_screaming_snake)
FLAG = Namespace("flag", "flag", "-", to_kebab)
FIELD = Namespace("field", None, ".", str)
SNAKE = Namespace("snake", None, ".", to_snake)
TOML = Namespace("toml", "toml", ".", to_snake)
JSON = Namespace("json", "json", ".", to_snake)
YAML = Namespace("yaml", "yaml", ".", to_snake)

NAMESPACES = {ns.name: ns for ns in (ENV, FLAG, FIELD, SNAKE, TOML, JSON, YAML)}


def get_namespace(name: str) -> Namespace:
    """
    Look up a namespace by name.

    Raises:
        ValueError: If the name is unknown
    """
    try:
        return NAMESPACES[name]
    except KeyError:
        raise ValueError(
            f"unknown namespace '{name}' (expected one of: {', '.join(NAMESPACES)})"
        ) from None


def split_tag(raw: str) -> tuple[str, list[str]]:
    """
    Split a tag value into its name and comma separated options.

    Examples:
        "port,p" -> ("port", ["p"])
        "IDS,string" -> ("IDS", ["string"])
        "" -> ("", [])
    """
    name, *options = raw.split(",")
    return name, [option for option in options if option]


def tag_name(node: "Node", namespace: Namespace) -> str:
    """Tag value for the namespace with its options removed."""
    if namespace.tag is None:
        return ""
    return split_tag(node.get_tag(namespace.tag))[0]


def has_string_option(node: "Node", tag_key: str) -> bool:
    """Report whether the node's tag carries the ",string" option."""
    return STRING_OPTION in split_tag(node.get_tag(tag_key))[1]


def flag_alias(node: "Node") -> str:
    """
    Single-character alias declared as the second element of the flag tag.

    Raises:
        TagUsageError: If the alias is longer than one character
    """
    name, options = split_tag(node.get_tag(FLAG.tag))
    aliases = [option for option in options if option != STRING_OPTION]
    if name in (OMIT_PREFIX, EXCLUDE, "") or not aliases:
        return ""

    alias = aliases[0]
    if len(alias) > 1:
        raise TagUsageError(
            node.field_name, f"flag name alias '{alias}' must be one character"
        )
    return alias


def node_name(node: "Node", namespace: Namespace) -> str:
    """
    Contribution of a single node to a resolved name.

    Returns:
        "" for an "omitprefix" node, the literal tag value when one is set,
        otherwise the case-converted field name
    """
    name = tag_name(node, namespace)
    if name == OMIT_PREFIX:
        return ""
    if name == "" or namespace.tag is None:
        return namespace.convert(node.field_name)
    return name


def check_omit_prefix(node: "Node", namespace: Namespace) -> None:
    """
    Reject "omitprefix" on a field that is not a followed struct.

    Raises:
        TagUsageError: If a leaf is tagged "omitprefix" in this namespace
    """
    if node.is_branch or tag_name(node, namespace) != OMIT_PREFIX:
        return
    raise TagUsageError(
        node.field_name,
        f"'omitprefix' cannot be used on non-struct field types (field '{node.field_name}')",
    )


def resolve_name(
    node: "Node", heritage: Sequence["Node"], namespace: Namespace
) -> str:
    """
    Compute the external key of a node in one namespace.

    Params:
        node: The node being named
        heritage: Ancestor chain, oldest first
        namespace: Naming rules to apply

    Returns:
        Non-empty contributions of every ancestor and the node, joined by the
        namespace separator

    Raises:
        TagUsageError: If the node is a leaf tagged "omitprefix"

    Examples:
        ENV, db.username (no tags) -> "DB_USERNAME"
        ENV, db (env="omitprefix") / username (env="UN") -> "UN"
        FLAG, run_duration -> "run-duration"
    """
    check_omit_prefix(node, namespace)
    parts = (node_name(n, namespace) for n in (*heritage, node))
    return namespace.separator.join(part for part in parts if part)


def full_name(node: "Node", nodes: "NodeSet", namespace: Namespace) -> str:
    """Resolve a node's name using the ancestors recorded in its node set."""
    return resolve_name(node, nodes.parents(node), namespace)


def named_leaves(
    nodes: "NodeSet", namespace: Namespace
) -> Iterator[tuple["Node", str]]:
    """
    Leaves a backend reads or writes, paired with their external key.

    Skips branches, opaque structs and nodes excluded by themselves or by an
    ancestor.

    Raises:
        TagUsageError: If a leaf is tagged "omitprefix" in this namespace
    """
    for node in nodes.leaves():
        heritage = nodes.parents(node)
        if is_any_ignored((*heritage, node), namespace):
            continue
        if node.leaf_kind is LeafKind.OPAQUE:
            continue
        yield node, resolve_name(node, heritage, namespace)


def is_ignored(node: "Node", namespace: Namespace | None = None) -> bool:
    """
    Check whether a single node is excluded.

    A node is ignored when it carries `ignore="true"`, `config="ignore"` or,
    for a tagged namespace, the namespace tag "-".
    """
    if node.get_bool_tag(IGNORE_TAG) or node.get_tag(CONFIG_TAG) == IGNORE_TAG:
        return True
    return namespace is not None and tag_name(node, namespace) == EXCLUDE


def is_any_ignored(nodes: Sequence["Node"], namespace: Namespace | None = None) -> bool:
    """Check whether any node of a chain (typically heritage plus the node) is ignored."""
    return any(is_ignored(n, namespace) for n in nodes)
