"""
Human-readable rendering of loaded configuration.

A Renderer records every field's value when it is created (the defaults)
and again when `render()` is called (the loaded values), then lists each
field with its type, its value, its default when that differs from the
zero value, and a "(required)" marker. Fields tagged `show="false"` are
redacted.
"""

import textwrap
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

from cfgtree.core.conversion import DEFAULT_TIME_FORMAT, FMT_TAG, encode, is_zero_string
from cfgtree.core.path_utils import (
    FIELD,
    NAMESPACES,
    check_omit_prefix,
    get_namespace,
    is_any_ignored,
    resolve_name,
)
from cfgtree.core.tree_node import Node
from cfgtree.core.types import LeafKind
from cfgtree.structure.builder import BuildOptions, NodeSet, build_node_sets

REQ_TAG = "req"
SHOW_TAG = "show"

DEFAULT_WIDTH = 175
REDACTED = "[redacted]"


@dataclass
class Field:
    """One rendered configuration field."""

    name: str
    type: str
    req: bool
    show: bool
    time_fmt: str
    node: Node
    value_before: str = ""
    value_after: str = ""

    def is_zero(self, text: str) -> bool:
        return is_zero_string(self.type, text, self.time_fmt)


RenderFunc = Callable[[str, str, list[list[Field]]], str]


@dataclass
class RenderOptions:
    """
    Configuration for rendering.

    Params:
        preamble: Text written before the field list
        postamble: Text written after the field list
        field_name_format: Namespace used to name fields ("field", "env",
                           "flag", "snake", "toml", "json", "yaml")
        width: Line width for wrapping long values, 0 disables wrapping
        render_func: Replaces the default layout when given
    """

    preamble: str = ""
    postamble: str = ""
    field_name_format: str = FIELD.name
    width: int = DEFAULT_WIDTH
    render_func: RenderFunc | None = None

    @classmethod
    def from_dict(cls, config: dict | None = None) -> "RenderOptions":
        """Factory method to create options from dict with defaults."""
        if config is None:
            config = {}
        return cls(**config)


def _is_shown(node: Node) -> bool:
    if node.get_tag(SHOW_TAG) == "":
        return True
    return node.get_bool_tag(SHOW_TAG)


def _quote(field: Field, text: str) -> str:
    return f'"{text}"' if field.type == "string" else text


def _field_line(field: Field) -> str:
    if not field.show:
        line = REDACTED
    else:
        line = _quote(field, field.value_after)
        if not field.is_zero(field.value_before):
            line += f" (default: {_quote(field, field.value_before)})"
        if field.node.is_time:
            line += f" (fmt: {field.time_fmt})"
    if field.req:
        line += " (required)"
    return line


def default_render(
    preamble: str, postamble: str, groups: list[list[Field]], width: int = DEFAULT_WIDTH
) -> str:
    """
    Default layout: one aligned "name (type): value" line per field.

    Groups (one per target) are separated by a blank line.
    """
    blocks = []
    if preamble:
        blocks.append(preamble.rstrip("\n"))

    for group in groups:
        if not group:
            continue
        labels = [f"{field.name} ({field.type}):" for field in group]
        column = max(len(label) for label in labels) + 1
        lines = []
        for label, field in zip(labels, group):
            value = _field_line(field)
            if width and width - column >= 24 and len(value) > width - column:
                pad = " " * column
                wrapped = textwrap.wrap(
                    value,
                    width=width,
                    initial_indent=pad,
                    subsequent_indent=pad,
                    break_long_words=False,
                )
                value = "\n".join(wrapped)[column:]
            lines.append(label.ljust(column) + value)
        blocks.append("\n".join(lines))

    if postamble:
        blocks.append(postamble.rstrip("\n"))
    return "\n\n".join(blocks) + "\n"


class Renderer:
    """
    Renders the configuration of one or more targets.

    Create the renderer before loading values so that the defaults are
    recorded, then call `render()` once loading is done.

    Params:
        targets: Model or dataclass instances
        options: Rendering options
        build_options: Tree building options

    Raises:
        TagUsageError: If "omitprefix" is used on a non-struct field
        ValueError: If the field name format is unknown
    """

    def __init__(
        self,
        *targets: Any,
        options: RenderOptions | None = None,
        build_options: BuildOptions | None = None,
    ):
        self.targets = targets
        self.options = options or RenderOptions()
        self.build_options = build_options
        self.namespace = get_namespace(self.options.field_name_format)

        self.groups = [
            self._field_group(nodes)
            for nodes in build_node_sets(*targets, options=build_options)
        ]
        for field in self._fields():
            field.value_before = encode(field.node)

    def _fields(self):
        return (field for group in self.groups for field in group)

    def _field_group(self, nodes: NodeSet) -> list[Field]:
        group = []
        for node in nodes.leaves():
            heritage = nodes.parents(node)
            if is_any_ignored((*heritage, node), self.namespace):
                continue
            if node.leaf_kind is LeafKind.OPAQUE:
                continue
            for namespace in NAMESPACES.values():
                if namespace.tag is not None:
                    check_omit_prefix(node, namespace)

            name = resolve_name(node, heritage, self.namespace)
            if not name:
                continue
            group.append(
                Field(
                    name=name,
                    type=node.type_label,
                    req=node.get_bool_tag(REQ_TAG),
                    show=_is_shown(node),
                    time_fmt=node.get_tag(FMT_TAG) or DEFAULT_TIME_FORMAT,
                    node=node,
                )
            )
        return group

    def render(self) -> str:
        """Record the current values and render all fields."""
        fresh: dict[int, dict[str, Node]] = {}
        for index, nodes in enumerate(
            build_node_sets(*self.targets, options=self.build_options)
        ):
            fresh[index] = dict(nodes)

        for index, group in enumerate(self.groups):
            for field in group:
                node = fresh[index].get(field.node.full_name, field.node)
                field.node = node
                field.value_after = encode(node)

        render_func = self.options.render_func or partial(
            default_render, width=self.options.width
        )
        return render_func(self.options.preamble, self.options.postamble, self.groups)


def render(*targets: Any, options: RenderOptions | None = None) -> str:
    """Render the current values of the targets (defaults are taken to be the same)."""
    return Renderer(*targets, options=options).render()
