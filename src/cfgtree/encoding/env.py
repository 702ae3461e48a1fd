"""
Environment variable backend.

Loads configuration targets from environment variables keyed by their
SCREAMING_SNAKE names and generates a shell template exporting the current
values.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any

from cfgtree.core.conversion import DEFAULT_TIME_FORMAT, FMT_TAG, decode, encode
from cfgtree.core.path_utils import ENV, named_leaves
from cfgtree.core.tree_node import Node
from cfgtree.structure.builder import BuildOptions, NodeSet, build_node_sets

logger = logging.getLogger(__name__)

PREAMBLE = "#!/usr/bin/env sh\n\n"
HELP_TAG = "help"


def load_nodes(node_sets: list[NodeSet], environ: Mapping[str, str]) -> None:
    """
    Populate already built node sets from an environment mapping.

    Unset and empty variables leave the field untouched.

    Raises:
        FieldFormatError: If a variable does not convert to its field type
        TagUsageError: If "omitprefix" is used on a non-struct field
    """
    for nodes in node_sets:
        for node, name in named_leaves(nodes, ENV):
            node.meta["env"] = name
            raw = environ.get(name, "")
            if raw == "":
                continue
            decode(node, raw, ENV.tag, name)
            logger.debug("Applied environment variable %s to %s", name, node.full_name)


def load(
    *targets: Any,
    environ: Mapping[str, str] | None = None,
    options: BuildOptions | None = None,
) -> None:
    """
    Populate targets from environment variables.

    Params:
        targets: Model or dataclass instances, modified in place
        environ: Variables to read, defaults to `os.environ`
        options: Tree building options
    """
    load_nodes(build_node_sets(*targets, options=options), os.environ if environ is None else environ)


def help_comment(node: Node) -> str:
    """Help text for a field, with the time format appended for timestamps."""
    help_msg = node.get_tag(HELP_TAG)
    if node.is_time:
        fmt_note = "fmt: " + (node.get_tag(FMT_TAG) or DEFAULT_TIME_FORMAT)
        help_msg = f"{help_msg} {fmt_note}" if help_msg else fmt_note
    return help_msg


def unload_nodes(node_sets: list[NodeSet]) -> str:
    """Render `export NAME=value` lines for already built node sets."""
    lines = [PREAMBLE]
    for nodes in node_sets:
        for node, name in named_leaves(nodes, ENV):
            comment = help_comment(node)
            line = f"export {name}={encode(node, ENV.tag)}"
            if comment:
                line += f" # {comment}"
            lines.append(line + "\n")
    return "".join(lines)


def unload(*targets: Any, options: BuildOptions | None = None) -> str:
    """
    Generate a shell script exporting the current values of the targets.

    Returns:
        "#!/usr/bin/env sh" preamble followed by one export line per field
    """
    return unload_nodes(build_node_sets(*targets, options=options))
