"""
Command-line flag backend.

Registers one `argparse` option per configuration field (`--kebab-name`,
plus an optional one-character `-a` alias taken from the flag tag), parses
the command line into raw strings and applies them to the targets through
the value codec.

Parsing and applying are separate steps so that callers can load other
sources in between and still give flags the final word.
"""

import argparse
import logging
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from cfgtree.core.conversion import (
    DEFAULT_TIME_FORMAT,
    FMT_TAG,
    decode,
    encode,
    is_zero_string,
)
from cfgtree.core.path_utils import FLAG, flag_alias, named_leaves, to_kebab
from cfgtree.core.tree_node import Node
from cfgtree.exceptions import TagUsageError
from cfgtree.structure.builder import BuildOptions, build_node_sets

logger = logging.getLogger(__name__)

HELP_TAG = "help"
RESERVED = frozenset({"help", "h"})

# Negative numbers and durations such as "-5", "-1.5" or "-1s"
_DASH_VALUE = re.compile(r"-[0-9.]")


@dataclass
class FlagOptions:
    """
    Configuration for the flag backend.

    Params:
        prog: Program name shown in usage, defaults to argv[0]
        description: Text shown before the flag list
        epilog: Text shown after the flag list
        prefix: Prepended (kebab-cased) to every flag name
        help_messages: Help text overrides keyed by full flag name
        ignore: Full flag names that are not registered
    """

    prog: str | None = None
    description: str = ""
    epilog: str = ""
    prefix: str = ""
    help_messages: dict[str, str] = field(default_factory=dict)
    ignore: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, config: dict | None = None) -> "FlagOptions":
        """Factory method to create options from dict with defaults."""
        if config is None:
            config = {}
        return cls(**config)


@dataclass
class Flag:
    """One registered command-line flag."""

    name: str
    alias: str
    node: Node
    dest: str
    help_override: str = ""

    @property
    def option_strings(self) -> list[str]:
        names = [f"--{self.name}"]
        if self.alias:
            names.insert(0, f"-{self.alias}")
        return names

    @property
    def type_label(self) -> str:
        return self.node.type_label

    def default_text(self) -> str:
        """Current value of the field in flag syntax."""
        return encode(self.node, FLAG.tag)

    def help_text(self) -> str:
        """
        Usage line for the flag.

        Combines the help override or help tag, the time format for
        timestamps and the current value when it is not the zero value.
        """
        usage = self.help_override or self.node.get_tag(HELP_TAG)
        if self.node.is_time:
            fmt_note = "fmt: " + (self.node.get_tag(FMT_TAG) or DEFAULT_TIME_FORMAT)
            usage = f"{usage} {fmt_note}" if usage else fmt_note

        default = self.default_text()
        if not is_zero_string(self.type_label, default, self.node.get_tag(FMT_TAG)):
            if self.type_label == "string":
                default = f'"{default}"'
            usage = f"{usage} (default: {default})" if usage else f"(default: {default})"
        return usage


class FlagSet:
    """
    Flags for a group of configuration targets.

    A value that starts with a dash and a digit (`--wait -1s`) is taken as
    the value of the preceding option rather than as an option itself.

    Params:
        targets: Model or dataclass instances
        options: Flag backend options
        build_options: Tree building options
        parser: Existing parser to register on, a new one is created otherwise

    Raises:
        TagUsageError: On a duplicate flag name or alias, a multi-character
                       alias, a reserved "help"/"h" name, or "omitprefix" on a
                       non-struct field
    """

    def __init__(
        self,
        *targets: Any,
        options: FlagOptions | None = None,
        build_options: BuildOptions | None = None,
        parser: argparse.ArgumentParser | None = None,
    ):
        self.targets = targets
        self.options = options or FlagOptions()
        self.build_options = build_options
        self.groups: list[list[Flag]] = []
        self._names: set[str] = set()
        self._raw: dict[str, str] = {}

        for nodes in build_node_sets(*targets, options=build_options):
            self.groups.append(self._make_flags(nodes))

        if self._names & RESERVED:
            raise TagUsageError("help", "cannot use reserved flags 'help' or 'h'")

        self.parser = parser or argparse.ArgumentParser(
            prog=self.options.prog,
            description=self.options.description or None,
            epilog=self.options.epilog or None,
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self._register()

    @property
    def flags(self) -> list[Flag]:
        return [flag for group in self.groups for flag in group]

    @property
    def raw_values(self) -> dict[str, str]:
        """Values given on the last parsed command line, keyed by flag name."""
        return dict(self._raw)

    def _flag_name(self, name: str) -> str:
        if not self.options.prefix:
            return name
        return f"{to_kebab(self.options.prefix)}-{name}"

    def _make_flags(self, nodes) -> list[Flag]:
        group = []
        for node, name in named_leaves(nodes, FLAG):
            name = self._flag_name(name)
            alias = flag_alias(node)
            if name in self.options.ignore:
                continue

            if name in self._names:
                raise TagUsageError(
                    node.field_name, f"flag name '{name}' defined more than once"
                )
            if alias and alias in self._names:
                raise TagUsageError(
                    node.field_name, f"flag alias '{alias}' defined more than once"
                )

            self._names.add(name)
            if alias:
                self._names.add(alias)
            group.append(
                Flag(
                    name=name,
                    alias=alias,
                    node=node,
                    dest=f"cfgtree_flag_{len(self._names)}",
                    help_override=self.options.help_messages.get(name, ""),
                )
            )
        return group

    def _register(self) -> None:
        for target, group in zip(self.targets, self.groups):
            arg_group = self.parser.add_argument_group(type(target).__name__)
            for flag in group:
                kwargs: dict[str, Any] = {
                    "dest": flag.dest,
                    "default": None,
                    "help": flag.help_text().replace("%", "%%"),
                    "metavar": flag.type_label,
                }
                if flag.node.is_bool:
                    # "--debug" alone means true; "--debug=false" is accepted.
                    kwargs.update(nargs="?", const="true")
                arg_group.add_argument(*flag.option_strings, **kwargs)

    def parse(self, args: Sequence[str] | None = None) -> argparse.Namespace:
        """
        Parse a command line and record the raw flag values.

        A leading "help" or "h" argument prints the help and exits.
        Values are not applied until `apply` is called.

        Params:
            args: Arguments without the program name, defaults to sys.argv[1:]

        Returns:
            The argparse namespace, including any options registered by the caller
        """
        args = list(sys.argv[1:] if args is None else args)
        if args and args[0] in RESERVED:
            self.parser.print_help()
            self.parser.exit(0)

        namespace = self.parser.parse_args(self._join_dash_values(args))
        self._raw = {
            flag.name: getattr(namespace, flag.dest)
            for flag in self.flags
            if getattr(namespace, flag.dest) is not None
        }
        return namespace

    def _join_dash_values(self, args: list[str]) -> list[str]:
        value_options = {
            option
            for flag in self.flags
            if not flag.node.is_bool
            for option in flag.option_strings
        }
        joined: list[str] = []
        i = 0
        while i < len(args):
            arg = args[i]
            if (
                arg in value_options
                and i + 1 < len(args)
                and _DASH_VALUE.match(args[i + 1])
            ):
                joined.append(f"{arg}={args[i + 1]}")
                i += 2
                continue
            joined.append(arg)
            i += 1
        return joined

    def apply(self) -> None:
        """
        Decode the recorded raw values into the targets.

        Node sets are rebuilt from the current state of the targets, so
        values loaded from other sources since registration are respected.

        Raises:
            FieldFormatError: If a value does not convert to its field type
        """
        if not self._raw:
            return
        for nodes in build_node_sets(*self.targets, options=self.build_options):
            for node, name in named_leaves(nodes, FLAG):
                name = self._flag_name(name)
                if name not in self._raw:
                    continue
                decode(node, self._raw[name], FLAG.tag, f"--{name}")
                logger.debug("Applied flag --%s to %s", name, node.full_name)

    def format_help(self) -> str:
        return self.parser.format_help()


def load(
    *targets: Any,
    args: Sequence[str] | None = None,
    options: FlagOptions | None = None,
    build_options: BuildOptions | None = None,
) -> None:
    """
    Populate targets from command-line flags.

    Params:
        targets: Model or dataclass instances, modified in place
        args: Arguments without the program name, defaults to sys.argv[1:]
        options: Flag backend options
        build_options: Tree building options
    """
    flags = FlagSet(*targets, options=options, build_options=build_options)
    flags.parse(args)
    flags.apply()


def unload(*targets: Any, build_options: BuildOptions | None = None) -> list[str]:
    """
    Command-line arguments reproducing the current values of the targets.

    Returns:
        One "--name=value" item per field
    """
    items = []
    for nodes in build_node_sets(*targets, options=build_options):
        for node, name in named_leaves(nodes, FLAG):
            items.append(f"--{name}={encode(node, FLAG.tag)}")
    return items
