"""
Core Node class for cfgtree.

A Node describes one addressable field of a configuration target: its
lineage from the root, its resolved type, its declared and overridden tags,
and a live view of the value stored on the owning object. Nodes never own
storage; reading or writing `Node.value` reads or writes the owner's
attribute.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from cfgtree.core.conversion import (
    DEFAULT_TIME_FORMAT,
    format_scalar,
    format_time,
    norm_time_format,
    parse_scalar,
    parse_time,
    zero_scalar,
)
from cfgtree.core.types import LeafKind, TypeInfo, ValueKind
from cfgtree.exceptions import FieldFormatError

HELP_TAG = "help"


class Node:
    """
    Field descriptor for a configuration target.

    Params:
        owner: Object holding the field (model or dataclass instance)
        field_name: Attribute name on the owner
        info: Resolved type of the field
        path: Field names from the root to this field, inclusive
        leaf_kind: How backends treat the field, None for a followed struct (branch)
        tags: Declared tags
        description: Field description, used as the fallback for the "help" tag
        index: Declaration order of the field within its owner
    """

    def __init__(
        self,
        owner: Any,
        field_name: str,
        info: TypeInfo,
        path: tuple[str, ...],
        leaf_kind: LeafKind | None,
        tags: Mapping[str, str] | None = None,
        description: str | None = None,
        index: int = 0,
    ):
        self.owner = owner
        self.field_name = field_name
        self.info = info
        self.path = path
        self.leaf_kind = leaf_kind
        self.description = description or ""
        self.index = index

        self._declared = dict(tags or {})
        self._overrides: dict[str, str] = {}

        # Side channel for backends (e.g. a resolved variable name).
        self.meta: dict[str, str] = {}

    def __repr__(self) -> str:
        kind = self.leaf_kind.value if self.leaf_kind else "branch"
        return f"Node({self.full_name!r}, {self.type_label}, {kind})"

    @property
    def full_name(self) -> str:
        """Dot separated lineage, e.g. "db.username"."""
        return ".".join(self.path)

    @property
    def prefix(self) -> str:
        """Full name of the parent, "" at the root level."""
        return ".".join(self.path[:-1])

    @property
    def parent_names(self) -> list[str]:
        """Full names of all ancestors, most distant first."""
        return [".".join(self.path[:i]) for i in range(1, len(self.path))]

    @property
    def kind(self) -> ValueKind:
        return self.info.kind

    @property
    def is_branch(self) -> bool:
        return self.leaf_kind is None

    @property
    def is_struct(self) -> bool:
        return self.info.kind is ValueKind.STRUCT

    @property
    def is_time(self) -> bool:
        return self.info.kind is ValueKind.TIME

    @property
    def is_duration(self) -> bool:
        return self.info.kind is ValueKind.DURATION

    @property
    def is_bool(self) -> bool:
        return self.info.kind is ValueKind.BOOL

    @property
    def is_slice(self) -> bool:
        return self.info.kind is ValueKind.SLICE

    @property
    def type_label(self) -> str:
        """
        Short type name used in help text and renderings.

        Examples:
            "bool", "int", "uint", "float", "string", "duration", "time",
            "strings" for list[str], "durations" for list[timedelta]
        """
        if self.is_slice and self.info.elem is not None:
            return self.info.elem.kind.value + "s"
        return self.info.kind.value

    @property
    def value(self) -> Any:
        return getattr(self.owner, self.field_name)

    @value.setter
    def value(self, new_value: Any) -> None:
        setattr(self.owner, self.field_name, new_value)

    def get_tag(self, key: str) -> str:
        """
        Tag value, runtime overrides first.

        The "help" tag falls back to the field description.
        """
        if key in self._overrides:
            return self._overrides[key]
        value = self._declared.get(key, "")
        if not value and key == HELP_TAG:
            return self.description
        return value

    def set_tag(self, key: str, value: str) -> None:
        """Override a tag at runtime. Empty keys or values are ignored."""
        if not key or not value:
            return
        self._overrides[key] = value

    def get_bool_tag(self, key: str) -> bool:
        """Tag value read as a bool; missing or unparsable values are False."""
        return self.get_tag(key).strip().lower() in ("true", "1", "t")

    def set_bool_tag(self, key: str, value: bool) -> None:
        self.set_tag(key, "true" if value else "false")

    def string(self) -> str:
        """
        Current value of a scalar field as text.

        Raises:
            TypeError: If the field is not a scalar
        """
        self._require(LeafKind.SCALAR, "read as a scalar")
        return format_scalar(self.info, self.value)

    def slice_strings(self) -> list[str]:
        """
        Current elements of a list field as text.

        Raises:
            TypeError: If the field is not a list
        """
        self._require(LeafKind.SLICE, "read as a list")
        elem = self.info.elem
        return [
            format_scalar(elem, zero_scalar(elem) if item is None else item)
            for item in self.value or []
        ]

    def time_string(self, time_fmt: str = "") -> str:
        """
        Current value of a timestamp field formatted with `time_fmt`.

        Raises:
            TypeError: If the field is not a timestamp
        """
        self._require(LeafKind.TEMPORAL, "read as a timestamp")
        return format_time(self.value, time_fmt)

    def set_field_value(self, text: str) -> None:
        """
        Parse text into the scalar field.

        Raises:
            FieldFormatError: If the text does not convert
            TypeError: If the field is not a scalar
        """
        self._require(LeafKind.SCALAR, "set from a scalar string")
        try:
            self.value = parse_scalar(self.info, text)
        except ValueError as err:
            raise FieldFormatError(self.full_name, text, str(err)) from err

    def set_slice(self, items: list[str]) -> None:
        """
        Replace the list field with parsed items.

        The field is only assigned once every item has converted.

        Raises:
            FieldFormatError: If any item does not convert
            TypeError: If the field is not a list
        """
        self._require(LeafKind.SLICE, "set from a list of strings")
        values = []
        for item in items:
            try:
                values.append(parse_scalar(self.info.elem, item))
            except ValueError as err:
                raise FieldFormatError(self.full_name, item, str(err)) from err
        self.value = values

    def set_time(self, text: str, time_fmt: str = "") -> str:
        """
        Parse text into the timestamp field.

        Returns:
            The strftime pattern that was applied

        Raises:
            FieldFormatError: If the text does not match the format
            TypeError: If the field is not a timestamp
        """
        self._require(LeafKind.TEMPORAL, "set from a timestamp string")
        layout = norm_time_format(time_fmt)
        try:
            self.value = parse_time(text, time_fmt)
        except ValueError as err:
            raise FieldFormatError(
                self.full_name, text, str(err), time_fmt or DEFAULT_TIME_FORMAT
            ) from err
        return layout

    def set_struct(self, value: Any) -> None:
        """
        Assign a whole struct (or timestamp) value.

        Raises:
            TypeError: If the field is not struct-like or the value has the wrong type
        """
        if self.info.kind not in (ValueKind.STRUCT, ValueKind.TIME):
            raise TypeError(
                f"attempting to assign struct to '{self.full_name}' on non-struct type '{self.type_label}'"
            )
        expected = datetime if self.is_time else self.info.py_type
        if not isinstance(value, expected):
            raise TypeError(
                f"cannot assign '{type(value).__name__}' to '{self.full_name}' of type '{expected.__name__}'"
            )
        self.value = value

    def _require(self, leaf_kind: LeafKind, action: str) -> None:
        if self.leaf_kind is not leaf_kind:
            raise TypeError(
                f"field '{self.full_name}' of type '{self.type_label}' cannot be {action}"
            )
