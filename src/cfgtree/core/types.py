"""
Core type definitions for cfgtree.

This module contains the kind enumerations, the numeric width markers and
the tag container used to annotate configuration fields, plus the
`TypeInfo` record that the tree builder attaches to every node.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any


class ValueKind(Enum):
    """Runtime shape of a configuration value."""

    STRING = "string"
    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    DURATION = "duration"
    TIME = "time"
    STRUCT = "struct"
    SLICE = "slice"


class LeafKind(Enum):
    """How a backend treats a node, decided once when the tree is built."""

    SCALAR = "scalar"  # string, bool, numbers and durations
    SLICE = "slice"
    TEMPORAL = "temporal"  # datetime, formatted through the "fmt" tag
    OPAQUE = "opaque"  # struct on the no-follow list


# Kinds allowed as list elements.
SLICE_ELEMENT_KINDS = frozenset(
    {
        ValueKind.STRING,
        ValueKind.BOOL,
        ValueKind.INT,
        ValueKind.UINT,
        ValueKind.FLOAT,
        ValueKind.DURATION,
    }
)


@dataclass(frozen=True)
class NumericWidth:
    """
    Width marker for numeric fields.

    Python has a single `int` and a single `float`; this marker, placed in
    `Annotated` metadata, restores the signed/unsigned and bit-width
    distinction so that values are range-checked when decoded.

    Params:
        bits: Width in bits, None for an unbounded integer
        signed: False for unsigned integers
        floating: True for float widths
    """

    bits: int | None = None
    signed: bool = True
    floating: bool = False

    @property
    def bounds(self) -> tuple[int | None, int | None]:
        """Inclusive (min, max) for integer widths, None meaning unbounded."""
        if self.floating:
            return None, None
        if self.bits is None:
            return (None if self.signed else 0), None
        if self.signed:
            return -(1 << (self.bits - 1)), (1 << (self.bits - 1)) - 1
        return 0, (1 << self.bits) - 1


Int8 = Annotated[int, NumericWidth(8)]
Int16 = Annotated[int, NumericWidth(16)]
Int32 = Annotated[int, NumericWidth(32)]
Int64 = Annotated[int, NumericWidth(64)]
Uint = Annotated[int, NumericWidth(None, signed=False)]
Uint8 = Annotated[int, NumericWidth(8, signed=False)]
Uint16 = Annotated[int, NumericWidth(16, signed=False)]
Uint32 = Annotated[int, NumericWidth(32, signed=False)]
Uint64 = Annotated[int, NumericWidth(64, signed=False)]
Float32 = Annotated[float, NumericWidth(32, floating=True)]
Float64 = Annotated[float, NumericWidth(64, floating=True)]


class Tags(Mapping[str, str]):
    """
    Declared field annotations keyed by namespace.

    Attach to a field through `Annotated`:

        port: Annotated[int, Tags(env="PORT", flag="port,p", help="Listen port.")] = 8080

    Tag values are always strings; keyword arguments are converted with
    `str()` so `Tags(show=False)` reads back as "False".
    """

    __slots__ = ("_values",)

    def __init__(self, **values: Any):
        self._values = {key: str(value) for key, value in values.items()}

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        inner = ", ".join(f"{key}={value!r}" for key, value in self._values.items())
        return f"Tags({inner})"

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._values.items())))


@dataclass(frozen=True)
class TypeInfo:
    """
    Resolved description of a field annotation.

    Params:
        kind: Shape of the value
        py_type: Concrete Python class of the value (element class for slices is in `elem`)
        type_name: Qualified class name used by the no-follow and ignore lists
        optional: True when the annotation allowed None
        width: Numeric width marker, if any
        elem: Element description for slices
    """

    kind: ValueKind
    py_type: type
    type_name: str
    optional: bool = False
    width: NumericWidth | None = None
    elem: "TypeInfo | None" = None
