"""
Value conversion between configuration fields and their string form.

Every backend that reads or writes text (environment variables, flags,
generated templates, the renderer) goes through this module so that
encoding and decoding stay mutually inverse for every supported shape:
strings, booleans, integers of every width, floats, durations
(`timedelta`), timestamps (`datetime`) and lists of the scalar kinds.

Low-level `parse_*` helpers raise plain `ValueError`; `encode`/`decode`
work on nodes and raise `FieldFormatError` naming the external key.
"""

import re
import struct
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from cfgtree.core.path_utils import has_string_option
from cfgtree.core.types import LeafKind, NumericWidth, TypeInfo, ValueKind
from cfgtree.exceptions import FieldFormatError

if TYPE_CHECKING:
    from cfgtree.core.tree_node import Node

SEP_TAG = "sep"
FMT_TAG = "fmt"

DEFAULT_SEPARATOR = ","
DEFAULT_TIME_FORMAT = "RFC3339"

# ISO-8601 profiles are handled by datetime.isoformat/fromisoformat rather
# than strftime; the patterns are kept for display only.
RFC3339 = "%Y-%m-%dT%H:%M:%S%:z"
RFC3339_NANO = "%Y-%m-%dT%H:%M:%S.%f%:z"

TIME_FORMATS = {
    "ANSIC": "%a %b %d %H:%M:%S %Y",
    "UnixDate": "%a %b %d %H:%M:%S %Z %Y",
    "RubyDate": "%a %b %d %H:%M:%S %z %Y",
    "RFC822": "%d %b %y %H:%M %Z",
    "RFC822Z": "%d %b %y %H:%M %z",
    "RFC850": "%A, %d-%b-%y %H:%M:%S %Z",
    "RFC1123": "%a, %d %b %Y %H:%M:%S %Z",
    "RFC1123Z": "%a, %d %b %Y %H:%M:%S %z",
    "RFC3339": RFC3339,
    "RFC3339Nano": RFC3339_NANO,
    "Kitchen": "%I:%M%p",
    "Stamp": "%b %d %H:%M:%S",
    "StampMilli": "%b %d %H:%M:%S.%f",
    "StampMicro": "%b %d %H:%M:%S.%f",
    "StampNano": "%b %d %H:%M:%S.%f",
    "DateTime": "%Y-%m-%d %H:%M:%S",
    "DateOnly": "%Y-%m-%d",
    "TimeOnly": "%H:%M:%S",
}

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
ZERO_TIME_TEXT = "0001-01-01T00:00:00Z"

_INTEGER = re.compile(r"[+-]?[0-9]+")
_FLOAT32_MAX = 3.4028234663852886e38
_MAX_DURATION_NS = 2**63 - 1

_DURATION_UNITS_NS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # U+00B5 micro sign
    "μs": 1_000,  # U+03BC greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]+)")


def norm_time_format(time_fmt: str) -> str:
    """
    Resolve a `fmt` tag value to a strftime pattern.

    Params:
        time_fmt: Empty (RFC3339), a well-known format name such as "RFC822"
                  or "Kitchen", or a literal strftime pattern

    Returns:
        The pattern to use for formatting and parsing
    """
    if not time_fmt:
        return TIME_FORMATS[DEFAULT_TIME_FORMAT]
    return TIME_FORMATS.get(time_fmt, time_fmt)


def format_time(value: datetime, time_fmt: str = "") -> str:
    """Render a datetime using the resolved `fmt` pattern."""
    layout = norm_time_format(time_fmt)
    if layout in (RFC3339, RFC3339_NANO):
        fractional = layout == RFC3339_NANO or value.microsecond != 0
        text = value.isoformat(timespec="microseconds" if fractional else "seconds")
        if value.utcoffset() == timedelta(0):
            text = text[: -len("+00:00")] + "Z"
        return text
    # strftime does not pad years below 1000 but strptime requires four digits
    return value.strftime(layout.replace("%Y", f"{value.year:04d}"))


def parse_time(text: str, time_fmt: str = "") -> datetime:
    """Parse a datetime using the resolved `fmt` pattern."""
    layout = norm_time_format(time_fmt)
    if layout in (RFC3339, RFC3339_NANO):
        if "T" not in text and "t" not in text:
            raise ValueError(f"'{text}' is not an RFC3339 timestamp")
        return datetime.fromisoformat(text)
    return datetime.strptime(text, layout)


def format_duration(value: timedelta) -> str:
    """
    Render a timedelta as a sequence of unit-suffixed numbers.

    Durations of a second or more use "h", "m" and "s" with leading zero
    units dropped and a fractional second part. Shorter values use "ms"
    or "µs". Zero is "0s".

    Examples:
        timedelta(0) -> "0s"
        timedelta(seconds=12) -> "12s"
        timedelta(hours=1, minutes=30) -> "1h30m0s"
        timedelta(milliseconds=1500) -> "1.5s"
        timedelta(microseconds=300) -> "300µs"
    """
    micros = value // timedelta(microseconds=1)
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_decimal(micros, 3)}ms"

    seconds, fraction = divmod(micros, 1_000_000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)

    text = _decimal(seconds * 1_000_000 + fraction, 6) + "s"
    if minutes or hours:
        text = f"{minutes}m{text}"
    if hours:
        text = f"{hours}h{text}"
    return sign + text


def _decimal(value: int, places: int) -> str:
    """Format value / 10**places with trailing fractional zeros removed."""
    whole, remainder = divmod(value, 10**places)
    fraction = str(remainder).rjust(places, "0").rstrip("0")
    return f"{whole}.{fraction}" if fraction else str(whole)


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration string such as "300ms", "-1.5h" or "2h45m".

    Valid units are "ns", "us" (or "µs"), "ms", "s", "m", "h". Precision
    below one microsecond is truncated. Magnitudes beyond 2**63-1
    nanoseconds (about 292 years) are rejected.
    """
    original = text
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration '{original}'")

    total_ns = 0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration '{original}'")
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            raise ValueError(f"invalid duration '{original}'")
        if unit not in _DURATION_UNITS_NS:
            raise ValueError(f"unknown unit '{unit}' in duration '{original}'")

        scale = _DURATION_UNITS_NS[unit]
        total_ns += int(whole or "0") * scale
        if fraction:
            total_ns += int(fraction) * scale // 10 ** len(fraction)
        pos = match.end()

    if total_ns > _MAX_DURATION_NS:
        raise ValueError(f"invalid duration '{original}'")
    return timedelta(microseconds=sign * (total_ns // 1_000))


def format_float(value: float, width: NumericWidth | None = None) -> str:
    """Shortest round-trippable decimal with trailing zeros trimmed."""
    value = float(value)
    if width is not None and width.bits == 32:
        single = to_float32(value)
        text = repr(single)
        for digits in range(1, 10):
            candidate = f"{single:.{digits}g}"
            if to_float32(float(candidate)) == single:
                text = candidate
                break
    else:
        text = repr(value)

    if "e" not in text and "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def to_float32(value: float) -> float:
    """Round a double to the nearest single-precision value."""
    return struct.unpack("f", struct.pack("f", value))[0]


def format_scalar(info: TypeInfo, value: Any) -> str:
    """
    Render a scalar value as text.

    Raises:
        TypeError: If the kind has no scalar representation
    """
    match info.kind:
        case ValueKind.STRING:
            return str(value)
        case ValueKind.BOOL:
            return "true" if value else "false"
        case ValueKind.INT | ValueKind.UINT:
            return str(int(value))
        case ValueKind.FLOAT:
            return format_float(value, info.width)
        case ValueKind.DURATION:
            return format_duration(value)
    raise TypeError(f"unexpected kind to convert to string '{info.kind.value}'")


def parse_scalar(info: TypeInfo, text: str) -> Any:
    """
    Convert text to the scalar type described by `info`.

    Raises:
        ValueError: If the text does not parse or is out of range
        TypeError: If the kind has no scalar representation
    """
    match info.kind:
        case ValueKind.STRING:
            value: Any = text
        case ValueKind.BOOL:
            value = _parse_bool(text)
        case ValueKind.INT | ValueKind.UINT:
            value = _parse_int(text, info)
        case ValueKind.FLOAT:
            value = _parse_float(text, info.width)
        case ValueKind.DURATION:
            value = parse_duration(text)
        case _:
            raise TypeError(f"unsupported kind '{info.kind.value}'")

    # Preserve user subclasses of the builtin scalars.
    if info.py_type not in (str, bool, int, float, timedelta) and isinstance(
        info.py_type, type
    ):
        value = info.py_type(value)
    return value


def _parse_bool(text: str) -> bool:
    match text.lower():
        case "true":
            return True
        case "false" | "":
            return False
    raise ValueError(f"cannot assign '{text}' to bool type")


def _parse_int(text: str, info: TypeInfo) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"invalid syntax for {info.kind.value} '{text}'")
    value = int(text)

    width = info.width or NumericWidth(None, signed=info.kind is not ValueKind.UINT)
    low, high = width.bounds
    if (low is not None and value < low) or (high is not None and value > high):
        label = info.kind.value if width.bits is None else f"{info.kind.value}{width.bits}"
        raise ValueError(f"value '{text}' out of range for {label}")
    return value


def _parse_float(text: str, width: NumericWidth | None) -> float:
    if text != text.strip() or "_" in text:
        raise ValueError(f"invalid syntax for float '{text}'")
    value = float(text)
    if width is not None and width.bits == 32:
        if abs(value) > _FLOAT32_MAX and value not in (float("inf"), float("-inf")):
            raise ValueError(f"value '{text}' out of range for float32")
        value = to_float32(value)
    return value


def zero_scalar(info: TypeInfo) -> Any:
    """Zero value of a scalar kind."""
    match info.kind:
        case ValueKind.STRING:
            return ""
        case ValueKind.BOOL:
            return False
        case ValueKind.INT | ValueKind.UINT:
            return 0
        case ValueKind.FLOAT:
            return 0.0
        case ValueKind.DURATION:
            return timedelta(0)
    raise TypeError(f"'{info.kind.value}' is not a scalar kind")


def split_slice(text: str, sep: str = "", quoted: bool = False) -> list[str]:
    """
    Split a list value into its raw element strings.

    One enclosing pair of square brackets is optional. Elements are split on
    `sep` (default ","), stripped of surrounding whitespace and, when
    `quoted`, stripped of one layer of matching single or double quotes.
    """
    sep = sep or DEFAULT_SEPARATOR
    text = text.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    if not text.strip():
        return []

    items = [item.strip() for item in text.split(sep)]
    if quoted:
        items = [unquote(item) for item in items]
    return items


def join_slice(items: list[str], sep: str = "", quoted: bool = False) -> str:
    """Inverse of `split_slice`: "[a,b,c]" with optional per-item quotes."""
    sep = sep or DEFAULT_SEPARATOR
    if quoted:
        items = [f'"{item}"' for item in items]
    return "[" + sep.join(items) + "]"


def unquote(text: str) -> str:
    """Remove one layer of matching single or double quotes."""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text


def is_zero_string(type_label: str, text: str, time_fmt: str = "") -> bool:
    """
    Report whether `text` is the rendering of the zero value for a type label.

    Timestamps are compared against the zero time in `time_fmt` as well as
    in RFC3339.
    """
    match type_label:
        case "bool":
            return text == "false"
        case "int" | "uint" | "float":
            return text == "0"
        case "string":
            return text == ""
        case "time":
            return text in ("", ZERO_TIME_TEXT, format_time(ZERO_TIME, time_fmt))
        case "duration":
            return text in ("0", "0s")
    if type_label.endswith("s"):
        return text in ("[]", "")
    return False


def encode(node: "Node", tag_key: str | None = None) -> str:
    """
    Convert a node's current value to its external string form.

    Params:
        node: Leaf node to read
        tag_key: Namespace tag consulted for the ",string" option

    Returns:
        Text that `decode` turns back into the same value

    Raises:
        TypeError: If the node is a branch or an opaque struct
    """
    quoted = tag_key is not None and has_string_option(node, tag_key)

    match node.leaf_kind:
        case LeafKind.TEMPORAL:
            return node.time_string(node.get_tag(FMT_TAG))
        case LeafKind.SLICE:
            return join_slice(node.slice_strings(), node.get_tag(SEP_TAG), quoted)
        case LeafKind.SCALAR:
            text = node.string()
            return f'"{text}"' if quoted else text
    raise TypeError(f"node '{node.full_name}' has no string representation")


def decode(node: "Node", text: str, tag_key: str | None = None, name: str = "") -> None:
    """
    Set a node's value from its external string form.

    An empty string leaves the current value untouched.

    Params:
        node: Leaf node to write
        text: Raw external value
        tag_key: Namespace tag consulted for the ",string" option
        name: External key reported in errors (defaults to the node's full name)

    Raises:
        FieldFormatError: If the text cannot be converted
        TypeError: If the node is a branch or an opaque struct
    """
    if text == "":
        return

    quoted = tag_key is not None and has_string_option(node, tag_key)
    try:
        match node.leaf_kind:
            case LeafKind.TEMPORAL:
                node.set_time(text, node.get_tag(FMT_TAG))
            case LeafKind.SLICE:
                node.set_slice(split_slice(text, node.get_tag(SEP_TAG), quoted))
            case LeafKind.SCALAR:
                node.set_field_value(unquote(text) if quoted else text)
            case _:
                raise TypeError(f"node '{node.full_name}' cannot be set from a string")
    except FieldFormatError as err:
        if name and name != err.name:
            raise err.renamed(name) from err
        raise
