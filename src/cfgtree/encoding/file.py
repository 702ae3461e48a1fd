"""
Document file backend (TOML, JSON, YAML).

Documents are applied directly to the targets rather than through nodes:
nested models are updated in place, every other value is validated by
pydantic against the field annotation before it is assigned. Keys follow
the field names unless a `toml`/`json`/`yaml` tag renames them; a "-" tag
excludes the field from that format.
"""

import json
import logging
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomlkit
import yaml
from pydantic import BaseModel, TypeAdapter, ValidationError

from cfgtree.core.conversion import parse_duration
from cfgtree.core.path_utils import EXCLUDE, split_tag
from cfgtree.core.types import TypeInfo, ValueKind
from cfgtree.encoding import env
from cfgtree.exceptions import DocumentError, UnsupportedFormatError
from cfgtree.structure.type_mapping import (
    FieldSpec,
    describe_type,
    is_struct_instance,
    iter_fields,
)

logger = logging.getLogger(__name__)

TOML = "toml"
JSON = "json"
YAML = "yaml"
ENV = "env"

FORMATS = (TOML, JSON, YAML)
EXTENSIONS = {".toml": TOML, ".json": JSON, ".yaml": YAML, ".yml": YAML}


def normalize_format(fmt: str) -> str:
    """
    Canonical format name for a name or extension ("yml" and ".yaml" give "yaml").

    Raises:
        UnsupportedFormatError: If the format is unknown
    """
    key = fmt.lower().strip()
    if not key.startswith("."):
        key = "." + key
    if key in EXTENSIONS:
        return EXTENSIONS[key]
    raise UnsupportedFormatError(fmt, FORMATS)


def format_from_path(path: str | Path) -> str:
    """
    Format of a configuration file, chosen by extension.

    Raises:
        UnsupportedFormatError: If the extension is missing or unknown
    """
    suffix = Path(path).suffix.lower()
    if suffix not in EXTENSIONS:
        raise UnsupportedFormatError(str(path), tuple(EXTENSIONS))
    return EXTENSIONS[suffix]


def document_key(spec: FieldSpec, fmt: str) -> str | None:
    """Key of a field in a document of the given format, None when excluded."""
    name = split_tag(spec.tags.get(fmt, ""))[0]
    if name == EXCLUDE:
        return None
    return name or spec.name


def parse_document(text: str, fmt: str, source: str = "") -> Mapping[str, Any]:
    """
    Parse document text into a mapping.

    Raises:
        DocumentError: If the text is malformed or its root is not a mapping
    """
    source = source or fmt
    try:
        match fmt:
            case "toml":
                data = tomllib.loads(text)
            case "json":
                data = json.loads(text) if text.strip() else {}
            case "yaml":
                data = yaml.safe_load(text)
            case _:
                raise UnsupportedFormatError(fmt, FORMATS)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError) as err:
        raise DocumentError(source, str(err)) from err

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise DocumentError(source, "document root must be a mapping")
    return data


def _is_short_duration(value: Any) -> bool:
    # ISO-8601 durations ("PT5S") are left to pydantic.
    return isinstance(value, str) and not value.lstrip("+-").upper().startswith("P")


def _coerce_durations(info: TypeInfo, value: Any) -> Any:
    """Accept durations written the way the other backends write them ("1h30m")."""
    if info.kind is ValueKind.DURATION and _is_short_duration(value):
        return parse_duration(value)
    if info.kind is ValueKind.SLICE and info.elem.kind is ValueKind.DURATION:
        if isinstance(value, list):
            return [parse_duration(v) if _is_short_duration(v) else v for v in value]
    return value


def _validate(spec: FieldSpec, value: Any, location: str, source: str) -> Any:
    info = describe_type(spec.annotation, spec.metadata)
    if info is not None:
        try:
            value = _coerce_durations(info, value)
        except ValueError as err:
            raise DocumentError(source, f"field '{location}': {err}") from err

    try:
        validated = TypeAdapter(spec.annotation).validate_python(value)
    except ValidationError as err:
        raise DocumentError(source, f"field '{location}': {err}") from err

    if info is not None and info.width is not None and isinstance(validated, int):
        low, high = info.width.bounds
        if (low is not None and validated < low) or (high is not None and validated > high):
            raise DocumentError(
                source, f"field '{location}': value {validated} out of range"
            )
    return validated


def apply_data(
    target: Any, data: Mapping[str, Any], fmt: str, source: str = "", prefix: str = ""
) -> None:
    """
    Apply a parsed document to a target in place.

    Nested models and dataclasses are updated recursively so that existing
    objects keep their identity. Unknown keys are ignored and missing keys
    keep the current values.

    Raises:
        DocumentError: If a value fails validation
    """
    source = source or fmt
    for spec in iter_fields(target):
        key = document_key(spec, fmt)
        if key is None or key not in data:
            continue

        value = data[key]
        location = f"{prefix}{spec.name}"
        current = getattr(target, spec.name)
        if is_struct_instance(current) and isinstance(value, Mapping):
            apply_data(current, value, fmt, source, prefix=f"{location}.")
            continue

        setattr(target, spec.name, _validate(spec, value, location, source))


def loads(text: str, fmt: str, *targets: Any, source: str = "") -> None:
    """
    Apply document text to each target.

    Params:
        text: Document content
        fmt: "toml", "json", "yaml" (or "yml")
        targets: Model or dataclass instances, modified in place
        source: Name used in error messages
    """
    fmt = normalize_format(fmt)
    data = parse_document(text, fmt, source)
    for target in targets:
        apply_data(target, data, fmt, source)


def load(path: str | Path, *targets: Any) -> None:
    """
    Read a configuration file and apply it to each target.

    The format is chosen from the file extension.

    Raises:
        UnsupportedFormatError: If the extension is unknown
        DocumentError: If the document is malformed or fails validation
        OSError: If the file cannot be read
    """
    fmt = format_from_path(path)
    text = Path(path).read_text(encoding="utf-8")
    loads(text, fmt, *targets, source=str(path))
    logger.debug("Loaded %s configuration from %s", fmt, path)


def _dump_target(target: Any) -> dict[str, Any]:
    if isinstance(target, BaseModel):
        return target.model_dump(mode="json")
    return TypeAdapter(type(target)).dump_python(target, mode="json")


def _rename(target: Any, dumped: Mapping[str, Any], fmt: str) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for spec in iter_fields(target):
        key = document_key(spec, fmt)
        if key is None or spec.name not in dumped:
            continue
        value = dumped[spec.name]
        current = getattr(target, spec.name)
        if is_struct_instance(current) and isinstance(value, Mapping):
            value = _rename(current, value, fmt)
        out[key] = value
    return out


def _toml_ready(data: Mapping[str, Any]) -> dict[str, Any]:
    # TOML has no null, and plain keys must precede tables.
    plain = {}
    tables = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            tables[key] = _toml_ready(value)
        else:
            plain[key] = value
    return {**plain, **tables}


def unload(fmt: str, *targets: Any) -> str:
    """
    Serialize the current values of the targets.

    Params:
        fmt: "toml", "json", "yaml" (or "yml"), or "env" for a shell template
        targets: Model or dataclass instances; their documents are merged in order

    Raises:
        UnsupportedFormatError: If the format is unknown
    """
    if fmt.lower() == ENV:
        return env.unload(*targets)

    fmt = normalize_format(fmt)
    data: dict[str, Any] = {}
    for target in targets:
        data.update(_rename(target, _dump_target(target), fmt))

    match fmt:
        case "toml":
            return tomlkit.dumps(_toml_ready(data))
        case "json":
            return json.dumps(data, indent=2) + "\n"
    return yaml.safe_dump(data, sort_keys=False)
