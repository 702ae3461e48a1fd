"""
Annotation analysis for configuration targets.

Maps field annotations (pydantic models and dataclasses) onto the closed set
of value kinds cfgtree knows how to convert, and provides the zero values
used to materialize optional fields.
"""

import dataclasses
import types
import typing
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Annotated, Any, Union, get_args, get_origin

from pydantic import BaseModel

from cfgtree.core.conversion import ZERO_TIME
from cfgtree.core.types import (
    SLICE_ELEMENT_KINDS,
    NumericWidth,
    Tags,
    TypeInfo,
    ValueKind,
)


@dataclass
class FieldSpec:
    """Declared field of a configuration target."""

    name: str
    annotation: Any
    index: int
    tags: dict[str, str] = field(default_factory=dict)
    metadata: tuple[Any, ...] = ()
    description: str | None = None
    required: bool = False


def type_name(cls: Any) -> str:
    """
    Qualified name of a class as used by the no-follow and ignore lists.

    Examples:
        datetime -> "datetime.datetime"
        int -> "int"
        myapp.config.Database -> "myapp.config.Database"
    """
    module = getattr(cls, "__module__", "")
    qualname = getattr(cls, "__qualname__", getattr(cls, "__name__", repr(cls)))
    if module in ("builtins", ""):
        return qualname
    return f"{module}.{qualname}"


def is_struct_type(cls: Any) -> bool:
    """True for pydantic model classes and dataclass classes."""
    if not isinstance(cls, type):
        return False
    return issubclass(cls, BaseModel) or dataclasses.is_dataclass(cls)


def is_struct_instance(value: Any) -> bool:
    """True for pydantic model instances and dataclass instances."""
    return not isinstance(value, type) and is_struct_type(type(value))


def _strip_annotated(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    metadata: tuple[Any, ...] = ()
    while get_origin(annotation) is Annotated:
        base, *extra = get_args(annotation)
        metadata += tuple(extra)
        annotation = base
    return annotation, metadata


def _find_width(metadata: tuple[Any, ...]) -> NumericWidth | None:
    for item in metadata:
        if isinstance(item, NumericWidth):
            return item
    return None


def describe_type(annotation: Any, metadata: tuple[Any, ...] = ()) -> TypeInfo | None:
    """
    Resolve a field annotation to a TypeInfo.

    Params:
        annotation: Field annotation, `Annotated` wrappers allowed
        metadata: Extra annotation metadata (pydantic keeps it apart from the annotation)

    Returns:
        TypeInfo for supported annotations, None for annotations without an
        external representation (callables, complex, tuples, sets, mappings,
        Any, non-optional unions, enums, unrecognized classes)
    """
    annotation, extra = _strip_annotated(annotation)
    metadata = (*metadata, *extra)
    origin = get_origin(annotation)

    if origin in (Union, types.UnionType):
        members = get_args(annotation)
        present = [member for member in members if member is not type(None)]
        if len(present) != 1 or len(present) == len(members):
            return None
        inner = describe_type(present[0], metadata)
        if inner is None or inner.optional:
            return None
        return dataclasses.replace(inner, optional=True)

    if origin is list:
        args = get_args(annotation)
        if len(args) != 1:
            return None
        elem = describe_type(args[0])
        if elem is None or elem.kind not in SLICE_ELEMENT_KINDS:
            return None
        return TypeInfo(ValueKind.SLICE, list, "list", elem=elem)

    if origin is not None or not isinstance(annotation, type):
        return None

    width = _find_width(metadata)
    name = type_name(annotation)

    if issubclass(annotation, Enum):
        return None
    if issubclass(annotation, bool):
        return TypeInfo(ValueKind.BOOL, annotation, name)
    if issubclass(annotation, str):
        return TypeInfo(ValueKind.STRING, annotation, name)
    if issubclass(annotation, int):
        kind = ValueKind.UINT if width is not None and not width.signed else ValueKind.INT
        return TypeInfo(kind, annotation, name, width=width)
    if issubclass(annotation, float):
        return TypeInfo(ValueKind.FLOAT, annotation, name, width=width)
    if issubclass(annotation, timedelta):
        return TypeInfo(ValueKind.DURATION, annotation, name)
    if issubclass(annotation, datetime):
        return TypeInfo(ValueKind.TIME, annotation, name)
    if issubclass(annotation, date):
        return None
    if is_struct_type(annotation):
        return TypeInfo(ValueKind.STRUCT, annotation, name)
    return None


def zero_value(info: TypeInfo) -> Any:
    """
    Zero value for a resolved type.

    Structs are constructed with zero values for every required field.
    """
    match info.kind:
        case ValueKind.STRING:
            return info.py_type() if info.py_type is not str else ""
        case ValueKind.BOOL:
            return False
        case ValueKind.INT | ValueKind.UINT:
            return 0
        case ValueKind.FLOAT:
            return 0.0
        case ValueKind.DURATION:
            return timedelta(0)
        case ValueKind.TIME:
            return ZERO_TIME
        case ValueKind.SLICE:
            return []
        case ValueKind.STRUCT:
            return zero_struct(info.py_type)
    raise TypeError(f"no zero value for kind '{info.kind.value}'")


def zero_struct(cls: type) -> Any:
    """Instantiate a model or dataclass, filling required fields with zero values."""
    values = {}
    for spec in field_specs(cls):
        if not spec.required:
            continue
        info = describe_type(spec.annotation, spec.metadata)
        values[spec.name] = zero_value(info) if info is not None else None

    if issubclass(cls, BaseModel):
        # Required fields of unsupported types would fail validation.
        return cls.model_construct(**values)
    return cls(**values)


def _tags_from(metadata: tuple[Any, ...]) -> dict[str, str]:
    tags: dict[str, str] = {}
    for item in metadata:
        if isinstance(item, Tags):
            tags.update(item)
    return tags


def field_specs(cls: type) -> list[FieldSpec]:
    """
    Declared fields of a model or dataclass class, in declaration order.

    Tags are collected from `Tags` objects in `Annotated` metadata; for
    dataclasses, string entries of `field(metadata=...)` are merged in too.
    """
    specs = []
    if issubclass(cls, BaseModel):
        for index, (name, info) in enumerate(cls.model_fields.items()):
            annotation, extra = _strip_annotated(info.annotation)
            metadata = (*info.metadata, *extra)
            specs.append(
                FieldSpec(
                    name=name,
                    annotation=annotation,
                    index=index,
                    tags=_tags_from(metadata),
                    metadata=metadata,
                    description=info.description,
                    required=info.is_required(),
                )
            )
        return specs

    hints = typing.get_type_hints(cls, include_extras=True)
    for index, dc_field in enumerate(dataclasses.fields(cls)):
        annotation, metadata = _strip_annotated(hints.get(dc_field.name, dc_field.type))
        tags = _tags_from(metadata)
        tags.update(_metadata_tags(dc_field.metadata))
        specs.append(
            FieldSpec(
                name=dc_field.name,
                annotation=annotation,
                index=index,
                tags=tags,
                metadata=metadata,
                description=tags.get("help"),
                required=(
                    dc_field.init
                    and dc_field.default is dataclasses.MISSING
                    and dc_field.default_factory is dataclasses.MISSING
                ),
            )
        )
    return specs


def _metadata_tags(metadata: Mapping[str, Any]) -> dict[str, str]:
    tags: dict[str, str] = {}
    for key, value in metadata.items():
        if isinstance(value, Tags):
            tags.update(value)
        elif isinstance(value, str):
            tags[key] = value
    return tags


def iter_fields(target: Any) -> Iterator[FieldSpec]:
    """Exported fields of a target instance; names starting with "_" are skipped."""
    for spec in field_specs(type(target)):
        if not spec.name.startswith("_"):
            yield spec
