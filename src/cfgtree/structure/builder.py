"""
Tree builder for configuration targets.

Walks a model or dataclass instance once and produces a NodeSet: one Node
per supported leaf field plus a branch entry for every nested struct that is
followed. Optional fields holding None are materialized with zero values
along the way, so every node always reads a concrete value.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from cfgtree.core.conversion import to_float32
from cfgtree.core.tree_node import Node
from cfgtree.core.types import LeafKind, TypeInfo, ValueKind
from cfgtree.exceptions import RootTypeError
from cfgtree.structure.type_mapping import (
    describe_type,
    is_struct_instance,
    iter_fields,
    type_name,
    zero_value,
)

DEFAULT_NO_FOLLOW = frozenset({"datetime.datetime"})


def _names(types_or_names: Iterable[Any]) -> set[str]:
    return {item if isinstance(item, str) else type_name(item) for item in types_or_names}


@dataclass
class BuildOptions:
    """
    Configuration for tree building.

    Params:
        no_follow: Struct types kept as a single opaque leaf instead of being
                   recursed into (type objects or qualified names)
        ignore_types: Types skipped entirely, matched by qualified name
    """

    no_follow: set[str] = field(default_factory=lambda: set(DEFAULT_NO_FOLLOW))
    ignore_types: set[str] = field(default_factory=set)

    def __post_init__(self):
        self.no_follow = _names(self.no_follow)
        self.ignore_types = _names(self.ignore_types)

    @classmethod
    def from_dict(cls, config: dict | None = None) -> "BuildOptions":
        """Factory method to create options from dict with defaults."""
        if config is None:
            config = {}
        return cls(**config)


class NodeSet(Mapping[str, Node]):
    """
    Nodes of one configuration target keyed by full name, in build order.

    Branch entries for followed structs are kept so that ancestor tags can be
    looked up; `leaves()` skips them.
    """

    def __init__(self, target: Any):
        self.target = target
        self._nodes: dict[str, Node] = {}

    def __getitem__(self, name: str) -> Node:
        return self._nodes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"NodeSet({type(self.target).__name__}, {list(self._nodes)})"

    def add(self, node: Node) -> None:
        """
        Insert a node.

        Raises:
            RuntimeError: If a node with the same full name already exists
        """
        if node.full_name in self._nodes:
            raise RuntimeError(f"duplicate node '{node.full_name}'")
        self._nodes[node.full_name] = node

    def merge(self, other: "NodeSet") -> None:
        """Insert every node of `other`, preserving its order."""
        for node in other.values():
            self.add(node)

    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def leaves(self) -> list[Node]:
        """Leaf nodes only, in declaration order."""
        return [node for node in self._nodes.values() if not node.is_branch]

    def parent(self, node: Node) -> Node | None:
        """Direct parent of a node, None at the root level."""
        if not node.prefix:
            return None
        return self._nodes.get(node.prefix)

    def parents(self, node: Node) -> list[Node]:
        """All ancestors of a node, most distant first."""
        return [self._nodes[name] for name in node.parent_names if name in self._nodes]


def _leaf_kind(info: TypeInfo) -> LeafKind:
    match info.kind:
        case ValueKind.TIME:
            return LeafKind.TEMPORAL
        case ValueKind.SLICE:
            return LeafKind.SLICE
        case ValueKind.STRUCT:
            return LeafKind.OPAQUE
    return LeafKind.SCALAR


def _is_float32(info: TypeInfo | None) -> bool:
    return (
        info is not None
        and info.kind is ValueKind.FLOAT
        and info.width is not None
        and info.width.bits == 32
    )


def _single(value: float) -> float:
    try:
        return to_float32(value)
    except OverflowError:
        # out of single-precision range, left for the codec to reject
        return value


def _round_float32(info: TypeInfo, value: Any) -> Any:
    """Round single-precision floats so their text form decodes to the same value."""
    if _is_float32(info):
        return _single(value)
    if info.kind is ValueKind.SLICE and _is_float32(info.elem):
        return [_single(item) for item in value]
    return value


def _collect(
    owner: Any, lineage: tuple[str, ...], options: BuildOptions, target: Any
) -> NodeSet:
    nodes = NodeSet(target)
    for spec in iter_fields(owner):
        info = describe_type(spec.annotation, spec.metadata)
        if info is None or info.type_name in options.ignore_types:
            continue

        value = getattr(owner, spec.name)
        if value is None:
            value = zero_value(info)
            setattr(owner, spec.name, value)

        rounded = _round_float32(info, value)
        if rounded != value:
            value = rounded
            setattr(owner, spec.name, value)

        path = (*lineage, spec.name)
        follow = info.kind is ValueKind.STRUCT and info.type_name not in options.no_follow

        nodes.add(
            Node(
                owner=owner,
                field_name=spec.name,
                info=info,
                path=path,
                leaf_kind=None if follow else _leaf_kind(info),
                tags=spec.tags,
                description=spec.description,
                index=spec.index,
            )
        )
        if follow:
            nodes.merge(_collect(value, path, options, target))

    return nodes


def build_nodes(target: Any, options: BuildOptions | None = None) -> NodeSet:
    """
    Build the node set of one configuration target.

    Params:
        target: A pydantic model or dataclass instance; modified in place when
                optional fields hold None
        options: No-follow and ignore lists

    Returns:
        NodeSet with leaf nodes and branch entries in declaration order

    Raises:
        RootTypeError: If target is not a model or dataclass instance
    """
    if not is_struct_instance(target):
        raise RootTypeError(target)
    return _collect(target, (), options or BuildOptions(), target)


def build_node_sets(*targets: Any, options: BuildOptions | None = None) -> list[NodeSet]:
    """Build one node set per target, in order."""
    return [build_nodes(target, options) for target in targets]
