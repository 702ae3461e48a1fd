"""
Tests for the tree builder.

Focus Areas:
1. Node sets built from models and dataclasses
2. Materialization of optional fields
3. No-follow and ignore lists
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any

import pytest
from pydantic import BaseModel

from cfgtree import BuildOptions, Float32, RootTypeError, Tags, build_node_sets, build_nodes
from cfgtree.core.conversion import decode, encode, to_float32
from cfgtree.core.tree_node import Node
from cfgtree.core.types import LeafKind
from cfgtree.structure.builder import NodeSet
from cfgtree.structure.type_mapping import describe_type


class Leaf(BaseModel):
    value: int = 1


class Middle(BaseModel):
    leaf: Leaf = Leaf()
    name: str = "middle"


class Tree(BaseModel):
    middle: Middle | None = None
    callback: Any = None
    mapping: dict[str, int] = {}
    stamp: datetime = datetime(2020, 1, 1)


class Gauge(BaseModel):
    ratio: Float32 = 0.1
    ratios: list[Float32] = [0.1, 0.2]
    exact: float = 0.1


@dataclass
class Settings:
    port: int = 80
    _secret: str = "hidden"
    leaf: Leaf | None = None


class TestBuildNodes:
    """Test node set construction."""

    def test_order_and_branches(self, app_options):
        """Test nodes follow declaration order with branch entries kept."""
        nodes = build_nodes(app_options)
        assert list(nodes) == [
            "run_duration",
            "duck_names",
            "ignore_me",
            "db",
            "db.host",
            "db.username",
            "db.password",
        ]
        assert [node.full_name for node in nodes.leaves()] == [
            "run_duration",
            "duck_names",
            "ignore_me",
            "db.host",
            "db.username",
            "db.password",
        ]

    def test_parents(self):
        """Test ancestors are returned oldest first."""
        nodes = build_nodes(Tree())
        node = nodes["middle.leaf.value"]
        assert [parent.full_name for parent in nodes.parents(node)] == [
            "middle",
            "middle.leaf",
        ]
        assert nodes.parent(node).full_name == "middle.leaf"
        assert nodes.parent(nodes["middle"]) is None

    def test_unsupported_fields_are_skipped(self):
        """Test fields without a string form produce no node."""
        nodes = build_nodes(Tree())
        assert "callback" not in nodes
        assert "mapping" not in nodes

    def test_optional_struct_is_materialized(self):
        """Test None structs are replaced by zero instances on the target."""
        tree = Tree()
        build_nodes(tree)
        assert tree.middle is not None
        assert tree.middle.name == "middle"
        assert tree.middle.leaf.value == 1

    def test_optional_scalar_is_materialized(self, populated_sample):
        """Test None scalars are replaced by zero values on the target."""
        sample = type(populated_sample)()
        nodes = build_nodes(sample)
        assert sample.maybe == 0
        assert nodes["maybe"].string() == "0"

    def test_float32_values_are_rounded(self):
        """Test single-precision fields hold a value their text decodes back to."""
        gauge = Gauge()
        source = build_nodes(gauge)
        assert gauge.ratio == to_float32(0.1)
        assert gauge.ratios == [to_float32(0.1), to_float32(0.2)]
        assert gauge.exact == 0.1

        fresh = Gauge(ratio=0.5, ratios=[], exact=0.0)
        target = build_nodes(fresh)
        for node in source.leaves():
            decode(target[node.full_name], encode(node))
        assert fresh == gauge

    def test_nodes_share_owner(self):
        """Test writes through a node land on the original object."""
        tree = Tree()
        nodes = build_nodes(tree)
        nodes["middle.leaf.value"].set_field_value("42")
        assert tree.middle.leaf.value == 42

    def test_datetime_is_temporal(self):
        """Test timestamps are leaves, never followed."""
        node = build_nodes(Tree())["stamp"]
        assert node.leaf_kind is LeafKind.TEMPORAL
        assert not node.is_branch

    def test_dataclass_root(self):
        """Test dataclass roots and underscore fields."""
        settings = Settings()
        nodes = build_nodes(settings)
        assert list(nodes) == ["port", "leaf", "leaf.value"]
        assert settings.leaf.value == 1

    def test_tags_are_attached(self, app_options):
        """Test declared tags are readable from the node."""
        nodes = build_nodes(app_options)
        assert nodes["db"].get_tag("env") == "omitprefix"
        assert nodes["duck_names"].get_tag("sep") == ";"

    @pytest.mark.parametrize("target", [Tree, 5, "text", None, {"a": 1}])
    def test_root_must_be_an_instance(self, target):
        """Test classes and non-struct values are rejected as roots."""
        with pytest.raises(RootTypeError):
            build_nodes(target)

    def test_root_error_is_type_error(self):
        """Test RootTypeError can be caught as TypeError."""
        with pytest.raises(TypeError, match="got 'int'"):
            build_nodes(5)

    def test_multiple_targets(self, app_options, populated_sample):
        """Test one node set is built per target."""
        sets = build_node_sets(app_options, populated_sample)
        assert [type(nodes.target) for nodes in sets] == [
            type(app_options),
            type(populated_sample),
        ]


class TestBuildOptions:
    """Test no-follow and ignore lists."""

    def test_no_follow_makes_opaque_leaf(self):
        """Test structs on the no-follow list become single opaque leaves."""
        nodes = build_nodes(Tree(), BuildOptions(no_follow={Middle}))
        assert nodes["middle"].leaf_kind is LeafKind.OPAQUE
        assert "middle.name" not in nodes

    def test_ignore_types(self):
        """Test types on the ignore list are skipped entirely."""
        options = BuildOptions(ignore_types={Leaf, "str"})
        nodes = build_nodes(Tree(), options)
        assert "middle.leaf" not in nodes
        assert "middle.name" not in nodes
        assert "middle" in nodes

    def test_names_are_normalized(self):
        """Test types and names are stored as qualified names."""
        options = BuildOptions(no_follow={Leaf})
        assert options.no_follow == {f"{__name__}.Leaf"}
        assert BuildOptions().no_follow == {"datetime.datetime"}

    def test_from_dict(self):
        """Test options can be created from a dict."""
        options = BuildOptions.from_dict({"ignore_types": ["int"]})
        assert options.ignore_types == {"int"}
        assert BuildOptions.from_dict(None).ignore_types == set()


class TestNodeSet:
    """Test NodeSet bookkeeping."""

    def test_duplicate_is_rejected(self):
        """Test adding two nodes with the same full name fails."""
        nodes = NodeSet(Leaf())
        info = describe_type(int)
        owner = Leaf()
        nodes.add(Node(owner, "value", info, ("value",), LeafKind.SCALAR))
        with pytest.raises(RuntimeError, match="duplicate node 'value'"):
            nodes.add(Node(owner, "value", info, ("value",), LeafKind.SCALAR))

    def test_mapping_interface(self, app_options):
        """Test NodeSet behaves as a read-only mapping."""
        nodes = build_nodes(app_options)
        assert len(nodes) == 7
        assert nodes.get("missing") is None
        assert nodes["db.host"].value == "localhost:5432"

    def test_tagged_optional_struct(self):
        """Test tags on an optional struct reach the branch node."""

        class Holder(BaseModel):
            inner: Annotated[Leaf | None, Tags(env="IN")] = None

        nodes = build_nodes(Holder())
        assert nodes["inner"].is_branch
        assert nodes["inner"].get_tag("env") == "IN"
