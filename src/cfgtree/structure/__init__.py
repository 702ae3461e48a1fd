"""
Structure module for cfgtree.

This module contains the tree builder and the annotation analysis it relies
on.
"""

from cfgtree.structure.builder import (
    BuildOptions,
    NodeSet,
    build_node_sets,
    build_nodes,
)
from cfgtree.structure.type_mapping import describe_type, type_name, zero_value

__all__ = [
    "BuildOptions",
    "NodeSet",
    "build_nodes",
    "build_node_sets",
    "describe_type",
    "type_name",
    "zero_value",
]
