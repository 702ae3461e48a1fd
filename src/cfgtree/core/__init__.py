"""
Core module for cfgtree.

This module contains the node model, value conversion and name resolution
used by every backend.
"""

from cfgtree.core.tree_node import Node
from cfgtree.core.types import LeafKind, NumericWidth, Tags, TypeInfo, ValueKind

__all__ = [
    "Node",
    "LeafKind",
    "NumericWidth",
    "Tags",
    "TypeInfo",
    "ValueKind",
]
