"""
cfgtree - Populate nested configuration models from flags, environment variables and files

cfgtree walks a pydantic model (or dataclass) once, names every field for
each external surface and converts values to and from their string form.
"""

from importlib.metadata import version

from cfgtree.core.tree_node import Node
from cfgtree.core.types import (
    Float32,
    Float64,
    Int8,
    Int16,
    Int32,
    Int64,
    NumericWidth,
    Tags,
    Uint,
    Uint8,
    Uint16,
    Uint32,
    Uint64,
)
from cfgtree.exceptions import (
    CfgTreeError,
    DocumentError,
    FieldFormatError,
    RootTypeError,
    TagUsageError,
    UnsupportedFormatError,
)
from cfgtree.loader import (
    Config,
    LoaderOptions,
    load,
    load_env,
    load_file,
    load_flags,
)
from cfgtree.render import Renderer, RenderOptions
from cfgtree.structure.builder import (
    BuildOptions,
    NodeSet,
    build_node_sets,
    build_nodes,
)

__version__ = version("cfgtree")

__all__ = [
    "__version__",
    "Config",
    "LoaderOptions",
    "load",
    "load_env",
    "load_file",
    "load_flags",
    "Tags",
    "NumericWidth",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "Uint",
    "Uint8",
    "Uint16",
    "Uint32",
    "Uint64",
    "Float32",
    "Float64",
    "Node",
    "NodeSet",
    "BuildOptions",
    "build_nodes",
    "build_node_sets",
    "Renderer",
    "RenderOptions",
    "CfgTreeError",
    "RootTypeError",
    "TagUsageError",
    "FieldFormatError",
    "UnsupportedFormatError",
    "DocumentError",
]
