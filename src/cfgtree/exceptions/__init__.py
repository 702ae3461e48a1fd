"""
cfgtree exception classes.

This package provides all exception types used throughout cfgtree for
consistent error handling and reporting.
"""

from cfgtree.exceptions.core import (
    CfgTreeError,
    DocumentError,
    FieldFormatError,
    RootTypeError,
    TagUsageError,
    UnsupportedFormatError,
)

__all__ = [
    "CfgTreeError",
    "RootTypeError",
    "TagUsageError",
    "FieldFormatError",
    "UnsupportedFormatError",
    "DocumentError",
]
