"""
Exception classes for cfgtree.

This module defines the error types raised while building configuration
trees, resolving external names and converting values between fields and
their string form.
"""


class CfgTreeError(Exception):
    """Base exception for all cfgtree errors."""

    pass


class RootTypeError(CfgTreeError, TypeError):
    """Raised when a configuration root is not a model or dataclass instance."""

    def __init__(self, target: object):
        """
        Initialize the exception.

        Params:
            target: The rejected root object
        """
        self.target = target
        self.type_name = type(target).__name__
        super().__init__(
            f"configuration root must be a pydantic model or dataclass instance, got '{self.type_name}'"
        )


class TagUsageError(CfgTreeError):
    """Raised when a field tag is used in a way that cannot be honoured."""

    def __init__(self, field_name: str, reason: str):
        """
        Initialize the exception.

        Params:
            field_name: Name of the offending field
            reason: Complete description of the misuse
        """
        self.field_name = field_name
        self.reason = reason
        super().__init__(reason)


class FieldFormatError(CfgTreeError, ValueError):
    """Raised when a raw string cannot be converted to a field's type."""

    def __init__(self, name: str, raw: str, reason: str, time_format: str = ""):
        """
        Initialize the exception.

        Params:
            name: External key of the field (env variable, flag or full name)
            raw: The text that failed to convert
            reason: Underlying conversion failure
            time_format: Format tried, for timestamp fields
        """
        self.name = name
        self.raw = raw
        self.reason = reason
        self.time_format = time_format

        message = f"cannot parse '{raw}' for field '{name}': {reason}"
        if time_format:
            message += f" (fmt: {time_format})"
        super().__init__(message)

    def renamed(self, name: str) -> "FieldFormatError":
        """Copy of this error reported under a different external name."""
        return FieldFormatError(name, self.raw, self.reason, self.time_format)


class UnsupportedFormatError(CfgTreeError):
    """Raised when a document format cannot be determined or is unknown."""

    def __init__(self, source: str, supported: tuple[str, ...] = ()):
        """
        Initialize the exception.

        Params:
            source: File path or format name that was rejected
            supported: Format names that would have been accepted
        """
        self.source = source
        self.supported = supported
        message = f"unsupported configuration format '{source}'"
        if supported:
            message += f" (expected one of: {', '.join(supported)})"
        super().__init__(message)


class DocumentError(CfgTreeError):
    """Raised when a configuration document cannot be applied to a target."""

    def __init__(self, source: str, reason: str):
        """
        Initialize the exception.

        Params:
            source: File path or format name of the document
            reason: Why the document was rejected
        """
        self.source = source
        self.reason = reason
        super().__init__(f"invalid configuration document '{source}': {reason}")
