"""
Tests for exception classes.

Focus Areas:
1. Messages built from the stored fields
2. Hierarchy used by callers to catch errors
"""

import pytest

from cfgtree.exceptions import (
    CfgTreeError,
    DocumentError,
    FieldFormatError,
    RootTypeError,
    TagUsageError,
    UnsupportedFormatError,
)


class TestFieldFormatError:
    """Test conversion errors."""

    def test_message(self):
        """Test the message names the raw text, field and reason."""
        err = FieldFormatError("PORT", "abc", "invalid syntax")
        assert str(err) == "cannot parse 'abc' for field 'PORT': invalid syntax"
        assert isinstance(err, ValueError)

    def test_time_format_in_message(self):
        """Test the time format is appended when present."""
        err = FieldFormatError("started", "x", "bad time", time_format="DateOnly")
        assert str(err).endswith("(fmt: DateOnly)")

    def test_renamed(self):
        """Test renaming keeps every other field."""
        err = FieldFormatError("db.port", "abc", "bad", "RFC3339").renamed("--db-port")
        assert err.name == "--db-port"
        assert (err.raw, err.reason, err.time_format) == ("abc", "bad", "RFC3339")


class TestOtherErrors:
    """Test the remaining error types."""

    def test_root_type_error(self):
        """Test the rejected type is named."""
        err = RootTypeError([1, 2])
        assert err.type_name == "list"
        assert "got 'list'" in str(err)
        assert isinstance(err, TypeError)

    def test_tag_usage_error(self):
        """Test the reason is the message."""
        err = TagUsageError("port", "flag name alias 'po' must be one character")
        assert str(err) == "flag name alias 'po' must be one character"
        assert err.field_name == "port"

    def test_unsupported_format_error(self):
        """Test accepted formats are listed when known."""
        assert str(UnsupportedFormatError("a.ini")) == "unsupported configuration format 'a.ini'"
        err = UnsupportedFormatError("a.ini", ("toml", "json"))
        assert str(err).endswith("(expected one of: toml, json)")

    def test_document_error(self):
        """Test the source and reason are reported."""
        err = DocumentError("app.toml", "document root must be a mapping")
        assert str(err) == "invalid configuration document 'app.toml': document root must be a mapping"

    @pytest.mark.parametrize(
        "err",
        [
            RootTypeError(None),
            TagUsageError("f", "r"),
            FieldFormatError("n", "r", "x"),
            UnsupportedFormatError("s"),
            DocumentError("s", "r"),
        ],
    )
    def test_common_base(self, err):
        """Test every error derives from CfgTreeError."""
        assert isinstance(err, CfgTreeError)
