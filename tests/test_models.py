"""Tests for table descriptions, row strings and text escaping."""

import pytest

from db_snapshot.schema.models import (
    NULL_VALUE,
    TableDescription,
    column_name_from_description,
    describe_index,
    format_row,
    parse_description,
    parse_row,
)
from db_snapshot.utils import (
    escape_text,
    string_to_timestamp,
    timestamp_to_string,
    unescape_text,
)


class TestTableDescription:
    """Verify derived column names and qualified names."""

    def test_column_names_from_descriptions(self) -> None:
        """Column names are taken from the name= token, in order."""
        table = TableDescription(
            name="users",
            column_descriptions=[
                "name=id, type=INTEGER, nullable=False",
                "name=email, type=VARCHAR(255), nullable=True",
            ],
        )
        assert table.column_names == ["id", "email"]

    def test_has_column_is_case_insensitive(self) -> None:
        table = TableDescription(name="users", column_descriptions=["name=Email, type=TEXT"])
        assert table.has_column("email")
        assert table.has_column("EMAIL")
        assert not table.has_column("id")

    def test_qualified_name_with_schema(self) -> None:
        table = TableDescription(name="users", schema_name="public")
        assert table.qualified_name == "public.users"

    def test_qualified_name_without_schema(self) -> None:
        assert TableDescription(name="users").qualified_name == "users"

    def test_description_without_name_token(self) -> None:
        """A bare description is used as the column name."""
        assert column_name_from_description("id") == "id"


class TestIndexDescriptions:
    """Verify index descriptions leave out the index name."""

    def test_describe_index_excludes_name(self) -> None:
        description = describe_index(
            {"INDEX_NAME": "idx_users_email", "COLUMN_NAME": "email", "NON_UNIQUE": "false"}
        )
        assert description == "COLUMN_NAME=email, NON_UNIQUE=false"

    def test_parse_description(self) -> None:
        assert parse_description("name=id, type=INTEGER") == {"name": "id", "type": "INTEGER"}


class TestRowStrings:
    """Verify row formatting and parsing."""

    def test_format_row(self) -> None:
        assert format_row({"id": 1, "name": "alice"}) == "id=1|name=alice"

    def test_null_rendered_as_null(self) -> None:
        assert format_row({"id": 1, "deleted_at": None}) == f"id=1|deleted_at={NULL_VALUE}"

    def test_separator_and_backslash_escaped(self) -> None:
        """Pipes and backslashes inside values are escaped."""
        row = format_row({"path": "a|b\\c"})
        assert row == "path=a\\|b\\\\c"

    def test_parse_restores_escaped_values(self) -> None:
        values = parse_row(format_row({"path": "a|b\\c", "id": 7}))
        assert values == {"path": "a|b\\c", "id": "7"}

    def test_parse_keeps_equals_in_values(self) -> None:
        assert parse_row("expr=a=b|id=1") == {"expr": "a=b", "id": "1"}

    def test_reformat_parsed_row_is_identical(self) -> None:
        """Parsing then formatting gives back the original row string."""
        original = format_row({"id": 1, "note": "x|y", "empty": ""})
        assert format_row(parse_row(original)) == original


class TestTextEscaping:
    """Verify escaping used for row nodes of backup documents."""

    def test_plain_text_unchanged(self) -> None:
        assert escape_text("id=1|name=bob") == "id=1|name=bob"

    def test_control_characters_escaped(self) -> None:
        assert escape_text("a\nb\tc") == "a\\u000ab\\u0009c"

    def test_backslash_escaped(self) -> None:
        assert escape_text("a\\b") == "a\\\\b"

    @pytest.mark.parametrize("text", ["a\nb", "tab\there", "slash\\u0041", "\x00", "plain"])
    def test_unescape_reverses_escape(self, text: str) -> None:
        assert unescape_text(escape_text(text)) == text


class TestTimestamps:
    """Verify backup timestamp formatting."""

    def test_epoch_formats_as_utc(self) -> None:
        assert timestamp_to_string(0) == "1970-01-01T00:00:00.000+00:00"

    def test_milliseconds_preserved(self) -> None:
        timestamp = 1_700_000_000_123
        assert string_to_timestamp(timestamp_to_string(timestamp)) == timestamp

    def test_invalid_timestamp_raises(self) -> None:
        with pytest.raises(ValueError):
            string_to_timestamp("yesterday")
