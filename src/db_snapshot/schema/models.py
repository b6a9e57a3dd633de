"""Pydantic models and helpers for captured table metadata.

This module contains schema-domain models:
- TableDescription: the per-table metadata captured by a snapshot
- Row helpers: format_row, parse_row, stringify_row
- Index helpers: describe_index, parse_description

Rule models (SkipColumns, SkipContent, ...) live in
db_snapshot.snapshot.rules.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

# Value written for SQL NULL in row strings
NULL_VALUE = "NULL"

# Index property holding the index name; excluded from descriptions so the
# name is only compared through the index matcher
INDEX_NAME = "INDEX_NAME"

ROW_SEPARATOR = "|"
ESCAPE_CHAR = "\\"


# ============================================================================
# Table Description
# ============================================================================


class TableDescription(BaseModel):
    """Metadata captured for one table.

    Example:
        >>> table = TableDescription(
        ...     name="users",
        ...     column_descriptions=["name=id, type=INTEGER", "name=email, type=TEXT"],
        ... )
        >>> table.column_names
        ['id', 'email']
        >>> table.has_column("EMAIL")
        True
    """

    name: str
    schema_name: str | None = None
    snapshot_name: str = ""
    primary_key_column: str = ""
    column_descriptions: list[str] = Field(default_factory=list)
    indexes: dict[str, str] = Field(default_factory=dict)
    index_properties: dict[str, dict[str, str]] = Field(default_factory=dict)

    @property
    def qualified_name(self) -> str:
        """Table name prefixed with its schema when one is set."""
        if self.schema_name:
            return f"{self.schema_name}.{self.name}"
        return self.name

    @property
    def column_names(self) -> list[str]:
        """Column names in description order."""
        return [column_name_from_description(d) for d in self.column_descriptions]

    def has_column(self, column: str) -> bool:
        """Check whether the table has *column* (case-insensitive)."""
        wanted = column.lower()
        return any(name.lower() == wanted for name in self.column_names)


def column_name_from_description(description: str) -> str:
    """Extract the column name from a ``name=..., type=...`` description."""
    first = description.split(",", 1)[0].strip()
    key, sep, value = first.partition("=")
    if sep and key.strip().lower() == "name":
        return value.strip()
    return first


# ============================================================================
# Index Descriptions
# ============================================================================


def describe_index(properties: Mapping[str, str]) -> str:
    """Render index properties as a ``KEY=value, ...`` description.

    The index name is left out so renamed but otherwise identical indexes
    compare equal once the matcher pairs them.
    """
    return ", ".join(
        f"{key}={value}" for key, value in properties.items() if key != INDEX_NAME
    )


def parse_description(description: str) -> dict[str, str]:
    """Break a ``key=value, key=value`` description into a mapping."""
    attributes: dict[str, str] = {}
    for token in description.split(","):
        key, sep, value = token.partition("=")
        if sep:
            attributes[key.strip()] = value.strip()
    return attributes


# ============================================================================
# Row Strings
# ============================================================================


def stringify_row(row: Mapping[str, Any]) -> dict[str, str]:
    """Convert a loaded row to string values, NULL included."""
    return {
        str(column): NULL_VALUE if value is None else str(value)
        for column, value in row.items()
    }


def _escape_value(value: str) -> str:
    return value.replace(ESCAPE_CHAR, ESCAPE_CHAR * 2).replace(
        ROW_SEPARATOR, ESCAPE_CHAR + ROW_SEPARATOR
    )


def format_row(row: Mapping[str, Any]) -> str:
    """Render a row as ``col=value|col=value``.

    Example:
        >>> format_row({"id": 1, "note": "a|b", "deleted": None})
        'id=1|note=a\\\\|b|deleted=NULL'
    """
    return ROW_SEPARATOR.join(
        f"{column}={_escape_value(value)}" for column, value in stringify_row(row).items()
    )


def parse_row(row: str) -> dict[str, str]:
    """Parse a row string produced by ``format_row`` back into its values."""
    tokens: list[str] = []
    current: list[str] = []
    escaped = False
    for char in row:
        if escaped:
            current.append(char)
            escaped = False
        elif char == ESCAPE_CHAR:
            escaped = True
        elif char == ROW_SEPARATOR:
            tokens.append("".join(current))
            current = []
        else:
            current.append(char)
    tokens.append("".join(current))

    values: dict[str, str] = {}
    for token in tokens:
        if not token:
            continue
        column, _, value = token.partition("=")
        values[column] = value
    return values
