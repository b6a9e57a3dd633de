"""Skip rules: the exceptions a snapshot comparison should tolerate.

Rules are kept in four maps keyed by lower-cased table name, one per rule
kind, with precedence whole-table > column-list > row-predicate >
index-attribute.  When two snapshots are compared their rules are merged
with the ``merge_*`` functions below; the inputs are never mutated.
"""

import re
from collections.abc import Mapping

from pydantic import BaseModel, Field


class SkipColumns(BaseModel):
    """Columns excluded from content comparison.

    An empty column list skips the whole table, schema included.

    Example:
        >>> SkipColumns(table="audit_log").skip_whole_table
        True
        >>> SkipColumns(table="orders", columns=["updated_at"]).is_column_skipped("UPDATED_AT")
        True
    """

    table: str
    columns: list[str] = Field(default_factory=list)

    @property
    def skip_whole_table(self) -> bool:
        return not self.columns

    def is_column_skipped(self, column: str) -> bool:
        wanted = column.lower()
        return any(c.lower() == wanted for c in self.columns)

    def add_column(self, column: str) -> None:
        if not self.is_column_skipped(column):
            self.columns.append(column)


class SkipContent(BaseModel):
    """Ignore a table's content, optionally still comparing its row count."""

    table: str
    remember_number_of_rows: bool = False


class SkipRowPredicate(BaseModel):
    """Discard rows whose *column* value equals or fully matches *value*."""

    column: str
    value: str

    def matches_value(self, value: str) -> bool:
        if value == self.value:
            return True
        try:
            return re.fullmatch(self.value, value) is not None
        except re.error:
            return False

    def matches(self, row: Mapping[str, str]) -> bool:
        wanted = self.column.lower()
        for column, value in row.items():
            if column.lower() == wanted:
                return self.matches_value(value)
        return False


class SkipRows(BaseModel):
    """Ordered list of row predicates for one table."""

    table: str
    predicates: list[SkipRowPredicate] = Field(default_factory=list)

    def add(self, column: str, value: str) -> None:
        self.predicates.append(SkipRowPredicate(column=column, value=value))

    def matches(self, row: Mapping[str, str]) -> bool:
        """Return True if any predicate matches *row*."""
        return any(p.matches(row) for p in self.predicates)


class SkipIndexAttributes(BaseModel):
    """Attributes stripped from index descriptions, per lower-cased index name."""

    table: str
    attributes: dict[str, list[str]] = Field(default_factory=dict)

    def add(self, index: str, attributes: list[str]) -> None:
        existing = self.attributes.setdefault(index.lower(), [])
        for attribute in attributes:
            if attribute not in existing:
                existing.append(attribute)

    def attributes_for(self, index: str) -> list[str]:
        return self.attributes.get(index.lower(), [])


class SkipIndex(BaseModel):
    """Property sets identifying indexes to drop at acquisition time."""

    table: str
    property_sets: list[dict[str, str]] = Field(default_factory=list)


# ============================================================================
# Merge operators
# ============================================================================


def merge_skip_columns(
    first: Mapping[str, SkipColumns], second: Mapping[str, SkipColumns]
) -> dict[str, SkipColumns]:
    """Merge column rules; a whole-table skip on either side wins.

    Example:
        >>> merged = merge_skip_columns(
        ...     {"t": SkipColumns(table="t", columns=["a"])},
        ...     {"t": SkipColumns(table="t", columns=["b"])},
        ... )
        >>> merged["t"].columns
        ['a', 'b']
    """
    merged = {table: rule.model_copy(deep=True) for table, rule in first.items()}
    for table, second_rule in second.items():
        first_rule = merged.get(table)
        if first_rule is None or second_rule.skip_whole_table:
            merged[table] = second_rule.model_copy(deep=True)
        elif first_rule.skip_whole_table:
            continue
        else:
            for column in second_rule.columns:
                first_rule.add_column(column)
    return merged


def merge_skip_rows(
    first: Mapping[str, SkipRows], second: Mapping[str, SkipRows]
) -> dict[str, SkipRows]:
    """Union of row predicates per table, first side's predicates first."""
    merged = {table: rule.model_copy(deep=True) for table, rule in first.items()}
    for table, second_rule in second.items():
        first_rule = merged.get(table)
        if first_rule is None:
            merged[table] = second_rule.model_copy(deep=True)
        else:
            first_rule.predicates.extend(p.model_copy() for p in second_rule.predicates)
    return merged


def merge_skip_content(
    first: Mapping[str, SkipContent], second: Mapping[str, SkipContent]
) -> dict[str, SkipContent]:
    """Content rules; the second side overwrites the first for the same table."""
    merged = {table: rule.model_copy() for table, rule in first.items()}
    merged.update({table: rule.model_copy() for table, rule in second.items()})
    return merged


def tables_to_skip(skip_columns: Mapping[str, SkipColumns]) -> set[str]:
    """Lower-cased names of tables skipped as a whole."""
    return {table for table, rule in skip_columns.items() if rule.skip_whole_table}
