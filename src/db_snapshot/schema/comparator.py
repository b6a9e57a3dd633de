"""Table-level comparison of two snapshots.

Compares one table captured by two snapshots and records every difference
in a ``DatabaseEqualityState``.  Pure logic: rows and counts are loaded by
the caller and passed in.

Usage:
    from db_snapshot.schema.comparator import compare_tables
    from db_snapshot.schema.matchers import LiteralIndexMatcher

    compare_tables(
        first_table,
        second_table,
        equality,
        LiteralIndexMatcher(),
        first_rows=["id=1|name=a"],
        second_rows=["id=1|name=b"],
    )
"""

import logging
from collections import Counter

from db_snapshot.schema.matchers import IndexMatcher
from db_snapshot.schema.models import TableDescription
from db_snapshot.snapshot.equality import DatabaseEqualityState

logger = logging.getLogger(__name__)


def rows_only_in(rows: list[str], other_rows: list[str]) -> list[str]:
    """Multiset difference of row strings, in the order of *rows*.

    Examples:
        >>> rows_only_in(["a", "a", "b"], ["a", "b"])
        ['a']
        >>> rows_only_in(["a"], ["a"])
        []
    """
    remaining = Counter(other_rows)
    only: list[str] = []
    for row in rows:
        if remaining[row] > 0:
            remaining[row] -= 1
        else:
            only.append(row)
    return only


def _check_columns(
    first: TableDescription,
    second: TableDescription,
    equality: DatabaseEqualityState,
) -> bool:
    """Record column descriptions present on one side only.

    Returns True when both tables have the same column names, which is the
    precondition for comparing content.
    """
    first_descriptions = set(first.column_descriptions)
    second_descriptions = set(second.column_descriptions)
    for description in first.column_descriptions:
        if description not in second_descriptions:
            equality.add_column_present_in_one_snapshot_only(
                equality.first_snapshot_name, first.name, description
            )
    for description in second.column_descriptions:
        if description not in first_descriptions:
            equality.add_column_present_in_one_snapshot_only(
                equality.second_snapshot_name, first.name, description
            )

    first_names = {c.lower() for c in first.column_names}
    second_names = {c.lower() for c in second.column_names}
    return first_names == second_names


def _find_equivalent_index(
    table: TableDescription,
    index_name: str,
    candidates: TableDescription,
    matcher: IndexMatcher,
    own_is_first: bool,
) -> str | None:
    properties = table.index_properties.get(index_name, {})
    for candidate in candidates.indexes:
        candidate_properties = candidates.index_properties.get(candidate, {})
        if own_is_first:
            same = matcher.is_same(table.name, index_name, candidate) or (
                matcher.is_same_properties(table.name, properties, candidate_properties)
            )
        else:
            same = matcher.is_same(table.name, candidate, index_name) or (
                matcher.is_same_properties(table.name, candidate_properties, properties)
            )
        if same:
            return candidate
    return None


def _check_indexes_one_way(
    table: TableDescription,
    other: TableDescription,
    snapshot_name: str,
    matcher: IndexMatcher,
    equality: DatabaseEqualityState,
    own_is_first: bool,
) -> None:
    for index_name, description in table.indexes.items():
        match = _find_equivalent_index(table, index_name, other, matcher, own_is_first)
        if match is None or other.indexes[match] != description:
            equality.add_index_present_in_one_snapshot_only(
                snapshot_name, table.name, f"{index_name}: {description}"
            )


def compare_tables(
    first: TableDescription,
    second: TableDescription,
    equality: DatabaseEqualityState,
    index_matcher: IndexMatcher,
    first_rows: list[str] | None = None,
    second_rows: list[str] | None = None,
    first_count: int | None = None,
    second_count: int | None = None,
) -> None:
    """Compare one table of two snapshots and record the differences.

    Args:
        first: Table as captured by the first snapshot.
        second: Same table as captured by the second snapshot.
        equality: Ledger receiving the differences.
        index_matcher: Decides which indexes are the same index.
        first_rows: Row strings of the first snapshot, or None when content
            is not compared.
        second_rows: Row strings of the second snapshot.
        first_count: Row count of the first snapshot, or None when counts
            are not compared.
        second_count: Row count of the second snapshot.
    """
    if first.primary_key_column.lower() != second.primary_key_column.lower():
        equality.add_different_primary_keys(
            first.name, first.primary_key_column, second.primary_key_column
        )

    _check_indexes_one_way(
        first, second, equality.first_snapshot_name, index_matcher, equality, True
    )
    _check_indexes_one_way(
        second, first, equality.second_snapshot_name, index_matcher, equality, False
    )

    same_columns = _check_columns(first, second, equality)

    if first_rows is not None and second_rows is not None:
        if not same_columns:
            logger.warning(
                "Skip content comparison of table %s because its columns differ", first.name
            )
        else:
            if len(first_rows) != len(second_rows):
                equality.add_different_number_of_rows(
                    first.name, len(first_rows), len(second_rows)
                )
            for row in rows_only_in(first_rows, second_rows):
                equality.add_row_present_in_one_snapshot_only(
                    equality.first_snapshot_name, first.name, row
                )
            for row in rows_only_in(second_rows, first_rows):
                equality.add_row_present_in_one_snapshot_only(
                    equality.second_snapshot_name, first.name, row
                )

    if first_count is not None and second_count is not None and first_count != second_count:
        equality.add_different_number_of_rows(first.name, first_count, second_count)
