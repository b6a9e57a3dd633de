"""Ledger of differences found while comparing two snapshots.

A fresh ``DatabaseEqualityState`` is created for every ``compare()`` call.
Table comparisons append to it, reconciliation clears tolerated entries and
whatever is left decides the verdict.
"""

from pydantic import BaseModel, Field

from db_snapshot.schema.models import parse_description, parse_row

# snapshot name -> table name -> values
PerTable = dict[str, dict[str, list[str]]]


def _find_key(per_table: dict, table: str) -> str | None:
    wanted = table.lower()
    for key in per_table:
        if key.lower() == wanted:
            return key
    return None


class DatabaseEqualityState(BaseModel):
    """Differences between two snapshots, grouped by snapshot and table.

    Example:
        >>> state = DatabaseEqualityState(first_snapshot_name="before", second_snapshot_name="after")
        >>> state.has_differences()
        False
        >>> state.add_table_present_in_one_snapshot_only("before", "users")
        >>> state.get_tables_present_in_one_snapshot_only("before")
        ['users']
    """

    first_snapshot_name: str
    second_snapshot_name: str
    tables_present_in_one_snapshot_only: dict[str, list[str]] = Field(default_factory=dict)
    different_primary_keys: dict[str, dict[str, str]] = Field(default_factory=dict)
    different_number_of_rows: dict[str, dict[str, int]] = Field(default_factory=dict)
    rows_present_in_one_snapshot_only: PerTable = Field(default_factory=dict)
    columns_present_in_one_snapshot_only: PerTable = Field(default_factory=dict)
    indexes_present_in_one_snapshot_only: PerTable = Field(default_factory=dict)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def add_table_present_in_one_snapshot_only(self, snapshot: str, table: str) -> None:
        self.tables_present_in_one_snapshot_only.setdefault(snapshot, []).append(table)

    def add_different_primary_keys(
        self, table: str, first_primary_key: str, second_primary_key: str
    ) -> None:
        self.different_primary_keys.setdefault(self.first_snapshot_name, {})[table] = (
            first_primary_key
        )
        self.different_primary_keys.setdefault(self.second_snapshot_name, {})[table] = (
            second_primary_key
        )

    def add_different_number_of_rows(
        self, table: str, first_count: int, second_count: int
    ) -> None:
        self.different_number_of_rows.setdefault(self.first_snapshot_name, {})[table] = (
            first_count
        )
        self.different_number_of_rows.setdefault(self.second_snapshot_name, {})[table] = (
            second_count
        )

    def add_row_present_in_one_snapshot_only(self, snapshot: str, table: str, row: str) -> None:
        self.rows_present_in_one_snapshot_only.setdefault(snapshot, {}).setdefault(
            table, []
        ).append(row)

    def add_column_present_in_one_snapshot_only(
        self, snapshot: str, table: str, column: str
    ) -> None:
        self.columns_present_in_one_snapshot_only.setdefault(snapshot, {}).setdefault(
            table, []
        ).append(column)

    def add_index_present_in_one_snapshot_only(
        self, snapshot: str, table: str, index: str
    ) -> None:
        self.indexes_present_in_one_snapshot_only.setdefault(snapshot, {}).setdefault(
            table, []
        ).append(index)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_differences(self) -> bool:
        """True when any category holds at least one entry."""
        per_table = (
            self.different_primary_keys,
            self.different_number_of_rows,
            self.rows_present_in_one_snapshot_only,
            self.columns_present_in_one_snapshot_only,
            self.indexes_present_in_one_snapshot_only,
        )
        if any(self.tables_present_in_one_snapshot_only.values()):
            return True
        return any(tables for by_snapshot in per_table for tables in by_snapshot.values())

    def get_tables_present_in_one_snapshot_only(self, snapshot: str) -> list[str]:
        return list(self.tables_present_in_one_snapshot_only.get(snapshot, []))

    def get_different_primary_key(self, snapshot: str, table: str) -> str | None:
        tables = self.different_primary_keys.get(snapshot, {})
        key = _find_key(tables, table)
        return tables[key] if key is not None else None

    def get_different_number_of_rows(self, snapshot: str, table: str) -> int | None:
        tables = self.different_number_of_rows.get(snapshot, {})
        key = _find_key(tables, table)
        return tables[key] if key is not None else None

    def get_rows_present_in_one_snapshot_only(self, snapshot: str, table: str) -> list[str]:
        return self._get_values(self.rows_present_in_one_snapshot_only, snapshot, table)

    def get_rows_present_in_one_snapshot_only_as_values(
        self, snapshot: str, table: str
    ) -> list[dict[str, str]]:
        """Rows present in one snapshot only, parsed into column/value mappings."""
        return [parse_row(r) for r in self.get_rows_present_in_one_snapshot_only(snapshot, table)]

    def get_columns_present_in_one_snapshot_only(self, snapshot: str, table: str) -> list[str]:
        return self._get_values(self.columns_present_in_one_snapshot_only, snapshot, table)

    def get_columns_present_in_one_snapshot_only_as_attributes(
        self, snapshot: str, table: str
    ) -> list[dict[str, str]]:
        return [
            parse_description(c)
            for c in self.get_columns_present_in_one_snapshot_only(snapshot, table)
        ]

    def get_indexes_present_in_one_snapshot_only(self, snapshot: str, table: str) -> list[str]:
        return self._get_values(self.indexes_present_in_one_snapshot_only, snapshot, table)

    @staticmethod
    def _get_values(category: PerTable, snapshot: str, table: str) -> list[str]:
        tables = category.get(snapshot, {})
        key = _find_key(tables, table)
        return list(tables[key]) if key is not None else []

    # ------------------------------------------------------------------
    # Clearing
    # ------------------------------------------------------------------

    def clear_different_number_of_rows(self, table: str) -> None:
        """Forget row count differences recorded for *table* in both snapshots."""
        for tables in self.different_number_of_rows.values():
            key = _find_key(tables, table)
            if key is not None:
                del tables[key]

    def clear_rows_present_in_one_snapshot_only(self, table: str) -> None:
        """Forget rows recorded as present in one snapshot only for *table*."""
        for tables in self.rows_present_in_one_snapshot_only.values():
            key = _find_key(tables, table)
            if key is not None:
                del tables[key]

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def format_report(self) -> str:
        """Format the differences as a human-readable report."""
        if not self.has_differences():
            return (
                f"Snapshots [{self.first_snapshot_name}] and "
                f"[{self.second_snapshot_name}] are equal"
            )

        lines = [
            f"Snapshots [{self.first_snapshot_name}] and "
            f"[{self.second_snapshot_name}] differ:"
        ]
        for snapshot in (self.first_snapshot_name, self.second_snapshot_name):
            tables = self.tables_present_in_one_snapshot_only.get(snapshot, [])
            if tables:
                lines.append(f"\n  Tables present in [{snapshot}] only: {', '.join(tables)}")

        for table, first_key in self.different_primary_keys.get(
            self.first_snapshot_name, {}
        ).items():
            second_key = self.get_different_primary_key(self.second_snapshot_name, table)
            lines.append(
                f"\n  Different primary keys for table {table}: "
                f"[{first_key}] vs [{second_key}]"
            )

        for table, first_count in self.different_number_of_rows.get(
            self.first_snapshot_name, {}
        ).items():
            second_count = self.get_different_number_of_rows(self.second_snapshot_name, table)
            lines.append(
                f"\n  Different number of rows for table {table}: "
                f"{first_count} vs {second_count}"
            )

        categories = (
            ("Columns", self.columns_present_in_one_snapshot_only),
            ("Indexes", self.indexes_present_in_one_snapshot_only),
            ("Rows", self.rows_present_in_one_snapshot_only),
        )
        for label, category in categories:
            for snapshot in (self.first_snapshot_name, self.second_snapshot_name):
                for table, values in category.get(snapshot, {}).items():
                    if not values:
                        continue
                    lines.append(
                        f"\n  {label} present in [{snapshot}] only for table {table} "
                        f"({len(values)}):"
                    )
                    for value in values:
                        lines.append(f"    - {value}")

        return "\n".join(lines)
