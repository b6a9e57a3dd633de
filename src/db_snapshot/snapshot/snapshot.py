"""Point-in-time capture of a database's schema and content.

A ``DatabaseSnapshot`` records table metadata when taken and reads table
content lazily, either from its live data source or from the backup
document it was loaded from.  Two snapshots are compared with
``compare()``, which raises ``DatabaseSnapshotError`` carrying the ledger
of differences when they are not equal.

Usage:
    from db_snapshot import DatabaseSnapshot, SqlAlchemyDataSource

    before = DatabaseSnapshot("before", SqlAlchemyDataSource(url))
    before.skip_table_columns("orders", "updated_at")
    before.take_snapshot()
    before.save_to_file("snapshots/before.xml")

    # ... run the operation under test ...

    after = DatabaseSnapshot("after", SqlAlchemyDataSource(url))
    after.take_snapshot()
    before.compare(after)
"""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Callable, Mapping
from pathlib import Path

from db_snapshot.adapters.base import DataSource
from db_snapshot.backup.backup_restore import (
    load_from_file,
    read_table_row_count,
    read_table_rows,
    save_to_file,
)
from db_snapshot.schema.comparator import compare_tables
from db_snapshot.schema.matchers import IndexMatcher, RegexIndexMatcher, select_index_matcher
from db_snapshot.schema.models import TableDescription, format_row, parse_row, stringify_row
from db_snapshot.snapshot.equality import DatabaseEqualityState
from db_snapshot.snapshot.errors import DatabaseSnapshotError
from db_snapshot.snapshot.options import CompareOptions
from db_snapshot.snapshot.pruning import prune_indexes, remove_skipped_tables
from db_snapshot.snapshot.reconcile import reconcile_expected_differences
from db_snapshot.snapshot.rules import (
    SkipColumns,
    SkipContent,
    SkipIndex,
    SkipIndexAttributes,
    SkipRows,
    merge_skip_columns,
    merge_skip_content,
    merge_skip_rows,
    tables_to_skip,
)
from db_snapshot.utils import NOT_TAKEN, current_millis, timestamp_to_string

logger = logging.getLogger(__name__)


def _identity(name: str) -> str:
    return name


def _table_reference(table: TableDescription, quote: Callable[[str], str]) -> str:
    if table.schema_name:
        return f"{quote(table.schema_name)}.{quote(table.name)}"
    return quote(table.name)


def construct_select_statement(
    table: TableDescription,
    skip_columns: SkipColumns | None = None,
    sorted_columns: bool = False,
    quote: Callable[[str], str] | None = None,
) -> str | None:
    """Build the row query for *table*.

    Returns ``SELECT *`` unless columns are skipped or the data source needs
    sorted columns, in which case the column list is explicit.  Returns None
    when every column is skipped.  Schema, table and column names are
    passed through *quote* (usually the data source's
    ``quote_identifier``); without it they are used as they are.

    Examples:
        >>> table = TableDescription(name="users", column_descriptions=["name=id", "name=email"])
        >>> construct_select_statement(table)
        'SELECT * FROM users'
        >>> construct_select_statement(table, SkipColumns(table="users", columns=["email"]))
        'SELECT id FROM users'
        >>> construct_select_statement(table, quote=lambda name: f'"{name}"')
        'SELECT * FROM "users"'
    """
    quote = quote or _identity
    if skip_columns is None and not sorted_columns:
        return f"SELECT * FROM {_table_reference(table, quote)}"

    columns = table.column_names
    if skip_columns is not None:
        columns = [c for c in columns if not skip_columns.is_column_skipped(c)]
    if not columns:
        return None
    if sorted_columns:
        columns = sorted(columns)
    selected = ", ".join(quote(c) for c in columns)
    return f"SELECT {selected} FROM {_table_reference(table, quote)}"


def construct_count_statement(
    table: TableDescription, quote: Callable[[str], str] | None = None
) -> str:
    return f"SELECT COUNT(*) FROM {_table_reference(table, quote or _identity)}"


class DatabaseSnapshot:
    """Schema and content of a database at one point in time.

    Args:
        name: Snapshot name, unique among compared snapshots.
        data_source: Live source to take the snapshot from.  Not needed
            for snapshots loaded from a backup file.

    Raises:
        DatabaseSnapshotError: If *name* is empty.
    """

    def __init__(self, name: str, data_source: DataSource | None = None) -> None:
        if name is None or not name.strip():
            raise DatabaseSnapshotError(f"Invalid snapshot name '{name}'")

        self.name = name.strip()
        self.metadata_timestamp = NOT_TAKEN
        self.content_timestamp = NOT_TAKEN
        self.tables: list[TableDescription] = []

        # lower-cased table name -> rule
        self.skip_columns: dict[str, SkipColumns] = {}
        self.skip_content: dict[str, SkipContent] = {}
        self.skip_rows: dict[str, SkipRows] = {}
        self.skip_attributes: dict[str, SkipIndexAttributes] = {}
        self.skip_indexes: dict[str, SkipIndex] = {}

        self.index_matcher: IndexMatcher | None = None
        self.equality: DatabaseEqualityState | None = None

        self._data_source = data_source
        self._backup_document: ET.Element | None = None

    def __repr__(self) -> str:
        return f"DatabaseSnapshot(name={self.name!r}, tables={len(self.tables)})"

    @property
    def data_source(self) -> DataSource | None:
        return self._data_source

    @property
    def backup_document(self) -> ET.Element | None:
        """Document content is read from, when loaded from a backup file."""
        return self._backup_document

    @property
    def is_taken(self) -> bool:
        return self.metadata_timestamp != NOT_TAKEN

    def get_table(self, table: str) -> TableDescription | None:
        """Find a captured table by name (case-insensitive)."""
        wanted = table.lower()
        for description in self.tables:
            if description.name.lower() == wanted:
                return description
        return None

    # ------------------------------------------------------------------
    # Skip rules
    # ------------------------------------------------------------------

    def skip_tables(self, *tables: str) -> None:
        """Skip these tables entirely, schema included."""
        for table in tables:
            self.skip_columns[table.lower()] = SkipColumns(table=table)

    def skip_table_columns(self, table: str, *columns: str) -> None:
        """Exclude *columns* of *table* from content comparison.

        The table's schema and indexes are still compared.  A table already
        skipped as a whole stays skipped.

        Raises:
            DatabaseSnapshotError: If no column is given.
        """
        if not columns:
            raise DatabaseSnapshotError(f"No columns given to skip for table {table}")
        rule = self.skip_columns.get(table.lower())
        if rule is None:
            self.skip_columns[table.lower()] = SkipColumns(table=table, columns=list(columns))
        elif not rule.skip_whole_table:
            for column in columns:
                rule.add_column(column)

    def skip_table_content(self, table: str, remember_number_of_rows: bool = False) -> None:
        """Ignore the content of *table*, optionally comparing its row count."""
        self.skip_content[table.lower()] = SkipContent(
            table=table, remember_number_of_rows=remember_number_of_rows
        )

    def skip_table_rows(self, table: str, column: str, value: str) -> None:
        """Ignore rows of *table* whose *column* equals or fully matches *value*."""
        rule = self.skip_rows.setdefault(table.lower(), SkipRows(table=table))
        rule.add(column, value)

    def skip_table_indexes(self, table: str, properties: Mapping[str, str]) -> None:
        """Drop indexes of *table* whose properties include all of *properties*.

        Applied when the snapshot is taken.
        """
        rule = self.skip_indexes.setdefault(table.lower(), SkipIndex(table=table))
        rule.property_sets.append(dict(properties))

    def skip_index_attributes(self, table: str, index: str, *attributes: str) -> None:
        """Strip *attributes* from the description of *index* when taking the snapshot."""
        rule = self.skip_attributes.setdefault(
            table.lower(), SkipIndexAttributes(table=table)
        )
        rule.add(index, list(attributes))

    def set_index_matcher(self, matcher: IndexMatcher | str) -> None:
        """Use *matcher* to pair indexes; a string is compiled as a name pattern."""
        if isinstance(matcher, str):
            matcher = RegexIndexMatcher(matcher)
        self.index_matcher = matcher

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    def _require_data_source(self) -> DataSource:
        if self._data_source is None:
            raise DatabaseSnapshotError(f"No data source provided for snapshot [{self.name}]")
        return self._data_source

    def take_snapshot(self) -> None:
        """Load table metadata from the data source.

        Tables skipped as a whole are not loaded; skipped indexes and index
        attributes are pruned from the loaded metadata.  Previously captured
        state is discarded first, so a failed load leaves the snapshot not
        taken.

        Raises:
            DatabaseSnapshotError: If the snapshot has no data source.
        """
        data_source = self._require_data_source()
        self.metadata_timestamp = NOT_TAKEN
        self.tables = []
        self._backup_document = None

        taken_at = current_millis()
        logger.info(
            "Take database snapshot [%s] from %s - START", self.name, data_source.description
        )

        skipped = tables_to_skip(self.skip_columns)
        tables = remove_skipped_tables(data_source.get_table_descriptions(skipped), skipped)
        if not tables:
            logger.warning("No tables found for snapshot [%s]", self.name)

        for table in tables:
            key = table.name.lower()
            prune_indexes(table, self.skip_indexes.get(key), self.skip_attributes.get(key))
            table.snapshot_name = self.name

        self.tables = tables
        self.metadata_timestamp = taken_at
        logger.info(
            "Take database snapshot [%s] - END (%d tables)", self.name, len(self.tables)
        )

    # ------------------------------------------------------------------
    # Content loading
    # ------------------------------------------------------------------

    def load_table_rows(
        self,
        table: TableDescription,
        skip_columns: SkipColumns | None = None,
        skip_rows: SkipRows | None = None,
    ) -> list[str]:
        """Load the content of *table* as one row string per row.

        Skipped columns are left out of every row and rows matching a
        skip-rows predicate are dropped.
        """
        if skip_columns is not None and all(
            skip_columns.is_column_skipped(c) for c in table.column_names
        ):
            logger.warning("Skip content of table %s because all its columns are skipped", table.name)
            return []

        if self._backup_document is not None:
            rows = self._load_backup_rows(table, skip_columns, skip_rows)
            source = "from backup"
        else:
            rows = self._load_live_rows(table, skip_columns, skip_rows)
            source = "from database"

        logger.debug("[%s %s] Loaded %d rows for table %s", self.name, source, len(rows), table.name)
        return rows

    def _load_live_rows(
        self,
        table: TableDescription,
        skip_columns: SkipColumns | None,
        skip_rows: SkipRows | None,
    ) -> list[str]:
        data_source = self._require_data_source()
        sql = construct_select_statement(
            table,
            skip_columns,
            data_source.requires_sorted_columns,
            data_source.quote_identifier,
        )
        if sql is None:
            return []

        rows: list[str] = []
        for record in data_source.select_rows(sql):
            values = stringify_row(record)
            if skip_rows is not None and skip_rows.matches(values):
                continue
            rows.append(format_row(values))
        return rows

    def _load_backup_rows(
        self,
        table: TableDescription,
        skip_columns: SkipColumns | None,
        skip_rows: SkipRows | None,
    ) -> list[str]:
        rows = read_table_rows(self._backup_document, table.name)
        if skip_columns is None and skip_rows is None:
            return rows

        kept: list[str] = []
        for row in rows:
            values = parse_row(row)
            if skip_columns is not None:
                values = {
                    column: value
                    for column, value in values.items()
                    if not skip_columns.is_column_skipped(column)
                }
            if skip_rows is not None and skip_rows.matches(values):
                continue
            kept.append(format_row(values))
        return kept

    def load_table_row_count(self, table: TableDescription) -> int:
        """Number of rows of *table*."""
        if self._backup_document is not None:
            return read_table_row_count(self._backup_document, table.name)

        data_source = self._require_data_source()
        rows = data_source.select_rows(
            construct_count_statement(table, data_source.quote_identifier)
        )
        if not rows:
            return 0
        return int(next(iter(rows[0].values())))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_to_file(self, backup_file: str | Path) -> None:
        """Save metadata, content and skip rules to *backup_file*.

        When a live data source is available later reads come from it again
        and its connections are released.

        Raises:
            DatabaseSnapshotError: If the snapshot was never taken.
        """
        try:
            save_to_file(self, backup_file)
            if self._data_source is not None:
                self._backup_document = None
        finally:
            self._disconnect()

    def load_from_file(
        self, source_file: str | Path, new_snapshot_name: str | None = None
    ) -> None:
        """Replace this snapshot's state with a backup document's.

        Content is read from the document from now on.  Skip rules stored
        in the document are added to the snapshot's rules.

        Raises:
            DatabaseSnapshotError: If the file is not a valid snapshot backup.
        """
        self._backup_document = load_from_file(self, source_file, new_snapshot_name)

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def _check_comparable(self, other: "DatabaseSnapshot | None") -> None:
        if other is None:
            raise DatabaseSnapshotError(f"No snapshot to compare with [{self.name}]")
        if other.name == self.name:
            raise DatabaseSnapshotError(
                f"Cannot compare snapshots with the same name [{self.name}]"
            )
        for snapshot in (self, other):
            if not snapshot.is_taken:
                raise DatabaseSnapshotError(f"Snapshot [{snapshot.name}] is not taken")

    def _common_tables(
        self,
        other: "DatabaseSnapshot",
        skipped: set[str],
        equality: DatabaseEqualityState,
    ) -> list[tuple[TableDescription, TableDescription]]:
        other_tables = {t.name.lower(): t for t in other.tables}
        own_names = {t.name.lower() for t in self.tables}

        common: list[tuple[TableDescription, TableDescription]] = []
        for table in self.tables:
            key = table.name.lower()
            if key in skipped:
                continue
            match = other_tables.get(key)
            if match is None:
                equality.add_table_present_in_one_snapshot_only(self.name, table.name)
            else:
                common.append((table, match))

        for table in other.tables:
            key = table.name.lower()
            if key not in skipped and key not in own_names:
                equality.add_table_present_in_one_snapshot_only(other.name, table.name)
        return common

    def compare(self, other: "DatabaseSnapshot", options: CompareOptions | None = None) -> None:
        """Compare this snapshot with *other*.

        Skip rules of both snapshots are merged before comparing.  The
        ledger of the comparison is kept as ``equality``.  Data sources of
        both snapshots are disconnected afterwards.

        Args:
            other: Snapshot to compare with.
            options: Expected differences to reconcile.

        Raises:
            DatabaseSnapshotError: If the snapshots cannot be compared or
                differ.  The ledger is available as its ``equality``.
        """
        try:
            self._check_comparable(other)
            logger.info(
                "Compare snapshot [%s] taken at %s with snapshot [%s] taken at %s",
                self.name,
                timestamp_to_string(self.metadata_timestamp),
                other.name,
                timestamp_to_string(other.metadata_timestamp),
            )

            equality = DatabaseEqualityState(
                first_snapshot_name=self.name, second_snapshot_name=other.name
            )
            self.equality = equality

            skip_columns = merge_skip_columns(self.skip_columns, other.skip_columns)
            skip_content = merge_skip_content(self.skip_content, other.skip_content)
            skip_rows = merge_skip_rows(self.skip_rows, other.skip_rows)
            index_matcher = select_index_matcher(
                self.index_matcher, other.index_matcher, self.name
            )

            skipped = tables_to_skip(skip_columns)
            for first, second in self._common_tables(other, skipped, equality):
                key = first.name.lower()
                column_rule = skip_columns.get(key)
                content_rule = skip_content.get(key)

                first_rows = second_rows = None
                first_count = second_count = None
                if content_rule is None:
                    first_rows = self.load_table_rows(first, column_rule, skip_rows.get(key))
                    second_rows = other.load_table_rows(second, column_rule, skip_rows.get(key))
                elif content_rule.remember_number_of_rows:
                    first_count = self.load_table_row_count(first)
                    second_count = other.load_table_row_count(second)

                compare_tables(
                    first,
                    second,
                    equality,
                    index_matcher,
                    first_rows=first_rows,
                    second_rows=second_rows,
                    first_count=first_count,
                    second_count=second_count,
                )

            if options is not None:
                reconcile_expected_differences(equality, options)

            if equality.has_differences():
                raise DatabaseSnapshotError(equality=equality)

            logger.info("Successful verification")
        finally:
            self._disconnect()
            if other is not None and other is not self:
                other._disconnect()

    def _disconnect(self) -> None:
        if self._data_source is None:
            return
        try:
            self._data_source.disconnect()
        except Exception as e:
            logger.warning("Error disconnecting data source of snapshot [%s]: %s", self.name, e)
