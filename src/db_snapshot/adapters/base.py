"""Data source protocol definition.

Defines the ``DataSource`` Protocol a snapshot reads from.  All methods
are synchronous; a snapshot owns its data source and disconnects it once
it is done comparing or saving.

Usage:
    from db_snapshot.adapters.base import DataSource

    def count_users(source: DataSource) -> int:
        rows = source.select_rows("SELECT COUNT(*) FROM users")
        return int(next(iter(rows[0].values())))
"""

from collections.abc import Iterable
from typing import Any, Protocol

from db_snapshot.schema.models import TableDescription


class DataSource(Protocol):
    """Database access interface used by ``DatabaseSnapshot``.

    This Protocol keeps snapshots independent of the database driver so
    tests can substitute an in-memory source.
    """

    @property
    def description(self) -> str:
        """Human-readable description of the source (URL without password)."""
        ...

    @property
    def requires_sorted_columns(self) -> bool:
        """True when row queries must list their columns in sorted order."""
        ...

    def quote_identifier(self, name: str) -> str:
        """Quote a schema, table or column name for use in ``select_rows`` SQL.

        Names that need no quoting may be returned unchanged.
        """
        ...

    def select_rows(self, sql: str) -> list[dict[str, Any]]:
        """Run a query and return its rows.

        Args:
            sql: Complete ``SELECT`` statement.

        Returns:
            List of dicts, one per row, keyed by column name in result
            order.  Empty list if no rows.
        """
        ...

    def get_table_descriptions(
        self, excluded_tables: Iterable[str] = ()
    ) -> list[TableDescription]:
        """Load metadata of every table except *excluded_tables*.

        Args:
            excluded_tables: Lower-cased names of tables not to load.

        Returns:
            One ``TableDescription`` per table with columns, primary key
            and indexes filled in.
        """
        ...

    def disconnect(self) -> None:
        """Release connections held by the source.

        The source may still be used afterwards; new connections are opened
        on demand.
        """
        ...
