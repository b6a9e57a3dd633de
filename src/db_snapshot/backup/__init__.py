"""XML backup documents for database snapshots.

Provides saving and loading of snapshots, including their content and
skip rules.

Usage:
    from db_snapshot.backup import save_to_file, load_from_file
"""

from db_snapshot.backup.backup_restore import (
    find_table_node,
    load_from_file,
    read_table_row_count,
    read_table_rows,
    save_to_file,
)

__all__ = [
    "save_to_file",
    "load_from_file",
    "find_table_node",
    "read_table_rows",
    "read_table_row_count",
]
