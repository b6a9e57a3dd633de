"""Database snapshots: acquisition, skip rules and comparison.

Usage:
    from db_snapshot.snapshot import DatabaseSnapshot, CompareOptions
    from db_snapshot.snapshot import DatabaseSnapshotError, DatabaseEqualityState
"""

from db_snapshot.snapshot.equality import DatabaseEqualityState
from db_snapshot.snapshot.errors import DatabaseSnapshotError
from db_snapshot.snapshot.options import CompareOptions, ExpectedRowsRange
from db_snapshot.snapshot.rules import (
    SkipColumns,
    SkipContent,
    SkipIndex,
    SkipIndexAttributes,
    SkipRowPredicate,
    SkipRows,
)
from db_snapshot.snapshot.snapshot import DatabaseSnapshot

__all__ = [
    "DatabaseSnapshot",
    "DatabaseSnapshotError",
    "DatabaseEqualityState",
    "CompareOptions",
    "ExpectedRowsRange",
    "SkipColumns",
    "SkipContent",
    "SkipIndex",
    "SkipIndexAttributes",
    "SkipRowPredicate",
    "SkipRows",
]
