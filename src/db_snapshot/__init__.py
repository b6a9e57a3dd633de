"""db-snapshot: Take, save and compare point-in-time database snapshots.

Captures table metadata and content through SQLAlchemy, tolerates declared
differences through skip rules and reports everything else as a ledger of
differences.

Usage:
    from db_snapshot import DatabaseSnapshot, SqlAlchemyDataSource, CompareOptions
    from db_snapshot import DatabaseSnapshotError, DatabaseEqualityState
    from db_snapshot import get_data_source, load_db_config
"""

__version__ = "0.1.0"

# Snapshot
from db_snapshot.snapshot.equality import DatabaseEqualityState
from db_snapshot.snapshot.errors import DatabaseSnapshotError
from db_snapshot.snapshot.options import CompareOptions
from db_snapshot.snapshot.snapshot import DatabaseSnapshot

# Adapters
from db_snapshot.adapters.base import DataSource
from db_snapshot.adapters.sql import SqlAlchemyDataSource

# Schema
from db_snapshot.schema.matchers import IndexMatcher, LiteralIndexMatcher, RegexIndexMatcher
from db_snapshot.schema.models import TableDescription

# Config
from db_snapshot.config.loader import load_db_config
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SkipRulesConfig

# Factory
from db_snapshot.factory import ProfileNotFoundError, get_data_source, resolve_url

__all__ = [
    # Snapshot
    "DatabaseSnapshot",
    "DatabaseSnapshotError",
    "DatabaseEqualityState",
    "CompareOptions",
    # Adapters
    "DataSource",
    "SqlAlchemyDataSource",
    # Schema
    "IndexMatcher",
    "LiteralIndexMatcher",
    "RegexIndexMatcher",
    "TableDescription",
    # Config
    "load_db_config",
    "DatabaseConfig",
    "DatabaseProfile",
    "SkipRulesConfig",
    # Factory
    "get_data_source",
    "ProfileNotFoundError",
    "resolve_url",
]
