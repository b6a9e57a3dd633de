"""Data sources package.

Provides the ``DataSource`` Protocol and the SQLAlchemy implementation.

Usage:
    from db_snapshot.adapters import DataSource, SqlAlchemyDataSource
"""

from db_snapshot.adapters.base import DataSource
from db_snapshot.adapters.sql import SqlAlchemyDataSource

__all__ = [
    "DataSource",
    "SqlAlchemyDataSource",
]
