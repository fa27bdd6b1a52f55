"""
Database access for Beacon.

Async SQLAlchemy engine lifecycle plus the stats accessors consumed by the
control plane and background services.
"""

from src.core.database.queries import StatsQueries, build_stats_queries
from src.core.database.service import DatabaseNotInitializedError, DatabaseService

__all__ = [
    "DatabaseService",
    "DatabaseNotInitializedError",
    "StatsQueries",
    "build_stats_queries",
]
