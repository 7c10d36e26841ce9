"""Database layer for reconciler application."""

from reconciler.database.base import Database
from reconciler.database.factories import create_database, create_sqlite_database

__all__ = ["Database", "create_database", "create_sqlite_database"]
