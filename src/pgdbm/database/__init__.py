# src/pgdbm/database/__init__.py

"""
Database package.

Connection handling, PostgreSQL client wrappers and the manager that installs
and migrates the managed database.
"""

from .connector import Connector
from .manager import DatabaseManager, UpdateOutcome
from .pg_cli import PgConfig, PgDump, Psql

__all__ = [
    'Connector',
    'DatabaseManager',
    'UpdateOutcome',
    'PgConfig',
    'PgDump',
    'Psql',
]
