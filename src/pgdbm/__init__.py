# src/pgdbm/__init__.py

"""
pgdbm - PostgreSQL database manager.

Creates, installs and migrates the PostgreSQL database of an application:
a canonical schema builds a fresh database, and numbered migration
directories bring an existing one up to the canonical schema's version.
"""

from .core.constants import APP_VERSION
from .core.config import ManagerConfig, ConnectionConfig, LoggingConfig, load_config
from .database.manager import DatabaseManager, UpdateOutcome
from .database.migrations.base_migration import (
    Migration,
    StepRegistry,
    default_registry,
    import_step_modules,
    migration_step,
)

__version__ = APP_VERSION

__all__ = [
    'DatabaseManager',
    'UpdateOutcome',
    'ManagerConfig',
    'ConnectionConfig',
    'LoggingConfig',
    'load_config',
    'Migration',
    'StepRegistry',
    'default_registry',
    'migration_step',
    'import_step_modules',
    '__version__',
]
