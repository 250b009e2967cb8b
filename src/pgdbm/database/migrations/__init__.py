# src/pgdbm/database/migrations/__init__.py
"""
Database migrations package.
Handles schema versions, fresh installs and ordered migration runs.
"""

from .base_migration import Migration, StepRegistry, default_registry, migration_step
from .database_initializer import DatabaseLifecycleManager
from .migration_manager import MigrationProgress, MigrationSequencer
from .step_executor import MigrationStepFile, StepExecutor, StepKind
from .version_table import VersionResolver, parse_target_version

__all__ = [
    'Migration',
    'StepRegistry',
    'default_registry',
    'migration_step',
    'DatabaseLifecycleManager',
    'MigrationProgress',
    'MigrationSequencer',
    'MigrationStepFile',
    'StepExecutor',
    'StepKind',
    'VersionResolver',
    'parse_target_version',
]
