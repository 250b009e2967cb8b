# src/pgdbm/database/manager.py

"""
Database manager for pgdbm.

Main manager class that ties the connector, the version resolver, the
lifecycle operations and the migration sequencer together behind two entry
points: ``run`` (guarded recreate and install) and ``update_or_install``.
The manager is also the context handed to imperative migration steps.
"""

import importlib
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO, Union

from ..core.config import ManagerConfig
from ..core.exceptions import ConfigurationError, DowngradeNotSupportedError
from .connector import Connector
from .migrations.base_migration import StepRegistry, default_registry
from .migrations.database_initializer import DatabaseLifecycleManager
from .migrations.migration_manager import MigrationProgress, MigrationSequencer
from .migrations.migration_utils import log_migration_step
from .migrations.step_executor import MigrationStepFile, StepExecutor
from .migrations.version_table import VersionResolver
from .pg_cli import PgConfig, PgDump, Psql

logger = logging.getLogger(__name__)

Seeder = Callable[["DatabaseManager"], Any]


def resolve_seeder(reference: str) -> Seeder:
    """
    Import the seeding function named by ``package.module:function``.

    Raises:
        ConfigurationError: If the module cannot be imported or has no such callable
    """
    module_name, _, attribute = reference.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import seeder module {module_name}: {e}",
                                 {"seeder": reference}, e) from e

    seeder = getattr(module, attribute, None)
    if not callable(seeder):
        raise ConfigurationError(f"Seeder {reference} is not a callable", {"seeder": reference})
    return seeder


class UpdateOutcome(str, Enum):
    INSTALLED = "installed"
    UP_TO_DATE = "up_to_date"
    MIGRATED = "migrated"


class DatabaseManager:
    """
    Installs or updates the managed database.

    Every collaborator can be injected; the defaults are built from the
    configuration.

    Args:
        config: Immutable manager configuration
        registry: Imperative migration steps
        connector: Connection collaborator
        psql: SQL file executor
        pg_dump: Dump collaborator
        pg_config: Config introspection collaborator
        resolver: Installed/target version resolver
        seeder: Called with the manager after a fresh install when ``seed`` is
            set; defaults to the callable named by the ``seeder`` setting
        out: Stream for progress messages
    """

    def __init__(
        self,
        config: ManagerConfig,
        registry: Optional[StepRegistry] = None,
        connector: Optional[Connector] = None,
        psql: Optional[Psql] = None,
        pg_dump: Optional[PgDump] = None,
        pg_config: Optional[PgConfig] = None,
        resolver: Optional[VersionResolver] = None,
        seeder: Optional[Seeder] = None,
        out: Optional[TextIO] = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else default_registry
        self.connector = connector or Connector(config.connection)
        self.psql = psql or Psql(config.connection, quiet=config.quiet)
        self.pg_dump = pg_dump or PgDump(config.connection, quiet=config.quiet)
        self.pg_config = pg_config or PgConfig()
        self.resolver = resolver or VersionResolver(self.connector, config.sql_file)
        if seeder is None and config.seeder is not None:
            seeder = resolve_seeder(config.seeder)
        self.seeder = seeder
        self._out = out

        self.lifecycle = DatabaseLifecycleManager(
            config, self.connector, self.psql, self.pg_config, reporter=self._msg
        )
        self.executor = StepExecutor(self.psql, config.database_name, self.registry)
        self.sequencer = MigrationSequencer(
            config.migrations_dir,
            self.executor,
            self.pg_dump,
            config.database_name,
            app_name=config.display_name,
            reporter=self._msg,
        )

    @property
    def database_name(self) -> str:
        return self.config.database_name

    @property
    def app_name(self) -> str:
        return self.config.display_name

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self) -> None:
        """
        Drop and recreate the database, then build the schema.

        Raises:
            ConfigurationError: If seeding is requested without a seeder
            DestructiveGuardError: If the database exists and ``drop`` is not set
        """
        self._check_seeder()
        self._msg("")
        self.lifecycle.install(self.config.drop)
        if self.config.seed:
            self.seed_data()

    def update_or_install(self, skip_dump: bool = False) -> UpdateOutcome:
        """
        Bring the database to the version of the canonical schema.

        A database without a version record is recreated and built from
        scratch. An up-to-date database is left untouched. Otherwise the
        pending migrations are applied after a dump.

        Args:
            skip_dump: Skip the pre-migration dump

        Returns:
            What was done

        Raises:
            ConnectivityError: If the server cannot be reached
            DowngradeNotSupportedError: If the installed version is newer than the target
            ConfigurationError: If seeding is requested without a seeder, or
                a fresh install has no readable schema file
        """
        self._check_seeder()
        self.connector.ensure_reachable()

        version = self.resolver.installed_version()

        self._msg("")
        self._msg(
            f"Installing/updating your {self.app_name} database "
            f"(database name = {self.database_name})."
        )

        if version is None:
            sql_file = self.config.require_sql_file()
            self._msg("Installing a fresh database.")
            self.lifecycle.recreate()
            self.lifecycle.install_fresh(sql_file)
            if self.config.seed:
                self.seed_data()
            log_migration_step("Fresh database installed", "INFO", {'database': self.database_name})
            return UpdateOutcome.INSTALLED

        next_version = self.resolver.target_version

        if version == next_version:
            self._msg(f"Your {self.app_name} database is up-to-date.")
            return UpdateOutcome.UP_TO_DATE

        if version > next_version:
            raise DowngradeNotSupportedError(version, next_version)

        self._msg(
            f"Migrating your {self.app_name} database from version "
            f"{version} to {next_version}."
        )
        self.migrate(version, next_version, skip_dump=skip_dump)
        return UpdateOutcome.MIGRATED

    def migrate(self, from_version: int, to_version: int, skip_dump: bool = False) -> MigrationProgress:
        """Apply the migrations in ``(from_version, to_version]``."""
        return self.sequencer.migrate(from_version, to_version, self, skip_dump=skip_dump)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def plan(self) -> List[MigrationStepFile]:
        """
        Steps ``update_or_install`` would run against an installed database.

        Returns:
            The ordered steps; empty when the schema is absent or up to date
        """
        self.connector.ensure_reachable()
        version = self.resolver.installed_version()
        if version is None:
            return []
        return self.sequencer.plan(version, self.resolver.target_version)

    def status(self) -> Dict[str, Any]:
        """
        Summarize installed and target versions.

        Returns:
            Dictionary with the installed version (None when absent), the
            target version, the pending versions and an up-to-date flag
        """
        self.connector.ensure_reachable()
        installed = self.resolver.installed_version()
        target = self.resolver.target_version

        if installed is None or installed >= target:
            pending: List[int] = []
        else:
            pending = list(range(installed + 1, target + 1))

        return {
            'database': self.database_name,
            'installed_version': installed,
            'target_version': target,
            'pending_versions': pending,
            'up_to_date': installed == target,
        }

    # ------------------------------------------------------------------
    # Operations available to imperative steps
    # ------------------------------------------------------------------

    def execute_sql_file(self, file: Union[str, Path], database: Optional[str] = None) -> None:
        """Run a SQL file against the managed database (or ``database``)."""
        self.psql.execute_file(database=database or self.database_name, file=file)

    def import_contrib_file(self, filename: str) -> Path:
        """Run ``<sharedir>/contrib/<filename>`` against the managed database."""
        return self.lifecycle.import_contrib_file(filename)

    def seed_data(self) -> None:
        """
        Seed a freshly installed database.

        Raises:
            ConfigurationError: If seeding was requested without a seeder
        """
        if self.seeder is None:
            raise ConfigurationError("Seeding was requested but no seeder is configured")
        self._msg(f"Seeding the {self.app_name} database.")
        self.seeder(self)

    def _check_seeder(self) -> None:
        if self.config.seed and self.seeder is None:
            raise ConfigurationError(
                "Seeding was requested but no seeder is configured - name one "
                "in the configuration or with --seeder"
            )

    def _msg(self, message: str) -> None:
        if self.config.quiet:
            return
        out = self._out or sys.stdout
        if message:
            out.write(f"  {message}\n\n")
        else:
            out.write("\n")
        out.flush()
