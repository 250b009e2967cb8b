# src/pgdbm/database/migrations/database_initializer.py
"""
Database lifecycle operations.

Handles dropping and recreating the managed database, building a fresh schema
from the canonical SQL file, importing contrib modules, and the destructive
guard that keeps an existing database from being dropped by accident.
"""

import logging
import tempfile
from pathlib import Path
from typing import Callable, Optional

from ...core.config import ManagerConfig
from ...core.constants import CONTRIB_SUBDIR, DEFAULT_ENCODING, RECREATE_SCRIPT_NAME
from ...core.exceptions import ContribFileNotFoundError, DestructiveGuardError
from ..connector import Connector
from ..pg_cli import PgConfig, Psql
from .migration_utils import log_migration_step, quote_identifier

logger = logging.getLogger(__name__)


class DatabaseLifecycleManager:
    """
    Drops, creates and builds the managed database.

    The drop and create statements always run against the bootstrap database,
    since PostgreSQL cannot drop the database a session is connected to.

    Args:
        config: Manager configuration
        connector: Connector used by the destructive guard
        psql: SQL file executor
        pg_config: Source of the server's share directory
        reporter: Callable receiving progress messages
    """

    def __init__(self, config: ManagerConfig, connector: Connector, psql: Psql,
                 pg_config: PgConfig, reporter: Optional[Callable[[str], None]] = None) -> None:
        self.config = config
        self.connector = connector
        self.psql = psql
        self.pg_config = pg_config
        self._report = reporter or (lambda message: None)

    @property
    def database_name(self) -> str:
        return self.config.database_name

    def recreate_script(self) -> str:
        """
        Build the drop-and-create script.

        Returns:
            SQL text that silences notices, drops the database if it exists
            and creates it with UTF-8 encoding, owned by the configured user
        """
        name = quote_identifier(self.database_name)
        create = f"CREATE DATABASE {name} ENCODING '{DEFAULT_ENCODING}'"
        if self.config.connection.username is not None:
            create += f" OWNER {quote_identifier(self.config.connection.username)}"

        return (
            "SET CLIENT_MIN_MESSAGES = ERROR;\n"
            "\n"
            f"DROP DATABASE IF EXISTS {name};\n"
            "\n"
            f"{create};\n"
        )

    def recreate(self) -> None:
        """
        Drop (if necessary) and create the managed database.

        psql refuses to combine a SET with DROP DATABASE passed via ``-c``,
        so the statements are written to a temporary file and run with ``-f``.
        The file is removed afterwards, whether or not psql succeeded.
        """
        self._report(
            f"Dropping (if necessary) and creating the {self.config.display_name} "
            f"database (database name = {self.database_name})"
        )
        log_migration_step(
            "Recreating database",
            "INFO",
            {'database': self.database_name, 'bootstrap': self.config.connection.bootstrap_database}
        )

        with tempfile.TemporaryDirectory(prefix="pgdbm-") as tmp_dir:
            script = Path(tmp_dir) / RECREATE_SCRIPT_NAME
            script.write_text(self.recreate_script(), encoding="utf-8")

            self.psql.execute_file(
                database=self.config.connection.bootstrap_database,
                file=script,
            )

    def install_fresh(self, sql_file: Optional[Path] = None, import_contrib: bool = True) -> None:
        """
        Build the schema in a freshly created database.

        Args:
            sql_file: Schema file to run; defaults to the canonical schema
            import_contrib: Import the configured contrib files first
        """
        sql_file = Path(sql_file) if sql_file is not None else self.config.require_sql_file()

        self._report(f"Creating schema from {sql_file}")

        if import_contrib:
            for filename in self.config.contrib_files:
                self.import_contrib_file(filename)

        log_migration_step("Building schema", "INFO", {'database': self.database_name, 'sql_file': str(sql_file)})
        self.psql.execute_file(database=self.database_name, file=sql_file)

    def import_contrib_file(self, filename: str) -> Path:
        """
        Run a contrib SQL file from the server's share directory.

        Args:
            filename: File name under ``<sharedir>/contrib``

        Returns:
            Path of the executed file

        Raises:
            ContribFileNotFoundError: If the file is not installed
        """
        path = self.pg_config.sharedir() / CONTRIB_SUBDIR / filename
        if not path.is_file():
            raise ContribFileNotFoundError(filename, path)

        logger.info(f"Importing contrib file {path}")
        self.psql.execute_file(database=self.database_name, file=path)
        return path

    def check_destructive_guard(self, drop: bool) -> None:
        """
        Refuse to continue if the database exists and dropping was not authorized.

        The check and the later drop are separate round trips. A database
        created in between by another client is dropped without a guard
        check; there is no locking against concurrent operators.

        Raises:
            DestructiveGuardError: If the database exists and ``drop`` is false
        """
        if drop:
            return
        if self.connector.database_exists():
            log_migration_step("Refusing to drop existing database", "WARNING", {'database': self.database_name})
            raise DestructiveGuardError(self.database_name)

    def install(self, drop: Optional[bool] = None) -> None:
        """
        Guarded recreate followed by a fresh schema build.

        Args:
            drop: Authorization to drop an existing database; defaults to the
                configured ``drop`` flag

        Raises:
            ConfigurationError: If the schema file is missing; nothing is dropped
            DestructiveGuardError: If the database exists and drop is not authorized
        """
        sql_file = self.config.require_sql_file()
        drop = self.config.drop if drop is None else drop
        self.check_destructive_guard(drop)
        self.recreate()
        self.install_fresh(sql_file)
