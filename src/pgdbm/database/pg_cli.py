# src/pgdbm/database/pg_cli.py

"""
Wrappers around the PostgreSQL client programs.

``psql`` executes SQL files, ``pg_dump`` writes the pre-migration dump and
``pg_config`` reports where extension resources are installed. Every wrapper
blocks until the program exits and raises ExternalCommandError on failure.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from ..core.config import ConnectionConfig
from ..core.constants import PSQL_EXECUTABLE, PG_DUMP_EXECUTABLE, PG_CONFIG_EXECUTABLE
from ..core.exceptions import ExternalCommandError

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def run_command(command: Sequence[str], runner: Runner = subprocess.run,
                env: Optional[Dict[str, str]] = None) -> "subprocess.CompletedProcess[str]":
    """
    Run a client program and wait for it to finish.

    Args:
        command: Argument vector
        runner: Callable with the signature of ``subprocess.run``
        env: Environment for the child process

    Returns:
        The completed process

    Raises:
        ExternalCommandError: If the program is missing or exits non-zero
    """
    command = [str(part) for part in command]
    logger.debug(f"Running {' '.join(command)}")

    try:
        result = runner(command, capture_output=True, text=True, env=env, check=False)
    except OSError as e:
        raise ExternalCommandError(command, None, str(e), cause=e) from e

    if result.returncode != 0:
        raise ExternalCommandError(command, result.returncode, result.stderr or "")

    return result


class PgCommand:
    """Base class for client programs that connect to the server."""

    executable: str = ""

    def __init__(self, config: ConnectionConfig, quiet: bool = False,
                 runner: Runner = subprocess.run) -> None:
        self.config = config
        self.quiet = quiet
        self._runner = runner

    def connection_args(self) -> List[str]:
        args: List[str] = []
        if self.config.username is not None:
            args += ["-U", self.config.username]
        if self.config.host is not None:
            args += ["-h", self.config.host]
        if self.config.port is not None:
            args += ["-p", str(self.config.port)]
        return args

    def environment(self) -> Dict[str, str]:
        """Child environment carrying the password and SSL mode."""
        env = dict(os.environ)
        password = self.config.password_value()
        if password is not None:
            env["PGPASSWORD"] = password
        if self.config.sslmode:
            env["PGSSLMODE"] = self.config.sslmode
        return env

    def _run(self, args: Sequence[str]) -> "subprocess.CompletedProcess[str]":
        return run_command([self.executable, *args], self._runner, self.environment())


class Psql(PgCommand):
    """Executes SQL files with ``psql``, stopping at the first error."""

    executable = PSQL_EXECUTABLE

    def execute_file(self, database: str, file: Union[str, Path]) -> None:
        """
        Execute a file's full contents against a database in one session.

        Args:
            database: Database to connect to
            file: SQL file to execute

        Raises:
            ExternalCommandError: If psql reports any error
        """
        args = ["-X", "-w", "-v", "ON_ERROR_STOP=1"]
        if self.quiet:
            args.append("-q")
        args += self.connection_args()
        args += ["-d", database, "-f", str(file)]

        result = self._run(args)
        if result.stdout and not self.quiet:
            logger.debug(result.stdout.rstrip())


class PgDump(PgCommand):
    """Dumps a database with ``pg_dump``."""

    executable = PG_DUMP_EXECUTABLE

    def run(self, database: str, options: Sequence[str] = ()) -> None:
        """
        Dump a database.

        Args:
            database: Database to dump
            options: Extra pg_dump options, e.g. ``["-C", "-f", path]``
        """
        self._run([*self.connection_args(), *[str(o) for o in options], database])


class PgConfig:
    """Reads installation paths from ``pg_config``."""

    executable = PG_CONFIG_EXECUTABLE

    def __init__(self, runner: Runner = subprocess.run) -> None:
        self._runner = runner
        self._sharedir: Optional[Path] = None

    def sharedir(self) -> Path:
        """Location of architecture-independent support files."""
        if self._sharedir is None:
            result = run_command([self.executable, "--sharedir"], self._runner)
            self._sharedir = Path(result.stdout.strip())
        return self._sharedir
