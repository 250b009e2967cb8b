# tests/unit/test_pg_cli.py

"""Tests for the psql, pg_dump and pg_config wrappers."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from pgdbm.core.config import ConnectionConfig
from pgdbm.core.exceptions import ExternalCommandError
from pgdbm.database.pg_cli import PgConfig, PgDump, Psql, run_command


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def runner() -> MagicMock:
    return MagicMock(return_value=_completed())


@pytest.fixture
def connection_config() -> ConnectionConfig:
    return ConnectionConfig(name="app_db", host="localhost", port=5432,
                            username="app_owner", password="s3cret", require_ssl=True)


class TestRunCommand:
    """Test running client programs."""

    def test_success(self, runner):
        """Test a program that exits cleanly."""
        result = run_command(["psql", "--version"], runner)

        assert result.returncode == 0
        args, kwargs = runner.call_args
        assert args[0] == ["psql", "--version"]
        assert kwargs["capture_output"] is True
        assert kwargs["text"] is True
        assert kwargs["check"] is False

    def test_arguments_stringified(self, runner):
        """Test that path arguments are passed as strings."""
        run_command(["psql", "-f", Path("/tmp/a.sql")], runner)

        assert runner.call_args.args[0] == ["psql", "-f", str(Path("/tmp/a.sql"))]

    def test_non_zero_exit(self):
        """Test that a failing program raises with its status and stderr."""
        runner = MagicMock(return_value=_completed(3, stderr="ERROR:  relation \"x\" does not exist\n"))

        with pytest.raises(ExternalCommandError) as exc_info:
            run_command(["psql", "-f", "a.sql"], runner)

        error = exc_info.value
        assert error.returncode == 3
        assert error.stderr == 'ERROR:  relation "x" does not exist'
        assert error.command == ["psql", "-f", "a.sql"]
        assert error.message == 'psql exited with status 3: ERROR:  relation "x" does not exist'

    def test_missing_program(self):
        """Test that a program that cannot be started raises."""
        runner = MagicMock(side_effect=FileNotFoundError(2, "No such file or directory", "pg_dump"))

        with pytest.raises(ExternalCommandError) as exc_info:
            run_command(["pg_dump", "app_db"], runner)

        assert exc_info.value.returncode is None
        assert exc_info.value.message.startswith("Could not run pg_dump")
        assert isinstance(exc_info.value.cause, FileNotFoundError)


class TestPsql:
    """Test the psql wrapper."""

    def test_execute_file_arguments(self, connection_config, runner):
        """Test the command line used to run a file."""
        Psql(connection_config, runner=runner).execute_file("app_db", Path("/m/2/01_a.sql"))

        assert runner.call_args.args[0] == [
            "psql", "-X", "-w", "-v", "ON_ERROR_STOP=1",
            "-U", "app_owner", "-h", "localhost", "-p", "5432",
            "-d", "app_db", "-f", str(Path("/m/2/01_a.sql")),
        ]

    def test_quiet(self, connection_config, runner):
        """Test that quiet mode silences psql."""
        Psql(connection_config, quiet=True, runner=runner).execute_file("app_db", "a.sql")

        assert "-q" in runner.call_args.args[0]

    def test_password_passed_in_environment(self, connection_config, runner):
        """Test that credentials travel in the environment, not the arguments."""
        Psql(connection_config, runner=runner).execute_file("app_db", "a.sql")

        env = runner.call_args.kwargs["env"]
        assert env["PGPASSWORD"] == "s3cret"
        assert env["PGSSLMODE"] == "require"
        assert "s3cret" not in runner.call_args.args[0]

    def test_minimal_connection(self, runner, monkeypatch):
        """Test that unset attributes are left to libpq defaults."""
        monkeypatch.delenv("PGPASSWORD", raising=False)
        monkeypatch.delenv("PGSSLMODE", raising=False)
        psql = Psql(ConnectionConfig(name="app_db"), runner=runner)

        assert psql.connection_args() == []
        assert "PGPASSWORD" not in psql.environment()
        assert "PGSSLMODE" not in psql.environment()

    def test_failure_propagates(self, connection_config):
        """Test that a psql error is raised."""
        runner = MagicMock(return_value=_completed(3, stderr="ERROR:  syntax error"))

        with pytest.raises(ExternalCommandError):
            Psql(connection_config, runner=runner).execute_file("app_db", "a.sql")


class TestPgDump:
    """Test the pg_dump wrapper."""

    def test_run_arguments(self, connection_config, runner):
        """Test the command line of a dump."""
        PgDump(connection_config, runner=runner).run("app_db", ["-C", "-f", Path("/tmp/app_db-db-dump-1.sql")])

        assert runner.call_args.args[0] == [
            "pg_dump", "-U", "app_owner", "-h", "localhost", "-p", "5432",
            "-C", "-f", str(Path("/tmp/app_db-db-dump-1.sql")), "app_db",
        ]


class TestPgConfig:
    """Test the pg_config wrapper."""

    def test_sharedir_cached(self):
        """Test that the share directory is read once."""
        runner = MagicMock(return_value=_completed(stdout="/usr/share/postgresql/16\n"))
        pg_config = PgConfig(runner=runner)

        assert pg_config.sharedir() == Path("/usr/share/postgresql/16")
        assert pg_config.sharedir() == Path("/usr/share/postgresql/16")
        runner.assert_called_once()
        assert runner.call_args.args[0] == ["pg_config", "--sharedir"]
