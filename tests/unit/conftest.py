# tests/unit/conftest.py

"""Shared fixtures and fakes for the pgdbm unit tests.

The fakes stand in for the PostgreSQL client programs and the connector so
the manager, the lifecycle operations and the sequencer can be exercised
without a server.
"""

import io
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from pgdbm.core.config import ManagerConfig
from pgdbm.core.exceptions import ConnectivityError, ExternalCommandError
from pgdbm.database.migrations.base_migration import StepRegistry


class FakePsql:
    """Records every executed file, with its content at execution time."""

    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.calls: List[Dict[str, str]] = []

    def execute_file(self, database: str, file) -> None:
        path = Path(file)
        content = path.read_text(encoding="utf-8") if path.is_file() else ""
        self.calls.append({'database': database, 'name': path.name, 'path': str(path), 'content': content})
        if self.fail_on is not None and path.name == self.fail_on:
            raise ExternalCommandError(["psql", "-f", str(path)], 3, "ERROR:  syntax error")

    @property
    def names(self) -> List[str]:
        return [call['name'] for call in self.calls]


class FakePgDump:

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Dict[str, object]] = []

    def run(self, database: str, options: Sequence[str] = ()) -> None:
        self.calls.append({'database': database, 'options': list(options)})
        if self.fail:
            raise ExternalCommandError(["pg_dump", database], 1, "pg_dump: error: connection failed")


class FakePgConfig:

    def __init__(self, sharedir: Path):
        self._sharedir = Path(sharedir)

    def sharedir(self) -> Path:
        return self._sharedir


class StubConnector:
    """Connector double for the reachability probe and the destructive guard."""

    def __init__(self, exists: bool = True, reachable: bool = True):
        self.exists = exists
        self.reachable = reachable
        self.probes = 0

    def ensure_reachable(self) -> None:
        self.probes += 1
        if not self.reachable:
            raise ConnectivityError("\n  Cannot connect to Postgres with the connection info provided:\n")

    def database_exists(self) -> bool:
        return self.exists


class FakeResolver:
    """Version resolver with a settable installed version."""

    def __init__(self, installed: Optional[int], target: int):
        self.installed = installed
        self.target_version = target
        self.reads = 0

    def installed_version(self) -> Optional[int]:
        self.reads += 1
        return self.installed


def write_module(directory: Path, name: str, source: str) -> Path:
    """Write ``directory/<name>.py``; the caller puts ``directory`` on sys.path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.py"
    path.write_text(source, encoding="utf-8")
    return path


def make_version_tree(root: Path, layout: Dict[int, Sequence[str]]) -> Path:
    """Create ``root/<version>/<file>`` for every entry of ``layout``."""
    for version, files in layout.items():
        directory = root / str(version)
        directory.mkdir(parents=True, exist_ok=True)
        for name in files:
            (directory / name).write_text(f"-- {version}/{name}\n", encoding="utf-8")
    return root


@pytest.fixture
def schema_file(tmp_path) -> Path:
    """Canonical schema stamped with version 3."""
    path = tmp_path / "schema.sql"
    path.write_text(
        'CREATE TABLE "Version" (version INTEGER NOT NULL);\n'
        'INSERT INTO "Version" (version) VALUES (3);\n'
        'CREATE TABLE "Person" (person_id SERIAL PRIMARY KEY);\n',
        encoding="utf-8"
    )
    return path


@pytest.fixture
def migrations_dir(tmp_path) -> Path:
    return make_version_tree(tmp_path / "migrations", {
        2: ["01_add_column.sql"],
        3: ["01_create_index.sql", "02_backfill.pl"],
    })


@pytest.fixture
def sharedir(tmp_path) -> Path:
    contrib = tmp_path / "share" / "contrib"
    contrib.mkdir(parents=True)
    (contrib / "citext.sql").write_text("CREATE EXTENSION citext;\n", encoding="utf-8")
    return tmp_path / "share"


@pytest.fixture
def config(schema_file, migrations_dir) -> ManagerConfig:
    return ManagerConfig.from_dict({
        'connection': {'name': 'app_db', 'username': 'app_owner', 'host': 'localhost', 'port': 5432},
        'app_name': 'Example',
        'sql_file': schema_file,
        'migrations_dir': migrations_dir,
    })


@pytest.fixture
def registry() -> StepRegistry:
    return StepRegistry()


@pytest.fixture
def psql() -> FakePsql:
    return FakePsql()


@pytest.fixture
def pg_dump() -> FakePgDump:
    return FakePgDump()


@pytest.fixture
def pg_config(sharedir) -> FakePgConfig:
    return FakePgConfig(sharedir)


@pytest.fixture
def out() -> io.StringIO:
    return io.StringIO()
