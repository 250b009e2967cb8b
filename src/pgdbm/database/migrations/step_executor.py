# src/pgdbm/database/migrations/step_executor.py

"""
Execution of a single migration step.

A step is a file in a version directory. Files ending in ``.sql`` are run
verbatim by psql in one session; any other file is a marker for an imperative
step registered in a StepRegistry.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ...core.constants import SQL_STEP_SUFFIX
from ...core.exceptions import StepExecutionError, UnregisteredStepError
from ..pg_cli import Psql
from .base_migration import StepRegistry, make_identifier
from .migration_utils import format_duration, log_migration_step

if TYPE_CHECKING:
    from ..manager import DatabaseManager

logger = logging.getLogger(__name__)


class StepKind(str, Enum):
    SQL = "sql"
    SCRIPT = "script"


@dataclass(frozen=True)
class MigrationStepFile:
    """One file of a version directory."""

    version: int
    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def kind(self) -> StepKind:
        if self.path.suffix.lower() == SQL_STEP_SUFFIX:
            return StepKind.SQL
        return StepKind.SCRIPT

    @property
    def identifier(self) -> str:
        return make_identifier(self.version, self.path.stem)

    def to_dict(self) -> dict:
        return {
            'version': self.version,
            'file': str(self.path),
            'kind': self.kind.value,
            'identifier': self.identifier,
        }


class StepExecutor:
    """
    Applies migration steps to the managed database.

    Args:
        psql: SQL file executor
        database_name: Database the SQL steps run against
        registry: Imperative steps available to script markers
    """

    def __init__(self, psql: Psql, database_name: str, registry: StepRegistry) -> None:
        self.psql = psql
        self.database_name = database_name
        self.registry = registry

    def execute(self, step: MigrationStepFile, manager: "DatabaseManager") -> None:
        """
        Apply one step.

        Args:
            step: The step file
            manager: Context handed to imperative steps

        Raises:
            UnregisteredStepError: If a script marker has no registered step
            StepExecutionError: If the step fails for any other reason
        """
        start = time.time()
        log_migration_step("Running migration step", "INFO", step.to_dict())

        try:
            if step.kind is StepKind.SQL:
                self.psql.execute_file(database=self.database_name, file=step.path)
            else:
                self._run_script(step, manager)
        except StepExecutionError:
            raise
        except Exception as e:
            log_migration_step(
                "Migration step failed",
                "ERROR",
                {**step.to_dict(), 'error': str(e)}
            )
            raise StepExecutionError(step.path, step.version, cause=e) from e

        logger.debug(f"Step {step.name} completed in {format_duration(time.time() - start)}")

    def _run_script(self, step: MigrationStepFile, manager: Any) -> None:
        try:
            migration = self.registry.resolve(step.identifier)
        except UnregisteredStepError as e:
            raise UnregisteredStepError(step.identifier, step.path, step.version) from e

        logger.info(f"Running registered step {step.identifier}: {migration.get_description()}")
        migration.upgrade(manager)
