# src/pgdbm/database/migrations/migration_manager.py

"""
Migration sequencer for pgdbm.

Walks the migration tree from the installed version to the target version,
one version directory at a time, running every step file in name order after
dumping the database to a temporary file.

Failure contract: the run stops at the first failing step. Steps that already
ran in the same version directory are not rolled back, and the version is not
recorded as applied by the sequencer. Version bookkeeping is content of the
migration SQL itself (each directory's SQL updates ``"Version"``). Operators
recover from a partially applied directory with the pre-migration dump.
"""

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from ...core.exceptions import (
    DowngradeNotSupportedError,
    DuplicateStepMarkerError,
    EmptyMigrationDirectoryError,
    MissingMigrationDirectoryError,
)
from ..pg_cli import PgDump
from .migration_utils import dump_file_path, format_duration, list_step_files, log_migration_step
from .step_executor import MigrationStepFile, StepExecutor, StepKind

if TYPE_CHECKING:
    from ..manager import DatabaseManager

logger = logging.getLogger(__name__)


class MigrationProgress:
    """Record of one migration run, for reporting."""

    def __init__(self, from_version: int, to_version: int):
        self.from_version = from_version
        self.to_version = to_version
        self.total_versions = max(to_version - from_version, 0)
        self.dump_path: Optional[Path] = None
        self.versions_applied: List[int] = []
        self.steps_applied: List[MigrationStepFile] = []
        self.current_version: Optional[int] = None
        self.start_time = time.time()

    def start_version(self, version: int) -> None:
        self.current_version = version

    def step_done(self, step: MigrationStepFile) -> None:
        self.steps_applied.append(step)

    def version_done(self, version: int) -> None:
        self.versions_applied.append(version)
        self.current_version = None

    @property
    def is_complete(self) -> bool:
        return len(self.versions_applied) == self.total_versions

    def get_percentage(self) -> float:
        """Get completion percentage."""
        if self.total_versions == 0:
            return 100.0
        return (len(self.versions_applied) / self.total_versions) * 100

    def get_elapsed_time(self) -> float:
        """Get elapsed time in seconds."""
        return time.time() - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'from_version': self.from_version,
            'to_version': self.to_version,
            'dump_path': str(self.dump_path) if self.dump_path else None,
            'versions_applied': list(self.versions_applied),
            'steps_applied': [str(step.path) for step in self.steps_applied],
            'current_version': self.current_version,
            'percentage': self.get_percentage(),
            'elapsed_seconds': self.get_elapsed_time(),
            'is_complete': self.is_complete,
        }


class MigrationSequencer:
    """
    Applies the ordered migration steps between two versions.

    Args:
        migrations_dir: Root of the migration tree; one subdirectory per version
        executor: Step executor
        pg_dump: Dump collaborator
        database_name: Managed database
        app_name: Display name for progress messages
        reporter: Callable receiving progress messages
    """

    def __init__(self, migrations_dir: Path, executor: StepExecutor, pg_dump: PgDump,
                 database_name: str, app_name: Optional[str] = None,
                 reporter: Optional[Callable[[str], None]] = None) -> None:
        self.migrations_dir = Path(migrations_dir)
        self.executor = executor
        self.pg_dump = pg_dump
        self.database_name = database_name
        self.app_name = app_name or database_name
        self._report = reporter or (lambda message: None)
        self.progress_callback: Optional[Callable[[MigrationProgress], None]] = None

    def set_progress_callback(self, callback: Callable[[MigrationProgress], None]) -> None:
        """
        Set callback for progress reporting.

        Args:
            callback: Function called after every step and version
        """
        self.progress_callback = callback

    def _report_progress(self, progress: MigrationProgress) -> None:
        if self.progress_callback:
            self.progress_callback(progress)

    def dump_path(self) -> Path:
        return dump_file_path(self.database_name)

    def dump(self) -> Path:
        """
        Dump the managed database, including its CREATE DATABASE statement.

        Returns:
            Path of the dump file

        Raises:
            ExternalCommandError: If pg_dump fails
        """
        path = self.dump_path()
        self._report(f"Dumping {self.app_name} database to {path} before running migrations")
        log_migration_step("Dumping database", "INFO", {'database': self.database_name, 'path': str(path)})

        self.pg_dump.run(self.database_name, ["-C", "-f", str(path)])
        return path

    def version_directory(self, version: int) -> Path:
        """
        Locate a version's directory.

        Raises:
            MissingMigrationDirectoryError: If the directory does not exist
        """
        directory = self.migrations_dir / str(version)
        if not directory.is_dir():
            raise MissingMigrationDirectoryError(version, directory)
        return directory

    def steps_for_version(self, version: int) -> List[MigrationStepFile]:
        """
        List a version's steps in execution order.

        Raises:
            MissingMigrationDirectoryError: If the directory does not exist
            EmptyMigrationDirectoryError: If it contains no files
            DuplicateStepMarkerError: If two marker files resolve to one step
        """
        directory = self.version_directory(version)
        files = list_step_files(directory)
        if not files:
            raise EmptyMigrationDirectoryError(version, directory)

        steps = [MigrationStepFile(version, path) for path in files]
        markers: Dict[str, List[str]] = {}
        for step in steps:
            if step.kind is StepKind.SCRIPT:
                markers.setdefault(step.identifier, []).append(step.name)
        for names in markers.values():
            if len(names) > 1:
                raise DuplicateStepMarkerError(version, directory, names)
        return steps

    @staticmethod
    def versions_between(from_version: int, to_version: int) -> range:
        """
        Versions to apply: ``(from_version, to_version]`` in ascending order.

        Raises:
            DowngradeNotSupportedError: If ``to_version`` is below ``from_version``
        """
        if to_version < from_version:
            raise DowngradeNotSupportedError(from_version, to_version)
        return range(from_version + 1, to_version + 1)

    def plan(self, from_version: int, to_version: int) -> List[MigrationStepFile]:
        """
        List every step a migration would run, without running anything.

        Raises the same structural errors as ``migrate``, but for the whole
        range up front.
        """
        steps: List[MigrationStepFile] = []
        for version in self.versions_between(from_version, to_version):
            steps.extend(self.steps_for_version(version))
        return steps

    def migrate(self, from_version: int, to_version: int, manager: "DatabaseManager",
                skip_dump: bool = False) -> MigrationProgress:
        """
        Apply every version after ``from_version`` up to ``to_version``.

        Directories are resolved as the walk reaches them, so a missing or
        empty directory stops the run after the previous version completed.

        Args:
            from_version: Installed version
            to_version: Target version
            manager: Context handed to imperative steps
            skip_dump: Skip the pre-migration dump

        Returns:
            MigrationProgress describing the completed run

        Raises:
            ExternalCommandError: If the dump fails
            MissingMigrationDirectoryError: If a version has no directory
            EmptyMigrationDirectoryError: If a version directory is empty
            StepExecutionError: If a step fails
        """
        versions = self.versions_between(from_version, to_version)
        progress = MigrationProgress(from_version, to_version)

        if not skip_dump:
            progress.dump_path = self.dump()

        for version in versions:
            self._report(f"Running database migration scripts to version {version}")
            progress.start_version(version)

            try:
                steps = self.steps_for_version(version)
            except (MissingMigrationDirectoryError, EmptyMigrationDirectoryError) as e:
                log_migration_step("Migration tree defect", "ERROR", {**e.details, 'error': e.message})
                raise

            for step in steps:
                self._report(f"  running {step.path}")
                self.executor.execute(step, manager)
                progress.step_done(step)
                self._report_progress(progress)

            progress.version_done(version)
            self._report_progress(progress)
            log_migration_step(
                "Migration version applied",
                "INFO",
                {'version': version, 'steps': len(steps)}
            )

        logger.info(
            f"Migrated {self.database_name} from version {from_version} to {to_version} "
            f"in {format_duration(progress.get_elapsed_time())}"
        )
        return progress
