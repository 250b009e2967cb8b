# src/pgdbm/core/exceptions.py
"""
Custom exceptions for pgdbm.

This module provides the exception hierarchy shared by the connector, the
version resolver, the lifecycle manager, the migration sequencer and the CLI.
Library code raises these; only the CLI turns them into a diagnostic and an
exit status.
"""

from typing import Optional, Any, Dict, List, Union
from pathlib import Path


class DatabaseManagerError(Exception):
    """
    Base exception for all pgdbm errors.

    All custom exceptions in the package inherit from this class so callers
    can catch every expected failure with a single ``except`` clause.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """
        Initialize DatabaseManagerError.

        Args:
            message: Human-readable error message
            details: Additional error details (structured data)
            cause: Original exception that caused this error
        """
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} [{details_str}]"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================================
# Configuration Exceptions
# ============================================================================

class ConfigurationError(DatabaseManagerError):
    """
    Base exception for configuration-related errors.

    Raised when configuration cannot be loaded or validated, or when an
    operation needs a setting that was not supplied.
    """
    pass


class ConfigFileNotFoundError(ConfigurationError):
    """Raised when a configuration file cannot be found."""

    def __init__(self, path: Union[str, Path], **kwargs):
        path_str = str(path)
        message = f"Configuration file not found: {path_str}"
        details = {"path": path_str, **kwargs}
        super().__init__(message, details)


class ConfigFormatError(ConfigurationError):
    """
    Raised when a configuration file has invalid format.

    This occurs when the config file contains malformed YAML or a document
    whose top level is not a mapping.
    """

    def __init__(self, path: Union[str, Path], parse_error: str, **kwargs):
        """
        Initialize ConfigFormatError.

        Args:
            path: Path to the configuration file
            parse_error: Detailed parse error message
            **kwargs: Additional details
        """
        path_str = str(path)
        message = f"Invalid YAML format in config file: {path_str}"
        details = {"path": path_str, "parse_error": parse_error, **kwargs}
        super().__init__(message, details)


class ConfigValidationError(ConfigurationError):
    """Raised when configuration validation fails."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        **kwargs
    ):
        """
        Initialize ConfigValidationError.

        Args:
            message: Error message
            errors: List of specific validation errors
            **kwargs: Additional details
        """
        self.errors = errors or []
        details = {"validation_errors": self.errors, **kwargs}
        super().__init__(message, details)


class StepRegistrationError(ConfigurationError):
    """Raised when two imperative steps claim the same identifier."""

    def __init__(self, identifier: str):
        message = f"A migration step is already registered as {identifier}"
        super().__init__(message, {"identifier": identifier})


class StepModuleImportError(ConfigurationError):
    """Raised when a module that registers migration steps cannot be imported."""

    def __init__(self, module: str, cause: Optional[Exception] = None):
        message = f"Cannot import migration step module {module}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message, {"module": module}, cause)


# ============================================================================
# Connectivity Exceptions
# ============================================================================

class ConnectivityError(DatabaseManagerError):
    """
    Raised when the server cannot be reached or refuses the credentials.

    The message is the multi-line connection diagnostic shown to operators,
    so ``__str__`` does not append the details mapping.
    """

    def __init__(
        self,
        message: str,
        connection_info: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, connection_info, cause)

    def __str__(self) -> str:
        return self.message


class DatabaseNotFoundError(DatabaseManagerError):
    """Raised when the server reports that the requested database does not exist."""

    def __init__(self, database: str, cause: Optional[Exception] = None):
        self.database = database
        message = f'Database "{database}" does not exist'
        super().__init__(message, {"database": database}, cause)


class ExternalCommandError(DatabaseManagerError):
    """
    Raised when a PostgreSQL client program fails.

    Covers a non-zero exit status as well as a binary that is not installed.
    The only diagnostics available are the exit status and stderr.
    """

    def __init__(
        self,
        command: List[str],
        returncode: Optional[int] = None,
        stderr: str = "",
        cause: Optional[Exception] = None
    ):
        """
        Initialize ExternalCommandError.

        Args:
            command: The argument vector that was executed
            returncode: Exit status, or None if the program never started
            stderr: Captured standard error output
            cause: Original exception (e.g. FileNotFoundError)
        """
        self.command = list(command)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()

        program = self.command[0] if self.command else "<unknown>"
        if returncode is None:
            message = f"Could not run {program}"
        else:
            message = f"{program} exited with status {returncode}"
        if self.stderr:
            message = f"{message}: {self.stderr}"

        details = {"command": " ".join(self.command), "returncode": returncode}
        super().__init__(message, details, cause)


class ContribFileNotFoundError(DatabaseManagerError):
    """Raised when an expected contrib file is missing from the share dir."""

    def __init__(self, filename: str, path: Union[str, Path]):
        path_str = str(path)
        message = f"Cannot find {filename} in your share dir - looked for {path_str}"
        super().__init__(message, {"filename": filename, "path": path_str})


# ============================================================================
# Schema Version Exceptions
# ============================================================================

class SchemaVersionError(DatabaseManagerError):
    """Base exception for installed/target version problems."""
    pass


class MissingVersionMarkerError(SchemaVersionError):
    """Raised when the canonical schema does not stamp a version."""

    def __init__(self, source: Union[str, Path]):
        source_str = str(source)
        message = "Cannot find a version in the current schema!"
        super().__init__(message, {"sql_file": source_str})


class VersionRecordError(SchemaVersionError):
    """Raised when the version table exists but cannot be read as a version."""

    def __init__(self, message: str, value: Any = None, cause: Optional[Exception] = None):
        details = {} if value is None else {"value": repr(value)}
        super().__init__(message, details, cause)


class DowngradeNotSupportedError(SchemaVersionError):
    """Raised when the installed schema is newer than the canonical schema."""

    def __init__(self, installed: int, target: int):
        self.installed = installed
        self.target = target
        message = (
            f"Installed schema version {installed} is newer than the "
            f"target version {target}; downgrades are not supported"
        )
        super().__init__(message, {"installed": installed, "target": target})


# ============================================================================
# Migration Exceptions
# ============================================================================

class MigrationTreeError(DatabaseManagerError):
    """Base exception for structural defects in the migrations directory."""

    def __init__(self, message: str, version: int, path: Union[str, Path]):
        self.version = version
        self.path = Path(path)
        super().__init__(message, {"version": version, "path": str(path)})


class MissingMigrationDirectoryError(MigrationTreeError):
    """Raised when there is no directory for a version that must be applied."""

    def __init__(self, version: int, path: Union[str, Path]):
        message = f"No migration directory for version {version} (looked for {path})!"
        super().__init__(message, version, path)


class EmptyMigrationDirectoryError(MigrationTreeError):
    """Raised when a version directory exists but holds no step files."""

    def __init__(self, version: int, path: Union[str, Path]):
        message = f"Migration directory exists but is empty ({path})"
        super().__init__(message, version, path)


class DuplicateStepMarkerError(MigrationTreeError):
    """Raised when two marker files of one version directory share a stem."""

    def __init__(self, version: int, path: Union[str, Path], names: List[str]):
        self.names = names
        message = (
            f"Migration directory {path} has more than one marker for step "
            f"{Path(names[0]).stem}: {', '.join(names)}"
        )
        super().__init__(message, version, path)


class StepExecutionError(DatabaseManagerError):
    """
    Raised when a single migration step fails.

    Steps that ran earlier in the same version directory are not undone and
    the version is not marked complete.
    """

    def __init__(
        self,
        step: Union[str, Path],
        version: Optional[int] = None,
        cause: Optional[Exception] = None,
        message: Optional[str] = None
    ):
        self.step = str(step)
        self.version = version
        if message is None:
            message = f"Migration step {self.step} failed"
            if cause is not None:
                message = f"{message}: {cause}"
        super().__init__(message, {"step": self.step, "version": version}, cause)


class UnregisteredStepError(StepExecutionError):
    """Raised when a script step file has no registered implementation."""

    def __init__(self, identifier: str, step: Union[str, Path, None] = None,
                 version: Optional[int] = None):
        self.identifier = identifier
        message = f"No migration step is registered for {identifier}"
        super().__init__(step or identifier, version, message=message)
        self.details["identifier"] = identifier


# ============================================================================
# Lifecycle Exceptions
# ============================================================================

class DestructiveGuardError(DatabaseManagerError):
    """Raised when a drop/recreate is attempted without explicit authorization."""

    def __init__(self, database: str):
        self.database = database
        message = "Will not drop a database unless you pass the --drop argument."
        super().__init__(message, {"database": database})


__all__ = [
    "DatabaseManagerError",
    "ConfigurationError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigValidationError",
    "StepRegistrationError",
    "ConnectivityError",
    "DatabaseNotFoundError",
    "ExternalCommandError",
    "ContribFileNotFoundError",
    "SchemaVersionError",
    "MissingVersionMarkerError",
    "VersionRecordError",
    "DowngradeNotSupportedError",
    "MigrationTreeError",
    "MissingMigrationDirectoryError",
    "EmptyMigrationDirectoryError",
    "StepExecutionError",
    "UnregisteredStepError",
    "DestructiveGuardError",
]
