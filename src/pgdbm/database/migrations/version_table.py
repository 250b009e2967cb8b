# src/pgdbm/database/migrations/version_table.py

"""
Installed and target schema versions.

The installed version is the single value stored in the ``"Version"`` table
of the managed database. The target version is stamped into the canonical
schema by its ``INSERT INTO "Version" ... VALUES (<n>)`` statement.
"""

import logging
import re
from functools import cached_property
from pathlib import Path
from typing import Optional, Union, Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from ...core.constants import PG_UNDEFINED_TABLE, VERSION_QUERY
from ...core.exceptions import (
    ConfigurationError,
    DatabaseNotFoundError,
    MissingVersionMarkerError,
    VersionRecordError,
)
from ..connector import Connector

logger = logging.getLogger(__name__)

# Matches within one statement only, so a later statement's VALUES is never used.
_VERSION_INSERT = re.compile(
    r'INSERT\s+INTO\s+"Version"[^;]*?VALUES\s*\(\s*([^)]*?)\s*\)',
    re.IGNORECASE,
)


def parse_target_version(sql_text: str, source: Union[str, Path] = "<string>") -> int:
    """
    Extract the version stamped into a canonical schema.

    Args:
        sql_text: Full text of the canonical schema
        source: Name used in the error message

    Returns:
        The stamped version

    Raises:
        MissingVersionMarkerError: If there is no version insert or its value
            is not a positive integer literal
    """
    match = _VERSION_INSERT.search(sql_text)
    if not match or not match.group(1).isdigit():
        raise MissingVersionMarkerError(source)

    version = int(match.group(1))
    if version < 1:
        raise MissingVersionMarkerError(source)
    return version


def _is_undefined_table(error: DBAPIError) -> bool:
    return getattr(error.orig, "pgcode", None) == PG_UNDEFINED_TABLE


def coerce_version(value: Any) -> int:
    """
    Validate a value read from the version table.

    Raises:
        VersionRecordError: If the value is not a positive integer
    """
    if isinstance(value, bool):
        raise VersionRecordError("The version table holds a non-integer value", value)
    try:
        version = int(value)
    except (TypeError, ValueError) as e:
        raise VersionRecordError("The version table holds a non-integer value", value, cause=e) from e
    if str(value).strip() != str(version) or version < 1:
        raise VersionRecordError("The version table holds an invalid version", value)
    return version


class VersionResolver:
    """
    Reads the installed version and computes the target version.

    The target version is read from the canonical schema once and cached for
    the lifetime of the resolver.

    Args:
        connector: Connector for the managed database
        sql_file: Canonical schema file
    """

    def __init__(self, connector: Connector, sql_file: Optional[Path]) -> None:
        self.connector = connector
        self.sql_file = Path(sql_file) if sql_file is not None else None

    def installed_version(self) -> Optional[int]:
        """
        Read the installed schema version.

        Returns:
            The installed version, or None if the database does not exist or
            has no version record

        Raises:
            ConnectivityError: If the server cannot be reached
            VersionRecordError: If the version table exists but cannot be read
        """
        try:
            with self.connector.connect() as connection:
                try:
                    row = connection.execute(text(VERSION_QUERY)).first()
                except DBAPIError as e:
                    if _is_undefined_table(e):
                        logger.info("No version table; the schema is not installed")
                        return None
                    raise VersionRecordError(
                        "Cannot read the installed schema version", cause=e
                    ) from e
        except DatabaseNotFoundError:
            logger.info(f"Database {self.connector.config.name} does not exist")
            return None

        if row is None:
            logger.info("The version table is empty")
            return None

        version = coerce_version(row[0])
        logger.debug(f"Installed schema version is {version}")
        return version

    @cached_property
    def target_version(self) -> int:
        """
        Version produced by the canonical schema.

        Raises:
            MissingVersionMarkerError: If the schema does not stamp a version
            ConfigurationError: If the schema file is not set or cannot be read
        """
        if self.sql_file is None:
            raise ConfigurationError("Cannot determine your sql file")

        try:
            sql_text = self.sql_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(
                f"Cannot read sql file {self.sql_file}: {e}",
                {"sql_file": str(self.sql_file)},
                cause=e
            ) from e
        version = parse_target_version(sql_text, self.sql_file)
        logger.debug(f"Target schema version from {self.sql_file} is {version}")
        return version
