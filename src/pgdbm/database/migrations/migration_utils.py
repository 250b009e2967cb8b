# src/pgdbm/database/migrations/migration_utils.py

"""
Migration utility functions.

Provides the helpers shared by the migration components: structured step
logging, migration tree listing, dump path naming and duration formatting.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Any, Optional, List

from ...core.constants import DUMP_FILE_TEMPLATE

logger = logging.getLogger(__name__)


# ==============================
# LOGGING UTILITIES
# ==============================

def log_migration_step(message: str, level: str = "INFO",
                       extra_data: Optional[Dict[str, Any]] = None) -> None:
    """
    Log a migration step with structured data.

    The data is appended to the message as JSON and also attached to the
    record as ``migration`` so JSON formatters emit it as a field.

    Args:
        message: Log message
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        extra_data: Optional extra data to include in log
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if not logger.isEnabledFor(log_level):
        return

    if extra_data:
        data_str = json.dumps(extra_data, default=str, sort_keys=True)
        log_message = f"{message} {data_str}"
        extra = {'migration': extra_data}
    else:
        log_message = message
        extra = None

    logger.log(log_level, log_message, extra=extra)


def format_duration(seconds: float) -> str:
    """
    Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string
    """
    if seconds < 0.001:
        return f"{seconds * 1000000:.0f}µs"
    elif seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        remaining = seconds % 60
        return f"{minutes}m {remaining:.0f}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"


# ==============================
# FILESYSTEM UTILITIES
# ==============================

def list_step_files(directory: Path) -> List[Path]:
    """
    List the immediate file children of a version directory.

    Subdirectories are excluded. The result is sorted by file name using
    plain lexical order, so ``10_c.sql`` sorts before ``2_b.sql``; step
    authors zero-pad their prefixes to get numeric order.

    Args:
        directory: Version directory

    Returns:
        Sorted list of step file paths
    """
    files = [child for child in directory.iterdir() if not child.is_dir()]
    return sorted(files, key=lambda path: path.name)


def dump_file_path(database_name: str, pid: Optional[int] = None,
                   directory: Optional[Path] = None) -> Path:
    """
    Build the pre-migration dump path for a database.

    The path is keyed by database name and process id and lives in the
    platform temp directory unless ``directory`` is given. It is never
    removed automatically.
    """
    pid = os.getpid() if pid is None else pid
    directory = Path(tempfile.gettempdir()) if directory is None else Path(directory)
    return directory / DUMP_FILE_TEMPLATE.format(name=database_name, pid=pid)


def quote_identifier(identifier: str) -> str:
    """Quote a PostgreSQL identifier, doubling embedded double quotes."""
    return '"' + identifier.replace('"', '""') + '"'
