# src/pgdbm/core/constants.py
"""
Centralized constants for pgdbm.
"""

from pathlib import Path
from typing import List

APP_NAME: str = "pgdbm"
APP_VERSION: str = "1.0.0"
APP_DESCRIPTION: str = "PostgreSQL schema install and migration manager"


DEFAULT_BOOTSTRAP_DATABASE: str = "template1"
DEFAULT_MIGRATIONS_DIR: Path = Path("inc") / "migrations"
DEFAULT_DRIVER: str = "postgresql+psycopg2"
DEFAULT_ENCODING: str = "UTF8"

VERSION_TABLE: str = "Version"
VERSION_QUERY: str = f'SELECT version FROM "{VERSION_TABLE}"'

SQL_STEP_SUFFIX: str = ".sql"
RECREATE_SCRIPT_NAME: str = "recreate-db.sql"
DUMP_FILE_TEMPLATE: str = "{name}-db-dump-{pid}.sql"
CONTRIB_SUBDIR: str = "contrib"

# SQLSTATE for "undefined_table"
PG_UNDEFINED_TABLE: str = "42P01"


PSQL_EXECUTABLE: str = "psql"
PG_DUMP_EXECUTABLE: str = "pg_dump"
PG_CONFIG_EXECUTABLE: str = "pg_config"


DEFAULT_LOG_LEVEL: str = "WARNING"
DEFAULT_LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_LOG_SIZE_MB: int = 10
DEFAULT_MAX_LOG_FILES: int = 5
BYTES_PER_MB: int = 1024 * 1024

SENSITIVE_KEYS: List[str] = ["password", "passwd", "secret", "token", "pgpassword"]
MASK_TOKEN: str = "***MASKED***"


EXIT_SUCCESS: int = 0
EXIT_FAILURE: int = 1
