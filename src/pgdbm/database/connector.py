# src/pgdbm/database/connector.py

"""
Connection handling for the managed PostgreSQL server.

Opens short-lived SQLAlchemy connections to a named database and classifies
failures into "database does not exist" and every other connectivity problem.
Engines use NullPool and are disposed on every exit path, so a probe never
leaves a connection behind.
"""

import logging
import re
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Dict, Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine, URL
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.pool import NullPool

from ..core.config import ConnectionConfig
from ..core.constants import DEFAULT_DRIVER
from ..core.exceptions import ConnectivityError, DatabaseNotFoundError

logger = logging.getLogger(__name__)

_MISSING_DATABASE = re.compile(r'database "(?P<name>[^"]+)" does not exist')

EngineFactory = Callable[..., Engine]


class Connector:
    """
    Opens connections to databases on the configured server.

    Args:
        config: Connection attributes of the managed database
        engine_factory: Callable with the signature of ``sqlalchemy.create_engine``
    """

    def __init__(self, config: ConnectionConfig,
                 engine_factory: EngineFactory = create_engine) -> None:
        self.config = config
        self._engine_factory = engine_factory

    def make_url(self, database: Optional[str] = None) -> URL:
        """
        Build the connection URL for a database.

        Args:
            database: Database name; defaults to the managed database

        Returns:
            SQLAlchemy URL
        """
        query: Dict[str, Any] = {}
        if self.config.sslmode:
            query["sslmode"] = self.config.sslmode

        return URL.create(
            DEFAULT_DRIVER,
            username=self.config.username,
            password=self.config.password_value(),
            host=self.config.host,
            port=self.config.port,
            database=database or self.config.name,
            query=query,
        )

    @contextmanager
    def connect(self, database: Optional[str] = None) -> Iterator[Connection]:
        """
        Open a connection to ``database`` for the duration of the block.

        Args:
            database: Database name; defaults to the managed database

        Yields:
            A live SQLAlchemy connection

        Raises:
            DatabaseNotFoundError: If the server reports that the database does not exist
            ConnectivityError: For every other connection failure
        """
        database = database or self.config.name
        engine = self._engine_factory(self.make_url(database), poolclass=NullPool)
        try:
            try:
                connection = engine.connect()
            except DBAPIError as e:
                raise self._classify(e, database) from e

            logger.debug(f"Connected to database {database}")
            try:
                yield connection
            finally:
                connection.close()
        finally:
            engine.dispose()

    def _classify(self, error: DBAPIError, database: str) -> Exception:
        match = _MISSING_DATABASE.search(str(error.orig) if error.orig is not None else str(error))
        if isinstance(error, OperationalError) and match:
            logger.debug(f"Database {match.group('name')} does not exist")
            return DatabaseNotFoundError(match.group("name"), cause=error)

        logger.warning(f"Cannot connect to database {database}: {error.orig or error}")
        return ConnectivityError(self.describe(), self._connection_details(), cause=error)

    def can_connect(self) -> bool:
        """
        Probe the bootstrap database.

        Returns:
            True if a connection could be opened, False otherwise
        """
        try:
            self.ensure_reachable()
        except ConnectivityError:
            return False
        return True

    def ensure_reachable(self) -> None:
        """
        Verify that the server accepts the configured credentials.

        The probe targets the bootstrap database so that a missing managed
        database is not reported as a connectivity problem.

        Raises:
            ConnectivityError: With the connection diagnostic as message
        """
        try:
            with self.connect(self.config.bootstrap_database):
                pass
        except DatabaseNotFoundError as e:
            raise ConnectivityError(self.describe(), self._connection_details(), cause=e) from e

    def database_exists(self) -> bool:
        """
        Check whether the managed database exists.

        Returns:
            True if a connection to it could be opened, False if the server
            reports that it does not exist

        Raises:
            ConnectivityError: For any other failure
        """
        try:
            with self.connect():
                return True
        except DatabaseNotFoundError:
            return False

    def describe(self) -> str:
        """Connection failure diagnostic listing the connection info provided."""
        lines = ["", "  Cannot connect to Postgres with the connection info provided:", ""]
        for label, value in self.config.describe():
            lines.append(f"  {label:>13} = {value}")
        lines.append("")
        return "\n".join(lines)

    def _connection_details(self) -> Dict[str, Any]:
        return {label: value for label, value in self.config.describe()}
