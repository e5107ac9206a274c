"""
GH Archive Importer - Database Connection Management
Provides SQLAlchemy Core connection pooling and transactional connections.

The engine URL comes from DATABASE_URL when set, otherwise it is built from
DB_DRIVER / DB_HOST / DB_PORT / DB_NAME / DB_USER / DB_PASSWORD.
"""

from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.pool import QueuePool
from sqlalchemy.engine import Engine, Connection, URL, make_url
from typing import Generator, Optional, Union

from utils.config import (
    DATABASE_URL, DB_DRIVER, DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD,
    DB_POOL_SIZE, DB_POOL_MAX_OVERFLOW, DB_POOL_RECYCLE, DB_POOL_PRE_PING,
    config
)
from utils.logger import logger, log_database_error


def build_database_url() -> URL:
    """Build the store URL from configuration."""
    if DATABASE_URL:
        return make_url(DATABASE_URL)

    # URL.create() keeps the password out of repr() and logs
    query = {}
    if DB_DRIVER.startswith('mysql'):
        query = {"charset": "utf8mb4"}

    return URL.create(
        drivername=DB_DRIVER,
        username=DB_USER,
        password=DB_PASSWORD,
        host=DB_HOST,
        port=DB_PORT,
        database=DB_NAME,
        query=query,
    )


class DatabaseConnection:
    """
    Manages store connections with connection pooling.

    Features:
    - Connection pooling for server databases
    - Automatic connection recycling (every hour)
    - Health checks before connection use (pool_pre_ping)
    - One transaction per get_connection() block
    """

    def __init__(self, url: Optional[Union[str, URL]] = None, engine: Optional[Engine] = None):
        self._url = url
        self._engine: Optional[Engine] = engine

    def get_engine(self) -> Engine:
        """
        Get or create the SQLAlchemy engine.

        Raises:
            DatabaseConnectionError: If the engine cannot be created
        """
        if self._engine is None:
            try:
                url = make_url(self._url) if self._url else build_database_url()

                engine_options = {
                    "echo": False,
                    "hide_parameters": True,
                    "pool_pre_ping": DB_POOL_PRE_PING,
                }
                if url.get_backend_name() != 'sqlite':
                    engine_options.update(
                        poolclass=QueuePool,
                        pool_size=DB_POOL_SIZE,
                        max_overflow=DB_POOL_MAX_OVERFLOW,
                        pool_recycle=DB_POOL_RECYCLE,
                    )

                self._engine = create_engine(url, **engine_options)

                logger.info("Database connection pool initialized", extra={
                    "backend": url.get_backend_name(),
                    "host": url.host,
                    "database": url.database,
                    "environment": config.environment
                })

            except Exception as e:
                log_database_error(e, "Failed to create database engine")
                raise DatabaseConnectionError(f"Failed to create database engine: {e}")

        return self._engine

    @contextmanager
    def get_connection(self) -> Generator[Connection, None, None]:
        """
        Context manager for a transactional connection.

        Commits when the block exits normally, rolls back otherwise.

        Example:
            >>> with db.get_connection() as conn:
            ...     conn.execute(select(func.count()).select_from(Event.__table__)).scalar()
        """
        engine = self.get_engine()
        connection = engine.connect()
        try:
            yield connection
            connection.commit()
        except Exception as e:
            connection.rollback()
            log_database_error(e, "Transaction failed, rolled back")
            raise
        finally:
            connection.close()

    def create_tables(self) -> None:
        """Create the actor, repo and event tables if they do not exist."""
        from models import Base
        Base.metadata.create_all(self.get_engine())

    def close(self):
        """Close all connections in the pool."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info("Database connection pool closed")


class DatabaseConnectionError(Exception):
    """Raised when database connection fails."""
    pass


# Global database connection instance
db = DatabaseConnection()
