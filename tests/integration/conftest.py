"""
Integration test fixtures and configuration.

Provides MySQL database fixtures for integration testing.

Fixture Types:
- mysql_engine: Engine for the dedicated test database (skips when unset)
- mysql_database: DatabaseConnection with empty actor/repo/event tables

Safety Features:
- Blocks running tests against production/dev databases
- Validates required environment variables
"""

import os

import pytest
from sqlalchemy import create_engine, text

from database.connection import DatabaseConnection
from models import Base


# =============================================================================
# Safety Constants
# =============================================================================

# Database names that should NEVER be used for automated tests
PROTECTED_DATABASE_NAMES = [
    'gharchive',        # Production
    'gharchive_dev',    # Development
    'gharchive_prod',   # Production alias
]


# =============================================================================
# Test Database Connection
# =============================================================================

def get_mysql_connection_string() -> str:
    """
    Get MySQL connection string from environment variables.

    Raises:
        ValueError: If required environment variables are not set
    """
    required_vars = ['TEST_DB_HOST', 'TEST_DB_NAME', 'TEST_DB_USER', 'TEST_DB_PASSWORD']
    missing_vars = [var for var in required_vars if os.getenv(var) is None]

    if missing_vars:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing_vars)}. "
            "Set these before running integration tests."
        )

    host = os.getenv('TEST_DB_HOST')
    port = os.getenv('TEST_DB_PORT', '3306')
    database = os.getenv('TEST_DB_NAME')
    user = os.getenv('TEST_DB_USER')
    password = os.getenv('TEST_DB_PASSWORD')

    return f"mysql+pymysql://{user}:{password}@{host}:{port}/{database}?charset=utf8mb4"


@pytest.fixture(scope='session')
def mysql_engine():
    """
    Create MySQL engine for integration tests.

    Note:
        Requires TEST_DB_HOST, TEST_DB_NAME, TEST_DB_USER, TEST_DB_PASSWORD
        and optionally TEST_DB_PORT (default: 3306)
    """
    db_name = os.getenv('TEST_DB_NAME')
    if db_name in PROTECTED_DATABASE_NAMES:
        pytest.fail(
            f"SAFETY ERROR: TEST_DB_NAME='{db_name}' is a protected database.\n"
            f"Protected databases: {PROTECTED_DATABASE_NAMES}\n"
            f"Use 'gharchive_test' or another dedicated test database."
        )

    try:
        connection_string = get_mysql_connection_string()
    except ValueError as e:
        pytest.skip(f"MySQL integration tests skipped: {e}")

    engine = create_engine(connection_string, echo=False)
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))

    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def mysql_database(mysql_engine):
    """
    DatabaseConnection on the test database with empty tables.

    The importer commits every statement, so tables are cleared instead of
    rolling back a wrapping transaction.
    """
    with mysql_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())

    yield DatabaseConnection(engine=mysql_engine)
