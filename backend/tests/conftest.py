"""
Test configuration and shared fixtures for the Booking Engine test suite.

Uses SQLite by default (override with TEST_DATABASE_URL) with transaction-based
isolation. Each test gets a clean database state via automatic rollback of a
per-test transaction; application commits only release savepoints inside it.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

# Point the application at the test database before any app module is imported
_TEST_DB_DIR = tempfile.mkdtemp(prefix="booking-engine-tests-")
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite:///{_TEST_DB_DIR}/booking_engine_test.db"
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("ENABLE_POPULATION_SCHEDULER", "false")

from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402

from core.database import Base  # noqa: E402
# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
import models  # noqa: E402,F401

BACKEND_DIR = Path(__file__).resolve().parent.parent


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def make_test_engine(url: str, begin_statement: str = "BEGIN") -> Engine:
    """
    Create an engine suitable for tests.

    For SQLite, pysqlite's implicit transaction handling is disabled so that
    SAVEPOINTs behave, and connections may be shared across threads.
    """
    connect_args = {"check_same_thread": False, "timeout": 30} if _is_sqlite(url) else {}
    engine = create_engine(url, poolclass=NullPool, connect_args=connect_args, echo=False)

    if _is_sqlite(url):
        @event.listens_for(engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):  # type: ignore
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):  # type: ignore
            conn.exec_driver_sql(begin_statement)

    return engine


def alembic_config(url: str) -> Config:
    """Alembic config pointed at the given database."""
    cfg = Config(str(BACKEND_DIR / "alembic.ini"))
    cfg.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)
    # Keep pytest's logging capture intact
    cfg.attributes["configure_logger"] = False
    return cfg


@pytest.fixture(scope="session")
def db_engine() -> Generator[Engine, None, None]:
    """
    Create a database engine for the test session.

    This engine is shared across all tests for performance.
    Uses NullPool to avoid connection pool issues with transactions.
    """
    engine = make_test_engine(TEST_DATABASE_URL)

    yield engine

    engine.dispose()
    shutil.rmtree(_TEST_DB_DIR, ignore_errors=True)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database(db_engine):
    """
    Setup test database schema using Alembic migrations.

    Runs once at the start of the test session so the tests exercise the
    schema exactly as migrations build it.
    """
    Base.metadata.drop_all(bind=db_engine)
    with db_engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE IF EXISTS alembic_version")

    command.upgrade(alembic_config(TEST_DATABASE_URL), "head")

    yield

    Base.metadata.drop_all(bind=db_engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Provide a database session for a test with automatic rollback.

    The session joins an outer transaction in "create_savepoint" mode:
    application code may commit or roll back freely, which only affects a
    savepoint, and the outer transaction is rolled back at teardown.
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def file_session_factory() -> Generator[Callable[[], Session], None, None]:
    """
    Session factory on a private, file-backed database with real commits.

    Used by tests that run work on several threads, each with its own session,
    and need every thread to see the others' committed rows.
    """
    directory = tempfile.mkdtemp(prefix="booking-engine-threads-")
    url = f"sqlite:///{directory}/threads.db"
    # SQLite ignores FOR UPDATE; IMMEDIATE transactions serialize writers like the provider row lock
    engine = make_test_engine(url, begin_statement="BEGIN IMMEDIATE")
    Base.metadata.create_all(bind=engine)

    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    yield factory

    engine.dispose()
    shutil.rmtree(directory, ignore_errors=True)
