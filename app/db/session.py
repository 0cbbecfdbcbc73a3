"""
Database session management.

Provides SQLModel engine and session creation.
"""

import logging
from typing import Generator

from sqlalchemy import event
from sqlalchemy.engine import Engine, make_url
from sqlmodel import Session, create_engine

from app.core.config import Settings, settings
from app.core.context import active_context

logger = logging.getLogger(__name__)

SUPPORTED_DRIVERS = ("sqlite", "postgresql", "mysql")

# SQLite VM instructions between checks of the active request context
SQLITE_PROGRESS_INTERVAL = 1000


def interrupt_if_done() -> int:
    """SQLite progress handler: a non-zero return aborts the running statement."""
    context = active_context.get()
    return 1 if context is not None and context.done else 0


def install_statement_interrupts(engine: Engine) -> None:
    """
    Let SQLite abort statements of cancelled or expired requests.

    Other backends get a per-transaction statement timeout from the repository.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_progress_handler(dbapi_connection, connection_record):
        dbapi_connection.set_progress_handler(interrupt_if_done, SQLITE_PROGRESS_INTERVAL)


def create_db_engine(config: Settings) -> Engine:
    """
    Build the engine described by the database settings.

    Raises:
        ValueError: If the driver is unsupported or does not match the DSN
    """
    driver = config.DATABASE_DRIVER
    if driver not in SUPPORTED_DRIVERS:
        raise ValueError(f"unsupported driver: {driver}")

    url = make_url(config.DATABASE_URL)
    if url.get_backend_name() != driver:
        raise ValueError(f"DSN backend {url.get_backend_name()!r} does not match driver {driver!r}")

    kwargs: dict = {
        "echo": config.DATABASE_LOG_MODE,  # Log SQL queries
        "pool_pre_ping": True,             # Verify connections before using
    }
    if driver == "sqlite":
        # Sessions are used from FastAPI's worker threads
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_size"] = 5
        kwargs["max_overflow"] = 10

    logger.info("Connecting to %s database", driver)
    engine = create_engine(url, **kwargs)
    install_statement_interrupts(engine)
    return engine


# Create database engine
engine = create_db_engine(settings)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI endpoints to get database session.

    Yields:
        SQLModel Session instance
    """
    with Session(engine) as session:
        yield session
