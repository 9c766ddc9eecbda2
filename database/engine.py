"""
Database Access Layer - Core Engine.

============================================================
READ-ONLY ACCESS TO THE CAPTURED DATASET
============================================================

The replay system only ever reads: it runs one operator query
and streams the result. This module owns engine creation,
connection scoping and the connectivity check.

Requirements:
- SQLAlchemy Core with any installed dialect
- Pooled connections for server databases
- Structured logging without credentials

============================================================
"""

import os
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional

from sqlalchemy import create_engine, text, event
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///replay.db"


# =============================================================
# DATABASE URL
# =============================================================


def get_database_url(url: Optional[str] = None) -> str:
    """Resolve the database URL: explicit argument, then DATABASE_URL."""
    url = url or os.getenv("DATABASE_URL")

    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")

    return url


def describe_url(url: str) -> str:
    """Render a URL for logs with the password hidden."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except SQLAlchemyError:
        return url.split("@")[-1]


# =============================================================
# DATABASE ENGINE
# =============================================================


def create_database_engine(
    url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Build the engine the replay query runs on.

    Pool settings are passed only for server databases; SQLite
    keeps the pool its dialect picks. The URL defaults to
    DATABASE_URL and is logged with the password hidden.
    """
    database_url = get_database_url(url)

    logger.info(f"Creating database engine for: {describe_url(database_url)}")

    kwargs = {"echo": echo}
    if not database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
        )

    engine = create_engine(database_url, **kwargs)

    @event.listens_for(engine, "connect")
    def _log_new_connection(dbapi_conn, connection_record):
        logger.debug(f"Opened {engine.dialect.name} connection")

    return engine


# =============================================================
# CONNECTION MANAGEMENT
# =============================================================


@contextmanager
def get_db_connection(engine: Engine) -> Generator[Connection, None, None]:
    """
    Context manager for a read connection with automatic cleanup.

    Usage:
        with get_db_connection(engine) as conn:
            rows = conn.execute(text(query)).fetchall()

    On exception:
        - Logs the error
        - Re-raises the exception
    """
    conn = engine.connect()
    try:
        yield conn
    except SQLAlchemyError as e:
        logger.error(f"Database error: {e}")
        raise
    finally:
        conn.close()


@dataclass(frozen=True)
class ConnectionCheck:
    """Outcome of a connectivity check."""
    success: bool
    message: str


def check_connection(engine: Engine) -> ConnectionCheck:
    """
    Verify the database answers a trivial query.

    Never raises: the outcome is reported in the result.
    """
    try:
        with get_db_connection(engine) as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        logger.error(f"Connectivity check failed for {describe_url(str(engine.url))}: {e}")
        return ConnectionCheck(success=False, message=str(e))

    logger.info(f"Connectivity check passed for {describe_url(str(engine.url))}")
    return ConnectionCheck(success=True, message="Connected successfully")


# =============================================================
# EXPORTS
# =============================================================

__all__ = [
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "describe_url",
    "create_database_engine",
    "get_db_connection",
    "ConnectionCheck",
    "check_connection",
]
