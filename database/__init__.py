"""
Database Package Initialization.

============================================================
READ-ONLY DATASET ACCESS
============================================================

Engine creation and connection scoping for the relational
store holding the captured dataset. Query streaming lives in
data_sources.sql.

============================================================
"""

from .engine import (
    # Engine creation
    DEFAULT_DATABASE_URL,
    get_database_url,
    describe_url,
    create_database_engine,

    # Connection management
    get_db_connection,
    ConnectionCheck,
    check_connection,
)

__all__ = [
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "describe_url",
    "create_database_engine",
    "get_db_connection",
    "ConnectionCheck",
    "check_connection",
]
