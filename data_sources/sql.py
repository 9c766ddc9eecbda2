"""
SQL Query Source - Streams a query result into the event loop.

============================================================
RESPONSIBILITY
============================================================
Executes one read query and exposes its result as a pausable
row stream.

- Server-side cursor (stream_results) with fetchmany batches
- One producer thread owns the connection for its lifetime
- Batches are handed to the event loop; the thread blocks
  until the loop has delivered them, and waits while paused
- Query preview for schema discovery

============================================================
DESIGN PRINCIPLES
============================================================
- The producer thread never touches consumer state
- Failure is reported once through the error signal
- No retries: a failed query ends the session

============================================================
"""

import asyncio
import concurrent.futures
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.constants import DEFAULT_FETCH_SIZE, DEFAULT_PREVIEW_LIMIT
from core.exceptions import QueryError
from data_sources.base import Row, RowSource
from database.engine import get_db_connection


logger = logging.getLogger(__name__)


# =============================================================
# STREAMING SOURCE
# =============================================================

class SqlQuerySource(RowSource):
    """
    Row source over a SQL query result.

    Must be attached from inside a running event loop.
    """

    def __init__(
        self,
        engine: Engine,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
        fetch_size: int = DEFAULT_FETCH_SIZE,
        name: str = "sql",
    ) -> None:
        super().__init__(name=name)
        self._engine = engine
        self._query = query
        self._params = dict(params or {})
        self._fetch_size = max(1, fetch_size)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._resumed: Optional[asyncio.Event] = None
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def query(self) -> str:
        return self._query

    def _start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._resumed = asyncio.Event()
        if not self._paused:
            self._resumed.set()
        self._thread = threading.Thread(
            target=self._produce,
            name=f"sql-source-{self._name}",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"[{self._name}] streaming query (fetch_size={self._fetch_size})")

    # =========================================================
    # PRODUCER THREAD
    # =========================================================

    def _produce(self) -> None:
        try:
            with get_db_connection(self._engine) as conn:
                result = conn.execution_options(stream_results=True).execute(
                    text(self._query), self._params
                )
                try:
                    while not self._stopping.is_set():
                        batch = result.fetchmany(self._fetch_size)
                        if not batch:
                            break
                        rows = [dict(r._mapping) for r in batch]
                        future = asyncio.run_coroutine_threadsafe(
                            self._deliver(rows), self._loop
                        )
                        future.result()
                finally:
                    result.close()
        except concurrent.futures.CancelledError:
            return
        except Exception as e:
            # SQLAlchemyError, or a driver error it does not wrap.
            # Nothing is posted once the loop has closed.
            self._post(self._emit_error, e)
            return

        if not self._stopping.is_set():
            self._post(self._emit_end)

    def _post(self, callback, *args) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError as e:
            # loop closed between the check and the call
            logger.debug(f"[{self._name}] producer stopped: {e}")

    # =========================================================
    # LOOP SIDE
    # =========================================================

    async def _deliver(self, rows: List[Row]) -> None:
        for row in rows:
            while self._paused and not self._destroyed:
                await self._resumed.wait()
            if self._destroyed:
                return
            self._emit_data(row)
        # Yield so the consumer gets a turn between batches
        await asyncio.sleep(0)

    def _on_pause(self) -> None:
        if self._resumed is not None:
            self._resumed.clear()

    def _on_resume(self) -> None:
        if self._resumed is not None:
            self._resumed.set()

    def _close(self) -> None:
        self._stopping.set()
        if self._resumed is not None:
            self._resumed.set()


# =============================================================
# QUERY PREVIEW
# =============================================================

@dataclass
class QueryPreview:
    """First rows of a query, used to build the tag schema."""
    columns: List[str] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)

    @property
    def sample_row(self) -> Optional[Row]:
        return self.rows[0] if self.rows else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": self.columns,
            "row_count": len(self.rows),
            "rows": self.rows,
        }


def preview_query(
    engine: Engine,
    query: str,
    params: Optional[Mapping[str, Any]] = None,
    limit: int = DEFAULT_PREVIEW_LIMIT,
) -> QueryPreview:
    """
    Run a query and return its columns and first rows.

    Raises:
        QueryError: If the query cannot be executed
    """
    try:
        with get_db_connection(engine) as conn:
            result = conn.execute(text(query), dict(params or {}))
            try:
                columns = list(result.keys())
                rows = [dict(r._mapping) for r in result.fetchmany(limit)]
            finally:
                result.close()
    except SQLAlchemyError as e:
        raise QueryError(f"Query preview failed: {e}", query=query, source="sql", cause=e) from e

    logger.info(f"Query preview: {len(rows)} rows, columns={columns}")
    return QueryPreview(columns=columns, rows=rows)


__all__ = [
    "SqlQuerySource",
    "QueryPreview",
    "preview_query",
]
