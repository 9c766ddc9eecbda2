"""
Data Sources Package - Replayable row streams.

Provides ordered, pausable row sources for the playback engine.

Features:
- One listener per source: data / end / error signals
- Advisory pause/resume for buffer backpressure
- Idempotent destroy
- SQL query streaming and preview
- In-memory iterables for demos and tests

Quick Start:
    from data_sources import SqlQuerySource, preview_query
    from database import create_database_engine

    engine = create_database_engine("sqlite:///history.db")
    preview = preview_query(engine, "SELECT * FROM readings ORDER BY ts")
    source = SqlQuerySource(engine, "SELECT * FROM readings ORDER BY ts")

Adding New Sources:
    1. Create class extending RowSource
    2. Implement: _start(), _close(), optionally _on_pause()/_on_resume()
    3. Deliver rows with _emit_data() on the event loop thread
"""

from data_sources.base import Row, RowSource
from data_sources.memory import IterableRowSource
from data_sources.sql import QueryPreview, SqlQuerySource, preview_query

__all__ = [
    "Row",
    "RowSource",
    "IterableRowSource",
    "SqlQuerySource",
    "QueryPreview",
    "preview_query",
]
