"""
Playback - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the replay system.

- Provides argparse-based CLI
- Loads settings from environment, CLI flags override
- Previews the query, binds the tag schema, runs playback
- Stops cleanly on SIGINT / SIGTERM

============================================================
USAGE
============================================================
python app.py --query "SELECT * FROM readings ORDER BY ts" \\
    --timestamp-column ts --mode realtime
python app.py --query-file replay.sql --mode multiplier --multiplier 10
python app.py --query "SELECT * FROM readings" --mode fixed --interval-ms 500 --rbe
python app.py --check-connection

============================================================
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional

from core.constants import DEFAULT_FETCH_SIZE, SYSTEM_NAME, SYSTEM_VERSION
from core.exceptions import ReplayException
from core.state_manager import PlaybackState
from data_sources.sql import SqlQuerySource, preview_query
from database.engine import check_connection, create_database_engine
from playback.engine import PlaybackEngine
from playback.events import PlaybackEvent, PlaybackFailed, RowEmitted
from playback.models import PlaybackConfig, PlaybackMode, PlaybackSettings, TimestampUnit
from playback.session import PlaybackSession
from tag_space.memory import InMemoryTagSpace
from tag_space.synchronizer import TagSynchronizer


logger = logging.getLogger("playback.cli")


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> None:
    """
    Set up process logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=SYSTEM_NAME,
        description="Replay a captured SQL dataset into a live tag space",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Timing Modes:
  realtime    - original timestamp deltas
  multiplier  - original deltas divided by --multiplier
  fixed       - constant --interval-ms between rows

Examples:
  %(prog)s --query "SELECT * FROM readings ORDER BY ts" --timestamp-column ts
  %(prog)s --query-file replay.sql --mode multiplier --multiplier 10
  %(prog)s --query "SELECT * FROM readings" --mode fixed --interval-ms 500 --rbe
        """
    )

    # --------------------------------------------------------
    # Data Source
    # --------------------------------------------------------
    source_group = parser.add_argument_group("Data Source")

    source_group.add_argument(
        "--database-url",
        type=str,
        metavar="URL",
        help="SQLAlchemy database URL (default: $DATABASE_URL)",
    )

    query_group = source_group.add_mutually_exclusive_group()
    query_group.add_argument(
        "--query", "-q",
        type=str,
        help="Query producing the rows to replay, in order",
    )
    query_group.add_argument(
        "--query-file",
        type=str,
        metavar="PATH",
        help="File containing the query",
    )

    source_group.add_argument(
        "--fetch-size",
        type=int,
        default=DEFAULT_FETCH_SIZE,
        help=f"Rows per database round trip (default: {DEFAULT_FETCH_SIZE})",
    )

    source_group.add_argument(
        "--check-connection",
        action="store_true",
        help="Test the database connection and exit",
    )

    source_group.add_argument(
        "--preview",
        action="store_true",
        help="Print the first rows of the query and exit",
    )

    # --------------------------------------------------------
    # Timing
    # --------------------------------------------------------
    timing_group = parser.add_argument_group("Timing")

    timing_group.add_argument(
        "--mode", "-m",
        type=str,
        choices=[m.value for m in PlaybackMode],
        default=PlaybackMode.REALTIME.value,
        help="Timing mode (default: realtime)",
    )

    timing_group.add_argument(
        "--timestamp-column",
        type=str,
        metavar="COLUMN",
        help="Column holding each row's timestamp",
    )

    timing_group.add_argument(
        "--timestamp-unit",
        type=str,
        choices=[u.value for u in TimestampUnit],
        default=TimestampUnit.AUTO.value,
        help="How to read the timestamp column (default: auto)",
    )

    timing_group.add_argument(
        "--multiplier",
        type=float,
        default=1.0,
        help="Speed multiplier for multiplier mode (default: 1.0)",
    )

    timing_group.add_argument(
        "--interval-ms",
        type=int,
        default=1000,
        metavar="MS",
        help="Interval for fixed mode (default: 1000)",
    )

    timing_group.add_argument(
        "--rbe",
        action="store_true",
        help="Report by exception: forward only changed fields",
    )

    # --------------------------------------------------------
    # Flow Control
    # --------------------------------------------------------
    flow_group = parser.add_argument_group("Flow Control")

    flow_group.add_argument(
        "--high-water-mark",
        type=int,
        metavar="ROWS",
        help="Pause the source at this buffer length (default: $PLAYBACK_HIGH_WATER_MARK or 1000)",
    )

    flow_group.add_argument(
        "--low-water-mark",
        type=int,
        metavar="ROWS",
        help="Resume the source at this buffer length (default: $PLAYBACK_LOW_WATER_MARK or 100)",
    )

    # --------------------------------------------------------
    # Output / Logging
    # --------------------------------------------------------
    output_group = parser.add_argument_group("Output")

    output_group.add_argument(
        "--print-rows",
        action="store_true",
        help="Print every forwarded payload as a JSON line on stdout",
    )

    output_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    output_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="text",
        help="Logging format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {SYSTEM_VERSION}",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Returns:
        List of validation errors
    """
    errors = []

    if not args.check_connection and not (args.query or args.query_file):
        errors.append("--query or --query-file is required")

    if args.query_file and not Path(args.query_file).is_file():
        errors.append(f"--query-file not found: {args.query_file}")

    if args.fetch_size < 1:
        errors.append("--fetch-size must be at least 1")

    mode = PlaybackMode(args.mode)
    if mode == PlaybackMode.FIXED and args.interval_ms <= 0:
        errors.append("--interval-ms must be positive in fixed mode")

    if mode == PlaybackMode.MULTIPLIER and args.multiplier <= 0:
        errors.append("--multiplier must be positive")

    if mode != PlaybackMode.FIXED and not args.timestamp_column:
        logger.warning("No --timestamp-column: rows will be spaced by the fallback delay")

    return errors


# ============================================================
# CLI CONFIGURATION BUILDERS
# ============================================================

def build_config(args: argparse.Namespace) -> PlaybackConfig:
    """Build the session configuration from CLI arguments."""
    return PlaybackConfig(
        timestamp_column=args.timestamp_column or None,
        timestamp_unit=TimestampUnit(args.timestamp_unit),
        mode=PlaybackMode(args.mode),
        multiplier=args.multiplier,
        interval_ms=args.interval_ms,
        report_by_exception=args.rbe,
    )


def build_settings(args: argparse.Namespace) -> PlaybackSettings:
    """Environment settings with CLI overrides applied."""
    settings = PlaybackSettings.from_env()
    overrides = {}
    if args.high_water_mark is not None:
        overrides["high_water_mark"] = args.high_water_mark
    if args.low_water_mark is not None:
        overrides["low_water_mark"] = args.low_water_mark
    return replace(settings, **overrides) if overrides else settings


def read_query(args: argparse.Namespace) -> str:
    if args.query_file:
        return Path(args.query_file).read_text(encoding="utf-8").strip()
    return args.query


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


def to_json_line(data: Any) -> str:
    return json.dumps(data, default=_json_default)


# ============================================================
# RUNNER
# ============================================================

async def run_playback(args: argparse.Namespace) -> int:
    """
    Run one playback session to completion.

    Returns:
        Process exit code
    """
    db_engine = create_database_engine(args.database_url)
    try:
        if args.check_connection:
            result = check_connection(db_engine)
            print(result.message)
            return 0 if result.success else 1

        query = read_query(args)
        preview = preview_query(db_engine, query)

        if args.preview:
            print(to_json_line(preview.to_dict()))
            return 0

        if preview.sample_row is None:
            logger.warning("Query returned no rows, nothing to replay")

        tag_space = InMemoryTagSpace()
        session = PlaybackSession(
            engine=PlaybackEngine(settings=build_settings(args)),
            synchronizer=TagSynchronizer(tag_space),
        )

        def on_event(event: PlaybackEvent) -> None:
            if isinstance(event, RowEmitted):
                if args.print_rows:
                    print(to_json_line(event.payload), flush=True)
            elif isinstance(event, PlaybackFailed):
                logger.error(f"Playback error ({event.classification.value}): {event.message}")
            else:
                logger.info(f"Playback event: {event.to_dict()}")

        session.subscribe(on_event)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, session.stop)
            except (NotImplementedError, RuntimeError):
                pass

        source = SqlQuerySource(db_engine, query, fetch_size=args.fetch_size)
        session.start(source, build_config(args), sample_row=preview.sample_row)

        final_state = await session.wait()
        logger.info(f"Session summary: {session.stats.to_dict()}")
        return 1 if final_state == PlaybackState.ERRORED else 0
    finally:
        db_engine.dispose()


# ============================================================
# MAIN
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_format)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"error: {error}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(run_playback(args))
    except ReplayException as e:
        logger.error(e.to_log_format())
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
