"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Single source of truth for playback defaults
- Each constant is documented
- No business logic here

============================================================
"""

# ============================================================
# SYSTEM CONSTANTS
# ============================================================

SYSTEM_NAME = "tag-replay"
SYSTEM_VERSION = "1.0.0"

# ============================================================
# SCHEDULING DEFAULTS (milliseconds)
# ============================================================

DEFAULT_LOOKAHEAD_POLL_MS = 10
"""Delay used when no next row is buffered yet to compute a delta."""

DEFAULT_UNDERFLOW_RETRY_MS = 100
"""Delay before retrying when the buffer is empty but the source is live."""

DEFAULT_FALLBACK_DELAY_MS = 1000
"""Delay used in realtime/multiplier modes without a timestamp column."""

DEFAULT_INTERVAL_MS = 1000
"""Interval for fixed mode when none is configured."""

DEFAULT_MULTIPLIER = 1.0

# ============================================================
# FLOW CONTROL DEFAULTS
# ============================================================

DEFAULT_HIGH_WATER_MARK = 1000
"""Buffer length at which the source is paused."""

DEFAULT_LOW_WATER_MARK = 100
"""Buffer length at or below which a paused source is resumed."""

# ============================================================
# TIME UNITS
# ============================================================

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60_000

# ============================================================
# DATA SOURCE DEFAULTS
# ============================================================

DEFAULT_FETCH_SIZE = 500
"""Rows fetched per round trip when streaming a query."""

DEFAULT_PREVIEW_LIMIT = 10
"""Rows returned by a query preview."""
