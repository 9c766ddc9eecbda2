"""
Playback - Change Detector (report by exception).

============================================================
RESPONSIBILITY
============================================================
Decides what part of an emitted row is forwarded downstream.

- First row of a session: always the full row
- Report-by-exception off: always the full row
- Report-by-exception on: only fields that changed since the
  last forwarded row, plus the timestamp column for context;
  nothing at all when no field changed

============================================================
EQUALITY
============================================================
Strict: values of different types never match (True != 1);
all numeric types count as one type.
Date/time values match when they denote the same instant.
The timestamp column never triggers a change by itself.

============================================================
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from core.clock import to_epoch_ms
from data_sources.base import Row


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def values_equal(previous: Any, current: Any) -> bool:
    """Strict value equality with instant comparison for date/times."""
    if isinstance(previous, (datetime, date)) and isinstance(current, (datetime, date)):
        return to_epoch_ms(previous) == to_epoch_ms(current)
    if _is_number(previous) and _is_number(current):
        return previous == current
    if type(previous) is not type(current):
        return False
    return previous == current


class ChangeDetector:
    """
    Holds the last forwarded row for one session.

    The snapshot is owned here and reset at every session start.
    """

    def __init__(
        self,
        timestamp_column: Optional[str] = None,
        report_by_exception: bool = False,
    ) -> None:
        self._timestamp_column = timestamp_column
        self._report_by_exception = report_by_exception
        self._snapshot: Optional[Row] = None
        self.suppressed = 0

    @property
    def snapshot(self) -> Optional[Row]:
        return self._snapshot

    @property
    def report_by_exception(self) -> bool:
        return self._report_by_exception

    def reset(
        self,
        timestamp_column: Optional[str] = None,
        report_by_exception: bool = False,
    ) -> None:
        """Start a new session."""
        self._timestamp_column = timestamp_column
        self._report_by_exception = report_by_exception
        self._snapshot = None
        self.suppressed = 0

    def process(self, row: Mapping[str, Any]) -> Optional[Row]:
        """
        Payload to forward for an emitted row.

        Returns:
            The full row, the changed fields, or None to suppress
        """
        if self._snapshot is None or not self._report_by_exception:
            self._snapshot = dict(row)
            return dict(row)

        changes = self.diff(row)
        if not changes:
            self.suppressed += 1
            return None

        column = self._timestamp_column
        if column and row.get(column) is not None:
            changes[column] = row[column]

        self._snapshot = dict(row)
        return changes

    def diff(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Fields of row that differ from the snapshot, timestamp column excluded."""
        snapshot = self._snapshot or {}
        changes: Dict[str, Any] = {}
        for key, value in row.items():
            if key == self._timestamp_column:
                continue
            if key not in snapshot or not values_equal(snapshot[key], value):
                changes[key] = value
        return changes
