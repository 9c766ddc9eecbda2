"""
Tests for Report-by-Exception Change Detection.

============================================================
PURPOSE
============================================================
Verify which part of each emitted row is forwarded.

============================================================
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from playback.change_detector import ChangeDetector, values_equal


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def detector():
    return ChangeDetector(timestamp_column="ts", report_by_exception=True)


# ============================================================
# EQUALITY TESTS
# ============================================================

class TestValuesEqual:
    """Tests for strict value comparison."""

    def test_bool_is_not_number(self):
        """Test that True and 1 differ."""
        assert not values_equal(True, 1)
        assert not values_equal(0, False)

    def test_numbers_compare_by_value(self):
        """Test that int, float and Decimal compare numerically."""
        assert values_equal(1, 1.0)
        assert values_equal(Decimal("2.5"), 2.5)

    def test_string_is_not_number(self):
        """Test that "1" and 1 differ."""
        assert not values_equal("1", 1)

    def test_same_instant(self):
        """Test that equal instants in different zones match."""
        utc = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        plus_two = utc.astimezone(timezone(timedelta(hours=2)))
        assert values_equal(utc, plus_two)

    def test_none(self):
        """Test null handling."""
        assert values_equal(None, None)
        assert not values_equal(None, 0)


# ============================================================
# DETECTOR TESTS
# ============================================================

class TestChangeDetector:
    """Tests for forwarding decisions."""

    def test_first_row_always_full(self, detector):
        """Test that the first row of a session is forwarded whole."""
        row = {"ts": 1, "a": 1, "b": 2}
        assert detector.process(row) == row

    def test_unchanged_row_suppressed(self, detector):
        """Test that an identical row forwards nothing."""
        detector.process({"ts": 1, "a": 1, "b": 2})

        assert detector.process({"ts": 2, "a": 1, "b": 2}) is None
        assert detector.suppressed == 1

    def test_changed_fields_plus_timestamp(self, detector):
        """Test that only changed fields and the timestamp are forwarded."""
        detector.process({"ts": 1, "a": 1, "b": 2})

        assert detector.process({"ts": 2, "a": 1, "b": 3}) == {"b": 3, "ts": 2}

    def test_null_timestamp_not_added(self, detector):
        """Test that a null timestamp is left out of the diff."""
        detector.process({"ts": 1, "a": 1})

        assert detector.process({"ts": None, "a": 2}) == {"a": 2}

    def test_snapshot_advances(self, detector):
        """Test that comparisons are against the last row seen."""
        detector.process({"a": 1})
        detector.process({"a": 2})

        assert detector.process({"a": 2}) is None
        assert detector.process({"a": 1}) == {"a": 1}

    def test_new_field_is_a_change(self, detector):
        """Test that a field absent from the snapshot is forwarded."""
        detector.process({"a": 1})
        assert detector.process({"a": 1, "c": 0}) == {"c": 0}

    def test_rbe_off_forwards_everything(self):
        """Test that with RBE off every row is forwarded whole."""
        detector = ChangeDetector(timestamp_column="ts", report_by_exception=False)
        row = {"ts": 1, "a": 1}
        detector.process(row)

        assert detector.process(dict(row)) == row
        assert detector.suppressed == 0

    def test_reset_forgets_snapshot(self, detector):
        """Test that a new session starts from a full row."""
        detector.process({"a": 1})
        detector.reset("ts", True)

        assert detector.snapshot is None
        assert detector.process({"a": 1}) == {"a": 1}

    def test_returned_payload_is_a_copy(self, detector):
        """Test that mutating the payload does not touch the snapshot."""
        payload = detector.process({"a": 1})
        payload["a"] = 99

        assert detector.process({"a": 1}) is None
