"""
Tests for Tag Space and Tag Synchronization.

============================================================
PURPOSE
============================================================
Verify schema inference, value writes, null defaults and the
coercion fallback.

TEST PRINCIPLES:
- A bad value never raises out of sync()
- Fields outside the schema are ignored
- Defaults are type-appropriate

============================================================
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from core.clock import MockClock
from core.exceptions import TagWriteError, UnknownTagError
from tag_space.memory import InMemoryTagSpace
from tag_space.models import TagSchema, TagType, infer_tag_type
from tag_space.synchronizer import TagSynchronizer


# ============================================================
# FIXTURES
# ============================================================

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

SAMPLE = {
    "ts": datetime(2024, 1, 1, tzinfo=timezone.utc),
    "flow": 12.5,
    "running": True,
    "label": "pump-1",
}


@pytest.fixture
def clock():
    return MockClock(NOW)


@pytest.fixture
def tag_space(clock):
    return InMemoryTagSpace(clock=clock)


@pytest.fixture
def synchronizer(tag_space, clock):
    sync = TagSynchronizer(tag_space, clock=clock)
    sync.bind_schema(SAMPLE)
    return sync


# ============================================================
# INFERENCE TESTS
# ============================================================

class TestInference:
    """Tests for tag type inference."""

    @pytest.mark.parametrize("value,expected", [
        (True, TagType.BOOLEAN),
        (False, TagType.BOOLEAN),
        (3, TagType.NUMBER),
        (2.5, TagType.NUMBER),
        (Decimal("1.1"), TagType.NUMBER),
        (datetime(2024, 1, 1), TagType.TIMESTAMP),
        (date(2024, 1, 1), TagType.TIMESTAMP),
        ("text", TagType.STRING),
        (None, TagType.STRING),
    ])
    def test_infer_tag_type(self, value, expected):
        """Test that each value class maps to its tag type."""
        assert infer_tag_type(value) == expected

    def test_schema_keeps_column_order(self):
        """Test that the schema lists columns in row order."""
        schema = TagSchema.infer(SAMPLE)
        assert schema.names == ["ts", "flow", "running", "label"]
        assert "flow" in schema
        assert len(schema) == 4


# ============================================================
# TAG SPACE TESTS
# ============================================================

class TestInMemoryTagSpace:
    """Tests for the dict-backed tag space."""

    def test_ensure_tags_seeds_values(self, tag_space):
        """Test that tags are created from the sample row."""
        tag_space.ensure_tags_from_sample({"a": 1, "name": None})

        assert tag_space.read_value("a") == 1
        assert tag_space.read_value("name") == ""
        assert tag_space.get_tag("name").tag_type == TagType.STRING

    def test_ensure_tags_replaces_prior_schema(self, tag_space):
        """Test that a new sample drops the old tags."""
        tag_space.ensure_tags_from_sample({"a": 1})
        tag_space.ensure_tags_from_sample({"b": "x"})

        assert [t.name for t in tag_space.tags()] == ["b"]
        assert tag_space.rebuild_count == 2

    def test_unknown_tag_raises(self, tag_space):
        """Test that writing an unknown tag raises."""
        with pytest.raises(UnknownTagError):
            tag_space.write_value("missing", 1)

    def test_strict_type_check(self, tag_space):
        """Test that an incompatible value is rejected."""
        tag_space.ensure_tags_from_sample({"a": 1})

        with pytest.raises(TagWriteError):
            tag_space.write_value("a", "one")

    def test_listeners_see_writes(self, tag_space):
        """Test that change listeners are notified."""
        seen = []
        tag_space.ensure_tags_from_sample({"a": 1})
        tag_space.add_listener(lambda tag: seen.append((tag.name, tag.value)))

        tag_space.write_value("a", 2)

        assert seen == [("a", 2)]

    def test_removed_listener_not_notified(self, tag_space):
        """Test that a removed listener stops receiving writes."""
        seen = []
        tag_space.ensure_tags_from_sample({"a": 1})
        tag_space.add_listener(seen.append)
        tag_space.remove_listener(seen.append)

        tag_space.write_value("a", 2)

        assert seen == []

    def test_failing_listener_does_not_break_write(self, tag_space):
        """Test that a listener exception is contained."""
        tag_space.ensure_tags_from_sample({"a": 1})

        def broken(tag):
            raise RuntimeError("listener down")

        tag_space.add_listener(broken)
        tag_space.write_value("a", 5)

        assert tag_space.read_value("a") == 5


# ============================================================
# SYNCHRONIZER TESTS
# ============================================================

class TestTagSynchronizer:
    """Tests for payload synchronization."""

    def test_writes_present_fields(self, synchronizer, tag_space):
        """Test that each payload field is written."""
        result = synchronizer.sync({"flow": 13.0, "running": False})

        assert result.written == 2
        assert tag_space.read_value("flow") == 13.0
        assert tag_space.read_value("running") is False
        assert tag_space.read_value("label") == "pump-1"

    def test_null_gets_type_default(self, synchronizer, tag_space):
        """Test that nulls are replaced with type defaults."""
        result = synchronizer.sync({"ts": None, "flow": None, "running": None, "label": None})

        assert result.defaulted == 4
        assert tag_space.read_value("ts") == NOW
        assert tag_space.read_value("flow") == 0
        assert tag_space.read_value("running") is False
        assert tag_space.read_value("label") == ""

    def test_incompatible_value_falls_back_to_default(self, synchronizer, tag_space):
        """Test that a rejected write is retried once with the default."""
        result = synchronizer.sync({"flow": "not a number"})

        assert result.defaulted == 1
        assert tag_space.read_value("flow") == 0

    def test_rejected_default_not_counted_as_written(self, clock):
        """Test that a field whose default write also fails is not counted."""
        class ReadOnlyTagSpace(InMemoryTagSpace):
            def write_value(self, name, value):
                raise TagWriteError("read only", tag_name=name, value=value)

        sync = TagSynchronizer(ReadOnlyTagSpace(clock=clock), clock=clock)
        sync.bind_schema(SAMPLE)

        result = sync.sync({"flow": 1.0, "label": "x"})

        assert result.written == 0
        assert result.defaulted == 2

    def test_unknown_fields_ignored(self, synchronizer, tag_space):
        """Test that fields outside the schema are skipped."""
        result = synchronizer.sync({"extra": 1, "flow": 1.0})

        assert result.ignored == 1
        assert result.written == 1
        assert tag_space.get_tag("extra") is None

    def test_sync_before_bind_writes_nothing(self, tag_space):
        """Test that an unbound synchronizer drops payloads."""
        sync = TagSynchronizer(tag_space)
        result = sync.sync({"a": 1})

        assert not sync.is_bound
        assert result.written == 0
        assert result.ignored == 1

    def test_rebind_replaces_schema(self, synchronizer, tag_space):
        """Test that binding again swaps the tag set."""
        synchronizer.bind_schema({"other": 1})

        assert synchronizer.schema.names == ["other"]
        assert synchronizer.sync({"flow": 1.0}).ignored == 1
