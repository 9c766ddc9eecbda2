"""
Tag Space - Synchronizer.

============================================================
RESPONSIBILITY
============================================================
Pushes forwarded row payloads into the tag space.

- Binds the tag schema once per session from a sample row
- Writes every present field of a payload
- Substitutes type-appropriate defaults for nulls
- Falls back to the default when the tag space rejects a value

============================================================
DESIGN PRINCIPLES
============================================================
- Never raises on a bad value: replay keeps running
- Fields outside the bound schema are ignored
- Stateless with respect to the playback buffer

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from core.clock import ClockProtocol, SystemClock
from core.exceptions import TagWriteError, UnknownTagError
from tag_space.base import TagSpace
from tag_space.models import TagSchema, TagType, default_value


@dataclass
class SyncResult:
    """Outcome of one payload sync."""
    written: int = 0
    defaulted: int = 0
    ignored: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "written": self.written,
            "defaulted": self.defaulted,
            "ignored": self.ignored,
        }


class TagSynchronizer:
    """
    Writes forwarded rows into a TagSpace under a fixed schema.

    The schema is bound by bind_schema() and stays fixed until the
    next call; a sync() before binding writes nothing.
    """

    def __init__(
        self,
        tag_space: TagSpace,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._tag_space = tag_space
        self._clock = clock or SystemClock()
        self._schema: Optional[TagSchema] = None
        self._logger = logging.getLogger("tag_space.synchronizer")

    @property
    def tag_space(self) -> TagSpace:
        return self._tag_space

    @property
    def schema(self) -> Optional[TagSchema]:
        return self._schema

    @property
    def is_bound(self) -> bool:
        return self._schema is not None

    def bind_schema(self, sample_row: Mapping[str, Any]) -> TagSchema:
        """Infer and create the session's tags from a representative row."""
        self._schema = self._tag_space.ensure_tags_from_sample(sample_row)
        return self._schema

    def unbind(self) -> None:
        self._schema = None

    def sync(self, payload: Mapping[str, Any]) -> SyncResult:
        """Write every field of a forwarded payload."""
        result = SyncResult()
        if self._schema is None:
            self._logger.debug("sync before schema bind, payload dropped")
            result.ignored = len(payload)
            return result

        for name, value in payload.items():
            tag_type = self._schema.get(name)
            if tag_type is None:
                result.ignored += 1
                continue

            if value is None:
                value = default_value(tag_type, self._clock)
                result.defaulted += 1

            try:
                self._tag_space.write_value(name, value)
            except TagWriteError as e:
                self._logger.debug(f"Coercion fallback for tag={name}: {e.message}")
                result.defaulted += 1
                if not self._write_default(name, tag_type):
                    continue
            except UnknownTagError:
                self._logger.warning(f"Tag missing from tag space: {name}")
                result.ignored += 1
                continue

            result.written += 1

        return result

    def _write_default(self, name: str, tag_type: TagType) -> bool:
        try:
            self._tag_space.write_value(name, default_value(tag_type, self._clock))
        except (TagWriteError, UnknownTagError) as e:
            self._logger.warning(f"Default write rejected for tag={name}: {e.message}")
            return False
        return True
