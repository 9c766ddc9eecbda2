"""
In-Memory Tag Space.

Holds tags in a dict and notifies change listeners on every
write. Used by the CLI as the default tag space and by tests.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from core.clock import ClockProtocol, SystemClock
from core.exceptions import TagWriteError, UnknownTagError
from tag_space.base import TagSpace
from tag_space.models import Tag, is_compatible


logger = logging.getLogger(__name__)

ChangeListener = Callable[[Tag], None]


class InMemoryTagSpace(TagSpace):
    """
    Dict-backed tag space.

    With strict=True a value whose Python type does not match the
    tag type is rejected with TagWriteError, like a typed protocol
    variable would reject it.
    """

    def __init__(
        self,
        strict: bool = True,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._strict = strict
        self._clock = clock or SystemClock()
        self._tags: Dict[str, Tag] = {}
        self._listeners: List[ChangeListener] = []
        self._rebuild_count = 0

    @property
    def rebuild_count(self) -> int:
        """Number of times the tag set was replaced."""
        return self._rebuild_count

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _replace_tags(self, tags: List[Tag]) -> None:
        self._tags = {tag.name: tag for tag in tags}
        self._rebuild_count += 1

    def write_value(self, name: str, value: Any) -> None:
        tag = self._tags.get(name)
        if tag is None:
            raise UnknownTagError(name)

        if self._strict and value is not None and not is_compatible(tag.tag_type, value):
            raise TagWriteError(
                f"Value of type {type(value).__name__} does not fit {tag.tag_type.value} tag",
                tag_name=name,
                tag_type=tag.tag_type.value,
                value=value,
            )

        tag.value = value
        tag.updated_at = self._clock.now()
        tag.write_count += 1

        for listener in self._listeners:
            try:
                listener(tag)
            except Exception as e:
                logger.error(f"Tag listener error: {e}", exc_info=True)

    def read_value(self, name: str) -> Any:
        tag = self._tags.get(name)
        if tag is None:
            raise UnknownTagError(name)
        return tag.value

    def get_tag(self, name: str) -> Optional[Tag]:
        return self._tags.get(name)

    def tags(self) -> List[Tag]:
        return list(self._tags.values())

    def snapshot(self) -> Dict[str, Any]:
        """Current value of every tag."""
        return {name: tag.value for name, tag in self._tags.items()}
