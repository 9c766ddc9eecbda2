"""
Base Tag Space - Abstract interface for the external tag space.

The replay engine only needs two operations from a tag space:
- ensure_tags_from_sample(sample_row): (re)build the tag set
- write_value(name, value): push one value

Implementations map these onto their protocol (an OPC UA address
space, a Modbus register map, an in-memory dict for tests).
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Mapping

from tag_space.models import Tag, TagSchema, build_tags


logger = logging.getLogger(__name__)


class TagSpace(ABC):
    """
    Abstract base class for tag spaces.

    Each implementation must:
    1. Implement _replace_tags() - drop every tag, create the new set
    2. Implement write_value() - raising UnknownTagError / TagWriteError
    3. Implement read_value() and tags()
    """

    def ensure_tags_from_sample(self, sample_row: Mapping[str, Any]) -> TagSchema:
        """
        Infer one tag per column and replace any prior schema.

        Idempotent: the same sample always yields the same tag set.

        Returns:
            The bound schema
        """
        schema = TagSchema.infer(sample_row)
        self._replace_tags(build_tags(sample_row, schema))
        logger.info(f"Tag schema bound: {len(schema)} tags {schema.to_dict()}")
        return schema

    @abstractmethod
    def _replace_tags(self, tags: List[Tag]) -> None:
        pass

    @abstractmethod
    def write_value(self, name: str, value: Any) -> None:
        """
        Push a value to a tag.

        Raises:
            UnknownTagError: If the tag does not exist
            TagWriteError: If the value does not fit the tag type
        """
        pass

    @abstractmethod
    def read_value(self, name: str) -> Any:
        pass

    @abstractmethod
    def tags(self) -> List[Tag]:
        pass
