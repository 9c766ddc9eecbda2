"""
Tag Space - Models.

============================================================
RESPONSIBILITY
============================================================
Defines the typed tag schema bound once per playback session.

- TagType: the closed set of tag value types
- Tag: one named, typed value
- TagSchema: column -> TagType, inferred from a sample row
- Safe defaults for null values per type

============================================================
TYPE INFERENCE
============================================================
bool                    -> BOOLEAN
int / float / Decimal   -> NUMBER
datetime / date         -> TIMESTAMP
anything else, or None  -> STRING ("" for None)

bool is checked before numbers: it is an int subclass.

============================================================
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from numbers import Real
from typing import Any, Dict, Iterator, List, Mapping, Optional

from core.clock import ClockProtocol


# ============================================================
# TAG TYPE
# ============================================================

class TagType(str, Enum):
    """Value type of a tag, fixed for the session."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (Real, Decimal))


def infer_tag_type(value: Any) -> TagType:
    """Infer the tag type of a sample value."""
    if isinstance(value, bool):
        return TagType.BOOLEAN
    if _is_number(value):
        return TagType.NUMBER
    if isinstance(value, (datetime, date)):
        return TagType.TIMESTAMP
    return TagType.STRING


def is_compatible(tag_type: TagType, value: Any) -> bool:
    """Whether a non-null value may be written to a tag of this type."""
    if tag_type == TagType.BOOLEAN:
        return isinstance(value, bool)
    if tag_type == TagType.NUMBER:
        return _is_number(value)
    if tag_type == TagType.TIMESTAMP:
        return isinstance(value, (datetime, date))
    return isinstance(value, str)


def default_value(tag_type: TagType, clock: ClockProtocol) -> Any:
    """Safe stand-in for a null value."""
    if tag_type == TagType.NUMBER:
        return 0
    if tag_type == TagType.BOOLEAN:
        return False
    if tag_type == TagType.TIMESTAMP:
        return clock.now()
    return ""


# ============================================================
# TAG
# ============================================================

@dataclass
class Tag:
    """A named, typed, externally observable value."""
    name: str
    tag_type: TagType
    value: Any = None
    updated_at: Optional[datetime] = None
    write_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        value = self.value
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        return {
            "name": self.name,
            "type": self.tag_type.value,
            "value": value,
            "write_count": self.write_count,
        }


# ============================================================
# TAG SCHEMA
# ============================================================

@dataclass(frozen=True)
class TagSchema:
    """Column name -> tag type, in column order."""
    types: Mapping[str, TagType] = field(default_factory=dict)

    @classmethod
    def infer(cls, sample_row: Mapping[str, Any]) -> "TagSchema":
        return cls(types={name: infer_tag_type(v) for name, v in sample_row.items()})

    def get(self, name: str) -> Optional[TagType]:
        return self.types.get(name)

    @property
    def names(self) -> List[str]:
        return list(self.types)

    def __contains__(self, name: object) -> bool:
        return name in self.types

    def __iter__(self) -> Iterator[str]:
        return iter(self.types)

    def __len__(self) -> int:
        return len(self.types)

    def to_dict(self) -> Dict[str, str]:
        return {name: t.value for name, t in self.types.items()}


def build_tags(sample_row: Mapping[str, Any], schema: TagSchema) -> List[Tag]:
    """Initial tags for a schema, seeded from the sample row."""
    tags = []
    for name, tag_type in schema.types.items():
        value = sample_row.get(name)
        if value is None:
            value = "" if tag_type == TagType.STRING else None
        tags.append(Tag(name=name, tag_type=tag_type, value=value))
    return tags


__all__ = [
    "TagType",
    "Tag",
    "TagSchema",
    "infer_tag_type",
    "is_compatible",
    "default_value",
    "build_tags",
]
