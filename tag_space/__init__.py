"""
Tag Space Package.

Typed external tags mirrored from replayed rows.

Modules:
- models: TagType, Tag, TagSchema, inference and safe defaults
- base: TagSpace interface
- memory: dict-backed TagSpace
- synchronizer: writes forwarded payloads under a fixed schema
"""

from tag_space.base import TagSpace
from tag_space.memory import InMemoryTagSpace
from tag_space.models import Tag, TagSchema, TagType, infer_tag_type
from tag_space.synchronizer import SyncResult, TagSynchronizer

__all__ = [
    "TagSpace",
    "InMemoryTagSpace",
    "Tag",
    "TagSchema",
    "TagType",
    "infer_tag_type",
    "SyncResult",
    "TagSynchronizer",
]
