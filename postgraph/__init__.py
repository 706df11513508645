"""
Postgraph

An in-memory tag index over a corpus of posts, answering "what is related
to this post", "what matches these tags" and "show me the whole graph".

Quick Start:
    from postgraph import TagEngine, MemoryContentStore

    engine = TagEngine(MemoryContentStore())
    engine.create_item(["type/note", "theme/kubernetes"], "k8s-notes.md", "2024-01-01")
    engine.get_related("k8s-notes.md")
    engine.get_graph()

CLI Usage:
    postgraph add notes/*.md
    postgraph related k8s-notes.md --limit 5
    postgraph select theme/kubernetes theme/cloud-architecture
    postgraph graph --min-shared 2 --json

Default Store:
    ~/.postgraph/ (posts in ~/.postgraph/posts/).
    Override with POSTGRAPH_STORE_PATH or --store.

Environment Variables:
    POSTGRAPH_STORE_PATH  - Override default store location
    POSTGRAPH_VERBOSE     - Set to 1 for debug logging
"""

from .api import TagEngine
from .config import EngineConfig, load_or_create_config
from .content_store import FileContentStore, MemoryContentStore
from .errors import (
    CardinalityError,
    GraphUnavailableError,
    InvalidIdError,
    ItemExistsError,
    ItemNotFoundError,
    MalformedTagError,
    MetadataError,
    PostgraphError,
    TagValidationError,
    UnknownFamilyError,
)
from .tag_validator import TAG_FAMILIES, validate_tags
from .types import (
    GraphEdge,
    GraphOptions,
    Item,
    NeighborRecord,
    TagGraph,
    TagSummary,
    normalize_id,
)

__version__ = "0.1.0"
__all__ = [
    "TagEngine",
    "EngineConfig",
    "load_or_create_config",
    "FileContentStore",
    "MemoryContentStore",
    "Item",
    "NeighborRecord",
    "GraphEdge",
    "GraphOptions",
    "TagGraph",
    "TagSummary",
    "TAG_FAMILIES",
    "normalize_id",
    "validate_tags",
    "PostgraphError",
    "TagValidationError",
    "MalformedTagError",
    "UnknownFamilyError",
    "CardinalityError",
    "InvalidIdError",
    "ItemExistsError",
    "ItemNotFoundError",
    "MetadataError",
    "GraphUnavailableError",
]
