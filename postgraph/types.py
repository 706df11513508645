"""
Data types for the tag graph.
"""

import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from pathlib import PurePosixPath


ID_EXTENSION = ".md"
DEFAULT_ID_TOKEN = "untitled"

# Normalized ids: lowercase kebab-case with the .md marker
_ID_RE = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*\.md$')
_ID_SEPARATOR_RE = re.compile(r'[^a-z0-9]+')

# Accepted timestamp layouts, tried in order after ISO 8601 / RFC 3339
_TIMESTAMP_LAYOUTS = ("%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%d")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> datetime:
    """Parse a timestamp to a timezone-aware UTC datetime.

    Accepts datetime and date objects (YAML front matter yields both) as
    well as strings in RFC 3339 or one of the short layouts
    (``2024-01-15T10:30``, ``2024-01-15 10:30``, ``2024-01-15``).
    Naive values are taken to be UTC.

    Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise ValueError("Empty timestamp")
        dt = None
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            for layout in _TIMESTAMP_LAYOUTS:
                try:
                    dt = datetime.strptime(raw, layout)
                    break
                except ValueError:
                    continue
        if dt is None:
            raise ValueError(f"Unrecognized timestamp: {value!r}")
    else:
        raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_id(filename: str) -> str:
    """Derive a normalized item id from an external filename.

    Keeps only the base name, drops a trailing ``.md``, lowercases, and
    collapses every run of characters outside ``[a-z0-9]`` into a single
    hyphen. Falls back to ``untitled`` when nothing survives.

        >>> normalize_id("Some_Path/Deep/My File.md")
        'my-file.md'
    """
    base = PurePosixPath(filename.replace("\\", "/")).name
    if base.lower().endswith(ID_EXTENSION):
        base = base[:-len(ID_EXTENSION)]
    slug = _ID_SEPARATOR_RE.sub("-", base.lower()).strip("-")
    if not slug:
        slug = DEFAULT_ID_TOKEN
    return slug + ID_EXTENSION


def is_valid_id(id: str) -> bool:
    """Check if an id is already in normalized form."""
    return bool(_ID_RE.match(id))


def derive_display_name(id: str) -> str:
    """Build a Title Case display name from an id.

    ``my-first-post.md`` becomes ``My First Post``.
    """
    if not id:
        return ""
    base = id[:-len(ID_EXTENSION)] if id.endswith(ID_EXTENSION) else id
    parts = [p[:1].upper() + p[1:] for p in base.split("-")]
    return " ".join(parts)


def _iso(dt: datetime) -> str:
    return dt.isoformat()


@dataclass(frozen=True)
class Item:
    """
    A tagged content item (post).

    Items are created once and never modified. Tags are already validated
    and de-duplicated; their order is the order of first occurrence and
    carries no meaning.

    Attributes:
        id: Normalized identifier (e.g. ``my-post.md``)
        tags: Validated ``family/value`` tags
        updated_at: Timezone-aware UTC timestamp used for ranking
        name: Display name
        content: Opaque content bytes, never inspected
        description: Short summary from metadata, if any
    """
    id: str
    tags: tuple[str, ...]
    updated_at: datetime
    name: str = ""
    content: bytes = field(default=b"", repr=False)
    description: str = ""

    @property
    def tag_set(self) -> frozenset[str]:
        return frozenset(self.tags)

    def to_dict(self) -> dict:
        """Serialize metadata to a JSON-ready dict (content is omitted)."""
        return {
            "id": self.id,
            "name": self.name,
            "tags": list(self.tags),
            "updated_at": _iso(self.updated_at),
            "description": self.description,
        }

    def __str__(self) -> str:
        return f"{self.id} [{', '.join(self.tags)}]"


@dataclass(frozen=True)
class NeighborRecord:
    """A ranked neighbour of an item or of a tag selection."""
    id: str
    name: str
    weight: int
    shared_tags: tuple[str, ...]
    updated_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "weight": self.weight,
            "shared_tags": list(self.shared_tags),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class GraphEdge:
    """Undirected edge between two items, canonicalized so source < target."""
    source: str
    target: str
    shared_tags: tuple[str, ...]

    def __post_init__(self):
        assert self.source < self.target, f"non-canonical edge {self.source}-{self.target}"

    @property
    def weight(self) -> int:
        return len(self.shared_tags)

    def to_dict(self) -> dict:
        return {
            "from": self.source,
            "to": self.target,
            "shared_tags": list(self.shared_tags),
            "weight": self.weight,
        }


@dataclass(frozen=True)
class GraphOptions:
    """
    Options controlling graph construction.

    Attributes:
        min_shared_tags: Minimum shared tags for an edge (at least 1)
        include_tags: Tags eligible for edges; empty means all tags
        max_edges: Cap on returned edges; 0 means unlimited
    """
    min_shared_tags: int = 1
    include_tags: frozenset[str] = frozenset()
    max_edges: int = 0

    def __post_init__(self):
        # Accept any iterable so callers can pass lists
        if not isinstance(self.include_tags, frozenset):
            object.__setattr__(self, "include_tags", frozenset(self.include_tags))

    def normalized(self) -> "GraphOptions":
        return GraphOptions(
            min_shared_tags=max(1, self.min_shared_tags),
            include_tags=self.include_tags,
            max_edges=max(0, self.max_edges),
        )

    def allows(self, tag: str) -> bool:
        """Check if a tag is eligible to contribute edges."""
        return not self.include_tags or tag in self.include_tags


@dataclass
class TagGraph:
    """Snapshot of the item graph: items, ranked edges and the tag index used."""
    items: list[Item] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    tag_index: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize to JSON-ready dict."""
        return {
            "items": [item.to_dict() for item in self.items],
            "edges": [edge.to_dict() for edge in self.edges],
            "tag_index": {tag: list(ids) for tag, ids in self.tag_index.items()},
        }


@dataclass
class TagSummary:
    """Tag frequencies over a corpus plus tags suggested for a selection."""
    counts: dict[str, int] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)
    suggested: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)
