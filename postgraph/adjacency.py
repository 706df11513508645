"""
Tag adjacency ranking.

Two rankings built on the tag index:
- related_items(): neighbours of one item, weighted by shared tags
- selection_adjacency(): items matching a tag selection, weighted by
  how many selected tags they carry

Both rank by weight descending, then most recently updated, then id, so
the order is total and repeatable. Everything here is read-only.
"""

from collections import Counter
from typing import Callable, Iterable, Optional

from .errors import ItemNotFoundError
from .protocol import TagIndexStore
from .types import Item, NeighborRecord, TagSummary

# Maximum number of suggested co-occurring tags in a summary
MAX_SUGGESTED_TAGS = 15

ItemResolver = Callable[[str], Optional[Item]]


def _rank_key(record: NeighborRecord):
    return (-record.weight, -record.updated_at.timestamp(), record.id)


def _rank(records: list[NeighborRecord], limit: int) -> list[NeighborRecord]:
    records.sort(key=_rank_key)
    if limit > 0:
        del records[limit:]
    return records


def related_items(
    index: TagIndexStore,
    resolve: ItemResolver,
    id: str,
    include_tags: Optional[Iterable[str]] = None,
    min_shared: int = 1,
    limit: int = 0,
) -> list[NeighborRecord]:
    """
    Rank the items sharing tags with ``id``.

    Args:
        index: Tag index to find candidates with
        resolve: Returns the Item for an id, or None if unknown
        id: Pivot item
        include_tags: If non-empty, only these tags count as shared
        min_shared: Minimum number of shared tags for a neighbour
        limit: Maximum results (<= 0 means unlimited)

    Raises:
        ItemNotFoundError: If ``id`` is not a known item
    """
    base = resolve(id)
    if base is None:
        raise ItemNotFoundError(id)

    allowed = frozenset(include_tags or ())
    base_tags = base.tag_set
    if allowed:
        base_tags &= allowed

    candidates: set[str] = set()
    for tag in base_tags:
        candidates |= index.lookup(tag)
    candidates.discard(id)

    neighbors = []
    for other_id in candidates:
        other = resolve(other_id)
        assert other is not None, f"{other_id} is indexed but cannot be resolved"
        shared = base_tags & other.tag_set
        if len(shared) < min_shared:
            continue
        neighbors.append(NeighborRecord(
            id=other.id,
            name=other.name,
            weight=len(shared),
            shared_tags=tuple(sorted(shared)),
            updated_at=other.updated_at,
        ))
    return _rank(neighbors, limit)


def selection_adjacency(
    selected: Iterable[str],
    corpus: Iterable[Item],
    limit: int = 0,
) -> list[NeighborRecord]:
    """
    Rank the items matching at least one selected tag.

    Weight is the number of distinct selected tags an item carries.
    An empty selection has nothing to be adjacent to and yields [].
    """
    selected_set = frozenset(selected)
    if not selected_set:
        return []

    entries = []
    for item in corpus:
        matched = selected_set & item.tag_set
        if not matched:
            continue
        entries.append(NeighborRecord(
            id=item.id,
            name=item.name,
            weight=len(matched),
            shared_tags=tuple(sorted(matched)),
            updated_at=item.updated_at,
        ))
    return _rank(entries, limit)


def parse_tag_list(raw: str) -> list[str]:
    """Split a comma-separated tag query into trimmed, non-empty tags."""
    if not raw or not raw.strip():
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def items_by_tags(
    tags: Iterable[str],
    corpus: Iterable[Item],
    match_all: bool = False,
) -> list[Item]:
    """
    Filter items by tags with ANY (default) or ALL semantics.

    Results are newest first, then by id.

    Raises:
        ValueError: If no usable tags are given
    """
    wanted: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in wanted:
            wanted.append(tag)
    if not wanted:
        raise ValueError("No tags provided")

    wanted_set = frozenset(wanted)
    if match_all:
        result = [item for item in corpus if wanted_set <= item.tag_set]
    else:
        result = [item for item in corpus if wanted_set & item.tag_set]
    return sort_newest_first(result)


def sort_newest_first(items: Iterable[Item]) -> list[Item]:
    return sorted(items, key=lambda item: (-item.updated_at.timestamp(), item.id))


def tag_summary(corpus: Iterable[Item], selected: Iterable[str] = ()) -> TagSummary:
    """
    Tag frequencies over the corpus and tags suggested for a selection.

    Suggested tags are those appearing on items that carry ALL selected
    tags (excluding the selected tags themselves), most frequent first.
    """
    items = list(corpus)
    selected_set = frozenset(selected)

    counts: Counter[str] = Counter()
    suggested_counts: Counter[str] = Counter()
    for item in items:
        counts.update(item.tag_set)
        if selected_set and selected_set <= item.tag_set:
            suggested_counts.update(item.tag_set - selected_set)

    def by_count(counter: Counter) -> list[str]:
        return sorted(counter, key=lambda tag: (-counter[tag], tag))

    return TagSummary(
        counts=dict(sorted(counts.items())),
        order=by_count(counts),
        suggested=by_count(suggested_counts)[:MAX_SUGGESTED_TAGS],
    )
