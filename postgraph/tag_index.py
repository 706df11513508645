"""
In-memory inverted tag index.

The index is derived data: for every item and every one of its tags, the
item id is a member of that tag's set, and nothing else is. It can always
be rebuilt from a full scan of the corpus.

The index does no locking of its own; the engine guards it with its
reader/writer lock.
"""

from typing import Iterable, Optional

from .types import Item


class TagIndex:
    """Mapping tag -> set of item ids."""

    def __init__(self, items: Optional[Iterable[Item]] = None):
        self._index: dict[str, set[str]] = {}
        if items is not None:
            self.rebuild(items)

    def index_item(self, id: str, tags: Iterable[str]) -> None:
        """Add ``id`` under each of ``tags``.

        Re-indexing an id with a different tag set requires removing the
        stale tags first with remove_item().
        """
        for tag in tags:
            self._index.setdefault(tag, set()).add(id)

    def remove_item(self, id: str, tags: Iterable[str]) -> None:
        """Remove ``id`` from each of ``tags``, dropping tags left empty."""
        for tag in tags:
            members = self._index.get(tag)
            if members is None:
                continue
            members.discard(id)
            if not members:
                del self._index[tag]

    def lookup(self, tag: str) -> frozenset[str]:
        """Ids carrying ``tag`` (empty if the tag is unknown)."""
        return frozenset(self._index.get(tag, ()))

    def rebuild(self, items: Iterable[Item]) -> None:
        """Clear and repopulate from a full scan."""
        self._index = {}
        for item in items:
            self.index_item(item.id, item.tags)

    def tags(self) -> list[str]:
        return sorted(self._index)

    def ids(self) -> set[str]:
        """Every id present under at least one tag."""
        result: set[str] = set()
        for members in self._index.values():
            result.update(members)
        return result

    def counts(self) -> dict[str, int]:
        return {tag: len(members) for tag, members in sorted(self._index.items())}

    def snapshot(self, include: Optional[Iterable[str]] = None) -> dict[str, list[str]]:
        """Copy of the index as tag -> sorted ids, ordered by tag.

        If ``include`` is non-empty only those tags are kept.
        """
        allowed = set(include) if include else None
        return {
            tag: sorted(members)
            for tag, members in sorted(self._index.items())
            if allowed is None or tag in allowed
        }

    def __contains__(self, tag: object) -> bool:
        return tag in self._index

    def __len__(self) -> int:
        return len(self._index)
