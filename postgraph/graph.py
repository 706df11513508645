"""
Item co-occurrence graph keyed by shared tags.

Building the graph has two stages:

1. Accumulation: for every eligible tag, every unordered pair of items
   carrying it gets the tag appended to its shared-tag set. A tag on k
   items costs k*(k-1)/2 pair updates.
2. Projection: edges below the minimum shared-tag count are dropped, the
   rest sorted (weight desc, then endpoints asc) and optionally capped.

The accumulation is cached together with the options it was built for.
A later build with equal options only re-runs the projection. New items
are folded into the cached accumulation incrementally, so creating an
item costs O(tags of the item x members per tag) instead of a rebuild.

The cache holds a single option set: a build with different options
discards it and accumulates from scratch.
"""

import logging
from itertools import combinations
from typing import Iterable, Optional

from .protocol import TagIndexStore
from .types import GraphEdge, GraphOptions, Item, TagGraph

logger = logging.getLogger(__name__)

EdgeKey = tuple[str, str]


def _edge_key(a: str, b: str) -> EdgeKey:
    return (a, b) if a < b else (b, a)


class GraphBuilder:
    """Builds TagGraph snapshots from a tag index, caching the accumulation."""

    def __init__(self, index: TagIndexStore):
        self._index = index
        self._edges: Optional[dict[EdgeKey, set[str]]] = None
        self._options: Optional[GraphOptions] = None
        self.pair_updates = 0  # pairwise accumulation steps performed

    @property
    def cached_options(self) -> Optional[GraphOptions]:
        return self._options

    def invalidate(self) -> None:
        """Drop the cached accumulation (e.g. after an index rebuild)."""
        self._edges = None
        self._options = None

    def _add_pair(self, a: str, b: str, tag: str) -> None:
        assert a != b, f"self edge on {a}"
        self._edges.setdefault(_edge_key(a, b), set()).add(tag)
        self.pair_updates += 1

    def _accumulate(self, options: GraphOptions) -> None:
        self._edges = {}
        self._options = options
        for tag in self._index.tags():
            if not options.allows(tag):
                continue
            members = sorted(self._index.lookup(tag))
            for a, b in combinations(members, 2):
                self._add_pair(a, b, tag)
        logger.debug(
            "Graph accumulated: %d candidate edges, %d pair updates",
            len(self._edges), self.pair_updates,
        )

    def build(self, options: GraphOptions, items: Iterable[Item]) -> TagGraph:
        """
        Produce a graph snapshot for ``options``.

        Args:
            options: Graph options (normalized before use)
            items: The corpus items to attach to the snapshot
        """
        options = options.normalized()
        if self._edges is None or options != self._options:
            self._accumulate(options)
        else:
            logger.debug("Graph cache hit: %d candidate edges", len(self._edges))

        edges = [
            GraphEdge(source=a, target=b, shared_tags=tuple(sorted(shared)))
            for (a, b), shared in self._edges.items()
            if len(shared) >= options.min_shared_tags
        ]
        edges.sort(key=lambda e: (-e.weight, e.source, e.target))
        if options.max_edges > 0:
            del edges[options.max_edges:]

        ordered = sorted(items, key=lambda item: (-item.updated_at.timestamp(), item.id))
        return TagGraph(
            items=ordered,
            edges=edges,
            tag_index=self._index.snapshot(options.include_tags),
        )

    def on_item_created(self, item: Item) -> None:
        """
        Fold a newly indexed item into the cached accumulation.

        Only tags eligible under the cached options contribute. The
        projection is not re-run here; the next build() does that.
        Does nothing when no accumulation is cached.
        """
        if self._edges is None:
            return
        before = self.pair_updates
        for tag in item.tags:
            if not self._options.allows(tag):
                continue
            for other in self._index.lookup(tag):
                if other != item.id:
                    self._add_pair(item.id, other, tag)
        logger.debug(
            "Graph updated for %s: %d pair updates", item.id, self.pair_updates - before,
        )
