"""
Core API for the tag graph engine.

The engine owns the tag index, the item cache and the graph accumulation,
and guards all three with a single reader/writer lock:
- create_item(): validate -> index -> cache -> incremental graph update,
  atomically under the write lock
- get_related() / get_selection_adjacency() / get_graph(): ranked reads
  under the read lock, always returning fresh copies

Results cover the whole corpus. Deciding which items a given caller may
see (e.g. unpublished posts) is left to the caller.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

from .adjacency import (
    items_by_tags,
    related_items,
    selection_adjacency,
    sort_newest_first,
    tag_summary,
)
from .config import EngineConfig
from .content_store import FileContentStore
from .errors import (
    GraphUnavailableError,
    InvalidIdError,
    ItemExistsError,
    ItemNotFoundError,
    MetadataError,
    PostgraphError,
)
from .frontmatter import parse_post
from .graph import GraphBuilder
from .item_cache import ItemCache
from .logging_config import configure_ops_log
from .protocol import ContentStoreProtocol, MetadataParser
from .rwlock import ReadWriteLock
from .tag_index import TagIndex
from .tag_validator import normalize_tags, validate_tags
from .types import (
    GraphOptions,
    Item,
    NeighborRecord,
    TagGraph,
    TagSummary,
    derive_display_name,
    is_valid_id,
    normalize_id,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class TagEngine:
    """
    In-memory tag index with related-item, selection and graph queries.

    Construct, preload(), then share between threads. Use TagEngine.open()
    to get an engine that is fully loaded before anyone can query it.
    """

    def __init__(
        self,
        store: Optional[ContentStoreProtocol] = None,
        parser: MetadataParser = parse_post,
        *,
        config: Optional[EngineConfig] = None,
        cache: Optional[ItemCache] = None,
        graph_enabled: Optional[bool] = None,
    ):
        """
        Args:
            store: Content store for preload and cache re-fetch (optional)
            parser: Turns raw bytes into a ParsedPost
            config: Engine configuration (defaults apply when None)
            cache: Item cache to use instead of one built from config
            graph_enabled: Override config.graph_enabled
        """
        self._store = store
        self._parser = parser
        self._config = config

        if cache is None:
            cache = ItemCache(ttl=config.cache_ttl if config else None)
        if cache.ttl and store is None:
            raise ValueError("An expiring item cache requires a content store to re-fetch from")
        self._cache = cache

        self._lock = ReadWriteLock()
        self._index = TagIndex()
        self._ids: set[str] = set()
        # Items with no copy in the content store; never evicted
        self._unstored: dict[str, Item] = {}

        if graph_enabled is None:
            graph_enabled = config.graph_enabled if config else True
        # Graph capability is fixed for the engine's lifetime
        self._graph: Optional[GraphBuilder] = GraphBuilder(self._index) if graph_enabled else None
        # Serializes concurrent readers touching the graph cache
        self._graph_lock = threading.Lock()

        self._ops_log_handler = None

    @classmethod
    def open(cls, config: EngineConfig) -> "TagEngine":
        """Create an engine over the configured post directory and preload it."""
        store = FileContentStore(config.posts_path, max_size=config.max_post_size)
        engine = cls(store, config=config)
        engine._ops_log_handler = configure_ops_log(config.path)
        engine.preload()
        return engine

    def close(self) -> None:
        if self._ops_log_handler is not None:
            logging.getLogger("postgraph").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def __enter__(self) -> "TagEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def supports_graph(self) -> bool:
        return self._graph is not None

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _item_from_raw(self, id: str, raw: bytes) -> Item:
        """Parse and validate raw post bytes into an Item."""
        parsed = self._parser(raw)
        tags = validate_tags(parsed.tags)
        return Item(
            id=id,
            tags=tuple(tags),
            updated_at=parsed.updated_at,
            name=parsed.name or derive_display_name(id),
            content=parsed.body,
            description=parsed.description,
        )

    def _try_item_from_raw(self, entry: tuple[str, bytes]) -> Optional[Item]:
        id, raw = entry
        try:
            return self._item_from_raw(id, raw)
        except PostgraphError as e:
            logger.warning("Skipping %s: %s", id, e)
            return None

    def preload(self) -> int:
        """
        Load every post from the content store, replacing current state.

        Posts that fail to parse or validate are logged and skipped.
        Parsing runs on a bounded thread pool; the index is swapped in
        under the write lock only once everything is parsed.

        Returns:
            Number of items loaded
        """
        if self._store is None:
            raise RuntimeError("preload() requires a content store")

        workers = self._config.preload_workers if self._config else 4
        entries = list(self._store.fetch_all())
        with ThreadPoolExecutor(max_workers=workers) as pool:
            parsed = list(pool.map(self._try_item_from_raw, entries))
        items = [item for item in parsed if item is not None]

        with self._lock.write_locked():
            self._index.rebuild(items)
            self._cache.clear()
            for item in items:
                self._cache.put(item.id, item)
            self._ids = {item.id for item in items}
            self._unstored = {}
            if self._graph is not None:
                self._graph.invalidate()

        logger.info(
            "Preloaded %d items (%d skipped), %d tags",
            len(items), len(entries) - len(items), len(self._index),
        )
        return len(items)

    def rebuild_index(self) -> int:
        """Rebuild the tag index from the known items (recovery path)."""
        with self._lock.write_locked():
            items = self._corpus()
            self._index.rebuild(items)
            if self._graph is not None:
                self._graph.invalidate()
        logger.info("Rebuilt tag index: %d items, %d tags", len(items), len(self._index))
        return len(items)

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def create_item(
        self,
        raw_tags: Iterable[str],
        id: str,
        updated_at,
        name: str = "",
        content: bytes = b"",
        description: str = "",
    ) -> Item:
        """
        Validate and add a new item.

        Tags are validated before any state is touched; the index, cache
        and graph are then updated together, so readers see either none
        or all of the new item. The item is not written to the content
        store, so it is held outside the expiring cache for good.

        Args:
            raw_tags: Tags as supplied by the caller
            id: Normalized item id (see normalize_id)
            updated_at: datetime, date or timestamp string
            name: Display name (derived from id if empty)
            content: Opaque content bytes
            description: Short summary

        Returns:
            The stored Item

        Raises:
            TagValidationError: If the tags violate the taxonomy
            InvalidIdError: If the id is not normalized
            MetadataError: If updated_at cannot be parsed
            ItemExistsError: If the id is already present
        """
        tags = validate_tags(raw_tags)
        if not is_valid_id(id):
            raise InvalidIdError(
                f"Not a normalized item id: {id!r} (did you mean {normalize_id(id)!r}?)"
            )
        try:
            updated = parse_timestamp(updated_at)
        except ValueError as e:
            raise MetadataError(str(e)) from e

        item = Item(
            id=id,
            tags=tuple(tags),
            updated_at=updated,
            name=name.strip() or derive_display_name(id),
            content=content,
            description=description,
        )
        self._insert(item)
        return item

    def _insert(self, item: Item) -> None:
        """Commit a validated item; it stays pinned until the store holds it."""
        with self._lock.write_locked():
            if item.id in self._ids:
                raise ItemExistsError(f"Item already exists: {item.id}")
            self._index.index_item(item.id, item.tags)
            try:
                self._cache.put(item.id, item)
                self._unstored[item.id] = item
                self._ids.add(item.id)
                if self._graph is not None:
                    self._graph.on_item_created(item)
            except BaseException:
                self._forget(item)
                raise
        logger.info("Created %s with %d tags", item.id, len(item.tags))

    def _forget(self, item: Item) -> None:
        """Undo _insert (write lock held) so index, cache and ids stay in step."""
        self._index.remove_item(item.id, item.tags)
        self._cache.discard(item.id)
        self._unstored.pop(item.id, None)
        self._ids.discard(item.id)
        if self._graph is not None:
            self._graph.invalidate()

    def ingest(self, raw: bytes, filename: str) -> Item:
        """
        Add a post from raw bytes and an external filename.

        The id is derived from the filename. Metadata is parsed and
        validated first. The id is then claimed under the write lock, so
        of two ingests racing for one id only the winner ever writes to
        the content store. If the store write fails the item is removed
        again.

        Raises:
            ItemExistsError: If the id is already present
        """
        id = normalize_id(filename)
        item = self._item_from_raw(id, raw)
        self._insert(item)
        if self._store is None:
            return item
        try:
            self._store.store_raw(id, raw)
        except BaseException:
            with self._lock.write_locked():
                self._forget(item)
            logger.warning("Store write failed for %s, removed", id)
            raise
        with self._lock.write_locked():
            self._unstored.pop(id, None)
        return item

    # -------------------------------------------------------------------------
    # Read Operations (callers hold the read lock)
    # -------------------------------------------------------------------------

    def _resolve(self, id: str) -> Optional[Item]:
        """Item for a known id, re-fetching on a cache miss."""
        if id not in self._ids:
            return None
        item = self._cache.get(id)
        if item is not None:
            return item
        item = self._unstored.get(id)
        if item is not None:
            return item
        assert self._store is not None, f"{id} is indexed but missing from the cache"
        logger.debug("Cache miss, re-fetching %s", id)
        item = self._item_from_raw(id, self._store.fetch_raw(id))
        self._cache.put(id, item)
        return item

    def _corpus(self) -> list[Item]:
        return [self._resolve(id) for id in sorted(self._ids)]

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_item(self, id: str) -> Item:
        """
        Raises:
            ItemNotFoundError: If the id is unknown
        """
        with self._lock.read_locked():
            item = self._resolve(id)
        if item is None:
            raise ItemNotFoundError(id)
        return item

    def list_items(self) -> list[Item]:
        """All items, newest first."""
        with self._lock.read_locked():
            return sort_newest_first(self._corpus())

    def get_related(
        self,
        id: str,
        include_tags: Optional[Iterable[str]] = None,
        min_shared: int = 1,
        limit: Optional[int] = None,
    ) -> list[NeighborRecord]:
        """
        Items sharing tags with ``id``, strongest first.

        Raises:
            ItemNotFoundError: If the id is unknown
        """
        if limit is None:
            limit = self._config.related_limit if self._config else 0
        include = normalize_tags(include_tags or ())
        with self._lock.read_locked():
            return related_items(
                self._index, self._resolve, id,
                include_tags=include, min_shared=min_shared, limit=limit,
            )

    def get_selection_adjacency(
        self,
        selected_tags: Iterable[str],
        limit: int = 0,
    ) -> list[NeighborRecord]:
        """Items matching any selected tag, most matches first."""
        selected = normalize_tags(selected_tags)
        with self._lock.read_locked():
            return selection_adjacency(selected, self._corpus(), limit=limit)

    def find_by_tags(self, tags: Iterable[str], match_all: bool = False) -> list[Item]:
        """Items carrying any (or, with match_all, every) one of ``tags``."""
        with self._lock.read_locked():
            return items_by_tags(tags, self._corpus(), match_all=match_all)

    def tag_summary(self, selected: Iterable[str] = ()) -> TagSummary:
        with self._lock.read_locked():
            return tag_summary(self._corpus(), normalize_tags(selected))

    def default_graph_options(self) -> GraphOptions:
        if self._config is None:
            return GraphOptions()
        return GraphOptions(
            min_shared_tags=self._config.graph.min_shared_tags,
            max_edges=self._config.graph.max_edges,
        )

    def get_graph(self, options: Optional[GraphOptions] = None) -> TagGraph:
        """
        Snapshot of the item graph for ``options``.

        Raises:
            GraphUnavailableError: If the engine was built without graph support
        """
        if self._graph is None:
            raise GraphUnavailableError("Graph support is disabled for this engine")
        if options is None:
            options = self.default_graph_options()
        with self._lock.read_locked():
            corpus = self._corpus()
            with self._graph_lock:
                return self._graph.build(options, corpus)

    def stats(self) -> dict:
        with self._lock.read_locked():
            stats = {
                "items": len(self._ids),
                "tags": len(self._index),
                "cached_items": len(self._cache),
                "unstored_items": len(self._unstored),
                "graph_enabled": self._graph is not None,
            }
            if self._graph is not None:
                with self._graph_lock:
                    stats["graph_cached"] = self._graph.cached_options is not None
                    stats["graph_pair_updates"] = self._graph.pair_updates
        return stats
