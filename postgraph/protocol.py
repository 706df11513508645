"""
Protocol definitions for the engine's collaborators.

Defines interface contracts at two levels:
- TagIndexStore: the inverted index consumed by adjacency and graph code
- ContentStoreProtocol / MetadataParser: external storage and metadata
  extraction (filesystem locally, object storage elsewhere)
"""

from typing import Iterable, Iterator, Optional, Protocol, runtime_checkable

from .types import Item


@runtime_checkable
class TagIndexStore(Protocol):
    """
    Inverted mapping tag -> item ids.

    Implemented by:
    - TagIndex (in-memory)
    """

    def index_item(self, id: str, tags: Iterable[str]) -> None: ...

    def remove_item(self, id: str, tags: Iterable[str]) -> None: ...

    def lookup(self, tag: str) -> frozenset[str]: ...

    def rebuild(self, items: Iterable[Item]) -> None: ...

    def tags(self) -> list[str]: ...

    def ids(self) -> set[str]: ...

    def snapshot(self, include: Optional[Iterable[str]] = None) -> dict[str, list[str]]: ...


@runtime_checkable
class ContentStoreProtocol(Protocol):
    """
    Raw byte storage for content items.

    Implemented by:
    - FileContentStore (a directory of markdown files)
    - MemoryContentStore (in-process dict)
    """

    def fetch_raw(self, id: str) -> bytes:
        """Return the raw bytes of an item. Raises ItemNotFoundError."""
        ...

    def fetch_all(self) -> Iterator[tuple[str, bytes]]:
        """Yield (id, raw bytes) for every stored item."""
        ...

    def store_raw(self, id: str, data: bytes) -> None:
        """Write raw bytes for an item, replacing any previous object."""
        ...


@runtime_checkable
class MetadataParser(Protocol):
    """Extracts structured metadata from raw content bytes."""

    def __call__(self, raw: bytes): ...
