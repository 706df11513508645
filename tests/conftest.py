"""
Shared pytest fixtures for postgraph tests.

Provides a small seeded corpus (alpha/beta/gamma/delta) used across the
ranking and graph tests, plus helpers to build raw posts.
"""

from datetime import datetime, timezone

import pytest

from postgraph.api import TagEngine
from postgraph.content_store import MemoryContentStore
from postgraph.types import Item, derive_display_name


SEED_POSTS = [
    ("alpha.md", "2024-01-01", ["type/note", "theme/kubernetes", "source/book"]),
    ("beta.md", "2024-02-01", ["type/note", "theme/kubernetes", "theme/cost-optimization", "source/article"]),
    ("gamma.md", "2024-03-01", ["type/note", "theme/cloud-architecture", "source/book"]),
    ("delta.md", "2024-04-01", ["type/note", "theme/kubernetes", "theme/cloud-architecture", "source/paper"]),
]


def make_item(id: str, updated: str, tags: list[str], name: str | None = None) -> Item:
    """Build an Item directly (no validation)."""
    return Item(
        id=id,
        tags=tuple(tags),
        updated_at=datetime.fromisoformat(updated).replace(tzinfo=timezone.utc),
        name=name or derive_display_name(id),
    )


def make_post(
    updated: str,
    tags: list[str],
    name: str = "",
    body: str = "Body text.\n",
    description: str = "A short summary.",
) -> bytes:
    """Build raw markdown with YAML front matter."""
    lines = ["---"]
    if name:
        lines.append(f"name: {name}")
    lines.append(f"updated: {updated}")
    if description:
        lines.append(f"description: {description}")
    lines.append("tags:")
    lines.extend(f"  - {tag}" for tag in tags)
    lines.append("---")
    lines.append("")
    return ("\n".join(lines) + "\n" + body).encode("utf-8")


class FakeClock:
    """Settable monotonic clock for cache expiry tests."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def seed_items() -> list[Item]:
    return [make_item(id, updated, tags) for id, updated, tags in SEED_POSTS]


@pytest.fixture
def engine() -> TagEngine:
    """Engine without a content store, seeded through create_item()."""
    eng = TagEngine()
    for id, updated, tags in SEED_POSTS:
        eng.create_item(tags, id, updated)
    return eng


@pytest.fixture
def memory_store() -> MemoryContentStore:
    """Content store holding the seed corpus as raw posts."""
    return MemoryContentStore({
        id: make_post(updated, tags) for id, updated, tags in SEED_POSTS
    })


@pytest.fixture
def loaded_engine(memory_store) -> TagEngine:
    """Engine preloaded from the seed content store."""
    eng = TagEngine(memory_store)
    eng.preload()
    return eng
