"""
Concurrency tests for TagEngine and the reader/writer lock.

Writers create items while readers query related items, selections and
the graph. Readers must never observe a half-created item: every id they
see resolves, and every returned record is internally consistent.
"""

import threading
import time

import pytest

from postgraph.api import TagEngine
from postgraph.content_store import MemoryContentStore
from postgraph.errors import ItemExistsError
from postgraph.frontmatter import parse_post
from postgraph.item_cache import ItemCache
from postgraph.rwlock import ReadWriteLock
from postgraph.types import GraphOptions

from tests.conftest import SEED_POSTS, FakeClock, make_post

THEMES = ["theme/kubernetes", "theme/cloud-architecture", "theme/cost-optimization"]


def _writer(engine: TagEngine, worker_id: int, count: int, errors: list):
    for i in range(count):
        tags = ["type/note", THEMES[(worker_id + i) % len(THEMES)]]
        try:
            engine.create_item(tags, f"w{worker_id}-{i}.md", f"2024-06-{i % 28 + 1:02d}")
        except Exception as e:
            errors.append(f"writer {worker_id}: {e!r}")


def _reader(engine: TagEngine, iterations: int, errors: list):
    for _ in range(iterations):
        try:
            for record in engine.get_related("delta.md"):
                if record.weight != len(record.shared_tags):
                    errors.append(f"inconsistent weight for {record.id}")
                engine.get_item(record.id)
            engine.get_selection_adjacency(THEMES[:2])
            graph = engine.get_graph()
            ids = {item.id for item in graph.items}
            for edge in graph.edges:
                if edge.source not in ids or edge.target not in ids:
                    errors.append(f"edge to unknown item {edge.source}-{edge.target}")
        except Exception as e:
            errors.append(f"reader: {e!r}")


def _run(threads):
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
        assert not t.is_alive(), "thread did not finish"


class SlowStore(MemoryContentStore):
    """Holds each write open long enough for a second ingest to arrive."""

    def store_raw(self, id: str, data: bytes) -> None:
        time.sleep(0.1)
        super().store_raw(id, data)


class TestEngineConcurrency:

    def test_writers_and_readers(self, engine):
        errors: list = []
        writers = [threading.Thread(target=_writer, args=(engine, w, 25, errors)) for w in range(4)]
        readers = [threading.Thread(target=_reader, args=(engine, 20, errors)) for _ in range(4)]
        _run(writers + readers)

        assert errors == []
        assert len(engine.list_items()) == len(SEED_POSTS) + 100

    def test_graph_after_concurrent_writes_matches_rebuild(self, engine):
        """Incremental updates racing with reads end up equal to a fresh graph."""
        engine.get_graph()
        errors: list = []
        writers = [threading.Thread(target=_writer, args=(engine, w, 10, errors)) for w in range(3)]
        readers = [threading.Thread(target=_reader, args=(engine, 10, errors)) for _ in range(2)]
        _run(writers + readers)
        assert errors == []

        incremental = engine.get_graph(GraphOptions())
        engine.rebuild_index()
        fresh = engine.get_graph(GraphOptions())
        assert incremental.edges == fresh.edges

    def test_same_id_created_once(self, engine):
        successes = []
        failures = []
        barrier = threading.Barrier(8)

        def create():
            barrier.wait()
            try:
                successes.append(engine.create_item(["type/note", "theme/x"], "race.md", "2024-06-01"))
            except ItemExistsError:
                failures.append(1)

        _run([threading.Thread(target=create) for _ in range(8)])
        assert len(successes) == 1
        assert len(failures) == 7

    def test_racing_ingests_keep_store_and_index_in_step(self):
        """Only the ingest that claims the id writes to the store."""
        clock = FakeClock()
        store = SlowStore()
        engine = TagEngine(store, cache=ItemCache(ttl=10, clock=clock))
        engine.get_graph()
        winners = []
        failures = []
        barrier = threading.Barrier(2)

        def ingest(theme):
            raw = make_post("2024-06-01", ["type/note", theme])
            barrier.wait()
            try:
                winners.append(engine.ingest(raw, "same.md"))
            except ItemExistsError:
                failures.append(theme)

        _run([threading.Thread(target=ingest, args=(theme,)) for theme in THEMES[:2]])
        assert len(winners) == 1
        assert len(failures) == 1
        winner = winners[0]
        assert parse_post(store.fetch_raw("same.md")).tags == list(winner.tags)

        clock.now = 11.0
        assert engine.get_item("same.md").tags == winner.tags
        index = engine.get_graph().tag_index
        assert index[winner.tags[1]] == ["same.md"]
        assert failures[0] not in index


class TestReadWriteLock:

    def test_readers_share(self):
        lock = ReadWriteLock()
        inside = threading.Barrier(3, timeout=5)
        broken = []

        def read():
            with lock.read_locked():
                # all three readers must be inside at once
                try:
                    inside.wait()
                except threading.BrokenBarrierError:
                    broken.append(1)

        _run([threading.Thread(target=read) for _ in range(3)])
        assert broken == []

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events = []
        lock.acquire_write()

        def read():
            with lock.read_locked():
                events.append("read")

        t = threading.Thread(target=read)
        t.start()
        time.sleep(0.05)
        assert events == []
        events.append("write-done")
        lock.release_write()
        t.join(timeout=5)
        assert events == ["write-done", "read"]

    def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        events = []
        lock.acquire_read()

        def write():
            with lock.write_locked():
                events.append("write")

        def read():
            with lock.read_locked():
                events.append("read")

        writer = threading.Thread(target=write)
        writer.start()
        time.sleep(0.05)
        reader = threading.Thread(target=read)
        reader.start()
        time.sleep(0.05)
        assert events == []

        lock.release_read()
        writer.join(timeout=5)
        reader.join(timeout=5)
        assert events == ["write", "read"]

    def test_release_without_acquire(self):
        lock = ReadWriteLock()
        with pytest.raises(AssertionError):
            lock.release_read()
        with pytest.raises(AssertionError):
            lock.release_write()
