"""Tests for the file and in-memory content stores."""

import os

import pytest

from postgraph.content_store import FileContentStore, MemoryContentStore
from postgraph.errors import InvalidIdError, ItemNotFoundError
from postgraph.protocol import ContentStoreProtocol


class TestFileContentStore:

    def test_store_and_fetch(self, tmp_path):
        store = FileContentStore(tmp_path / "posts")
        store.store_raw("a.md", b"hello")
        assert store.fetch_raw("a.md") == b"hello"
        assert (tmp_path / "posts" / "a.md").read_bytes() == b"hello"

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        store = FileContentStore(tmp_path)
        store.store_raw("a.md", b"one")
        store.store_raw("a.md", b"two")
        assert store.fetch_raw("a.md") == b"two"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.md"]

    def test_fetch_missing(self, tmp_path):
        with pytest.raises(ItemNotFoundError):
            FileContentStore(tmp_path).fetch_raw("missing.md")

    @pytest.mark.parametrize("id", ["../escape.md", "sub/a.md", "Upper.md", "a.txt"])
    def test_rejects_unnormalized_ids(self, tmp_path, id):
        store = FileContentStore(tmp_path)
        with pytest.raises(InvalidIdError):
            store.fetch_raw(id)
        with pytest.raises(InvalidIdError):
            store.store_raw(id, b"x")

    def test_fetch_all_filters(self, tmp_path):
        (tmp_path / "b.md").write_bytes(b"b")
        (tmp_path / "a.md").write_bytes(b"a")
        (tmp_path / ".hidden.md").write_bytes(b"h")
        (tmp_path / "notes.txt").write_bytes(b"t")
        (tmp_path / "Bad Name.md").write_bytes(b"x")
        (tmp_path / "sub.md").mkdir()
        os.symlink(tmp_path / "a.md", tmp_path / "link.md")

        store = FileContentStore(tmp_path)
        assert list(store.fetch_all()) == [("a.md", b"a"), ("b.md", b"b")]

    def test_fetch_all_missing_directory(self, tmp_path):
        assert list(FileContentStore(tmp_path / "nope").fetch_all()) == []

    def test_size_limit(self, tmp_path):
        store = FileContentStore(tmp_path, max_size=4)
        with pytest.raises(IOError):
            store.store_raw("a.md", b"too large")
        (tmp_path / "big.md").write_bytes(b"too large")
        (tmp_path / "ok.md").write_bytes(b"ok")
        with pytest.raises(IOError):
            store.fetch_raw("big.md")
        assert list(store.fetch_all()) == [("ok.md", b"ok")]

    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(FileContentStore(tmp_path), ContentStoreProtocol)


class TestMemoryContentStore:

    def test_roundtrip_and_counts(self):
        store = MemoryContentStore({"b.md": b"b"})
        store.store_raw("a.md", b"a")
        assert list(store.fetch_all()) == [("a.md", b"a"), ("b.md", b"b")]
        assert store.fetch_raw("a.md") == b"a"
        assert store.fetch_calls == 1
        assert len(store) == 2
        assert "a.md" in store

    def test_missing(self):
        with pytest.raises(ItemNotFoundError):
            MemoryContentStore().fetch_raw("a.md")

    def test_satisfies_protocol(self):
        assert isinstance(MemoryContentStore(), ContentStoreProtocol)
