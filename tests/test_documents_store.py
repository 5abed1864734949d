"""Tests for the directory-backed document store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from vault_sync.store.documents import Document, FileDocumentStore

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class TestDocument:
    def test_tags_are_unique(self):
        doc = Document(id="x")
        doc.add_tag("a")
        doc.add_tag("a")
        assert doc.tags == ["a"]
        doc.remove_tag("a")
        doc.remove_tag("a")
        assert doc.tags == []

    def test_has_tags(self):
        doc = Document(id="x", tags=["a", "b"])
        assert doc.has_tags(["a"])
        assert doc.has_tags([])
        assert not doc.has_tags(["a", "c"])


class TestFileDocumentStore:
    def test_create_and_get(self, tmp_path: Path):
        store = FileDocumentStore(tmp_path)
        doc = store.create("hello", ["a", "a", "b"], timestamp=T0)

        loaded = store.get(doc.id)
        assert loaded == doc
        assert loaded.tags == ["a", "b"]
        assert loaded.created_at == T0
        assert loaded.modified_at == T0

    def test_get_missing(self, tmp_path: Path):
        assert FileDocumentStore(tmp_path).get("nope") is None

    def test_query_filters_by_tags_and_trash(self, tmp_path: Path):
        store = FileDocumentStore(tmp_path)
        a = store.create("a", ["x", "y"], timestamp=T0)
        store.create("b", ["x"], timestamp=T0)
        c = store.create("c", ["x", "y"], timestamp=T0)
        store.trash(c, timestamp=T0)

        assert [d.id for d in store.query(["x", "y"])] == [a.id]
        assert [d.id for d in store.query(["y"], trashed=True)] == [c.id]

    def test_query_newest_first(self, tmp_path: Path):
        store = FileDocumentStore(tmp_path)
        old = store.create("old", timestamp=T0)
        new = store.create("new", timestamp=T0 + timedelta(hours=1))
        assert [d.id for d in store.query()] == [new.id, old.id]

    def test_save_stamps_given_timestamp(self, tmp_path: Path):
        store = FileDocumentStore(tmp_path)
        doc = store.create("a", timestamp=T0)
        doc.content = "b"
        later = T0 + timedelta(minutes=5)
        store.save(doc, timestamp=later)
        loaded = store.get(doc.id)
        assert loaded.content == "b"
        assert loaded.modified_at == later
        assert loaded.created_at == T0

    def test_missing_directory_queries_empty(self, tmp_path: Path):
        assert FileDocumentStore(tmp_path / "absent").query() == []

    def test_unreadable_record_is_skipped(self, tmp_path: Path):
        store = FileDocumentStore(tmp_path)
        good = store.create("ok", timestamp=T0)
        (tmp_path / "broken.json").write_text("{")
        assert [d.id for d in store.query()] == [good.id]
