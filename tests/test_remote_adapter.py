"""Tests for RemoteStoreAdapter: subtree filtering and history discovery."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from vault_sync.config_schema import SyncProfileConfig
from vault_sync.errors import ConflictError, NotFoundError, TransportError
from vault_sync.sync.remote import COMPARE_FILE_LIMIT, RemoteStoreAdapter

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class TestIsManaged:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("notes/a.md", True),
            ("a.md", True),
            ("notes/a.txt", False),
            (".obsidian/workspace.md", False),
            ("notes/.hidden.md", False),
            ("inbox/new.md", False),
            ("notes/inbox/new.md", True),
            ("inbox.md", True),
        ],
    )
    def test_default_profile(self, path, expected):
        adapter = RemoteStoreAdapter(MagicMock(), SyncProfileConfig())
        assert adapter.is_managed(path) is expected

    def test_root_prefix(self):
        adapter = RemoteStoreAdapter(MagicMock(), SyncProfileConfig(root="vault"))
        assert adapter.is_managed("vault/notes/a.md")
        assert not adapter.is_managed("other/a.md")
        assert not adapter.is_managed("vault/inbox/a.md")


class TestFileAccess:
    def test_list_tree_filters_and_sorts(self, github, remote):
        github.seed("z.md", "z")
        github.seed("a.md", "a")
        github.seed("inbox/draft.md", "d")
        github.seed("img.png", "p")
        entries = remote.list_tree()
        assert [e.path for e in entries] == ["a.md", "z.md"]
        assert entries[0].sha == github.sha("a.md")

    def test_list_tree_skips_directories(self):
        client = MagicMock()
        client.get_tree.return_value = {
            "truncated": True,
            "tree": [
                {"path": "notes", "type": "tree", "sha": "t"},
                {"path": "notes/a.md", "type": "blob", "sha": "b"},
            ],
        }
        entries = RemoteStoreAdapter(client).list_tree()
        assert [e.path for e in entries] == ["notes/a.md"]

    def test_list_tree_propagates_transport_error(self):
        client = MagicMock()
        client.get_tree.side_effect = TransportError("down", 503)
        with pytest.raises(TransportError):
            RemoteStoreAdapter(client).list_tree()

    def test_read_file(self, github, remote):
        sha = github.seed("a.md", "hello")
        remote_file = remote.read_file("a.md")
        assert remote_file.content == "hello"
        assert remote_file.sha == sha

    def test_read_missing_file_is_none(self, remote):
        assert remote.read_file("nope.md") is None

    def test_write_file_create_and_update(self, github, remote):
        sha = remote.write_file("a.md", "one")
        assert github.files["a.md"] == "one"
        assert github.commits[-1]["message"] == "Create a.md (vault-sync)"

        remote.write_file("a.md", "two", expected_sha=sha)
        assert github.files["a.md"] == "two"
        assert github.commits[-1]["message"] == "Update a.md (vault-sync)"

    def test_write_file_stale_sha_conflicts(self, github, remote):
        github.seed("a.md", "one")
        with pytest.raises(ConflictError):
            remote.write_file("a.md", "two", expected_sha="stale")
        assert github.files["a.md"] == "one"

    def test_delete_file(self, github, remote):
        sha = github.seed("a.md", "one")
        assert remote.delete_file("a.md", sha) is True
        assert "a.md" not in github.files

    def test_delete_missing_file_is_false(self, remote):
        assert remote.delete_file("a.md", "whatever") is False

    def test_delete_propagates_not_found_only_as_false(self):
        client = MagicMock()
        client.delete_file.side_effect = NotFoundError("a.md")
        assert RemoteStoreAdapter(client).delete_file("a.md", "s") is False


class TestChangedSince:
    def test_modified_and_deleted(self, github, remote, clock):
        github.seed("keep.md", "k")
        github.seed("gone.md", "g")
        clock.advance()
        github.seed("keep.md", "k2")
        github.seed("new.md", "n")
        github.remove("gone.md")
        github.seed("inbox/x.md", "x")

        changes = remote.list_changed_since(clock())
        assert sorted(changes.modified) == ["keep.md", "new.md"]
        assert changes.deleted == ["gone.md"]

    def test_no_commits(self, github, remote, clock):
        clock.advance(60)
        changes = remote.list_changed_since(clock())
        assert changes.modified == []
        assert changes.deleted == []

    def test_rename_is_delete_plus_modify(self):
        client = MagicMock()
        client.list_commits.return_value = (
            [{"sha": "c2", "parents": [{"sha": "c1"}]}],
            True,
        )
        client.compare.return_value = {
            "files": [
                {
                    "filename": "notes/new.md",
                    "previous_filename": "notes/old.md",
                    "status": "renamed",
                }
            ]
        }
        changes = RemoteStoreAdapter(client).list_changed_since(START)
        assert changes.modified == ["notes/new.md"]
        assert changes.deleted == ["notes/old.md"]
        client.compare.assert_called_once_with("c1", "c2")
        client.list_commits.assert_called_once_with("2026-03-02T09:00:00Z")

    def test_incomplete_history_is_none(self):
        client = MagicMock()
        client.list_commits.return_value = ([{"sha": "c9", "parents": []}], False)
        assert RemoteStoreAdapter(client).list_changed_since(START) is None

    def test_root_commit_is_none(self):
        client = MagicMock()
        client.list_commits.return_value = ([{"sha": "c0", "parents": []}], True)
        assert RemoteStoreAdapter(client).list_changed_since(START) is None

    def test_truncated_comparison_is_none(self):
        client = MagicMock()
        client.list_commits.return_value = (
            [{"sha": "c2", "parents": [{"sha": "c1"}]}],
            True,
        )
        client.compare.return_value = {
            "files": [
                {"filename": f"n{i}.md", "status": "added"}
                for i in range(COMPARE_FILE_LIMIT)
            ]
        }
        assert RemoteStoreAdapter(client).list_changed_since(START) is None

    def test_transport_failure_is_none(self, github, remote):
        github.history_broken = True
        assert remote.list_changed_since(START) is None
