"""Shared pytest fixtures for vault-sync tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from vault_sync.config import Config
from vault_sync.config_schema import SyncProfileConfig
from vault_sync.errors import ConflictError, NotFoundError, TransportError
from vault_sync.store.documents import FileDocumentStore
from vault_sync.sync.engine import SyncEngine
from vault_sync.sync.local import LocalStoreAdapter
from vault_sync.sync.remote import RemoteStoreAdapter
from vault_sync.sync.state import CheckpointStore, content_hash

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Frozen clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 1) -> datetime:
        self.now += timedelta(minutes=minutes)
        return self.now


class FakeGitHubClient:
    """In-memory stand-in for ``GitHubClient``.

    Keeps one branch of text files plus a linear commit log, and enforces
    the optimistic-concurrency rules of the contents API.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.files: dict[str, str] = {}
        self.commits: list[dict] = []
        self.fail_puts: set[str] = set()
        self.history_broken = False
        self.writes: list[tuple[str, str]] = []
        self.closed = False
        self._commit("initial", [])

    # -- helpers used by tests ------------------------------------------

    def seed(self, path: str, content: str) -> str:
        """Write a file as another device would."""
        status = "modified" if path in self.files else "added"
        self.files[path] = content
        self._commit(f"seed {path}", [{"filename": path, "status": status}])
        return content_hash(content)

    def remove(self, path: str) -> None:
        del self.files[path]
        self._commit(f"rm {path}", [{"filename": path, "status": "removed"}])

    def sha(self, path: str) -> str:
        return content_hash(self.files[path])

    def _commit(self, message: str, files: list[dict]) -> None:
        n = len(self.commits)
        self.commits.append(
            {
                "sha": f"c{n}",
                "parents": [{"sha": f"c{n - 1}"}] if n else [],
                "date": self.clock(),
                "message": message,
                "files": files,
            }
        )

    # -- client API ---------------------------------------------------------

    def validate_connection(self) -> str:
        return "alice/vault"

    def close(self) -> None:
        self.closed = True

    def get_tree(self) -> dict:
        return {
            "truncated": False,
            "tree": [
                {"path": p, "type": "blob", "sha": content_hash(c)}
                for p, c in sorted(self.files.items())
            ],
        }

    def get_file(self, path: str) -> tuple[str, str]:
        if path not in self.files:
            raise NotFoundError(path)
        return self.files[path], self.sha(path)

    def put_file(
        self, path: str, content: str, message: str, sha: str | None = None
    ) -> str:
        if path in self.fail_puts:
            raise TransportError(f"PUT {path} returned HTTP 502", 502)
        current = self.files.get(path)
        if sha is None and current is not None:
            raise ConflictError(path, None, "sha wasn't supplied")
        if sha is not None and (
            current is None or content_hash(current) != sha
        ):
            raise ConflictError(path, sha, "does not match")
        self.writes.append((path, content))
        self.files[path] = content
        status = "added" if current is None else "modified"
        self._commit(message, [{"filename": path, "status": status}])
        return content_hash(content)

    def delete_file(self, path: str, sha: str, message: str) -> None:
        if path not in self.files:
            raise NotFoundError(path)
        if self.sha(path) != sha:
            raise ConflictError(path, sha, "does not match")
        del self.files[path]
        self._commit(message, [{"filename": path, "status": "removed"}])

    def list_commits(self, since: str, max_pages: int = 10):
        if self.history_broken:
            raise TransportError("GET commits returned HTTP 500", 500)
        cutoff = datetime.strptime(since, "%Y-%m-%dT%H:%M:%SZ").replace(
            tzinfo=timezone.utc
        )
        found = [c for c in self.commits if c["date"] >= cutoff and c["parents"]]
        return list(reversed(found)), True

    def compare(self, base: str, head: str) -> dict:
        lo = int(base[1:])
        hi = int(head[1:])
        changed: dict[str, dict] = {}
        for commit in self.commits[lo + 1 : hi + 1]:
            for item in commit["files"]:
                changed[item["filename"]] = item
        return {"files": list(changed.values())}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(token="ghp_test", owner="alice", repo="vault")


@pytest.fixture
def mock_github_client(mock_config):
    """Create a mock GitHubClient instance for testing."""
    from vault_sync.core.client import GitHubClient

    client = MagicMock(spec=GitHubClient)
    client.config = mock_config
    return client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def github(clock):
    return FakeGitHubClient(clock)


@pytest.fixture
def profile(tmp_path):
    return SyncProfileConfig(
        store_dir=str(tmp_path / "documents"),
        state_dir=str(tmp_path / "state"),
    )


@pytest.fixture
def store(profile):
    return FileDocumentStore(profile.store_dir)


@pytest.fixture
def local(store, profile):
    return LocalStoreAdapter(store, profile)


@pytest.fixture
def remote(github, profile):
    return RemoteStoreAdapter(github, profile)


@pytest.fixture
def checkpoints(profile):
    return CheckpointStore(profile.state_dir)


@pytest.fixture
def make_engine(local, remote, checkpoints, clock):
    """Factory building a ``SyncEngine`` over the shared fakes."""

    def _make(decide=None, confirm=None):
        return SyncEngine(
            local,
            remote,
            checkpoints,
            "vault",
            decide=decide,
            confirm=confirm,
            clock=clock,
        )

    return _make
