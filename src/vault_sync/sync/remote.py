"""Remote store adapter: the sync engine's view of the GitHub vault.

Restricts the repository to the managed subtree (root prefix, file
extension, no hidden segments, no inbox staging directory) and converts
expected transport outcomes into plain return values:

* a missing file reads as ``None`` and deletes as ``False``;
* unusable commit history is ``None``, which makes the engine fall back to
  a full scan.

``ConflictError`` and ``TransportError`` still propagate to the engine,
which isolates them per path.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from vault_sync.config_schema import SyncProfileConfig
from vault_sync.core.client import GitHubClient
from vault_sync.errors import (
    HistoryUnavailableError,
    NotFoundError,
    VaultSyncError,
)
from vault_sync.sync.models import RemoteChanges, RemoteEntry, RemoteFile

logger = logging.getLogger(__name__)

# The compare endpoint lists at most this many files.
COMPARE_FILE_LIMIT = 300


class RemoteStoreAdapter:
    """Managed-subtree access to the remote file store.

    Args:
        client: GitHub API client bound to one repository and branch.
        profile: Sync profile (root, extension, inbox).
    """

    def __init__(
        self,
        client: GitHubClient,
        profile: SyncProfileConfig | None = None,
    ) -> None:
        self.client = client
        self.profile = profile or SyncProfileConfig()

    def is_managed(self, path: str) -> bool:
        """Whether *path* belongs to the synced subtree."""
        root = self.profile.root
        if root and not path.startswith(root):
            return False
        if self.profile.extension and not path.endswith(self.profile.extension):
            return False
        segments = path[len(root) :].split("/")
        if any(seg.startswith(".") for seg in segments):
            return False
        inbox = self.profile.inbox.strip("/")
        if inbox and len(segments) > 1 and segments[0] == inbox:
            return False
        return True

    # ------------------------------------------------------------------
    # Listing and file access
    # ------------------------------------------------------------------

    def list_tree(self) -> list[RemoteEntry]:
        """List every managed file with its current hash.

        Raises:
            TransportError: If the tree cannot be fetched.
        """
        data = self.client.get_tree()
        if data.get("truncated"):
            logger.warning(
                "Remote tree listing was truncated; some files may be missed"
            )
        entries = [
            RemoteEntry(path=item["path"], sha=item["sha"])
            for item in data.get("tree", [])
            if item.get("type") == "blob" and self.is_managed(item["path"])
        ]
        entries.sort(key=lambda e: e.path)
        logger.debug("Remote tree: %d managed files", len(entries))
        return entries

    def read_file(self, path: str) -> RemoteFile | None:
        """Return the file at *path*, or ``None`` if it does not exist."""
        try:
            content, sha = self.client.get_file(path)
        except NotFoundError:
            return None
        return RemoteFile(path=path, content=content, sha=sha)

    def write_file(
        self,
        path: str,
        content: str,
        expected_sha: str | None = None,
    ) -> str:
        """Create or conditionally update *path*; return the new hash.

        Raises:
            ConflictError: If *expected_sha* is no longer current, or the
                file appeared since it was listed.
        """
        verb = "Update" if expected_sha else "Create"
        return self.client.put_file(
            path,
            content,
            message=f"{verb} {path} (vault-sync)",
            sha=expected_sha,
        )

    def delete_file(self, path: str, expected_sha: str) -> bool:
        """Delete *path*; ``False`` if it was already gone."""
        try:
            self.client.delete_file(
                path, expected_sha, message=f"Delete {path} (vault-sync)"
            )
        except NotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def list_changed_since(self, since: datetime) -> RemoteChanges | None:
        """Managed paths changed by commits after *since*.

        Returns ``None`` when history cannot be used for discovery; callers
        should then compare the full tree instead.
        """
        try:
            return self._changed_since(since)
        except HistoryUnavailableError as exc:
            logger.info("Commit history unavailable: %s", exc)
            return None

    def _changed_since(self, since: datetime) -> RemoteChanges:
        stamp = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        try:
            commits, complete = self.client.list_commits(stamp)
        except VaultSyncError as exc:
            raise HistoryUnavailableError(str(exc)) from exc
        if not complete:
            raise HistoryUnavailableError("too many commits since checkpoint")
        if not commits:
            return RemoteChanges()

        newest = commits[0]["sha"]
        parents = commits[-1].get("parents") or []
        if not parents:
            raise HistoryUnavailableError("history reaches the root commit")
        base = parents[0]["sha"]

        try:
            comparison = self.client.compare(base, newest)
        except VaultSyncError as exc:
            raise HistoryUnavailableError(str(exc)) from exc
        files = comparison.get("files") or []
        if len(files) >= COMPARE_FILE_LIMIT:
            raise HistoryUnavailableError("comparison truncated")

        modified: list[str] = []
        deleted: list[str] = []
        for item in files:
            path = item.get("filename", "")
            status = item.get("status")
            if status == "removed":
                if self.is_managed(path):
                    deleted.append(path)
                continue
            if status == "renamed":
                previous = item.get("previous_filename")
                if previous and self.is_managed(previous):
                    deleted.append(previous)
            if self.is_managed(path):
                modified.append(path)

        logger.debug(
            "Changed since %s: %d modified, %d deleted",
            stamp,
            len(modified),
            len(deleted),
        )
        return RemoteChanges(modified=modified, deleted=deleted)
