"""Change detection for one document/remote-file pair.

Hashes are compared first and remote content is fetched only when the
remote hash moved, so an unchanged vault costs one tree listing and no
file reads.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import NamedTuple

from vault_sync.sync.local import DocumentView
from vault_sync.sync.models import RemoteEntry, RemoteFile, SyncStatus
from vault_sync.sync.remote import RemoteStoreAdapter
from vault_sync.sync.state import content_hash

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    UNCHANGED = "unchanged"
    PUSH = "push"
    PULL = "pull"
    REFRESH = "refresh"
    CONFLICT = "conflict"
    REMOTE_MISSING = "remote_missing"


class Detection(NamedTuple):
    """What changed for one path.

    Attributes:
        kind: The classification.
        remote: Remote file, when its content had to be fetched.
        local_changed: Whether the local body changed since the last sync.
    """

    kind: ChangeKind
    remote: RemoteFile | None = None
    local_changed: bool = False


def is_locally_changed(current: DocumentView) -> bool:
    """Whether the document body changed since it was last synced.

    The document must have been touched after its ``last_sync`` (or be
    flagged ``needs-push``) and its body must no longer hash to the stored
    remote hash.  Saving without editing therefore is not a change.
    """
    stored = current.sha
    if stored is None:
        return True
    last_sync = current.last_sync
    touched = (
        last_sync is None
        or current.status == SyncStatus.NEEDS_PUSH.value
        or current.doc.modified_at > last_sync
    )
    return touched and content_hash(current.body) != stored


class ChangeDetector:
    """Classify document/remote-file pairs.

    Args:
        remote: Adapter used to fetch remote content when hashes differ.
    """

    def __init__(self, remote: RemoteStoreAdapter) -> None:
        self.remote = remote

    def detect(self, current: DocumentView, entry: RemoteEntry) -> Detection:
        """Classify the pair formed by *current* and the listed *entry*."""
        local_changed = is_locally_changed(current)

        if entry.sha == current.sha:
            if local_changed:
                return Detection(ChangeKind.PUSH, local_changed=True)
            return Detection(ChangeKind.UNCHANGED)

        remote_file = self.remote.read_file(entry.path)
        if remote_file is None:
            logger.info("Listed file vanished before read: %s", entry.path)
            return Detection(
                ChangeKind.REMOTE_MISSING, local_changed=local_changed
            )

        if remote_file.content.strip() == current.body.strip():
            return Detection(
                ChangeKind.REFRESH, remote_file, local_changed=local_changed
            )
        if local_changed:
            return Detection(
                ChangeKind.CONFLICT, remote_file, local_changed=True
            )
        return Detection(ChangeKind.PULL, remote_file)
