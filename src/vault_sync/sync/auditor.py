"""On-demand integrity checks for the local store.

- ``find_duplicates()`` / ``repair()``: several non-trashed documents
  claiming the same remote path (for example after a crash between a
  create and its metadata write) are collapsed onto one keeper.
- ``diagnose()``: classify managed documents by metadata health.
- ``clear_errors()``: drop the ``sync-error`` tag so failed pushes are
  retried.
- ``sync_status()``: checkpoint and document counts for a profile.

Nothing here runs during a normal sync.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timezone

from vault_sync.sync import metadata as meta
from vault_sync.sync.local import (
    ERROR_TAG,
    DocumentView,
    LocalStoreAdapter,
    format_timestamp,
)
from vault_sync.sync.merger import has_conflict_markers
from vault_sync.sync.models import DuplicateGroup, SyncDiagnosis, SyncStatus
from vault_sync.sync.remote import RemoteStoreAdapter
from vault_sync.sync.state import CheckpointStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DuplicateAuditor:
    """Detect and repair metadata integrity problems.

    Args:
        local: Adapter over the local document store.
        remote: Adapter over the remote store (``repair()`` only).
        clock: Source of the current time.
    """

    def __init__(
        self,
        local: LocalStoreAdapter,
        remote: RemoteStoreAdapter | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.local = local
        self.remote = remote
        self.clock = clock

    # ------------------------------------------------------------------
    # Duplicates
    # ------------------------------------------------------------------

    def _claims(self) -> dict[str, list[DocumentView]]:
        claims: dict[str, list[DocumentView]] = defaultdict(list)
        for current in self.local.managed_documents():
            if current.path:
                claims[current.path].append(current)
        for views in claims.values():
            views.sort(key=lambda v: v.doc.modified_at, reverse=True)
        return {p: v for p, v in claims.items() if len(v) > 1}

    def find_duplicates(self) -> list[DuplicateGroup]:
        """Remote paths claimed by more than one non-trashed document."""
        return [
            DuplicateGroup(path=path, doc_ids=[v.doc.id for v in views])
            for path, views in sorted(self._claims().items())
        ]

    def repair(self) -> list[DuplicateGroup]:
        """Keep one document per duplicated path and trash the rest.

        * Remote gone: keep the most recently modified document, clear its
          stored hash and flag it ``needs-push``.
        * Remote present and one body matches it exactly: keep that one and
          mark it ``synced`` at the current remote hash.
        * Remote present, no exact match: keep the most recently modified
          document and flag it ``needs-push`` against the current remote
          hash.

        Raises:
            ValueError: If no remote adapter was given.
        """
        if self.remote is None:
            raise ValueError("repair() needs a remote store adapter")

        repaired: list[DuplicateGroup] = []
        for path, views in sorted(self._claims().items()):
            now = self.clock()
            remote_file = self.remote.read_file(path)
            if remote_file is None:
                keeper = views[0]
                reason = "remote gone; newest kept for re-upload"
                changes = {
                    meta.KEY_SHA: None,
                    meta.KEY_STATUS: SyncStatus.NEEDS_PUSH.value,
                }
            else:
                exact = next(
                    (v for v in views if v.body == remote_file.content), None
                )
                if exact is not None:
                    keeper = exact
                    reason = "matches remote"
                    changes = {
                        meta.KEY_SHA: remote_file.sha,
                        meta.KEY_LAST_SYNC: format_timestamp(now),
                        meta.KEY_STATUS: SyncStatus.SYNCED.value,
                    }
                else:
                    keeper = views[0]
                    reason = "no exact match; newest kept for push"
                    changes = {
                        meta.KEY_SHA: remote_file.sha,
                        meta.KEY_LAST_SYNC: None,
                        meta.KEY_STATUS: SyncStatus.NEEDS_PUSH.value,
                    }

            self.local.refresh_metadata(keeper.doc, changes, now)
            for other in views:
                if other.doc.id != keeper.doc.id:
                    self.local.trash(other.doc, now)
            logger.info(
                "Repaired %s: kept %s, trashed %d (%s)",
                path,
                keeper.doc.id,
                len(views) - 1,
                reason,
            )
            repaired.append(
                DuplicateGroup(
                    path=path,
                    doc_ids=[v.doc.id for v in views],
                    keeper_id=keeper.doc.id,
                    reason=reason,
                )
            )
        return repaired

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def diagnose(self) -> SyncDiagnosis:
        """Classify managed documents by metadata health.

        A document may appear in several problem lists; ``healthy`` holds
        the documents with none.
        """
        buckets: dict[str, list[str]] = defaultdict(list)
        documents = self.local.managed_documents()
        for current in documents:
            doc_id = current.doc.id
            problems = False
            if not current.metadata:
                buckets["no_metadata"].append(doc_id)
                problems = True
            else:
                if not current.path:
                    buckets["no_path"].append(doc_id)
                    problems = True
                if not current.sha:
                    buckets["no_sha"].append(doc_id)
                    problems = True
            if current.legacy:
                buckets["legacy_format"].append(doc_id)
                problems = True
            if current.status == SyncStatus.HAS_CONFLICTS.value and (
                has_conflict_markers(current.body)
            ):
                buckets["has_conflicts"].append(doc_id)
                problems = True
            if ERROR_TAG in current.doc.tags:
                buckets["sync_errors"].append(doc_id)
                problems = True
            if not problems:
                buckets["healthy"].append(doc_id)
        return SyncDiagnosis(total=len(documents), **buckets)

    def clear_errors(self) -> int:
        """Remove the ``sync-error`` tag everywhere; return how many cleared."""
        cleared = 0
        for doc in self.local.store.query([ERROR_TAG]):
            if self.local.clear_error(doc):
                cleared += 1
        logger.info("Cleared sync errors on %d documents", cleared)
        return cleared


def sync_status(
    local: LocalStoreAdapter,
    checkpoints: CheckpointStore,
    profile_name: str,
) -> dict:
    """Checkpoint time and document counts for a profile."""
    checkpoint = checkpoints.load(profile_name)
    documents = local.managed_documents()
    return {
        "profile": profile_name,
        "checkpoint": checkpoint.isoformat() if checkpoint else None,
        "managed_documents": len(documents),
        "unmapped_documents": sum(1 for v in documents if not v.path),
        "needs_push": sum(
            1 for v in documents if v.status == SyncStatus.NEEDS_PUSH.value
        ),
        "sync_errors": sum(1 for v in documents if ERROR_TAG in v.doc.tags),
    }
