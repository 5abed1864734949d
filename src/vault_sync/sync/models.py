"""Pydantic models for the bidirectional sync engine.

Defines the data contracts shared across the sync modules:

- ``SyncAction``: Enum of possible per-path sync operations.
- ``SyncPhase``: Orchestrator state machine phases.
- ``SyncStatus``: Values of the ``sync_status`` metadata key.
- ``RemoteEntry`` / ``RemoteFile`` / ``RemoteChanges``: Remote store views.
- ``ConflictRecord``: A conflict awaiting a batch decision.
- ``ConflictDecision`` / ``DecisionRequest``: Batch decision contracts.
- ``SyncResult``: Outcome of syncing one path.
- ``SyncReport``: Aggregate results for a sync run.
- ``DuplicateGroup`` / ``SyncDiagnosis``: Auditor output.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SyncAction(str, Enum):
    """Possible sync operations for a document/remote-file pair."""

    SKIP = "skip"
    PUSH = "push"
    PULL = "pull"
    REFRESH = "refresh"
    CONFLICT = "conflict"
    CREATE_REMOTE = "create_remote"
    CREATE_LOCAL = "create_local"
    DELETE_REMOTE = "delete_remote"
    DELETE_LOCAL = "delete_local"


class SyncPhase(str, Enum):
    """Orchestrator phases; a run always returns to ``IDLE``."""

    IDLE = "idle"
    PLANNING = "planning"
    PULLING = "pulling"
    MERGING = "merging"
    PUSHING = "pushing"
    FINALIZING = "finalizing"


class SyncStatus(str, Enum):
    """Values stored under the ``sync_status`` metadata key."""

    SYNCED = "synced"
    HAS_CONFLICTS = "has-conflicts"
    NEEDS_PUSH = "needs-push"


class SyncDirection(str, Enum):
    BIDIRECTIONAL = "bidirectional"
    PULL = "pull"
    PUSH = "push"


class SyncMode(str, Enum):
    INCREMENTAL = "incremental"
    FULL = "full"


# ---------------------------------------------------------------------------
# Remote store views
# ---------------------------------------------------------------------------


class RemoteEntry(BaseModel):
    """One file in the remote tree listing."""

    path: str
    sha: str

    model_config = {"frozen": True}


class RemoteFile(BaseModel):
    """A remote file read with its content.

    Attributes:
        path: Repository-relative POSIX path.
        content: Decoded UTF-8 text.
        sha: Git blob hash; changes on every write.
    """

    path: str
    content: str
    sha: str

    model_config = {"frozen": True}


class RemoteChanges(BaseModel):
    """Paths touched by commits since a point in time.

    A renamed file appears as a deletion of its old path and a
    modification of its new path.
    """

    modified: list[str] = []
    deleted: list[str] = []

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Conflicts and decisions
# ---------------------------------------------------------------------------


class ConflictRecord(BaseModel):
    """A path changed on both sides since the last sync.

    Transient: built during planning, consumed when the batch decision has
    been made, never persisted.

    Attributes:
        path: Remote path.
        doc_id: Local document id.
        local_content: Local body (metadata stripped).
        remote_content: Remote content.
        remote_sha: Remote hash at planning time.
        merged_content: Annotated merge of both sides.
        conflict_count: Number of marker blocks in ``merged_content``.
    """

    path: str
    doc_id: str
    local_content: str
    remote_content: str
    remote_sha: str
    merged_content: str
    conflict_count: int

    model_config = {"frozen": True}


class ConflictDecision(str, Enum):
    """Batch decision applied to every conflict of a run."""

    APPLY_MARKERS = "apply-markers"
    FORCE_LOCAL = "force-local"
    FORCE_REMOTE = "force-remote"
    ABORT = "abort"


class DecisionKind(str, Enum):
    CONFLICTS = "conflicts"
    TRASH_LOCAL = "trash-local"
    DELETE_REMOTE = "delete-remote"


class DecisionRequest(BaseModel):
    """A structured question put to the caller.

    Attributes:
        kind: What is being decided.
        paths: Affected remote paths.
        conflicts: Conflict details (only for ``kind=conflicts``).
    """

    kind: DecisionKind
    paths: list[str]
    conflicts: list[ConflictRecord] = []

    model_config = {"frozen": True}

    def describe(self) -> str:
        count = len(self.paths)
        noun = "document" if count == 1 else "documents"
        if self.kind == DecisionKind.CONFLICTS:
            total = sum(c.conflict_count for c in self.conflicts)
            return (
                f"{count} {noun} changed on both sides "
                f"({total} conflicting regions)"
            )
        if self.kind == DecisionKind.TRASH_LOCAL:
            return f"{count} {noun} deleted remotely; move local copies to trash?"
        return f"{count} {noun} trashed locally; delete the remote files?"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class SyncResult(BaseModel):
    """Result of syncing one path.

    Attributes:
        path: Remote path.
        doc_id: Local document id, when one is involved.
        action: Sync action that was performed (or planned).
        success: Whether the operation succeeded.
        error: Error message if the operation failed.
        detail: Short human-readable note (skip reason, conflict count).
    """

    path: str
    doc_id: str | None = None
    action: SyncAction
    success: bool = True
    error: str | None = None
    detail: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a sync run.

    Attributes:
        profile_name: Name of the sync profile used.
        direction: ``bidirectional``, ``pull`` or ``push``.
        mode: Scan mode actually used (an incremental request may fall back
            to ``full``).
        dry_run: Whether this was a dry run (no changes applied).
        aborted: Whether the conflict batch was aborted.
        checkpoint_advanced: Whether the checkpoint was written.
        unchanged: Number of paths that needed nothing.
        results: Individual sync results.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    profile_name: str
    direction: SyncDirection = SyncDirection.BIDIRECTIONAL
    mode: SyncMode = SyncMode.INCREMENTAL
    dry_run: bool = False
    aborted: bool = False
    checkpoint_advanced: bool = False
    unchanged: int = 0
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _successful(self, *actions: SyncAction) -> list[SyncResult]:
        return [
            r for r in self.results if r.success and r.action in actions
        ]

    @property
    def created(self) -> list[SyncResult]:
        """Documents or remote files created."""
        return self._successful(
            SyncAction.CREATE_LOCAL, SyncAction.CREATE_REMOTE
        )

    @property
    def updated(self) -> list[SyncResult]:
        """Pulls and pushes of existing pairs."""
        return self._successful(SyncAction.PULL, SyncAction.PUSH)

    @property
    def pulled(self) -> list[SyncResult]:
        return self._successful(SyncAction.PULL)

    @property
    def pushed(self) -> list[SyncResult]:
        return self._successful(SyncAction.PUSH)

    @property
    def deleted(self) -> list[SyncResult]:
        """Local documents trashed and remote files deleted."""
        return self._successful(
            SyncAction.DELETE_LOCAL, SyncAction.DELETE_REMOTE
        )

    @property
    def refreshed(self) -> list[SyncResult]:
        return self._successful(SyncAction.REFRESH)

    @property
    def skipped(self) -> list[SyncResult]:
        """Results where action is SKIP."""
        return self._successful(SyncAction.SKIP)

    @property
    def conflicts(self) -> list[SyncResult]:
        """Results where action is CONFLICT."""
        return self._successful(SyncAction.CONFLICT)

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def counts(self) -> dict[str, int]:
        return {
            "created": len(self.created),
            "updated": len(self.updated),
            "deleted": len(self.deleted),
            "skipped": len(self.skipped),
            "conflicts": len(self.conflicts),
            "refreshed": len(self.refreshed),
            "errors": len(self.errors),
        }

    def summary(self) -> str:
        """Format a one-line summary of the sync run."""
        c = self.counts()
        text = (
            f"{c['created']} created, {c['updated']} updated, "
            f"{c['deleted']} deleted, {c['skipped']} skipped, "
            f"{c['errors']} errors"
        )
        if c["conflicts"]:
            text += f", {c['conflicts']} conflicts"
        if self.aborted:
            text += " (aborted)"
        elif self.dry_run:
            text += " (dry run)"
        return text


# ---------------------------------------------------------------------------
# Auditor output
# ---------------------------------------------------------------------------


class DuplicateGroup(BaseModel):
    """Several non-trashed documents claiming the same remote path.

    Attributes:
        path: The shared remote path.
        doc_ids: Claiming document ids, most recently modified first.
        keeper_id: Document kept by ``repair()``.
        reason: Why the keeper was chosen.
    """

    path: str
    doc_ids: list[str]
    keeper_id: str | None = None
    reason: str | None = None

    model_config = {"frozen": True}


class SyncDiagnosis(BaseModel):
    """Classification of managed documents by metadata health."""

    total: int = 0
    healthy: list[str] = []
    no_metadata: list[str] = []
    no_path: list[str] = []
    no_sha: list[str] = []
    legacy_format: list[str] = []
    has_conflicts: list[str] = []
    sync_errors: list[str] = []

    model_config = {"frozen": True}

    def summary(self) -> str:
        lines = [
            f"Managed documents: {self.total}",
            f"  Healthy:          {len(self.healthy)}",
            f"  No metadata:      {len(self.no_metadata)}",
            f"  No remote path:   {len(self.no_path)}",
            f"  No remote hash:   {len(self.no_sha)}",
            f"  Legacy format:    {len(self.legacy_format)}",
            f"  Has conflicts:    {len(self.has_conflicts)}",
            f"  Sync errors:      {len(self.sync_errors)}",
        ]
        return "\n".join(lines)
