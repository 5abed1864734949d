"""Sync orchestrator: plans and applies one pull, push or two-way run.

The ``SyncEngine`` ties together the local and remote adapters, the change
detector, the merge resolver and the decision callbacks.  A run:

1. Lists the remote tree (a failure here aborts the run).
2. Chooses the scan scope: changes since the checkpoint (incremental) or
   every known path (full).
3. Plans every path: push, pull, create, refresh, conflict, delete, no-op.
4. Asks the ``decide`` callback once for the whole conflict batch and the
   ``confirm`` callback for each destructive batch.
5. Applies the plan: pulling, then merging, then pushing.
6. Advances the checkpoint only after a clean run.

Error handling is per path: a single failure is recorded in the report and
does not abort the run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from vault_sync.config_schema import SyncProfileConfig
from vault_sync.core.client import GitHubClient
from vault_sync.errors import ConflictError, TransportError, VaultSyncError
from vault_sync.logger import profile_context
from vault_sync.store.documents import FileDocumentStore
from vault_sync.sync import metadata as meta
from vault_sync.sync.detector import (
    ChangeDetector,
    ChangeKind,
    is_locally_changed,
)
from vault_sync.sync.local import (
    DocumentView,
    LocalStoreAdapter,
    format_timestamp,
)
from vault_sync.sync.merger import has_conflict_markers, merge
from vault_sync.sync.models import (
    ConflictDecision,
    ConflictRecord,
    DecisionKind,
    DecisionRequest,
    RemoteChanges,
    RemoteEntry,
    RemoteFile,
    SyncAction,
    SyncDirection,
    SyncMode,
    SyncPhase,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from vault_sync.sync.remote import RemoteStoreAdapter
from vault_sync.sync.resolver import (
    AutoConfirm,
    Confirmer,
    ConflictDecider,
    FixedDecision,
)
from vault_sync.sync.state import CheckpointStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Step:
    """One planned change."""

    action: SyncAction
    path: str
    view: DocumentView | None = None
    remote: RemoteFile | None = None
    expected_sha: str | None = None


@dataclass
class _Plan:
    mode: SyncMode
    steps: list[_Step] = field(default_factory=list)
    conflicts: list[tuple[ConflictRecord, DocumentView]] = field(
        default_factory=list
    )
    trash: list[DocumentView] = field(default_factory=list)
    delete_remote: list[tuple[DocumentView, str]] = field(default_factory=list)
    results: list[SyncResult] = field(default_factory=list)
    unchanged: int = 0

    def skip(self, path: str, doc_id: str | None, reason: str) -> None:
        self.results.append(
            SyncResult(
                path=path, doc_id=doc_id, action=SyncAction.SKIP, detail=reason
            )
        )

    def fail(
        self, path: str, doc_id: str | None, action: SyncAction, exc: Exception
    ) -> None:
        self.results.append(
            SyncResult(
                path=path,
                doc_id=doc_id,
                action=action,
                success=False,
                error=str(exc),
            )
        )


_PULL_ACTIONS = (SyncAction.PULL, SyncAction.CREATE_LOCAL, SyncAction.REFRESH)
_PUSH_ACTIONS = (SyncAction.PUSH, SyncAction.CREATE_REMOTE)


class SyncEngine:
    """Orchestrate sync runs for one profile.

    Args:
        local: Adapter over the local document store.
        remote: Adapter over the remote file store.
        checkpoints: Checkpoint persistence.
        profile_name: Name of the sync profile (checkpoint key).
        decide: Conflict batch callback.  Defaults to applying markers.
        confirm: Destructive action callback.  Defaults to declining.
        clock: Source of the current time.
    """

    def __init__(
        self,
        local: LocalStoreAdapter,
        remote: RemoteStoreAdapter,
        checkpoints: CheckpointStore,
        profile_name: str,
        decide: ConflictDecider | None = None,
        confirm: Confirmer | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.local = local
        self.remote = remote
        self.checkpoints = checkpoints
        self.profile_name = profile_name
        self.decide = decide or FixedDecision(ConflictDecision.APPLY_MARKERS)
        self.confirm = confirm or AutoConfirm(False)
        self.clock = clock

        self.detector = ChangeDetector(remote)
        self.phase = SyncPhase.IDLE

    @classmethod
    def from_profile(
        cls,
        client: GitHubClient,
        profile: SyncProfileConfig,
        profile_name: str,
        decide: ConflictDecider | None = None,
        confirm: Confirmer | None = None,
    ) -> SyncEngine:
        """Build an engine over the stores configured by *profile*."""
        local, remote, checkpoints = build_adapters(client, profile)
        return cls(local, remote, checkpoints, profile_name, decide, confirm)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def pull(
        self, mode: SyncMode = SyncMode.INCREMENTAL, dry_run: bool = False
    ) -> SyncReport:
        """Bring remote changes into the local store."""
        return self.run(SyncDirection.PULL, mode, dry_run)

    def push(
        self, mode: SyncMode = SyncMode.INCREMENTAL, dry_run: bool = False
    ) -> SyncReport:
        """Upload local changes to the remote store."""
        return self.run(SyncDirection.PUSH, mode, dry_run)

    def sync(
        self, mode: SyncMode = SyncMode.INCREMENTAL, dry_run: bool = False
    ) -> SyncReport:
        """Two-way sync."""
        return self.run(SyncDirection.BIDIRECTIONAL, mode, dry_run)

    def run(
        self,
        direction: SyncDirection = SyncDirection.BIDIRECTIONAL,
        mode: SyncMode = SyncMode.INCREMENTAL,
        dry_run: bool = False,
    ) -> SyncReport:
        """Execute one sync run.

        Args:
            direction: Which way changes may flow.
            mode: ``incremental`` (history-scoped) or ``full``.
            dry_run: If ``True``, plan only and return the plan as a report.

        Returns:
            A ``SyncReport`` summarising what was (or would be) done.

        Raises:
            TransportError: If the remote tree cannot be listed.
        """
        with profile_context(self.profile_name):
            return self._run(SyncDirection(direction), SyncMode(mode), dry_run)

    def _run(
        self, direction: SyncDirection, mode: SyncMode, dry_run: bool
    ) -> SyncReport:
        started = self.clock()
        logger.info(
            "Starting %s sync for '%s' (%s%s)",
            direction.value,
            self.profile_name,
            mode.value,
            ", dry run" if dry_run else "",
        )

        try:
            self._enter(SyncPhase.PLANNING)
            listing = {e.path: e for e in self.remote.list_tree()}
            effective_mode, changes = self._scope(direction, mode)
            plan = self._plan(
                direction, effective_mode, listing, changes, repair=not dry_run
            )

            if dry_run:
                return self._report(
                    direction,
                    plan,
                    started,
                    results=self._preview(plan),
                    dry_run=True,
                )

            decision = None
            if plan.conflicts:
                decision = self.decide(
                    DecisionRequest(
                        kind=DecisionKind.CONFLICTS,
                        paths=[c.path for c, _ in plan.conflicts],
                        conflicts=[c for c, _ in plan.conflicts],
                    )
                )
                logger.info("Conflict decision: %s", decision.value)
                if decision == ConflictDecision.ABORT:
                    return self._aborted(direction, plan, started)

            results = list(plan.results)
            trash = self._confirmed(
                DecisionKind.TRASH_LOCAL, plan.trash, results
            )
            delete_remote = self._confirmed(
                DecisionKind.DELETE_REMOTE, plan.delete_remote, results
            )

            self._enter(SyncPhase.PULLING)
            for step in plan.steps:
                if step.action in _PULL_ACTIONS:
                    results.append(self._apply(step))
            for current in trash:
                results.append(self._trash_local(current))

            self._enter(SyncPhase.MERGING)
            for record, current in plan.conflicts:
                results.append(
                    self._apply_conflict(record, current, decision, direction)
                )

            self._enter(SyncPhase.PUSHING)
            for step in plan.steps:
                if step.action in _PUSH_ACTIONS:
                    results.append(self._apply(step))
            for current, sha in delete_remote:
                results.append(self._delete_remote(current, sha))

            self._enter(SyncPhase.FINALIZING)
            report = self._report(direction, plan, started, results=results)
            declined = len(trash) < len(plan.trash) or len(delete_remote) < len(
                plan.delete_remote
            )
            if report.errors:
                logger.warning(
                    "%d errors; checkpoint not advanced", len(report.errors)
                )
            elif declined:
                logger.info("Deletions declined; checkpoint not advanced")
            elif direction != SyncDirection.PUSH:
                self.checkpoints.save(self.profile_name, started)
                report = report.model_copy(
                    update={"checkpoint_advanced": True}
                )
            logger.info("Sync finished: %s", report.summary())
            return report
        finally:
            self._enter(SyncPhase.IDLE)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _scope(
        self, direction: SyncDirection, mode: SyncMode
    ) -> tuple[SyncMode, RemoteChanges | None]:
        """Resolve the scan mode actually used and the remote change set."""
        if mode == SyncMode.FULL:
            return SyncMode.FULL, None
        if direction == SyncDirection.PUSH:
            # Pushing only needs the locally changed documents.
            return SyncMode.INCREMENTAL, RemoteChanges()
        checkpoint = self.checkpoints.load(self.profile_name)
        if checkpoint is None:
            logger.info("No checkpoint for '%s'; full scan", self.profile_name)
            return SyncMode.FULL, None
        changes = self.remote.list_changed_since(checkpoint)
        if changes is None:
            logger.info("History unavailable; falling back to full scan")
            return SyncMode.FULL, None
        return SyncMode.INCREMENTAL, changes

    def _plan(
        self,
        direction: SyncDirection,
        mode: SyncMode,
        listing: dict[str, RemoteEntry],
        changes: RemoteChanges | None,
        repair: bool = True,
    ) -> _Plan:
        plan = _Plan(mode=mode)
        pulls = direction != SyncDirection.PUSH
        pushes = direction != SyncDirection.PULL

        self.local.rebuild_index(repair=repair)
        by_path: dict[str, DocumentView] = {}
        unmapped: list[DocumentView] = []
        for current in self.local.managed_documents():
            path = current.path
            if not path:
                unmapped.append(current)
            elif path in by_path:
                logger.warning(
                    "Documents %s and %s both map to %s; run the audit",
                    by_path[path].doc.id,
                    current.doc.id,
                    path,
                )
            else:
                by_path[path] = current

        # Paths still claimed by a trashed document are never recreated.
        trashed: dict[str, DocumentView] = {}
        for current in self.local.trashed_documents():
            if current.path not in by_path:
                trashed.setdefault(current.path, current)

        deleted: set[str] = set()
        if changes is None:
            candidates = set(listing) | set(by_path)
        else:
            deleted = set(changes.deleted)
            candidates = {p for p in changes.modified if p in listing}
            candidates |= {p for p in deleted if p in by_path}
            candidates |= {
                p for p, v in by_path.items() if is_locally_changed(v)
            }

        for path in sorted(candidates):
            current = by_path.get(path)
            if current is None and path in trashed:
                continue
            entry = listing.get(path)
            doc_id = current.doc.id if current else None
            try:
                self._plan_path(
                    plan, path, current, entry, deleted, pulls, pushes
                )
            except VaultSyncError as exc:
                logger.error("Planning failed for %s: %s", path, exc)
                plan.fail(path, doc_id, SyncAction.SKIP, exc)

        if pushes:
            taken = set(listing) | set(by_path) | set(trashed)
            for current in unmapped:
                path = self._unique_path(
                    self.local.derive_path(current.doc), taken
                )
                taken.add(path)
                plan.steps.append(
                    _Step(SyncAction.CREATE_REMOTE, path, view=current)
                )

        for path, current in sorted(trashed.items()):
            entry = listing.get(path)
            if entry is None:
                continue
            if not pushes:
                if path in candidates:
                    plan.skip(path, current.doc.id, "document is in the trash")
            elif current.sha and entry.sha != current.sha:
                plan.skip(
                    path,
                    current.doc.id,
                    "remote changed after the document was trashed",
                )
            else:
                plan.delete_remote.append((current, entry.sha))

        logger.debug(
            "Plan: %d steps, %d conflicts, %d trash, %d remote deletes",
            len(plan.steps),
            len(plan.conflicts),
            len(plan.trash),
            len(plan.delete_remote),
        )
        return plan

    def _plan_path(
        self,
        plan: _Plan,
        path: str,
        current: DocumentView | None,
        entry: RemoteEntry | None,
        deleted: set[str],
        pulls: bool,
        pushes: bool,
    ) -> None:
        if current is None:
            if entry is not None and pulls:
                plan.steps.append(
                    _Step(SyncAction.CREATE_LOCAL, path, expected_sha=entry.sha)
                )
            return

        if entry is None:
            self._plan_missing(plan, path, current, deleted, pulls, pushes)
            return

        if (
            current.status == SyncStatus.HAS_CONFLICTS.value
            and has_conflict_markers(current.body)
        ):
            if is_locally_changed(current) or entry.sha != current.sha:
                plan.skip(path, current.doc.id, "unresolved conflict markers")
            else:
                plan.unchanged += 1
            return

        detection = self.detector.detect(current, entry)
        kind = detection.kind
        if kind == ChangeKind.UNCHANGED:
            plan.unchanged += 1
        elif kind == ChangeKind.PUSH:
            if pushes:
                plan.steps.append(
                    _Step(
                        SyncAction.PUSH,
                        path,
                        view=current,
                        expected_sha=entry.sha,
                    )
                )
        elif kind in (ChangeKind.PULL, ChangeKind.REFRESH):
            if pulls:
                action = (
                    SyncAction.PULL
                    if kind == ChangeKind.PULL
                    else SyncAction.REFRESH
                )
                plan.steps.append(
                    _Step(action, path, view=current, remote=detection.remote)
                )
        elif kind == ChangeKind.CONFLICT:
            remote_file = detection.remote
            # Both sides changed by content hash, so go straight to the merge.
            outcome = merge(current.body, remote_file.content)
            plan.conflicts.append(
                (
                    ConflictRecord(
                        path=path,
                        doc_id=current.doc.id,
                        local_content=current.body,
                        remote_content=remote_file.content,
                        remote_sha=remote_file.sha,
                        merged_content=outcome.content,
                        conflict_count=outcome.conflict_count,
                    ),
                    current,
                )
            )
        elif kind == ChangeKind.REMOTE_MISSING:
            self._plan_missing(plan, path, current, deleted, pulls, pushes)

    def _plan_missing(
        self,
        plan: _Plan,
        path: str,
        current: DocumentView,
        deleted: set[str],
        pulls: bool,
        pushes: bool,
    ) -> None:
        """A mapped document whose remote file does not exist."""
        if current.sha is None:
            # Never uploaded, or cleared by the audit: (re)create remotely.
            if pushes:
                plan.steps.append(
                    _Step(SyncAction.CREATE_REMOTE, path, view=current)
                )
            return
        if not pulls:
            return
        if plan.mode == SyncMode.FULL or path in deleted:
            plan.trash.append(current)
        else:
            plan.skip(
                path,
                current.doc.id,
                "remote file missing; run a full sync to reconcile",
            )

    @staticmethod
    def _unique_path(path: str, taken: set[str]) -> str:
        if path not in taken:
            return path
        stem, dot, ext = path.rpartition(".")
        if not dot:
            stem, ext = path, ""
        n = 2
        while True:
            candidate = f"{stem}-{n}.{ext}" if dot else f"{stem}-{n}"
            if candidate not in taken:
                return candidate
            n += 1

    def _preview(self, plan: _Plan) -> list[SyncResult]:
        results = list(plan.results)
        for step in plan.steps:
            results.append(
                SyncResult(
                    path=step.path,
                    doc_id=step.view.doc.id if step.view else None,
                    action=step.action,
                    detail="planned",
                )
            )
        for record, _ in plan.conflicts:
            results.append(
                SyncResult(
                    path=record.path,
                    doc_id=record.doc_id,
                    action=SyncAction.CONFLICT,
                    detail=f"{record.conflict_count} conflicting regions",
                )
            )
        for current in plan.trash:
            results.append(
                SyncResult(
                    path=current.path,
                    doc_id=current.doc.id,
                    action=SyncAction.DELETE_LOCAL,
                    detail="needs confirmation",
                )
            )
        for current, _ in plan.delete_remote:
            results.append(
                SyncResult(
                    path=current.path,
                    doc_id=current.doc.id,
                    action=SyncAction.DELETE_REMOTE,
                    detail="needs confirmation",
                )
            )
        return results

    def _confirmed(
        self,
        kind: DecisionKind,
        candidates: list,
        results: list[SyncResult],
    ) -> list:
        """Ask once for a destructive batch; declined items become skips."""
        if not candidates:
            return []
        views = [c[0] if isinstance(c, tuple) else c for c in candidates]
        request = DecisionRequest(kind=kind, paths=[v.path for v in views])
        if self.confirm(request):
            return candidates
        verb = "trash" if kind == DecisionKind.TRASH_LOCAL else "delete"
        for current in views:
            results.append(
                SyncResult(
                    path=current.path,
                    doc_id=current.doc.id,
                    action=SyncAction.SKIP,
                    detail=f"{verb} not confirmed",
                )
            )
        return []

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _apply(self, step: _Step) -> SyncResult:
        doc_id = step.view.doc.id if step.view else None
        try:
            if step.action == SyncAction.CREATE_LOCAL:
                return self._create_local(step)
            if step.action == SyncAction.PULL:
                return self._pull(step)
            if step.action == SyncAction.REFRESH:
                return self._refresh(step)
            return self._push(step)
        except ConflictError as exc:
            logger.warning("Remote moved for %s; will retry: %s", step.path, exc)
            return SyncResult(
                path=step.path,
                doc_id=doc_id,
                action=step.action,
                success=False,
                error=f"remote changed during sync; retry later ({exc})",
            )
        except (VaultSyncError, ValueError, OSError) as exc:
            logger.error("%s failed for %s: %s", step.action.value, step.path, exc)
            if isinstance(exc, TransportError) and step.action in _PUSH_ACTIONS:
                self.local.flag_error(step.view.doc)
            return SyncResult(
                path=step.path,
                doc_id=doc_id,
                action=step.action,
                success=False,
                error=str(exc),
            )

    def _create_local(self, step: _Step) -> SyncResult:
        remote_file = self.remote.read_file(step.path)
        if remote_file is None:
            return SyncResult(
                path=step.path,
                action=SyncAction.SKIP,
                detail="remote file vanished before download",
            )
        now = self.clock()
        created = self.local.create(
            step.path,
            remote_file.content,
            self._synced_metadata(step.path, remote_file.sha, now),
            now,
        )
        logger.info("Created local document for %s", step.path)
        return SyncResult(
            path=step.path, doc_id=created.doc.id, action=SyncAction.CREATE_LOCAL
        )

    def _pull(self, step: _Step) -> SyncResult:
        now = self.clock()
        self.local.mark_synced(
            step.view.doc,
            step.path,
            step.remote.sha,
            now,
            body=step.remote.content,
        )
        logger.info("Pulled %s", step.path)
        return SyncResult(
            path=step.path, doc_id=step.view.doc.id, action=SyncAction.PULL
        )

    def _refresh(self, step: _Step) -> SyncResult:
        now = self.clock()
        self.local.mark_synced(step.view.doc, step.path, step.remote.sha, now)
        return SyncResult(
            path=step.path, doc_id=step.view.doc.id, action=SyncAction.REFRESH
        )

    def _push(self, step: _Step) -> SyncResult:
        doc = step.view.doc
        body = step.view.body
        if step.view.path != step.path:
            self.local.claim_path(doc, step.path, self.clock())
        new_sha = self.remote.write_file(step.path, body, step.expected_sha)
        now = self.clock()
        self.local.mark_synced(doc, step.path, new_sha, now)
        self.local.clear_error(doc)
        logger.info("Pushed %s", step.path)
        return SyncResult(path=step.path, doc_id=doc.id, action=step.action)

    def _trash_local(self, current: DocumentView) -> SyncResult:
        try:
            now = self.clock()
            self.local.trash(current.doc, now)
            self.local.forget_path(current.doc, now)
        except (VaultSyncError, OSError) as exc:
            logger.error("Trashing %s failed: %s", current.doc.id, exc)
            return SyncResult(
                path=current.path,
                doc_id=current.doc.id,
                action=SyncAction.DELETE_LOCAL,
                success=False,
                error=str(exc),
            )
        logger.info("Moved %s to trash (remote deleted)", current.path)
        return SyncResult(
            path=current.path,
            doc_id=current.doc.id,
            action=SyncAction.DELETE_LOCAL,
        )

    def _delete_remote(self, current: DocumentView, sha: str) -> SyncResult:
        path = current.path
        try:
            existed = self.remote.delete_file(path, sha)
            self.local.forget_path(current.doc, current.doc.modified_at)
        except VaultSyncError as exc:
            logger.error("Deleting %s failed: %s", path, exc)
            return SyncResult(
                path=path,
                doc_id=current.doc.id,
                action=SyncAction.DELETE_REMOTE,
                success=False,
                error=str(exc),
            )
        logger.info("Deleted remote %s", path)
        return SyncResult(
            path=path,
            doc_id=current.doc.id,
            action=SyncAction.DELETE_REMOTE,
            detail=None if existed else "already gone",
        )

    def _apply_conflict(
        self,
        record: ConflictRecord,
        current: DocumentView,
        decision: ConflictDecision,
        direction: SyncDirection,
    ) -> SyncResult:
        doc = current.doc
        try:
            now = self.clock()
            if decision == ConflictDecision.FORCE_REMOTE:
                self.local.mark_synced(
                    doc,
                    record.path,
                    record.remote_sha,
                    now,
                    body=record.remote_content,
                )
                return SyncResult(
                    path=record.path,
                    doc_id=doc.id,
                    action=SyncAction.PULL,
                    detail="conflict: kept remote",
                )
            if decision == ConflictDecision.FORCE_LOCAL:
                if direction == SyncDirection.PULL:
                    self.local.refresh_metadata(
                        doc,
                        {
                            meta.KEY_SHA: record.remote_sha,
                            meta.KEY_LAST_SYNC: format_timestamp(now),
                            meta.KEY_STATUS: SyncStatus.NEEDS_PUSH.value,
                        },
                        now,
                    )
                    return SyncResult(
                        path=record.path,
                        doc_id=doc.id,
                        action=SyncAction.SKIP,
                        detail="conflict: kept local, push pending",
                    )
                result = self._push(
                    _Step(
                        SyncAction.PUSH,
                        record.path,
                        view=current,
                        expected_sha=record.remote_sha,
                    )
                )
                return result.model_copy(
                    update={"detail": "conflict: kept local"}
                )

            self.local.write(
                doc,
                record.merged_content,
                {
                    meta.KEY_PATH: record.path,
                    meta.KEY_SHA: record.remote_sha,
                    meta.KEY_LAST_SYNC: format_timestamp(now),
                    meta.KEY_STATUS: SyncStatus.HAS_CONFLICTS.value,
                },
                now,
            )
            logger.warning(
                "Conflict markers written for %s (%d regions)",
                record.path,
                record.conflict_count,
            )
            return SyncResult(
                path=record.path,
                doc_id=doc.id,
                action=SyncAction.CONFLICT,
                detail=f"{record.conflict_count} conflicting regions",
            )
        except ConflictError as exc:
            return SyncResult(
                path=record.path,
                doc_id=doc.id,
                action=SyncAction.PUSH,
                success=False,
                error=f"remote changed during sync; retry later ({exc})",
            )
        except (VaultSyncError, ValueError, OSError) as exc:
            logger.error("Resolving conflict for %s failed: %s", record.path, exc)
            if isinstance(exc, TransportError):
                self.local.flag_error(doc)
            return SyncResult(
                path=record.path,
                doc_id=doc.id,
                action=SyncAction.CONFLICT,
                success=False,
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _synced_metadata(path: str, sha: str, now: datetime) -> dict[str, str]:
        return {
            meta.KEY_PATH: path,
            meta.KEY_SHA: sha,
            meta.KEY_LAST_SYNC: format_timestamp(now),
            meta.KEY_STATUS: SyncStatus.SYNCED.value,
        }

    def _enter(self, phase: SyncPhase) -> None:
        if phase != self.phase:
            logger.debug("Phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def _report(
        self,
        direction: SyncDirection,
        plan: _Plan,
        started: datetime,
        results: Iterable[SyncResult],
        dry_run: bool = False,
        aborted: bool = False,
    ) -> SyncReport:
        return SyncReport(
            profile_name=self.profile_name,
            direction=direction,
            mode=plan.mode,
            dry_run=dry_run,
            aborted=aborted,
            unchanged=plan.unchanged,
            results=list(results),
            started_at=format_timestamp(started),
            completed_at=format_timestamp(self.clock()),
        )

    def _aborted(
        self, direction: SyncDirection, plan: _Plan, started: datetime
    ) -> SyncReport:
        logger.warning("Conflicts aborted; no changes applied")
        results = list(plan.results) + [
            SyncResult(
                path=record.path,
                doc_id=record.doc_id,
                action=SyncAction.CONFLICT,
                detail="not applied (aborted)",
            )
            for record, _ in plan.conflicts
        ]
        return self._report(
            direction, plan, started, results=results, aborted=True
        )


def build_adapters(
    client: GitHubClient | None, profile: SyncProfileConfig
) -> tuple[LocalStoreAdapter, RemoteStoreAdapter | None, CheckpointStore]:
    """Assemble the store adapters and checkpoint store for *profile*.

    Without a *client* only the local side is built (remote is ``None``).
    """
    store = FileDocumentStore(Path(profile.store_dir).expanduser())
    return (
        LocalStoreAdapter(store, profile),
        RemoteStoreAdapter(client, profile) if client is not None else None,
        CheckpointStore(Path(profile.state_dir).expanduser()),
    )
