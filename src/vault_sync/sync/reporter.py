"""Text and JSON renderings of sync results.

The text report is one line per touched path, labelled with what happened
(or, for a dry run, what would happen), followed by the checkpoint outcome.
Refreshed hashes are bookkeeping and only counted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .merger import generate_diff
from .models import SyncAction

if TYPE_CHECKING:
    from .models import ConflictRecord, DuplicateGroup, SyncReport, SyncResult

# action -> (label after the run, label in a dry run); order is display order
_LABELS: dict[SyncAction, tuple[str, str]] = {
    SyncAction.PULL: ("pulled", "would pull"),
    SyncAction.PUSH: ("pushed", "would push"),
    SyncAction.CREATE_LOCAL: ("created locally", "would create locally"),
    SyncAction.CREATE_REMOTE: ("created remotely", "would create remotely"),
    SyncAction.DELETE_LOCAL: ("trashed", "would trash"),
    SyncAction.DELETE_REMOTE: ("deleted remotely", "would delete remotely"),
    SyncAction.CONFLICT: ("conflict", "conflict"),
    SyncAction.SKIP: ("skipped", "would skip"),
}
_ORDER = {action: n for n, action in enumerate(_LABELS)}

PREVIEW_LINES = 20


def _result_lines(results: list[SyncResult], dry_run: bool) -> list[str]:
    shown = [
        r for r in results if r.action is not SyncAction.REFRESH or not r.success
    ]
    shown.sort(key=lambda r: (r.success, _ORDER.get(r.action, len(_ORDER)), r.path))

    rows: list[tuple[str, str, str]] = []
    for r in shown:
        if not r.success:
            rows.append(("FAILED", r.path, r.error or r.action.value))
            continue
        done, planned = _LABELS[r.action]
        rows.append((planned if dry_run else done, r.path, r.detail or ""))

    width = max((len(label) for label, _, _ in rows), default=0)
    return [
        f"  {label:<{width}}  {path}" + (f"  ({note})" if note else "")
        for label, path, note in rows
    ]


def format_sync_report(report: SyncReport) -> str:
    """Render *report* for the terminal (or an MCP text block)."""
    kind = "dry run" if report.dry_run else "sync"
    header = (
        f"{report.profile_name}: {report.direction.value} {kind}, "
        f"{report.mode.value} scan"
    )
    if report.aborted:
        header += " -- ABORTED"

    lines = [header, f"  started {report.started_at}"]
    if report.completed_at:
        lines.append(f"  finished {report.completed_at}")
    lines.append(f"  {report.summary()}")

    rows = _result_lines(report.results, report.dry_run)
    lines.append("")
    lines.extend(rows or ["  nothing to do"])

    refreshed = len(report.refreshed)
    if refreshed:
        lines.append(f"  ({refreshed} stored hashes refreshed)")

    lines.append("")
    if report.dry_run:
        lines.append("No changes were made.")
    elif report.checkpoint_advanced:
        lines.append("Checkpoint advanced.")
    elif not report.aborted:
        lines.append("Checkpoint kept; the next run will look at these changes again.")
    return "\n".join(lines).rstrip()


def format_conflict_diff(conflict: ConflictRecord) -> str:
    """Unified diff of one conflict plus the head of the marked-up merge."""
    regions = conflict.conflict_count
    lines = [
        f"Conflict: {conflict.path} "
        f"({regions} conflicting region{'s' if regions != 1 else ''})",
        "",
    ]
    diff_text = generate_diff(
        conflict.local_content,
        conflict.remote_content,
        label_old=f"local: {conflict.path}",
        label_new=f"remote: {conflict.path}",
    )
    lines.append(diff_text.rstrip() if diff_text else "(no line differences)")

    merged = conflict.merged_content.splitlines()
    lines += ["", "If merged with markers:"]
    lines += [f"  | {line}" for line in merged[:PREVIEW_LINES]]
    hidden = len(merged) - PREVIEW_LINES
    if hidden > 0:
        lines.append(f"  | ... {hidden} more lines")
    return "\n".join(lines)


def format_duplicates(groups: list[DuplicateGroup], repaired: bool) -> str:
    """Format auditor findings."""
    if not groups:
        return "No duplicate documents found."
    verb = "Repaired" if repaired else "Found"
    lines = [f"{verb} {len(groups)} duplicated paths:"]
    for group in groups:
        lines.append(f"  {group.path}: {len(group.doc_ids)} documents")
        if group.keeper_id:
            lines.append(f"    kept {group.keeper_id} ({group.reason})")
    return "\n".join(lines)


def report_to_json(report: SyncReport) -> dict:
    """Plain-JSON form of *report* for MCP ``structuredContent``.

    Per-result entries leave out unset optional fields.
    """
    data = report.model_dump(
        mode="json",
        include={
            "profile_name",
            "direction",
            "mode",
            "dry_run",
            "aborted",
            "checkpoint_advanced",
            "started_at",
            "completed_at",
        },
    )
    data["counts"] = {**report.counts(), "unchanged": report.unchanged}
    data["results"] = [
        r.model_dump(mode="json", exclude_none=True) for r in report.results
    ]
    return data
