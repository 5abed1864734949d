"""Merge decisions and the line-aligned merge used for conflicts.

There is no common ancestor to merge against (only the hash of the last
synced version is kept), so conflicting edits are combined with a simple,
explicit policy:

* If most lines still line up position by position (similarity above
  ``SIMILARITY_THRESHOLD``), both line lists are walked in lockstep and each
  run of mismatching lines is wrapped in Git-style markers.
* Otherwise the two versions are placed whole inside one marker block.

Conflict markers follow Git convention with custom labels:
``<<<<<<< LOCAL``, ``=======``, ``>>>>>>> REMOTE``.

``generate_diff`` is a thin wrapper around ``difflib.unified_diff`` for
conflict review.
"""

from __future__ import annotations

import difflib
from datetime import datetime, timezone

from pydantic import BaseModel

SIMILARITY_THRESHOLD = 0.7

START_MARKER = "<<<<<<< LOCAL"
MID_MARKER = "======="
END_MARKER = ">>>>>>> REMOTE"


class MergeResult(BaseModel):
    """Outcome of a merge decision.

    Attributes:
        merged: ``True`` when the result needs no human attention.
        content: Content to keep (possibly with conflict markers).
        conflict_count: Number of marker blocks in *content*.
        winner: ``"local"``, ``"remote"`` or ``"identical"`` when one side
            was taken as-is, ``None`` for an annotated merge.
    """

    merged: bool
    content: str
    conflict_count: int = 0
    winner: str | None = None

    model_config = {"frozen": True}


def has_conflict_markers(content: str) -> bool:
    lines = content.split("\n")
    return START_MARKER in lines and END_MARKER in lines


def similarity(local: str, remote: str) -> float:
    """Fraction of position-aligned identical lines among the shorter side."""
    local_lines = local.split("\n")
    remote_lines = remote.split("\n")
    shorter = min(len(local_lines), len(remote_lines))
    if shorter == 0:
        return 0.0
    same = sum(1 for a, b in zip(local_lines, remote_lines) if a == b)
    return same / shorter


def resolve(
    local: str,
    remote: str,
    local_modified: datetime,
    remote_modified: datetime | None,
    last_sync: datetime | None,
) -> MergeResult:
    """Decide what to keep for a path given both versions and timestamps.

    A side counts as changed when it was modified after *last_sync* (always,
    when there has been no sync).  An unknown remote modification time is
    taken to be now.

    ========  =========  ====================================
    local     remote     outcome
    ========  =========  ====================================
    same      same       later modification time wins
    same      changed    remote wins
    changed   same       local wins
    changed   changed    ``merge()``
    ========  =========  ====================================
    """
    if remote_modified is None:
        remote_modified = datetime.now(timezone.utc)

    local_changed = last_sync is None or local_modified > last_sync
    remote_changed = last_sync is None or remote_modified > last_sync

    if local_changed and remote_changed:
        return merge(local, remote)
    if remote_changed:
        return MergeResult(merged=True, content=remote, winner="remote")
    if local_changed:
        return MergeResult(merged=True, content=local, winner="local")
    if local_modified >= remote_modified:
        return MergeResult(merged=True, content=local, winner="local")
    return MergeResult(merged=True, content=remote, winner="remote")


def merge(local: str, remote: str) -> MergeResult:
    """Combine two diverged versions, annotating what cannot be reconciled."""
    if local == remote:
        return MergeResult(merged=True, content=local, winner="identical")

    if similarity(local, remote) > SIMILARITY_THRESHOLD:
        content, count = _aligned_merge(local.split("\n"), remote.split("\n"))
        return MergeResult(merged=False, content=content, conflict_count=count)

    content = "\n".join([START_MARKER, local, MID_MARKER, remote, END_MARKER])
    return MergeResult(merged=False, content=content, conflict_count=1)


def _aligned_merge(
    local_lines: list[str], remote_lines: list[str]
) -> tuple[str, int]:
    out: list[str] = []
    count = 0
    i = j = 0
    while i < len(local_lines) or j < len(remote_lines):
        if (
            i < len(local_lines)
            and j < len(remote_lines)
            and local_lines[i] == remote_lines[j]
        ):
            out.append(local_lines[i])
            i += 1
            j += 1
            continue

        ni, nj = _next_match(local_lines, remote_lines, i, j)
        out.append(START_MARKER)
        out.extend(local_lines[i:ni])
        out.append(MID_MARKER)
        out.extend(remote_lines[j:nj])
        out.append(END_MARKER)
        count += 1
        i, j = ni, nj
    return "\n".join(out), count


def _next_match(
    local_lines: list[str], remote_lines: list[str], i: int, j: int
) -> tuple[int, int]:
    """Nearest following pair of equal lines by combined offset.

    Returns the ends of both lists when nothing matches again.
    """
    remaining = (len(local_lines) - i) + (len(remote_lines) - j)
    for distance in range(1, remaining + 1):
        for step_local in range(distance + 1):
            a = i + step_local
            b = j + distance - step_local
            if (
                a < len(local_lines)
                and b < len(remote_lines)
                and local_lines[a] == remote_lines[b]
            ):
                return a, b
    return len(local_lines), len(remote_lines)


def generate_diff(
    old_content: str,
    new_content: str,
    label_old: str = "old",
    label_new: str = "new",
) -> str:
    """Generate a unified diff between two strings.

    Args:
        old_content: The original content.
        new_content: The modified content.
        label_old: Label for the old file in the diff header.
        label_new: Label for the new file in the diff header.

    Returns:
        A unified diff string.  Empty string if the contents are identical.
    """
    old_lines = old_content.splitlines(True)
    new_lines = new_content.splitlines(True)

    diff_lines = difflib.unified_diff(
        old_lines,
        new_lines,
        fromfile=label_old,
        tofile=label_new,
    )

    return "".join(diff_lines)
