"""Sync checkpoint persistence and content hashing.

Each sync profile gets one small JSON file (``checkpoint_{profile}.json``)
in the profile's state directory recording the start time of the last fully
successful run.  Incremental syncs ask the remote for changes since that
instant.

A checkpoint file is replaced in one step (temp file plus ``os.replace``),
so a crash mid-save leaves the previous checkpoint in place.

``content_hash()`` is the git blob SHA-1 of a text: the same value GitHub
reports for a file with that content, which lets a local body be compared
with a remote file without downloading it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


def content_hash(content: str) -> str:
    """Return the git blob SHA-1 of *content* encoded as UTF-8."""
    data = content.encode("utf-8")
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data).hexdigest()


class CheckpointStore:
    """Load and save the sync checkpoint for named profiles.

    Args:
        state_dir: Directory where checkpoint files are stored
            (typically ``.vault_sync/``).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)

    def load(self, profile_name: str) -> datetime | None:
        """Return the stored checkpoint, or ``None`` if there is none.

        An unreadable checkpoint file is logged and treated as missing, which
        makes the next run a full scan.
        """
        path = self._state_path(profile_name)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
            return datetime.fromisoformat(data["checkpoint"])
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning(
                "Ignoring unreadable checkpoint %s: %s", path, exc
            )
            return None

    def save(self, profile_name: str, checkpoint: datetime) -> None:
        """Persist *checkpoint* for *profile_name* atomically."""
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state = {
            "version": 1,
            "profile": profile_name,
            "checkpoint": checkpoint.isoformat(),
        }

        target = self._state_path(profile_name)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug(
            "Checkpoint for %s advanced to %s", profile_name, state["checkpoint"]
        )

    def _state_path(self, profile_name: str) -> Path:
        return self._state_dir / f"checkpoint_{profile_name}.json"
