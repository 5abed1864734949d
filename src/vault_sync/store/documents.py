"""Local document store.

The sync engine consumes a small query surface (``DocumentStore``):
query by tag set and trash state, create / save / trash, and read or write
content, tags and timestamps.  ``FileDocumentStore`` implements it with one
JSON record per document in a directory.

Key design choices:

* **Atomic writes** -- every record is written to a temp file in the same
  directory and moved into place with ``os.replace()``.
* **Explicit timestamps** -- ``save()`` and ``create()`` accept the
  modification time to record, so the engine can stamp a document with the
  exact instant it records as ``last_sync``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Document:
    """A local, independently editable unit of text.

    Attributes:
        id: Stable identifier assigned by the store.
        content: Body plus the embedded metadata trailer.
        tags: Tag list (order kept, no duplicates).
        created_at: Creation time (UTC).
        modified_at: Last modification time (UTC).
        trashed: Whether the document is in the trash.
    """

    id: str
    content: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    modified_at: datetime = field(default_factory=utcnow)
    trashed: bool = False

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def remove_tag(self, tag: str) -> None:
        if tag in self.tags:
            self.tags.remove(tag)

    def has_tags(self, tags: Iterable[str]) -> bool:
        return all(t in self.tags for t in tags)


class DocumentStore(Protocol):
    """Query surface of the local store consumed by the sync engine."""

    def query(
        self, tags: Iterable[str] = (), *, trashed: bool = False
    ) -> list[Document]:
        """Return documents carrying all *tags* in the given trash state."""
        ...  # pragma: no cover

    def get(self, doc_id: str) -> Document | None:
        """Return the document with *doc_id*, or ``None``."""
        ...  # pragma: no cover

    def create(
        self,
        content: str,
        tags: Iterable[str] = (),
        *,
        timestamp: datetime | None = None,
    ) -> Document:
        """Create and persist a new document."""
        ...  # pragma: no cover

    def save(
        self, doc: Document, *, timestamp: datetime | None = None
    ) -> Document:
        """Persist content, tags and trash state of *doc*."""
        ...  # pragma: no cover

    def trash(
        self, doc: Document, *, timestamp: datetime | None = None
    ) -> Document:
        """Move *doc* to the trash."""
        ...  # pragma: no cover


class FileDocumentStore:
    """Directory-backed ``DocumentStore``: ``<root>/<id>.json`` per document.

    Args:
        root: Directory holding the records.  Created on first write.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self, tags: Iterable[str] = (), *, trashed: bool = False
    ) -> list[Document]:
        wanted = list(tags)
        docs = [
            doc
            for doc in self._iter_documents()
            if doc.trashed == trashed and doc.has_tags(wanted)
        ]
        docs.sort(key=lambda d: d.modified_at, reverse=True)
        return docs

    def get(self, doc_id: str) -> Document | None:
        path = self._record_path(doc_id)
        if not path.exists():
            return None
        return self._read(path)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        content: str,
        tags: Iterable[str] = (),
        *,
        timestamp: datetime | None = None,
    ) -> Document:
        now = timestamp or utcnow()
        doc = Document(
            id=uuid.uuid4().hex,
            content=content,
            created_at=now,
            modified_at=now,
        )
        for tag in tags:
            doc.add_tag(tag)
        self._write(doc)
        logger.debug("Created document %s", doc.id)
        return doc

    def save(
        self, doc: Document, *, timestamp: datetime | None = None
    ) -> Document:
        doc.modified_at = timestamp or utcnow()
        self._write(doc)
        return doc

    def trash(
        self, doc: Document, *, timestamp: datetime | None = None
    ) -> Document:
        doc.trashed = True
        return self.save(doc, timestamp=timestamp)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _record_path(self, doc_id: str) -> Path:
        return self._root / f"{doc_id}.json"

    def _iter_documents(self) -> Iterable[Document]:
        if not self._root.is_dir():
            return
        for path in sorted(self._root.glob("*.json")):
            try:
                yield self._read(path)
            except (OSError, ValueError, KeyError) as exc:
                logger.warning("Skipping unreadable record %s: %s", path, exc)

    @staticmethod
    def _read(path: Path) -> Document:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        return Document(
            id=data["id"],
            content=data.get("content", ""),
            tags=list(data.get("tags", [])),
            created_at=datetime.fromisoformat(data["created_at"]),
            modified_at=datetime.fromisoformat(data["modified_at"]),
            trashed=bool(data.get("trashed", False)),
        )

    def _write(self, doc: Document) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        record = {
            "id": doc.id,
            "content": doc.content,
            "tags": doc.tags,
            "created_at": doc.created_at.isoformat(),
            "modified_at": doc.modified_at.isoformat(),
            "trashed": doc.trashed,
        }
        fd, tmp_path = tempfile.mkstemp(dir=str(self._root), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(record, fh, indent=2)
            os.replace(tmp_path, self._record_path(doc.id))
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
