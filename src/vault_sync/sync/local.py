"""Local store adapter: the sync engine's view of the document store.

Wraps a ``DocumentStore`` with everything that depends on the embedded
metadata: finding the document that mirrors a remote path, deriving tags
from a path, deriving a path for a new document, and writing content plus
metadata in one save.

The path lookup keeps an in-memory ``path -> document id`` index.  A hit is
verified against the stored document before it is returned; a miss or a
stale hit triggers one scan of all managed documents, which rebuilds the
index and rewrites legacy metadata trailers in place.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import NamedTuple

from vault_sync.config_schema import SyncProfileConfig
from vault_sync.store.documents import Document, DocumentStore
from vault_sync.sync import metadata as meta
from vault_sync.sync.models import SyncStatus

logger = logging.getLogger(__name__)

ERROR_TAG = "sync-error"

# Key names written by earlier releases, folded into the current ones on read.
_LEGACY_KEYS = {
    "today_path": meta.KEY_PATH,
    "vault_path": meta.KEY_PATH,
    "today_sha": meta.KEY_SHA,
    "vault_sha": meta.KEY_SHA,
}

_SLUG_MAX = 50


class DocumentView(NamedTuple):
    """A document with its metadata decoded.

    Attributes:
        doc: The underlying document.
        metadata: Decoded metadata (legacy keys folded in).
        body: Content without the trailer.
        legacy: Whether the stored trailer needs rewriting.
    """

    doc: Document
    metadata: dict[str, str]
    body: str
    legacy: bool

    @property
    def path(self) -> str | None:
        return self.metadata.get(meta.KEY_PATH) or None

    @property
    def sha(self) -> str | None:
        return self.metadata.get(meta.KEY_SHA) or None

    @property
    def status(self) -> str | None:
        return self.metadata.get(meta.KEY_STATUS)

    @property
    def last_sync(self) -> datetime | None:
        return parse_timestamp(self.metadata.get(meta.KEY_LAST_SYNC))


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp, assuming UTC when no offset is given."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparsable timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def slugify(title: str) -> str:
    """Turn a title into a filename-safe slug (``untitled`` when empty)."""
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug[:_SLUG_MAX].strip("-") or "untitled"


def view(doc: Document) -> DocumentView:
    """Decode the metadata of *doc*."""
    extracted = meta.extract(doc.content)
    metadata = dict(extracted.metadata)
    legacy = extracted.legacy
    for old, new in _LEGACY_KEYS.items():
        if old in metadata:
            value = metadata.pop(old)
            metadata.setdefault(new, value)
            legacy = True
    return DocumentView(doc, metadata, extracted.body, legacy)


class LocalStoreAdapter:
    """Metadata-aware access to the local document store.

    Args:
        store: The underlying document store.
        profile: Sync profile (managed tag, root, folder tags).
    """

    def __init__(
        self,
        store: DocumentStore,
        profile: SyncProfileConfig | None = None,
    ) -> None:
        self.store = store
        self.profile = profile or SyncProfileConfig()
        self._index: dict[str, str] = {}

    @property
    def managed_tag(self) -> str:
        return self.profile.managed_tag

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def managed_documents(self) -> list[DocumentView]:
        """All non-trashed documents carrying the managed tag."""
        return [view(d) for d in self.store.query([self.managed_tag])]

    def trashed_documents(self) -> list[DocumentView]:
        """Trashed managed documents that still name a remote path."""
        return [
            v
            for v in (
                view(d)
                for d in self.store.query([self.managed_tag], trashed=True)
            )
            if v.path
        ]

    def unmapped_documents(self) -> list[DocumentView]:
        """Managed documents that have never been given a remote path."""
        return [v for v in self.managed_documents() if not v.path]

    def find_by_path(self, path: str) -> DocumentView | None:
        """Return the non-trashed document mirroring *path*, or ``None``."""
        doc_id = self._index.get(path)
        if doc_id is not None:
            doc = self.store.get(doc_id)
            if doc is not None and not doc.trashed:
                current = view(doc)
                if current.path == path:
                    return current
            logger.debug("Stale index entry for %s", path)
            self._index.pop(path, None)

        self.rebuild_index()
        doc_id = self._index.get(path)
        if doc_id is None:
            return None
        doc = self.store.get(doc_id)
        return view(doc) if doc is not None else None

    def rebuild_index(self, repair: bool = True) -> dict[str, str]:
        """Scan all managed documents and rebuild the path index.

        With *repair*, legacy trailers found during the scan are rewritten in
        the current format without changing the body.  When several documents
        claim the same path the most recently modified one is indexed.
        """
        index: dict[str, str] = {}
        documents = sorted(
            self.managed_documents(),
            key=lambda v: v.doc.modified_at,
            reverse=True,
        )
        for current in documents:
            if repair and current.legacy:
                current = self._rewrite_legacy(current)
            path = current.path
            if path and path not in index:
                index[path] = current.doc.id
        self._index = index
        logger.debug("Path index rebuilt: %d entries", len(index))
        return dict(index)

    def _rewrite_legacy(self, current: DocumentView) -> DocumentView:
        doc = current.doc
        doc.content = meta.embed(current.body, current.metadata)
        self.store.save(doc, timestamp=doc.modified_at)
        logger.info("Rewrote legacy metadata for document %s", doc.id)
        return view(doc)

    # ------------------------------------------------------------------
    # Path / tag derivation
    # ------------------------------------------------------------------

    def relative(self, path: str) -> str:
        root = self.profile.root
        return path[len(root) :] if root and path.startswith(root) else path

    def tags_for_path(self, path: str) -> list[str]:
        """Managed tag plus one lower-cased tag per directory segment."""
        tags = [self.managed_tag]
        for segment in self.relative(path).split("/")[:-1]:
            tag = segment.strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    def derive_path(self, doc: Document) -> str:
        """Derive a remote path for a document that has none.

        ``{root}{folder}/{YYYY-MM-DD}-{slug}{extension}`` where the folder is
        the first configured folder tag the document carries.
        """
        folder = next(
            (t for t in self.profile.folder_tags if t in doc.tags),
            self.profile.default_folder,
        )
        body = meta.strip(doc.content)
        first_line = body.split("\n", 1)[0]
        title = re.sub(r"^#+\s*", "", first_line).strip()
        date = doc.created_at.astimezone(timezone.utc).strftime("%Y-%m-%d")
        return (
            f"{self.profile.root}{folder}/{date}-{slugify(title)}"
            f"{self.profile.extension}"
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        path: str,
        body: str,
        metadata: Mapping[str, str],
        timestamp: datetime,
    ) -> DocumentView:
        """Create a managed document for *path* with path-derived tags."""
        doc = self.store.create(
            meta.embed(body, metadata),
            self.tags_for_path(path),
            timestamp=timestamp,
        )
        self._index[path] = doc.id
        return view(doc)

    def write(
        self,
        doc: Document,
        body: str,
        changes: Mapping[str, str | None],
        timestamp: datetime,
    ) -> DocumentView:
        """Replace the body of *doc* and merge *changes* into its metadata."""
        current = view(doc)
        merged = dict(current.metadata)
        for key, value in changes.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        doc.content = meta.embed(body, merged)
        self.store.save(doc, timestamp=timestamp)
        updated = view(doc)
        if updated.path:
            self._index[updated.path] = doc.id
        return updated

    def refresh_metadata(
        self,
        doc: Document,
        changes: Mapping[str, str | None],
        timestamp: datetime,
    ) -> DocumentView:
        """Update metadata only, keeping the body."""
        return self.write(doc, view(doc).body, changes, timestamp)

    def claim_path(
        self, doc: Document, path: str, timestamp: datetime
    ) -> DocumentView:
        """Map *doc* to *path* before its first upload.

        The document keeps no remote hash, so a run interrupted after the
        upload finds the remote file at the same path and only refreshes.
        """
        return self.refresh_metadata(
            doc,
            {
                meta.KEY_PATH: path,
                meta.KEY_STATUS: SyncStatus.NEEDS_PUSH.value,
            },
            timestamp,
        )

    def mark_synced(
        self,
        doc: Document,
        path: str,
        sha: str,
        timestamp: datetime,
        body: str | None = None,
    ) -> DocumentView:
        """Record a successful sync of *doc* against *path* at *sha*."""
        return self.write(
            doc,
            view(doc).body if body is None else body,
            {
                meta.KEY_PATH: path,
                meta.KEY_SHA: sha,
                meta.KEY_LAST_SYNC: format_timestamp(timestamp),
                meta.KEY_STATUS: SyncStatus.SYNCED.value,
            },
            timestamp,
        )

    def trash(self, doc: Document, timestamp: datetime) -> None:
        path = view(doc).path
        self.store.trash(doc, timestamp=timestamp)
        if path and self._index.get(path) == doc.id:
            del self._index[path]

    def forget_path(self, doc: Document, timestamp: datetime) -> None:
        """Drop the remote path and hash from a trashed document."""
        doc.content = meta.update(
            doc.content, {meta.KEY_PATH: None, meta.KEY_SHA: None}
        )
        self.store.save(doc, timestamp=timestamp)

    def flag_error(self, doc: Document) -> None:
        """Tag *doc* so the user can find documents that failed to push."""
        if ERROR_TAG not in doc.tags:
            doc.add_tag(ERROR_TAG)
            self.store.save(doc, timestamp=doc.modified_at)

    def clear_error(self, doc: Document) -> bool:
        if ERROR_TAG not in doc.tags:
            return False
        doc.remove_tag(ERROR_TAG)
        self.store.save(doc, timestamp=doc.modified_at)
        return True
