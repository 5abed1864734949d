"""Local document store used as the mutable side of the sync."""

from .documents import Document, DocumentStore, FileDocumentStore

__all__ = ["Document", "DocumentStore", "FileDocumentStore"]
