"""Error taxonomy for the sync engine.

Convention:
- ``NotFoundError`` -- the remote file does not exist.  Expected, not a
  failure: the remote adapter turns it into ``None`` / ``False``.
- ``ConflictError`` -- optimistic-concurrency rejection (the remote hash
  moved).  Only the affected path is retried on the next run.
- ``TransportError`` -- network or HTTP failure.  Isolates one path; the
  run continues.  Fatal only when raised by the initial tree listing.
- ``HistoryUnavailableError`` -- commit history could not be queried.  The
  remote adapter converts it into ``None`` so the engine falls back to a
  full scan.
- ``MalformedMetadataError`` -- an embedded metadata block could not be
  parsed.  Never escapes the codec: malformed metadata is treated as absent.
"""

from __future__ import annotations


class VaultSyncError(Exception):
    """Base class for all sync errors."""


class NotFoundError(VaultSyncError):
    """Raised when a remote file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Remote file not found: {path}")
        self.path = path


class ConflictError(VaultSyncError):
    """Raised when a conditional write or delete is rejected.

    Attributes:
        path: Remote path that was being written.
        expected_sha: The hash the caller believed was current.
    """

    def __init__(
        self, path: str, expected_sha: str | None, detail: str = ""
    ) -> None:
        message = f"Remote file changed underneath us: {path}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
        self.path = path
        self.expected_sha = expected_sha


class TransportError(VaultSyncError):
    """Raised for network failures and unexpected HTTP responses.

    Attributes:
        status_code: HTTP status code, or ``None`` for connection errors.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HistoryUnavailableError(VaultSyncError):
    """Raised when recent commit history cannot be used for discovery."""


class MalformedMetadataError(VaultSyncError):
    """Raised by the metadata parser for an unparsable trailer line."""
