"""Bidirectional sync between the local document store and the GitHub vault.

Architecture
------------
Each synced document embeds its remote path, the git blob hash of the
remote file it was last synced with, and the sync time in a metadata
trailer (``metadata``).  Change detection compares that hash with the
remote tree listing and with the hash of the local body, so no separate
manifest is kept; only the per-profile checkpoint (``state``) is persisted
outside the documents.

Modules:

- ``metadata``  -- embed / extract the metadata trailer.
- ``local``     -- ``LocalStoreAdapter``: path lookup, tags, path derivation.
- ``remote``    -- ``RemoteStoreAdapter``: tree, files, change history.
- ``detector``  -- ``ChangeDetector``: hash-then-content classification.
- ``merger``    -- decision table and line-aligned conflict merge.
- ``resolver``  -- batch decision callbacks and strategies.
- ``engine``    -- ``SyncEngine``: pull, push and two-way runs.
- ``auditor``   -- ``DuplicateAuditor``: duplicates, diagnostics, errors.
- ``state``     -- ``CheckpointStore`` and ``content_hash``.
- ``models``    -- data contracts.
- ``reporter``  -- human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from vault_sync.config import load_config
    from vault_sync.config_schema import SyncProfileConfig
    from vault_sync.core.client import GitHubClient
    from vault_sync.store import FileDocumentStore
    from vault_sync.sync import (
        CheckpointStore,
        LocalStoreAdapter,
        RemoteStoreAdapter,
        SyncEngine,
        format_sync_report,
    )

    profile = SyncProfileConfig(root="vault")
    engine = SyncEngine(
        local=LocalStoreAdapter(FileDocumentStore(Path("docs")), profile),
        remote=RemoteStoreAdapter(GitHubClient(load_config()), profile),
        checkpoints=CheckpointStore(Path(".vault_sync")),
        profile_name="vault",
    )

    preview = engine.sync(dry_run=True)
    print(format_sync_report(preview))
"""

from .auditor import DuplicateAuditor, sync_status
from .engine import SyncEngine
from .local import LocalStoreAdapter
from .models import (
    ConflictDecision,
    SyncAction,
    SyncDirection,
    SyncMode,
    SyncReport,
    SyncResult,
)
from .remote import RemoteStoreAdapter
from .reporter import (
    format_sync_report,
    report_to_json,
)
from .state import CheckpointStore, content_hash

__all__ = [
    "CheckpointStore",
    "ConflictDecision",
    "DuplicateAuditor",
    "LocalStoreAdapter",
    "RemoteStoreAdapter",
    "SyncAction",
    "SyncDirection",
    "SyncEngine",
    "SyncMode",
    "SyncReport",
    "SyncResult",
    "content_hash",
    "format_sync_report",
    "report_to_json",
    "sync_status",
]
