"""Unified configuration schema for vault_sync.

Defines Pydantic models for the config file with dedicated sections for the
GitHub connection, named sync profiles, and logging.  Includes an adapter
that folds the ``github`` section into the ``Config`` dataclass.

Usage:
    from vault_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    profile = unified.sync["vault"]
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """GitHub repository connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    token: str | None = Field(default=None, description="Access token")
    owner: str | None = Field(default=None, description="Repository owner")
    repo: str | None = Field(default=None, description="Repository name")
    branch: str | None = Field(default=None, description="Branch to sync")
    api_url: str | None = Field(default=None, description="API base URL")
    timeout: int = Field(
        default=30, ge=1, le=600, description="Request timeout (seconds)"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


DEFAULT_FOLDER_TAGS = [
    "daily",
    "weekly",
    "monthly",
    "quarterly",
    "yearly",
    "plans",
    "projects",
    "tasks",
    "reference",
]


class SyncProfileConfig(BaseModel):
    """One named sync profile: a local store mirrored to a remote subtree.

    Attributes:
        store_dir: Directory holding the local document records.
        state_dir: Directory holding the checkpoint file.
        root: Remote subtree prefix (``""`` for the repository root).
        extension: Only remote files with this suffix are managed.
        inbox: Directory (below ``root``) used as a staging area; never synced.
        managed_tag: Base tag carried by every sync-managed document.
        folder_tags: Ordered folder tags, most specific first, used to
            derive a remote path for new local documents.
        default_folder: Folder used when no folder tag matches.
        direction: ``bidirectional``, ``pull`` or ``push``.
        mode: Default scan mode, ``incremental`` or ``full``.
        conflict_strategy: How conflict batches are decided when nobody is
            asked interactively.
        confirm_deletions: Pre-approve destructive actions in unattended runs.
    """

    store_dir: str = ".vault_sync/documents"
    state_dir: str = ".vault_sync"
    root: str = ""
    extension: str = ".md"
    inbox: str = "inbox"
    managed_tag: str = "vault-sync"
    folder_tags: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FOLDER_TAGS)
    )
    default_folder: str = "notes"
    direction: Literal["bidirectional", "pull", "push"] = "bidirectional"
    mode: Literal["incremental", "full"] = "incremental"
    conflict_strategy: Literal[
        "interactive", "markers", "local-wins", "remote-wins", "abort"
    ] = "interactive"
    confirm_deletions: bool = False

    model_config = {"frozen": True}

    @field_validator("root")
    @classmethod
    def _normalise_root(cls, value: str) -> str:
        value = value.strip().strip("/")
        return f"{value}/" if value else ""

    @field_validator("extension")
    @classmethod
    def _normalise_extension(cls, value: str) -> str:
        value = value.strip()
        if value and not value.startswith("."):
            value = "." + value
        return value


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()`` (zero-config)
    is always valid.
    """

    github: RemoteConfig = Field(default_factory=RemoteConfig)
    sync: dict[str, SyncProfileConfig] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    def profile(self, name: str | None = None) -> tuple[str, SyncProfileConfig]:
        """Return ``(name, profile)``, defaulting to the only/first profile.

        With no profiles configured, a default profile named ``vault`` is
        returned.

        Raises:
            KeyError: If *name* is given but not configured.
        """
        if name is not None:
            if name not in self.sync:
                raise KeyError(name)
            return name, self.sync[name]
        if not self.sync:
            return "vault", SyncProfileConfig()
        first = next(iter(self.sync))
        return first, self.sync[first]


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully -- anything absent gets defaults.
    A ``sync`` section set to ``null`` in YAML is treated as empty.
    """
    if not raw_data:
        return UnifiedConfig()

    data = dict(raw_data)
    if data.get("sync") is None:
        data.pop("sync", None)
    return UnifiedConfig(**data)


def remote_fallbacks(unified: UnifiedConfig) -> dict:
    """Return the non-None ``github`` values for ``load_config()``."""
    return {
        k: v
        for k, v in unified.github.model_dump().items()
        if v is not None
    }
