"""
Hierarchical configuration loader for vault_sync.

Finds config files by convention, expands ``!include`` and ``${VAR}``
references, and merges a global file with a project file:

* ``github`` and ``logging`` merge key by key, so a global token can be
  combined with a project-level repository;
* ``sync`` merges profile by profile; a project profile replaces a global
  profile of the same name as a whole;
* any other top-level key from the higher-precedence file wins.

Relative ``store_dir`` / ``state_dir`` values are anchored to the project
owning the file that declares them (the directory holding
``.vault_sync/``), so the CLI behaves the same from any subdirectory.

Usage:
    from vault_sync.config_loader import load_hierarchical_config

    config = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".vault_sync"

# Sections merged key by key rather than replaced.
_KEYED_SECTIONS = ("github", "logging")
_PROFILE_SECTION = "sync"
_PROFILE_PATH_KEYS = ("store_dir", "state_dir")

# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` with environment values.

    An unset or empty variable becomes its default, or ``""`` without one.
    A ``${`` with no closing brace is left as is.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# YAML loading with !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``SafeLoader`` with an ``!include path`` tag.

    Included paths are relative to the including file.  The chain of open
    files is kept per load so include cycles fail instead of recursing.
    """

    def __init__(self, stream, chain: tuple[Path, ...] = ()) -> None:
        super().__init__(stream)
        self.chain = chain

    def construct_include(self, node: yaml.ScalarNode) -> Any:
        target = Path(self.construct_scalar(node)).expanduser()
        if not target.is_absolute():
            target = self.chain[-1].parent / target
        target = target.resolve()

        if target in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, target))
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.exists():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {self.chain[-1]})"
            )
        return load_yaml(target, _chain=self.chain)


ConfigLoader.add_constructor("!include", ConfigLoader.construct_include)


def load_yaml(path: Path, *, _chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following ``!include`` tags."""
    path = Path(path).resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh, chain=(*_chain, path))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _global_config_path() -> Path:
    return Path.home() / ".config" / "vault_sync" / "config.yml"


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``VAULT_SYNC_CONFIG`` env var (explicit single path).
        2. ``.vault_sync/config.yml`` in CWD or the nearest parent that
           has one (project-level).
        3. ``.vault_sync/config.yaml`` next to it (alternate extension).
        4. ``~/.config/vault_sync/config.yml`` (global).
    """
    candidates: list[Path] = []

    env_path = os.environ.get("VAULT_SYNC_CONFIG")
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project = find_project_dir()
    if project is not None:
        candidates.append(project / CONFIG_DIR_NAME / "config.yml")
        candidates.append(project / CONFIG_DIR_NAME / "config.yaml")

    candidates.append(_global_config_path())

    seen: set[Path] = set()
    found: list[Path] = []
    for path in candidates:
        if path.exists() and path not in seen:
            seen.add(path)
            found.append(path)
    return found


def find_project_dir(start: Path | None = None) -> Path | None:
    """Nearest directory at or above *start* that holds ``.vault_sync/``.

    The home directory itself is not treated as a project, since
    ``~/.vault_sync`` would otherwise shadow every project below it.
    """
    here = (start or Path.cwd()).resolve()
    home = Path.home().resolve()
    for directory in (here, *here.parents):
        if directory == home:
            break
        if (directory / CONFIG_DIR_NAME).is_dir():
            return directory
    return None


def _anchor_dir(config_path: Path) -> Path:
    """Directory relative profile paths in *config_path* resolve against."""
    parent = config_path.parent
    if parent.name == CONFIG_DIR_NAME:
        return parent.parent
    return parent


# ---------------------------------------------------------------------------
# Starter config
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# vault-sync configuration
#
# Repository settings can also be set via environment variables:
#   GITHUB_TOKEN, VAULT_SYNC_OWNER, VAULT_SYNC_REPO, VAULT_SYNC_BRANCH
#
# github:
#   token: ${GITHUB_TOKEN}
#   owner: your-name
#   repo: vault
#   branch: main
#
# Sync profiles (local document store <-> remote subtree).  Relative
# directories are resolved against the folder holding .vault_sync/.
#
# sync:
#   vault:
#     store_dir: .vault_sync/documents
#     state_dir: .vault_sync
#     root: ""
#     inbox: inbox
#     managed_tag: vault-sync
#     direction: bidirectional
#     mode: incremental
#     conflict_strategy: interactive
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Config file that should be used (or created).

    The highest-precedence existing file, otherwise
    ``CWD / .vault_sync / config.yml``.  Nothing is created here; see
    ``ensure_config()``.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / CONFIG_DIR_NAME / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter one if none exists.

    Args:
        target: Where to write when nothing exists yet.  Defaults to
            ``resolve_config_path()``.

    Returns:
        Path to the config file (existing or newly created).
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def _anchor_profiles(data: dict[str, Any], base: Path) -> None:
    profiles = data.get(_PROFILE_SECTION)
    if not isinstance(profiles, dict):
        return
    for profile in profiles.values():
        if not isinstance(profile, dict):
            continue
        for key in _PROFILE_PATH_KEYS:
            value = profile.get(key)
            if isinstance(value, str) and value:
                path = Path(value).expanduser()
                if not path.is_absolute():
                    path = base / path
                profile[key] = str(path)


def merge_config(lower: dict[str, Any], higher: dict[str, Any]) -> dict[str, Any]:
    """Merge *higher* (more specific) over *lower*.

    Keyed sections and the profile map merge one level deep; everything
    else is replaced.
    """
    merged = dict(lower)
    for key, value in higher.items():
        below = merged.get(key)
        if (
            key in (*_KEYED_SECTIONS, _PROFILE_SECTION)
            and isinstance(below, dict)
            and isinstance(value, dict)
        ):
            merged[key] = {**below, **value}
        else:
            merged[key] = value
    return merged


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest to highest precedence with
    ``merge_config()``.  Each file has its environment references
    expanded and its relative profile paths anchored before it is merged.

    Returns an empty dict when no config files exist (zero-config).
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found; using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        data = load_yaml(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Config file %s has non-dict root (%s); skipping",
                path,
                type(data).__name__,
            )
            continue
        data = _interpolate_recursive(data)
        _anchor_profiles(data, _anchor_dir(path))
        merged = merge_config(merged, data)

    return merged
