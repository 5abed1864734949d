"""Startup and shutdown of the MCP server.

Startup resolves repository settings, checks that the repository is
reachable and reports the configured sync profiles.  Shutdown closes the
client's HTTP sessions.  All user feedback goes to stderr because stdout
carries the JSON-RPC stream.
"""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import UnifiedConfig, build_config, remote_fallbacks
from ..core.async_utils import reset_profile_locks, run_sync
from ..core.client import GitHubClient

logger = logging.getLogger(__name__)

_CREDENTIALS_HINT = "Check GITHUB_TOKEN, VAULT_SYNC_OWNER, VAULT_SYNC_REPO."


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


def _announce(msg: str, *args: Any) -> None:
    logger.info(msg, *args)
    _stderr_print("  " + (msg % args if args else msg))


def _resolve_settings(
    overrides: dict[str, Any],
) -> tuple[Config, UnifiedConfig]:
    """Merge CLI overrides, environment and config files into a Config.

    Precedence per field: CLI > env vars (``.env`` included) > YAML.

    Raises:
        ValueError: If a required repository setting is missing.
    """
    # .env first so ${VAR} references in YAML can use its values
    load_dotenv()

    sources = []
    config_files = discover_config_files()
    unified = build_config(load_hierarchical_config())
    if config_files:
        sources.append(f"config file: {config_files[0]}")
    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")

    config = load_config(
        token=overrides.get("token"),
        owner=overrides.get("owner"),
        repo=overrides.get("repo"),
        branch=overrides.get("branch"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=remote_fallbacks(unified) if config_files else None,
    )
    _announce("Configuration loaded from: %s", ", ".join(sources))
    _announce("Repository: %s/%s@%s", config.owner, config.repo, config.branch)
    return config, unified


def _describe_profiles(unified: UnifiedConfig) -> list[str]:
    if not unified.sync:
        name, profile = unified.profile()
        return [f"{name} (default, store {profile.store_dir})"]
    return [
        f"{name} ({profile.direction}, root '{profile.root or '/'}')"
        for name, profile in unified.sync.items()
    ]


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Set up the GitHub client for the lifetime of the server.

    Fails fast: a configuration error or an unreachable repository stops
    the server before it accepts a client connection.

    Args:
        config_overrides: Values from the command line (token, owner,
            repo, branch, debug).

    Yields:
        Dict with ``client`` (the GitHubClient) and ``profiles`` (names of
        the configured sync profiles).

    Raises:
        RuntimeError: If configuration is invalid or the repository is
            unreachable.
    """
    logger.info("MCP server starting...")
    _stderr_print("Vault Sync MCP Server starting...")

    try:
        config, unified = _resolve_settings(config_overrides or {})
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(f"  {_CREDENTIALS_HINT}")
        raise RuntimeError(
            f"Configuration error: {e}. {_CREDENTIALS_HINT}"
        ) from e

    _announce("Validating repository access...")
    client = GitHubClient(config)
    try:
        full_name = await run_sync(client.validate_connection)
    except Exception as e:
        client.close()
        logger.error("Failed to connect to GitHub: %s", e)
        _stderr_print("ERROR: GitHub connection failed.")
        _stderr_print(f"  {e}")
        _stderr_print(f"  {_CREDENTIALS_HINT}")
        raise RuntimeError(
            f"GitHub connection failed: {e}. {_CREDENTIALS_HINT}"
        ) from e

    _announce("Connected to %s", full_name)
    for line in _describe_profiles(unified):
        _announce("Sync profile: %s", line)
    _stderr_print("Server ready. Waiting for MCP client connection...")

    reset_profile_locks()
    try:
        yield {"client": client, "profiles": list(unified.sync) or ["vault"]}
    finally:
        client.close()
        logger.info("MCP server shutting down")
        _stderr_print("Vault Sync MCP Server shutting down.")
