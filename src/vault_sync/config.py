"""Connection configuration for the GitHub-hosted vault.

Reads repository settings from CLI args, environment variables, .env files,
and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_TOKEN: Personal access token (required)
    VAULT_SYNC_OWNER: Repository owner (required)
    VAULT_SYNC_REPO: Repository name (required)
    VAULT_SYNC_BRANCH: Branch to sync (optional, default: main)
    VAULT_SYNC_API_URL: API base URL (optional, default: https://api.github.com)
    VAULT_SYNC_TIMEOUT: Request timeout in seconds (optional, default: 30)
"""

import logging
import os
import re
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass
class Config:
    token: str
    owner: str
    repo: str
    branch: str = "main"
    api_url: str = DEFAULT_API_URL
    timeout: int = 30
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL is malformed or a required value is empty.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if not config.token.strip():
        raise ValueError(
            "GitHub token cannot be empty. Set GITHUB_TOKEN environment variable."
        )

    for label, value in (("owner", config.owner), ("repo", config.repo)):
        if not _NAME_PATTERN.match(value):
            raise ValueError(
                f"Invalid repository {label} '{value}': use letters, digits, '.', '_' or '-'"
            )

    if not config.branch.strip():
        raise ValueError("Branch cannot be empty.")

    if not (1 <= config.timeout <= 600):
        raise ValueError(
            f"Invalid timeout {config.timeout}: must be between 1 and 600 seconds"
        )


def load_config(
    token: str | None = None,
    owner: str | None = None,
    repo: str | None = None,
    branch: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        token: Override access token.
        owner: Override repository owner.
        repo: Override repository name.
        branch: Override branch.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML ``github`` section.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a required value is missing after checking all sources.
    """
    fb = yaml_fallbacks or {}

    final_token = token or os.getenv("GITHUB_TOKEN") or fb.get("token")
    if not final_token:
        raise ValueError(
            "GitHub token not found. Set GITHUB_TOKEN environment variable, "
            "pass --token, or add 'token' to the github section of config.yml."
        )

    final_owner = owner or os.getenv("VAULT_SYNC_OWNER") or fb.get("owner")
    if not final_owner:
        raise ValueError(
            "Repository owner not found. Set VAULT_SYNC_OWNER or add 'owner' to config.yml."
        )

    final_repo = repo or os.getenv("VAULT_SYNC_REPO") or fb.get("repo")
    if not final_repo:
        raise ValueError(
            "Repository name not found. Set VAULT_SYNC_REPO or add 'repo' to config.yml."
        )

    final_branch = (
        branch or os.getenv("VAULT_SYNC_BRANCH") or fb.get("branch") or "main"
    )
    final_api_url = (
        os.getenv("VAULT_SYNC_API_URL") or fb.get("api_url") or DEFAULT_API_URL
    )

    timeout_raw = os.getenv("VAULT_SYNC_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = int(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid VAULT_SYNC_TIMEOUT '{timeout_raw}': must be a number between 1 and 600"
            ) from None
    elif "timeout" in fb:
        final_timeout = int(fb["timeout"])
    else:
        final_timeout = 30

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("VAULT_SYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    config = Config(
        token=final_token.strip(),
        owner=final_owner.strip(),
        repo=final_repo.strip(),
        branch=final_branch.strip(),
        api_url=final_api_url,
        timeout=final_timeout,
        debug=final_debug,
    )

    validate_config(config)

    return config
