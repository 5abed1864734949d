"""Tests for vault_sync.config -- env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests the repository
connection path: validate_config() and load_config().
"""

import pytest

from vault_sync.config import DEFAULT_API_URL, Config, load_config, validate_config

_ENV_VARS = (
    "GITHUB_TOKEN",
    "VAULT_SYNC_OWNER",
    "VAULT_SYNC_REPO",
    "VAULT_SYNC_BRANCH",
    "VAULT_SYNC_API_URL",
    "VAULT_SYNC_TIMEOUT",
    "VAULT_SYNC_DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def repo_env(clean_env):
    clean_env.setenv("GITHUB_TOKEN", "ghp_env")
    clean_env.setenv("VAULT_SYNC_OWNER", "alice")
    clean_env.setenv("VAULT_SYNC_REPO", "vault")
    return clean_env


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config() -- URL format and repository checks."""

    def test_valid_config(self):
        validate_config(Config(token="t", owner="alice", repo="vault"))

    def test_http_url_valid(self):
        config = Config(
            token="t", owner="alice", repo="vault", api_url="http://localhost:8080"
        )
        validate_config(config)

    @pytest.mark.parametrize("url", ["example.com", "ftp://example.com"])
    def test_invalid_scheme(self, url):
        config = Config(token="t", owner="alice", repo="vault", api_url=url)
        with pytest.raises(
            ValueError, match="must start with http:// or https://"
        ):
            validate_config(config)

    def test_empty_host(self):
        config = Config(token="t", owner="alice", repo="vault", api_url="https://")
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(config)

    def test_trailing_slash_stripped(self):
        config = Config(
            token="t",
            owner="alice",
            repo="vault",
            api_url="  https://ghe.example.com/api/v3/ ",
        )
        validate_config(config)
        assert config.api_url == "https://ghe.example.com/api/v3"

    def test_whitespace_token(self):
        config = Config(token="   ", owner="alice", repo="vault")
        with pytest.raises(ValueError, match="token cannot be empty"):
            validate_config(config)

    @pytest.mark.parametrize(
        "owner,repo,label",
        [("al ice", "vault", "owner"), ("alice", "va/ult", "repo")],
    )
    def test_invalid_names(self, owner, repo, label):
        config = Config(token="t", owner=owner, repo=repo)
        with pytest.raises(ValueError, match=f"Invalid repository {label}"):
            validate_config(config)

    def test_empty_branch(self):
        config = Config(token="t", owner="alice", repo="vault", branch=" ")
        with pytest.raises(ValueError, match="Branch cannot be empty"):
            validate_config(config)

    @pytest.mark.parametrize("timeout", [0, 601])
    def test_timeout_range(self, timeout):
        config = Config(token="t", owner="alice", repo="vault", timeout=timeout)
        with pytest.raises(ValueError, match="between 1 and 600"):
            validate_config(config)


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() -- precedence and required values."""

    def test_load_from_env_vars(self, repo_env):
        config = load_config()
        assert config.token == "ghp_env"
        assert config.owner == "alice"
        assert config.repo == "vault"
        assert config.branch == "main"
        assert config.api_url == DEFAULT_API_URL
        assert config.timeout == 30
        assert config.debug is False

    def test_cli_args_override_env(self, repo_env):
        config = load_config(
            token="ghp_cli", owner="bob", repo="notes", branch="dev"
        )
        assert (config.token, config.owner, config.repo, config.branch) == (
            "ghp_cli",
            "bob",
            "notes",
            "dev",
        )

    def test_env_overrides_yaml(self, repo_env):
        config = load_config(
            yaml_fallbacks={"owner": "yaml-owner", "branch": "yaml-branch"}
        )
        assert config.owner == "alice"
        assert config.branch == "yaml-branch"

    def test_yaml_fallbacks_only(self, clean_env):
        config = load_config(
            yaml_fallbacks={
                "token": "ghp_yaml",
                "owner": "carol",
                "repo": "kb",
                "api_url": "https://ghe.example.com/api/v3",
                "timeout": 45,
                "debug": True,
            }
        )
        assert config.token == "ghp_yaml"
        assert config.api_url == "https://ghe.example.com/api/v3"
        assert config.timeout == 45
        assert config.debug is True

    def test_missing_token_raises(self, clean_env):
        with pytest.raises(ValueError, match="GitHub token not found"):
            load_config()

    def test_missing_owner_raises(self, clean_env):
        clean_env.setenv("GITHUB_TOKEN", "t")
        with pytest.raises(ValueError, match="Repository owner not found"):
            load_config()

    def test_missing_repo_raises(self, clean_env):
        clean_env.setenv("GITHUB_TOKEN", "t")
        clean_env.setenv("VAULT_SYNC_OWNER", "alice")
        with pytest.raises(ValueError, match="Repository name not found"):
            load_config()

    def test_values_stripped(self, clean_env):
        config = load_config(token=" t ", owner=" alice ", repo=" vault ")
        assert (config.token, config.owner, config.repo) == ("t", "alice", "vault")

    def test_timeout_from_env(self, repo_env):
        repo_env.setenv("VAULT_SYNC_TIMEOUT", "90")
        assert load_config().timeout == 90

    def test_timeout_non_numeric(self, repo_env):
        repo_env.setenv("VAULT_SYNC_TIMEOUT", "abc")
        with pytest.raises(ValueError, match="Invalid VAULT_SYNC_TIMEOUT"):
            load_config()

    @pytest.mark.parametrize("value", ["true", "1", "yes", "on", "TRUE"])
    def test_debug_truthy_values(self, repo_env, value):
        repo_env.setenv("VAULT_SYNC_DEBUG", value)
        assert load_config().debug is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", ""])
    def test_debug_falsy_values(self, repo_env, value):
        repo_env.setenv("VAULT_SYNC_DEBUG", value)
        assert load_config(yaml_fallbacks={"debug": True}).debug is False

    def test_debug_flag_wins(self, repo_env):
        repo_env.setenv("VAULT_SYNC_DEBUG", "false")
        assert load_config(debug=True).debug is True

    def test_api_url_env(self, repo_env):
        repo_env.setenv("VAULT_SYNC_API_URL", "https://ghe.example.com/api/v3/")
        assert load_config().api_url == "https://ghe.example.com/api/v3"
