"""Tests for docsync.config -- env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests the runtime
resolution path: validate_config() and load_config().
"""

import logging

import pytest

from docsync.config import Config, load_config, validate_config
from docsync.config_schema import (
    GitHubConfig,
    LoggingConfig,
    RepositoryConfig,
    StorageConfig,
    SyncConfig,
    UnifiedConfig,
    VaultConfig,
)
from docsync.sync.models import LinkedRepository, SourceType

_ENV_VARS = (
    "GITHUB_TOKEN",
    "DOCSYNC_GITHUB_API_URL",
    "DOCSYNC_VAULT_ROOT",
    "DOCSYNC_STATE_DIR",
    "DOCSYNC_MAX_PARALLEL",
    "DOCSYNC_DEFAULT_LANGUAGE",
    "DOCSYNC_READ_ONLY",
    "DOCSYNC_DEBUG",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)


def _repo(**overrides):
    data = {"id": "r1", "user_id": "u", "owner": "o", "name": "n"}
    data.update(overrides)
    return LinkedRepository(**data)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config() -- URL, tunables and repository checks."""

    def test_defaults_valid(self):
        validate_config(Config())  # should not raise

    def test_http_url_valid(self):
        validate_config(Config(github_api_url="http://localhost:8080/api/v3"))

    @pytest.mark.parametrize("url", ["api.github.com", "ftp://example.com"])
    def test_invalid_url_scheme(self, url):
        with pytest.raises(
            ValueError, match="must start with http:// or https://"
        ):
            validate_config(Config(github_api_url=url))

    def test_empty_host_url(self):
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(Config(github_api_url="https://"))

    def test_trailing_slash_stripped(self):
        config = Config(github_api_url="  https://ghe.example.com/api/v3/ ")
        validate_config(config)
        assert config.github_api_url == "https://ghe.example.com/api/v3"

    @pytest.mark.parametrize("value", [0, 65, -1])
    def test_max_parallel_out_of_range(self, value):
        with pytest.raises(ValueError, match="between 1 and 64"):
            validate_config(Config(max_parallel=value))

    def test_blank_language(self):
        with pytest.raises(ValueError, match="language cannot be empty"):
            validate_config(Config(default_language="  "))

    @pytest.mark.parametrize("ext", ["md", "."])
    def test_bad_extension(self, ext):
        with pytest.raises(ValueError, match="Invalid document extension"):
            validate_config(Config(document_extensions=(ext,)))

    def test_duplicate_repository_ids(self):
        config = Config(repositories=[_repo(), _repo()])
        with pytest.raises(ValueError, match="Duplicate repository id 'r1'"):
            validate_config(config)

    def test_vault_repository_needs_root(self):
        config = Config(
            repositories=[_repo(source_type=SourceType.OBSIDIAN)]
        )
        with pytest.raises(ValueError, match="no vault root"):
            validate_config(config)

    def test_vault_repository_with_root(self, tmp_path):
        config = Config(
            vault_root=str(tmp_path),
            repositories=[_repo(source_type=SourceType.OBSIDIAN)],
        )
        validate_config(config)

    def test_tokenless_github_repository_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            validate_config(Config(repositories=[_repo()]))
        assert "no GitHub token" in caplog.text

    def test_installation_repository_no_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            validate_config(Config(repositories=[_repo(installation_id=3)]))
        assert "no GitHub token" not in caplog.text


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() -- CLI > env > YAML > default resolution."""

    def test_zero_config(self):
        config = load_config()
        assert config.github_token is None
        assert config.github_api_url == "https://api.github.com"
        assert config.state_dir is None
        assert config.max_parallel == 4
        assert config.default_language == "ja"
        assert config.repositories == []
        assert config.read_only is False

    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        monkeypatch.setenv("DOCSYNC_VAULT_ROOT", "/vaults")
        monkeypatch.setenv("DOCSYNC_STATE_DIR", "/state")
        monkeypatch.setenv("DOCSYNC_DEFAULT_LANGUAGE", "en")
        config = load_config()
        assert config.github_token == "env-token"
        assert config.vault_root == "/vaults"
        assert config.state_dir == "/state"
        assert config.default_language == "en"

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        monkeypatch.setenv("DOCSYNC_STATE_DIR", "/env-state")
        config = load_config(github_token="cli-token", state_dir="/cli")
        assert config.github_token == "cli-token"
        assert config.state_dir == "/cli"

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("DOCSYNC_GITHUB_API_URL", "https://env.example.com")
        unified = UnifiedConfig(
            github=GitHubConfig(api_url="https://yaml.example.com")
        )
        assert (
            load_config(unified=unified).github_api_url
            == "https://env.example.com"
        )

    def test_yaml_values(self):
        unified = UnifiedConfig(
            github=GitHubConfig(
                token="yaml-token",
                ref="docs",
                connect_timeout=3,
                read_timeout=30,
            ),
            vault=VaultConfig(root="/v"),
            sync=SyncConfig(
                max_parallel=8,
                default_language="fr",
                document_extensions=[".md", ".markdown"],
            ),
            storage=StorageConfig(state_dir="/s"),
            logging=LoggingConfig(level="DEBUG", file="/tmp/docsync.log"),
        )
        config = load_config(unified=unified)
        assert config.github_token == "yaml-token"
        assert config.github_ref == "docs"
        assert config.github_timeout == (3, 30)
        assert config.vault_root == "/v"
        assert config.max_parallel == 8
        assert config.default_language == "fr"
        assert config.document_extensions == (".md", ".markdown")
        assert config.state_dir == "/s"
        assert config.log_level == "DEBUG"
        assert config.log_file == "/tmp/docsync.log"

    def test_max_parallel_from_env(self, monkeypatch):
        monkeypatch.setenv("DOCSYNC_MAX_PARALLEL", "12")
        assert load_config().max_parallel == 12

    @pytest.mark.parametrize("raw", ["abc", "0", "65"])
    def test_max_parallel_env_invalid(self, monkeypatch, raw):
        monkeypatch.setenv("DOCSYNC_MAX_PARALLEL", raw)
        with pytest.raises(ValueError, match="DOCSYNC_MAX_PARALLEL"):
            load_config()

    def test_max_parallel_cli_wins(self, monkeypatch):
        monkeypatch.setenv("DOCSYNC_MAX_PARALLEL", "12")
        assert load_config(max_parallel=2).max_parallel == 2

    @pytest.mark.parametrize("value", ["true", "1", "yes", "on", "TRUE"])
    def test_read_only_truthy(self, monkeypatch, value):
        monkeypatch.setenv("DOCSYNC_READ_ONLY", value)
        assert load_config().read_only is True

    @pytest.mark.parametrize("value", ["false", "0", "no", ""])
    def test_read_only_falsy(self, monkeypatch, value):
        monkeypatch.setenv("DOCSYNC_READ_ONLY", value)
        assert load_config().read_only is False

    def test_debug_flag_or_env(self, monkeypatch):
        assert load_config(debug=True).debug is True
        monkeypatch.setenv("DOCSYNC_DEBUG", "1")
        assert load_config().debug is True

    def test_repositories_built_from_yaml(self):
        unified = UnifiedConfig(
            github=GitHubConfig(token="shared"),
            vault=VaultConfig(root="/v"),
            repositories=[
                RepositoryConfig(id="a", owner="octo", name="docs"),
                RepositoryConfig(
                    id="b", owner="octo", name="wiki", token="own-token"
                ),
                RepositoryConfig(
                    id="c", owner="me", name="notes", source_type="obsidian"
                ),
            ],
        )
        repos = {r.id: r for r in load_config(unified=unified).repositories}
        assert repos["a"].access_token == "shared"
        assert repos["a"].user_id == "local"
        assert repos["b"].access_token == "own-token"
        assert repos["c"].source_type == SourceType.OBSIDIAN
        assert repos["c"].access_token is None

    def test_invalid_resolved_config_raises(self):
        unified = UnifiedConfig(
            repositories=[
                RepositoryConfig(
                    id="c", owner="me", name="notes", source_type="obsidian"
                )
            ]
        )
        with pytest.raises(ValueError, match="no vault root"):
            load_config(unified=unified)

    def test_token_not_in_repr(self):
        assert "secret" not in repr(load_config(github_token="secret"))
