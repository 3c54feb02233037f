"""Tests for docsync.config_loader -- hierarchical config loading."""

import textwrap

import pytest
import yaml

from docsync.config_loader import (
    _interpolate_recursive,
    _load_yaml_with_includes,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    resolve_config_path,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """CWD and HOME inside tmp_path, no DOCSYNC_CONFIG."""
    project = tmp_path / "project"
    home = tmp_path / "home"
    project.mkdir()
    home.mkdir()
    monkeypatch.delenv("DOCSYNC_CONFIG", raising=False)
    monkeypatch.chdir(project)
    monkeypatch.setenv("HOME", str(home))
    return project, home


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("GH_TOKEN_X", "abc")
        assert interpolate_env_vars("${GH_TOKEN_X}") == "abc"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset_or_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-ja}") == "ja"
        assert interpolate_env_vars("${EMPTY_VAR:-ja}") == "ja"

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("DOC_LANG", "en")
        assert interpolate_env_vars("${DOC_LANG:-ja}") == "en"

    def test_unterminated_reference_kept(self):
        assert interpolate_env_vars("${NO_CLOSE") == "${NO_CLOSE"

    def test_recursive(self, monkeypatch):
        monkeypatch.setenv("STATE", "/var/docsync")
        data = {"storage": {"state_dir": "${STATE}"}, "n": [1, "${STATE}"]}
        assert _interpolate_recursive(data) == {
            "storage": {"state_dir": "/var/docsync"},
            "n": [1, "/var/docsync"],
        }


# -------------------------------------------------------------------------
# !include
# -------------------------------------------------------------------------


class TestIncludeDirective:
    def test_include_relative_file(self, tmp_path):
        _write(tmp_path / "repos.yml", "- id: a\n  owner: o\n  name: n\n")
        main = _write(tmp_path / "config.yml", "repositories: !include repos.yml\n")
        data = _load_yaml_with_includes(main)
        assert data["repositories"][0]["id"] == "a"

    def test_nested_includes(self, tmp_path):
        _write(tmp_path / "sub" / "leaf.yml", "root: /vaults\n")
        _write(tmp_path / "sub" / "vault.yml", "!include leaf.yml\n")
        main = _write(tmp_path / "config.yml", "vault: !include sub/vault.yml\n")
        assert _load_yaml_with_includes(main) == {"vault": {"root": "/vaults"}}

    def test_missing_include(self, tmp_path):
        main = _write(tmp_path / "config.yml", "vault: !include nope.yml\n")
        with pytest.raises(FileNotFoundError, match="Include file not found"):
            _load_yaml_with_includes(main)

    def test_circular_include(self, tmp_path):
        _write(tmp_path / "a.yml", "x: !include b.yml\n")
        _write(tmp_path / "b.yml", "y: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            _load_yaml_with_includes(tmp_path / "a.yml")

    def test_global_safe_loader_not_polluted(self, tmp_path):
        with pytest.raises(yaml.constructor.ConstructorError):
            yaml.safe_load("x: !include other.yml\n")


# -------------------------------------------------------------------------
# Discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    def test_nothing_found(self, isolated):
        assert discover_config_files() == []

    def test_order(self, isolated, monkeypatch, tmp_path):
        project, home = isolated
        explicit = _write(tmp_path / "custom.yml", "{}\n")
        proj_yml = _write(project / ".docsync" / "config.yml", "{}\n")
        proj_yaml = _write(project / ".docsync" / "config.yaml", "{}\n")
        xdg = _write(home / ".config" / "docsync" / "config.yml", "{}\n")
        monkeypatch.setenv("DOCSYNC_CONFIG", str(explicit))

        found = discover_config_files()

        assert [p.resolve() for p in found] == [
            explicit.resolve(),
            proj_yml.resolve(),
            proj_yaml.resolve(),
            xdg.resolve(),
        ]

    def test_missing_explicit_file_ignored(self, isolated, monkeypatch):
        monkeypatch.setenv("DOCSYNC_CONFIG", "/does/not/exist.yml")
        assert discover_config_files() == []


# -------------------------------------------------------------------------
# Merge
# -------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    def test_zero_config(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_replaces_global_sections(self, isolated):
        project, home = isolated
        _write(
            home / ".config" / "docsync" / "config.yml",
            """
            github:
              token: global-token
              ref: main
            storage:
              state_dir: /global/state
            """,
        )
        _write(
            project / ".docsync" / "config.yml",
            """
            github:
              token: project-token
            """,
        )

        data = load_hierarchical_config()

        assert data["github"] == {"token": "project-token"}
        assert data["storage"] == {"state_dir": "/global/state"}

    def test_env_interpolated_after_merge(self, isolated, monkeypatch):
        project, _ = isolated
        monkeypatch.setenv("MY_GH_TOKEN", "from-env")
        _write(
            project / ".docsync" / "config.yml",
            "github:\n  token: ${MY_GH_TOKEN}\n",
        )
        assert load_hierarchical_config()["github"]["token"] == "from-env"

    def test_non_dict_root_skipped(self, isolated, caplog):
        project, _ = isolated
        _write(project / ".docsync" / "config.yml", "- just\n- a list\n")
        assert load_hierarchical_config() == {}
        assert "non-dict root" in caplog.text

    def test_broken_yaml_raises(self, isolated):
        project, _ = isolated
        _write(project / ".docsync" / "config.yml", "github: [oops\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()


# -------------------------------------------------------------------------
# Bootstrapping
# -------------------------------------------------------------------------


class TestEnsureConfig:
    def test_default_path(self, isolated):
        project, _ = isolated
        assert resolve_config_path() == project / ".docsync" / "config.yml"

    def test_writes_starter(self, isolated):
        project, _ = isolated
        path = ensure_config()
        assert path == project / ".docsync" / "config.yml"
        text = path.read_text(encoding="utf-8")
        assert "repositories:" in text
        # Starter is fully commented out, so it loads as zero-config
        assert load_hierarchical_config() == {}

    def test_existing_file_kept(self, isolated):
        project, _ = isolated
        existing = _write(project / ".docsync" / "config.yml", "vault: {}\n")
        assert ensure_config() == existing
        assert existing.read_text(encoding="utf-8") == "vault: {}\n"
