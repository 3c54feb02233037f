"""
Hierarchical configuration loader for docsync.

Finds YAML config files by convention, resolves ``!include`` directives,
expands ``${VAR}`` / ``${VAR:-default}`` references and merges the files
with "project wins" semantics.

Usage:
    from docsync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DOCSYNC_CONFIG"
PROJECT_CONFIG_DIR = ".docsync"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    * ``${VAR}`` becomes the value of VAR, or ``""`` when unset.
    * ``${VAR:-default}`` falls back to *default* when VAR is unset or empty.
    * An unterminated ``${`` is kept as written.
    """

    def _expand(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        current = os.environ.get(name)
        if current:
            return current
        return default if default is not None else ""

    return _ENV_VAR_PATTERN.sub(_expand, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Expand env references in every string of a nested dict/list."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``yaml.SafeLoader`` with an ``!include`` tag.

    A subclass keeps the global SafeLoader untouched.  Each load carries
    the chain of files being included so cycles are reported instead of
    recursing forever.
    """


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by ``!include path/to/file.yml``.

    Relative paths are resolved against the including file's directory.
    """
    raw_path: str = loader.construct_scalar(node)
    target = Path(raw_path).expanduser()
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    chain: list[Path] = getattr(loader, "_include_stack", [])
    if target in chain:
        cycle = " -> ".join(str(p) for p in [*chain, target])
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return _load_yaml_with_includes(target, _include_stack=[*chain, target])


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Parse *path* with ``ConfigLoader``."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``DOCSYNC_CONFIG`` env var (explicit single path)
        2. ``.docsync/config.yml`` in CWD (project)
        3. ``.docsync/config.yaml`` in CWD (project, alternate extension)
        4. ``~/.config/docsync/config.yml`` (XDG global)
    """
    candidates: list[Path] = []

    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")

    candidates.append(Path.home() / ".config" / "docsync" / "config.yml")

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# 3a. Config bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# docsync configuration
#
# Credentials and paths can also come from the environment:
#   GITHUB_TOKEN, DOCSYNC_GITHUB_API_URL, DOCSYNC_VAULT_ROOT,
#   DOCSYNC_STATE_DIR, DOCSYNC_MAX_PARALLEL, DOCSYNC_DEFAULT_LANGUAGE
#
# github:
#   token: ${GITHUB_TOKEN}
#   api_url: https://api.github.com
#   ref: HEAD
#
# vault:
#   root: ~/vaults
#
# sync:
#   max_parallel: 4
#   default_language: ja
#   document_extensions: [".md"]
#   index_documents: ["README.md"]
#
# storage:
#   state_dir: .docsync/state
#
# repositories:
#   - id: notes
#     user_id: me
#     owner: octocat
#     name: notes
#     source_type: github
#   - id: journal
#     user_id: me
#     owner: me
#     name: journal
#     source_type: obsidian
#
# logging:
#   level: WARNING
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the active config file, or the default project path.

    Does not create anything; see ``ensure_config()``.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter file if none exists.

    Args:
        target: Where to create the starter file (defaults to
            ``resolve_config_path()``).
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
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge every discovered config file.

    Files are applied from lowest to highest precedence; a later file's
    top-level keys **replace** earlier ones (no deep merge).  Env
    references are expanded after merging.

    Returns an empty dict when no config file exists (zero-config).
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found; using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s); skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
