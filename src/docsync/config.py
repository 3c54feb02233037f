"""Runtime configuration for the docsync MCP server.

Reads settings from CLI args, environment variables, .env files, and the
YAML config (see ``docsync.config_loader``).

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_TOKEN: Default GitHub access token (optional)
    DOCSYNC_GITHUB_API_URL: GitHub REST API base URL (optional, default: https://api.github.com)
    DOCSYNC_VAULT_ROOT: Directory holding local vaults (required for obsidian repositories)
    DOCSYNC_STATE_DIR: JSON content store directory (optional, default: in-memory)
    DOCSYNC_MAX_PARALLEL: Max concurrent source requests (optional, default: 4)
    DOCSYNC_DEFAULT_LANGUAGE: Language of documents that name none (optional, default: ja)
    DOCSYNC_DEBUG: Enable debug logging (optional, default: false)
    DOCSYNC_READ_ONLY: Only expose read-only MCP tools (optional, default: false)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from docsync.config_schema import UnifiedConfig
from docsync.content.models import DEFAULT_LANGUAGE
from docsync.sync.github import DEFAULT_API_URL
from docsync.sync.models import LinkedRepository, SourceType

logger = logging.getLogger(__name__)

MAX_PARALLEL_LIMIT = 64


@dataclass
class Config:
    github_token: str | None = field(default=None, repr=False)
    github_api_url: str = DEFAULT_API_URL
    github_ref: str = "HEAD"
    github_timeout: tuple[float, float] = (10, 60)
    vault_root: str | None = None
    state_dir: str | None = None
    max_parallel: int = 4
    default_language: str = DEFAULT_LANGUAGE
    document_extensions: tuple[str, ...] = (".md",)
    index_documents: tuple[str, ...] = ("README.md",)
    repositories: list[LinkedRepository] = field(default_factory=list)
    read_only: bool = False
    debug: bool = False
    log_level: str | None = None
    log_file: str | None = None
    log_format: str = "text"


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL, parallelism, language, extensions or
            repository list is invalid.
    """
    config.github_api_url = config.github_api_url.strip()
    if not config.github_api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid GitHub API URL '{config.github_api_url}': "
            "must start with http:// or https://"
        )
    if not urlparse(config.github_api_url).hostname:
        raise ValueError(
            f"Invalid GitHub API URL '{config.github_api_url}': "
            "URL must include a hostname"
        )
    config.github_api_url = config.github_api_url.removesuffix("/")

    if not 1 <= config.max_parallel <= MAX_PARALLEL_LIMIT:
        raise ValueError(
            f"Invalid max_parallel {config.max_parallel}: "
            f"must be between 1 and {MAX_PARALLEL_LIMIT}"
        )

    if not config.default_language.strip():
        raise ValueError("Default language cannot be empty")

    for ext in config.document_extensions:
        if not ext.startswith(".") or len(ext) < 2:
            raise ValueError(
                f"Invalid document extension '{ext}': must look like '.md'"
            )

    seen: set[str] = set()
    for repo in config.repositories:
        if repo.id in seen:
            raise ValueError(f"Duplicate repository id '{repo.id}'")
        seen.add(repo.id)
        if repo.source_type == SourceType.OBSIDIAN and not config.vault_root:
            raise ValueError(
                f"Repository '{repo.id}' is an obsidian vault but no vault "
                "root is configured. Set DOCSYNC_VAULT_ROOT or vault.root."
            )
        if (
            repo.source_type == SourceType.GITHUB
            and not repo.access_token
            and repo.installation_id is None
        ):
            logger.warning(
                "Repository '%s' has no GitHub token; only public "
                "repositories can be read",
                repo.id,
            )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_int_env(key: str, low: int, high: int) -> int | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not low <= value <= high:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    github_token: str | None = None,
    vault_root: str | None = None,
    state_dir: str | None = None,
    max_parallel: int | None = None,
    default_language: str | None = None,
    debug: bool = False,
    read_only: bool = False,
    unified: UnifiedConfig | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > unified YAML config > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        github_token: Override default GitHub token.
        vault_root: Override vault root directory.
        state_dir: Override JSON content store directory.
        max_parallel: Override maximum concurrent source requests.
        default_language: Override default document language.
        debug: Enable debug logging (CLI flag).
        read_only: Only expose read-only tools (CLI flag).
        unified: Parsed YAML config (zero-config when None).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is malformed after checking all sources.
    """
    fb = unified or UnifiedConfig()

    # --- String fields: CLI > env > YAML > default ---

    final_token = (
        github_token or os.getenv("GITHUB_TOKEN") or fb.github.token or None
    )
    final_api_url = (
        os.getenv("DOCSYNC_GITHUB_API_URL")
        or fb.github.api_url
        or DEFAULT_API_URL
    )
    final_vault_root = (
        vault_root or os.getenv("DOCSYNC_VAULT_ROOT") or fb.vault.root or None
    )
    final_state_dir = (
        state_dir or os.getenv("DOCSYNC_STATE_DIR") or fb.storage.state_dir or None
    )
    final_language = (
        default_language
        or os.getenv("DOCSYNC_DEFAULT_LANGUAGE")
        or fb.sync.default_language
        or DEFAULT_LANGUAGE
    ).strip()

    # --- Numeric fields: CLI > env > YAML > default ---

    if max_parallel is not None:
        final_max_parallel = max_parallel
    else:
        env_parallel = _get_int_env(
            "DOCSYNC_MAX_PARALLEL", 1, MAX_PARALLEL_LIMIT
        )
        if env_parallel is not None:
            final_max_parallel = env_parallel
        elif fb.sync.max_parallel is not None:
            final_max_parallel = fb.sync.max_parallel
        else:
            final_max_parallel = 4

    # --- Boolean fields: CLI > env > default ---

    final_debug = debug or bool(_get_bool_env("DOCSYNC_DEBUG"))
    final_read_only = read_only or bool(_get_bool_env("DOCSYNC_READ_ONLY"))

    repositories = [
        LinkedRepository(
            id=repo.id,
            user_id=repo.user_id,
            owner=repo.owner,
            name=repo.name,
            source_type=SourceType(repo.source_type),
            default_branch=repo.default_branch,
            access_token=repo.token
            or (final_token if repo.source_type == "github" else None),
            installation_id=repo.installation_id,
        )
        for repo in fb.repositories
    ]

    config = Config(
        github_token=final_token,
        github_api_url=final_api_url,
        github_ref=fb.github.ref,
        github_timeout=(fb.github.connect_timeout, fb.github.read_timeout),
        vault_root=final_vault_root,
        state_dir=final_state_dir,
        max_parallel=final_max_parallel,
        default_language=final_language,
        document_extensions=tuple(fb.sync.document_extensions),
        index_documents=tuple(fb.sync.index_documents),
        repositories=repositories,
        read_only=final_read_only,
        debug=final_debug,
        log_level=fb.logging.level,
        log_file=fb.logging.file,
        log_format=fb.logging.format,
    )

    validate_config(config)

    return config
