"""Unified configuration schema for docsync.

Defines Pydantic models for the YAML config structure, with one section
per concern, and the adapter that turns it into the runtime ``Config``.

Usage:
    from docsync.config_schema import (
        UnifiedConfig, build_config, to_runtime_config,
    )

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_runtime_config(unified, cli_overrides={"state_dir": "..."})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    """GitHub connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    token: str | None = Field(
        default=None, description="Default access token for GitHub repositories"
    )
    api_url: str | None = Field(
        default=None, description="REST API base URL"
    )
    ref: str = Field(
        default="HEAD", description="Branch, tag or sha to read from"
    )
    connect_timeout: float = Field(default=10, gt=0)
    read_timeout: float = Field(default=60, gt=0)

    model_config = {"frozen": True}


class VaultConfig(BaseModel):
    """Local notes-vault settings."""

    root: str | None = Field(
        default=None, description="Directory holding one folder per vault"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Reconciliation tunables."""

    max_parallel: int | None = Field(
        default=None,
        ge=1,
        le=64,
        description="Maximum concurrent source requests (1-64)",
    )
    default_language: str | None = Field(
        default=None, description="Language of documents that name none"
    )
    document_extensions: list[str] = Field(default_factory=lambda: [".md"])
    index_documents: list[str] = Field(
        default_factory=lambda: ["README.md"]
    )

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Content store settings.

    Attributes:
        state_dir: Directory for the JSON content store; ``None`` keeps
            documents in memory only.
    """

    state_dir: str | None = Field(default=None, description="State directory")

    model_config = {"frozen": True}


class RepositoryConfig(BaseModel):
    """One linked repository.

    ``token`` falls back to ``github.token`` for GitHub repositories.
    """

    id: str = Field(min_length=1)
    user_id: str = Field(default="local", min_length=1)
    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)
    source_type: Literal["github", "obsidian"] = "github"
    default_branch: str = "main"
    token: str | None = None
    installation_id: int | None = None

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            LOG_LEVEL takes precedence.
        file: Optional log file path.
        format: ``text`` lines or one JSON object per record.
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: Literal["text", "json"] = Field(
        default="text", description="Log record format"
    )

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    always valid.
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    repositories: list[RepositoryConfig] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults; a section written as an empty YAML key
    (``vault:``) is treated as missing.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.

    Raises:
        pydantic.ValidationError: If a section is malformed.
    """
    if not raw_data:
        return UnifiedConfig()

    cleaned = {key: value for key, value in raw_data.items() if value is not None}
    return UnifiedConfig(**cleaned)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> runtime Config
# ---------------------------------------------------------------------------


def to_runtime_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Resolve *unified* plus environment and CLI values into a ``Config``.

    Precedence per field: CLI override > env var > unified config value >
    built-in default (see ``docsync.config.load_config``).

    CLI overrides dict keys: github_token, vault_root, state_dir,
    max_parallel, default_language, debug.

    Args:
        unified: The unified config produced by ``build_config()``.
        cli_overrides: Optional dict of CLI argument values.

    Returns:
        Validated ``Config`` instance.

    Raises:
        ValueError: If the resolved configuration is invalid.
    """
    # Import here to avoid circular imports (config.py imports config_schema)
    from .config import load_config

    overrides = cli_overrides or {}
    return load_config(
        github_token=overrides.get("github_token"),
        vault_root=overrides.get("vault_root"),
        state_dir=overrides.get("state_dir"),
        max_parallel=overrides.get("max_parallel"),
        default_language=overrides.get("default_language"),
        debug=bool(overrides.get("debug", False)),
        unified=unified,
    )
