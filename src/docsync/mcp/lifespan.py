"""Lifespan management for MCP server startup and shutdown."""

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv

from ..config import Config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, to_runtime_config
from ..content.versioning import VersioningService
from ..core.async_utils import init_semaphore
from ..errors import RepositoryNotFoundError
from ..sync.adapters import SourceAdapter
from ..sync.github import GitHubSourceAdapter
from ..sync.models import LinkedRepository, SourceType
from ..sync.reconciler import Reconciler, ReconcilerOptions
from ..sync.store import (
    ContentRepository,
    InMemoryContentRepository,
    InMemoryRepositoryStore,
    JsonFileContentRepository,
)
from ..sync.vault import LocalVaultAdapter

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@dataclass
class ServerContext:
    """Services shared by every tool handler.

    Attributes:
        config: Resolved runtime configuration.
        contents: Document store.
        repositories: Linked repository store.
        reconciler: Pull/push orchestrator bound to the stores.
        versioning: History service used for restore and diff.
        adapters: One adapter per configured source kind.
    """

    config: Config
    contents: ContentRepository
    repositories: InMemoryRepositoryStore
    reconciler: Reconciler
    versioning: VersioningService
    adapters: dict[SourceType, SourceAdapter]
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, repr=False)

    def get_repository(self, repository_id: str) -> LinkedRepository:
        """Return the linked repository or raise RepositoryNotFoundError."""
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            raise RepositoryNotFoundError(repository_id)
        return repository

    def adapter_for(self, repository: LinkedRepository) -> SourceAdapter:
        """Return the adapter serving *repository*'s source kind.

        Raises:
            ValueError: If no adapter is configured for that kind.
        """
        adapter = self.adapters.get(SourceType(repository.source_type))
        if adapter is None:
            raise ValueError(
                f"No {SourceType(repository.source_type).value} source is "
                f"configured for repository '{repository.id}'"
            )
        return adapter

    def lock_for(self, repository_id: str) -> asyncio.Lock:
        """Per-repository lock so two runs never touch one repository."""
        lock = self._locks.get(repository_id)
        if lock is None:
            lock = self._locks[repository_id] = asyncio.Lock()
        return lock


def build_context(config: Config) -> ServerContext:
    """Wire stores, adapters and the reconciler from *config*."""
    contents: ContentRepository
    if config.state_dir:
        contents = JsonFileContentRepository(config.state_dir)
    else:
        contents = InMemoryContentRepository()
    repositories = InMemoryRepositoryStore(config.repositories)

    adapters: dict[SourceType, SourceAdapter] = {
        SourceType.GITHUB: GitHubSourceAdapter(
            api_url=config.github_api_url,
            ref=config.github_ref,
            timeout=config.github_timeout,
        )
    }
    if config.vault_root:
        adapters[SourceType.OBSIDIAN] = LocalVaultAdapter(config.vault_root)

    versioning = VersioningService()
    reconciler = Reconciler(
        contents,
        repositories,
        versioning=versioning,
        options=ReconcilerOptions(
            document_extensions=config.document_extensions,
            index_documents=config.index_documents,
            default_language=config.default_language,
            max_parallel=config.max_parallel,
        ),
    )
    return ServerContext(
        config=config,
        contents=contents,
        repositories=repositories,
        reconciler=reconciler,
        versioning=versioning,
        adapters=adapters,
    )


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present
    - Merge all sources via to_runtime_config(): CLI > env vars > .env > YAML > defaults
    - Build stores, adapters and the reconciler
    - Initialize the process-wide request semaphore

    Args:
        config_overrides: Optional dict with config values from CLI
            (github_token, vault_root, state_dir, max_parallel, default_language, debug)

    Yields:
        Dict with 'context' key containing the initialized ServerContext

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("docsync MCP Server starting...")

    try:
        # 1. Load .env early (before YAML, so ${VAR} interpolation can use .env values)
        load_dotenv()

        # 2. Load YAML config if present
        sources = []
        config_files = discover_config_files()
        unified = build_config(load_hierarchical_config())
        if config_files:
            sources.append(f"config file: {config_files[0]}")

        # 3. Merge with env vars and CLI overrides
        overrides = config_overrides or {}
        config = to_runtime_config(unified, cli_overrides=overrides)

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Check .docsync/config.yml and DOCSYNC_* environment variables."
        )
        raise RuntimeError(f"Configuration error: {e}") from e

    context = build_context(config)
    init_semaphore(config.max_parallel)

    storage = config.state_dir or "in-memory"
    logger.info(
        "Linked repositories: %d, storage: %s",
        len(config.repositories),
        storage,
    )
    _stderr_print(f"  Linked repositories: {len(config.repositories)}")
    _stderr_print(f"  Storage: {storage}")
    _stderr_print(f"  Parallel requests: {config.max_parallel}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"context": context}

    logger.info("MCP server shutting down")
    _stderr_print("docsync MCP Server shutting down.")
