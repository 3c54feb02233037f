"""Repository reconciliation between the content store and external sources.

Public API for mirroring markdown files of a GitHub repository or a local
notes vault into versioned documents, and for pushing documents back.

Architecture
------------
Every adapter exposes its source as a flat set of file paths.  A single
reconcile routine (``tree``) matches those paths against the stored
documents of the repository: matched paths are refreshed (and versioned
when they changed), new paths are added, and documents whose path is gone
are deleted.  Per-path failures are recorded, never raised.

Modules:

- ``reconciler`` -- ``Reconciler``: pull/push orchestration.
- ``tree``       -- shared reconcile loop (sequential and parallel).
- ``adapters``   -- ``SourceAdapter`` protocol.
- ``github``     -- ``GitHubSourceAdapter`` (REST API via ``requests``).
- ``vault``      -- ``LocalVaultAdapter`` (markdown files on disk).
- ``store``      -- content and repository stores.
- ``models``     -- ``LinkedRepository``, ``SyncAction``, ``ItemOutcome``,
  ``SyncResult``: core data contracts.
- ``reporter``   -- human-readable and JSON output.

Usage example
-------------
::

    from docsync.sync import (
        GitHubSourceAdapter,
        InMemoryContentRepository,
        InMemoryRepositoryStore,
        LinkedRepository,
        Reconciler,
        format_sync_result,
    )

    repo = LinkedRepository(
        id="r1", user_id="u1", owner="octo", name="notes",
        access_token=token,
    )
    repositories = InMemoryRepositoryStore([repo])
    reconciler = Reconciler(InMemoryContentRepository(), repositories)
    result = reconciler.sync_repository(repo, GitHubSourceAdapter())
    print(format_sync_result(result))
"""

from .adapters import SourceAdapter
from .github import GitHubSourceAdapter
from .models import (
    ItemOutcome,
    LinkedRepository,
    SourceType,
    SyncAction,
    SyncResult,
)
from .reconciler import Reconciler, ReconcilerOptions
from .reporter import (
    format_history,
    format_sync_result,
    format_version_diff,
    history_to_json,
    result_to_json,
)
from .store import (
    ContentRepository,
    InMemoryContentRepository,
    InMemoryRepositoryStore,
    JsonFileContentRepository,
    QueryOptions,
    RepositoryLookup,
)
from .vault import LocalVaultAdapter

__all__ = [
    "ContentRepository",
    "GitHubSourceAdapter",
    "InMemoryContentRepository",
    "InMemoryRepositoryStore",
    "ItemOutcome",
    "JsonFileContentRepository",
    "LinkedRepository",
    "LocalVaultAdapter",
    "QueryOptions",
    "Reconciler",
    "ReconcilerOptions",
    "RepositoryLookup",
    "SourceAdapter",
    "SourceType",
    "SyncAction",
    "SyncResult",
    "format_history",
    "format_sync_result",
    "format_version_diff",
    "history_to_json",
    "result_to_json",
]
