"""Reconcile stored documents with an external source.

The ``Reconciler`` mirrors every markdown file of a linked repository into
the content store (pull) and writes stored documents back (push):

* remote files without a stored document are **added**;
* stored documents whose remote file changed get a new version
  (**updated**) or are left alone (**unchanged**);
* stored documents whose file disappeared are **deleted**.

Every version created in one run shares a single commit id: the caller's
(e.g. the sha of the pushed git commit) or a fresh id per run.  A failing
file never blocks the others; its failure is recorded in the result.

Runs on the same repository must not overlap; callers serialise them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from functools import partial
from pathlib import PurePosixPath
from typing import Protocol

from pydantic import BaseModel, Field

from docsync.content.frontmatter import (
    ParsedDocument,
    parse_document,
    render_document,
)
from docsync.content.models import (
    DEFAULT_LANGUAGE,
    Content,
    Visibility,
    new_id,
    utcnow,
)
from docsync.content.versioning import VersioningService
from docsync.core.async_utils import get_semaphore, run_sync
from docsync.errors import (
    RepositoryNotFoundError,
    RepositoryNotLinkedError,
    SourceError,
)
from docsync.sync.adapters import SourceAdapter
from docsync.sync.models import (
    ItemOutcome,
    LinkedRepository,
    SourceType,
    SyncAction,
    SyncResult,
)
from docsync.sync.store import ContentRepository, RepositoryLookup
from docsync.sync.tree import (
    TreeOutcome,
    failed_outcome,
    guarded_process,
    reconcile_tree,
    reconcile_tree_async,
    sweep_leftovers,
)

logger = logging.getLogger(__name__)


class CancelEvent(Protocol):
    """Anything with ``is_set()`` (``threading.Event``, ``asyncio.Event``)."""

    def is_set(self) -> bool: ...


class ReconcilerOptions(BaseModel):
    """Tunables of a reconcile run.

    Attributes:
        document_extensions: File suffixes treated as documents.
        index_documents: Root-level file names that are repository
            indexes, not documents.
        default_language: Language for documents that name none.
        max_parallel: Worker bound for async runs when no process-wide
            semaphore is initialised.
    """

    document_extensions: tuple[str, ...] = (".md",)
    index_documents: tuple[str, ...] = ("README.md",)
    default_language: str = DEFAULT_LANGUAGE
    max_parallel: int = Field(default=4, ge=1)

    model_config = {"frozen": True}


class Reconciler:
    """Pull and push documents between a content store and a source.

    Args:
        contents: Content store.
        repositories: Lookup of linked repositories.
        versioning: Versioning service (a default one is created if None).
        options: Run tunables.
        clock: Callable returning the current time.
    """

    def __init__(
        self,
        contents: ContentRepository,
        repositories: RepositoryLookup,
        versioning: VersioningService | None = None,
        options: ReconcilerOptions | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.contents = contents
        self.repositories = repositories
        self.versioning = versioning or VersioningService(clock=clock)
        self.options = options or ReconcilerOptions()
        self._clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def is_document(self, path: str) -> bool:
        """True if *path* should be mirrored as a document."""
        suffix = PurePosixPath(path).suffix.lower()
        extensions = {ext.lower() for ext in self.options.document_extensions}
        if suffix not in extensions:
            return False
        return path not in self.options.index_documents

    def _check_link(
        self, repository: LinkedRepository, adapter: SourceAdapter
    ) -> None:
        if repository.source_type != adapter.source_type:
            raise RepositoryNotLinkedError(
                repository.id,
                expected=SourceType(adapter.source_type).value,
                actual=SourceType(repository.source_type).value,
            )

    def _find_repository(self, repository_id: str) -> LinkedRepository:
        repository = self.repositories.find_by_id(repository_id)
        if repository is None:
            raise RepositoryNotFoundError(repository_id)
        return repository

    def _list_documents(
        self, repository: LinkedRepository, adapter: SourceAdapter
    ) -> list[str]:
        """List document paths with the repository access token.

        Only file reads go through the app installation; an
        installation-only repository lists with no credentials.
        """
        try:
            paths = adapter.list_paths(
                repository.access_token, repository.owner, repository.name
            )
        except SourceError as exc:
            logger.error(
                "Failed to list files of %s: %s", repository.full_name, exc
            )
            raise
        return [path for path in paths if self.is_document(path)]

    def _local_by_path(
        self, repository: LinkedRepository
    ) -> dict[str, Content]:
        return {
            content.path: content
            for content in self.contents.find_by_repository_id(repository.id)
        }

    def _fetch(
        self,
        repository: LinkedRepository,
        adapter: SourceAdapter,
        path: str,
    ) -> str:
        if repository.uses_installation():
            return adapter.get_content_by_installation(
                repository.installation_id,
                repository.owner,
                repository.name,
                path,
            )
        return adapter.get_content(
            repository.access_token, repository.owner, repository.name, path
        )

    def _parse(
        self, raw: str, path: str, adapter: SourceAdapter
    ) -> ParsedDocument:
        return parse_document(
            raw,
            path,
            default_language=self.options.default_language,
            inline_tags=adapter.source_type == SourceType.OBSIDIAN,
        )

    def _new_content(
        self, repository: LinkedRepository, path: str, parsed: ParsedDocument
    ) -> Content:
        return Content.create(
            repository_id=repository.id,
            user_id=repository.user_id,
            path=path,
            title=parsed.title,
            body=parsed.body,
            metadata=parsed.metadata,
            visibility=parsed.visibility or Visibility.PRIVATE,
            created_at=self._clock(),
        )

    def _refresh(
        self, content: Content, parsed: ParsedDocument, commit_id: str
    ) -> Content | None:
        """Version *content* to match *parsed*; None when nothing changed."""
        candidate = content.replace(
            title=parsed.title, body=parsed.body, metadata=parsed.metadata
        )
        changes = self.versioning.calculate_diff(content, candidate)
        if changes.is_empty():
            return None
        return self.versioning.create_versioned_content(
            content, commit_id, changes
        )

    # ------------------------------------------------------------------
    # Per-path steps
    # ------------------------------------------------------------------

    def _pull_path(
        self,
        repository: LinkedRepository,
        adapter: SourceAdapter,
        commit_id: str,
        path: str,
        existing: Content | None,
    ) -> ItemOutcome:
        raw = self._fetch(repository, adapter, path)
        parsed = self._parse(raw, path, adapter)

        if existing is None:
            content = self.contents.save(
                self._new_content(repository, path, parsed)
            )
            logger.debug("Added %s as content %s", path, content.id)
            return ItemOutcome(
                path=path,
                action=SyncAction.ADDED,
                content=content,
                content_id=content.id,
            )

        updated = self._refresh(existing, parsed, commit_id)
        if updated is None:
            return ItemOutcome(
                path=path, action=SyncAction.UNCHANGED, content_id=existing.id
            )
        self.contents.save(updated)
        logger.debug("Updated %s at commit %s", path, commit_id)
        return ItemOutcome(
            path=path,
            action=SyncAction.UPDATED,
            content=updated,
            content_id=updated.id,
        )

    def _delete_path(self, path: str, content: Content) -> ItemOutcome:
        if not self.contents.delete(content.id):
            logger.debug("Content %s (%s) was already gone", content.id, path)
        else:
            logger.debug("Deleted content %s (%s)", content.id, path)
        return ItemOutcome(
            path=path, action=SyncAction.DELETED, content_id=content.id
        )

    def _push_path(
        self,
        repository: LinkedRepository,
        adapter: SourceAdapter,
        content: Content,
        message: str | None,
    ) -> Content:
        auth = repository.access_token
        revision = adapter.get_revision(
            auth, repository.owner, repository.name, content.path
        )
        verb = "Create" if revision is None else "Update"
        adapter.write_content(
            auth,
            repository.owner,
            repository.name,
            content.path,
            render_document(content),
            message or f"{verb} {content.path}",
            previous_revision=revision,
        )
        logger.debug(
            "%s %s in %s",
            "Created" if revision is None else "Updated",
            content.path,
            repository.full_name,
        )
        return content

    def _result(
        self,
        repository: LinkedRepository,
        started_at: datetime,
        tree: TreeOutcome,
    ) -> SyncResult:
        result = SyncResult(
            repository_id=repository.id,
            outcomes=tree.outcomes,
            started_at=started_at,
            completed_at=self._clock(),
            cancelled=tree.cancelled,
        )
        log = logger.warning if result.errors else logger.info
        log(
            "Finished sync of %s: %d added, %d updated, %d deleted, "
            "%d unchanged, %d skipped, %d failed%s",
            repository.full_name,
            len(result.added),
            len(result.updated),
            len(result.deleted),
            len(result.unchanged),
            len(result.skipped),
            len(result.errors),
            " (cancelled)" if result.cancelled else "",
        )
        return result

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def sync_repository(
        self,
        repository: LinkedRepository,
        adapter: SourceAdapter,
        *,
        commit_id: str | None = None,
        cancel_event: CancelEvent | None = None,
    ) -> SyncResult:
        """Mirror every document file of *repository* into the store.

        Args:
            repository: The repository to sync.
            adapter: Adapter for the repository's source.
            commit_id: Commit id for versions created by this run
                (a fresh id when None).
            cancel_event: Stops new per-file work once set.

        Returns:
            The per-file outcomes of the run.

        Raises:
            RepositoryNotLinkedError: If the adapter serves another source.
            SourceError: If the file listing fails.
        """
        started_at = self._clock()
        self._check_link(repository, adapter)
        commit_id = commit_id or new_id()
        logger.info(
            "Syncing %s from %s at commit %s",
            repository.full_name,
            SourceType(adapter.source_type).value,
            commit_id,
        )

        remote = self._list_documents(repository, adapter)
        tree = reconcile_tree(
            self._local_by_path(repository),
            remote,
            partial(self._pull_path, repository, adapter, commit_id),
            self._delete_path,
            is_cancelled=_poller(cancel_event),
        )
        return self._result(repository, started_at, tree)

    async def sync_repository_async(
        self,
        repository: LinkedRepository,
        adapter: SourceAdapter,
        *,
        commit_id: str | None = None,
        cancel_event: CancelEvent | None = None,
    ) -> SyncResult:
        """``sync_repository`` with per-file work fanned out to threads.

        Parallelism is bounded by the process-wide semaphore when it is
        initialised, else by ``options.max_parallel``.  Deletions happen
        only after every file has been processed.
        """
        started_at = self._clock()
        self._check_link(repository, adapter)
        commit_id = commit_id or new_id()
        logger.info(
            "Syncing %s from %s at commit %s (parallel)",
            repository.full_name,
            SourceType(adapter.source_type).value,
            commit_id,
        )

        remote = await run_sync(self._list_documents, repository, adapter)
        local = await run_sync(self._local_by_path, repository)
        semaphore = get_semaphore() or asyncio.Semaphore(
            self.options.max_parallel
        )
        tree = await reconcile_tree_async(
            local,
            remote,
            partial(self._pull_path, repository, adapter, commit_id),
            self._delete_path,
            semaphore=semaphore,
            is_cancelled=_poller(cancel_event),
        )
        return self._result(repository, started_at, tree)

    def sync_content(
        self,
        content: Content,
        adapter: SourceAdapter,
        *,
        commit_id: str | None = None,
    ) -> Content:
        """Refresh one stored document from its remote file.

        Returns *content* itself when the remote file matches it.

        Raises:
            RepositoryNotFoundError: If the owning repository is unknown.
            RepositoryNotLinkedError: If the adapter serves another source.
            SourceError: If the file cannot be fetched.
            PersistenceError: If the store fails to save.
        """
        repository = self._find_repository(content.repository_id)
        self._check_link(repository, adapter)

        raw = self._fetch(repository, adapter, content.path)
        parsed = self._parse(raw, content.path, adapter)
        updated = self._refresh(content, parsed, commit_id or new_id())
        if updated is None:
            logger.debug("Content %s is up to date", content.id)
            return content
        return self.contents.save(updated)

    def sync_changeset(
        self,
        repository: LinkedRepository,
        adapter: SourceAdapter,
        *,
        modified: Iterable[str],
        removed: Iterable[str],
        commit_id: str,
    ) -> SyncResult:
        """Apply one pushed commit: re-fetch *modified*, delete *removed*.

        Non-document paths are ignored.  A path listed as both modified
        and removed is treated as modified.
        """
        started_at = self._clock()
        self._check_link(repository, adapter)
        logger.info(
            "Applying commit %s to %s", commit_id, repository.full_name
        )

        modified_docs = list(
            dict.fromkeys(p for p in modified if self.is_document(p))
        )
        removed_docs = [
            p
            for p in dict.fromkeys(removed)
            if self.is_document(p) and p not in modified_docs
        ]

        def pull(path: str, _existing: None) -> ItemOutcome:
            existing = self.contents.find_by_repository_id_and_path(
                repository.id, path
            )
            return self._pull_path(
                repository, adapter, commit_id, path, existing
            )

        outcomes = [
            guarded_process(pull, path, None) for path in modified_docs
        ]

        leftovers: dict[str, Content] = {}
        for path in removed_docs:
            try:
                existing = self.contents.find_by_repository_id_and_path(
                    repository.id, path
                )
            except Exception as exc:
                logger.warning("Failed to look up %s: %s", path, exc)
                outcomes.append(
                    failed_outcome(path, SyncAction.DELETED, exc)
                )
                continue
            if existing is not None:
                leftovers[path] = existing
        outcomes.extend(sweep_leftovers(leftovers, self._delete_path))

        return self._result(
            repository, started_at, TreeOutcome(outcomes=outcomes)
        )

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push_content(
        self,
        content: Content,
        adapter: SourceAdapter,
        *,
        message: str | None = None,
    ) -> Content:
        """Write one stored document to its remote file.

        Creates the file when it does not exist, else updates it based on
        its current revision.

        Writes use the repository access token.  Installation-only
        repositories push with no credentials, which a private remote
        rejects with ``SourceAuthError``.

        Raises:
            RepositoryNotFoundError: If the owning repository is unknown.
            RepositoryNotLinkedError: If the adapter serves another source.
            SourceError: If the write fails.
        """
        repository = self._find_repository(content.repository_id)
        self._check_link(repository, adapter)
        return self._push_path(repository, adapter, content, message)

    def push_repository(
        self, repository: LinkedRepository, adapter: SourceAdapter
    ) -> SyncResult:
        """Write every stored document of *repository* to the source.

        Credentials follow ``push_content``.
        """
        started_at = self._clock()
        self._check_link(repository, adapter)
        logger.info("Pushing %s", repository.full_name)

        outcomes: list[ItemOutcome] = []
        for content in self.contents.find_by_repository_id(repository.id):
            try:
                pushed = self._push_path(repository, adapter, content, None)
            except Exception as exc:
                logger.warning("Failed to push %s: %s", content.path, exc)
                outcomes.append(
                    failed_outcome(
                        content.path, SyncAction.PUSHED, exc, content.id
                    )
                )
                continue
            outcomes.append(
                ItemOutcome(
                    path=content.path,
                    action=SyncAction.PUSHED,
                    content=pushed,
                    content_id=pushed.id,
                )
            )
        return self._result(
            repository, started_at, TreeOutcome(outcomes=outcomes)
        )


def _poller(cancel_event: CancelEvent | None) -> Callable[[], bool]:
    if cancel_event is None:
        return lambda: False
    return cancel_event.is_set
