"""Contract between the reconciler and an external source of documents.

An adapter exposes one external source (a hosted git repository, a notes
vault on disk...) as a flat set of repository-relative file paths.  All
methods are blocking; the reconciler offloads them to worker threads for
parallel runs, so implementations must be safe to call from several
threads at once.

Failures are reported as ``docsync.errors.SourceError`` subclasses.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from docsync.sync.models import SourceType


@runtime_checkable
class SourceAdapter(Protocol):
    """Read/write access to one kind of external document source.

    ``auth`` is the repository's access token (``None`` when the source
    needs no credentials).
    """

    source_type: SourceType

    def list_paths(self, auth: str | None, owner: str, repo: str) -> list[str]:
        """Return every file path in the repository."""
        ...

    def get_content(
        self, auth: str | None, owner: str, repo: str, path: str
    ) -> str:
        """Return the raw text of the file at *path*."""
        ...

    def get_content_by_installation(
        self, installation_id: int, owner: str, repo: str, path: str
    ) -> str:
        """Like ``get_content`` but authenticated as an app installation."""
        ...

    def get_revision(
        self, auth: str | None, owner: str, repo: str, path: str
    ) -> str | None:
        """Return the current revision of *path*, or ``None`` if absent."""
        ...

    def write_content(
        self,
        auth: str | None,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        previous_revision: str | None = None,
    ) -> str:
        """Create or update *path* and return the new revision.

        ``previous_revision`` must name the current revision when the file
        exists; a stale value raises ``SourceConflictError``.
        """
        ...
