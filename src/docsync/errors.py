"""Exception taxonomy for docsync.

Validation problems derive from ``ValueError`` so callers that already
handle bad input generically keep working.  Source and persistence
errors are recovered per item inside batch sync runs and propagate from
single-item operations.
"""

from __future__ import annotations


class DocsyncError(Exception):
    """Base class for all docsync errors."""


class ContentValidationError(DocsyncError, ValueError):
    """Malformed input to the document model or the versioning service."""


class VersionNotFoundError(DocsyncError, LookupError):
    """No version in a content's history carries the requested commit id."""

    def __init__(self, content_id: str, commit_id: str) -> None:
        super().__init__(
            f"Version with commit id '{commit_id}' not found "
            f"in history of content {content_id}"
        )
        self.content_id = content_id
        self.commit_id = commit_id


class RepositoryNotFoundError(DocsyncError, LookupError):
    """The repository owning a document could not be found."""

    def __init__(self, repository_id: str) -> None:
        super().__init__(f"Repository not found: {repository_id}")
        self.repository_id = repository_id


class RepositoryNotLinkedError(DocsyncError):
    """The repository is not bound to the adapter's source type."""

    def __init__(
        self, repository_id: str, expected: str, actual: str
    ) -> None:
        super().__init__(
            f"Repository {repository_id} is linked to '{actual}', "
            f"not to '{expected}'"
        )
        self.repository_id = repository_id
        self.expected = expected
        self.actual = actual


class SourceError(DocsyncError):
    """An external source call failed (transport, auth, rate limit...)."""


class SourceNotFoundError(SourceError):
    """The requested file or tree does not exist in the source."""


class SourceAuthError(SourceError):
    """The source rejected the supplied credentials."""


class SourceConflictError(SourceError):
    """A write was based on a stale revision of the remote file."""


class PersistenceError(DocsyncError):
    """The content store failed to save or delete a document."""


def error_kind(exc: BaseException) -> str:
    """Classify *exc* for per-item error outcomes."""
    if isinstance(exc, SourceError):
        return "source"
    if isinstance(exc, PersistenceError):
        return "persistence"
    if isinstance(exc, ValueError):
        return "validation"
    return "unexpected"
