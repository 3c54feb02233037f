"""Pydantic models for repository reconciliation.

Defines the data contracts shared by the reconciler, the stores and the
reporter:

- ``SourceType``: Kind of external source a repository is linked to.
- ``LinkedRepository``: A repository bound to an external source.
- ``SyncAction``: What happened to one path during a run.
- ``ItemOutcome``: Tagged outcome of one path.
- ``SyncResult``: Aggregate outcome of a run with derived views.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from docsync.content.models import Content, utcnow


class SourceType(str, Enum):
    """External source kinds a repository can be linked to."""

    GITHUB = "github"
    OBSIDIAN = "obsidian"


class LinkedRepository(BaseModel):
    """A repository whose documents mirror an external source.

    Attributes:
        id: Local repository id.
        user_id: Owner of the local documents.
        owner: Owner (account or vault) in the external source.
        name: Repository (or vault directory) name in the source.
        source_type: Which adapter kind may sync this repository.
        default_branch: Branch the repository tracks (shown in listings;
            adapters read and write their configured ref).
        access_token: Token used for direct source calls.
        installation_id: App installation id for token-less calls.
        last_synced_at: Completion time of the last run that was not
            cancelled.
    """

    id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)
    source_type: SourceType = SourceType.GITHUB
    default_branch: str = "main"
    access_token: str | None = Field(default=None, repr=False)
    installation_id: int | None = None
    last_synced_at: datetime | None = None

    model_config = {"frozen": True}

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def uses_installation(self) -> bool:
        """True when calls should go through the app installation."""
        return self.installation_id is not None and not self.access_token


class SyncAction(str, Enum):
    """Per-path outcome of a sync or push run."""

    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    PUSHED = "pushed"
    SKIPPED = "skipped"


class ItemOutcome(BaseModel):
    """Result of processing one path.

    Attributes:
        path: Repository-relative document path.
        action: What was (or was being) done to the path.
        success: Whether the step succeeded.
        content: The resulting document for added/updated/pushed paths.
        content_id: Id of the local document involved, if any.
        error: Error message if the step failed.
        error_kind: Error classification (source, persistence, validation,
            unexpected).
    """

    path: str
    action: SyncAction
    success: bool = True
    content: Content | None = None
    content_id: str | None = None
    error: str | None = None
    error_kind: str | None = None

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Aggregate outcome of a sync or push run.

    Attributes:
        repository_id: Repository the run processed.
        outcomes: One entry per processed path, in completion order.
        started_at: When the run started.
        completed_at: When the run finished.
        cancelled: True if the run stopped early on request.
    """

    repository_id: str
    outcomes: list[ItemOutcome] = []
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    cancelled: bool = False

    model_config = {"frozen": True}

    def _succeeded(self, action: SyncAction) -> list[ItemOutcome]:
        return [
            o for o in self.outcomes if o.success and o.action == action
        ]

    @property
    def added(self) -> list[Content]:
        """Documents created from new remote files."""
        return [
            o.content
            for o in self._succeeded(SyncAction.ADDED)
            if o.content is not None
        ]

    @property
    def updated(self) -> list[Content]:
        """Documents that received a new version."""
        return [
            o.content
            for o in self._succeeded(SyncAction.UPDATED)
            if o.content is not None
        ]

    @property
    def deleted(self) -> list[str]:
        """Ids of documents removed because their file disappeared."""
        return [
            o.content_id
            for o in self._succeeded(SyncAction.DELETED)
            if o.content_id is not None
        ]

    @property
    def pushed(self) -> list[Content]:
        """Documents written to the source."""
        return [
            o.content
            for o in self._succeeded(SyncAction.PUSHED)
            if o.content is not None
        ]

    @property
    def unchanged(self) -> list[str]:
        """Paths whose remote file matched the stored document."""
        return [o.path for o in self._succeeded(SyncAction.UNCHANGED)]

    @property
    def skipped(self) -> list[str]:
        """Paths left unprocessed because the run was cancelled."""
        return [o.path for o in self._succeeded(SyncAction.SKIPPED)]

    @property
    def errors(self) -> list[ItemOutcome]:
        """Outcomes where success is False."""
        return [o for o in self.outcomes if not o.success]

    @property
    def ok(self) -> bool:
        return not self.errors and not self.cancelled

    def summary(self) -> str:
        """Format a human-readable summary of the run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Sync result for repository '{self.repository_id}'"
            + (" (cancelled)" if self.cancelled else ""),
            f"  Added:     {len(self.added)}",
            f"  Updated:   {len(self.updated)}",
            f"  Deleted:   {len(self.deleted)}",
            f"  Pushed:    {len(self.pushed)}",
            f"  Unchanged: {len(self.unchanged)}",
            f"  Skipped:   {len(self.skipped)}",
            f"  Errors:    {len(self.errors)}",
            f"  Total:     {len(self.outcomes)}",
        ]
        return "\n".join(lines)
