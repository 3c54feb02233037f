"""Version management for documents.

``VersioningService`` computes field-level diffs, appends versions to a
document's history, and reconstructs a document as of any recorded
commit.

History is stored as deltas: each ``Version`` carries only the fields it
changed.  Restoring replays the deltas in order over the document's
baseline (its state from before the first version), so a restored field
never shows a value recorded after the target version.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from docsync.content.models import (
    Content,
    ContentChanges,
    MetadataChanges,
    Version,
    new_id,
    utcnow,
)
from docsync.errors import ContentValidationError, VersionNotFoundError
from docsync.validators import validate_commit_id

logger = logging.getLogger(__name__)


class VersioningService:
    """Diff, version, and restore documents.

    Args:
        id_factory: Callable returning fresh version ids.
        clock: Callable returning the current time.
    """

    def __init__(
        self,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._id_factory = id_factory
        self._clock = clock

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------

    def calculate_diff(
        self, old_content: Content, new_content: Content
    ) -> ContentChanges:
        """Return the fields of *new_content* that differ from *old_content*.

        Unchanged fields are omitted entirely.  An empty record means
        there is nothing to version.
        """
        changes: dict[str, object] = {}
        if old_content.title != new_content.title:
            changes["title"] = new_content.title
        if old_content.body != new_content.body:
            changes["body"] = new_content.body
        if old_content.metadata != new_content.metadata:
            changes["metadata"] = MetadataChanges.from_metadata(
                new_content.metadata
            )
        return ContentChanges(**changes)

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def create_versioned_content(
        self,
        content: Content,
        commit_id: str,
        changes: ContentChanges,
    ) -> Content:
        """Append a version for *changes* and return the updated document.

        Args:
            content: The document to version (left untouched).
            commit_id: External change identifier for this step.
            changes: Non-empty sparse change record.

        Returns:
            A new ``Content`` whose history ends with the new version and
            whose fields reflect *changes* merged over the prior state.

        Raises:
            ContentValidationError: If *commit_id* is empty or already
                recorded, or if *changes* is empty.
        """
        ok, message = validate_commit_id(commit_id)
        if not ok:
            raise ContentValidationError(message)
        if changes.is_empty():
            raise ContentValidationError(
                "Changes cannot be empty: a version must record a real change"
            )
        if content.has_commit(commit_id):
            raise ContentValidationError(
                f"Commit id '{commit_id}' is already recorded for "
                f"content {content.id}"
            )

        version = Version(
            id=self._id_factory(),
            content_id=content.id,
            commit_id=commit_id,
            created_at=self._clock(),
            changes=changes,
        )
        logger.debug(
            "Versioning content %s at commit %s (fields: %s)",
            content.id,
            commit_id,
            ", ".join(changes.changed_fields()),
        )
        return content.add_version(version).apply_changes(changes)

    # ------------------------------------------------------------------
    # History queries
    # ------------------------------------------------------------------

    def get_content_history(self, content: Content) -> list[Version]:
        """Return the versions of *content*, oldest first."""
        return list(content.versions)

    def find_version_by_commit_id(
        self, content: Content, commit_id: str
    ) -> Version | None:
        """Return the first version recorded for *commit_id*, if any."""
        for version in content.versions:
            if version.commit_id == commit_id:
                return version
        return None

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore_version(self, content: Content, commit_id: str) -> Content:
        """Reconstruct *content* as of the version recorded for *commit_id*.

        Every version up to and including the target is replayed over the
        baseline.  Documents persisted without a baseline fall back to
        their present-day values for the starting point.  The returned
        document keeps the complete history.

        Raises:
            VersionNotFoundError: If no version carries *commit_id*.
        """
        target_index = next(
            (
                index
                for index, version in enumerate(content.versions)
                if version.commit_id == commit_id
            ),
            None,
        )
        if target_index is None:
            raise VersionNotFoundError(content.id, commit_id)

        if content.baseline is None:
            logger.warning(
                "Content %s has no recorded baseline; replaying history "
                "over its current state",
                content.id,
            )
        state = content.baseline or content.snapshot()
        for version in content.versions[: target_index + 1]:
            state = state.apply(version.changes)

        target = content.versions[target_index]
        return content.replace(
            title=state.title,
            body=state.body,
            metadata=state.metadata,
            updated_at=target.created_at,
        )
