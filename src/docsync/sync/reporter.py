"""Sync result and history formatting functions.

Provides human-readable and machine-readable output for sync runs and
document histories:

- ``format_sync_result`` -- post-run summary.
- ``result_to_json`` -- structured dict for MCP tool output.
- ``format_history`` -- version list of one document.
- ``history_to_json`` -- structured history for MCP tool output.
- ``format_version_diff`` -- unified diff between two document states.
"""

from __future__ import annotations

import difflib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docsync.content.models import Content, ContentSnapshot
    from .models import SyncResult

from .models import SyncAction

_SECTIONS = (
    (SyncAction.ADDED, "Added:"),
    (SyncAction.UPDATED, "Updated:"),
    (SyncAction.DELETED, "Deleted:"),
    (SyncAction.PUSHED, "Pushed:"),
)

# ------------------------------------------------------------------
# Human-readable result
# ------------------------------------------------------------------


def format_sync_result(result: SyncResult) -> str:
    """Format a sync or push result as human-readable text.

    Sections are only included when they contain at least one outcome.
    Unchanged and skipped paths are summarised by count only.

    Args:
        result: The completed run result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync result for repository '{result.repository_id}'"
    if result.cancelled:
        header += " (CANCELLED)"
    lines.append(header)
    lines.append(f"Started: {result.started_at.isoformat()}")
    if result.completed_at:
        lines.append(f"Completed: {result.completed_at.isoformat()}")
    lines.append("")

    lines.append(
        f"Processed {len(result.outcomes)} files: "
        f"{len(result.added)} added, {len(result.updated)} updated, "
        f"{len(result.deleted)} deleted, {len(result.pushed)} pushed, "
        f"{len(result.errors)} errors"
    )
    lines.append("")

    for action, title in _SECTIONS:
        done = [o for o in result.outcomes if o.success and o.action == action]
        if not done:
            continue
        lines.append(title)
        for o in done:
            lines.append(f"  {o.path}")
        lines.append("")

    if result.errors:
        lines.append("Errors:")
        for o in result.errors:
            lines.append(f"  {o.path} [{o.error_kind}]: {o.error}")
        lines.append("")

    if result.unchanged:
        lines.append(f"Unchanged: {len(result.unchanged)} files")
    if result.skipped:
        lines.append(f"Skipped: {len(result.skipped)} files (run cancelled)")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: SyncResult) -> dict:
    """Convert a run result to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        result: The run result.

    Returns:
        Dict with run info, counts, and per-path details.
    """
    outcomes = []
    for o in result.outcomes:
        entry: dict = {
            "path": o.path,
            "action": o.action.value,
            "success": o.success,
        }
        if o.content_id:
            entry["content_id"] = o.content_id
        if o.error:
            entry["error"] = o.error
            entry["error_kind"] = o.error_kind
        outcomes.append(entry)

    return {
        "repository_id": result.repository_id,
        "started_at": result.started_at.isoformat(),
        "completed_at": (
            result.completed_at.isoformat() if result.completed_at else None
        ),
        "cancelled": result.cancelled,
        "counts": {
            "total": len(result.outcomes),
            "added": len(result.added),
            "updated": len(result.updated),
            "deleted": len(result.deleted),
            "pushed": len(result.pushed),
            "unchanged": len(result.unchanged),
            "skipped": len(result.skipped),
            "errors": len(result.errors),
        },
        "outcomes": outcomes,
    }


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------


def format_history(content: Content) -> str:
    """Format the version history of *content*, oldest first."""
    lines = [f"History of '{content.title}' ({content.path})"]
    if not content.versions:
        lines.append("  (no versions)")
        return "\n".join(lines)
    for index, version in enumerate(content.versions, start=1):
        fields = ", ".join(version.changes.changed_fields())
        lines.append(
            f"  {index}. {version.commit_id}  "
            f"{version.created_at.isoformat()}  [{fields}]"
        )
    return "\n".join(lines)


def history_to_json(content: Content) -> dict:
    """Structured history of *content* for MCP tool output."""
    return {
        "content_id": content.id,
        "path": content.path,
        "title": content.title,
        "versions": [
            {
                "id": version.id,
                "commit_id": version.commit_id,
                "created_at": version.created_at.isoformat(),
                "changed_fields": version.changes.changed_fields(),
                "changes": {
                    key: value
                    for key, value in version.changes.model_dump(
                        mode="json"
                    ).items()
                    if value is not None
                },
            }
            for version in content.versions
        ],
    }


# ------------------------------------------------------------------
# Diff
# ------------------------------------------------------------------


def format_version_diff(
    before: ContentSnapshot,
    after: ContentSnapshot,
    from_label: str = "before",
    to_label: str = "after",
) -> str:
    """Show how two document states differ.

    The title and metadata are compared field by field; the body is
    shown as a unified diff.

    Returns:
        Multi-line formatted string (``(no differences)`` when equal).
    """
    lines: list[str] = []
    if before.title != after.title:
        lines.append(f"title: {before.title!r} -> {after.title!r}")

    old_meta, new_meta = before.metadata, after.metadata
    for name in ("tags", "categories"):
        old, new = getattr(old_meta, name), getattr(new_meta, name)
        if old != new:
            added = ", ".join(sorted(new - old)) or "-"
            removed = ", ".join(sorted(old - new)) or "-"
            lines.append(f"{name}: +[{added}] -[{removed}]")
    for name in ("language", "reading_time"):
        old, new = getattr(old_meta, name), getattr(new_meta, name)
        if old != new:
            lines.append(f"{name}: {old!r} -> {new!r}")

    diff = difflib.unified_diff(
        before.body.splitlines(keepends=True),
        after.body.splitlines(keepends=True),
        fromfile=from_label,
        tofile=to_label,
    )
    diff_text = "".join(diff)
    if diff_text:
        if lines:
            lines.append("")
        lines.append(diff_text.rstrip())

    return "\n".join(lines) if lines else "(no differences)"
