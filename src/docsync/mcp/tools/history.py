"""MCP tool handlers for document history.

Defines three tools:

- ``content_history`` -- list the versions of a document.
- ``content_restore`` -- reconstruct a document as of a commit, optionally
  saving that state as a new version.
- ``content_diff`` -- compare a document between two commits.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...content.models import Content, new_id
from ...core.async_utils import run_sync
from ...sync.reporter import (
    format_history,
    format_version_diff,
    history_to_json,
)
from .errors import content_not_found, require_str, text_result
from .registry import ToolSpec

if TYPE_CHECKING:
    from ..lifespan import ServerContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


CONTENT_HISTORY_TOOL = types.Tool(
    name="content_history",
    description="List the versions of a stored document, oldest first.",
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "content_id": {
                "type": "string",
                "description": "Id of the stored document",
            },
        },
        "required": ["content_id"],
    },
)

CONTENT_RESTORE_TOOL = types.Tool(
    name="content_restore",
    description=(
        "Reconstruct a document as it was at a commit. With save=true the "
        "restored state is recorded as a new version; history is never "
        "rewritten."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=False,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "content_id": {
                "type": "string",
                "description": "Id of the stored document",
            },
            "commit_id": {
                "type": "string",
                "description": "Commit id to restore (see content_history)",
            },
            "save": {
                "type": "boolean",
                "default": False,
                "description": "Save the restored state as a new version",
            },
        },
        "required": ["content_id", "commit_id"],
    },
)

CONTENT_DIFF_TOOL = types.Tool(
    name="content_diff",
    description=(
        "Show how a document changed between two commits. Omit "
        "to_commit_id to compare against the current state."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "content_id": {
                "type": "string",
                "description": "Id of the stored document",
            },
            "from_commit_id": {
                "type": "string",
                "description": "Older commit id",
            },
            "to_commit_id": {
                "type": "string",
                "description": "Newer commit id (default: current state)",
            },
        },
        "required": ["content_id", "from_commit_id"],
    },
)


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_content_history(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``content_history`` tool."""
    content_id = require_str(args, "content_id")
    content = await run_sync(ctx.contents.find_by_id, content_id)
    if content is None:
        return content_not_found(content_id)
    return text_result(format_history(content), history_to_json(content))


async def _handle_content_restore(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``content_restore`` tool."""
    content_id = require_str(args, "content_id")
    commit_id = require_str(args, "commit_id")
    save = bool(args.get("save", False))

    content = await run_sync(ctx.contents.find_by_id, content_id)
    if content is None:
        return content_not_found(content_id)
    if save:
        return await _restore_and_save(ctx, content, commit_id)

    restored = ctx.versioning.restore_version(content, commit_id)
    return text_result(
        _restored_text(restored, commit_id),
        _restored_structured(content, restored, commit_id),
    )


def _restored_text(restored: Content, commit_id: str) -> str:
    return f"'{restored.title}' as of commit {commit_id}:\n\n{restored.body}"


def _restored_structured(
    content: Content, restored: Content, commit_id: str
) -> dict[str, Any]:
    return {
        "content_id": content.id,
        "commit_id": commit_id,
        "snapshot": restored.snapshot().model_dump(mode="json"),
        "saved": False,
    }


async def _restore_and_save(
    ctx: ServerContext, content: Content, commit_id: str
) -> types.CallToolResult:
    """Restore *commit_id* and store it as a new version.

    The diff is taken against the copy read while the repository lock is
    held, so a version written by a concurrent sync is never dropped.
    """
    async with ctx.lock_for(content.repository_id):
        current = await run_sync(ctx.contents.find_by_id, content.id)
        if current is None:
            return content_not_found(content.id)
        restored = ctx.versioning.restore_version(current, commit_id)
        text = _restored_text(restored, commit_id)
        structured = _restored_structured(current, restored, commit_id)

        changes = ctx.versioning.calculate_diff(current, restored)
        if changes.is_empty():
            text += "\n\n(current state already matches; nothing saved)"
            return text_result(text, structured)

        restore_commit = new_id()
        saved = ctx.versioning.create_versioned_content(
            current, restore_commit, changes
        )
        await run_sync(ctx.contents.save, saved)

    logger.info(
        "Restored content %s to commit %s as version %d",
        saved.id,
        commit_id,
        len(saved.versions),
    )
    structured["saved"] = True
    structured["restore_commit_id"] = restore_commit
    text += (
        f"\n\nSaved as version {len(saved.versions)} "
        f"(commit {restore_commit})"
    )
    return text_result(text, structured)


async def _handle_content_diff(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``content_diff`` tool."""
    content_id = require_str(args, "content_id")
    from_commit = require_str(args, "from_commit_id")
    to_commit = args.get("to_commit_id") or None

    content = await run_sync(ctx.contents.find_by_id, content_id)
    if content is None:
        return content_not_found(content_id)

    before = ctx.versioning.restore_version(content, from_commit).snapshot()
    if to_commit:
        after = ctx.versioning.restore_version(content, to_commit).snapshot()
    else:
        after = content.snapshot()

    text = format_version_diff(
        before,
        after,
        from_label=f"{content.path}@{from_commit}",
        to_label=f"{content.path}@{to_commit or 'current'}",
    )
    return text_result(
        text,
        {
            "content_id": content.id,
            "from_commit_id": from_commit,
            "to_commit_id": to_commit,
            "identical": before == after,
        },
    )


# ---------------------------------------------------------------------------
# Spec list
# ---------------------------------------------------------------------------


HISTORY_SPECS: list[ToolSpec] = [
    ToolSpec(tool=CONTENT_HISTORY_TOOL, handler=_handle_content_history),
    ToolSpec(tool=CONTENT_RESTORE_TOOL, handler=_handle_content_restore),
    ToolSpec(tool=CONTENT_DIFF_TOOL, handler=_handle_content_diff),
]
