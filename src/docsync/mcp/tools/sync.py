"""MCP tool handlers for repository sync and push.

Defines four tools:

- ``repo_list`` -- linked repositories and when they were last synced.
- ``repo_sync`` -- mirror a repository's documents into the store.
- ``repo_push`` -- write one document, or all of a repository's, back.
- ``content_sync`` -- refresh one document from its remote file.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...core.async_utils import run_sync, run_sync_limited
from ...sync.reporter import format_sync_result, result_to_json
from .errors import (
    content_not_found,
    format_timestamp,
    require_str,
    text_result,
)
from .registry import ToolSpec

if TYPE_CHECKING:
    from ...sync.models import SyncResult
    from ..lifespan import ServerContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


REPO_LIST_TOOL = types.Tool(
    name="repo_list",
    description=(
        "List linked repositories with their source kind, default branch "
        "and last sync time."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={
        "type": "object",
        "properties": {},
        "required": [],
    },
)

REPO_SYNC_TOOL = types.Tool(
    name="repo_sync",
    description=(
        "Mirror every markdown document of a linked repository into the "
        "store. New files are added, changed files get a new version, "
        "and documents whose file disappeared are deleted."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "repository_id": {
                "type": "string",
                "description": "Id of the linked repository",
            },
            "commit_id": {
                "type": "string",
                "description": (
                    "Commit id recorded on versions created by this run. "
                    "Defaults to a fresh id."
                ),
            },
            "parallel": {
                "type": "boolean",
                "default": False,
                "description": "Fetch files concurrently",
            },
        },
        "required": ["repository_id"],
    },
)

REPO_PUSH_TOOL = types.Tool(
    name="repo_push",
    description=(
        "Write stored documents back to the repository's source. Pushes "
        "one document when content_id is given, else all of them."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "repository_id": {
                "type": "string",
                "description": "Id of the linked repository",
            },
            "content_id": {
                "type": "string",
                "description": "Push only this document",
            },
            "message": {
                "type": "string",
                "description": "Commit message for a single-document push",
            },
        },
        "required": ["repository_id"],
    },
)

CONTENT_SYNC_TOOL = types.Tool(
    name="content_sync",
    description=(
        "Refresh one stored document from its remote file, recording a "
        "new version when it changed."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
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
                "description": "Commit id for the new version, if one is created",
            },
        },
        "required": ["content_id"],
    },
)


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_repo_list(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``repo_list`` tool."""
    repositories = ctx.repositories.list_all()
    if not repositories:
        return text_result(
            "No linked repositories. Add entries under 'repositories' in "
            ".docsync/config.yml.",
            {"repositories": []},
        )

    lines = [f"Linked repositories ({len(repositories)}):"]
    for repo in repositories:
        lines.append(
            f"  {repo.id}: {repo.full_name} "
            f"[{repo.source_type.value}, {repo.default_branch}] "
            f"last synced {format_timestamp(repo.last_synced_at)}"
        )

    structured = {
        "repositories": [
            repo.model_dump(mode="json", exclude={"access_token"})
            for repo in repositories
        ]
    }
    return text_result("\n".join(lines), structured)


async def _handle_repo_sync(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``repo_sync`` tool."""
    repository_id = require_str(args, "repository_id")
    commit_id = args.get("commit_id") or None
    parallel = bool(args.get("parallel", False))

    async with ctx.lock_for(repository_id):
        repository = ctx.get_repository(repository_id)
        adapter = ctx.adapter_for(repository)
        if parallel:
            result = await ctx.reconciler.sync_repository_async(
                repository, adapter, commit_id=commit_id
            )
        else:
            result = await run_sync(
                ctx.reconciler.sync_repository,
                repository,
                adapter,
                commit_id=commit_id,
            )
        _mark_synced(ctx, repository_id, result)

    return text_result(format_sync_result(result), result_to_json(result))


def _mark_synced(
    ctx: ServerContext, repository_id: str, result: SyncResult
) -> None:
    """Record the completion time of a run that was not cancelled."""
    if result.cancelled or result.completed_at is None:
        return
    repository = ctx.get_repository(repository_id)
    ctx.repositories.save(
        repository.model_copy(update={"last_synced_at": result.completed_at})
    )


async def _handle_repo_push(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``repo_push`` tool."""
    repository_id = require_str(args, "repository_id")
    content_id = args.get("content_id")

    async with ctx.lock_for(repository_id):
        repository = ctx.get_repository(repository_id)
        adapter = ctx.adapter_for(repository)

        if not content_id:
            result = await run_sync(
                ctx.reconciler.push_repository, repository, adapter
            )
            return text_result(
                format_sync_result(result), result_to_json(result)
            )

        content = await run_sync(ctx.contents.find_by_id, content_id)
        if content is None or content.repository_id != repository.id:
            return content_not_found(content_id)
        pushed = await run_sync_limited(
            ctx.reconciler.push_content,
            content,
            adapter,
            message=args.get("message") or None,
        )

    return text_result(
        f"Pushed '{pushed.path}' to {repository.full_name}",
        {
            "repository_id": repository.id,
            "content_id": pushed.id,
            "path": pushed.path,
        },
    )


async def _handle_content_sync(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``content_sync`` tool."""
    content_id = require_str(args, "content_id")
    content = await run_sync(ctx.contents.find_by_id, content_id)
    if content is None:
        return content_not_found(content_id)

    repository = ctx.get_repository(content.repository_id)
    adapter = ctx.adapter_for(repository)
    async with ctx.lock_for(repository.id):
        # Versions append to the copy stored when the lock is held
        content = await run_sync(ctx.contents.find_by_id, content_id)
        if content is None:
            return content_not_found(content_id)
        refreshed = await run_sync_limited(
            ctx.reconciler.sync_content,
            content,
            adapter,
            commit_id=args.get("commit_id") or None,
        )

    changed = len(refreshed.versions) != len(content.versions)
    if changed:
        latest = refreshed.versions[-1]
        text = (
            f"Updated '{refreshed.path}' (version {len(refreshed.versions)}, "
            f"commit {latest.commit_id}: "
            f"{', '.join(latest.changes.changed_fields())})"
        )
    else:
        text = f"'{refreshed.path}' is up to date"

    return text_result(
        text,
        {
            "content_id": refreshed.id,
            "path": refreshed.path,
            "changed": changed,
            "version_count": len(refreshed.versions),
        },
    )


# ---------------------------------------------------------------------------
# Spec list
# ---------------------------------------------------------------------------


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=REPO_LIST_TOOL, handler=_handle_repo_list),
    ToolSpec(tool=REPO_SYNC_TOOL, handler=_handle_repo_sync),
    ToolSpec(tool=REPO_PUSH_TOOL, handler=_handle_repo_push),
    ToolSpec(tool=CONTENT_SYNC_TOOL, handler=_handle_content_sync),
]
