"""Error response builders and shared utilities for MCP tool handlers.

This module provides structured error responses with corrective actions
to help AI agents recover from errors without human intervention, plus
shared formatting utilities used across tool modules.
"""

from datetime import datetime

import mcp.types as types

from ...errors import (
    ContentValidationError,
    DocsyncError,
    PersistenceError,
    RepositoryNotFoundError,
    RepositoryNotLinkedError,
    SourceAuthError,
    SourceConflictError,
    SourceError,
    SourceNotFoundError,
    VersionNotFoundError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied, version_conflict, validation_error, source_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Repository 'r1' not found", "Use repo_list to see linked repositories.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def text_result(
    text: str, structured: dict | None = None
) -> types.CallToolResult:
    """Build a successful result with text and optional structured JSON."""
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


# ---------------------------------------------------------------------------
# Shared formatting utilities
# ---------------------------------------------------------------------------


def format_timestamp(timestamp: datetime | None) -> str:
    """Format timestamp for display (YYYY-MM-DD HH:MM, ``never`` for None)."""
    match timestamp:
        case datetime() as dt:
            return dt.strftime("%Y-%m-%d %H:%M")
        case None:
            return "never"
        case _:
            return str(timestamp)


# ---------------------------------------------------------------------------
# Domain error translation
# ---------------------------------------------------------------------------


def translate_docsync_error(error: DocsyncError) -> types.CallToolResult:
    """Translate a docsync exception to a structured error response.

    Subclasses are matched before their bases, so a missing remote file
    reads as ``not_found`` rather than a generic source failure.
    """
    match error:
        case RepositoryNotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Use repo_list to see linked repositories.",
            )
        case VersionNotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Use content_history to list the commit ids of this document.",
            )
        case RepositoryNotLinkedError():
            return build_error_response(
                "validation_error",
                str(error),
                "Check the repository's source_type in the configuration.",
            )
        case ContentValidationError():
            return build_error_response(
                "validation_error",
                str(error),
                "Check parameter values and retry.",
            )
        case SourceNotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Check the repository owner, name and path, then run repo_sync.",
            )
        case SourceAuthError():
            return build_error_response(
                "permission_denied",
                str(error),
                "Check GITHUB_TOKEN or the repository token in the configuration.",
            )
        case SourceConflictError():
            return build_error_response(
                "version_conflict",
                str(error),
                "Run content_sync to fetch the current file, then retry the push.",
            )
        case SourceError():
            return build_error_response(
                "source_error",
                str(error),
                "Check connectivity to the source and retry later.",
            )
        case PersistenceError():
            return build_error_response(
                "server_error",
                str(error),
                "Check that storage.state_dir is writable and its files are intact.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Retry later.",
            )


def content_not_found(content_id: str) -> types.CallToolResult:
    """Error response for an unknown document id."""
    return build_error_response(
        "not_found",
        f"Content '{content_id}' not found",
        "Run repo_sync, then use the content ids from its output.",
    )


def require_str(args: dict, key: str) -> str:
    """Return a non-empty string argument or raise ValueError."""
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} is required")
    return value.strip()
