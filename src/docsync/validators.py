"""
Input validation functions for docsync.

Provides validation for document paths and commit ids so that bad input
is rejected before it reaches the content model or a source adapter.
"""


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Path")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_document_path(path: str) -> tuple[bool, str]:
    """
    Validate a logical document path inside a repository.

    Args:
        path: POSIX-style path relative to the repository root

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot be absolute
        - Cannot contain '..' segments (path traversal protection)
        - Cannot have empty path segments (e.g., 'notes//a.md')
    """
    if not path or not path.strip():
        return (False, format_validation_error("Path", "cannot be empty"))

    if path.startswith("/") or "\\" in path:
        return (
            False,
            format_validation_error(
                "Path", "must be relative and use forward slashes"
            ),
        )

    segments = path.split("/")
    if ".." in segments:
        return (
            False,
            format_validation_error("Path", "cannot contain '..'"),
        )

    if "" in segments:
        return (
            False,
            format_validation_error(
                "Path", "cannot have empty path segments"
            ),
        )

    return (True, "")


def validate_commit_id(commit_id: str) -> tuple[bool, str]:
    """
    Validate an external change identifier.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not commit_id or not commit_id.strip():
        return (
            False,
            format_validation_error("Commit id", "cannot be empty"),
        )

    if any(ch.isspace() for ch in commit_id):
        return (
            False,
            format_validation_error(
                "Commit id", "cannot contain whitespace"
            ),
        )

    return (True, "")
