"""MCP tool handlers for docsync operations.

This package contains MCP tool implementations that wrap the reconciler
and the versioning service with async handlers and structured error
responses.
"""

from .errors import build_error_response
from .history import HISTORY_SPECS
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS

ALL_SPECS: list[ToolSpec] = SYNC_SPECS + HISTORY_SPECS

__all__ = [
    "build_error_response",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # Spec lists
    "ALL_SPECS",
    "SYNC_SPECS",
    "HISTORY_SPECS",
]
