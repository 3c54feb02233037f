"""Concurrency helpers shared by the reconciler and the MCP server."""

from .async_utils import (
    gather_limited,
    get_semaphore,
    init_semaphore,
    run_bounded,
    run_sync,
    run_sync_limited,
)

__all__ = [
    "gather_limited",
    "get_semaphore",
    "init_semaphore",
    "run_bounded",
    "run_sync",
    "run_sync_limited",
]
