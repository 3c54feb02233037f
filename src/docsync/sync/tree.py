"""Reconcile a local path-indexed map against a remote set of paths.

This is the loop shared by every adapter:

1. Copy the local map into a working set.
2. For each remote path call ``process(path, existing)`` and drop the
   path from the working set, whatever the outcome.
3. Call ``delete(path, item)`` for every leftover entry.

A failure while processing or deleting one path is caught, logged and
recorded as a failed ``ItemOutcome``; it never stops the other paths.
The async variant fans the per-path work out to worker threads and only
sweeps leftovers after every per-path task has finished.

When the run is cancelled no new per-path work starts, the remaining
paths are reported as skipped and the deletion sweep does not run.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, Mapping, TypeVar

from docsync.core.async_utils import gather_limited
from docsync.errors import error_kind
from docsync.sync.models import ItemOutcome, SyncAction

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TreeOutcome:
    """Outcomes of one reconcile pass."""

    outcomes: list[ItemOutcome] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class _Plan(Generic[T]):
    remote: list[str]
    existing: dict[str, T]
    leftovers: dict[str, T]


def _plan(local: Mapping[str, T], remote_paths: Iterable[str]) -> _Plan[T]:
    remote = list(dict.fromkeys(remote_paths))
    working = dict(local)
    existing: dict[str, T] = {}
    for path in remote:
        item = working.pop(path, None)
        if item is not None:
            existing[path] = item
    return _Plan(remote=remote, existing=existing, leftovers=working)


def failed_outcome(
    path: str,
    action: SyncAction,
    exc: Exception,
    content_id: str | None = None,
) -> ItemOutcome:
    """Build the failed outcome recorded for *exc*."""
    return ItemOutcome(
        path=path,
        action=action,
        success=False,
        content_id=content_id,
        error=str(exc) or type(exc).__name__,
        error_kind=error_kind(exc),
    )


def _content_id(item: object) -> str | None:
    return getattr(item, "id", None)


def guarded_process(
    process: Callable[[str, T | None], ItemOutcome],
    path: str,
    existing: T | None,
) -> ItemOutcome:
    """Run *process* for one path, turning any failure into an outcome."""
    try:
        return process(path, existing)
    except Exception as exc:
        action = SyncAction.ADDED if existing is None else SyncAction.UPDATED
        logger.warning("Failed to sync %s: %s", path, exc)
        return failed_outcome(path, action, exc, _content_id(existing))


def sweep_leftovers(
    leftovers: dict[str, T], delete: Callable[[str, T], ItemOutcome]
) -> list[ItemOutcome]:
    """Delete every leftover item, recording failures per item."""
    outcomes = []
    for path, item in leftovers.items():
        try:
            outcomes.append(delete(path, item))
        except Exception as exc:
            logger.warning("Failed to delete %s: %s", path, exc)
            outcomes.append(
                failed_outcome(
                    path, SyncAction.DELETED, exc, _content_id(item)
                )
            )
    return outcomes


def _skipped(path: str, existing: T | None) -> ItemOutcome:
    return ItemOutcome(
        path=path,
        action=SyncAction.SKIPPED,
        content_id=_content_id(existing),
    )


def reconcile_tree(
    local: Mapping[str, T],
    remote_paths: Iterable[str],
    process: Callable[[str, T | None], ItemOutcome],
    delete: Callable[[str, T], ItemOutcome],
    *,
    is_cancelled: Callable[[], bool] = lambda: False,
) -> TreeOutcome:
    """Reconcile *local* against *remote_paths* one path at a time.

    Args:
        local: Local items keyed by path.
        remote_paths: Paths present in the source (duplicates ignored).
        process: Handles one remote path; receives the local item or None.
        delete: Handles one local item whose path is gone from the source.
        is_cancelled: Polled before each path starts.

    Returns:
        Outcomes in processing order, then the deletion outcomes.
    """
    plan = _plan(local, remote_paths)
    result = TreeOutcome()

    for path in plan.remote:
        existing = plan.existing.get(path)
        if result.cancelled or is_cancelled():
            result.cancelled = True
            result.outcomes.append(_skipped(path, existing))
            continue
        result.outcomes.append(guarded_process(process, path, existing))

    if result.cancelled:
        logger.info(
            "Run cancelled; not deleting %d unmatched item(s)",
            len(plan.leftovers),
        )
        return result

    result.outcomes.extend(sweep_leftovers(plan.leftovers, delete))
    return result


async def reconcile_tree_async(
    local: Mapping[str, T],
    remote_paths: Iterable[str],
    process: Callable[[str, T | None], ItemOutcome],
    delete: Callable[[str, T], ItemOutcome],
    *,
    semaphore: asyncio.Semaphore | None = None,
    is_cancelled: Callable[[], bool] = lambda: False,
) -> TreeOutcome:
    """Async variant of ``reconcile_tree`` with bounded parallelism.

    ``process`` and ``delete`` are blocking callables run in worker
    threads; at most as many run at once as *semaphore* allows (unbounded
    when None).  The deletion sweep starts only after every per-path task
    has finished.
    """
    plan = _plan(local, remote_paths)

    async def _one(path: str) -> ItemOutcome:
        existing = plan.existing.get(path)
        async with semaphore or contextlib.nullcontext():
            if is_cancelled():
                return _skipped(path, existing)
            return await asyncio.to_thread(
                guarded_process, process, path, existing
            )

    outcomes = await gather_limited([_one(path) for path in plan.remote])
    result = TreeOutcome(
        outcomes=outcomes,
        cancelled=any(o.action == SyncAction.SKIPPED for o in outcomes)
        or is_cancelled(),
    )

    if result.cancelled:
        logger.info(
            "Run cancelled; not deleting %d unmatched item(s)",
            len(plan.leftovers),
        )
        return result

    result.outcomes.extend(
        await asyncio.to_thread(sweep_leftovers, plan.leftovers, delete)
    )
    return result
