"""Persistence contracts for documents and linked repositories.

``ContentRepository`` and ``RepositoryLookup`` are the only persistence
the reconciler needs.  Two content stores are provided:

* ``InMemoryContentRepository`` -- dict-backed, for tests and one-shot runs.
* ``JsonFileContentRepository`` -- one JSON file per repository under a
  state directory (``contents_<repository id>.json``), written atomically
  so readers never see partial data.

Both are safe to call from the worker threads of a parallel sync run.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote

from pydantic import BaseModel, Field, ValidationError

from docsync.content.models import Content, Visibility
from docsync.errors import PersistenceError
from docsync.file_handler import write_json_atomic
from docsync.sync.models import LinkedRepository

logger = logging.getLogger(__name__)

STATE_FILE_VERSION = 1


class QueryOptions(BaseModel):
    """Paging and filtering for repository-wide queries.

    Results are ordered by path before ``offset``/``limit`` apply.
    """

    limit: int | None = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)
    visibility: Visibility | None = None

    model_config = {"frozen": True}

    def apply(self, contents: list[Content]) -> list[Content]:
        selected = sorted(contents, key=lambda c: c.path)
        if self.visibility is not None:
            selected = [c for c in selected if c.visibility == self.visibility]
        selected = selected[self.offset:]
        if self.limit is not None:
            selected = selected[: self.limit]
        return selected


@runtime_checkable
class ContentRepository(Protocol):
    """Storage of documents, keyed by id and addressable by path."""

    def find_by_id(self, content_id: str) -> Content | None: ...

    def find_by_repository_id(
        self, repository_id: str, options: QueryOptions | None = None
    ) -> list[Content]: ...

    def find_by_repository_id_and_path(
        self, repository_id: str, path: str
    ) -> Content | None: ...

    def save(self, content: Content) -> Content: ...

    def delete(self, content_id: str) -> bool: ...


@runtime_checkable
class RepositoryLookup(Protocol):
    """Lookup of linked repositories by id."""

    def find_by_id(self, repository_id: str) -> LinkedRepository | None: ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


class InMemoryContentRepository:
    """Dict-backed content store."""

    def __init__(self, contents: list[Content] | None = None) -> None:
        self._lock = threading.Lock()
        self._contents: dict[str, Content] = {}
        for content in contents or []:
            self._contents[content.id] = content

    def find_by_id(self, content_id: str) -> Content | None:
        with self._lock:
            return self._contents.get(content_id)

    def find_by_repository_id(
        self, repository_id: str, options: QueryOptions | None = None
    ) -> list[Content]:
        with self._lock:
            matches = [
                c
                for c in self._contents.values()
                if c.repository_id == repository_id
            ]
        return (options or QueryOptions()).apply(matches)

    def find_by_repository_id_and_path(
        self, repository_id: str, path: str
    ) -> Content | None:
        with self._lock:
            for content in self._contents.values():
                if content.repository_id == repository_id and content.path == path:
                    return content
        return None

    def save(self, content: Content) -> Content:
        with self._lock:
            self._contents[content.id] = content
        return content

    def delete(self, content_id: str) -> bool:
        with self._lock:
            return self._contents.pop(content_id, None) is not None

    def __len__(self) -> int:
        return len(self._contents)


class InMemoryRepositoryStore:
    """Dict-backed store of linked repositories."""

    def __init__(
        self, repositories: list[LinkedRepository] | None = None
    ) -> None:
        self._lock = threading.Lock()
        self._repositories: dict[str, LinkedRepository] = {
            repo.id: repo for repo in repositories or []
        }

    def find_by_id(self, repository_id: str) -> LinkedRepository | None:
        with self._lock:
            return self._repositories.get(repository_id)

    def list_all(self) -> list[LinkedRepository]:
        with self._lock:
            return sorted(self._repositories.values(), key=lambda r: r.id)

    def save(self, repository: LinkedRepository) -> LinkedRepository:
        with self._lock:
            self._repositories[repository.id] = repository
        return repository


# ---------------------------------------------------------------------------
# JSON file implementation
# ---------------------------------------------------------------------------


class JsonFileContentRepository:
    """Content store persisted as one JSON file per repository.

    Args:
        state_dir: Directory holding the state files (created on first save).
    """

    def __init__(self, state_dir: Path | str) -> None:
        self._state_dir = Path(state_dir).expanduser()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _state_path(self, repository_id: str) -> Path:
        return self._state_dir / f"contents_{quote(repository_id, safe='')}.json"

    def _load(self, repository_id: str) -> dict[str, Content]:
        return self._load_file(self._state_path(repository_id))

    def _load_file(self, path: Path) -> dict[str, Content]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as fh:
                state = json.load(fh)
            return {
                content_id: Content.model_validate(data)
                for content_id, data in state.get("contents", {}).items()
            }
        except (OSError, ValueError, ValidationError) as exc:
            raise PersistenceError(
                f"Could not load content state from {path}: {exc}"
            ) from exc

    def _store(self, repository_id: str, contents: dict[str, Content]) -> None:
        state = {
            "version": STATE_FILE_VERSION,
            "repository_id": repository_id,
            "contents": {
                content_id: content.model_dump(mode="json")
                for content_id, content in sorted(contents.items())
            },
        }
        path = self._state_path(repository_id)
        try:
            write_json_atomic(path, state)
        except OSError as exc:
            raise PersistenceError(
                f"Could not write content state to {path}: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # ContentRepository
    # ------------------------------------------------------------------

    def find_by_id(self, content_id: str) -> Content | None:
        with self._lock:
            if not self._state_dir.is_dir():
                return None
            for path in sorted(self._state_dir.glob("contents_*.json")):
                content = self._load_file(path).get(content_id)
                if content is not None:
                    return content
        return None

    def find_by_repository_id(
        self, repository_id: str, options: QueryOptions | None = None
    ) -> list[Content]:
        with self._lock:
            contents = list(self._load(repository_id).values())
        return (options or QueryOptions()).apply(contents)

    def find_by_repository_id_and_path(
        self, repository_id: str, path: str
    ) -> Content | None:
        with self._lock:
            for content in self._load(repository_id).values():
                if content.path == path:
                    return content
        return None

    def save(self, content: Content) -> Content:
        with self._lock:
            contents = self._load(content.repository_id)
            contents[content.id] = content
            self._store(content.repository_id, contents)
        logger.debug("Saved content %s (%s)", content.id, content.path)
        return content

    def delete(self, content_id: str) -> bool:
        with self._lock:
            if not self._state_dir.is_dir():
                return False
            for path in sorted(self._state_dir.glob("contents_*.json")):
                contents = self._load_file(path)
                removed = contents.pop(content_id, None)
                if removed is not None:
                    self._store(removed.repository_id, contents)
                    return True
        return False
