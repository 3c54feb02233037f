"""Shared pytest fixtures for docsync tests."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from docsync.content.models import Content, Metadata
from docsync.content.versioning import VersioningService
from docsync.errors import (
    SourceConflictError,
    SourceError,
    SourceNotFoundError,
)
from docsync.file_handler import text_revision
from docsync.sync.models import LinkedRepository, SourceType
from docsync.sync.reconciler import Reconciler
from docsync.sync.store import (
    InMemoryContentRepository,
    InMemoryRepositoryStore,
)

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            self.now += timedelta(seconds=1)
            return self.now


class FakeSourceAdapter:
    """In-memory source holding one repository's files.

    Simulates a hosted repository with a dict of path -> text.  Paths in
    ``failing`` raise ``SourceError`` when fetched; ``list_error`` makes
    the listing itself fail.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        source_type: SourceType = SourceType.GITHUB,
    ) -> None:
        self.source_type = source_type
        self.files: dict[str, str] = dict(files or {})
        self.failing: set[str] = set()
        self.list_error: Exception | None = None
        self.fetched: list[str] = []
        self.installation_calls: list[tuple[int, str]] = []
        self.writes: list[dict] = []
        self._lock = threading.Lock()

    def list_paths(self, auth, owner, repo):
        if self.list_error is not None:
            raise self.list_error
        return sorted(self.files)

    def get_content(self, auth, owner, repo, path):
        with self._lock:
            self.fetched.append(path)
        if path in self.failing:
            raise SourceError(f"boom: {path}")
        if path not in self.files:
            raise SourceNotFoundError(path)
        return self.files[path]

    def get_content_by_installation(self, installation_id, owner, repo, path):
        with self._lock:
            self.installation_calls.append((installation_id, path))
        return self.get_content(None, owner, repo, path)

    def get_revision(self, auth, owner, repo, path):
        if path not in self.files:
            return None
        return text_revision(self.files[path])

    def write_content(
        self,
        auth,
        owner,
        repo,
        path,
        content,
        message,
        previous_revision=None,
    ):
        if self.get_revision(auth, owner, repo, path) != previous_revision:
            raise SourceConflictError(f"stale revision for {path}")
        with self._lock:
            self.writes.append(
                {
                    "path": path,
                    "content": content,
                    "message": message,
                    "previous_revision": previous_revision,
                }
            )
            self.files[path] = content
        return text_revision(content)


def make_repository(**overrides) -> LinkedRepository:
    """Build a LinkedRepository with test defaults."""
    defaults = {
        "id": "repo-1",
        "user_id": "user-1",
        "owner": "octo",
        "name": "notes",
        "source_type": SourceType.GITHUB,
        "access_token": "tok",
    }
    defaults.update(overrides)
    return LinkedRepository(**defaults)


def make_content(**overrides) -> Content:
    """Build a Content with test defaults."""
    defaults = {
        "repository_id": "repo-1",
        "user_id": "user-1",
        "path": "docs/intro.md",
        "title": "Intro",
        "body": "hello",
        "metadata": Metadata(tags=frozenset({"a"})),
        "created_at": T0,
    }
    defaults.update(overrides)
    return Content.create(**defaults)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository():
    return make_repository()


@pytest.fixture
def contents():
    return InMemoryContentRepository()


@pytest.fixture
def repositories(repository):
    return InMemoryRepositoryStore([repository])


@pytest.fixture
def adapter():
    return FakeSourceAdapter(
        {
            "README.md": "# Repo index\n",
            "docs/intro.md": "---\ntitle: Intro\ntags: [guide]\n---\nWelcome\n",
            "docs/setup.md": "# Setup\n\nInstall it.\n",
            "assets/logo.png": "binary",
        }
    )


@pytest.fixture
def reconciler(contents, repositories, clock):
    return Reconciler(
        contents,
        repositories,
        versioning=VersioningService(clock=clock),
        clock=clock,
    )
