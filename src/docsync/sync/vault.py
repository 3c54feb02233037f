"""Local notes-vault source adapter.

A vault root holds one directory per linked repository
(``<root>/<repo>/``).  Files are plain markdown; hidden directories such
as ``.obsidian`` or ``.git`` are never listed.  A file's revision is the
normalised SHA-256 of its text, so line-ending or trailing-whitespace
churn does not count as a change.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from docsync.errors import SourceConflictError, SourceError, SourceNotFoundError
from docsync.file_handler import (
    read_text_file,
    resolve_within,
    text_revision,
    write_text_file,
)
from docsync.sync.models import SourceType

logger = logging.getLogger(__name__)


class LocalVaultAdapter:
    """Expose directories under *root* as document repositories.

    Args:
        root: Directory containing one sub-directory per vault.
    """

    source_type = SourceType.OBSIDIAN

    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser()
        self._write_lock = threading.Lock()

    def vault_dir(self, repo: str) -> Path:
        """Return the directory backing *repo*."""
        try:
            return resolve_within(self.root, repo)
        except ValueError as exc:
            raise SourceError(f"Invalid vault name {repo!r}: {exc}") from exc

    def _file(self, repo: str, path: str) -> Path:
        try:
            return resolve_within(self.vault_dir(repo), path)
        except ValueError as exc:
            raise SourceError(f"Invalid document path {path!r}: {exc}") from exc

    def _read(self, repo: str, path: str) -> str:
        target = self._file(repo, path)
        if not target.is_file():
            raise SourceNotFoundError(f"No such note in vault {repo}: {path}")
        try:
            text, _encoding = read_text_file(target)
        except OSError as exc:
            raise SourceError(f"Could not read {target}: {exc}") from exc
        return text

    # ------------------------------------------------------------------
    # SourceAdapter
    # ------------------------------------------------------------------

    def list_paths(self, auth: str | None, owner: str, repo: str) -> list[str]:
        vault = self.vault_dir(repo)
        if not vault.is_dir():
            raise SourceNotFoundError(f"Vault directory not found: {vault}")

        paths: list[str] = []
        for dirpath, dirnames, filenames in os.walk(vault):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                relative = Path(dirpath, filename).relative_to(vault)
                paths.append(relative.as_posix())
        logger.debug("Listed %d files in vault %s", len(paths), vault)
        return paths

    def get_content(
        self, auth: str | None, owner: str, repo: str, path: str
    ) -> str:
        return self._read(repo, path)

    def get_content_by_installation(
        self, installation_id: int, owner: str, repo: str, path: str
    ) -> str:
        # Vaults have no app installations; local files need no credentials
        return self._read(repo, path)

    def get_revision(
        self, auth: str | None, owner: str, repo: str, path: str
    ) -> str | None:
        try:
            return text_revision(self._read(repo, path))
        except SourceNotFoundError:
            return None

    def write_content(
        self,
        auth: str | None,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        previous_revision: str | None = None,
    ) -> str:
        target = self._file(repo, path)
        with self._write_lock:
            current = self.get_revision(auth, owner, repo, path)
            if current != previous_revision:
                raise SourceConflictError(
                    f"Note {path} in vault {repo} changed since revision "
                    f"{previous_revision} (now {current})"
                )
            try:
                write_text_file(target, content)
            except OSError as exc:
                raise SourceError(f"Could not write {target}: {exc}") from exc
        logger.debug("Wrote %s (%s)", target, message)
        return text_revision(content)
