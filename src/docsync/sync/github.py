"""GitHub source adapter (REST API v3 over ``requests``)."""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from typing import Any, Callable
from urllib.parse import quote

import requests

from docsync.errors import (
    SourceAuthError,
    SourceConflictError,
    SourceError,
    SourceNotFoundError,
)
from docsync.sync.models import SourceType

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"

# Returns an access token for an app installation id
TokenProvider = Callable[[int], str]


class GitHubSourceAdapter:
    """Read and write markdown files in GitHub repositories.

    Args:
        api_url: Base URL of the REST API (GitHub Enterprise uses its own).
        ref: Branch, tag or sha to read from; writes go to this branch,
            or to the default branch when it is ``HEAD``.
        token_provider: Callable minting installation tokens; required for
            ``get_content_by_installation``.
        timeout: ``(connect, read)`` timeout in seconds for every request.
    """

    source_type = SourceType.GITHUB

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        ref: str = "HEAD",
        token_provider: TokenProvider | None = None,
        timeout: tuple[float, float] = (10, 60),
    ):
        self.api_url = api_url.rstrip("/")
        self.ref = ref
        self.timeout = timeout
        self._token_provider = token_provider
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            }
        )
        return session

    def _repo_url(self, owner: str, repo: str, suffix: str) -> str:
        return (
            f"{self.api_url}/repos/{quote(owner, safe='')}/"
            f"{quote(repo, safe='')}/{suffix}"
        )

    def _request(
        self,
        method: str,
        url: str,
        auth: str | None,
        **kwargs: Any,
    ) -> Any:
        """Send one API request and return the decoded JSON body.

        Raises:
            SourceNotFoundError: On 404.
            SourceAuthError: On 401/403.
            SourceConflictError: On 409/422 for writes.
            SourceError: On any other failure.
        """
        headers = kwargs.pop("headers", {})
        if auth:
            headers["Authorization"] = f"Bearer {auth}"
        try:
            response = self._get_session().request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            raise SourceError(f"GitHub request failed: {exc}") from exc

        status = response.status_code
        if status == 404:
            raise SourceNotFoundError(f"Not found on GitHub: {url}")
        if status in (401, 403):
            raise SourceAuthError(
                f"GitHub rejected the credentials (HTTP {status}): {url}"
            )
        if status in (409, 422) and method == "PUT":
            raise SourceConflictError(
                f"GitHub refused the write (HTTP {status}): "
                f"{_error_message(response)}"
            )
        if status >= 400:
            raise SourceError(
                f"GitHub returned HTTP {status}: {_error_message(response)}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise SourceError(
                f"GitHub returned a non-JSON response for {url}"
            ) from exc

    def _get_file(
        self, auth: str | None, owner: str, repo: str, path: str
    ) -> dict[str, Any]:
        url = self._repo_url(owner, repo, f"contents/{quote(path)}")
        data = self._request("GET", url, auth, params={"ref": self.ref})
        if isinstance(data, list) or data.get("type") != "file":
            raise SourceError(f"Path is not a file: {path}")
        return data

    # ------------------------------------------------------------------
    # SourceAdapter
    # ------------------------------------------------------------------

    def list_paths(self, auth: str | None, owner: str, repo: str) -> list[str]:
        """Return every blob path of the repository tree at ``ref``."""
        url = self._repo_url(owner, repo, f"git/trees/{quote(self.ref)}")
        data = self._request("GET", url, auth, params={"recursive": "1"})
        if data.get("truncated"):
            logger.warning(
                "Tree listing for %s/%s was truncated by GitHub; "
                "some files will be missing",
                owner,
                repo,
            )
        return [
            item["path"]
            for item in data.get("tree", [])
            if item.get("type") == "blob" and item.get("path")
        ]

    def get_content(
        self, auth: str | None, owner: str, repo: str, path: str
    ) -> str:
        return _decode_file(self._get_file(auth, owner, repo, path), path)

    def get_content_by_installation(
        self, installation_id: int, owner: str, repo: str, path: str
    ) -> str:
        if self._token_provider is None:
            raise SourceAuthError(
                "No installation token provider configured; "
                f"cannot read {owner}/{repo}:{path} for installation "
                f"{installation_id}"
            )
        try:
            token = self._token_provider(installation_id)
        except SourceError:
            raise
        except Exception as exc:
            raise SourceAuthError(
                f"Failed to obtain a token for installation "
                f"{installation_id}: {exc}"
            ) from exc
        return self.get_content(token, owner, repo, path)

    def get_revision(
        self, auth: str | None, owner: str, repo: str, path: str
    ) -> str | None:
        """Return the blob sha of *path*, or ``None`` if it does not exist."""
        try:
            data = self._get_file(auth, owner, repo, path)
        except SourceNotFoundError:
            return None
        return data.get("sha")

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
        """Create or update *path* and return the new blob sha."""
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode(
                "ascii"
            ),
        }
        if previous_revision:
            payload["sha"] = previous_revision
        if self.ref != "HEAD":
            payload["branch"] = self.ref

        url = self._repo_url(owner, repo, f"contents/{quote(path)}")
        data = self._request("PUT", url, auth, json=payload)
        sha = (data.get("content") or {}).get("sha")
        if not sha:
            raise SourceError(f"GitHub did not return a revision for {path}")
        logger.debug(
            "Wrote %s/%s:%s (commit %s)",
            owner,
            repo,
            path,
            (data.get("commit") or {}).get("sha"),
        )
        return sha


def _decode_file(data: dict[str, Any], path: str) -> str:
    encoded = data.get("content")
    if encoded is None:
        raise SourceError(f"Content not found in response for {path}")
    if data.get("encoding", "base64") != "base64":
        raise SourceError(
            f"Unsupported content encoding {data.get('encoding')!r} for {path}"
        )
    try:
        return base64.b64decode(encoded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise SourceError(f"Could not decode content of {path}: {exc}") from exc


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason or ""
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason or ""
