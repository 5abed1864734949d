"""GitHub REST API v3 client for the remote vault.

Thin transport layer: builds requests, attaches credentials, and maps HTTP
failures onto the sync error taxonomy.  Knows nothing about documents,
metadata or sync policy (see ``vault_sync.sync.remote`` for that).
"""

import base64
import logging
import threading
from typing import Any
from urllib.parse import quote

import requests

from .. import __version__
from ..config import Config
from ..errors import ConflictError, NotFoundError, TransportError
from ..validators import validate_content, validate_remote_path

logger = logging.getLogger(__name__)

COMMITS_PER_PAGE = 100
MAX_COMMIT_PAGES = 10


def encode_content(text: str) -> str:
    """Base64-encode UTF-8 text for the contents API."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(data: str) -> str:
    """Decode base64 content as returned by the API (embedded newlines allowed)."""
    return base64.b64decode(data.replace("\n", "")).decode("utf-8")


class GitHubClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self.repo_url = (
            f"{config.api_url.rstrip('/')}/repos/{config.owner}/{config.repo}"
        )

    @property
    def session(self) -> requests.Session:
        return self._get_session()

    @property
    def branch(self) -> str:
        return self.config.branch

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            session = self._create_session()
            with self._sessions_lock:
                self._sessions.append(session)
            self._thread_local.session = session
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": f"vault-sync/{__version__}",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )
        return session

    def close(self) -> None:
        """Close every session opened by this client, in any thread."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._thread_local = threading.local()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        path: str = "",
        expected_sha: str | None = None,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Send one API request and return the decoded JSON body.

        Raises:
            NotFoundError: HTTP 404.
            ConflictError: HTTP 409, or 422 complaining about the sha.
            TransportError: Any other failure.
        """
        url = f"{self.repo_url}/{endpoint}" if endpoint else self.repo_url
        logger.debug("%s %s", method, url)
        try:
            response = self._get_session().request(
                method,
                url,
                params=params,
                json=payload,
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        status = response.status_code
        if status == 404:
            raise NotFoundError(path or endpoint)
        if status == 409:
            raise ConflictError(path, expected_sha, _error_message(response))
        if status == 422:
            message = _error_message(response)
            if "sha" in message.lower():
                raise ConflictError(path, expected_sha, message)
            raise TransportError(
                f"{method} {url} rejected: {message}", status_code=status
            )
        if not response.ok:
            raise TransportError(
                f"{method} {url} returned HTTP {status}: {_error_message(response)}",
                status_code=status,
            )

        if status == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"{method} {url} returned invalid JSON", status_code=status
            ) from exc

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------

    def validate_connection(self) -> str:
        """Check credentials and repository access.

        Returns the repository's full name if successful.
        """
        repo = self._request("GET", "")
        return str(repo.get("full_name", f"{self.config.owner}/{self.config.repo}"))

    def get_tree(self) -> dict[str, Any]:
        """Return the recursive tree of the configured branch."""
        return self._request(
            "GET",
            f"git/trees/{quote(self.branch, safe='')}",
            params={"recursive": "1"},
        )

    def get_blob(self, sha: str) -> str:
        """Return the decoded content of a blob (used for large files)."""
        blob = self._request("GET", f"git/blobs/{sha}")
        return decode_content(blob.get("content", ""))

    # ------------------------------------------------------------------
    # Contents
    # ------------------------------------------------------------------

    def get_file(self, path: str) -> tuple[str, str]:
        """Return ``(content, sha)`` for *path* on the configured branch.

        Raises:
            NotFoundError: If the file does not exist.
        """
        data = self._request(
            "GET",
            f"contents/{quote(path)}",
            path=path,
            params={"ref": self.branch},
        )
        if isinstance(data, list) or data.get("type") != "file":
            raise NotFoundError(path)
        sha = data["sha"]
        if data.get("encoding") == "base64":
            return decode_content(data.get("content", "")), sha
        # Files above 1 MB come back without inline content.
        return self.get_blob(sha), sha

    def put_file(
        self,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
    ) -> str:
        """Create or update *path* and return the new blob sha.

        Without *sha* the file is created; with it the update only succeeds
        when *sha* is still the current hash.

        Raises:
            ValueError: If path or content fail validation.
            ConflictError: If the remote hash moved.
        """
        ok, reason = validate_remote_path(path)
        if not ok:
            raise ValueError(reason)
        ok, reason = validate_content(content)
        if not ok:
            raise ValueError(reason)

        payload: dict[str, Any] = {
            "message": message,
            "content": encode_content(content),
            "branch": self.branch,
        }
        if sha:
            payload["sha"] = sha
        data = self._request(
            "PUT",
            f"contents/{quote(path)}",
            path=path,
            expected_sha=sha,
            payload=payload,
        )
        return data["content"]["sha"]

    def delete_file(self, path: str, sha: str, message: str) -> None:
        """Delete *path*, provided *sha* is still its current hash."""
        self._request(
            "DELETE",
            f"contents/{quote(path)}",
            path=path,
            expected_sha=sha,
            payload={"message": message, "sha": sha, "branch": self.branch},
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def list_commits(
        self, since: str, max_pages: int = MAX_COMMIT_PAGES
    ) -> tuple[list[dict[str, Any]], bool]:
        """Return commits on the branch since *since*, newest first.

        Returns:
            ``(commits, complete)`` where *complete* is ``False`` when the
            page limit cut the listing short.
        """
        commits: list[dict[str, Any]] = []
        for page in range(1, max_pages + 1):
            batch = self._request(
                "GET",
                "commits",
                params={
                    "since": since,
                    "sha": self.branch,
                    "per_page": COMMITS_PER_PAGE,
                    "page": page,
                },
            )
            commits.extend(batch)
            if len(batch) < COMMITS_PER_PAGE:
                return commits, True
        return commits, False

    def compare(self, base: str, head: str) -> dict[str, Any]:
        """Return the comparison of two commits."""
        return self._request("GET", f"compare/{base}...{head}")


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message", ""))
    return ""
