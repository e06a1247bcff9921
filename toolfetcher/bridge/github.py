"""GitHub bridge — REST metadata queries and plain HTTP downloads.

Wraps a ``requests.Session``.  When a token is configured every request
carries ``Authorization: Bearer <token>``; without one requests go out
unauthenticated and are subject to GitHub's lower anonymous rate limit.

Transient failures (HTTP 429/5xx, connection errors) are retried with
exponential backoff capped at 8 seconds.  Everything else is surfaced as a
``FetchError`` subclass so the dispatcher can skip just the one tool.
"""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import requests
from pydantic import BaseModel, ConfigDict, Field

from toolfetcher.errors import BranchNotFoundError, DownloadError, RemoteQueryError

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
WEB_BASE = "https://github.com"
RAW_BASE = "https://raw.githubusercontent.com"

_RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})
_REPO_URL = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/(?P<owner>[^/\s]+)/(?P<repo>[^/\s#?]+)",
    re.IGNORECASE,
)
_DOWNLOAD_CHUNK = 64 * 1024


def parse_repo_url(url: str) -> tuple[str, str] | None:
    """Return ``(owner, repo)`` for a github.com URL, else ``None``.

    Trailing paths (``/tree/main``, ``/raw/...``) and a ``.git`` suffix are
    ignored.
    """
    match = _REPO_URL.match((url or "").strip())
    if match is None:
        return None
    repo = match.group("repo")
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return match.group("owner"), repo


def filename_from_url(url: str) -> str:
    """Last path segment of *url*, percent-decoded, query stripped."""
    path = urlparse(url).path.rstrip("/")
    return unquote(path.rsplit("/", 1)[-1]) if path else ""


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ReleaseAsset(BaseModel):
    """One downloadable file attached to a release."""

    model_config = ConfigDict(frozen=True)

    name: str
    download_url: str
    size: int = 0


class ReleaseInfo(BaseModel):
    """The subset of a GitHub release toolfetcher uses."""

    model_config = ConfigDict(frozen=True)

    tag: str
    name: str = ""
    assets: list[ReleaseAsset] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class GitHubClient:
    """Blocking GitHub/HTTP client used by the resolver and the stager.

    Parameters
    ----------
    token:
        Optional bearer token.  Empty means unauthenticated.
    timeout:
        Per-request timeout in seconds.  ``None`` waits indefinitely.
    retries:
        Attempts per request for transient failures (minimum 1).
    user_agent:
        Value of the ``User-Agent`` header.
    session:
        Pre-built session, mainly for tests.
    """

    def __init__(
        self,
        token: str = "",
        *,
        timeout: float | None = None,
        retries: int = 3,
        user_agent: str = "toolfetcher",
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.retries = max(1, retries)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self._token = token.strip()

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def _headers(self, api: bool) -> dict[str, str]:
        headers: dict[str, str] = {}
        if api:
            headers["Accept"] = "application/vnd.github+json"
        if self._token:
            headers["Authorization"] = "Bearer " + self._token
        return headers

    def _request(self, url: str, *, api: bool, stream: bool = False) -> requests.Response:
        """GET *url* with retries.  Returns the response for any final status."""
        last_exc: Exception | None = None
        for attempt in range(1, self.retries + 1):
            try:
                resp = self.session.get(
                    url,
                    headers=self._headers(api),
                    timeout=self.timeout,
                    stream=stream,
                    allow_redirects=True,
                )
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_exc = exc
                if attempt < self.retries:
                    wait = min(2 ** (attempt - 1), 8)
                    logger.debug("Network error on %s (%s); retrying in %ss", url, exc, wait)
                    time.sleep(wait)
                    continue
                raise RemoteQueryError(f"network error for {url}: {exc}") from exc

            if resp.status_code in _RETRY_STATUSES and attempt < self.retries:
                wait = min(2 ** (attempt - 1), 8)
                logger.debug("HTTP %s on %s; retrying in %ss", resp.status_code, url, wait)
                resp.close()
                time.sleep(wait)
                continue
            return resp
        raise RemoteQueryError(f"request failed: {url}") from last_exc

    def get_json(self, url: str) -> Any:
        """GET a GitHub API URL and decode the JSON body.

        Raises
        ------
        RemoteQueryError
            On any non-2xx status or an undecodable body.
        """
        resp = self._request(url, api=True)
        if not resp.ok:
            detail = resp.text[:200].strip()
            raise RemoteQueryError(f"HTTP {resp.status_code} for {url}: {detail}")
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteQueryError(f"invalid JSON from {url}") from exc

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def latest_release(self, owner: str, repo: str) -> ReleaseInfo:
        """Query ``/repos/{owner}/{repo}/releases/latest``."""
        data = self.get_json(f"{API_BASE}/repos/{owner}/{repo}/releases/latest")
        if not isinstance(data, dict):
            raise RemoteQueryError(f"unexpected release payload for {owner}/{repo}")
        assets = [
            ReleaseAsset(
                name=str(a.get("name", "")),
                download_url=str(a.get("browser_download_url", "")),
                size=int(a.get("size") or 0),
            )
            for a in data.get("assets") or []
            if isinstance(a, dict)
        ]
        return ReleaseInfo(
            tag=str(data.get("tag_name") or ""),
            name=str(data.get("name") or ""),
            assets=assets,
        )

    def branch_commit(self, owner: str, repo: str, branch: str) -> str:
        """Resolve *branch* to the SHA of its head commit.

        Raises
        ------
        BranchNotFoundError
            If the branch does not exist (HTTP 404).
        RemoteQueryError
            For any other failure.
        """
        url = f"{API_BASE}/repos/{owner}/{repo}/branches/{branch}"
        resp = self._request(url, api=True)
        if resp.status_code == 404:
            raise BranchNotFoundError(f"branch {branch!r} not found in {owner}/{repo}")
        if not resp.ok:
            raise RemoteQueryError(f"HTTP {resp.status_code} for {url}")
        try:
            sha = resp.json()["commit"]["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise RemoteQueryError(f"unexpected branch payload for {owner}/{repo}") from exc
        return str(sha)

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def download(self, url: str, target: Path) -> Path:
        """Stream *url* into *target*.

        Raises
        ------
        DownloadError
            On a non-2xx status or any error while writing.
        """
        target = Path(target)
        try:
            resp = self._request(url, api=False, stream=True)
        except RemoteQueryError as exc:
            raise DownloadError(str(exc)) from exc

        with resp:
            if not resp.ok:
                raise DownloadError(f"HTTP {resp.status_code} downloading {url}")
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                with open(target, "wb") as fh:
                    for chunk in resp.iter_content(chunk_size=_DOWNLOAD_CHUNK):
                        if chunk:
                            fh.write(chunk)
            except (OSError, requests.RequestException) as exc:
                raise DownloadError(f"failed writing {url} to {target}: {exc}") from exc

        logger.debug("Downloaded %s -> %s", url, target)
        return target


# ---------------------------------------------------------------------------
# URL builders
# ---------------------------------------------------------------------------


def commit_archive_url(owner: str, repo: str, sha: str) -> str:
    return f"{WEB_BASE}/{owner}/{repo}/archive/{sha}.zip"


def branch_archive_url(owner: str, repo: str, branch: str) -> str:
    return f"{WEB_BASE}/{owner}/{repo}/archive/refs/heads/{branch}.zip"


def raw_file_url(owner: str, repo: str, branch: str, path: str) -> str:
    return f"{RAW_BASE}/{owner}/{repo}/{branch}/{path.lstrip('/')}"
