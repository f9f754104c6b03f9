"""Async HTTP client for the GitHub REST API.

Provides identity resolution and raw file retrieval against a user's own
repository. The bearer credential is supplied per call and never kept on
the client, so one client instance serves every user of the process.

File retrieval covers both shapes of the contents API:

  - small objects: JSON ``content`` field, base64 with embedded newlines.
  - large objects (over 1 MB): ``content`` is empty and ``encoding`` is
    ``none``; the bytes are fetched in a second round trip from
    ``download_url`` (or the git blob endpoint) with the same credential.

No retries: every failure is terminal for the calling request.
"""

from __future__ import annotations

import base64
import binascii
import posixpath
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ..observability.logging import get_logger
from ..observability.metrics import GITHUB_REQUESTS_TOTAL

logger = get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"
_JSON_ACCEPT = "application/vnd.github+json"
_RAW_ACCEPT = "application/vnd.github.raw"


# ── Exception hierarchy ─────────────────────────────────────────


class GitHubError(Exception):
    """Base exception for GitHub API errors.

    Messages never contain the credential used for the call.
    """

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"GitHub API error {status_code}: {message}")


class GitHubAuthError(GitHubError):
    """Credential rejected (401/403)."""


class GitHubNotFoundError(GitHubError):
    """Repository, branch, or path not found (404)."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(404, message)


class GitHubNotAFileError(GitHubError):
    """Path resolves to a directory or a non-file object."""

    def __init__(self, message: str = "Path is not a file") -> None:
        super().__init__(0, message)


class GitHubTimeoutError(GitHubError):
    """Request to GitHub timed out."""

    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(0, message)


class GitHubAPIError(GitHubError):
    """Any other upstream failure (5xx, transport error, malformed payload)."""


# ── Path helpers ─────────────────────────────────────────────────


def resolve_repo_path(content_root: str, path: str) -> str:
    """Map a user-facing relative path onto the repository path.

    User files live under ``content_root``; a path that already carries the
    root prefix is left as is. Raises ValueError for empty paths and for
    paths containing ``..`` segments.
    """
    cleaned = (path or "").strip().lstrip("/")
    if not cleaned:
        raise ValueError("path is required")
    if ".." in cleaned.split("/"):
        raise ValueError("path must not contain '..' segments")
    cleaned = posixpath.normpath(cleaned)
    if cleaned == ".":
        raise ValueError("path is required")

    root = (content_root or "").strip("/")
    if not root or cleaned == root or cleaned.startswith(f"{root}/"):
        return cleaned
    return f"{root}/{cleaned}"


# ── Module-level shared client ───────────────────────────────────

_shared_async_client: httpx.AsyncClient | None = None


def _get_shared_async_client() -> httpx.AsyncClient:
    global _shared_async_client
    if _shared_async_client is None:
        _shared_async_client = httpx.AsyncClient(follow_redirects=True)
    return _shared_async_client


async def close_shared_async_client() -> None:
    """Close the shared client (app shutdown)."""
    global _shared_async_client
    if _shared_async_client is not None:
        await _shared_async_client.aclose()
        _shared_async_client = None


# ── Client ───────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class GitHubUser:
    """Identity behind a credential."""

    login: str


class GitHubClient:
    """Async client for the subset of the GitHub REST API used by repo-drive.

    Args:
        base_url: API root, ``https://api.github.com`` for github.com.
        http_client: Injected ``httpx.AsyncClient`` (tests use MockTransport).
        timeout_seconds: Bound applied to every upstream call.
    """

    def __init__(
        self,
        *,
        base_url: str = "https://api.github.com",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = http_client or _get_shared_async_client()
        self._timeout = float(timeout_seconds)

    @staticmethod
    def _headers(credential: str, accept: str = _JSON_ACCEPT) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Accept": accept,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _get(
        self,
        operation: str,
        url: str,
        credential: str,
        *,
        accept: str = _JSON_ACCEPT,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            resp = await self._client.request(
                "GET",
                url,
                headers=self._headers(credential, accept),
                params=params,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            GITHUB_REQUESTS_TOTAL.labels(operation=operation, outcome="timeout").inc()
            logger.warning("github_request_timeout", operation=operation)
            raise GitHubTimeoutError() from e
        except httpx.HTTPError as e:
            GITHUB_REQUESTS_TOTAL.labels(operation=operation, outcome="transport_error").inc()
            logger.warning(
                "github_transport_error",
                operation=operation,
                error_type=type(e).__name__,
            )
            raise GitHubAPIError(0, "transport error") from e

        outcome = "ok" if resp.status_code < 400 else str(resp.status_code)
        GITHUB_REQUESTS_TOTAL.labels(operation=operation, outcome=outcome).inc()
        self._raise_for_status(resp)
        return resp

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        message = f"HTTP {resp.status_code}"
        try:
            payload = resp.json()
            if isinstance(payload, dict) and isinstance(payload.get("message"), str):
                message = payload["message"][:200]
        except ValueError:
            pass

        if resp.status_code in (401, 403):
            raise GitHubAuthError(resp.status_code, message)
        if resp.status_code == 404:
            raise GitHubNotFoundError(message)
        raise GitHubAPIError(resp.status_code, message)

    # ── Public API ───────────────────────────────────────────────

    async def get_authenticated_user(self, credential: str) -> GitHubUser:
        """Resolve the login behind ``credential``.

        Raises GitHubAuthError if GitHub rejects the credential.
        """
        resp = await self._get("get_user", f"{self._base_url}/user", credential)
        try:
            payload = resp.json()
        except ValueError as e:
            raise GitHubAPIError(resp.status_code, "malformed /user payload") from e
        login = payload.get("login") if isinstance(payload, dict) else None
        if not login:
            raise GitHubAPIError(resp.status_code, "missing login in /user payload")
        return GitHubUser(login=login)

    async def fetch_file(
        self,
        credential: str,
        owner: str,
        repo: str,
        branch: str,
        path: str,
    ) -> bytes:
        """Return the raw bytes of ``path`` at ``branch``.

        Raises GitHubNotFoundError, GitHubNotAFileError, GitHubAuthError,
        GitHubTimeoutError or GitHubAPIError.
        """
        url = (
            f"{self._base_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"
            f"/contents/{quote(path.lstrip('/'), safe='/')}"
        )
        resp = await self._get("get_content", url, credential, params={"ref": branch})
        try:
            meta = resp.json()
        except ValueError as e:
            raise GitHubAPIError(resp.status_code, "malformed contents payload") from e

        if not isinstance(meta, dict) or meta.get("type", "file") != "file":
            raise GitHubNotAFileError()

        encoding = meta.get("encoding")
        content = meta.get("content") or ""
        if encoding == "base64" and (content or meta.get("size", 0) == 0):
            return self._decode_inline(content)

        return await self._fetch_large_object(credential, owner, repo, meta)

    @staticmethod
    def _decode_inline(content: str) -> bytes:
        try:
            return base64.b64decode("".join(content.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise GitHubAPIError(0, "invalid base64 content") from e

    async def _fetch_large_object(
        self,
        credential: str,
        owner: str,
        repo: str,
        meta: dict[str, Any],
    ) -> bytes:
        """Second round trip for objects the contents API does not inline."""
        download_url = meta.get("download_url")
        if download_url:
            resp = await self._get(
                "download_raw", download_url, credential, accept=_RAW_ACCEPT,
            )
            return resp.content

        sha = meta.get("sha")
        if not sha:
            raise GitHubAPIError(0, "no download reference for large object")
        url = (
            f"{self._base_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"
            f"/git/blobs/{quote(sha, safe='')}"
        )
        resp = await self._get("get_blob", url, credential, accept=_RAW_ACCEPT)
        return resp.content
