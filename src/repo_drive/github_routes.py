"""Authenticated GitHub endpoints used by the browser client.

  POST /api/github/validate   → resolve the login behind a token
  GET  /api/github/view       → raw bytes of a repository file

``/api/github/view`` is the authenticated direct-fetch path. It shares
``resolve_repo_path``, ``GitHubClient.fetch_file`` and
``guess_content_type`` with the share proxy, so a shared file is served
with the same bytes and type as the owner sees.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .observability.logging import get_logger
from .providers.github_client import (
    GitHubAuthError,
    GitHubClient,
    GitHubError,
    GitHubNotAFileError,
    GitHubNotFoundError,
    resolve_repo_path,
)
from .settings import DriveSettings
from .sharing.access import guess_content_type
from .sharing.routes import extract_bearer_token

logger = get_logger(__name__)


class ValidateTokenRequest(BaseModel):
    token: str | None = None


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': error, 'detail': detail})


def create_github_router(github: GitHubClient, settings: DriveSettings) -> APIRouter:
    """Create the authenticated GitHub router."""
    router = APIRouter(prefix='/api/github', tags=['github'])

    @router.post('/validate')
    async def validate_token(body: ValidateTokenRequest):
        if not body.token or not body.token.strip():
            return _error(400, 'invalid_request', 'Token required')
        try:
            user = await github.get_authenticated_user(body.token.strip())
        except GitHubAuthError:
            return _error(401, 'unauthorized', 'Invalid token')
        except GitHubError as exc:
            logger.warning('github_validate_failed', error_type=type(exc).__name__)
            return _error(500, 'internal_error', 'Failed to validate token')
        return {'username': user.login}

    @router.get('/view')
    async def view_file(
        request: Request,
        owner: str | None = None,
        repo: str | None = None,
        branch: str | None = None,
        path: str | None = None,
    ):
        credential = extract_bearer_token(request)
        if not credential or not owner or not repo or not path:
            return _error(400, 'invalid_request', 'Missing requirements')

        try:
            repo_path = resolve_repo_path(settings.content_root, path)
        except ValueError as exc:
            return _error(400, 'invalid_request', str(exc))

        try:
            data = await github.fetch_file(
                credential, owner, repo, branch or settings.default_branch, repo_path,
            )
        except GitHubAuthError:
            return _error(401, 'unauthorized', 'Invalid token')
        except (GitHubNotFoundError, GitHubNotAFileError):
            return _error(404, 'not_found', 'File not found')
        except GitHubError as exc:
            logger.warning('github_view_failed', error_type=type(exc).__name__)
            return _error(500, 'internal_error', 'Failed to load file')

        return Response(content=data, media_type=guess_content_type(path))

    return router
