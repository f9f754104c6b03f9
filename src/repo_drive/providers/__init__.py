"""Upstream content providers."""

from .github_client import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubClient,
    GitHubError,
    GitHubNotAFileError,
    GitHubNotFoundError,
    GitHubTimeoutError,
    GitHubUser,
    resolve_repo_path,
)

__all__ = [
    "GitHubAPIError",
    "GitHubAuthError",
    "GitHubClient",
    "GitHubError",
    "GitHubNotAFileError",
    "GitHubNotFoundError",
    "GitHubTimeoutError",
    "GitHubUser",
    "resolve_repo_path",
]
