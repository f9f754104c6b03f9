"""repo-drive: GitHub-backed file manager with expiring share links."""

from .main import create_app
from .settings import DriveSettings

__all__ = ["create_app", "DriveSettings"]
