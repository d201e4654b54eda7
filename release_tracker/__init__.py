"""
GitHub Release Tracker

Tracks GitHub repositories, stores their release history and remembers which
releases have been seen.
"""

__version__ = "1.0.0"

from .app import ReleaseTracker, run_sync
from .database import DatabaseManager
from .exceptions import NotFound, RemoteError, SyncFailed, TransportError
from .github_client import GitHubClient
from .models import Release, Repository

__all__ = [
    "ReleaseTracker",
    "DatabaseManager",
    "GitHubClient",
    "Release",
    "Repository",
    "NotFound",
    "RemoteError",
    "SyncFailed",
    "TransportError",
    "run_sync",
]
