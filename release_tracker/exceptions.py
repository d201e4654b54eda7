#!/usr/bin/env python3
"""
Exception hierarchy for the release tracker.
"""

from typing import Optional


class ReleaseTrackerError(Exception):
    """Base class for all release tracker errors."""


class ConfigurationError(ReleaseTrackerError):
    """Raised when an environment setting cannot be parsed."""


class NotFound(ReleaseTrackerError):
    """Raised when a repository or release id has no stored record."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} with ID {identifier} not found")


class StoreError(ReleaseTrackerError):
    """Raised when the persistence backend fails."""


class UpstreamError(ReleaseTrackerError):
    """Base class for failures talking to the GitHub API."""


class RemoteError(UpstreamError):
    """GitHub answered with a non-success status."""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"GitHub API error: {status} - {message}")


class TransportError(UpstreamError):
    """GitHub could not be reached (connection failure or timeout)."""


class SyncFailed(ReleaseTrackerError):
    """Wraps an upstream or store failure raised while syncing one repository."""

    def __init__(self, full_name: str, cause: Optional[Exception] = None):
        self.full_name = full_name
        self.cause = cause
        super().__init__(f"Failed to sync releases for {full_name}: {cause}")
