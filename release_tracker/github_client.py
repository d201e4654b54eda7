#!/usr/bin/env python3
"""
GitHub REST API client for repository metadata and releases.
"""

import logging
from typing import Any, List, Optional

import requests

from .exceptions import RemoteError, TransportError
from .models import ReleaseSnapshot, RepoSnapshot

logger = logging.getLogger(__name__)


class GitHubClient:
    """Thin client over the GitHub REST API.

    No retries are attempted; callers decide what to do on failure.
    """

    RELEASES_PAGE_SIZE = 100

    def __init__(self, token: Optional[str] = None, base_url: str = "https://api.github.com",
                 timeout: int = 30, session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            token: GitHub Personal Access Token (optional)
            base_url: API root, without a trailing slash
            timeout: Per-request timeout in seconds
            session: Pre-built requests session (mainly for tests)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "github-release-tracker",
        })
        if token:
            self.session.headers["Authorization"] = f"token {token}"
        else:
            logger.warning("GitHub token not provided. API rate limits will be restricted.")

    def _request(self, endpoint: str, params: Optional[dict] = None) -> Any:
        """GET an endpoint and decode the JSON body."""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.error(f"Failed to fetch {url}: {e}")
            raise TransportError(f"Could not reach GitHub at {url}: {e}") from e
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {url}: {e}")
            raise TransportError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            message = self._error_message(response)
            logger.error(f"Failed to fetch {url}: {response.status_code} {message}")
            raise RemoteError(response.status_code, message)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(response.status_code, f"Invalid JSON in response: {e}") from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("message"):
            return payload["message"]
        return response.reason or "Unknown error"

    def fetch_repository(self, owner: str, name: str) -> RepoSnapshot:
        """Fetch repository metadata for ``owner/name``."""
        data = self._request(f"/repos/{owner}/{name}")
        try:
            return RepoSnapshot.from_github_entry(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed repository payload for {owner}/{name}: {e!r}")
            raise RemoteError(200, f"Malformed repository payload: {e!r}") from e

    def fetch_releases(self, owner: str, name: str) -> List[ReleaseSnapshot]:
        """Fetch the first page of releases, in the order GitHub returns them."""
        data = self._request(
            f"/repos/{owner}/{name}/releases",
            params={"per_page": self.RELEASES_PAGE_SIZE}
        )
        if not isinstance(data, list):
            raise RemoteError(200, "Unexpected releases payload")
        try:
            return [ReleaseSnapshot.from_github_entry(entry) for entry in data]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed release payload for {owner}/{name}: {e!r}")
            raise RemoteError(200, f"Malformed release payload: {e!r}") from e
