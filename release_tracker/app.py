#!/usr/bin/env python3
"""
GitHub Release Tracker

Tracks GitHub repositories, keeps their release history in a local store and
records which releases the user has already seen.
"""

import logging
from typing import List, Optional, Tuple

from .config import Config, load_configuration
from .db_factory import get_database_manager
from .exceptions import NotFound, ReleaseTrackerError, StoreError, SyncFailed, UpstreamError
from .github_client import GitHubClient
from .models import Release, Repository, SyncSummary, utcnow
from .store import ReleaseStore

logger = logging.getLogger(__name__)


class ReleaseTracker:
    """Synchronizes tracked repositories with GitHub and manages seen state."""

    def __init__(self, client: GitHubClient, store: ReleaseStore,
                 refresh_metadata: bool = True):
        """
        Initialize the tracker.

        Args:
            client: Upstream client used to fetch metadata and releases
            store: Open store holding repositories and releases
            refresh_metadata: Also refresh repository counters on every sync
        """
        self.client = client
        self.store = store
        self.refresh_metadata = refresh_metadata

    def _load(self, repository_id: str, with_releases: bool = False) -> Repository:
        repository = self.store.find_repository_by_id(repository_id, with_releases=with_releases)
        if repository is None:
            raise NotFound("Repository", repository_id)
        return repository

    def _recompute_unseen(self, repository: Repository) -> Repository:
        """Set the cached flag from a fresh count of unseen releases."""
        has_unseen = self.store.count_unseen_for_repository(repository.id) > 0
        if repository.has_unseen_releases != has_unseen:
            repository.has_unseen_releases = has_unseen
            self.store.save_repository(repository)
        return repository

    def list_repositories(self) -> List[Repository]:
        """Get all tracked repositories with their releases."""
        return self.store.list_repositories(with_releases=True)

    def get_repository(self, repository_id: str) -> Repository:
        return self._load(repository_id, with_releases=True)

    def track_repository(self, owner: str, name: str) -> Repository:
        """
        Start tracking ``owner/name`` and pull its releases.

        Tracking an already tracked repository returns the stored record. A
        failing release sync does not undo the tracking; the next scheduled
        sync retries it.
        """
        existing = self.store.find_repository_by_owner_and_name(owner, name, with_releases=True)
        if existing is not None:
            logger.info(f"{existing.full_name} is already tracked")
            return existing

        snapshot = self.client.fetch_repository(owner, name)
        repository = Repository.from_snapshot(owner, name, snapshot)
        self.store.save_repository(repository)
        logger.info(f"Tracking {repository.full_name} ({repository.id})")

        try:
            return self.sync_repository(repository.id)
        except SyncFailed as e:
            logger.warning(f"Tracked {repository.full_name} without releases: {e}")
            return self._load(repository.id, with_releases=True)

    def remove_repository(self, repository_id: str) -> bool:
        """Stop tracking a repository; its releases are deleted with it."""
        removed = self.store.delete_repository(repository_id)
        if removed:
            logger.info(f"Removed repository {repository_id}")
        return removed

    def _fetch_upstream(self, repository: Repository):
        releases = self.client.fetch_releases(repository.owner, repository.name)
        snapshot = None
        if self.refresh_metadata:
            snapshot = self.client.fetch_repository(repository.owner, repository.name)
        return releases, snapshot

    def sync_repository(self, repository_id: str) -> Repository:
        """
        Append releases GitHub reports that are not stored yet.

        Stored releases are matched by tag name and never updated. Both
        GitHub reads happen before the first write.

        Raises:
            NotFound: no repository has this id
            SyncFailed: loading, fetching or persisting failed
        """
        try:
            repository = self.store.find_repository_by_id(repository_id, with_releases=True)
        except StoreError as e:
            logger.error(f"Failed to load repository {repository_id}: {e}")
            raise SyncFailed(repository_id, e) from e
        if repository is None:
            raise NotFound("Repository", repository_id)
        logger.info(f"Syncing releases for {repository.full_name}")

        try:
            upstream_releases, snapshot = self._fetch_upstream(repository)

            existing_tags = {release.tag_name for release in repository.releases}
            now = utcnow()
            new_releases = []
            for entry in upstream_releases:
                if entry.tag_name in existing_tags:
                    continue
                release = Release.from_snapshot(repository.id, entry, now)
                self.store.save_release(release)
                new_releases.append(release)
                logger.debug(f"New release for {repository.full_name}: {entry}")

            if snapshot is not None:
                repository.apply_snapshot(snapshot)
            repository.last_synced_at = now
            # Only ever set here; also repairs a flag lost by an earlier failed save
            if new_releases or self.store.count_unseen_for_repository(repository.id) > 0:
                repository.has_unseen_releases = True
            self.store.save_repository(repository)
        except (UpstreamError, StoreError) as e:
            logger.error(f"Failed to sync releases for {repository.full_name}: {e}")
            raise SyncFailed(repository.full_name, e) from e

        if new_releases:
            logger.info(f"Added {len(new_releases)} new releases for {repository.full_name}")
        else:
            logger.info(f"No new releases for {repository.full_name}")
        repository.releases = sorted(
            repository.releases + new_releases,
            key=lambda release: (release.published_at, release.created_at),
            reverse=True
        )
        return repository

    def sync_all_repositories(self) -> SyncSummary:
        """Sync every tracked repository; one failure never stops the others."""
        logger.info("Starting sync for all repositories")
        summary = SyncSummary()

        for repository in self.store.list_repositories():
            try:
                self.sync_repository(repository.id)
                summary.succeeded.append(repository.full_name)
                logger.info(f"Successfully synced releases for {repository.full_name}")
            except ReleaseTrackerError as e:
                summary.failed[repository.full_name] = str(e)
                logger.error(f"Failed to sync releases for {repository.full_name}: {e}")
                continue

        logger.info(
            f"Finished syncing all repositories: {len(summary.succeeded)} succeeded, "
            f"{len(summary.failed)} failed"
        )
        return summary

    def mark_all_releases_seen(self, repository_id: str) -> Repository:
        """Mark every release of a repository as seen."""
        repository = self._load(repository_id, with_releases=True)
        if not repository.releases:
            return repository

        self.store.set_seen_for_repository(repository_id, True)
        self._recompute_unseen(repository)
        return self._load(repository_id, with_releases=True)

    def mark_release_seen(self, release_id: str) -> Release:
        """Mark one release as seen and clear the repository flag if nothing unseen is left."""
        release = self.store.find_release_by_id(release_id)
        if release is None:
            raise NotFound("Release", release_id)

        release.seen = True
        self.store.save_release(release)

        repository = self.store.find_repository_by_id(release.repository_id)
        if repository is not None:
            self._recompute_unseen(repository)
        return release


def split_full_name(full_name: str) -> Tuple[str, str]:
    """Split ``owner/name`` into its parts."""
    owner, sep, name = full_name.strip().partition('/')
    if not sep or not owner or not name or '/' in name:
        raise ValueError(f"Expected 'owner/name', got {full_name!r}")
    return owner, name


def build_client(config: Config) -> GitHubClient:
    return GitHubClient(
        token=config.github_token,
        base_url=config.github_api_url,
        timeout=config.github_timeout,
    )


def run_sync(config: Optional[Config] = None) -> Tuple[bool, str]:
    """Runs the bulk release synchronization."""
    try:
        config = config or load_configuration()
        with get_database_manager(config) as store:
            store.setup_database()
            tracker = ReleaseTracker(build_client(config), store, config.refresh_metadata_on_sync)
            summary = tracker.sync_all_repositories()
    except ReleaseTrackerError as e:
        logger.error(f"Sync error: {e}")
        return False, str(e)

    if summary.ok:
        message = f"Synced {len(summary.succeeded)} repositories"
    else:
        message = (f"Synced {len(summary.succeeded)} repositories, "
                   f"{len(summary.failed)} failed: {', '.join(sorted(summary.failed))}")
    logger.info(message)
    return True, message
