#!/usr/bin/env python3
"""
Storage interface shared by the SQLite and Firestore backends.
"""

from typing import List, Optional

from .models import Release, Repository


class ReleaseStore:
    """Base interface for repository and release persistence.

    Every method is atomic for a single record only. Backends raise
    ``StoreError`` when the underlying driver fails.
    """

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass

    def setup_database(self):
        raise NotImplementedError

    def find_repository_by_id(self, repository_id: str,
                              with_releases: bool = False) -> Optional[Repository]:
        raise NotImplementedError

    def find_repository_by_owner_and_name(self, owner: str, name: str,
                                          with_releases: bool = False) -> Optional[Repository]:
        raise NotImplementedError

    def list_repositories(self, with_releases: bool = False) -> List[Repository]:
        raise NotImplementedError

    def save_repository(self, repository: Repository) -> Repository:
        raise NotImplementedError

    def delete_repository(self, repository_id: str) -> bool:
        raise NotImplementedError

    def list_releases_by_repository(self, repository_id: str) -> List[Release]:
        raise NotImplementedError

    def find_release_by_id(self, release_id: str) -> Optional[Release]:
        raise NotImplementedError

    def save_release(self, release: Release) -> Release:
        raise NotImplementedError

    def set_seen_for_repository(self, repository_id: str, seen: bool) -> int:
        raise NotImplementedError

    def count_unseen_for_repository(self, repository_id: str) -> int:
        raise NotImplementedError
