#!/usr/bin/env python3
"""
Firestore database manager for Google App Engine deployment.
"""

import logging
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from .exceptions import StoreError
from .models import Release, Repository, utcnow
from .store import ReleaseStore

logger = logging.getLogger(__name__)

REPOSITORIES = 'repositories'
RELEASES = 'releases'
# Firestore rejects write batches with more than 500 operations
BATCH_LIMIT = 400


def _repository_to_document(repository: Repository) -> Dict[str, Any]:
    return {
        'owner': repository.owner,
        'name': repository.name,
        'full_name': repository.full_name,
        'description': repository.description,
        'stargazers_count': repository.stargazers_count,
        'forks_count': repository.forks_count,
        'watchers_count': repository.watchers_count,
        'open_issues_count': repository.open_issues_count,
        'has_unseen_releases': repository.has_unseen_releases,
        'last_synced_at': repository.last_synced_at,
        'created_at': repository.created_at,
        'updated_at': repository.updated_at,
    }


def _document_to_repository(doc_id: str, data: Dict[str, Any]) -> Repository:
    return Repository(
        id=doc_id,
        owner=data['owner'],
        name=data['name'],
        description=data.get('description'),
        stargazers_count=data.get('stargazers_count', 0),
        forks_count=data.get('forks_count', 0),
        watchers_count=data.get('watchers_count', 0),
        open_issues_count=data.get('open_issues_count', 0),
        has_unseen_releases=data.get('has_unseen_releases', False),
        last_synced_at=data.get('last_synced_at'),
        created_at=data.get('created_at'),
        updated_at=data.get('updated_at'),
    )


def _release_to_document(release: Release) -> Dict[str, Any]:
    return {
        'repository_id': release.repository_id,
        'tag_name': release.tag_name,
        'name': release.name,
        'body': release.body,
        'html_url': release.html_url,
        'published_at': release.published_at,
        'seen': release.seen,
        'created_at': release.created_at,
        'updated_at': release.updated_at,
    }


def _document_to_release(doc_id: str, data: Dict[str, Any]) -> Release:
    return Release(
        id=doc_id,
        repository_id=data['repository_id'],
        tag_name=data['tag_name'],
        name=data.get('name'),
        body=data.get('body'),
        html_url=data.get('html_url', ''),
        published_at=data.get('published_at'),
        seen=data.get('seen', False),
        created_at=data.get('created_at'),
        updated_at=data.get('updated_at'),
    )


class FirestoreDatabaseManager(ReleaseStore):
    """Handles all repository and release operations using Firestore."""

    def __init__(self, client: Optional[Any] = None):
        """Initialize the Firestore database manager.

        Args:
            client: Firestore client; a default ``firestore.Client()`` is
                created from the ambient Google credentials when omitted.
        """
        self.db = client or firestore.Client()

    def setup_database(self):
        """Initialize collections - Firestore creates them automatically."""
        logger.info("Firestore collections will be created automatically")

    def _release_docs(self, repository_id: str):
        return (self.db.collection(RELEASES)
                .where('repository_id', '==', repository_id)
                .stream())

    def _with_releases(self, repository: Optional[Repository], with_releases: bool):
        if repository is not None and with_releases:
            repository.releases = self.list_releases_by_repository(repository.id)
        return repository

    def find_repository_by_id(self, repository_id: str,
                              with_releases: bool = False) -> Optional[Repository]:
        try:
            doc = self.db.collection(REPOSITORIES).document(repository_id).get()
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to load repository {repository_id}: {e}")
            raise StoreError(f"Failed to load repository {repository_id}: {e}") from e
        repository = _document_to_repository(doc.id, doc.to_dict()) if doc.exists else None
        return self._with_releases(repository, with_releases)

    def find_repository_by_owner_and_name(self, owner: str, name: str,
                                          with_releases: bool = False) -> Optional[Repository]:
        try:
            docs = list(self.db.collection(REPOSITORIES)
                        .where('full_name', '==', f"{owner}/{name}")
                        .stream())
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to look up {owner}/{name}: {e}")
            raise StoreError(f"Failed to look up {owner}/{name}: {e}") from e
        if not docs:
            return None
        repository = _document_to_repository(docs[0].id, docs[0].to_dict())
        return self._with_releases(repository, with_releases)

    def list_repositories(self, with_releases: bool = False) -> List[Repository]:
        try:
            docs = list(self.db.collection(REPOSITORIES).stream())
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to list repositories: {e}")
            raise StoreError(f"Failed to list repositories: {e}") from e
        repositories = [_document_to_repository(doc.id, doc.to_dict()) for doc in docs]
        repositories.sort(key=lambda repo: repo.full_name)
        return [self._with_releases(repo, with_releases) for repo in repositories]

    def save_repository(self, repository: Repository) -> Repository:
        repository.updated_at = utcnow()
        try:
            doc_ref = self.db.collection(REPOSITORIES).document(repository.id)
            doc_ref.set(_repository_to_document(repository))
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to save repository {repository.full_name}: {e}")
            raise StoreError(f"Failed to save repository {repository.full_name}: {e}") from e
        return repository

    def delete_repository(self, repository_id: str) -> bool:
        """Delete a repository document and all of its release documents."""
        try:
            doc_ref = self.db.collection(REPOSITORIES).document(repository_id)
            if not doc_ref.get().exists:
                return False
            batch = self.db.batch()
            pending = 0
            for doc in self._release_docs(repository_id):
                batch.delete(doc.reference)
                pending += 1
                if pending == BATCH_LIMIT:
                    batch.commit()
                    batch, pending = self.db.batch(), 0
            batch.delete(doc_ref)
            batch.commit()
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to delete repository {repository_id}: {e}")
            raise StoreError(f"Failed to delete repository {repository_id}: {e}") from e
        logger.info(f"Deleted repository {repository_id} and its releases")
        return True

    def list_releases_by_repository(self, repository_id: str) -> List[Release]:
        try:
            releases = [_document_to_release(doc.id, doc.to_dict())
                        for doc in self._release_docs(repository_id)]
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to list releases of {repository_id}: {e}")
            raise StoreError(f"Failed to list releases of {repository_id}: {e}") from e
        releases.sort(key=lambda release: (release.published_at, release.created_at), reverse=True)
        return releases

    def find_release_by_id(self, release_id: str) -> Optional[Release]:
        try:
            doc = self.db.collection(RELEASES).document(release_id).get()
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to load release {release_id}: {e}")
            raise StoreError(f"Failed to load release {release_id}: {e}") from e
        return _document_to_release(doc.id, doc.to_dict()) if doc.exists else None

    def save_release(self, release: Release) -> Release:
        release.updated_at = utcnow()
        try:
            self.db.collection(RELEASES).document(release.id).set(_release_to_document(release))
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to save release {release.tag_name}: {e}")
            raise StoreError(f"Failed to save release {release.tag_name}: {e}") from e
        return release

    def set_seen_for_repository(self, repository_id: str, seen: bool) -> int:
        updated = 0
        try:
            batch = self.db.batch()
            now = utcnow()
            for doc in self._release_docs(repository_id):
                batch.update(doc.reference, {'seen': seen, 'updated_at': now})
                updated += 1
                if updated % BATCH_LIMIT == 0:
                    batch.commit()
                    batch = self.db.batch()
            batch.commit()
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to update seen state for {repository_id}: {e}")
            raise StoreError(f"Failed to update seen state for {repository_id}: {e}") from e
        logger.info(f"Marked {updated} releases of {repository_id} as {'seen' if seen else 'unseen'}")
        return updated

    def count_unseen_for_repository(self, repository_id: str) -> int:
        try:
            docs = (self.db.collection(RELEASES)
                    .where('repository_id', '==', repository_id)
                    .where('seen', '==', False)
                    .stream())
            return sum(1 for _ in docs)
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to count unseen releases of {repository_id}: {e}")
            raise StoreError(f"Failed to count unseen releases of {repository_id}: {e}") from e
