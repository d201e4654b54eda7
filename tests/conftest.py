"""
Pytest configuration and shared fixtures.
"""

import copy
import itertools

import pytest

from release_tracker.app import ReleaseTracker
from release_tracker.config import Config
from release_tracker.database import DatabaseManager
from release_tracker.db_factory import reset_resolved_database_path
from release_tracker.exceptions import RemoteError
from release_tracker.models import ReleaseSnapshot, RepoSnapshot


def repo_entry(full_name="octo/widgets", **overrides):
    """A GitHub API repository payload."""
    entry = {
        "full_name": full_name,
        "description": "Widgets for everyone",
        "html_url": f"https://github.com/{full_name}",
        "stargazers_count": 42,
        "forks_count": 7,
        "watchers_count": 42,
        "open_issues_count": 3,
    }
    entry.update(overrides)
    return entry


def release_entry(tag, full_name="octo/widgets", published_at="2024-01-01T12:00:00Z", **overrides):
    """A GitHub API release payload."""
    entry = {
        "tag_name": tag,
        "name": f"Release {tag}",
        "body": f"Notes for {tag}",
        "html_url": f"https://github.com/{full_name}/releases/tag/{tag}",
        "published_at": published_at,
    }
    entry.update(overrides)
    return entry


class FakeGitHubClient:
    """In-memory stand-in for GitHubClient.

    ``repositories`` and ``releases`` hold GitHub-shaped payloads keyed by
    ``owner/name``; ``failures`` maps ``(method, full_name)`` to an exception
    to raise instead.
    """

    def __init__(self):
        self.repositories = {}
        self.releases = {}
        self.failures = {}
        self.calls = []

    def add_repository(self, full_name, releases=(), **overrides):
        self.repositories[full_name] = repo_entry(full_name, **overrides)
        self.releases[full_name] = [release_entry(tag, full_name) for tag in releases]

    def set_releases(self, full_name, tags):
        self.releases[full_name] = [release_entry(tag, full_name) for tag in tags]

    def _check(self, method, full_name):
        self.calls.append((method, full_name))
        if (method, full_name) in self.failures:
            raise self.failures[(method, full_name)]

    def fetch_repository(self, owner, name):
        full_name = f"{owner}/{name}"
        self._check("fetch_repository", full_name)
        if full_name not in self.repositories:
            raise RemoteError(404, "Not Found")
        return RepoSnapshot.from_github_entry(self.repositories[full_name])

    def fetch_releases(self, owner, name):
        full_name = f"{owner}/{name}"
        self._check("fetch_releases", full_name)
        if full_name not in self.repositories:
            raise RemoteError(404, "Not Found")
        return [ReleaseSnapshot.from_github_entry(e) for e in self.releases.get(full_name, [])]


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, store, collection, doc_id):
        self._store = store
        self._collection = collection
        self.id = doc_id

    def get(self):
        return FakeSnapshot(self, self._store[self._collection].get(self.id))

    def set(self, data, merge=False):
        documents = self._store[self._collection]
        if merge and self.id in documents:
            documents[self.id].update(copy.deepcopy(data))
        else:
            documents[self.id] = copy.deepcopy(data)

    def update(self, data):
        self._store[self._collection][self.id].update(copy.deepcopy(data))

    def delete(self):
        self._store[self._collection].pop(self.id, None)


class FakeQuery:
    def __init__(self, store, collection, filters=()):
        self._store = store
        self._collection = collection
        self._filters = tuple(filters)

    def where(self, field, op, value):
        assert op == '==', "fake only supports equality filters"
        return FakeQuery(self._store, self._collection, self._filters + ((field, value),))

    def stream(self):
        for doc_id, data in list(self._store[self._collection].items()):
            if all(data.get(field) == value for field, value in self._filters):
                yield FakeSnapshot(FakeDocumentReference(self._store, self._collection, doc_id), data)


class FakeCollection(FakeQuery):
    _ids = itertools.count(1)

    def document(self, doc_id=None):
        return FakeDocumentReference(self._store, self._collection, doc_id or f"doc-{next(self._ids)}")


class FakeBatch:
    def __init__(self):
        self._operations = []

    def set(self, reference, data, merge=False):
        self._operations.append(lambda: reference.set(data, merge=merge))

    def update(self, reference, data):
        self._operations.append(lambda: reference.update(data))

    def delete(self, reference):
        self._operations.append(reference.delete)

    def commit(self):
        for operation in self._operations:
            operation()
        self._operations = []


class FakeFirestoreClient:
    """Dictionary-backed imitation of the parts of firestore.Client we use."""

    def __init__(self):
        self.data = {}

    def collection(self, name):
        self.data.setdefault(name, {})
        return FakeCollection(self.data, name)

    def batch(self):
        return FakeBatch()


@pytest.fixture(autouse=True)
def _reset_database_path():
    reset_resolved_database_path()
    yield
    reset_resolved_database_path()


@pytest.fixture
def config(tmp_path):
    return Config(database_path=str(tmp_path / "releases.db"), refresh_metadata_on_sync=True)


@pytest.fixture
def store(tmp_path):
    """An open SQLite store with the schema created."""
    with DatabaseManager(str(tmp_path / "releases.db")) as manager:
        manager.setup_database()
        yield manager


@pytest.fixture
def github():
    return FakeGitHubClient()


@pytest.fixture
def tracker(github, store):
    return ReleaseTracker(github, store)
