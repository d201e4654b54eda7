"""
Tests for the data models.
"""

from datetime import datetime, timezone

from conftest import release_entry, repo_entry
from release_tracker.models import (
    Release, ReleaseSnapshot, Repository, RepoSnapshot, SyncSummary, parse_timestamp
)


def test_parse_timestamp_handles_github_format():
    parsed = parse_timestamp("2024-03-05T10:20:30Z")

    assert parsed == datetime(2024, 3, 5, 10, 20, 30, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_naive_timestamps_are_treated_as_utc():
    assert parse_timestamp("2024-03-05T10:20:30").tzinfo == timezone.utc


def test_repo_snapshot_defaults_missing_counters_to_zero():
    snapshot = RepoSnapshot.from_github_entry({"full_name": "octo/widgets", "stargazers_count": None})

    assert snapshot.stargazers_count == 0
    assert snapshot.forks_count == 0
    assert snapshot.description is None


def test_repository_from_snapshot():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    snapshot = RepoSnapshot.from_github_entry(repo_entry(description=None))

    repository = Repository.from_snapshot("octo", "widgets", snapshot, now)

    assert repository.full_name == "octo/widgets"
    assert repository.description == ''
    assert repository.watchers_count == 42
    assert repository.last_synced_at == now
    assert repository.has_unseen_releases is False


def test_release_from_snapshot_uses_now_when_unpublished():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    snapshot = ReleaseSnapshot.from_github_entry(release_entry("v1", published_at=None))

    release = Release.from_snapshot("repo-id", snapshot, now)

    assert release.published_at == now
    assert release.seen is False
    assert release.repository_id == "repo-id"


def test_repository_to_dict_uses_camel_case():
    repository = Repository(owner="octo", name="widgets")
    repository.releases = [
        Release(repository_id=repository.id, tag_name="v1", html_url="u",
                published_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
    ]

    data = repository.to_dict()

    assert data["fullName"] == "octo/widgets"
    assert data["hasUnseenReleases"] is False
    assert data["releases"][0]["tagName"] == "v1"
    assert data["releases"][0]["publishedAt"] == "2024-01-01T00:00:00+00:00"
    assert "releases" not in repository.to_dict(include_releases=False)
    assert repository.unseen_count == 1


def test_ids_are_unique():
    assert Repository(owner="a", name="b").id != Repository(owner="a", name="b").id


def test_sync_summary():
    summary = SyncSummary(succeeded=["octo/widgets"])
    assert summary.ok

    summary.failed["octo/gadgets"] = "boom"
    assert not summary.ok
    assert summary.to_dict() == {"succeeded": ["octo/widgets"], "failed": {"octo/gadgets": "boom"}}
