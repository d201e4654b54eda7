#!/usr/bin/env python3
"""
Data models for tracked repositories and their releases.

Contains the core data classes used throughout the application.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (GitHub uses a trailing 'Z')."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class RepoSnapshot:
    """Repository metadata as reported by GitHub."""
    full_name: str
    description: Optional[str]
    html_url: str
    stargazers_count: int
    forks_count: int
    watchers_count: int
    open_issues_count: int

    @classmethod
    def from_github_entry(cls, entry: Dict[str, Any]) -> 'RepoSnapshot':
        """Create a RepoSnapshot from a GitHub API repository response."""
        return cls(
            full_name=entry.get("full_name", ""),
            description=entry.get("description"),
            html_url=entry.get("html_url", ""),
            stargazers_count=entry.get("stargazers_count") or 0,
            forks_count=entry.get("forks_count") or 0,
            watchers_count=entry.get("watchers_count") or 0,
            open_issues_count=entry.get("open_issues_count") or 0,
        )


@dataclass(frozen=True)
class ReleaseSnapshot:
    """A single release as reported by GitHub."""
    tag_name: str
    name: Optional[str]
    body: Optional[str]
    html_url: str
    published_at: Optional[datetime]

    def __str__(self) -> str:
        return f"{self.tag_name} {self.published_at}"

    @classmethod
    def from_github_entry(cls, entry: Dict[str, Any]) -> 'ReleaseSnapshot':
        """Create a ReleaseSnapshot from a GitHub API release entry."""
        return cls(
            tag_name=entry["tag_name"],
            name=entry.get("name"),
            body=entry.get("body"),
            html_url=entry.get("html_url", ""),
            published_at=parse_timestamp(entry.get("published_at")),
        )


@dataclass
class Release:
    """A stored release of a tracked repository, keyed by tag within it."""
    repository_id: str
    tag_name: str
    html_url: str
    published_at: datetime
    name: Optional[str] = None
    body: Optional[str] = None
    seen: bool = False
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_snapshot(cls, repository_id: str, snapshot: ReleaseSnapshot,
                      now: Optional[datetime] = None) -> 'Release':
        """Build a new unseen release; a missing publish date falls back to now."""
        now = now or utcnow()
        return cls(
            repository_id=repository_id,
            tag_name=snapshot.tag_name,
            name=snapshot.name or '',
            body=snapshot.body or '',
            html_url=snapshot.html_url,
            published_at=snapshot.published_at or now,
            seen=False,
            created_at=now,
            updated_at=now,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "repositoryId": self.repository_id,
            "tagName": self.tag_name,
            "name": self.name,
            "body": self.body,
            "htmlUrl": self.html_url,
            "publishedAt": format_timestamp(self.published_at),
            "seen": self.seen,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }


@dataclass
class Repository:
    """A tracked GitHub repository.

    ``has_unseen_releases`` is a cached projection of the release rows, not
    a source of truth. ``releases`` is only populated when the store was
    asked to load them.
    """
    owner: str
    name: str
    description: Optional[str] = None
    stargazers_count: int = 0
    forks_count: int = 0
    watchers_count: int = 0
    open_issues_count: int = 0
    has_unseen_releases: bool = False
    last_synced_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    releases: List[Release] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def unseen_count(self) -> int:
        return sum(1 for release in self.releases if not release.seen)

    @classmethod
    def from_snapshot(cls, owner: str, name: str, snapshot: RepoSnapshot,
                      now: Optional[datetime] = None) -> 'Repository':
        now = now or utcnow()
        repository = cls(owner=owner, name=name, created_at=now, updated_at=now,
                         last_synced_at=now)
        repository.apply_snapshot(snapshot)
        return repository

    def apply_snapshot(self, snapshot: RepoSnapshot) -> None:
        """Copy the upstream counters and description onto this record."""
        self.description = snapshot.description or ''
        self.stargazers_count = snapshot.stargazers_count
        self.forks_count = snapshot.forks_count
        self.watchers_count = snapshot.watchers_count
        self.open_issues_count = snapshot.open_issues_count

    def to_dict(self, include_releases: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "owner": self.owner,
            "name": self.name,
            "fullName": self.full_name,
            "description": self.description,
            "stargazersCount": self.stargazers_count,
            "forksCount": self.forks_count,
            "watchersCount": self.watchers_count,
            "openIssuesCount": self.open_issues_count,
            "hasUnseenReleases": self.has_unseen_releases,
            "lastSyncedAt": format_timestamp(self.last_synced_at),
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }
        if include_releases:
            data["releases"] = [release.to_dict() for release in self.releases]
        return data


@dataclass
class SyncSummary:
    """Outcome of a bulk sync: which repositories synced and which failed."""
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": list(self.succeeded),
            "failed": dict(self.failed),
        }
