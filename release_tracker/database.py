#!/usr/bin/env python3
"""
SQLite storage for tracked repositories and their releases.
"""

import logging
import sqlite3
from typing import List, Optional

from .exceptions import StoreError
from .models import Release, Repository, format_timestamp, parse_timestamp, utcnow
from .store import ReleaseStore

logger = logging.getLogger(__name__)

REPOSITORY_COLUMNS = (
    "id, owner, name, full_name, description, stargazers_count, forks_count, "
    "watchers_count, open_issues_count, has_unseen_releases, last_synced_at, "
    "created_at, updated_at"
)
RELEASE_COLUMNS = (
    "id, repository_id, tag_name, name, body, html_url, published_at, seen, "
    "created_at, updated_at"
)


def _row_to_repository(row: sqlite3.Row) -> Repository:
    return Repository(
        id=row["id"],
        owner=row["owner"],
        name=row["name"],
        description=row["description"],
        stargazers_count=row["stargazers_count"],
        forks_count=row["forks_count"],
        watchers_count=row["watchers_count"],
        open_issues_count=row["open_issues_count"],
        has_unseen_releases=bool(row["has_unseen_releases"]),
        last_synced_at=parse_timestamp(row["last_synced_at"]),
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def _row_to_release(row: sqlite3.Row) -> Release:
    return Release(
        id=row["id"],
        repository_id=row["repository_id"],
        tag_name=row["tag_name"],
        name=row["name"],
        body=row["body"],
        html_url=row["html_url"],
        published_at=parse_timestamp(row["published_at"]),
        seen=bool(row["seen"]),
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


class DatabaseManager(ReleaseStore):
    """Handles all SQLite operations for repositories and releases."""

    def __init__(self, db_path: str):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self.conn = None

    def __enter__(self):
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.conn:
            self.conn.close()
            self.conn = None

    def setup_database(self):
        """Create the necessary tables if they don't exist."""
        try:
            with self.conn:
                self.conn.execute("""
                    CREATE TABLE IF NOT EXISTS repositories (
                        id TEXT PRIMARY KEY,
                        owner TEXT NOT NULL,
                        name TEXT NOT NULL,
                        full_name TEXT NOT NULL UNIQUE,
                        description TEXT,
                        stargazers_count INTEGER NOT NULL DEFAULT 0,
                        forks_count INTEGER NOT NULL DEFAULT 0,
                        watchers_count INTEGER NOT NULL DEFAULT 0,
                        open_issues_count INTEGER NOT NULL DEFAULT 0,
                        has_unseen_releases INTEGER NOT NULL DEFAULT 0,
                        last_synced_at TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                # No UNIQUE on (repository_id, tag_name); sync dedupes against stored tags only.
                self.conn.execute("""
                    CREATE TABLE IF NOT EXISTS releases (
                        id TEXT PRIMARY KEY,
                        repository_id TEXT NOT NULL
                            REFERENCES repositories(id) ON DELETE CASCADE,
                        tag_name TEXT NOT NULL,
                        name TEXT,
                        body TEXT,
                        html_url TEXT NOT NULL,
                        published_at TEXT NOT NULL,
                        seen INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                self.conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_releases_repository "
                    "ON releases (repository_id, tag_name)"
                )
            logger.info("Database setup complete.")
        except sqlite3.Error as e:
            logger.error(f"Database setup failed: {e}")
            raise StoreError(f"Database setup failed: {e}") from e

    def _execute_query(self, query: str, params: tuple = (), fetch_all: bool = True):
        """Execute a read query with consistent error handling."""
        try:
            with self.conn:
                cursor = self.conn.execute(query, params)
                if fetch_all:
                    return cursor.fetchall()
                return cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"Database query failed: {e}")
            raise StoreError(f"Database query failed: {e}") from e

    def _execute_write(self, statement: str, params: tuple = ()) -> int:
        """Execute a single write statement in its own transaction."""
        try:
            with self.conn:
                cursor = self.conn.execute(statement, params)
                return cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Database write failed: {e}")
            raise StoreError(f"Database write failed: {e}") from e

    def _with_releases(self, repository: Optional[Repository], with_releases: bool):
        if repository is not None and with_releases:
            repository.releases = self.list_releases_by_repository(repository.id)
        return repository

    def find_repository_by_id(self, repository_id: str,
                              with_releases: bool = False) -> Optional[Repository]:
        row = self._execute_query(
            f"SELECT {REPOSITORY_COLUMNS} FROM repositories WHERE id = ?",
            (repository_id,),
            fetch_all=False
        )
        repository = _row_to_repository(row) if row else None
        return self._with_releases(repository, with_releases)

    def find_repository_by_owner_and_name(self, owner: str, name: str,
                                          with_releases: bool = False) -> Optional[Repository]:
        row = self._execute_query(
            f"SELECT {REPOSITORY_COLUMNS} FROM repositories WHERE owner = ? AND name = ?",
            (owner, name),
            fetch_all=False
        )
        repository = _row_to_repository(row) if row else None
        return self._with_releases(repository, with_releases)

    def list_repositories(self, with_releases: bool = False) -> List[Repository]:
        rows = self._execute_query(
            f"SELECT {REPOSITORY_COLUMNS} FROM repositories ORDER BY full_name"
        )
        return [self._with_releases(_row_to_repository(row), with_releases) for row in rows]

    def save_repository(self, repository: Repository) -> Repository:
        """Insert the repository, or update it when its id already exists."""
        repository.updated_at = utcnow()
        self._execute_write(
            f"""
            INSERT INTO repositories ({REPOSITORY_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                description = excluded.description,
                stargazers_count = excluded.stargazers_count,
                forks_count = excluded.forks_count,
                watchers_count = excluded.watchers_count,
                open_issues_count = excluded.open_issues_count,
                has_unseen_releases = excluded.has_unseen_releases,
                last_synced_at = excluded.last_synced_at,
                updated_at = excluded.updated_at
            """,
            (
                repository.id,
                repository.owner,
                repository.name,
                repository.full_name,
                repository.description,
                repository.stargazers_count,
                repository.forks_count,
                repository.watchers_count,
                repository.open_issues_count,
                int(repository.has_unseen_releases),
                format_timestamp(repository.last_synced_at),
                format_timestamp(repository.created_at),
                format_timestamp(repository.updated_at),
            )
        )
        return repository

    def delete_repository(self, repository_id: str) -> bool:
        """Delete a repository and all of its releases."""
        try:
            with self.conn:
                self.conn.execute("DELETE FROM releases WHERE repository_id = ?", (repository_id,))
                cursor = self.conn.execute("DELETE FROM repositories WHERE id = ?", (repository_id,))
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Failed to delete repository {repository_id}: {e}")
            raise StoreError(f"Failed to delete repository {repository_id}: {e}") from e
        if deleted:
            logger.info(f"Deleted repository {repository_id} and its releases.")
        return deleted

    def list_releases_by_repository(self, repository_id: str) -> List[Release]:
        rows = self._execute_query(
            f"SELECT {RELEASE_COLUMNS} FROM releases WHERE repository_id = ? "
            "ORDER BY published_at DESC, created_at DESC",
            (repository_id,)
        )
        return [_row_to_release(row) for row in rows]

    def find_release_by_id(self, release_id: str) -> Optional[Release]:
        row = self._execute_query(
            f"SELECT {RELEASE_COLUMNS} FROM releases WHERE id = ?",
            (release_id,),
            fetch_all=False
        )
        return _row_to_release(row) if row else None

    def save_release(self, release: Release) -> Release:
        """Insert the release, or update it when its id already exists."""
        release.updated_at = utcnow()
        self._execute_write(
            f"""
            INSERT INTO releases ({RELEASE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                name = excluded.name,
                body = excluded.body,
                html_url = excluded.html_url,
                published_at = excluded.published_at,
                seen = excluded.seen,
                updated_at = excluded.updated_at
            """,
            (
                release.id,
                release.repository_id,
                release.tag_name,
                release.name,
                release.body,
                release.html_url,
                format_timestamp(release.published_at),
                int(release.seen),
                format_timestamp(release.created_at),
                format_timestamp(release.updated_at),
            )
        )
        return release

    def set_seen_for_repository(self, repository_id: str, seen: bool) -> int:
        """Set ``seen`` on every release of a repository; returns rows changed."""
        updated = self._execute_write(
            "UPDATE releases SET seen = ?, updated_at = ? WHERE repository_id = ?",
            (int(seen), format_timestamp(utcnow()), repository_id)
        )
        logger.info(f"Marked {updated} releases of {repository_id} as {'seen' if seen else 'unseen'}.")
        return updated

    def count_unseen_for_repository(self, repository_id: str) -> int:
        row = self._execute_query(
            "SELECT COUNT(*) FROM releases WHERE repository_id = ? AND seen = 0",
            (repository_id,),
            fetch_all=False
        )
        return row[0] if row else 0
