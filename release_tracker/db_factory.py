#!/usr/bin/env python3
"""
Database factory to switch between SQLite and Firestore based on configuration.
"""

import logging
import os
from typing import Optional

from .config import Config
from .store import ReleaseStore

logger = logging.getLogger(__name__)

# Resolved once per process so every connection uses the same file
_resolved_db_path: Optional[str] = None


def _is_writable_directory(path: str) -> bool:
    """Create ``path``'s parent directory if needed and check it is writable."""
    parent_dir = os.path.dirname(os.path.abspath(path)) or "."
    try:
        os.makedirs(parent_dir, mode=0o755, exist_ok=True)
        test_file = os.path.join(parent_dir, ".write_test")
        with open(test_file, 'w') as f:
            f.write("test")
        os.remove(test_file)
        return True
    except OSError as e:
        logger.warning(f"Database directory {parent_dir} is not writable: {e}")
        return False


def get_resolved_database_path(config: Config) -> str:
    """
    Get the resolved database path, testing the preferred path first and falling back if needed.
    This ensures all database connections use the same working path.
    """
    global _resolved_db_path

    if _resolved_db_path is not None:
        return _resolved_db_path

    primary_path = os.path.abspath(config.database_path)
    if _is_writable_directory(primary_path):
        _resolved_db_path = primary_path
        logger.info(f"Using primary database path: {_resolved_db_path}")
        return _resolved_db_path

    if config.allow_db_fallback:
        fallback_path = os.path.abspath(config.database_fallback_path)
        if _is_writable_directory(fallback_path):
            _resolved_db_path = fallback_path
            logger.warning(f"Using fallback database path: {_resolved_db_path}. Data may be ephemeral.")
            return _resolved_db_path
        logger.error(f"Fallback database path {fallback_path} also failed")

    # Let sqlite report the real error on connect
    _resolved_db_path = primary_path
    logger.error(f"All database paths failed, using primary path anyway: {_resolved_db_path}")
    return _resolved_db_path


def reset_resolved_database_path() -> None:
    """Forget the cached path (used when configuration changes, e.g. in tests)."""
    global _resolved_db_path
    _resolved_db_path = None


def get_database_manager(config: Config) -> ReleaseStore:
    """
    Return the store selected by configuration.

    Firestore is used when USE_FIRESTORE is true or when running on App
    Engine standard; otherwise SQLite.
    """
    if config.use_firestore:
        from .firestore_db import FirestoreDatabaseManager
        logger.info("Using Firestore database")
        return FirestoreDatabaseManager()

    from .database import DatabaseManager
    logger.debug("Using SQLite database")
    return DatabaseManager(get_resolved_database_path(config))
