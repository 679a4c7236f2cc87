"""Local content-ID cache.

This module provides:
- CacheEntry: last-known content ID of a remote directory or file
- CacheStore: SQLite-based store keyed by (repo_id, path)

The engine itself only produces content IDs; this store is the reference
collaborator that persists them between runs.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from wingusync.core.types import ContentID

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Cached state of one remote path.

    Attributes:
        repo_id: Repository ID.
        path: Remote path.
        content_id: Content ID the cached data corresponds to.
        local_path: Local file holding the content (files only).
        body: Raw listing body (directories only).
        updated_at: Timestamp of the last write. Never used for validity.
    """

    repo_id: str
    path: str
    content_id: ContentID
    local_path: Path | None = None
    body: str | None = None
    updated_at: float = 0.0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> CacheEntry:
        """Create CacheEntry from database row."""
        return cls(
            repo_id=row["repo_id"],
            path=row["path"],
            content_id=row["content_id"],
            local_path=Path(row["local_path"]) if row["local_path"] else None,
            body=row["body"],
            updated_at=row["updated_at"],
        )


class CacheStore:
    """SQLite-based content-ID cache, safe to share between threads."""

    def __init__(self, db_path: Path) -> None:
        """Open (and create if needed) the cache database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS cache_entries (
                repo_id TEXT NOT NULL,
                path TEXT NOT NULL,
                content_id TEXT NOT NULL,
                local_path TEXT,
                body TEXT,
                updated_at REAL NOT NULL,
                PRIMARY KEY (repo_id, path)
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> CacheStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def get(self, repo_id: str, path: str) -> CacheEntry | None:
        """Get the cached entry for a path, or None."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM cache_entries WHERE repo_id = ? AND path = ?",
                (repo_id, path),
            ).fetchone()
        if row is None:
            return None
        return CacheEntry.from_row(row)

    def get_content_id(self, repo_id: str, path: str) -> ContentID | None:
        entry = self.get(repo_id, path)
        return entry.content_id if entry else None

    def put(
        self,
        repo_id: str,
        path: str,
        content_id: ContentID,
        local_path: Path | None = None,
        body: str | None = None,
    ) -> CacheEntry:
        """Replace the entry for a path (upsert)."""
        entry = CacheEntry(
            repo_id=repo_id,
            path=path,
            content_id=content_id,
            local_path=local_path,
            body=body,
            updated_at=time.time(),
        )
        with self._lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO cache_entries
                    (repo_id, path, content_id, local_path, body, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    repo_id,
                    path,
                    content_id,
                    str(local_path) if local_path else None,
                    body,
                    entry.updated_at,
                ),
            )
        logger.debug(f"cache {repo_id}:{path} -> {content_id}")
        return entry

    def remove(self, repo_id: str, path: str) -> None:
        """Forget a path (e.g. after it was deleted remotely)."""
        with self._lock:
            self._conn.execute(
                "DELETE FROM cache_entries WHERE repo_id = ? AND path = ?",
                (repo_id, path),
            )

    def list_entries(self, repo_id: str) -> list[CacheEntry]:
        """List all cached entries of a repository."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM cache_entries WHERE repo_id = ? ORDER BY path",
                (repo_id,),
            ).fetchall()
        return [CacheEntry.from_row(row) for row in rows]
