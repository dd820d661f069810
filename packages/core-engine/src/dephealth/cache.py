"""SQLite-based response cache for upstream providers.

Reduces registry and OSV.dev round-trips by caching decoded JSON
responses with a configurable TTL.
"""

from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Optional


# Default cache location
_DEFAULT_CACHE_DIR = Path.home() / ".dephealth"
_DEFAULT_CACHE_DB = _DEFAULT_CACHE_DIR / "cache.db"

# Default TTL: 24 hours
_DEFAULT_TTL = 86400


class ResponseCache:
    """SQLite-backed cache for provider responses.

    Stores JSON payloads keyed by (source, package, version) with
    time-based expiration. ``source`` separates providers that share a
    database, e.g. "osv" and "npm-registry".
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        ttl: int = _DEFAULT_TTL,
    ):
        """Initialize the cache.

        Args:
            db_path: Path to the SQLite database file. Defaults to
                     ~/.dephealth/cache.db
            ttl: Time-to-live for cache entries in seconds (default: 86400 = 24h).
        """
        self.db_path = Path(db_path) if db_path else _DEFAULT_CACHE_DB
        self.ttl = ttl
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Create the database and table if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS response_cache (
                    source      TEXT NOT NULL,
                    package     TEXT NOT NULL,
                    version     TEXT NOT NULL,
                    response    TEXT NOT NULL,
                    fetched_at  REAL NOT NULL,
                    PRIMARY KEY (source, package, version)
                )
            """)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    # ─── Public API ───────────────────────────────────────────────────────

    def get(
        self,
        source: str,
        package: str,
        version: str,
    ) -> Optional[Any]:
        """Retrieve a cached payload.

        Returns None if the entry is missing or expired.
        """
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT response, fetched_at FROM response_cache
                WHERE source = ? AND package = ? AND version = ?
                """,
                (source.lower(), package.lower(), version),
            ).fetchone()

        if row is None:
            return None

        response_json, fetched_at = row
        if self._is_expired(fetched_at):
            return None

        return json.loads(response_json)

    def set(
        self,
        source: str,
        package: str,
        version: str,
        payload: Any,
    ) -> None:
        """Store a JSON-serializable payload."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO response_cache
                    (source, package, version, response, fetched_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    source.lower(),
                    package.lower(),
                    version,
                    json.dumps(payload, ensure_ascii=False),
                    time.time(),
                ),
            )

    def _is_expired(self, fetched_at: float) -> bool:
        return (time.time() - fetched_at) > self.ttl

    def clear(self) -> int:
        """Remove all entries from the cache.

        Returns:
            Number of entries removed.
        """
        with self._connect() as conn:
            count = conn.execute("SELECT COUNT(*) FROM response_cache").fetchone()[0]
            conn.execute("DELETE FROM response_cache")
        return count

    def clear_expired(self) -> int:
        """Remove only expired entries.

        Returns:
            Number of entries removed.
        """
        cutoff = time.time() - self.ttl
        with self._connect() as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM response_cache WHERE fetched_at < ?",
                (cutoff,),
            ).fetchone()[0]
            conn.execute(
                "DELETE FROM response_cache WHERE fetched_at < ?",
                (cutoff,),
            )
        return count
