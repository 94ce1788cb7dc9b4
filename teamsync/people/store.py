"""Local SQLite storage for the people of a site."""

import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterable

from .errors import LocalQueryError, LocalStoreError
from .models import Person, Role

logger = logging.getLogger(__name__)

# SQL schema for the people cache
SCHEMA = """
-- People: local mirror of each site's team, one row per (site_id, user_id)
CREATE TABLE IF NOT EXISTS people (
    site_id INTEGER NOT NULL,
    user_id INTEGER NOT NULL,
    username TEXT NOT NULL,
    display_name TEXT NOT NULL,
    role TEXT NOT NULL,
    first_name TEXT NOT NULL DEFAULT '',
    last_name TEXT NOT NULL DEFAULT '',
    avatar_url TEXT,
    linked_user_id INTEGER,
    is_super_admin INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (site_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_people_site ON people(site_id);
"""

COLUMNS = (
    "site_id, user_id, username, display_name, role, first_name, "
    "last_name, avatar_url, linked_user_id, is_super_admin"
)


def _row_to_person(row: sqlite3.Row) -> Person:
    return Person(
        user_id=row["user_id"],
        site_id=row["site_id"],
        username=row["username"],
        display_name=row["display_name"],
        role=Role.from_remote(row["role"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        avatar_url=row["avatar_url"],
        linked_user_id=row["linked_user_id"],
        is_super_admin=bool(row["is_super_admin"]),
    )


def _person_params(person: Person) -> tuple[Any, ...]:
    return (
        person.site_id,
        person.user_id,
        person.username,
        person.display_name,
        person.role.value,
        person.first_name,
        person.last_name,
        person.avatar_url,
        person.linked_user_id,
        int(person.is_super_admin),
    )


class PeopleStore:
    """SQLite-backed repository of people keyed by (site_id, user_id).

    Mutations are left uncommitted until commit() is called, so a caller
    can group several of them into one transaction.
    """

    def __init__(self, db_path: str | Path):
        """Initialize the people store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Initialize database connection and schema."""
        if self._conn is not None:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA)
        self._conn.commit()

        logger.info(f"PeopleStore connected to {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info("PeopleStore connection closed")

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure we have a database connection."""
        if self._conn is None:
            self.connect()
        return self._conn

    # ==================== Queries ====================

    def find_by_site(self, site_id: int) -> list[Person]:
        """Get every stored person of a site.

        Raises:
            LocalQueryError: If the query fails.
        """
        conn = self._ensure_connected()

        try:
            cursor = conn.execute(
                f"""
                SELECT {COLUMNS}
                FROM people
                WHERE site_id = ?
                ORDER BY display_name COLLATE NOCASE, user_id
                """,
                (site_id,),
            )
            return [_row_to_person(row) for row in cursor]
        except sqlite3.Error as e:
            raise LocalQueryError(f"Error fetching people of site {site_id}: {e}") from e

    def find_one(self, site_id: int, user_id: int) -> Person | None:
        """Get a single stored person.

        Returns:
            The person, or None if there is no row for the key.

        Raises:
            LocalQueryError: If the query fails.
        """
        conn = self._ensure_connected()

        try:
            row = conn.execute(
                f"""
                SELECT {COLUMNS}
                FROM people
                WHERE site_id = ? AND user_id = ?
                LIMIT 1
                """,
                (site_id, user_id),
            ).fetchone()
        except sqlite3.Error as e:
            raise LocalQueryError(
                f"Error fetching person {user_id} of site {site_id}: {e}"
            ) from e

        return _row_to_person(row) if row else None

    # ==================== Mutations ====================

    def delete_many(self, site_id: int, user_ids: Iterable[int]) -> int:
        """Delete the given people of a site in a single statement.

        Returns:
            Number of rows deleted. No statement is issued for an empty set.
        """
        ids = sorted(set(user_ids))
        if not ids:
            return 0

        conn = self._ensure_connected()
        placeholders = ",".join("?" * len(ids))

        try:
            cursor = conn.execute(
                f"DELETE FROM people WHERE site_id = ? AND user_id IN ({placeholders})",
                (site_id, *ids),
            )
        except sqlite3.Error as e:
            raise LocalStoreError(f"Error removing people {ids}: {e}") from e

        logger.debug(f"Removing people {ids} of site {site_id}")
        return cursor.rowcount

    def insert(self, person: Person) -> None:
        """Insert a new person row."""
        conn = self._ensure_connected()

        try:
            conn.execute(
                f"INSERT INTO people ({COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _person_params(person),
            )
        except sqlite3.Error as e:
            raise LocalStoreError(f"Error creating person {person.user_id}: {e}") from e

    def update(self, person: Person) -> bool:
        """Overwrite every mutable field of an existing person.

        Returns:
            True if a row was updated.
        """
        conn = self._ensure_connected()

        try:
            cursor = conn.execute(
                """
                UPDATE people
                SET username = ?, display_name = ?, role = ?, first_name = ?,
                    last_name = ?, avatar_url = ?, linked_user_id = ?,
                    is_super_admin = ?, updated_at = CURRENT_TIMESTAMP
                WHERE site_id = ? AND user_id = ?
                """,
                (
                    person.username,
                    person.display_name,
                    person.role.value,
                    person.first_name,
                    person.last_name,
                    person.avatar_url,
                    person.linked_user_id,
                    int(person.is_super_admin),
                    person.site_id,
                    person.user_id,
                ),
            )
        except sqlite3.Error as e:
            raise LocalStoreError(f"Error updating person {person.user_id}: {e}") from e

        return cursor.rowcount > 0

    def update_role(self, site_id: int, user_id: int, role: Role) -> bool:
        """Set the role of a stored person.

        Returns:
            True if the person exists and was updated.
        """
        conn = self._ensure_connected()

        try:
            cursor = conn.execute(
                """
                UPDATE people
                SET role = ?, updated_at = CURRENT_TIMESTAMP
                WHERE site_id = ? AND user_id = ?
                """,
                (role.value, site_id, user_id),
            )
        except sqlite3.Error as e:
            raise LocalStoreError(f"Error updating role of person {user_id}: {e}") from e

        return cursor.rowcount > 0

    def commit(self) -> None:
        """Persist all pending mutations."""
        conn = self._ensure_connected()

        try:
            conn.commit()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Error saving people: {e}") from e

    def rollback(self) -> None:
        """Discard all pending mutations."""
        if self._conn is not None:
            self._conn.rollback()

    # ==================== Maintenance ====================

    def get_stats(self) -> dict[str, Any]:
        """Get database statistics.

        Returns:
            Dict with per-site counts and size info.
        """
        conn = self._ensure_connected()

        stats: dict[str, Any] = {}

        cursor = conn.execute("SELECT COUNT(*) FROM people")
        stats["people_count"] = cursor.fetchone()[0]

        cursor = conn.execute(
            "SELECT site_id, COUNT(*) AS n FROM people GROUP BY site_id ORDER BY site_id"
        )
        stats["people_by_site"] = {row["site_id"]: row["n"] for row in cursor}

        # Database file size
        if self.db_path.exists():
            stats["db_size_mb"] = round(self.db_path.stat().st_size / (1024 * 1024), 2)

        return stats
