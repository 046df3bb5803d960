from __future__ import annotations

from backend.app.repositories.common import utc_now_iso
from backend.app.repositories.database import Database

LAST_NOTIFICATION_CHECK_KEY = "last_notification_check"
UNREAD_NOTIFICATIONS_KEY = "unread_notifications"
DATA_API_KEY_KEY = "youtube_data_api_key"


class LibraryStateRepository:
    """Small key/value table for single-valued library state."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def get_value(self, key: str) -> str | None:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT value FROM library_state WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def set_value(self, key: str, value: str) -> None:
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO library_state (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, utc_now_iso()),
            )

    def delete_value(self, key: str) -> bool:
        with self._db.connection() as conn:
            result = conn.execute("DELETE FROM library_state WHERE key = ?", (key,))
        return result.rowcount > 0

    def get_int(self, key: str, default: int = 0) -> int:
        raw_value = self.get_value(key)
        if raw_value is None:
            return default
        try:
            return int(raw_value)
        except ValueError:
            return default

    def increment(self, key: str, amount: int) -> int:
        """Add `amount` to an integer value in one transaction and return the total."""
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT value FROM library_state WHERE key = ?",
                (key,),
            ).fetchone()
            current = 0
            if row is not None:
                try:
                    current = int(str(row["value"]))
                except ValueError:
                    current = 0
            total = current + amount
            conn.execute(
                """
                INSERT INTO library_state (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, str(total), utc_now_iso()),
            )
        return total
