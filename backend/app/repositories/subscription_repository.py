from __future__ import annotations

import sqlite3

from backend.app.models.library_contracts import SubscribedChannel
from backend.app.repositories.common import utc_now_iso
from backend.app.repositories.database import Database


class SubscriptionRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def list_channels(self) -> list[SubscribedChannel]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT channel_id, name, avatar_url, subscriber_count
                FROM subscriptions
                ORDER BY position ASC
                """
            ).fetchall()
        return [_row_to_channel(row) for row in rows]

    def get_channel(self, channel_id: str) -> SubscribedChannel | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT channel_id, name, avatar_url, subscriber_count
                FROM subscriptions
                WHERE channel_id = ?
                """,
                (channel_id,),
            ).fetchone()
        if row is None:
            return None
        return _row_to_channel(row)

    def add_channel(self, channel: SubscribedChannel) -> bool:
        """Append a channel; returns False when it was already subscribed."""
        with self._db.connection() as conn:
            existing = conn.execute(
                "SELECT 1 FROM subscriptions WHERE channel_id = ?",
                (channel.id,),
            ).fetchone()
            if existing is not None:
                return False
            conn.execute(
                """
                INSERT INTO subscriptions
                (channel_id, name, avatar_url, subscriber_count, position, subscribed_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    channel.id,
                    channel.name,
                    channel.avatar_url,
                    channel.subscriber_count,
                    _next_position(conn),
                    utc_now_iso(),
                ),
            )
        return True

    def remove_channel(self, channel_id: str) -> bool:
        with self._db.connection() as conn:
            result = conn.execute(
                "DELETE FROM subscriptions WHERE channel_id = ?",
                (channel_id,),
            )
        return result.rowcount > 0


def _next_position(conn: sqlite3.Connection) -> int:
    row = conn.execute(
        "SELECT COALESCE(MAX(position), -1) AS last_position FROM subscriptions"
    ).fetchone()
    return int(row["last_position"]) + 1


def _row_to_channel(row: sqlite3.Row) -> SubscribedChannel:
    return SubscribedChannel(
        id=str(row["channel_id"]),
        name=str(row["name"]),
        avatar_url=str(row["avatar_url"]),
        subscriber_count=str(row["subscriber_count"]),
    )
