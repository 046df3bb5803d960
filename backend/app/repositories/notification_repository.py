from __future__ import annotations

import sqlite3

from backend.app.models.library_contracts import (
    Notification,
    NotificationChannel,
    NotificationVideo,
)
from backend.app.repositories.database import Database


class NotificationRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def list_notifications(self) -> list[Notification]:
        with self._db.connection() as conn:
            return _select_all(conn)

    def merge_notifications(
        self,
        new_notifications: list[Notification],
        *,
        max_items: int,
    ) -> list[Notification]:
        """
        Merge `new_notifications` in front of the stored ones and keep the newest.

        Identical ids keep the copy from `new_notifications`. The merged list is
        sorted by `published_at` descending and truncated to `max_items` inside a
        single transaction.
        """
        with self._db.connection() as conn:
            merged: dict[str, Notification] = {}
            for notification in [*new_notifications, *_select_all(conn)]:
                merged.setdefault(notification.id, notification)
            ordered = sorted(
                merged.values(),
                key=lambda item: item.published_at,
                reverse=True,
            )[: max(0, max_items)]

            conn.execute("DELETE FROM notifications")
            conn.executemany(
                """
                INSERT INTO notifications
                (id, channel_id, channel_name, channel_avatar_url,
                 video_id, video_title, video_thumbnail_url, published_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        item.id,
                        item.channel.id,
                        item.channel.name,
                        item.channel.avatar_url,
                        item.video.id,
                        item.video.title,
                        item.video.thumbnail_url,
                        item.published_at,
                    )
                    for item in ordered
                ],
            )
        return ordered


def _select_all(conn: sqlite3.Connection) -> list[Notification]:
    rows = conn.execute(
        """
        SELECT id, channel_id, channel_name, channel_avatar_url,
               video_id, video_title, video_thumbnail_url, published_at
        FROM notifications
        ORDER BY published_at DESC
        """
    ).fetchall()
    return [
        Notification(
            id=str(row["id"]),
            channel=NotificationChannel(
                id=str(row["channel_id"]),
                name=str(row["channel_name"]),
                avatar_url=str(row["channel_avatar_url"]),
            ),
            video=NotificationVideo(
                id=str(row["video_id"]),
                title=str(row["video_title"]),
                thumbnail_url=str(row["video_thumbnail_url"]),
            ),
            published_at=str(row["published_at"]),
        )
        for row in rows
    ]
