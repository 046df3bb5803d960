from __future__ import annotations

import sqlite3
from uuid import uuid4

from backend.app.models.library_contracts import Playlist
from backend.app.repositories.common import utc_now_iso
from backend.app.repositories.database import Database


class PlaylistRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def list_playlists(self) -> list[Playlist]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT id, name, created_at
                FROM playlists
                ORDER BY created_at DESC, rowid DESC
                """
            ).fetchall()
            return [_load_playlist(conn, row) for row in rows]

    def get_playlist(self, playlist_id: str) -> Playlist | None:
        with self._db.connection() as conn:
            return _fetch_playlist(conn, playlist_id)

    def create_playlist(self, name: str, first_video_id: str | None = None) -> Playlist:
        playlist_id = str(uuid4())
        timestamp = utc_now_iso()
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO playlists (id, name, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (playlist_id, name, timestamp, timestamp),
            )
            if first_video_id:
                _append_video(conn, playlist_id, first_video_id, timestamp)
        return Playlist(
            id=playlist_id,
            name=name,
            video_ids=[first_video_id] if first_video_id else [],
            created_at=timestamp,
        )

    def rename_playlist(self, playlist_id: str, name: str) -> Playlist | None:
        with self._db.connection() as conn:
            result = conn.execute(
                "UPDATE playlists SET name = ?, updated_at = ? WHERE id = ?",
                (name, utc_now_iso(), playlist_id),
            )
            if result.rowcount == 0:
                return None
            return _fetch_playlist(conn, playlist_id)

    def delete_playlist(self, playlist_id: str) -> bool:
        with self._db.connection() as conn:
            result = conn.execute("DELETE FROM playlists WHERE id = ?", (playlist_id,))
        return result.rowcount > 0

    def add_video(self, playlist_id: str, video_id: str) -> Playlist | None:
        timestamp = utc_now_iso()
        with self._db.connection() as conn:
            if not _playlist_exists(conn, playlist_id):
                return None
            _append_video(conn, playlist_id, video_id, timestamp)
            conn.execute(
                "UPDATE playlists SET updated_at = ? WHERE id = ?",
                (timestamp, playlist_id),
            )
            return _fetch_playlist(conn, playlist_id)

    def remove_video(self, playlist_id: str, video_id: str) -> Playlist | None:
        with self._db.connection() as conn:
            if not _playlist_exists(conn, playlist_id):
                return None
            conn.execute(
                "DELETE FROM playlist_videos WHERE playlist_id = ? AND video_id = ?",
                (playlist_id, video_id),
            )
            conn.execute(
                "UPDATE playlists SET updated_at = ? WHERE id = ?",
                (utc_now_iso(), playlist_id),
            )
            return _fetch_playlist(conn, playlist_id)

    def playlists_containing(self, video_id: str) -> list[str]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT p.id
                FROM playlist_videos AS pv
                JOIN playlists AS p ON p.id = pv.playlist_id
                WHERE pv.video_id = ?
                ORDER BY p.created_at DESC, p.rowid DESC
                """,
                (video_id,),
            ).fetchall()
        return [str(row["id"]) for row in rows]

    def import_playlist(self, playlist: Playlist) -> bool:
        """Insert a playlist with its original id; existing ids are left untouched."""
        with self._db.connection() as conn:
            if _playlist_exists(conn, playlist.id):
                return False
            conn.execute(
                """
                INSERT INTO playlists (id, name, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (playlist.id, playlist.name, playlist.created_at, utc_now_iso()),
            )
            for video_id in playlist.video_ids:
                _append_video(conn, playlist.id, video_id, playlist.created_at)
        return True


def _playlist_exists(conn: sqlite3.Connection, playlist_id: str) -> bool:
    row = conn.execute("SELECT 1 FROM playlists WHERE id = ?", (playlist_id,)).fetchone()
    return row is not None


def _append_video(
    conn: sqlite3.Connection,
    playlist_id: str,
    video_id: str,
    timestamp: str,
) -> None:
    row = conn.execute(
        "SELECT COALESCE(MAX(position), -1) AS last_position FROM playlist_videos WHERE playlist_id = ?",
        (playlist_id,),
    ).fetchone()
    next_position = int(row["last_position"]) + 1
    conn.execute(
        """
        INSERT OR IGNORE INTO playlist_videos (playlist_id, video_id, position, added_at)
        VALUES (?, ?, ?, ?)
        """,
        (playlist_id, video_id, next_position, timestamp),
    )


def _fetch_playlist(conn: sqlite3.Connection, playlist_id: str) -> Playlist | None:
    row = conn.execute(
        "SELECT id, name, created_at FROM playlists WHERE id = ?",
        (playlist_id,),
    ).fetchone()
    if row is None:
        return None
    return _load_playlist(conn, row)


def _load_playlist(conn: sqlite3.Connection, row: sqlite3.Row) -> Playlist:
    video_rows = conn.execute(
        """
        SELECT video_id
        FROM playlist_videos
        WHERE playlist_id = ?
        ORDER BY position ASC
        """,
        (str(row["id"]),),
    ).fetchall()
    return Playlist(
        id=str(row["id"]),
        name=str(row["name"]),
        video_ids=[str(video_row["video_id"]) for video_row in video_rows],
        created_at=str(row["created_at"]),
    )
