from __future__ import annotations

import logging

from backend.app.models.library_contracts import (
    LibraryExport,
    Playlist,
    SubscribedChannel,
)
from backend.app.repositories.notification_repository import NotificationRepository
from backend.app.repositories.playlist_repository import PlaylistRepository
from backend.app.repositories.subscription_repository import SubscriptionRepository

LOGGER = logging.getLogger("tube_clone.library")

FORCED_UNSUBSCRIBE_MESSAGE = "このチャンネルは登録解除できません。"


class LibraryError(Exception):
    pass


class PlaylistNotFoundError(LibraryError):
    def __init__(self, playlist_id: str) -> None:
        super().__init__(f"Playlist not found: {playlist_id}")
        self.playlist_id = playlist_id


class ForcedSubscriptionError(LibraryError):
    def __init__(self, channel_id: str) -> None:
        super().__init__(FORCED_UNSUBSCRIBE_MESSAGE)
        self.channel_id = channel_id


class LibraryService:
    """Local playlists and subscriptions of the single library owner."""

    def __init__(
        self,
        *,
        playlist_repository: PlaylistRepository,
        subscription_repository: SubscriptionRepository,
        notification_repository: NotificationRepository,
        forced_channel: SubscribedChannel,
        notifications_max_items: int = 30,
    ) -> None:
        self._playlists = playlist_repository
        self._subscriptions = subscription_repository
        self._notifications = notification_repository
        self._forced_channel = forced_channel
        self._notifications_max_items = max(1, notifications_max_items)

    @property
    def forced_channel(self) -> SubscribedChannel:
        return self._forced_channel

    def list_playlists(self) -> list[Playlist]:
        return self._playlists.list_playlists()

    def get_playlist(self, playlist_id: str) -> Playlist:
        playlist = self._playlists.get_playlist(playlist_id)
        if playlist is None:
            raise PlaylistNotFoundError(playlist_id)
        return playlist

    def create_playlist(self, name: str, first_video_id: str | None = None) -> Playlist:
        playlist = self._playlists.create_playlist(name.strip(), first_video_id)
        LOGGER.info(
            "library playlist created playlist_id=%s with_video=%s",
            playlist.id,
            first_video_id is not None,
        )
        return playlist

    def rename_playlist(self, playlist_id: str, name: str) -> Playlist:
        playlist = self._playlists.rename_playlist(playlist_id, name.strip())
        if playlist is None:
            raise PlaylistNotFoundError(playlist_id)
        return playlist

    def delete_playlist(self, playlist_id: str) -> None:
        if not self._playlists.delete_playlist(playlist_id):
            raise PlaylistNotFoundError(playlist_id)
        LOGGER.info("library playlist deleted playlist_id=%s", playlist_id)

    def add_video(self, playlist_id: str, video_id: str) -> Playlist:
        playlist = self._playlists.add_video(playlist_id, video_id)
        if playlist is None:
            raise PlaylistNotFoundError(playlist_id)
        return playlist

    def remove_video(self, playlist_id: str, video_id: str) -> Playlist:
        playlist = self._playlists.remove_video(playlist_id, video_id)
        if playlist is None:
            raise PlaylistNotFoundError(playlist_id)
        return playlist

    def is_video_in_playlist(self, playlist_id: str, video_id: str) -> bool:
        playlist = self._playlists.get_playlist(playlist_id)
        return playlist is not None and video_id in playlist.video_ids

    def playlists_containing(self, video_id: str) -> list[str]:
        return self._playlists.playlists_containing(video_id)

    def list_subscriptions(self) -> list[SubscribedChannel]:
        stored = [
            channel
            for channel in self._subscriptions.list_channels()
            if channel.id != self._forced_channel.id
        ]
        return [self._forced_channel, *stored]

    def subscribe(self, channel: SubscribedChannel) -> bool:
        if channel.id == self._forced_channel.id:
            return False
        added = self._subscriptions.add_channel(channel)
        if added:
            LOGGER.info("library subscribed channel_id=%s", channel.id)
        return added

    def unsubscribe(self, channel_id: str) -> bool:
        if channel_id == self._forced_channel.id:
            raise ForcedSubscriptionError(channel_id)
        removed = self._subscriptions.remove_channel(channel_id)
        if removed:
            LOGGER.info("library unsubscribed channel_id=%s", channel_id)
        return removed

    def is_subscribed(self, channel_id: str) -> bool:
        if channel_id == self._forced_channel.id:
            return True
        return self._subscriptions.get_channel(channel_id) is not None

    def export_library(self) -> LibraryExport:
        return LibraryExport(
            playlists=self.list_playlists(),
            subscriptions=self.list_subscriptions(),
            notifications=self._notifications.list_notifications(),
        )

    def import_library(self, payload: LibraryExport) -> dict[str, int]:
        """Merge an export into the store; existing playlists and channels win."""
        imported_playlists = sum(
            1 for playlist in payload.playlists if self._playlists.import_playlist(playlist)
        )
        imported_subscriptions = sum(
            1 for channel in payload.subscriptions if self.subscribe(channel)
        )
        before = {item.id for item in self._notifications.list_notifications()}
        merged = self._notifications.merge_notifications(
            payload.notifications,
            max_items=self._notifications_max_items,
        )
        imported_notifications = sum(1 for item in merged if item.id not in before)
        LOGGER.info(
            "library import completed playlists=%s subscriptions=%s notifications=%s",
            imported_playlists,
            imported_subscriptions,
            imported_notifications,
        )
        return {
            "playlists": imported_playlists,
            "subscriptions": imported_subscriptions,
            "notifications": imported_notifications,
        }
