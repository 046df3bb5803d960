from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from backend.app.dependencies import (
    get_library_service,
    get_notification_service,
    get_youtube_service,
)
from backend.app.models.library_contracts import (
    ApiKeyStatus,
    ApiKeyUpdateRequest,
    NotificationRefreshResponse,
    NotificationsResponse,
    Playlist,
    PlaylistCreateRequest,
    PlaylistRenameRequest,
    SubscribedChannel,
)
from backend.app.models.youtube_contracts import VideoCard
from backend.app.services.formatting import details_to_video_card
from backend.app.services.innertube_client import YouTubeServiceError
from backend.app.services.library_service import LibraryService
from backend.app.services.notification_service import NotificationService
from backend.app.services.youtube_service import YouTubeService

LOGGER = logging.getLogger("tube_clone.api.library")

router = APIRouter(prefix="/api/library", tags=["library"])


class SubscriptionStatus(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    channel_id: str
    subscribed: bool
    forced: bool = False


class VideoPlaylistsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    video_id: str
    playlist_ids: list[str]


@router.get("/playlists", response_model=list[Playlist], operation_id="library_list_playlists")
def list_playlists(
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> list[Playlist]:
    return library.list_playlists()


@router.post(
    "/playlists",
    response_model=Playlist,
    status_code=201,
    operation_id="library_create_playlist",
)
def create_playlist(
    request: PlaylistCreateRequest,
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> Playlist:
    return library.create_playlist(request.name, request.first_video_id)


@router.patch(
    "/playlists/{playlist_id}",
    response_model=Playlist,
    operation_id="library_rename_playlist",
)
def rename_playlist(
    playlist_id: str,
    request: PlaylistRenameRequest,
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> Playlist:
    return library.rename_playlist(playlist_id, request.name)


@router.delete(
    "/playlists/{playlist_id}",
    status_code=204,
    operation_id="library_delete_playlist",
)
def delete_playlist(
    playlist_id: str,
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> Response:
    library.delete_playlist(playlist_id)
    return Response(status_code=204)


@router.post(
    "/playlists/{playlist_id}/videos/{video_id}",
    response_model=Playlist,
    operation_id="library_add_playlist_video",
)
def add_playlist_video(
    playlist_id: str,
    video_id: str,
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> Playlist:
    return library.add_video(playlist_id, video_id)


@router.delete(
    "/playlists/{playlist_id}/videos/{video_id}",
    response_model=Playlist,
    operation_id="library_remove_playlist_video",
)
def remove_playlist_video(
    playlist_id: str,
    video_id: str,
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> Playlist:
    return library.remove_video(playlist_id, video_id)


@router.get(
    "/playlists/{playlist_id}/videos",
    response_model=list[VideoCard],
    operation_id="library_playlist_video_cards",
)
def playlist_video_cards(
    playlist_id: str,
    library: Annotated[LibraryService, Depends(get_library_service)],
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
) -> list[VideoCard]:
    playlist = library.get_playlist(playlist_id)
    cards: list[VideoCard] = []
    for video_id in playlist.video_ids:
        try:
            details = youtube.get_video_summary(video_id)
        except YouTubeServiceError as exc:
            LOGGER.warning(
                "playlist video lookup failed playlist_id=%s video_id=%s error=%s",
                playlist_id,
                video_id,
                exc,
            )
            continue
        cards.append(details_to_video_card(details))
    return cards


@router.get(
    "/videos/{video_id}/playlists",
    response_model=VideoPlaylistsResponse,
    operation_id="library_video_playlists",
)
def video_playlists(
    video_id: str,
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> VideoPlaylistsResponse:
    return VideoPlaylistsResponse(
        video_id=video_id,
        playlist_ids=library.playlists_containing(video_id),
    )


@router.get(
    "/subscriptions",
    response_model=list[SubscribedChannel],
    operation_id="library_list_subscriptions",
)
def list_subscriptions(
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> list[SubscribedChannel]:
    return library.list_subscriptions()


@router.post(
    "/subscriptions",
    response_model=list[SubscribedChannel],
    operation_id="library_subscribe",
)
def subscribe(
    channel: SubscribedChannel,
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> list[SubscribedChannel]:
    library.subscribe(channel)
    return library.list_subscriptions()


@router.delete(
    "/subscriptions/{channel_id}",
    response_model=list[SubscribedChannel],
    operation_id="library_unsubscribe",
)
def unsubscribe(
    channel_id: str,
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> list[SubscribedChannel]:
    library.unsubscribe(channel_id)
    return library.list_subscriptions()


@router.get(
    "/subscriptions/{channel_id}",
    response_model=SubscriptionStatus,
    operation_id="library_subscription_status",
)
def subscription_status(
    channel_id: str,
    library: Annotated[LibraryService, Depends(get_library_service)],
) -> SubscriptionStatus:
    return SubscriptionStatus(
        channel_id=channel_id,
        subscribed=library.is_subscribed(channel_id),
        forced=channel_id == library.forced_channel.id,
    )


@router.get(
    "/notifications",
    response_model=NotificationsResponse,
    operation_id="library_list_notifications",
)
def list_notifications(
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> NotificationsResponse:
    return notifications.list_notifications()


@router.post(
    "/notifications/refresh",
    response_model=NotificationRefreshResponse,
    operation_id="library_refresh_notifications",
)
def refresh_notifications(
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> NotificationRefreshResponse:
    return notifications.refresh()


@router.post(
    "/notifications/read",
    response_model=NotificationsResponse,
    operation_id="library_mark_notifications_read",
)
def mark_notifications_read(
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> NotificationsResponse:
    return notifications.mark_as_read()


@router.get("/api-key", response_model=ApiKeyStatus, operation_id="library_api_key_status")
def api_key_status(
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> ApiKeyStatus:
    return notifications.api_key_status()


@router.put("/api-key", response_model=ApiKeyStatus, operation_id="library_set_api_key")
def set_api_key(
    request: ApiKeyUpdateRequest,
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> ApiKeyStatus:
    return notifications.set_api_key(request.api_key)
