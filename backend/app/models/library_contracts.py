from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_CAMEL_CONFIG = ConfigDict(
    extra="forbid",
    alias_generator=to_camel,
    populate_by_name=True,
)


class Playlist(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str
    name: str
    video_ids: list[str] = Field(default_factory=list)
    created_at: str


class PlaylistCreateRequest(BaseModel):
    model_config = _CAMEL_CONFIG

    name: str = Field(min_length=1, max_length=200)
    first_video_id: str | None = None


class PlaylistRenameRequest(BaseModel):
    model_config = _CAMEL_CONFIG

    name: str = Field(min_length=1, max_length=200)


class SubscribedChannel(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str = Field(min_length=1)
    name: str
    avatar_url: str = ""
    subscriber_count: str = ""


class NotificationChannel(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str
    name: str
    avatar_url: str = ""


class NotificationVideo(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str
    title: str
    thumbnail_url: str = ""


class Notification(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str
    channel: NotificationChannel
    video: NotificationVideo
    published_at: str


class NotificationsResponse(BaseModel):
    model_config = _CAMEL_CONFIG

    notifications: list[Notification] = Field(default_factory=list)
    unread_count: int = 0
    last_checked_at: str | None = None


class NotificationRefreshResponse(NotificationsResponse):
    new_count: int = 0
    skipped_reason: str | None = None


class ApiKeyStatus(BaseModel):
    model_config = _CAMEL_CONFIG

    configured: bool
    source: str | None = None


class ApiKeyUpdateRequest(BaseModel):
    model_config = _CAMEL_CONFIG

    api_key: str = Field(min_length=1)


class LibraryExport(BaseModel):
    model_config = _CAMEL_CONFIG

    playlists: list[Playlist] = Field(default_factory=list)
    subscriptions: list[SubscribedChannel] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)
