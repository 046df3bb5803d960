from __future__ import annotations

from functools import lru_cache

from backend.app.config import AppSettings, load_settings
from backend.app.models.library_contracts import SubscribedChannel
from backend.app.repositories.database import Database
from backend.app.repositories.library_state_repository import LibraryStateRepository
from backend.app.repositories.notification_repository import NotificationRepository
from backend.app.repositories.playlist_repository import PlaylistRepository
from backend.app.repositories.subscription_repository import SubscriptionRepository
from backend.app.services.innertube_client import InnerTubeClient
from backend.app.services.library_service import LibraryService
from backend.app.services.notification_service import NotificationService
from backend.app.services.youtube_service import YouTubeService
from backend.app.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_innertube_client() -> InnerTubeClient:
    settings = get_settings()
    return InnerTubeClient(
        base_url=settings.innertube_base_url,
        client_name=settings.innertube_client_name,
        client_version=settings.innertube_client_version,
        language=settings.default_language,
        region=settings.default_region,
        api_key=settings.innertube_api_key,
        timeout_seconds=settings.innertube_http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_youtube_service() -> YouTubeService:
    settings = get_settings()
    client = get_innertube_client()
    return YouTubeService(
        client,
        localized_client=client.with_locale(
            language=settings.localized_language,
            region=settings.localized_region,
        ),
        telemetry=get_telemetry(),
        search_default_limit=settings.search_default_limit,
        search_max_limit=settings.search_max_limit,
        comments_limit=settings.comments_limit,
        related_videos_limit=settings.related_videos_limit,
        secondary_watch_next_limit=settings.secondary_watch_next_limit,
        channel_videos_per_page=settings.channel_videos_per_page,
        data_api_base_url=settings.youtube_data_api_base_url,
        data_api_timeout_seconds=settings.innertube_http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_library_service() -> LibraryService:
    settings = get_settings()
    database = get_database()
    return LibraryService(
        playlist_repository=PlaylistRepository(database),
        subscription_repository=SubscriptionRepository(database),
        notification_repository=NotificationRepository(database),
        forced_channel=SubscribedChannel(
            id=settings.forced_subscription_channel_id,
            name=settings.forced_subscription_channel_name,
            avatar_url=settings.forced_subscription_channel_avatar_url,
        ),
        notifications_max_items=settings.notifications_max_items,
    )


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    settings = get_settings()
    database = get_database()
    return NotificationService(
        youtube_service=get_youtube_service(),
        library_service=get_library_service(),
        notification_repository=NotificationRepository(database),
        state_repository=LibraryStateRepository(database),
        telemetry=get_telemetry(),
        configured_api_key=settings.youtube_data_api_key,
        max_items=settings.notifications_max_items,
    )


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def reset_cached_dependencies() -> None:
    get_notification_service.cache_clear()
    get_library_service.cache_clear()
    get_youtube_service.cache_clear()
    get_innertube_client.cache_clear()
    get_database.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
