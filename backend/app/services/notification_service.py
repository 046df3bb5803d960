from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from backend.app.models.library_contracts import (
    ApiKeyStatus,
    Notification,
    NotificationChannel,
    NotificationRefreshResponse,
    NotificationsResponse,
    NotificationVideo,
    SubscribedChannel,
)
from backend.app.models.youtube_contracts import LatestUpload
from backend.app.repositories.library_state_repository import (
    DATA_API_KEY_KEY,
    LAST_NOTIFICATION_CHECK_KEY,
    UNREAD_NOTIFICATIONS_KEY,
    LibraryStateRepository,
)
from backend.app.repositories.notification_repository import NotificationRepository
from backend.app.services.innertube_client import YouTubeServiceError
from backend.app.services.library_service import LibraryService
from backend.app.services.youtube_service import YouTubeService
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("tube_clone.notifications")

SKIPPED_NO_SUBSCRIPTIONS = "no_subscriptions"
SKIPPED_IN_PROGRESS = "in_progress"
_MAX_POLL_WORKERS = 4


class NotificationService:
    """Polls subscribed channels for new uploads and keeps the notification feed."""

    def __init__(
        self,
        *,
        youtube_service: YouTubeService,
        library_service: LibraryService,
        notification_repository: NotificationRepository,
        state_repository: LibraryStateRepository,
        telemetry: TelemetryClient | None = None,
        configured_api_key: str | None = None,
        max_items: int = 30,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._youtube_service = youtube_service
        self._library_service = library_service
        self._notifications = notification_repository
        self._state = state_repository
        self._telemetry = telemetry or TelemetryClient.disabled()
        self._configured_api_key = configured_api_key
        self._max_items = max(1, max_items)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._refresh_lock = threading.Lock()

    def api_key_status(self) -> ApiKeyStatus:
        if self._state.get_value(DATA_API_KEY_KEY):
            return ApiKeyStatus(configured=True, source="stored")
        if self._configured_api_key:
            return ApiKeyStatus(configured=True, source="settings")
        return ApiKeyStatus(configured=False)

    def set_api_key(self, api_key: str) -> ApiKeyStatus:
        normalized = api_key.strip()
        if normalized:
            self._state.set_value(DATA_API_KEY_KEY, normalized)
        else:
            self._state.delete_value(DATA_API_KEY_KEY)
        return self.api_key_status()

    def resolve_api_key(self) -> str | None:
        return self._state.get_value(DATA_API_KEY_KEY) or self._configured_api_key

    def list_notifications(self) -> NotificationsResponse:
        return NotificationsResponse(
            notifications=self._notifications.list_notifications(),
            unread_count=self._state.get_int(UNREAD_NOTIFICATIONS_KEY),
            last_checked_at=self._state.get_value(LAST_NOTIFICATION_CHECK_KEY),
        )

    def mark_as_read(self) -> NotificationsResponse:
        self._state.set_value(UNREAD_NOTIFICATIONS_KEY, "0")
        self._state.set_value(LAST_NOTIFICATION_CHECK_KEY, self._clock().isoformat())
        return self.list_notifications()

    def refresh(self) -> NotificationRefreshResponse:
        if not self._refresh_lock.acquire(blocking=False):
            self._telemetry.emit("notifications.refresh.skipped", reason=SKIPPED_IN_PROGRESS)
            return self._skipped(SKIPPED_IN_PROGRESS)
        try:
            return self._refresh_locked()
        finally:
            self._refresh_lock.release()

    def _refresh_locked(self) -> NotificationRefreshResponse:
        channels = self._library_service.list_subscriptions()
        if not channels:
            self._telemetry.emit("notifications.refresh.skipped", reason=SKIPPED_NO_SUBSCRIPTIONS)
            return self._skipped(SKIPPED_NO_SUBSCRIPTIONS)

        api_key = self.resolve_api_key()
        source = "data_api" if api_key else "innertube"
        last_check = _parse_timestamp(self._state.get_value(LAST_NOTIFICATION_CHECK_KEY))
        self._telemetry.emit(
            "notifications.refresh.start",
            channel_count=len(channels),
            source=source,
        )

        with ThreadPoolExecutor(max_workers=min(_MAX_POLL_WORKERS, len(channels))) as executor:
            uploads = list(
                executor.map(lambda channel: self._poll_channel(channel, api_key), channels)
            )

        stored_ids = {item.id for item in self._notifications.list_notifications()}
        fresh: list[Notification] = []
        failed_count = 0
        for channel, upload in zip(channels, uploads, strict=True):
            if upload is None:
                failed_count += 1
                continue
            published_at = _parse_timestamp(upload.published_at)
            if published_at is None:
                continue
            if last_check is not None and published_at <= last_check:
                continue
            if upload.video_id in stored_ids:
                continue
            fresh.append(_build_notification(channel, upload, published_at))

        if fresh:
            fresh.sort(key=lambda item: item.published_at, reverse=True)
            self._notifications.merge_notifications(fresh, max_items=self._max_items)
            self._state.increment(UNREAD_NOTIFICATIONS_KEY, len(fresh))

        LOGGER.info(
            "notifications refresh completed channels=%s new=%s unavailable=%s source=%s",
            len(channels),
            len(fresh),
            failed_count,
            source,
        )
        self._telemetry.emit(
            "notifications.refresh.finish",
            channel_count=len(channels),
            new_count=len(fresh),
            unavailable_count=failed_count,
            source=source,
        )
        current = self.list_notifications()
        return NotificationRefreshResponse(
            notifications=current.notifications,
            unread_count=current.unread_count,
            last_checked_at=current.last_checked_at,
            new_count=len(fresh),
        )

    def _poll_channel(self, channel: SubscribedChannel, api_key: str | None) -> LatestUpload | None:
        try:
            return self._youtube_service.latest_channel_upload(channel.id, data_api_key=api_key)
        except YouTubeServiceError as exc:
            LOGGER.warning(
                "notifications channel poll failed channel_id=%s error=%s",
                channel.id,
                exc,
            )
            return None

    def _skipped(self, reason: str) -> NotificationRefreshResponse:
        current = self.list_notifications()
        return NotificationRefreshResponse(
            notifications=current.notifications,
            unread_count=current.unread_count,
            last_checked_at=current.last_checked_at,
            skipped_reason=reason,
        )


def _build_notification(
    channel: SubscribedChannel,
    upload: LatestUpload,
    published_at: datetime,
) -> Notification:
    return Notification(
        id=upload.video_id,
        channel=NotificationChannel(
            id=channel.id,
            name=channel.name,
            avatar_url=channel.avatar_url,
        ),
        video=NotificationVideo(
            id=upload.video_id,
            title=upload.title,
            thumbnail_url=upload.thumbnail_url,
        ),
        published_at=published_at.isoformat(),
    )


def _parse_timestamp(raw_value: str | None) -> datetime | None:
    if raw_value is None or not raw_value.strip():
        return None
    normalized = raw_value.strip()
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
