from __future__ import annotations

import threading
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, cast

from backend.app.models.library_contracts import SubscribedChannel
from backend.app.models.youtube_contracts import LatestUpload
from backend.app.repositories.database import Database
from backend.app.repositories.library_state_repository import (
    LAST_NOTIFICATION_CHECK_KEY,
    LibraryStateRepository,
)
from backend.app.repositories.notification_repository import NotificationRepository
from backend.app.repositories.playlist_repository import PlaylistRepository
from backend.app.repositories.subscription_repository import SubscriptionRepository
from backend.app.services.innertube_client import InnerTubeRequestError
from backend.app.services.library_service import LibraryService
from backend.app.services.notification_service import NotificationService
from backend.app.telemetry import TelemetryClient

NOW = datetime(2024, 10, 1, 12, 0, tzinfo=UTC)


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


class _FakeYouTubeService:
    def __init__(self, uploads: dict[str, LatestUpload | Exception | None]) -> None:
        self.uploads = uploads
        self.calls: list[tuple[str, str | None]] = []
        self._lock = threading.Lock()

    def latest_channel_upload(
        self,
        channel_id: str,
        *,
        data_api_key: str | None = None,
    ) -> LatestUpload | None:
        with self._lock:
            self.calls.append((channel_id, data_api_key))
        upload = self.uploads.get(channel_id)
        if isinstance(upload, Exception):
            raise upload
        return upload


def _upload(video_id: str, hours_ago: int) -> LatestUpload:
    return LatestUpload(
        video_id=video_id,
        title=f"Upload {video_id}",
        thumbnail_url=f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg",
        published_at=(NOW - timedelta(hours=hours_ago)).isoformat().replace("+00:00", "Z"),
    )


def _build(
    tmp_path: Path,
    youtube: _FakeYouTubeService,
    *,
    configured_api_key: str | None = None,
    max_items: int = 30,
    telemetry: TelemetryClient | None = None,
) -> tuple[NotificationService, LibraryService, LibraryStateRepository]:
    db = Database(tmp_path / "library.db")
    db.initialize()
    notifications = NotificationRepository(db)
    library = LibraryService(
        playlist_repository=PlaylistRepository(db),
        subscription_repository=SubscriptionRepository(db),
        notification_repository=notifications,
        forced_channel=SubscribedChannel(id="UC_forced", name="Forced"),
    )
    state = LibraryStateRepository(db)
    service = NotificationService(
        youtube_service=cast(Any, youtube),
        library_service=library,
        notification_repository=notifications,
        state_repository=state,
        telemetry=telemetry,
        configured_api_key=configured_api_key,
        max_items=max_items,
        clock=lambda: NOW,
    )
    return service, library, state


def test_refresh_collects_new_uploads_and_counts_unread(tmp_path: Path) -> None:
    youtube = _FakeYouTubeService(
        {
            "UC_forced": _upload("f-1", hours_ago=5),
            "UC_a": _upload("a-1", hours_ago=1),
            "UC_b": InnerTubeRequestError("channel unavailable", status_code=404),
        }
    )
    service, library, _ = _build(tmp_path, youtube)
    library.subscribe(SubscribedChannel(id="UC_a", name="A", avatar_url="https://yt3.ggpht.com/a"))
    library.subscribe(SubscribedChannel(id="UC_b", name="B"))

    result = service.refresh()

    assert result.new_count == 2
    assert result.unread_count == 2
    assert result.skipped_reason is None
    assert [item.id for item in result.notifications] == ["a-1", "f-1"]
    newest = result.notifications[0]
    assert newest.channel.name == "A"
    assert newest.channel.avatar_url == "https://yt3.ggpht.com/a"
    assert newest.published_at == "2024-10-01T11:00:00+00:00"
    assert sorted(channel_id for channel_id, _ in youtube.calls) == ["UC_a", "UC_b", "UC_forced"]


def test_refresh_skips_uploads_older_than_last_check(tmp_path: Path) -> None:
    youtube = _FakeYouTubeService(
        {"UC_forced": _upload("f-1", hours_ago=5), "UC_a": _upload("a-1", hours_ago=1)}
    )
    service, library, state = _build(tmp_path, youtube)
    library.subscribe(SubscribedChannel(id="UC_a", name="A"))
    state.set_value(LAST_NOTIFICATION_CHECK_KEY, (NOW - timedelta(hours=2)).isoformat())

    result = service.refresh()

    assert result.new_count == 1
    assert [item.id for item in result.notifications] == ["a-1"]


def test_refresh_does_not_count_known_uploads_twice(tmp_path: Path) -> None:
    youtube = _FakeYouTubeService({"UC_forced": _upload("f-1", hours_ago=5)})
    service, _, _ = _build(tmp_path, youtube)

    assert service.refresh().new_count == 1
    second = service.refresh()

    assert second.new_count == 0
    assert second.unread_count == 1


def test_refresh_truncates_to_max_items(tmp_path: Path) -> None:
    uploads: dict[str, LatestUpload | Exception | None] = {
        "UC_forced": _upload("f-1", hours_ago=1),
    }
    for index in range(3):
        uploads[f"UC_{index}"] = _upload(f"v-{index}", hours_ago=10 + index)
    service, library, _ = _build(tmp_path, _FakeYouTubeService(uploads), max_items=2)
    for index in range(3):
        library.subscribe(SubscribedChannel(id=f"UC_{index}", name=f"Channel {index}"))

    result = service.refresh()

    assert result.new_count == 4
    assert [item.id for item in result.notifications] == ["f-1", "v-0"]


def test_mark_as_read_resets_unread_and_sets_last_check(tmp_path: Path) -> None:
    service, _, _ = _build(tmp_path, _FakeYouTubeService({"UC_forced": _upload("f-1", 1)}))
    service.refresh()

    read = service.mark_as_read()

    assert read.unread_count == 0
    assert read.last_checked_at == NOW.isoformat()
    assert len(read.notifications) == 1


def test_refresh_passes_stored_api_key_over_settings(tmp_path: Path) -> None:
    youtube = _FakeYouTubeService({})
    service, _, _ = _build(tmp_path, youtube, configured_api_key="settings-key")

    assert service.api_key_status().source == "settings"
    service.refresh()
    assert youtube.calls == [("UC_forced", "settings-key")]

    status = service.set_api_key(" stored-key ")
    assert status.configured is True
    assert status.source == "stored"
    service.refresh()
    assert youtube.calls[-1] == ("UC_forced", "stored-key")

    assert service.set_api_key("").source == "settings"
    assert service.resolve_api_key() == "settings-key"


def test_refresh_in_progress_is_skipped(tmp_path: Path) -> None:
    sink = _CaptureSink()
    service, _, _ = _build(
        tmp_path,
        _FakeYouTubeService({}),
        telemetry=TelemetryClient(enabled=True, sink=sink),
    )
    lock = service._refresh_lock  # pyright: ignore[reportPrivateUsage]
    lock.acquire()
    try:
        result = service.refresh()
    finally:
        lock.release()

    assert result.skipped_reason == "in_progress"
    assert result.new_count == 0
    assert sink.events == [("notifications.refresh.skipped", {"reason": "in_progress"})]


def test_refresh_emits_start_and_finish_telemetry(tmp_path: Path) -> None:
    sink = _CaptureSink()
    service, _, _ = _build(
        tmp_path,
        _FakeYouTubeService({"UC_forced": _upload("f-1", 1)}),
        configured_api_key="secret-key",
        telemetry=TelemetryClient(enabled=True, sink=sink),
    )

    service.refresh()

    names = [name for name, _ in sink.events]
    assert names == ["notifications.refresh.start", "notifications.refresh.finish"]
    finish = sink.events[1][1]
    assert finish["new_count"] == 1
    assert finish["source"] == "data_api"
    assert "secret-key" not in str(sink.events)
