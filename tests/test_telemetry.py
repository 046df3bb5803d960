from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from backend.app.telemetry import (
    NoOpTelemetrySink,
    StructuredLogTelemetrySink,
    TelemetryClient,
    build_telemetry_client,
    event_area,
)


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def test_telemetry_client_redacts_sensitive_fields() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "youtube.search.start",
        request_id="req_123",
        query="private search",
        continuation_token="abc",
        comment_text="hello",
        data_api_key="secret",
        result_count=3,
    )

    assert len(sink.events) == 1
    event_name, attributes = sink.events[0]
    assert event_name == "youtube.search.start"
    assert attributes["request_id"] == "req_123"
    assert attributes["result_count"] == 3
    assert attributes["query"] == "[redacted]"
    assert attributes["continuation_token"] == "[redacted]"
    assert attributes["comment_text"] == "[redacted]"
    assert attributes["data_api_key"] == "[redacted]"


def test_telemetry_client_compacts_values() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "youtube.channel.finish",
        Channel_ID="  UC_test  ",
        error_message="line one\n\n  line two",
        detail="x" * 200,
        page=None,
        has_more=False,
        ratio=0.5,
        videos=["a", "b"],
    )

    attributes = sink.events[0][1]
    assert attributes["channel_id"] == "UC_test"
    assert attributes["error_message"] == "line one line two"
    assert attributes["detail"] == "x" * 160 + "..."
    assert attributes["page"] is None
    assert attributes["has_more"] is False
    assert attributes["ratio"] == 0.5
    assert attributes["videos"] == "list"


def test_disabled_telemetry_client_does_not_emit() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=False, sink=sink)

    client.emit("youtube.search.start", request_id="req_1")
    assert sink.events == []


def test_build_telemetry_client_none_sink_is_disabled() -> None:
    client = build_telemetry_client(enabled=True, sink="none")
    assert client.enabled is False
    assert isinstance(client.sink, NoOpTelemetrySink)


def test_build_telemetry_client_log_sink() -> None:
    client = build_telemetry_client(enabled=True, sink="log")
    assert client.enabled is True
    assert isinstance(client.sink, StructuredLogTelemetrySink)

    assert build_telemetry_client(enabled=False, sink="log").enabled is False


def test_telemetry_client_scrubs_key_parameters_in_messages() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "youtube.latest_upload.error",
        error_message=(
            "GET https://www.googleapis.com/youtube/v3/search?part=snippet&key=AIzaSecret"
            "&channelId=UC_a failed"
        ),
        url="https://www.youtube.com/results?q=private+search",
    )

    attributes = sink.events[0][1]
    assert attributes["error_message"] == (
        "GET https://www.googleapis.com/youtube/v3/search?part=snippet&key=[redacted]"
        "&channelId=UC_a failed"
    )
    assert attributes["url"] == "https://www.youtube.com/results?q=[redacted]"


def test_telemetry_client_drops_events_outside_known_areas() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit("library.playlist.created", playlist_id="p1")
    client.emit("youtube", request_id="req_1")
    client.emit("notifications.refresh.start", channel_count=2)

    assert [name for name, _ in sink.events] == ["notifications.refresh.start"]
    assert event_area("http.request.finish") == "http"
    assert event_area("library.playlist.created") is None


def test_timed_emits_finish_with_late_attributes() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    with client.timed("youtube.comments", limit=20) as finish:
        finish["comment_count"] = 7

    name, attributes = sink.events[0]
    assert name == "youtube.comments.finish"
    assert attributes["limit"] == 20
    assert attributes["comment_count"] == 7
    assert attributes["duration_ms"] >= 0


def test_timed_emits_error_and_reraises() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    with pytest.raises(TimeoutError), client.timed("scheduler.tick", tick_type="notifications"):
        raise TimeoutError("poll timed out")

    name, attributes = sink.events[0]
    assert name == "scheduler.tick.error"
    assert attributes["error_type"] == "TimeoutError"
    assert attributes["tick_type"] == "notifications"
    assert "comment_count" not in attributes
