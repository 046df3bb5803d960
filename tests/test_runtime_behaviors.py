from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest
import structlog
from fastapi.testclient import TestClient

from backend.app.config import AppSettings, load_settings
from backend.app.dependencies import reset_cached_dependencies
from backend.app.logging_config import (
    TELEMETRY_LOG_FILE_NAME,
    _stream_supports_color,  # pyright: ignore[reportPrivateUsage]
    configure_application_logging,
)
from backend.app.main import create_app


def _settings(tmp_path: Path, **overrides: Any) -> AppSettings:
    values: dict[str, Any] = {
        "data_dir": tmp_path,
        "db_path": tmp_path / "library.db",
        "log_dir": tmp_path / "logs",
        "web_ui_dist_dir": tmp_path / "web",
        "log_level": "INFO",
        "log_max_bytes": 1024 * 1024,
        "log_backup_count": 2,
    }
    values.update(overrides)
    return AppSettings(**values)


def test_config_env_bool_branches(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TUBE_CLONE_DATA_DIR", str(tmp_path / "data"))

    monkeypatch.setenv("TUBE_CLONE_NOTIFICATIONS_POLL_ENABLED", "1")
    assert load_settings().notifications_poll_enabled is True

    monkeypatch.setenv("TUBE_CLONE_NOTIFICATIONS_POLL_ENABLED", "off")
    assert load_settings().notifications_poll_enabled is False

    monkeypatch.setenv("TUBE_CLONE_NOTIFICATIONS_POLL_ENABLED", "invalid")
    assert load_settings().notifications_poll_enabled is False

    monkeypatch.setenv("TUBE_CLONE_TELEMETRY_ENABLED", "invalid")
    assert load_settings().telemetry_enabled is True

    monkeypatch.setenv("TUBE_CLONE_TELEMETRY_ENABLED", "no")
    assert load_settings().telemetry_enabled is False


def test_main_lifespan_starts_and_stops_scheduler(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    class FakeNotificationService:
        pass

    class FakeScheduler:
        started = False
        stopped = False
        lock_path: Path | None = None
        interval: int | None = None

        def __init__(
            self,
            notification_service: FakeNotificationService,
            poll_interval_seconds: int,
            *,
            telemetry: object | None = None,
            lock_path: Path | None = None,
        ) -> None:
            _ = notification_service
            _ = telemetry
            FakeScheduler.interval = poll_interval_seconds
            FakeScheduler.lock_path = lock_path

        def start(self) -> bool:
            FakeScheduler.started = True
            return True

        def stop(self) -> None:
            FakeScheduler.stopped = True

    settings = _settings(
        tmp_path,
        notifications_poll_enabled=True,
        notifications_poll_interval_seconds=45,
    )

    monkeypatch.setattr("backend.app.main.get_settings", lambda: settings)
    monkeypatch.setattr(
        "backend.app.main.get_notification_service",
        lambda: FakeNotificationService(),
    )
    monkeypatch.setattr("backend.app.main.SchedulerService", FakeScheduler)
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as client:
        response = client.get("/health")
        assert response.status_code == 200

    reset_cached_dependencies()

    assert FakeScheduler.started is True
    assert FakeScheduler.stopped is True
    assert FakeScheduler.interval == 45
    assert FakeScheduler.lock_path == tmp_path.resolve() / "scheduler.lock"


def test_main_lifespan_skips_scheduler_when_disabled(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    created: list[object] = []

    def _unexpected_scheduler(*args: object, **kwargs: object) -> None:
        created.append((args, kwargs))

    settings = _settings(tmp_path, notifications_poll_enabled=False)
    monkeypatch.setattr("backend.app.main.get_settings", lambda: settings)
    monkeypatch.setattr("backend.app.main.SchedulerService", _unexpected_scheduler)
    reset_cached_dependencies()

    with TestClient(create_app()) as client:
        assert client.get("/health").json() == {"status": "ok"}

    reset_cached_dependencies()
    assert created == []


def test_configure_application_logging_creates_file(tmp_path: Path) -> None:
    settings = _settings(tmp_path)
    log_file = configure_application_logging(settings)
    logger = logging.getLogger("tube_clone.test")
    logger.info("runtime-log-test")
    structlog.get_logger("tube_clone.telemetry").info(
        "telemetry",
        telemetry_event="test.event",
    )

    app_logger = logging.getLogger("tube_clone")
    assert len(app_logger.handlers) == 2
    levels = {handler.level for handler in app_logger.handlers}
    assert logging.INFO in levels
    assert logging.DEBUG in levels
    file_handlers = [
        handler for handler in app_logger.handlers if isinstance(handler, logging.FileHandler)
    ]
    assert len(file_handlers) == 1

    for handler in app_logger.handlers:
        handler.flush()
    telemetry_logger = logging.getLogger("tube_clone.telemetry")
    assert telemetry_logger.propagate is False
    assert len(telemetry_logger.handlers) == 1
    for handler in telemetry_logger.handlers:
        handler.flush()

    uvicorn_logger = logging.getLogger("uvicorn.access")
    assert file_handlers[0] in uvicorn_logger.handlers

    assert log_file == settings.log_dir / "tube-clone.log"
    assert log_file.exists()
    log_lines = [
        line for line in log_file.read_text(encoding="utf-8").splitlines() if line.strip()
    ]
    parsed_events = [json.loads(line) for line in log_lines]
    runtime_event = next(
        event for event in parsed_events if event.get("event") == "runtime-log-test"
    )
    assert runtime_event["logger"] == "tube_clone.test"
    assert runtime_event["level"] == "info"
    assert runtime_event["module"] == "test_runtime_behaviors"
    assert runtime_event["lineno"]
    assert runtime_event["timestamp"]
    assert all(event.get("telemetry_event") != "test.event" for event in parsed_events)

    telemetry_log_file = settings.log_dir / TELEMETRY_LOG_FILE_NAME
    assert telemetry_log_file.exists()
    telemetry_lines = [
        line for line in telemetry_log_file.read_text(encoding="utf-8").splitlines() if line.strip()
    ]
    telemetry_events = [json.loads(line) for line in telemetry_lines]
    telemetry_event = next(
        event for event in telemetry_events if event.get("telemetry_event") == "test.event"
    )
    assert telemetry_event["logger"] == "tube_clone.telemetry"


def test_stream_supports_color_detects_tty() -> None:
    class _TTY:
        def isatty(self) -> bool:
            return True

    class _Pipe:
        def isatty(self) -> bool:
            return False

    class _Broken:
        def isatty(self) -> bool:
            raise RuntimeError("boom")

    assert _stream_supports_color(_TTY()) is True
    assert _stream_supports_color(_Pipe()) is False
    assert _stream_supports_color(_Broken()) is False
    assert _stream_supports_color(object()) is False
