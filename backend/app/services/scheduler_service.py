from __future__ import annotations

import errno
import logging
import os
import threading
from pathlib import Path
from typing import Any
from uuid import uuid4

from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.app.services.notification_service import NotificationService
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("tube_clone.scheduler")

try:
    import fcntl
except ImportError:  # pragma: no cover - non-POSIX platforms
    fcntl = None


class SchedulerService:
    """Background thread refreshing notifications on a fixed cadence."""

    def __init__(
        self,
        notification_service: NotificationService,
        poll_interval_seconds: int,
        *,
        telemetry: TelemetryClient | None = None,
        lock_path: Path | None = None,
    ) -> None:
        self._notification_service = notification_service
        self._poll_interval_seconds = max(1, poll_interval_seconds)
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock_path = lock_path
        self._lock_file: Any | None = None
        self._lock_acquired = False

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        if self.is_running:
            return True

        if not self._try_acquire_process_lock():
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="tube-clone-scheduler")
        self._thread.daemon = True
        self._thread.start()
        LOGGER.info("scheduler started interval_seconds=%s", self._poll_interval_seconds)
        return True

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=3)
            self._thread = None
        self._release_process_lock()

    def run_once(self) -> None:
        """Run a single notification tick on the calling thread."""
        self._run_notification_tick()

    def _try_acquire_process_lock(self) -> bool:
        if self._lock_path is None:
            return True

        if fcntl is None:
            LOGGER.warning(
                "scheduler single-instance lock unavailable on this platform; starting scheduler"
            )
            return True

        lock_path = self._lock_path
        lock_file: Any | None = None
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            lock_file = lock_path.open("a+", encoding="utf-8")
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as exc:
            if lock_file is not None:
                lock_file.close()
            if exc.errno in (errno.EACCES, errno.EAGAIN):
                LOGGER.info(
                    "scheduler start skipped; lock held by another process path=%s",
                    lock_path,
                )
                return False
            LOGGER.warning(
                "scheduler lock acquisition failed path=%s; starting scheduler anyway",
                lock_path,
                exc_info=True,
            )
            return True

        try:
            lock_file.seek(0)
            lock_file.truncate()
            lock_file.write(f"{os.getpid()}\n")
            lock_file.flush()
        except OSError:
            LOGGER.debug("scheduler lock file pid write failed path=%s", lock_path, exc_info=True)

        self._lock_file = lock_file
        self._lock_acquired = True
        return True

    def _release_process_lock(self) -> None:
        lock_file = self._lock_file
        if lock_file is None:
            self._lock_acquired = False
            return

        try:
            if self._lock_acquired and fcntl is not None:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
        except OSError:
            LOGGER.debug("scheduler lock release failed path=%s", self._lock_path, exc_info=True)
        finally:
            lock_file.close()
            self._lock_file = None
            self._lock_acquired = False

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self._run_notification_tick()
            self._stop_event.wait(self._poll_interval_seconds)

    def _run_notification_tick(self) -> None:
        tick_id = uuid4().hex
        tick_tokens = bind_contextvars(scheduler_tick_id=tick_id, scheduler_tick_type="notifications")
        self._telemetry.emit(
            "scheduler.tick.start",
            tick_id=tick_id,
            tick_type="notifications",
        )
        try:
            with self._telemetry.timed(
                "scheduler.tick",
                tick_id=tick_id,
                tick_type="notifications",
            ) as finish:
                result = self._notification_service.refresh()
                finish.update(
                    new_count=result.new_count,
                    outcome=result.skipped_reason or "ok",
                )
        except Exception:
            LOGGER.warning("scheduled notification refresh failed", exc_info=True)
        finally:
            reset_contextvars(**tick_tokens)
