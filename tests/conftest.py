from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from innertube_fakes import FakeInnerTube

from backend.app import dependencies
from backend.app.dependencies import reset_cached_dependencies
from backend.app.main import create_app


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:  # pyright: ignore[reportUnusedFunction]
    monkeypatch.delenv("TUBE_CLONE_YOUTUBE_DATA_API_KEY", raising=False)
    monkeypatch.setenv("TUBE_CLONE_NOTIFICATIONS_POLL_ENABLED", "0")
    monkeypatch.setenv("TUBE_CLONE_TELEMETRY_ENABLED", "0")


@pytest.fixture
def fake_innertube() -> FakeInnerTube:
    return FakeInnerTube()


@pytest.fixture
def client(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    fake_innertube: FakeInnerTube,
) -> Iterator[TestClient]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("TUBE_CLONE_DATA_DIR", str(data_dir))

    @lru_cache(maxsize=1)
    def _fake_innertube_client() -> FakeInnerTube:
        return fake_innertube

    monkeypatch.setattr(dependencies, "get_innertube_client", _fake_innertube_client)
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
