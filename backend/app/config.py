from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".tube-clone"
DEFAULT_INNERTUBE_CLIENT_VERSION = "2.20240726.00.00"
FORCED_SUBSCRIPTION_CHANNEL_ID = "UCCMV3NfZk_NB-MmUvHj6aFw"
FORCED_SUBSCRIPTION_CHANNEL_AVATAR_URL = (
    "https://yt3.ggpht.com/b-LyLgA8IAo6PcG52Lg-GkBi1uP5y5vj2_cTR_Q2Yh5Ie94ImALB0m_29z1NO4e8-"
    "8yD8a_l=s176-c-k-c0x00ffffff-no-rj-mo"
)
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("library.db")),
    ("log_dir", Path("logs")),
    ("web_ui_dist_dir", Path("web")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "telemetry_enabled",
    "notifications_poll_enabled",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{TUBE_CLONE_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from a `TUBE_CLONE_*` environment variable (or `.env`),
    and the field description documents what it controls.
    """

    model_config = SettingsConfigDict(
        env_prefix="TUBE_CLONE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the local library database and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("library.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('library.db'))}",
    )
    web_ui_dist_dir: Path = Field(
        default=_default_in_data_dir(Path("web")),
        description=(
            "Directory holding a pre-built single-page UI bundle. "
            f"{_data_dir_default_note(Path('web'))}"
        ),
    )
    cors_allow_origins: str = Field(
        default="*",
        description="Comma-separated origins allowed by the CORS middleware.",
    )

    # InnerTube scraping client.
    innertube_base_url: str = Field(
        default="https://www.youtube.com/youtubei/v1",
        description="InnerTube API root used for search, video, channel and playlist lookups.",
    )
    innertube_client_name: str = Field(
        default="WEB",
        description="InnerTube client name sent in the request context.",
    )
    innertube_client_version: str = Field(
        default=DEFAULT_INNERTUBE_CLIENT_VERSION,
        description="InnerTube client version sent in the request context.",
    )
    innertube_api_key: str | None = Field(
        default=None,
        description="Optional InnerTube key appended as the `key` query parameter.",
    )
    innertube_http_timeout_seconds: float = Field(
        default=15.0,
        description="HTTP timeout for InnerTube requests.",
    )
    default_language: str = Field(
        default="en",
        description="Interface language for search, video and comments lookups.",
    )
    default_region: str = Field(
        default="US",
        description="Content region for search, video and comments lookups.",
    )
    localized_language: str = Field(
        default="ja",
        description="Interface language for channel, playlist and trending lookups.",
    )
    localized_region: str = Field(
        default="JP",
        description="Content region for channel, playlist and trending lookups.",
    )

    # Pagination and response caps.
    search_default_limit: int = Field(
        default=50,
        ge=1,
        description="Number of search results returned when `limit` is not given.",
    )
    search_max_limit: int = Field(
        default=200,
        ge=1,
        description="Upper bound applied to the `limit` search parameter.",
    )
    comments_limit: int = Field(
        default=300,
        ge=1,
        description="Maximum comments gathered per video across continuation pages.",
    )
    related_videos_limit: int = Field(
        default=50,
        ge=1,
        description="Cap on related videos and the watch-next feed.",
    )
    secondary_watch_next_limit: int = Field(
        default=100,
        ge=1,
        description="Cap on the secondary info watch-next list.",
    )
    channel_videos_per_page: int = Field(
        default=150,
        ge=1,
        description="Maximum channel videos returned for one page.",
    )

    # Local library.
    notifications_max_items: int = Field(
        default=30,
        ge=1,
        description="Notifications retained after each refresh.",
    )
    forced_subscription_channel_id: str = Field(
        default=FORCED_SUBSCRIPTION_CHANNEL_ID,
        description="Channel that is always subscribed and cannot be removed.",
    )
    forced_subscription_channel_name: str = Field(
        default="AZKi Channel",
        description="Display name of the forced subscription channel.",
    )
    forced_subscription_channel_avatar_url: str = Field(
        default=FORCED_SUBSCRIPTION_CHANNEL_AVATAR_URL,
        description="Avatar of the forced subscription channel.",
    )
    youtube_data_api_key: str | None = Field(
        default=None,
        description=(
            "YouTube Data API v3 key for notification polling. A key stored through "
            "`/api/library/api-key` takes precedence."
        ),
    )
    youtube_data_api_base_url: str = Field(
        default="https://www.googleapis.com/youtube/v3",
        description="YouTube Data API root.",
    )
    notifications_poll_enabled: bool = Field(
        default=False,
        description="Enable the background notification refresh loop.",
    )
    notifications_poll_interval_seconds: int = Field(
        default=900,
        ge=1,
        description="Cadence of the background notification refresh loop.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for backend log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Size at which the JSON log files are rotated.",
    )
    log_backup_count: int = Field(
        default=5,
        ge=0,
        description="Number of rotated log files kept.",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("TUBE_CLONE_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("TUBE_CLONE_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("innertube_base_url", "youtube_data_api_base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: Any, info: ValidationInfo) -> str:
        env_name = f"TUBE_CLONE_{(info.field_name or '').upper()}"
        if not isinstance(value, str):
            raise ValueError(f"{env_name} must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError(f"{env_name} must not be empty.")
        return normalized

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("innertube_api_key", "youtube_data_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)


def cors_origins(settings: AppSettings) -> list[str]:
    origins = [origin.strip() for origin in settings.cors_allow_origins.split(",")]
    return [origin for origin in origins if origin] or ["*"]
