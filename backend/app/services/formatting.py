from __future__ import annotations

import math
import re
from datetime import UTC, datetime, timedelta

from backend.app.models.youtube_contracts import VideoCard, VideoDetails, VideoItem

UNTITLED_VIDEO = "無題の動画"
UNKNOWN_CHANNEL = "不明なチャンネル"
UNKNOWN_VIEWS = "視聴回数不明"
PRIVATE_SUBSCRIBER_COUNT = "非公開"

_SECONDS_PER_YEAR = 31_536_000
_SECONDS_PER_MONTH = 2_592_000
_SECONDS_PER_DAY = 86_400
_SECONDS_PER_HOUR = 3_600
_SECONDS_PER_MINUTE = 60
_TIME_AGO_UNITS: tuple[tuple[int, str], ...] = (
    (_SECONDS_PER_YEAR, "年前"),
    (_SECONDS_PER_MONTH, "ヶ月前"),
    (_SECONDS_PER_DAY, "日前"),
    (_SECONDS_PER_HOUR, "時間前"),
    (_SECONDS_PER_MINUTE, "分前"),
)

_COUNT_SUFFIX_MULTIPLIERS: dict[str, float] = {
    "k": 1_000,
    "m": 1_000_000,
    "b": 1_000_000_000,
    "千": 1_000,
    "万": 10_000,
    "億": 100_000_000,
}
_COUNT_RE = re.compile(r"(\d+(?:[.,]\d+)*)\s*([kmb千万億])?", re.IGNORECASE)

_RELATIVE_UNIT_SECONDS: dict[str, int] = {
    "second": 1,
    "minute": _SECONDS_PER_MINUTE,
    "hour": _SECONDS_PER_HOUR,
    "day": _SECONDS_PER_DAY,
    "week": 7 * _SECONDS_PER_DAY,
    "month": _SECONDS_PER_MONTH,
    "year": _SECONDS_PER_YEAR,
    "秒": 1,
    "分": _SECONDS_PER_MINUTE,
    "時間": _SECONDS_PER_HOUR,
    "日": _SECONDS_PER_DAY,
    "週間": 7 * _SECONDS_PER_DAY,
    "か月": _SECONDS_PER_MONTH,
    "ヶ月": _SECONDS_PER_MONTH,
    "ケ月": _SECONDS_PER_MONTH,
    "年": _SECONDS_PER_YEAR,
}
_RELATIVE_EN_RE = re.compile(
    r"(\d+)\s*(second|minute|hour|day|week|month|year)s?\s+ago",
    re.IGNORECASE,
)
_RELATIVE_JA_RE = re.compile(r"(\d+)\s*(秒|分|時間|日|週間|か月|ヶ月|ケ月|年)前")


def format_number(value: float | int | None) -> str:
    """Compact count in Japanese units: 億 (1e8), 万 (1e4) and 千 (1e3)."""
    if value is None:
        return "0"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "0"
    if not math.isfinite(number):
        return "0"
    if number >= 100_000_000:
        return f"{_one_decimal(number, 100_000_000)}億"
    if number >= 10_000:
        return f"{math.floor(number / 10_000)}万"
    if number >= 1_000:
        return f"{_one_decimal(number, 1_000)}千"
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,}"


def _one_decimal(number: float, unit: int) -> str:
    # Half-up to one decimal place: 1250 is 1.3千, not the float-formatted 1.2千.
    tenths = math.floor(number * 10 / unit + 0.5)
    return f"{tenths // 10}.{tenths % 10}"


def format_duration(total_seconds: float | int | None) -> str:
    if total_seconds is None:
        return "0:00"
    try:
        seconds_value = float(total_seconds)
    except (TypeError, ValueError):
        return "0:00"
    if math.isnan(seconds_value) or seconds_value < 0:
        return "0:00"

    whole = int(seconds_value)
    hours, remainder = divmod(whole, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def format_time_ago(unix_timestamp: float | int | None, *, now: datetime | None = None) -> str:
    if not unix_timestamp:
        return ""
    reference = now or datetime.now(UTC)
    elapsed = math.floor(reference.timestamp() - float(unix_timestamp))

    for unit_seconds, suffix in _TIME_AGO_UNITS:
        interval = elapsed / unit_seconds
        if interval > 1:
            return f"{math.floor(interval)}{suffix}"
    return f"{elapsed}秒前"


def iso_duration(total_seconds: int | None) -> str:
    return f"PT{max(0, total_seconds or 0)}S"


def thumbnail_url(video_id: str) -> str:
    return f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"


def parse_duration_text(raw_value: str | None) -> int:
    """`"1:02:03"` -> 3723. Unparseable text yields 0."""
    if not raw_value:
        return 0
    parts = raw_value.strip().split(":")
    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        return 0
    total = 0
    for number in numbers:
        total = total * 60 + number
    return total


def parse_count_text(raw_value: str | None) -> int | None:
    if not raw_value:
        return None
    normalized = raw_value.strip().lower()
    if normalized.startswith("no ") or normalized in {"no views", "視聴なし"}:
        return 0
    match = _COUNT_RE.search(normalized)
    if match is None:
        return None

    number_text, suffix = match.group(1), match.group(2)
    if suffix is None:
        digits = number_text.replace(",", "").replace(".", "")
        return int(digits) if digits else None

    multiplier = _COUNT_SUFFIX_MULTIPLIERS[suffix.lower()]
    try:
        base = float(number_text.replace(",", "."))
    except ValueError:
        return None
    return int(base * multiplier)


def parse_relative_time(raw_value: str | None, *, now: datetime | None = None) -> datetime | None:
    """Estimate an absolute time from `"3 days ago"` or `"3日前"` style text."""
    if not raw_value:
        return None
    match = _RELATIVE_EN_RE.search(raw_value) or _RELATIVE_JA_RE.search(raw_value)
    if match is None:
        return None
    amount = int(match.group(1))
    unit = match.group(2).lower()
    reference = now or datetime.now(UTC)
    return reference - timedelta(seconds=amount * _RELATIVE_UNIT_SECONDS[unit])


def to_video_card(item: VideoItem) -> VideoCard:
    seconds = item.duration.seconds
    avatar_url = item.author.thumbnails[0].url if item.author.thumbnails else ""
    return VideoCard(
        id=item.id,
        thumbnail_url=thumbnail_url(item.id),
        duration=item.duration.text or (format_duration(seconds) if seconds else ""),
        iso_duration=iso_duration(seconds),
        title=item.title.text or UNTITLED_VIDEO,
        channel_name=item.author.name or UNKNOWN_CHANNEL,
        channel_id=item.author.id or "",
        channel_avatar_url=avatar_url,
        views=_views_label(item),
        uploaded_at=item.published.text or "",
        description_snippet=item.description_snippet.text or "",
    )


def _views_label(item: VideoItem) -> str:
    if item.view_count.text:
        return item.view_count.text
    if item.short_view_count.text:
        return item.short_view_count.text
    return UNKNOWN_VIEWS


def details_to_video_card(details: VideoDetails) -> VideoCard:
    """Card for a stored playlist entry, built from a player and watch-page lookup."""
    basic = details.basic_info
    primary = details.primary_info
    owner = details.secondary_info.owner
    views = primary.view_count.text or primary.short_view_count.text
    if views is None and basic.view_count is not None:
        views = f"{format_number(basic.view_count)} 回視聴"
    return VideoCard(
        id=basic.id,
        thumbnail_url=thumbnail_url(basic.id),
        duration=format_duration(basic.duration) if basic.duration else "",
        iso_duration=iso_duration(basic.duration),
        title=basic.title or primary.title.text or UNTITLED_VIDEO,
        channel_name=owner.name or basic.author or UNKNOWN_CHANNEL,
        channel_id=owner.id or basic.channel_id or "",
        channel_avatar_url=owner.thumbnails[0].url if owner.thumbnails else "",
        views=views or UNKNOWN_VIEWS,
        uploaded_at=primary.relative_date.text or primary.published.text or "",
        description_snippet=(basic.short_description or "")[:200],
    )
