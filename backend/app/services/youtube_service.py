from __future__ import annotations

import json
import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import UTC, datetime
from http.client import HTTPException
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from backend.app.models.youtube_contracts import (
    ChannelInfo,
    ChannelPage,
    ChannelPlaylists,
    ChannelVideosPage,
    CommentItem,
    CommentsResponse,
    LatestUpload,
    PlaylistDetails,
    TrendingFeed,
    VideoDetails,
    VideoItem,
    VideoSecondaryInfo,
)
from backend.app.services.formatting import (
    PRIVATE_SUBSCRIBER_COUNT,
    parse_relative_time,
    thumbnail_url,
)
from backend.app.services.innertube_client import (
    SEARCH_PARAMS_VIDEOS_ONLY,
    InnerTubeApi,
    InnerTubeRequestError,
    ResourceNotFoundError,
    YouTubeServiceError,
)
from backend.app.services.youtube_parsers import (
    as_dict,
    as_list,
    comments_entry_token,
    continuation_items,
    dig,
    find_channel_tab,
    find_continuation_token,
    flatten_section_items,
    parse_basic_info,
    parse_channel_info,
    parse_comment_threads,
    parse_playlist_cards,
    parse_playlist_info,
    parse_primary_info,
    parse_secondary_owner,
    parse_video_items,
    playlist_video_items,
    selected_tab_items,
    watch_next_results,
)
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("tube_clone.youtube")

CHANNEL_VIDEOS_PARAMS = "EgZ2aWRlb3PyBgQKAjoA"
CHANNEL_PLAYLISTS_PARAMS = "EglwbGF5bGlzdHPyBgQKAkIA"
TRENDING_BROWSE_ID = "FEtrending"
TRENDING_CATEGORY_PARAMS: dict[str, str | None] = {
    "now": None,
    "music": "4gINGgt5dG1hX2NoYXJ0cw==",
    "gaming": "4gIcGhpnYW1pbmdfY29ycHVzX21vc3RfcG9wdWxhcg==",
    "movies": "4gIKGgh0cmFpbGVycw==",
}
SEARCH_MAX_CONTINUATIONS = 20
PLAYLIST_MAX_CONTINUATIONS = 50
COMMENTS_MAX_CONTINUATIONS = 60
SHORTS_QUERY_SUFFIX = "#shorts"


class DataApiError(YouTubeServiceError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class YouTubeService:
    """
    Read-only facade over InnerTube shaped for the proxy routes.

    Search, video details and comments use the default locale client. Channel,
    playlist and trending lookups use the localized client so that counts and
    relative dates come back in Japanese.
    """

    def __init__(
        self,
        client: InnerTubeApi,
        *,
        localized_client: InnerTubeApi | None = None,
        telemetry: TelemetryClient | None = None,
        search_default_limit: int = 50,
        search_max_limit: int = 200,
        comments_limit: int = 300,
        related_videos_limit: int = 50,
        secondary_watch_next_limit: int = 100,
        channel_videos_per_page: int = 150,
        data_api_base_url: str = "https://www.googleapis.com/youtube/v3",
        data_api_timeout_seconds: float = 15.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._localized_client = localized_client or client
        self._telemetry = telemetry or TelemetryClient.disabled()
        self._search_max_limit = max(1, search_max_limit)
        self._search_default_limit = max(1, min(search_default_limit, self._search_max_limit))
        self._comments_limit = max(1, comments_limit)
        self._related_videos_limit = max(1, related_videos_limit)
        self._secondary_watch_next_limit = max(1, secondary_watch_next_limit)
        self._channel_videos_per_page = max(1, channel_videos_per_page)
        self._data_api_base_url = data_api_base_url.rstrip("/")
        self._data_api_timeout_seconds = max(1.0, data_api_timeout_seconds)
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def search_default_limit(self) -> int:
        return self._search_default_limit

    def search(self, query: str, limit: int | None = None) -> list[VideoItem]:
        resolved_limit = self._resolve_search_limit(limit)
        with self._observe("search", limit=resolved_limit):
            payload = self._client.search(query, params=SEARCH_PARAMS_VIDEOS_ONLY)
            sections = as_list(
                dig(
                    payload,
                    "contents",
                    "twoColumnSearchResultsRenderer",
                    "primaryContents",
                    "sectionListRenderer",
                    "contents",
                )
            )
            videos = parse_video_items(sections)
            seen = {video.id for video in videos}
            token = find_continuation_token(sections)
            visited_tokens: set[str] = set()

            while (
                len(videos) < resolved_limit
                and token is not None
                and token not in visited_tokens
                and len(visited_tokens) < SEARCH_MAX_CONTINUATIONS
            ):
                visited_tokens.add(token)
                page = self._client.search(continuation=token)
                items = continuation_items(page)
                for video in parse_video_items(items):
                    if video.id in seen:
                        continue
                    seen.add(video.id)
                    videos.append(video)
                token = find_continuation_token(items)

            LOGGER.info(
                "youtube search completed limit=%s returned=%s",
                resolved_limit,
                min(len(videos), resolved_limit),
            )
            return videos[:resolved_limit]

    def search_shorts(self, query: str, limit: int | None = None) -> list[VideoItem]:
        """Videos from a `#shorts` search that look like Shorts."""
        resolved_limit = self._resolve_search_limit(limit)
        tagged_query = query.strip()
        if SHORTS_QUERY_SUFFIX not in tagged_query.lower():
            tagged_query = f"{tagged_query} {SHORTS_QUERY_SUFFIX}".strip()
        candidates = self.search(tagged_query, resolved_limit)
        return [
            video
            for video in candidates
            if video.is_short or 0 < video.duration.seconds <= 60
        ]

    def get_video(self, video_id: str) -> VideoDetails:
        with self._observe("video"):
            player_payload = self._client.player(video_id)
            next_payload = self._client.next(video_id)

            basic_info = parse_basic_info(video_id, player_payload)
            primary_info = parse_primary_info(next_payload)
            owner, description = parse_secondary_owner(next_payload)

            raw_results = watch_next_results(next_payload)
            watch_next = [video for video in parse_video_items(raw_results) if video.id != video_id]
            title = basic_info.title or primary_info.title.text
            related, related_source = self._related_videos(
                video_id,
                title=title,
                first_page=watch_next,
                continuation=find_continuation_token(raw_results),
            )

            return VideoDetails(
                basic_info=basic_info,
                primary_info=primary_info,
                secondary_info=VideoSecondaryInfo(
                    owner=owner,
                    description=description,
                    watch_next_feed=watch_next[: self._secondary_watch_next_limit],
                ),
                watch_next_feed=watch_next[: self._related_videos_limit],
                related_videos=related,
                related_source=related_source,
                comments_continuation=comments_entry_token(next_payload),
            )

    def get_video_summary(self, video_id: str) -> VideoDetails:
        """Player and watch-page metadata only; no related or watch-next lookups."""
        with self._observe("video_summary"):
            player_payload = self._client.player(video_id)
            next_payload = self._client.next(video_id)
            owner, description = parse_secondary_owner(next_payload)
            return VideoDetails(
                basic_info=parse_basic_info(video_id, player_payload),
                primary_info=parse_primary_info(next_payload),
                secondary_info=VideoSecondaryInfo(owner=owner, description=description),
            )

    def get_comments(self, video_id: str, limit: int | None = None) -> CommentsResponse:
        resolved_limit = max(1, limit or self._comments_limit)
        with self._observe("comments", limit=resolved_limit):
            next_payload = self._client.next(video_id)
            token = comments_entry_token(next_payload)
            comments: list[CommentItem] = []
            seen_tokens: set[str] = set()

            while token is not None and len(comments) < resolved_limit:
                if token in seen_tokens or len(seen_tokens) >= COMMENTS_MAX_CONTINUATIONS:
                    break
                seen_tokens.add(token)
                page = self._client.next(continuation=token)
                items = continuation_items(page)
                comments.extend(parse_comment_threads(page, items))
                token = find_continuation_token(items)

            return CommentsResponse(comments=comments[:resolved_limit])

    def get_channel_info(self, channel_id: str) -> ChannelInfo:
        with self._observe("channel_info"):
            home = self._localized_client.browse(channel_id)
            return parse_channel_info(channel_id, home)

    def get_channel(self, channel_id: str, page: int = 1) -> ChannelPage:
        resolved_page = max(1, page)
        with self._observe("channel", page=resolved_page):
            home = self._localized_client.browse(channel_id)
            channel = parse_channel_info(channel_id, home)
            videos_payload = self._browse_channel_tab(channel.id, home, "videos", CHANNEL_VIDEOS_PARAMS)

            items = selected_tab_items(videos_payload)
            videos = parse_video_items(items)
            token = find_continuation_token(items)
            for _ in range(1, resolved_page):
                if token is None:
                    videos = []
                    break
                continuation_page = self._localized_client.browse(continuation=token)
                items = flatten_section_items(continuation_items(continuation_page))
                videos = parse_video_items(items)
                token = find_continuation_token(items)

            if channel.subscriber_count == PRIVATE_SUBSCRIBER_COUNT and videos:
                fallback = self._subscriber_count_from_video(videos[0].id)
                if fallback:
                    channel = channel.model_copy(update={"subscriber_count": fallback})

            return ChannelPage(
                channel=channel,
                page=resolved_page,
                videos=videos[: self._channel_videos_per_page],
                has_more=token is not None and bool(videos),
            )

    def get_channel_videos(self, channel_id: str, page_token: str | None = None) -> ChannelVideosPage:
        with self._observe("channel_videos", paged=bool(page_token)):
            if page_token:
                payload = self._localized_client.browse(continuation=page_token)
                items = flatten_section_items(continuation_items(payload))
            else:
                home = self._localized_client.browse(channel_id)
                payload = self._browse_channel_tab(channel_id, home, "videos", CHANNEL_VIDEOS_PARAMS)
                items = selected_tab_items(payload)
            return ChannelVideosPage(
                channel_id=channel_id,
                videos=parse_video_items(items),
                next_page_token=find_continuation_token(items),
            )

    def get_channel_playlists(self, channel_id: str) -> ChannelPlaylists:
        with self._observe("channel_playlists"):
            home = self._localized_client.browse(channel_id)
            resolved_id = parse_channel_info(channel_id, home).id
            payload = self._browse_channel_tab(
                resolved_id, home, "playlists", CHANNEL_PLAYLISTS_PARAMS
            )
            return ChannelPlaylists(
                channel_id=resolved_id,
                playlists=parse_playlist_cards(selected_tab_items(payload)),
            )

    def get_playlist(self, playlist_id: str) -> PlaylistDetails:
        with self._observe("playlist"):
            browse_id = playlist_id if playlist_id.startswith("VL") else f"VL{playlist_id}"
            try:
                payload = self._localized_client.browse(browse_id)
            except InnerTubeRequestError as exc:
                if exc.status_code in {400, 404}:
                    raise ResourceNotFoundError("Playlist not found") from exc
                raise

            info = parse_playlist_info(playlist_id.removeprefix("VL"), payload)
            if info.id is None:
                raise ResourceNotFoundError("Playlist not found")

            items = playlist_video_items(payload)
            videos = parse_video_items(items)
            seen = {video.id for video in videos}
            token = find_continuation_token(items)
            for _ in range(PLAYLIST_MAX_CONTINUATIONS):
                if token is None:
                    break
                page = self._localized_client.browse(continuation=token)
                items = continuation_items(page)
                for video in parse_video_items(items):
                    if video.id not in seen:
                        seen.add(video.id)
                        videos.append(video)
                token = find_continuation_token(items)

            return PlaylistDetails(info=info, videos=videos)

    def get_trending(self, category: str = "now") -> TrendingFeed:
        normalized = category.strip().lower() or "now"
        if normalized not in TRENDING_CATEGORY_PARAMS:
            raise ValueError(f"Unsupported trending category: {category}")
        with self._observe("trending", category=normalized):
            payload = self._localized_client.browse(
                TRENDING_BROWSE_ID,
                params=TRENDING_CATEGORY_PARAMS[normalized],
            )
            return TrendingFeed(
                category=normalized,
                videos=parse_video_items(payload.get("contents")),
            )

    def latest_channel_upload(
        self,
        channel_id: str,
        *,
        data_api_key: str | None = None,
    ) -> LatestUpload | None:
        source = "data_api" if data_api_key else "innertube"
        with self._observe("latest_upload", source=source):
            if data_api_key:
                return self._latest_upload_from_data_api(channel_id, data_api_key)
            return self._latest_upload_from_innertube(channel_id)

    def _related_videos(
        self,
        video_id: str,
        *,
        title: str | None,
        first_page: list[VideoItem],
        continuation: str | None,
    ) -> tuple[list[VideoItem], str | None]:
        def from_continuation() -> list[VideoItem]:
            if continuation is None:
                return []
            payload = self._client.next(continuation=continuation)
            return parse_video_items(continuation_items(payload))

        def from_title_search() -> list[VideoItem]:
            if not title:
                return []
            return self.search(title, self._related_videos_limit)

        sources: tuple[tuple[str, Callable[[], list[VideoItem]]], ...] = (
            ("watch_next", lambda: first_page),
            ("watch_next_continuation", from_continuation),
            ("title_search", from_title_search),
        )
        collected: list[VideoItem] = []
        seen = {video_id}
        winning_source: str | None = None

        for source_name, load in sources:
            if len(collected) >= self._related_videos_limit:
                break
            try:
                candidates = load()
            except YouTubeServiceError as exc:
                LOGGER.warning(
                    "related videos source failed video_id=%s source=%s error=%s",
                    video_id,
                    source_name,
                    exc,
                )
                continue

            added = 0
            for candidate in candidates:
                if candidate.id in seen:
                    continue
                seen.add(candidate.id)
                collected.append(candidate)
                added += 1
                if len(collected) >= self._related_videos_limit:
                    break
            if added and winning_source is None:
                winning_source = source_name

        return collected, winning_source

    def _subscriber_count_from_video(self, video_id: str) -> str | None:
        try:
            owner, _ = parse_secondary_owner(self._localized_client.next(video_id))
        except YouTubeServiceError as exc:
            LOGGER.warning(
                "subscriber count fallback failed video_id=%s error=%s",
                video_id,
                exc,
            )
            return None
        return owner.subscriber_count

    def _browse_channel_tab(
        self,
        channel_id: str,
        home: dict[str, Any],
        suffix: str,
        fallback_params: str,
    ) -> dict[str, Any]:
        tab = find_channel_tab(home, suffix)
        if tab is not None and tab.get("selected") and tab.get("content"):
            return home
        params = fallback_params
        if tab is not None:
            endpoint_params = dig(tab, "endpoint", "browseEndpoint", "params")
            if isinstance(endpoint_params, str) and endpoint_params:
                params = endpoint_params
        return self._localized_client.browse(channel_id, params=params)

    def _latest_upload_from_innertube(self, channel_id: str) -> LatestUpload | None:
        home = self._localized_client.browse(channel_id)
        payload = self._browse_channel_tab(channel_id, home, "videos", CHANNEL_VIDEOS_PARAMS)
        videos = parse_video_items(selected_tab_items(payload))
        if not videos:
            return None
        newest = videos[0]
        published = parse_relative_time(newest.published.text, now=self._clock())
        if published is None:
            LOGGER.info(
                "latest upload has no parseable publish time channel_id=%s video_id=%s",
                channel_id,
                newest.id,
            )
            return None
        return LatestUpload(
            video_id=newest.id,
            title=newest.title.text or "",
            thumbnail_url=newest.thumbnails[0].url if newest.thumbnails else thumbnail_url(newest.id),
            published_at=published.isoformat(),
        )

    def _latest_upload_from_data_api(self, channel_id: str, api_key: str) -> LatestUpload | None:
        status_code, payload = _fetch_data_api_json(
            url=f"{self._data_api_base_url}/search",
            params={
                "part": "snippet",
                "channelId": channel_id,
                "maxResults": "1",
                "order": "date",
                "type": "video",
                "key": api_key,
            },
            timeout_seconds=self._data_api_timeout_seconds,
        )
        if status_code < 200 or status_code >= 300:
            message = as_dict(payload.get("error")).get("message") or f"HTTP {status_code}"
            raise DataApiError(f"YouTube Data API search failed: {message}", status_code=status_code)

        items = as_list(payload.get("items"))
        if not items:
            return None
        item = as_dict(items[0])
        video_id = dig(item, "id", "videoId")
        published_at = dig(item, "snippet", "publishedAt")
        if not isinstance(video_id, str) or not isinstance(published_at, str):
            return None
        thumbnails = as_dict(dig(item, "snippet", "thumbnails"))
        high_url = dig(thumbnails, "high", "url") or dig(thumbnails, "default", "url")
        return LatestUpload(
            video_id=video_id,
            title=str(dig(item, "snippet", "title") or ""),
            thumbnail_url=high_url if isinstance(high_url, str) else thumbnail_url(video_id),
            published_at=published_at,
        )

    def _resolve_search_limit(self, limit: int | None) -> int:
        if limit is None or limit <= 0:
            return self._search_default_limit
        return min(limit, self._search_max_limit)

    def _observe(self, operation: str, **attributes: Any) -> AbstractContextManager[dict[str, Any]]:
        return self._telemetry.timed(f"youtube.{operation}", **attributes)


def _fetch_data_api_json(
    *,
    url: str,
    params: dict[str, str],
    timeout_seconds: float,
) -> tuple[int, dict[str, Any]]:
    request = Request(
        f"{url}?{urlencode(params)}",
        headers={
            "accept": "application/json",
            "user-agent": "tube-clone/1.0",
        },
        method="GET",
    )

    status_code = 0
    raw_body = ""
    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            status_code = int(response.getcode() or 0)
            raw_body = response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        status_code = int(exc.code)
        raw_body = exc.read().decode("utf-8", errors="replace")
    except (URLError, TimeoutError, OSError, HTTPException) as exc:
        raise DataApiError(f"YouTube Data API request failed: {exc}") from exc

    return status_code, _parse_json_dict(raw_body)


def _parse_json_dict(raw_body: str) -> dict[str, Any]:
    if not raw_body.strip():
        return {}
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return {}
    return as_dict(parsed)


def build_shorts_query(channel_names: list[str], extra_terms: list[str] | None = None) -> str:
    """Join quoted channel names and free terms into one `|` separated Shorts query."""
    terms: list[str] = []
    for name in channel_names:
        quoted = f'"{name.strip()}"'
        if name.strip() and quoted not in terms:
            terms.append(quoted)
    for term in extra_terms or []:
        if term.strip() and term.strip() not in terms:
            terms.append(term.strip())
    if not terms:
        return f"popular trending {SHORTS_QUERY_SUFFIX}"
    return " | ".join([*terms, SHORTS_QUERY_SUFFIX])
