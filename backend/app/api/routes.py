from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.app.dependencies import get_library_service, get_youtube_service
from backend.app.models.youtube_contracts import (
    ChannelInfo,
    ChannelPage,
    ChannelPlaylists,
    CommentsResponse,
    PlaylistDetails,
    TrendingFeed,
    VideoCard,
    VideoDetails,
    VideoItem,
)
from backend.app.services.formatting import to_video_card
from backend.app.services.innertube_client import ResourceNotFoundError
from backend.app.services.library_service import LibraryService
from backend.app.services.youtube_service import YouTubeService, build_shorts_query

LOGGER = logging.getLogger("tube_clone.api")

PROXY_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=60"
ERROR_CACHE_CONTROL = "no-cache"
INVALID_ACTION_MESSAGE = 'Invalid or missing "action" parameter.'

router = APIRouter(prefix="/api")


class MissingParameterError(ValueError):
    pass


def _default_video_cards() -> list[VideoCard]:
    return []


class ChannelCardsPage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channel: ChannelInfo
    page: int
    videos: list[VideoCard] = Field(default_factory=_default_video_cards)
    has_more: bool = False


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers={"Cache-Control": ERROR_CACHE_CONTROL},
    )


def _proxy(operation: str, call: Callable[[], Any]) -> JSONResponse:
    """Run a scraping call and shape its result or failure into a JSON response."""
    context_tokens = bind_contextvars(youtube_operation=operation)
    try:
        payload = call()
    except MissingParameterError as exc:
        return error_response(400, str(exc))
    except ResourceNotFoundError as exc:
        return error_response(404, str(exc))
    except Exception as exc:
        LOGGER.exception("youtube proxy request failed operation=%s", operation)
        return error_response(500, str(exc))
    finally:
        reset_contextvars(**context_tokens)
    return JSONResponse(
        content=jsonable_encoder(payload),
        headers={"Cache-Control": PROXY_CACHE_CONTROL},
    )


def _require(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise MissingParameterError(message)
    return value.strip()


_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorBody},
    500: {"model": ErrorBody},
}


@router.get(
    "/search",
    response_model=list[VideoItem],
    responses=_ERROR_RESPONSES,
    tags=["youtube"],
    operation_id="youtube_search",
)
def search_videos(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    q: str | None = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> JSONResponse:
    return _proxy(
        "search",
        lambda: youtube.search(_require(q, "Missing search query"), limit),
    )


@router.get(
    "/video",
    response_model=VideoDetails,
    responses=_ERROR_RESPONSES,
    tags=["youtube"],
    operation_id="youtube_video",
)
def get_video(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    resource_id: Annotated[str | None, Query(alias="id")] = None,
) -> JSONResponse:
    return _proxy(
        "video",
        lambda: youtube.get_video(_require(resource_id, "Missing video id")),
    )


@router.get(
    "/comments",
    response_model=CommentsResponse,
    responses=_ERROR_RESPONSES,
    tags=["youtube"],
    operation_id="youtube_comments",
)
def get_comments(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    resource_id: Annotated[str | None, Query(alias="id")] = None,
) -> JSONResponse:
    return _proxy(
        "comments",
        lambda: youtube.get_comments(_require(resource_id, "Missing video id")),
    )


@router.get(
    "/channel",
    response_model=ChannelPage,
    responses=_ERROR_RESPONSES,
    tags=["youtube"],
    operation_id="youtube_channel",
)
def get_channel(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    resource_id: Annotated[str | None, Query(alias="id")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
) -> JSONResponse:
    return _proxy(
        "channel",
        lambda: youtube.get_channel(_require(resource_id, "Missing channel id"), page),
    )


@router.get(
    "/channel-playlists",
    response_model=ChannelPlaylists,
    responses=_ERROR_RESPONSES,
    tags=["youtube"],
    operation_id="youtube_channel_playlists",
)
def get_channel_playlists(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    resource_id: Annotated[str | None, Query(alias="id")] = None,
) -> JSONResponse:
    return _proxy(
        "channel_playlists",
        lambda: youtube.get_channel_playlists(_require(resource_id, "Missing channel id")),
    )


@router.get(
    "/playlist",
    response_model=PlaylistDetails,
    responses={**_ERROR_RESPONSES, 404: {"model": ErrorBody}},
    tags=["youtube"],
    operation_id="youtube_playlist",
)
def get_playlist(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    resource_id: Annotated[str | None, Query(alias="id")] = None,
) -> JSONResponse:
    return _proxy(
        "playlist",
        lambda: youtube.get_playlist(_require(resource_id, "Missing playlist id")),
    )


@router.get(
    "/fvideo",
    response_model=TrendingFeed,
    responses=_ERROR_RESPONSES,
    tags=["youtube"],
    operation_id="youtube_music_trending",
)
def get_music_trending(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
) -> JSONResponse:
    return _proxy("trending", lambda: youtube.get_trending("music"))


@router.get(
    "/shorts",
    response_model=list[VideoItem],
    responses=_ERROR_RESPONSES,
    tags=["youtube"],
    operation_id="youtube_shorts",
)
def get_shorts(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    library: Annotated[LibraryService, Depends(get_library_service)],
    q: str | None = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> JSONResponse:
    def _load() -> list[VideoItem]:
        if q and q.strip():
            query = build_shorts_query([], [q])
        else:
            query = build_shorts_query([channel.name for channel in library.list_subscriptions()])
        return youtube.search_shorts(query, limit)

    return _proxy("shorts", _load)


@router.get(
    "/youtube",
    responses=_ERROR_RESPONSES,
    tags=["youtube"],
    operation_id="youtube_action",
)
def youtube_action(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    action: str | None = None,
    q: str | None = None,
    resource_id: Annotated[str | None, Query(alias="id")] = None,
    page_token: Annotated[str | None, Query(alias="pageToken")] = None,
    category: str | None = None,
) -> JSONResponse:
    def _required(name: str, value: str | None) -> str:
        if value is None or not value.strip():
            raise ValueError(f'Parameter "{name}" is required for {action}.')
        return value.strip()

    def _dispatch() -> Any:
        if action == "search":
            if not q or not q.strip():
                raise ValueError('Query parameter "q" is required for search.')
            return youtube.search(q.strip())
        if action == "videoDetails":
            return youtube.get_video(_required("id", resource_id))
        if action == "comments":
            return youtube.get_comments(_required("id", resource_id))
        if action == "channelDetails":
            return youtube.get_channel_info(_required("id", resource_id))
        if action == "channelVideos":
            return youtube.get_channel_videos(_required("id", resource_id), page_token or None)
        if action == "channelPlaylists":
            return youtube.get_channel_playlists(_required("id", resource_id))
        if action == "playlistDetails":
            return youtube.get_playlist(_required("id", resource_id))
        if action == "trending":
            return youtube.get_trending(category or "now")
        raise ValueError(INVALID_ACTION_MESSAGE)

    return _proxy(f"action.{action or 'missing'}", _dispatch)


@router.get(
    "/cards/search",
    response_model=list[VideoCard],
    responses=_ERROR_RESPONSES,
    tags=["cards"],
    operation_id="cards_search",
)
def search_video_cards(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    q: str | None = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> JSONResponse:
    return _proxy(
        "cards.search",
        lambda: [
            to_video_card(item)
            for item in youtube.search(_require(q, "Missing search query"), limit)
        ],
    )


@router.get(
    "/cards/fvideo",
    response_model=list[VideoCard],
    responses=_ERROR_RESPONSES,
    tags=["cards"],
    operation_id="cards_music_trending",
)
def music_trending_cards(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
) -> JSONResponse:
    return _proxy(
        "cards.trending",
        lambda: [to_video_card(item) for item in youtube.get_trending("music").videos],
    )


@router.get(
    "/cards/channel",
    response_model=ChannelCardsPage,
    responses=_ERROR_RESPONSES,
    tags=["cards"],
    operation_id="cards_channel",
)
def channel_cards(
    youtube: Annotated[YouTubeService, Depends(get_youtube_service)],
    resource_id: Annotated[str | None, Query(alias="id")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
) -> JSONResponse:
    def _load() -> ChannelCardsPage:
        channel_page = youtube.get_channel(_require(resource_id, "Missing channel id"), page)
        return ChannelCardsPage(
            channel=channel_page.channel,
            page=channel_page.page,
            videos=[to_video_card(item) for item in channel_page.videos],
            has_more=channel_page.has_more,
        )

    return _proxy("cards.channel", _load)
