from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Text(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str | None = None


class Thumbnail(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    width: int | None = None
    height: int | None = None


class Author(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    name: str | None = None
    url: str | None = None
    thumbnails: list[Thumbnail] = Field(default_factory=list)
    is_verified: bool = False
    subscriber_count: str | None = None


class Duration(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str | None = None
    seconds: int = 0


class VideoItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["Video"] = "Video"
    id: str
    title: Text = Field(default_factory=Text)
    author: Author = Field(default_factory=Author)
    thumbnails: list[Thumbnail] = Field(default_factory=list)
    duration: Duration = Field(default_factory=Duration)
    view_count: Text = Field(default_factory=Text)
    short_view_count: Text = Field(default_factory=Text)
    published: Text = Field(default_factory=Text)
    description_snippet: Text = Field(default_factory=Text)
    is_live: bool = False
    is_short: bool = False
    index: int | None = None


class CommentAuthor(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    name: str | None = None
    thumbnails: list[Thumbnail] = Field(default_factory=list)


class CommentItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str | None = None
    comment_id: str | None = None
    published_time: str | None = None
    author: CommentAuthor = Field(default_factory=CommentAuthor)
    like_count: str = "0"
    reply_count: str = "0"
    is_pinned: bool = False


class CommentsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    comments: list[CommentItem] = Field(default_factory=list)


class ChannelInfo(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str | None = None
    description: str | None = None
    avatar: list[Thumbnail] = Field(default_factory=list)
    banner: list[Thumbnail] = Field(default_factory=list)
    subscriber_count: str = "非公開"
    video_count: int = 0
    handle: str | None = None


class ChannelPage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channel: ChannelInfo
    page: int
    videos: list[VideoItem] = Field(default_factory=list)
    has_more: bool = False


class PlaylistCard(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["Playlist"] = "Playlist"
    id: str
    title: Text = Field(default_factory=Text)
    thumbnails: list[Thumbnail] = Field(default_factory=list)
    video_count: Text = Field(default_factory=Text)
    first_video_id: str | None = None


class ChannelPlaylists(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channel_id: str
    playlists: list[PlaylistCard] = Field(default_factory=list)


class PlaylistInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    title: str | None = None
    description: str | None = None
    author: Author = Field(default_factory=Author)
    total_items: str | None = None
    views: str | None = None
    last_updated: str | None = None
    thumbnails: list[Thumbnail] = Field(default_factory=list)


class PlaylistDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    info: PlaylistInfo
    videos: list[VideoItem] = Field(default_factory=list)


class VideoBasicInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    title: str | None = None
    channel_id: str | None = None
    author: str | None = None
    duration: int = 0
    short_description: str | None = None
    thumbnail: list[Thumbnail] = Field(default_factory=list)
    view_count: int | None = None
    keywords: list[str] = Field(default_factory=list)
    category: str | None = None
    publish_date: str | None = None
    is_live_content: bool = False
    is_family_safe: bool = True
    playability_status: str | None = None


class VideoPrimaryInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Text = Field(default_factory=Text)
    view_count: Text = Field(default_factory=Text)
    short_view_count: Text = Field(default_factory=Text)
    published: Text = Field(default_factory=Text)
    relative_date: Text = Field(default_factory=Text)
    like_count: str | None = None


class VideoSecondaryInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    owner: Author = Field(default_factory=Author)
    description: Text = Field(default_factory=Text)
    watch_next_feed: list[VideoItem] = Field(default_factory=list)


class VideoDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    basic_info: VideoBasicInfo
    primary_info: VideoPrimaryInfo = Field(default_factory=VideoPrimaryInfo)
    secondary_info: VideoSecondaryInfo = Field(default_factory=VideoSecondaryInfo)
    watch_next_feed: list[VideoItem] = Field(default_factory=list)
    related_videos: list[VideoItem] = Field(default_factory=list)
    related_source: str | None = None
    comments_continuation: str | None = None


class TrendingFeed(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str
    videos: list[VideoItem] = Field(default_factory=list)


class VideoCard(BaseModel):
    """Display-ready video shape used by the home, search and channel grids."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    id: str
    thumbnail_url: str
    duration: str = ""
    iso_duration: str = ""
    title: str
    channel_name: str
    channel_id: str = ""
    channel_avatar_url: str = ""
    views: str
    uploaded_at: str = ""
    description_snippet: str = ""


class ChannelVideosPage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channel_id: str
    videos: list[VideoItem] = Field(default_factory=list)
    next_page_token: str | None = None


class LatestUpload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    video_id: str
    title: str
    thumbnail_url: str
    published_at: str
