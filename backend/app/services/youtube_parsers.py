from __future__ import annotations

from collections.abc import Iterator
from typing import Any, cast

from backend.app.models.youtube_contracts import (
    Author,
    ChannelInfo,
    CommentAuthor,
    CommentItem,
    Duration,
    PlaylistCard,
    PlaylistInfo,
    Text,
    Thumbnail,
    VideoBasicInfo,
    VideoItem,
    VideoPrimaryInfo,
)
from backend.app.services.formatting import (
    PRIVATE_SUBSCRIBER_COUNT,
    parse_count_text,
    parse_duration_text,
)

VIDEO_RENDERER_KEYS: tuple[str, ...] = (
    "videoRenderer",
    "compactVideoRenderer",
    "gridVideoRenderer",
    "playlistVideoRenderer",
    "reelItemRenderer",
    "lockupViewModel",
)
_VERIFIED_BADGE_STYLES = frozenset(
    {"BADGE_STYLE_TYPE_VERIFIED", "BADGE_STYLE_TYPE_VERIFIED_ARTIST"}
)


def text_of(node: Any) -> str | None:
    """Flatten the InnerTube text shapes (`simpleText`, `runs`, `content`)."""
    if isinstance(node, str):
        return node.strip() or None
    payload = as_dict(node)
    if not payload:
        return None
    simple = payload.get("simpleText")
    if isinstance(simple, str):
        return simple.strip() or None
    runs = as_list(payload.get("runs"))
    if runs:
        joined = "".join(str(as_dict(run).get("text", "")) for run in runs)
        return joined.strip() or None
    content = payload.get("content")
    if isinstance(content, str):
        return content.strip() or None
    return None


def dig(node: Any, *path: str | int) -> Any:
    current = node
    for key in path:
        if isinstance(key, int):
            items = as_list(current)
            if key >= len(items) or key < -len(items):
                return None
            current = items[key]
        else:
            current = as_dict(current).get(key)
        if current is None:
            return None
    return current


def walk_renderers(node: Any, keys: tuple[str, ...]) -> Iterator[tuple[str, dict[str, Any]]]:
    """Depth-first search yielding `(key, renderer)` without descending into matches."""
    stack: list[Any] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            current_dict = cast(dict[str, Any], current)
            matched = False
            for key in keys:
                if key in current_dict and isinstance(current_dict[key], dict):
                    yield key, cast(dict[str, Any], current_dict[key])
                    matched = True
            if matched:
                continue
            stack.extend(reversed(list(current_dict.values())))
        elif isinstance(current, list):
            stack.extend(reversed(cast(list[Any], current)))


def find_continuation_token(items: list[Any]) -> str | None:
    """Token of the trailing `continuationItemRenderer` among sibling items."""
    for item in reversed(items):
        renderer = as_dict(as_dict(item).get("continuationItemRenderer"))
        if not renderer:
            continue
        token = dig(renderer, "continuationEndpoint", "continuationCommand", "token")
        if isinstance(token, str):
            return token
        for _, command in walk_renderers(renderer, ("continuationCommand",)):
            nested = command.get("token")
            if isinstance(nested, str):
                return nested
    return None


def continuation_items(payload: dict[str, Any]) -> list[Any]:
    """Items carried by a continuation response, whatever action wraps them."""
    items: list[Any] = []
    for key in ("onResponseReceivedCommands", "onResponseReceivedActions", "onResponseReceivedEndpoints"):
        for action in as_list(payload.get(key)):
            action_dict = as_dict(action)
            for wrapper in ("appendContinuationItemsAction", "reloadContinuationItemsCommand"):
                items.extend(as_list(dig(action_dict, wrapper, "continuationItems")))
    return items


def flatten_section_items(items: list[Any]) -> list[Any]:
    """Unwrap `itemSectionRenderer` / `richItemRenderer` layers into plain items."""
    flattened: list[Any] = []
    for item in items:
        item_dict = as_dict(item)
        if "itemSectionRenderer" in item_dict:
            flattened.extend(
                flatten_section_items(as_list(dig(item_dict, "itemSectionRenderer", "contents")))
            )
        elif "richItemRenderer" in item_dict:
            flattened.append(as_dict(dig(item_dict, "richItemRenderer", "content")))
        else:
            flattened.append(item_dict)
    return flattened


def parse_video_items(node: Any) -> list[VideoItem]:
    videos: list[VideoItem] = []
    seen: set[str] = set()
    for key, renderer in walk_renderers(node, VIDEO_RENDERER_KEYS):
        video = parse_video_renderer(key, renderer)
        if video is None or video.id in seen:
            continue
        seen.add(video.id)
        videos.append(video)
    return videos


def parse_video_renderer(key: str, renderer: dict[str, Any]) -> VideoItem | None:
    if key == "lockupViewModel":
        return _parse_lockup_video(renderer)
    if key == "reelItemRenderer":
        return _parse_reel_item(renderer)

    video_id = renderer.get("videoId")
    if not isinstance(video_id, str) or not video_id:
        return None

    length_text = text_of(renderer.get("lengthText"))
    length_seconds = _coerce_int(renderer.get("lengthSeconds"))
    if length_seconds is None:
        length_seconds = parse_duration_text(length_text)

    published = text_of(renderer.get("publishedTimeText"))
    view_count = text_of(renderer.get("viewCountText"))
    if key == "playlistVideoRenderer":
        video_info = _split_video_info(text_of(renderer.get("videoInfo")))
        view_count = view_count or video_info[0]
        published = published or video_info[1]

    return VideoItem(
        id=video_id,
        title=Text(text=text_of(renderer.get("title")) or text_of(renderer.get("headline"))),
        author=_parse_byline_author(renderer),
        thumbnails=parse_thumbnails(renderer.get("thumbnail")),
        duration=Duration(text=length_text, seconds=length_seconds),
        view_count=Text(text=view_count),
        short_view_count=Text(text=text_of(renderer.get("shortViewCountText"))),
        published=Text(text=published),
        description_snippet=Text(text=_description_snippet(renderer)),
        is_live=_is_live(renderer),
        is_short=_is_short(renderer, length_seconds),
        index=_coerce_int(text_of(renderer.get("index"))),
    )


def parse_thumbnails(node: Any) -> list[Thumbnail]:
    thumbnails: list[Thumbnail] = []
    payload = as_dict(node)
    raw_items = as_list(payload.get("thumbnails")) or as_list(payload.get("sources"))
    if not raw_items and isinstance(node, list):
        raw_items = cast(list[Any], node)
    for raw_item in raw_items:
        item = as_dict(raw_item)
        url = item.get("url")
        if not isinstance(url, str) or not url:
            continue
        if url.startswith("//"):
            url = f"https:{url}"
        thumbnails.append(
            Thumbnail(
                url=url,
                width=_coerce_int(item.get("width")),
                height=_coerce_int(item.get("height")),
            )
        )
    # Largest first, as the scraping library orders them.
    thumbnails.sort(key=lambda thumb: thumb.width or 0, reverse=True)
    return thumbnails


def parse_comment_threads(payload: dict[str, Any], items: list[Any]) -> list[CommentItem]:
    entities = _comment_entities(payload)
    comments: list[CommentItem] = []
    for item in items:
        thread = as_dict(as_dict(item).get("commentThreadRenderer"))
        if not thread:
            continue
        comment = _parse_comment_thread(thread, entities)
        if comment is not None:
            comments.append(comment)
    return comments


def comments_entry_token(next_payload: dict[str, Any]) -> str | None:
    contents = as_list(
        dig(next_payload, "contents", "twoColumnWatchNextResults", "results", "results", "contents")
    )
    for content in contents:
        section = as_dict(as_dict(content).get("itemSectionRenderer"))
        if section.get("sectionIdentifier") != "comment-item-section":
            continue
        token = find_continuation_token(as_list(section.get("contents")))
        if token is not None:
            return token
    for _, section in walk_renderers(next_payload, ("itemSectionRenderer",)):
        if section.get("targetId") == "comments-section":
            return find_continuation_token(as_list(section.get("contents")))
    return None


def parse_basic_info(video_id: str, player_payload: dict[str, Any]) -> VideoBasicInfo:
    details = as_dict(player_payload.get("videoDetails"))
    microformat = as_dict(dig(player_payload, "microformat", "playerMicroformatRenderer"))
    return VideoBasicInfo(
        id=str(details.get("videoId") or video_id),
        title=text_of(details.get("title")) or text_of(microformat.get("title")),
        channel_id=_coerce_str(details.get("channelId")),
        author=_coerce_str(details.get("author")),
        duration=_coerce_int(details.get("lengthSeconds")) or 0,
        short_description=_coerce_str(details.get("shortDescription")),
        thumbnail=parse_thumbnails(details.get("thumbnail")),
        view_count=_coerce_int(details.get("viewCount")),
        keywords=[str(keyword) for keyword in as_list(details.get("keywords"))],
        category=_coerce_str(microformat.get("category")),
        publish_date=_coerce_str(microformat.get("publishDate")),
        is_live_content=bool(details.get("isLiveContent", False)),
        is_family_safe=bool(microformat.get("isFamilySafe", True)),
        playability_status=_coerce_str(dig(player_payload, "playabilityStatus", "status")),
    )


def parse_primary_info(next_payload: dict[str, Any]) -> VideoPrimaryInfo:
    renderer: dict[str, Any] = {}
    for _, found in walk_renderers(next_payload.get("contents"), ("videoPrimaryInfoRenderer",)):
        renderer = found
        break
    view_count = as_dict(dig(renderer, "viewCount", "videoViewCountRenderer"))
    return VideoPrimaryInfo(
        title=Text(text=text_of(renderer.get("title"))),
        view_count=Text(text=text_of(view_count.get("viewCount"))),
        short_view_count=Text(text=text_of(view_count.get("shortViewCount"))),
        published=Text(text=text_of(renderer.get("dateText"))),
        relative_date=Text(text=text_of(renderer.get("relativeDateText"))),
        like_count=_like_count(renderer),
    )


def parse_secondary_owner(next_payload: dict[str, Any]) -> tuple[Author, Text]:
    renderer: dict[str, Any] = {}
    for _, found in walk_renderers(next_payload.get("contents"), ("videoSecondaryInfoRenderer",)):
        renderer = found
        break
    owner = as_dict(dig(renderer, "owner", "videoOwnerRenderer"))
    owner_title = as_dict(owner.get("title"))
    author = Author(
        id=_coerce_str(dig(owner_title, "runs", 0, "navigationEndpoint", "browseEndpoint", "browseId")),
        name=text_of(owner_title),
        url=_coerce_str(
            dig(owner_title, "runs", 0, "navigationEndpoint", "browseEndpoint", "canonicalBaseUrl")
        ),
        thumbnails=parse_thumbnails(owner.get("thumbnail")),
        is_verified=_has_verified_badge(owner.get("badges")),
        subscriber_count=text_of(owner.get("subscriberCountText")),
    )
    description = text_of(renderer.get("attributedDescription")) or text_of(
        renderer.get("description")
    )
    return author, Text(text=description)


def watch_next_results(next_payload: dict[str, Any]) -> list[Any]:
    results = as_list(
        dig(
            next_payload,
            "contents",
            "twoColumnWatchNextResults",
            "secondaryResults",
            "secondaryResults",
            "results",
        )
    )
    return flatten_section_items(results)


def parse_channel_info(channel_id: str, payload: dict[str, Any]) -> ChannelInfo:
    metadata = as_dict(dig(payload, "metadata", "channelMetadataRenderer"))
    header = as_dict(payload.get("header"))
    c4_header = as_dict(header.get("c4TabbedHeaderRenderer"))
    page_header = as_dict(dig(header, "pageHeaderRenderer", "content", "pageHeaderViewModel"))

    avatar = parse_thumbnails(metadata.get("avatar")) or parse_thumbnails(c4_header.get("avatar"))
    if not avatar:
        avatar = parse_thumbnails(
            dig(page_header, "image", "decoratedAvatarViewModel", "avatar", "avatarViewModel", "image")
        )
    banner = parse_thumbnails(c4_header.get("banner")) or parse_thumbnails(
        dig(page_header, "banner", "imageBannerViewModel", "image")
    )

    metadata_parts = _page_header_metadata_parts(page_header)
    subscriber_text = text_of(c4_header.get("subscriberCountText")) or _first_part_matching(
        metadata_parts, ("subscriber", "登録者")
    )
    video_count_text = text_of(c4_header.get("videosCountText")) or _first_part_matching(
        metadata_parts, ("video", "本の動画", "動画")
    )
    handle = _first_part_matching(metadata_parts, ("@",)) or text_of(
        c4_header.get("channelHandleText")
    )

    return ChannelInfo(
        id=_coerce_str(metadata.get("externalId")) or _coerce_str(c4_header.get("channelId")) or channel_id,
        name=_coerce_str(metadata.get("title"))
        or text_of(c4_header.get("title"))
        or text_of(dig(page_header, "title", "dynamicTextViewModel", "text")),
        description=_coerce_str(metadata.get("description")),
        avatar=avatar,
        banner=banner,
        subscriber_count=subscriber_text or PRIVATE_SUBSCRIBER_COUNT,
        video_count=parse_count_text(video_count_text) or 0,
        handle=handle,
    )


def channel_tabs(payload: dict[str, Any]) -> list[dict[str, Any]]:
    tabs = as_list(dig(payload, "contents", "twoColumnBrowseResultsRenderer", "tabs"))
    return [as_dict(as_dict(tab).get("tabRenderer")) for tab in tabs if as_dict(tab).get("tabRenderer")]


def find_channel_tab(payload: dict[str, Any], suffix: str) -> dict[str, Any] | None:
    for tab in channel_tabs(payload):
        url = dig(tab, "endpoint", "commandMetadata", "webCommandMetadata", "url")
        if isinstance(url, str) and url.rstrip("/").endswith(f"/{suffix}"):
            return tab
    return None


def selected_tab_items(payload: dict[str, Any]) -> list[Any]:
    for tab in channel_tabs(payload):
        if not tab.get("selected"):
            continue
        content = as_dict(tab.get("content"))
        grid_items = as_list(dig(content, "richGridRenderer", "contents"))
        if grid_items:
            return flatten_section_items(grid_items)
        sections = as_list(dig(content, "sectionListRenderer", "contents"))
        return flatten_section_items(sections)
    return []


def parse_playlist_cards(node: Any) -> list[PlaylistCard]:
    cards: list[PlaylistCard] = []
    seen: set[str] = set()
    for key, renderer in walk_renderers(
        node, ("gridPlaylistRenderer", "playlistRenderer", "lockupViewModel")
    ):
        card = _parse_playlist_card(key, renderer)
        if card is None or card.id in seen:
            continue
        seen.add(card.id)
        cards.append(card)
    return cards


def parse_playlist_info(playlist_id: str, payload: dict[str, Any]) -> PlaylistInfo:
    header = as_dict(dig(payload, "header", "playlistHeaderRenderer"))
    sidebar_items = as_list(dig(payload, "sidebar", "playlistSidebarRenderer", "items"))
    primary = as_dict(as_dict(sidebar_items[0] if sidebar_items else {}).get("playlistSidebarPrimaryInfoRenderer"))
    secondary = as_dict(
        dig(sidebar_items[1] if len(sidebar_items) > 1 else {}, "playlistSidebarSecondaryInfoRenderer")
    )
    metadata = as_dict(dig(payload, "metadata", "playlistMetadataRenderer"))
    page_header = as_dict(dig(payload, "header", "pageHeaderRenderer"))

    stats = [text_of(stat) for stat in as_list(primary.get("stats"))]
    resolved_id = _coerce_str(header.get("playlistId"))
    if resolved_id is None and (primary or page_header):
        resolved_id = playlist_id

    owner = as_dict(dig(secondary, "videoOwner", "videoOwnerRenderer"))
    owner_runs_source = owner.get("title") or header.get("ownerText")
    author = Author(
        id=_coerce_str(
            dig(owner_runs_source, "runs", 0, "navigationEndpoint", "browseEndpoint", "browseId")
        ),
        name=text_of(owner_runs_source),
        thumbnails=parse_thumbnails(owner.get("thumbnail")),
    )

    return PlaylistInfo(
        id=resolved_id,
        title=_coerce_str(metadata.get("title"))
        or text_of(header.get("title"))
        or text_of(primary.get("title"))
        or _coerce_str(page_header.get("pageTitle")),
        description=_coerce_str(metadata.get("description"))
        or text_of(header.get("descriptionText"))
        or text_of(primary.get("description")),
        author=author,
        total_items=text_of(header.get("numVideosText")) or _list_get(stats, 0),
        views=text_of(header.get("viewCountText")) or _list_get(stats, 1),
        last_updated=_list_get(stats, 2) or text_of(header.get("byline")),
        thumbnails=parse_thumbnails(
            dig(primary, "thumbnailRenderer", "playlistVideoThumbnailRenderer", "thumbnail")
        ),
    )


def playlist_video_items(payload: dict[str, Any]) -> list[Any]:
    for _, renderer in walk_renderers(payload.get("contents"), ("playlistVideoListRenderer",)):
        return as_list(renderer.get("contents"))
    return []


def as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        return {key: item for key, item in raw_dict.items() if isinstance(key, str)}
    return {}


def as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(cast(list[Any], value))
    return []


def _parse_byline_author(renderer: dict[str, Any]) -> Author:
    byline = (
        as_dict(renderer.get("ownerText"))
        or as_dict(renderer.get("longBylineText"))
        or as_dict(renderer.get("shortBylineText"))
    )
    browse = as_dict(dig(byline, "runs", 0, "navigationEndpoint", "browseEndpoint"))
    avatar_source = dig(
        renderer,
        "channelThumbnailSupportedRenderers",
        "channelThumbnailWithLinkRenderer",
        "thumbnail",
    ) or renderer.get("channelThumbnail")
    return Author(
        id=_coerce_str(browse.get("browseId")),
        name=text_of(byline),
        url=_coerce_str(browse.get("canonicalBaseUrl")),
        thumbnails=parse_thumbnails(avatar_source),
        is_verified=_has_verified_badge(renderer.get("ownerBadges")),
    )


def _parse_lockup_video(renderer: dict[str, Any]) -> VideoItem | None:
    content_type = renderer.get("contentType")
    video_id = renderer.get("contentId")
    if content_type not in (None, "LOCKUP_CONTENT_TYPE_VIDEO") or not isinstance(video_id, str):
        return None

    metadata = as_dict(dig(renderer, "metadata", "lockupMetadataViewModel"))
    rows = as_list(dig(metadata, "metadata", "contentMetadataViewModel", "metadataRows"))
    row_texts = [
        [text_of(dig(part, "text")) for part in as_list(as_dict(row).get("metadataParts"))]
        for row in rows
    ]
    channel_name = _list_get(row_texts[0], 0) if row_texts else None
    detail_row = row_texts[1] if len(row_texts) > 1 else []

    duration_text: str | None = None
    for _, badge in walk_renderers(renderer.get("contentImage"), ("thumbnailBadgeViewModel",)):
        duration_text = _coerce_str(badge.get("text"))
        if duration_text:
            break

    avatar_model = dig(metadata, "image", "decoratedAvatarViewModel")
    channel_id = _coerce_str(
        dig(
            avatar_model,
            "rendererContext",
            "commandContext",
            "onTap",
            "innertubeCommand",
            "browseEndpoint",
            "browseId",
        )
    )
    seconds = parse_duration_text(duration_text)
    return VideoItem(
        id=video_id,
        title=Text(text=text_of(metadata.get("title"))),
        author=Author(
            id=channel_id,
            name=channel_name,
            thumbnails=parse_thumbnails(dig(avatar_model, "avatar", "avatarViewModel", "image")),
        ),
        thumbnails=parse_thumbnails(dig(renderer, "contentImage", "thumbnailViewModel", "image")),
        duration=Duration(text=duration_text, seconds=seconds),
        view_count=Text(text=_list_get(detail_row, 0)),
        published=Text(text=_list_get(detail_row, 1)),
        is_live=duration_text is not None and duration_text.upper() in {"LIVE", "ライブ"},
    )


def _parse_reel_item(renderer: dict[str, Any]) -> VideoItem | None:
    video_id = renderer.get("videoId")
    if not isinstance(video_id, str) or not video_id:
        return None
    return VideoItem(
        id=video_id,
        title=Text(text=text_of(renderer.get("headline"))),
        thumbnails=parse_thumbnails(renderer.get("thumbnail")),
        view_count=Text(text=text_of(renderer.get("viewCountText"))),
        is_short=True,
    )


def _parse_playlist_card(key: str, renderer: dict[str, Any]) -> PlaylistCard | None:
    if key == "lockupViewModel":
        if renderer.get("contentType") != "LOCKUP_CONTENT_TYPE_PLAYLIST":
            return None
        playlist_id = _coerce_str(renderer.get("contentId"))
        if playlist_id is None:
            return None
        count_text: str | None = None
        for _, badge in walk_renderers(renderer.get("contentImage"), ("thumbnailBadgeViewModel",)):
            count_text = _coerce_str(badge.get("text"))
            if count_text:
                break
        thumbnails = parse_thumbnails(
            dig(renderer, "contentImage", "collectionThumbnailViewModel", "primaryThumbnail",
                "thumbnailViewModel", "image")
        )
        return PlaylistCard(
            id=playlist_id,
            title=Text(text=text_of(dig(renderer, "metadata", "lockupMetadataViewModel", "title"))),
            thumbnails=thumbnails,
            video_count=Text(text=count_text),
        )

    playlist_id = _coerce_str(renderer.get("playlistId"))
    if playlist_id is None:
        return None
    thumbnail_source = renderer.get("thumbnail") or dig(renderer, "thumbnails", 0)
    first_video_id = _coerce_str(dig(renderer, "navigationEndpoint", "watchEndpoint", "videoId"))
    return PlaylistCard(
        id=playlist_id,
        title=Text(text=text_of(renderer.get("title"))),
        thumbnails=parse_thumbnails(thumbnail_source),
        video_count=Text(
            text=text_of(renderer.get("videoCountShortText"))
            or text_of(renderer.get("videoCountText"))
            or _coerce_str(renderer.get("videoCount"))
        ),
        first_video_id=first_video_id,
    )


def _parse_comment_thread(
    thread: dict[str, Any],
    entities: dict[str, dict[str, Any]],
) -> CommentItem | None:
    legacy = as_dict(dig(thread, "comment", "commentRenderer"))
    if legacy:
        author_endpoint = as_dict(dig(legacy, "authorEndpoint", "browseEndpoint"))
        return CommentItem(
            text=text_of(legacy.get("contentText")),
            comment_id=_coerce_str(legacy.get("commentId")),
            published_time=text_of(legacy.get("publishedTimeText")),
            author=CommentAuthor(
                id=_coerce_str(author_endpoint.get("browseId")),
                name=text_of(legacy.get("authorText")),
                thumbnails=parse_thumbnails(legacy.get("authorThumbnail")),
            ),
            like_count=text_of(legacy.get("voteCount")) or "0",
            reply_count=str(_coerce_int(legacy.get("replyCount")) or 0),
            is_pinned=bool(legacy.get("pinnedCommentBadge")),
        )

    view_model = as_dict(dig(thread, "commentViewModel", "commentViewModel"))
    if not view_model:
        return None
    entity = entities.get(str(view_model.get("commentKey") or "")) or entities.get(
        str(view_model.get("commentId") or ""), {}
    )
    properties = as_dict(entity.get("properties"))
    author = as_dict(entity.get("author"))
    toolbar = as_dict(entity.get("toolbar"))
    avatar_url = _coerce_str(author.get("avatarThumbnailUrl"))
    return CommentItem(
        text=text_of(properties.get("content")),
        comment_id=_coerce_str(properties.get("commentId")) or _coerce_str(view_model.get("commentId")),
        published_time=_coerce_str(properties.get("publishedTime")),
        author=CommentAuthor(
            id=_coerce_str(author.get("channelId")),
            name=_coerce_str(author.get("displayName")),
            thumbnails=[Thumbnail(url=avatar_url)] if avatar_url else [],
        ),
        like_count=_coerce_str(toolbar.get("likeCountNotliked")) or "0",
        reply_count=_coerce_str(toolbar.get("replyCount")) or "0",
        is_pinned=bool(view_model.get("pinnedText")),
    )


def _comment_entities(payload: dict[str, Any]) -> dict[str, dict[str, Any]]:
    entities: dict[str, dict[str, Any]] = {}
    mutations = as_list(dig(payload, "frameworkUpdates", "entityBatchUpdate", "mutations"))
    for mutation in mutations:
        mutation_dict = as_dict(mutation)
        entity = as_dict(dig(mutation_dict, "payload", "commentEntityPayload"))
        if not entity:
            continue
        entity_key = _coerce_str(mutation_dict.get("entityKey")) or _coerce_str(entity.get("key"))
        if entity_key is not None:
            entities[entity_key] = entity
        comment_id = _coerce_str(dig(entity, "properties", "commentId"))
        if comment_id is not None:
            entities.setdefault(comment_id, entity)
    return entities


def _like_count(primary_renderer: dict[str, Any]) -> str | None:
    for _, model in walk_renderers(primary_renderer.get("videoActions"), ("likeButtonViewModel",)):
        for _, button in walk_renderers(model, ("buttonViewModel",)):
            title = _coerce_str(button.get("title"))
            if title:
                return title
    for _, toggle in walk_renderers(primary_renderer.get("videoActions"), ("toggleButtonRenderer",)):
        if toggle.get("targetId") == "watch-like":
            return text_of(toggle.get("defaultText"))
    return None


def _page_header_metadata_parts(page_header: dict[str, Any]) -> list[str]:
    rows = as_list(dig(page_header, "metadata", "contentMetadataViewModel", "metadataRows"))
    parts: list[str] = []
    for row in rows:
        for part in as_list(as_dict(row).get("metadataParts")):
            text = text_of(as_dict(part).get("text"))
            if text:
                parts.append(text)
    return parts


def _first_part_matching(parts: list[str], markers: tuple[str, ...]) -> str | None:
    for part in parts:
        lowered = part.lower()
        if any(marker in lowered for marker in markers):
            return part
    return None


def _description_snippet(renderer: dict[str, Any]) -> str | None:
    snippet = text_of(renderer.get("descriptionSnippet"))
    if snippet:
        return snippet
    return text_of(dig(renderer, "detailedMetadataSnippets", 0, "snippetText"))


def _split_video_info(raw_value: str | None) -> tuple[str | None, str | None]:
    if not raw_value:
        return None, None
    parts = [part.strip() for part in raw_value.split("•") if part.strip()]
    return _list_get(parts, 0), _list_get(parts, 1)


def _is_live(renderer: dict[str, Any]) -> bool:
    for badge in as_list(renderer.get("badges")):
        label = str(dig(badge, "metadataBadgeRenderer", "label") or "")
        style = str(dig(badge, "metadataBadgeRenderer", "style") or "")
        if "LIVE" in label.upper() or style == "BADGE_STYLE_TYPE_LIVE_NOW":
            return True
    for overlay in as_list(renderer.get("thumbnailOverlays")):
        if dig(overlay, "thumbnailOverlayTimeStatusRenderer", "style") == "LIVE":
            return True
    return False


def _is_short(renderer: dict[str, Any], length_seconds: int) -> bool:
    for overlay in as_list(renderer.get("thumbnailOverlays")):
        if dig(overlay, "thumbnailOverlayTimeStatusRenderer", "style") == "SHORTS":
            return True
    url = dig(renderer, "navigationEndpoint", "commandMetadata", "webCommandMetadata", "url")
    if isinstance(url, str) and url.startswith("/shorts/"):
        return True
    return 0 < length_seconds <= 60 and "reelWatchEndpoint" in as_dict(renderer.get("navigationEndpoint"))


def _has_verified_badge(raw_badges: Any) -> bool:
    for badge in as_list(raw_badges):
        if dig(badge, "metadataBadgeRenderer", "style") in _VERIFIED_BADGE_STYLES:
            return True
    return False


def _list_get(values: list[str | None], index: int) -> str | None:
    if 0 <= index < len(values):
        return values[index]
    return None


def _coerce_str(raw_value: Any) -> str | None:
    if isinstance(raw_value, str) and raw_value.strip():
        return raw_value.strip()
    return None


def _coerce_int(raw_value: Any) -> int | None:
    if isinstance(raw_value, bool):
        return int(raw_value)
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, float):
        return int(raw_value)
    if isinstance(raw_value, str):
        try:
            return int(raw_value.strip().replace(",", ""))
        except ValueError:
            return None
    return None
