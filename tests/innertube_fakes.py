from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from backend.app.services.innertube_client import InnerTubeRequestError

CHANNEL_VIDEOS_TAB_PARAMS = "EgZ2aWRlb3PyBgQKAjoA"
CHANNEL_PLAYLISTS_TAB_PARAMS = "EglwbGF5bGlzdHPyBgQKAkIA"


@dataclass
class FakeInnerTube:
    """
    In-memory InnerTube stand-in keyed by request shape.

    Keys: `search:<query>`, `next:<video_id>`, `player:<video_id>`,
    `browse:<browse_id>` or `browse:<browse_id>|<params>`, and `cont:<token>` for
    any continuation request. Missing keys raise a 404 `InnerTubeRequestError`.
    """

    responses: dict[str, dict[str, Any]] = field(default_factory=dict)
    failures: dict[str, Exception] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)
    language: str = "en"
    region: str = "US"

    def with_locale(self, *, language: str, region: str) -> FakeInnerTube:
        return replace(self, language=language, region=region)

    def search(
        self,
        query: str | None = None,
        *,
        params: str | None = None,
        continuation: str | None = None,
    ) -> dict[str, Any]:
        _ = params
        key = f"cont:{continuation}" if continuation else f"search:{query}"
        return self._lookup(key)

    def next(
        self,
        video_id: str | None = None,
        *,
        continuation: str | None = None,
    ) -> dict[str, Any]:
        key = f"cont:{continuation}" if continuation else f"next:{video_id}"
        return self._lookup(key)

    def player(self, video_id: str) -> dict[str, Any]:
        return self._lookup(f"player:{video_id}")

    def browse(
        self,
        browse_id: str | None = None,
        *,
        params: str | None = None,
        continuation: str | None = None,
    ) -> dict[str, Any]:
        if continuation:
            key = f"cont:{continuation}"
        elif params:
            key = f"browse:{browse_id}|{params}"
        else:
            key = f"browse:{browse_id}"
        return self._lookup(key)

    def _lookup(self, key: str) -> dict[str, Any]:
        self.calls.append((key, self.language))
        failure = self.failures.get(key)
        if failure is not None:
            raise failure
        payload = self.responses.get(key)
        if payload is None:
            raise InnerTubeRequestError(f"no fixture for {key}", status_code=404)
        return payload


def runs(text: str, *, browse_id: str | None = None) -> dict[str, Any]:
    run: dict[str, Any] = {"text": text}
    if browse_id is not None:
        run["navigationEndpoint"] = {
            "browseEndpoint": {"browseId": browse_id, "canonicalBaseUrl": f"/channel/{browse_id}"}
        }
    return {"runs": [run]}


def video_renderer(
    video_id: str,
    title: str,
    *,
    channel_id: str = "UC_test_channel",
    channel_name: str = "Test Channel",
    length: str | None = "3:25",
    views: str = "1,234 views",
    published: str | None = "2 days ago",
    shorts: bool = False,
) -> dict[str, Any]:
    renderer: dict[str, Any] = {
        "videoId": video_id,
        "title": runs(title),
        "ownerText": runs(channel_name, browse_id=channel_id),
        "thumbnail": {
            "thumbnails": [
                {"url": f"https://i.ytimg.com/vi/{video_id}/default.jpg", "width": 120, "height": 90},
                {"url": f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg", "width": 480, "height": 360},
            ]
        },
        "viewCountText": {"simpleText": views},
        "channelThumbnailSupportedRenderers": {
            "channelThumbnailWithLinkRenderer": {
                "thumbnail": {"thumbnails": [{"url": f"https://yt3.ggpht.com/{channel_id}", "width": 68}]}
            }
        },
    }
    if length is not None:
        renderer["lengthText"] = {"simpleText": length}
    if published is not None:
        renderer["publishedTimeText"] = {"simpleText": published}
    if shorts:
        renderer["navigationEndpoint"] = {
            "commandMetadata": {"webCommandMetadata": {"url": f"/shorts/{video_id}"}}
        }
    return renderer


def compact_video(video_id: str, title: str, **kwargs: Any) -> dict[str, Any]:
    return {"compactVideoRenderer": video_renderer(video_id, title, **kwargs)}


def continuation_item(token: str) -> dict[str, Any]:
    return {
        "continuationItemRenderer": {
            "continuationEndpoint": {"continuationCommand": {"token": token}}
        }
    }


def search_page(videos: list[dict[str, Any]], *, token: str | None = None) -> dict[str, Any]:
    sections: list[dict[str, Any]] = [
        {"itemSectionRenderer": {"contents": [{"videoRenderer": video} for video in videos]}}
    ]
    if token is not None:
        sections.append(continuation_item(token))
    return {
        "contents": {
            "twoColumnSearchResultsRenderer": {
                "primaryContents": {"sectionListRenderer": {"contents": sections}}
            }
        }
    }


def continuation_page(
    items: list[dict[str, Any]],
    *,
    token: str | None = None,
    holder: str = "onResponseReceivedCommands",
    action: str = "appendContinuationItemsAction",
) -> dict[str, Any]:
    continuation_items = list(items)
    if token is not None:
        continuation_items.append(continuation_item(token))
    return {holder: [{action: {"continuationItems": continuation_items}}]}


def search_continuation(
    videos: list[dict[str, Any]],
    *,
    token: str | None = None,
) -> dict[str, Any]:
    return continuation_page(
        [{"itemSectionRenderer": {"contents": [{"videoRenderer": video} for video in videos]}}],
        token=token,
    )


def player_payload(
    video_id: str,
    title: str,
    *,
    channel_id: str = "UC_test_channel",
    author: str = "Test Channel",
    length_seconds: int = 205,
    view_count: int = 12_345,
    description: str = "A test video description.",
) -> dict[str, Any]:
    return {
        "playabilityStatus": {"status": "OK"},
        "videoDetails": {
            "videoId": video_id,
            "title": title,
            "channelId": channel_id,
            "author": author,
            "lengthSeconds": str(length_seconds),
            "shortDescription": description,
            "viewCount": str(view_count),
            "keywords": ["test", "fixture"],
            "isLiveContent": False,
            "thumbnail": {
                "thumbnails": [{"url": f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg", "width": 480}]
            },
        },
        "microformat": {
            "playerMicroformatRenderer": {
                "category": "Music",
                "publishDate": "2024-05-01",
                "isFamilySafe": True,
            }
        },
    }


def next_payload(
    video_id: str,
    title: str,
    *,
    related: list[dict[str, Any]] | None = None,
    related_token: str | None = None,
    comments_token: str | None = None,
    owner_channel_id: str = "UC_test_channel",
    owner_name: str = "Test Channel",
    subscriber_text: str | None = "12.3万人",
) -> dict[str, Any]:
    owner: dict[str, Any] = {
        "title": runs(owner_name, browse_id=owner_channel_id),
        "thumbnail": {"thumbnails": [{"url": f"https://yt3.ggpht.com/{owner_channel_id}", "width": 48}]},
        "badges": [{"metadataBadgeRenderer": {"style": "BADGE_STYLE_TYPE_VERIFIED"}}],
    }
    if subscriber_text is not None:
        owner["subscriberCountText"] = {"simpleText": subscriber_text}

    results: list[dict[str, Any]] = [
        {
            "videoPrimaryInfoRenderer": {
                "title": runs(title),
                "viewCount": {
                    "videoViewCountRenderer": {
                        "viewCount": {"simpleText": "12,345 views"},
                        "shortViewCount": {"simpleText": "12K views"},
                    }
                },
                "dateText": {"simpleText": "May 1, 2024"},
                "relativeDateText": {"simpleText": "5 months ago"},
            }
        },
        {
            "videoSecondaryInfoRenderer": {
                "owner": {"videoOwnerRenderer": owner},
                "attributedDescription": {"content": "A test video description."},
            }
        },
    ]
    if comments_token is not None:
        results.append(
            {
                "itemSectionRenderer": {
                    "sectionIdentifier": "comment-item-section",
                    "contents": [continuation_item(comments_token)],
                }
            }
        )

    secondary: list[dict[str, Any]] = list(related or [])
    if related_token is not None:
        secondary.append(continuation_item(related_token))
    return {
        "contents": {
            "twoColumnWatchNextResults": {
                "results": {"results": {"contents": results}},
                "secondaryResults": {"secondaryResults": {"results": secondary}},
            }
        }
    }


def comment_page(
    comments: list[tuple[str, str, str]],
    *,
    token: str | None = None,
    action: str = "appendContinuationItemsAction",
) -> dict[str, Any]:
    """`comments` holds `(comment_id, text, author_name)` triples."""
    threads = [
        {
            "commentThreadRenderer": {
                "commentViewModel": {
                    "commentViewModel": {"commentKey": f"key-{comment_id}", "commentId": comment_id}
                }
            }
        }
        for comment_id, _, _ in comments
    ]
    payload = continuation_page(
        threads,
        token=token,
        holder="onResponseReceivedEndpoints",
        action=action,
    )
    payload["frameworkUpdates"] = {
        "entityBatchUpdate": {
            "mutations": [
                {
                    "entityKey": f"key-{comment_id}",
                    "payload": {
                        "commentEntityPayload": {
                            "properties": {
                                "commentId": comment_id,
                                "content": {"content": text},
                                "publishedTime": "1 day ago",
                            },
                            "author": {
                                "channelId": f"UC_{author_name}",
                                "displayName": f"@{author_name}",
                                "avatarThumbnailUrl": f"https://yt3.ggpht.com/{author_name}",
                            },
                            "toolbar": {"likeCountNotliked": "12", "replyCount": "3"},
                        }
                    },
                }
                for comment_id, text, author_name in comments
            ]
        }
    }
    return payload


def _tab(
    title: str,
    suffix: str,
    *,
    params: str,
    selected: bool = False,
    content: dict[str, Any] | None = None,
) -> dict[str, Any]:
    tab: dict[str, Any] = {
        "title": title,
        "selected": selected,
        "endpoint": {
            "browseEndpoint": {"params": params},
            "commandMetadata": {"webCommandMetadata": {"url": f"/@testchannel/{suffix}"}},
        },
    }
    if content is not None:
        tab["content"] = content
    return {"tabRenderer": tab}


def channel_payload(
    channel_id: str,
    name: str,
    *,
    subscriber_text: str | None = "12.3万人",
    videos: list[dict[str, Any]] | None = None,
    videos_token: str | None = None,
    playlists: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """
    Channel browse response.

    With `videos` the videos tab is the selected one, with `playlists` the
    playlists tab is; otherwise the home tab is selected.
    """
    header: dict[str, Any] = {
        "channelId": channel_id,
        "title": name,
        "videosCountText": runs("321 videos"),
        "banner": {"thumbnails": [{"url": "//yt3.ggpht.com/banner", "width": 1060}]},
    }
    if subscriber_text is not None:
        header["subscriberCountText"] = {"simpleText": subscriber_text}

    videos_content: dict[str, Any] | None = None
    if videos is not None:
        grid: list[dict[str, Any]] = [
            {"richItemRenderer": {"content": {"videoRenderer": video}}} for video in videos
        ]
        if videos_token is not None:
            grid.append(continuation_item(videos_token))
        videos_content = {"richGridRenderer": {"contents": grid}}

    playlists_content: dict[str, Any] | None = None
    if playlists is not None:
        playlists_content = {
            "sectionListRenderer": {
                "contents": [
                    {
                        "itemSectionRenderer": {
                            "contents": [
                                {"gridRenderer": {"items": [{"gridPlaylistRenderer": item} for item in playlists]}}
                            ]
                        }
                    }
                ]
            }
        }

    home_selected = videos is None and playlists is None
    return {
        "metadata": {
            "channelMetadataRenderer": {
                "title": name,
                "description": f"{name} official channel",
                "externalId": channel_id,
                "avatar": {"thumbnails": [{"url": f"https://yt3.ggpht.com/{channel_id}", "width": 900}]},
            }
        },
        "header": {"c4TabbedHeaderRenderer": header},
        "contents": {
            "twoColumnBrowseResultsRenderer": {
                "tabs": [
                    _tab(
                        "Home",
                        "featured",
                        params="EghmZWF0dXJlZPIGBAoCMgA%3D",
                        selected=home_selected,
                        content={"sectionListRenderer": {"contents": []}} if home_selected else None,
                    ),
                    _tab(
                        "Videos",
                        "videos",
                        params=CHANNEL_VIDEOS_TAB_PARAMS,
                        selected=videos is not None,
                        content=videos_content,
                    ),
                    _tab(
                        "Playlists",
                        "playlists",
                        params=CHANNEL_PLAYLISTS_TAB_PARAMS,
                        selected=playlists is not None,
                        content=playlists_content,
                    ),
                ]
            }
        },
    }


def channel_videos_continuation(
    videos: list[dict[str, Any]],
    *,
    token: str | None = None,
) -> dict[str, Any]:
    return continuation_page(
        [{"richItemRenderer": {"content": {"videoRenderer": video}}} for video in videos],
        token=token,
        holder="onResponseReceivedActions",
    )


def grid_playlist(playlist_id: str, title: str, *, count: str = "12 本の動画") -> dict[str, Any]:
    return {
        "playlistId": playlist_id,
        "title": runs(title),
        "thumbnail": {"thumbnails": [{"url": f"https://i.ytimg.com/pl/{playlist_id}.jpg", "width": 320}]},
        "videoCountShortText": {"simpleText": count},
        "navigationEndpoint": {"watchEndpoint": {"videoId": f"{playlist_id}-first"}},
    }


def playlist_video(video_id: str, title: str, index: int) -> dict[str, Any]:
    return {
        "playlistVideoRenderer": {
            "videoId": video_id,
            "title": runs(title),
            "index": {"simpleText": str(index)},
            "lengthSeconds": "185",
            "lengthText": {"simpleText": "3:05"},
            "shortBylineText": runs("Test Channel", browse_id="UC_test_channel"),
            "videoInfo": {"runs": [{"text": "1.2万 回視聴"}, {"text": " • "}, {"text": "3 日前"}]},
            "thumbnail": {"thumbnails": [{"url": f"https://i.ytimg.com/vi/{video_id}/default.jpg", "width": 120}]},
        }
    }


def playlist_payload(
    playlist_id: str,
    title: str,
    videos: list[dict[str, Any]],
    *,
    token: str | None = None,
) -> dict[str, Any]:
    contents = list(videos)
    if token is not None:
        contents.append(continuation_item(token))
    return {
        "header": {
            "playlistHeaderRenderer": {
                "playlistId": playlist_id,
                "title": {"simpleText": title},
                "numVideosText": runs(f"{len(videos)} 本の動画"),
                "viewCountText": {"simpleText": "1,024 回視聴"},
                "ownerText": runs("Test Channel", browse_id="UC_test_channel"),
            }
        },
        "contents": {
            "twoColumnBrowseResultsRenderer": {
                "tabs": [
                    {
                        "tabRenderer": {
                            "selected": True,
                            "content": {
                                "sectionListRenderer": {
                                    "contents": [
                                        {
                                            "itemSectionRenderer": {
                                                "contents": [
                                                    {"playlistVideoListRenderer": {"contents": contents}}
                                                ]
                                            }
                                        }
                                    ]
                                }
                            },
                        }
                    }
                ]
            }
        },
    }


def trending_payload(videos: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "contents": {
            "twoColumnBrowseResultsRenderer": {
                "tabs": [
                    {
                        "tabRenderer": {
                            "selected": True,
                            "content": {
                                "sectionListRenderer": {
                                    "contents": [
                                        {
                                            "itemSectionRenderer": {
                                                "contents": [
                                                    {
                                                        "shelfRenderer": {
                                                            "content": {
                                                                "expandedShelfContentsRenderer": {
                                                                    "items": [
                                                                        {"videoRenderer": video}
                                                                        for video in videos
                                                                    ]
                                                                }
                                                            }
                                                        }
                                                    }
                                                ]
                                            }
                                        }
                                    ]
                                }
                            },
                        }
                    }
                ]
            }
        }
    }
