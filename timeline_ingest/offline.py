from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

_TIMELINE_DATE_FORMAT = "%a %b %d %H:%M:%S %z %Y"


def timeline_item(
    *,
    post_id: str,
    user_id: str | None,
    handle: str,
    name: str,
    text: str,
    created_at: datetime,
    media: list[dict[str, Any]] | None = None,
    is_quote: bool = False,
    views: str = "0",
    rest_id: str | None = None,
) -> dict[str, Any]:
    """Build one raw item in the timeline API's nested shape."""
    legacy: dict[str, Any] = {
        "idStr": post_id,
        "fullText": text,
        "createdAt": created_at.strftime(_TIMELINE_DATE_FORMAT),
        "isQuoteStatus": is_quote,
        "retweetCount": 3,
        "favoriteCount": 21,
        "quoteCount": 1 if is_quote else 0,
        "replyCount": 2,
    }
    if user_id is not None:
        legacy["userIdStr"] = user_id
    if media:
        legacy["extendedEntities"] = {"media": media}

    user: dict[str, Any] = {
        "legacy": {
            "screenName": handle,
            "name": name,
            "profileImageUrlHttps": f"https://pbs.example.com/profile/{handle}.jpg",
            "description": f"Posts by {name}",
            "followersCount": 1200,
            "friendsCount": 180,
            "location": "Tokyo",
        }
    }
    if rest_id is not None:
        user["restId"] = rest_id

    return {
        "raw": {"result": {"legacy": legacy, "views": {"count": views}}},
        "user": user,
    }


def default_offline_items(now: datetime | None = None) -> list[dict[str, Any]]:
    """
    Deterministic timeline items covering the normalizer's branches.

    Includes photos, a video with several encodings, a retweet, a quote post
    and a post whose author id is only on the user record or missing.
    """
    current = now or datetime.now(timezone.utc)
    recent = current - timedelta(hours=2)

    return [
        timeline_item(
            post_id="1850000000000000003",
            user_id="1001",
            handle="alice",
            name="Alice",
            text="Morning run along the river.",
            created_at=recent,
            media=[
                {"type": "photo", "mediaUrlHttps": "https://pbs.example.com/media/river.jpg"},
            ],
            views="5400",
        ),
        timeline_item(
            post_id="1850000000000000002",
            user_id="1002",
            handle="bob",
            name="Bob",
            text="New release notes are up.",
            created_at=recent,
            media=[
                {
                    "type": "video",
                    "videoInfo": {
                        "variants": [
                            {"contentType": "application/x-mpegURL", "url": "https://video.example.com/r.m3u8"},
                            {"contentType": "video/mp4", "bitrate": 832000, "url": "https://video.example.com/r_832.mp4"},
                            {"contentType": "video/mp4", "bitrate": 2176000, "url": "https://video.example.com/r_2176.mp4"},
                        ]
                    },
                },
            ],
            views="980",
        ),
        timeline_item(
            post_id="1850000000000000001",
            user_id="1001",
            handle="alice",
            name="Alice",
            text="RT @bob: New release notes are up.",
            created_at=recent,
        ),
        timeline_item(
            post_id="1849999999999999999",
            user_id="1003",
            handle="carol",
            name="Carol",
            text="This is a good point.",
            created_at=recent,
            is_quote=True,
        ),
        timeline_item(
            post_id="999999999999999999",
            user_id=None,
            rest_id="1004",
            handle="dave",
            name="Dave",
            text="Author id only on the user record.",
            created_at=recent,
        ),
        timeline_item(
            post_id="99999999999999999",
            user_id=None,
            handle="erin",
            name="Erin",
            text="No author id anywhere.",
            created_at=recent,
        ),
    ]


@dataclass
class OfflineTimelineFetcher:
    """Network-free fetcher for dry runs and smoke checks."""

    items: Sequence[dict[str, Any]] | None = None

    def fetch_recent_posts(self, count: int) -> list[dict[str, Any]]:
        source = list(self.items) if self.items is not None else default_offline_items()
        return copy.deepcopy(source[: max(0, int(count))])
