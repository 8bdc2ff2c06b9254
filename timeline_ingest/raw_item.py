from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

_MISSING = object()

# Every nested path the pipeline reads from a timeline item.
RAW_PATHS: dict[str, str] = {
    "referenced_posts": "tweet.referenced_tweets",
    "is_quote": "raw.result.legacy.isQuoteStatus",
    "full_text": "raw.result.legacy.fullText",
    "created_at": "raw.result.legacy.createdAt",
    "post_id": "raw.result.legacy.idStr",
    "author_id": "raw.result.legacy.userIdStr",
    "author_rest_id": "user.restId",
    "author_handle": "user.legacy.screenName",
    "author_name": "user.legacy.name",
    "author_avatar": "user.legacy.profileImageUrlHttps",
    "author_bio": "user.legacy.description",
    "author_followers": "user.legacy.followersCount",
    "author_following": "user.legacy.friendsCount",
    "author_location": "user.legacy.location",
    "media": "raw.result.legacy.extendedEntities.media",
    "views": "raw.result.views.count",
    "reposts": "raw.result.legacy.retweetCount",
    "likes": "raw.result.legacy.favoriteCount",
    "quotes": "raw.result.legacy.quoteCount",
    "replies": "raw.result.legacy.replyCount",
}

_TIMELINE_DATE_FORMAT = "%a %b %d %H:%M:%S %z %Y"


def _step(node: Any, segment: str) -> Any:
    if isinstance(node, Mapping):
        return node.get(segment, _MISSING)

    if isinstance(node, Sequence) and not isinstance(node, (str, bytes, bytearray)):
        try:
            index = int(segment)
        except ValueError:
            return _MISSING
        if -len(node) <= index < len(node):
            return node[index]
        return _MISSING

    if isinstance(node, (str, bytes, bytearray, int, float, bool)):
        return _MISSING

    return getattr(node, segment, _MISSING)


def get_path(item: Any, path: str, default: Any = None) -> Any:
    """
    Resolve a dot-addressed path through mappings, sequences and objects.

    Returns `default` when any segment is absent, None, or the wrong shape.
    """
    node = item
    for segment in (path or "").split("."):
        if node is None:
            return default
        if not segment:
            return default
        node = _step(node, segment)
        if node is _MISSING:
            return default

    return default if node is None else node


def raw_value(item: Any, name: str, default: Any = None) -> Any:
    return get_path(item, RAW_PATHS[name], default)


def coerce_str(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    return default


def coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else default
    if isinstance(value, str):
        s = value.strip()
        if s.isdigit():
            return int(s)
    return default


def coerce_id(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value) if value >= 0 else None
    if isinstance(value, str):
        v = value.strip()
        if v.isdigit():
            return str(int(v))
    return None


def coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    return None


def parse_created_at(value: Any) -> datetime | None:
    """Parse a timeline timestamp (or ISO-8601 string) into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            dt = datetime.strptime(text, _TIMELINE_DATE_FORMAT)
        except ValueError:
            try:
                dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
