from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping

from .post import DEFAULT_POST_HOST, AuthorInfo, EngagementSnapshot, NormalizedPost, build_post_url
from .raw_item import (
    coerce_bool,
    coerce_id,
    coerce_int,
    coerce_str,
    get_path,
    parse_created_at,
    raw_value,
)

RETWEET_MARKER = "RT @"
MP4_CONTENT_TYPE = "video/mp4"
_VIDEO_MEDIA_TYPES = ("video", "animated_gif")


@dataclass(frozen=True)
class NormalizeOptions:
    """Inclusion filters; callers set every flag explicitly."""

    include_referenced: bool
    include_retweet_text: bool
    max_age_days: float | None
    host: str = DEFAULT_POST_HOST


@dataclass
class NormalizationResult:
    posts: list[NormalizedPost] = field(default_factory=list)
    raw_items: list[Any] = field(default_factory=list)
    rejected: Counter[str] = field(default_factory=Counter)


def _is_referenced(item: Any) -> bool:
    if coerce_bool(raw_value(item, "is_quote")) is True:
        return True
    refs = raw_value(item, "referenced_posts")
    return isinstance(refs, list) and len(refs) > 0


def explain_rejection(
    item: Any,
    options: NormalizeOptions,
    *,
    now: datetime | None = None,
) -> str | None:
    """
    Return why an item is filtered out, or None when it passes.

    Checks run in order: referenced/quote posts, retweet text, age, post identity.
    """
    if not options.include_referenced and _is_referenced(item):
        return "referenced_post"

    text = coerce_str(raw_value(item, "full_text"))
    if not options.include_retweet_text and text.startswith(RETWEET_MARKER):
        return "retweet"

    if options.max_age_days is not None:
        created = parse_created_at(raw_value(item, "created_at"))
        if created is not None:
            current = now or datetime.now(timezone.utc)
            if current - created > timedelta(days=float(options.max_age_days)):
                return "too_old"

    if coerce_id(raw_value(item, "post_id")) is None:
        return "missing_post_id"

    return None


def extract_author(item: Any) -> AuthorInfo:
    return AuthorInfo(
        handle=coerce_str(raw_value(item, "author_handle")),
        display_name=coerce_str(raw_value(item, "author_name")),
        avatar_url=coerce_str(raw_value(item, "author_avatar")),
        bio=coerce_str(raw_value(item, "author_bio")),
        follower_count=coerce_int(raw_value(item, "author_followers")),
        following_count=coerce_int(raw_value(item, "author_following")),
        location=coerce_str(raw_value(item, "author_location")),
    )


def extract_metrics(item: Any) -> EngagementSnapshot:
    return EngagementSnapshot(
        impressions=coerce_int(raw_value(item, "views")),
        reposts=coerce_int(raw_value(item, "reposts")),
        likes=coerce_int(raw_value(item, "likes")),
        quotes=coerce_int(raw_value(item, "quotes")),
        replies=coerce_int(raw_value(item, "replies")),
    )


def select_best_video_variant(variants: Any) -> str | None:
    """Pick the URL of the highest-bitrate mp4 variant; None when there is none."""
    if not isinstance(variants, list):
        return None

    candidates: list[tuple[int, str]] = []
    for variant in variants:
        if get_path(variant, "contentType") != MP4_CONTENT_TYPE:
            continue
        url = coerce_str(get_path(variant, "url")).strip()
        if not url:
            continue
        candidates.append((coerce_int(get_path(variant, "bitrate")), url))

    if not candidates:
        return None
    return max(candidates, key=lambda c: c[0])[1]


def extract_media(item: Any) -> tuple[tuple[str, ...], tuple[str, ...]]:
    media = raw_value(item, "media", [])
    if not isinstance(media, list):
        return (), ()

    images: list[str] = []
    videos: list[str] = []
    for entry in media:
        media_type = get_path(entry, "type")
        if media_type == "photo":
            url = coerce_str(get_path(entry, "mediaUrlHttps")).strip()
            if url:
                images.append(url)
        elif media_type in _VIDEO_MEDIA_TYPES:
            best = select_best_video_variant(get_path(entry, "videoInfo.variants", []))
            if best:
                videos.append(best)

    return tuple(images), tuple(videos)


def normalize_item(
    item: Any,
    options: NormalizeOptions,
    *,
    now: datetime | None = None,
) -> NormalizedPost | None:
    if explain_rejection(item, options, now=now) is not None:
        return None
    return _build_post(item, options)


def _build_post(item: Any, options: NormalizeOptions) -> NormalizedPost:
    # Callers gate on explain_rejection, which rejects items without a post id.
    post_id = str(coerce_id(raw_value(item, "post_id")))
    author = extract_author(item)
    images, videos = extract_media(item)

    return NormalizedPost(
        author=author,
        post_url=build_post_url(author.handle, post_id, host=options.host),
        full_text=coerce_str(raw_value(item, "full_text")),
        images=images,
        videos=videos,
        metrics=extract_metrics(item),
    )


def normalize_items(
    items: Iterable[Mapping[str, Any]],
    options: NormalizeOptions,
    *,
    now: datetime | None = None,
) -> NormalizationResult:
    """Normalize a batch in input order, keeping each post paired with its raw item."""
    current = now or datetime.now(timezone.utc)
    result = NormalizationResult()

    for item in items:
        reason = explain_rejection(item, options, now=current)
        if reason is not None:
            result.rejected[reason] += 1
            continue

        result.posts.append(_build_post(item, options))
        result.raw_items.append(item)

    return result
