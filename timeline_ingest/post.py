from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence
from urllib.parse import urlsplit

DEFAULT_POST_HOST = "x.com"


@dataclass(frozen=True)
class AuthorInfo:
    """Author state as observed at fetch time."""

    handle: str = ""
    display_name: str = ""
    avatar_url: str = ""
    bio: str = ""
    follower_count: int = 0
    following_count: int = 0
    location: str = ""


@dataclass(frozen=True)
class EngagementSnapshot:
    impressions: int = 0
    reposts: int = 0
    likes: int = 0
    quotes: int = 0
    replies: int = 0


@dataclass(frozen=True)
class NormalizedPost:
    """A flat post record; `post_url` is its identity."""

    author: AuthorInfo
    post_url: str
    full_text: str = ""
    images: Sequence[str] = ()
    videos: Sequence[str] = ()
    metrics: EngagementSnapshot | None = None

    @property
    def post_id(self) -> int | None:
        return post_id_from_url(self.post_url)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "author": {
                "handle": self.author.handle,
                "displayName": self.author.display_name,
                "avatarUrl": self.author.avatar_url,
                "bio": self.author.bio,
                "followerCount": self.author.follower_count,
                "followingCount": self.author.following_count,
                "location": self.author.location,
            },
            "images": list(self.images),
            "videos": list(self.videos),
            "postUrl": self.post_url,
            "fullText": self.full_text,
        }
        if self.metrics is not None:
            out["metrics"] = {
                "impressions": self.metrics.impressions,
                "reposts": self.metrics.reposts,
                "likes": self.metrics.likes,
                "quotes": self.metrics.quotes,
                "replies": self.metrics.replies,
            }
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NormalizedPost | None":
        url = _str(data.get("postUrl"))
        if not url:
            return None

        author_raw = data.get("author")
        author_obj: Mapping[str, Any] = author_raw if isinstance(author_raw, Mapping) else {}

        metrics_raw = data.get("metrics")
        metrics = None
        if isinstance(metrics_raw, Mapping):
            metrics = EngagementSnapshot(
                impressions=_int(metrics_raw.get("impressions")),
                reposts=_int(metrics_raw.get("reposts")),
                likes=_int(metrics_raw.get("likes")),
                quotes=_int(metrics_raw.get("quotes")),
                replies=_int(metrics_raw.get("replies")),
            )

        return cls(
            author=AuthorInfo(
                handle=_str(author_obj.get("handle")),
                display_name=_str(author_obj.get("displayName")),
                avatar_url=_str(author_obj.get("avatarUrl")),
                bio=_str(author_obj.get("bio")),
                follower_count=_int(author_obj.get("followerCount")),
                following_count=_int(author_obj.get("followingCount")),
                location=_str(author_obj.get("location")),
            ),
            post_url=url,
            full_text=_str(data.get("fullText")),
            images=_str_tuple(data.get("images")),
            videos=_str_tuple(data.get("videos")),
            metrics=metrics,
        )


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _int(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(v for v in value if isinstance(v, str) and v)


def build_post_url(handle: str, post_id: str, *, host: str = DEFAULT_POST_HOST) -> str:
    # "i" is the host's permalink form when the handle is unknown.
    name = (handle or "").strip() or "i"
    return f"https://{host}/{name}/status/{post_id}"


def post_id_from_url(url: str) -> int | None:
    value = (url or "").strip()
    if not value:
        return None

    path = urlsplit(value).path if "://" in value else value
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    if not segment.isdigit():
        return None
    return int(segment)
