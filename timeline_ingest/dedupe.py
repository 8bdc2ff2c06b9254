from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .post import NormalizedPost, post_id_from_url


def dedupe_key(post: NormalizedPost) -> str:
    return post.post_url


def sort_key(post: NormalizedPost) -> tuple[int, int, str]:
    # Numeric ids first, largest (newest) first; non-numeric ids trail, ordered by URL.
    pid = post_id_from_url(post.post_url)
    if pid is None:
        return (1, 0, post.post_url)
    return (0, -pid, post.post_url)


def merge_posts(
    previous: Iterable[NormalizedPost],
    new: Iterable[NormalizedPost],
) -> list[NormalizedPost]:
    """
    Merge stored and new posts keyed by post URL.

    On collision the new post replaces the stored one entirely. The result is
    ordered by numeric post id, newest first.
    """
    merged: dict[str, NormalizedPost] = {}
    for post in previous:
        merged[dedupe_key(post)] = post
    for post in new:
        merged[dedupe_key(post)] = post

    return sorted(merged.values(), key=sort_key)


@dataclass
class SeenKeys:
    keys: set[str] = field(default_factory=set)

    def has_post(self, post: NormalizedPost) -> bool:
        return dedupe_key(post) in self.keys

    def add_post(self, post: NormalizedPost) -> str:
        key = dedupe_key(post)
        self.keys.add(key)
        return key
