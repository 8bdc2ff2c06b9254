from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .config import normalize_options
from .config_schema import AppConfig
from .dedupe import SeenKeys
from .fetcher import TimelineFetcher
from .normalize import normalize_items


_DRY_RUN_COUNT = 20


@dataclass(frozen=True)
class DryRunResult:
    fetched_count: int
    normalized_count: int
    duplicate_count: int
    rejected: dict[str, int]
    example_post: dict[str, Any] | None


def run_dry_run(
    config: AppConfig,
    *,
    fetcher: TimelineFetcher,
    now: datetime | None = None,
) -> DryRunResult:
    """Fetch a small batch and normalize it without persisting anything."""
    count = min(_DRY_RUN_COUNT, int(config.fetch.count))
    items = fetcher.fetch_recent_posts(count)
    normalized = normalize_items(items, normalize_options(config), now=now)

    seen = SeenKeys()
    duplicates = 0
    for post in normalized.posts:
        if seen.has_post(post):
            duplicates += 1
            continue
        seen.add_post(post)

    rejected: Counter[str] = normalized.rejected
    example = normalized.posts[0].to_dict() if normalized.posts else None

    return DryRunResult(
        fetched_count=len(items),
        normalized_count=len(normalized.posts),
        duplicate_count=duplicates,
        rejected=dict(rejected),
        example_post=example,
    )
