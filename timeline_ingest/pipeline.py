from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .config import normalize_options
from .config_schema import AppConfig
from .fetcher import TimelineFetcher
from .normalize import normalize_items
from .persist import PersistResult, Persister, RelationalPersister
from .run_log import RunLogger
from .snapshot import SnapshotPersister
from .storage import SQLiteTimelineStore


@dataclass(frozen=True)
class PipelineResult:
    fetched: int
    normalized: int
    persist: PersistResult
    rejected: Counter[str] = field(default_factory=Counter)


def build_persister(
    config: AppConfig,
    *,
    base_dir: str | Path = ".",
    store: SQLiteTimelineStore | None = None,
    logger: RunLogger | None = None,
) -> Persister:
    """
    Build the sink selected by config.sink.mode.

    Relative sink paths resolve against base_dir. Relational mode needs an open
    store; the caller owns its lifetime.
    """
    if config.sink.mode == "relational":
        if store is None:
            raise ValueError("relational sink requires an open SQLiteTimelineStore")
        return RelationalPersister(
            store,
            logger=logger,
            target=str(Path(base_dir) / config.sink.database_path),
        )

    return SnapshotPersister(Path(base_dir) / config.sink.snapshot_dir, logger=logger)


def run_pipeline(
    config: AppConfig,
    *,
    fetcher: TimelineFetcher,
    persister: Persister,
    logger: RunLogger | None = None,
    now: datetime | None = None,
) -> PipelineResult:
    """Fetch, normalize and persist one batch, sequentially and in input order."""
    items = fetcher.fetch_recent_posts(config.fetch.count)
    if logger is not None:
        logger.info("timeline_fetched", count=len(items))

    normalized = normalize_items(items, normalize_options(config), now=now)
    if logger is not None:
        logger.info(
            "timeline_normalized",
            normalized=len(normalized.posts),
            rejected=dict(normalized.rejected),
        )

    result = persister.persist(normalized.posts, normalized.raw_items)

    return PipelineResult(
        fetched=len(items),
        normalized=len(normalized.posts),
        persist=result,
        rejected=normalized.rejected,
    )
