from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, Sequence

from .post import NormalizedPost
from .raw_item import coerce_id, parse_created_at, raw_value
from .run_log import RunLogger
from .storage import SQLITE_MAX_INTEGER, SQLiteTimelineStore

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PersistResult:
    mode: str
    persisted: int
    skipped: int = 0
    skip_reasons: Counter[str] = field(default_factory=Counter)
    target: str = ""


class Persister(Protocol):
    def persist(self, posts: Sequence[NormalizedPost], raw_items: Sequence[Any]) -> PersistResult: ...


def resolve_author_id(raw_item: Any) -> str | None:
    """Prefer the id stamped on the legacy post record, then the user record's id."""
    return coerce_id(raw_value(raw_item, "author_id")) or coerce_id(
        raw_value(raw_item, "author_rest_id")
    )


def _index_raw_items(raw_items: Sequence[Any]) -> dict[int, Any]:
    index: dict[int, Any] = {}
    for item in raw_items:
        pid = coerce_id(raw_value(item, "post_id"))
        if pid is not None and int(pid) not in index:
            index[int(pid)] = item
    return index


class RelationalPersister:
    """
    Write a batch of posts to SQLite as one unit of work.

    Posts with unresolvable identity are skipped and logged; a storage failure
    rolls back the whole batch and propagates as StorageError.
    """

    mode = "relational"

    def __init__(
        self,
        store: SQLiteTimelineStore,
        *,
        logger: RunLogger | None = None,
        clock: Clock | None = None,
        target: str = "",
    ) -> None:
        self._store = store
        self._logger = logger
        self._clock = clock or _utc_now
        self._target = target

    def _skip(self, result: PersistResult, reason: str, post: NormalizedPost, **data: Any) -> None:
        result.skipped += 1
        result.skip_reasons[reason] += 1
        if self._logger is not None:
            self._logger.warning("post_skipped", post_url=post.post_url, reason=reason, **data)

    def persist(self, posts: Sequence[NormalizedPost], raw_items: Sequence[Any]) -> PersistResult:
        result = PersistResult(mode=self.mode, persisted=0, target=self._target)
        raw_by_id = _index_raw_items(raw_items)
        now = self._clock()

        with self._store.unit_of_work() as uow:
            for post in posts:
                post_id = post.post_id
                if post_id is None:
                    self._skip(result, "missing_post_id", post)
                    continue
                if post_id > SQLITE_MAX_INTEGER:
                    self._skip(result, "post_id_out_of_range", post, post_id=post_id)
                    continue

                raw = raw_by_id.get(post_id)
                if raw is None:
                    self._skip(result, "missing_raw_record", post, post_id=post_id)
                    continue

                created_at = parse_created_at(raw_value(raw, "created_at"))
                if created_at is None:
                    self._skip(result, "missing_created_at", post, post_id=post_id)
                    continue

                author_id = resolve_author_id(raw)
                if author_id is None:
                    self._skip(result, "missing_author_id", post, handle=post.author.handle)
                    continue

                author_ref = uow.upsert_author(author_id, post.author, now=now)
                uow.insert_post(
                    post_id,
                    author_ref=author_ref,
                    content=post.full_text,
                    created_at=created_at,
                )
                if post.metrics is not None:
                    uow.append_metric(post_id, post.metrics, collected_at=now)

                result.persisted += 1

        if self._logger is not None:
            self._logger.info(
                "relational_batch_committed",
                persisted=result.persisted,
                skipped=result.skipped,
                skip_reasons=dict(result.skip_reasons),
            )
        return result
