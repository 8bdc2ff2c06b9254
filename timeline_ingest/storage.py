from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .errors import StorageError
from .post import AuthorInfo, EngagementSnapshot
from .storage_schema import initialize_sqlite

SQLITE_MAX_INTEGER = 2**63 - 1

_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


def _text(value: str) -> str:
    # sqlite3 refuses to bind str values holding lone surrogates.
    return _LONE_SURROGATE.sub("\ufffd", value)


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _epoch_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


@dataclass(frozen=True)
class AuthorRecord:
    id: int
    external_id: str
    username: str
    display_name: str
    avatar_url: str
    created_at: str
    updated_at: str
    is_bot: bool


class TimelineUnitOfWork:
    """
    Ordered writes inside one open transaction.

    Authors must be written before the posts that reference them, and posts
    before their metrics; foreign keys enforce it.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def upsert_author(self, external_id: str, author: AuthorInfo, *, now: datetime) -> int:
        ts = _iso(now)
        self._conn.execute(
            """
            INSERT INTO authors(
              external_id, username, display_name, avatar_url, created_at, updated_at, is_bot
            ) VALUES (?, ?, ?, ?, ?, ?, 0)
            ON CONFLICT(external_id) DO UPDATE SET
              username = excluded.username,
              display_name = excluded.display_name,
              avatar_url = excluded.avatar_url,
              updated_at = excluded.updated_at
            """.strip(),
            (
                external_id,
                _text(author.handle),
                _text(author.display_name),
                _text(author.avatar_url),
                ts,
                ts,
            ),
        )

        row = self._conn.execute(
            "SELECT id FROM authors WHERE external_id = ?",
            (external_id,),
        ).fetchone()
        if row is None:
            raise StorageError(f"Author row missing after upsert: external_id={external_id}")
        return int(row["id"])

    def insert_post(
        self,
        post_id: int,
        *,
        author_ref: int,
        content: str,
        created_at: datetime,
    ) -> bool:
        cur = self._conn.execute(
            """
            INSERT INTO posts(
              id, author_ref, content, created_at, created_at_epoch,
              is_reply, reply_to_post_id, reply_to_author_id
            ) VALUES (?, ?, ?, ?, ?, 0, NULL, NULL)
            ON CONFLICT(id) DO NOTHING
            """.strip(),
            (int(post_id), int(author_ref), _text(content), _iso(created_at), _epoch_millis(created_at)),
        )
        return cur.rowcount > 0

    def append_metric(
        self,
        post_id: int,
        metrics: EngagementSnapshot,
        *,
        collected_at: datetime,
    ) -> None:
        self._conn.execute(
            """
            INSERT INTO engagement_metrics(
              post_id, impressions, reposts, likes, replies, quotes, collected_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """.strip(),
            (
                int(post_id),
                metrics.impressions,
                metrics.reposts,
                metrics.likes,
                metrics.replies,
                metrics.quotes,
                _iso(collected_at),
            ),
        )


class SQLiteTimelineStore:
    """Relational sink for authors, posts and their engagement time series."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: str | Path) -> "SQLiteTimelineStore":
        db_path = str(path)
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            # Autocommit mode; transactions are opened explicitly by unit_of_work().
            conn = sqlite3.connect(db_path, isolation_level=None)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to open sqlite database: {db_path}: {e}") from e

        try:
            initialize_sqlite(conn)
        except Exception as e:
            conn.close()
            raise StorageError(f"Failed to initialize sqlite schema: {e}") from e

        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteTimelineStore":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    @contextmanager
    def unit_of_work(self) -> Iterator[TimelineUnitOfWork]:
        """
        Run a block of writes as one transaction.

        Commits on a clean exit; any exception rolls everything back and is
        re-raised (sqlite errors as StorageError).
        """
        try:
            self._conn.execute("BEGIN")
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to begin transaction: {e}") from e

        try:
            yield TimelineUnitOfWork(self._conn)
        except sqlite3.DatabaseError as e:
            self._rollback()
            raise StorageError(f"Transaction rolled back: {e}") from e
        except BaseException:
            self._rollback()
            raise

        try:
            self._conn.execute("COMMIT")
        except sqlite3.DatabaseError as e:
            self._rollback()
            raise StorageError(f"Failed to commit transaction: {e}") from e

    def _rollback(self) -> None:
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")

    def _count(self, sql: str, params: tuple[object, ...] = ()) -> int:
        row = self._conn.execute(sql, params).fetchone()
        return int(row[0]) if row is not None else 0

    def author_count(self) -> int:
        return self._count("SELECT COUNT(1) FROM authors")

    def post_count(self) -> int:
        return self._count("SELECT COUNT(1) FROM posts")

    def metric_count(self) -> int:
        return self._count("SELECT COUNT(1) FROM engagement_metrics")

    def metric_count_for(self, post_id: int) -> int:
        return self._count(
            "SELECT COUNT(1) FROM engagement_metrics WHERE post_id = ?",
            (int(post_id),),
        )

    def post_ids(self) -> list[int]:
        rows = self._conn.execute("SELECT id FROM posts ORDER BY id").fetchall()
        return [int(r["id"]) for r in rows]

    def get_author(self, external_id: str) -> AuthorRecord | None:
        row = self._conn.execute(
            """
            SELECT id, external_id, username, display_name, avatar_url, created_at, updated_at, is_bot
            FROM authors
            WHERE external_id = ?
            """.strip(),
            (external_id,),
        ).fetchone()
        if row is None:
            return None

        return AuthorRecord(
            id=int(row["id"]),
            external_id=str(row["external_id"]),
            username=str(row["username"]),
            display_name=str(row["display_name"]),
            avatar_url=str(row["avatar_url"]),
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
            is_bot=bool(row["is_bot"]),
        )
