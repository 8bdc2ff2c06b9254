from __future__ import annotations

import sqlite3
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from timeline_ingest.errors import StorageError
from timeline_ingest.post import AuthorInfo, EngagementSnapshot
from timeline_ingest.storage import SQLiteTimelineStore

T0 = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
T1 = datetime(2025, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


class TestSQLiteTimelineStore(unittest.TestCase):
    def test_open_creates_schema_on_disk_and_reopens(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            db_path = Path(td) / "nested" / "timeline.sqlite"

            with SQLiteTimelineStore.open(db_path) as store:
                self.assertEqual(store.post_count(), 0)

            self.assertTrue(db_path.exists())

            with SQLiteTimelineStore.open(db_path) as store:
                versions = store.conn.execute("SELECT version FROM schema_migrations").fetchall()
                self.assertEqual([int(r[0]) for r in versions], [1])

    def test_upsert_author_returns_same_id_and_updates_fields(self) -> None:
        with SQLiteTimelineStore.open(":memory:") as store:
            with store.unit_of_work() as uow:
                first = uow.upsert_author("1001", AuthorInfo(handle="alice", display_name="Alice"), now=T0)
            with store.unit_of_work() as uow:
                second = uow.upsert_author(
                    "1001",
                    AuthorInfo(handle="alice2", display_name="Alice B", avatar_url="https://a/b.jpg"),
                    now=T1,
                )

            self.assertEqual(first, second)
            self.assertEqual(store.author_count(), 1)

            author = store.get_author("1001")
            assert author is not None
            self.assertEqual(author.username, "alice2")
            self.assertEqual(author.display_name, "Alice B")
            self.assertEqual(author.avatar_url, "https://a/b.jpg")
            self.assertEqual(author.created_at, T0.isoformat())
            self.assertEqual(author.updated_at, T1.isoformat())
            self.assertFalse(author.is_bot)

    def test_insert_post_is_idempotent(self) -> None:
        with SQLiteTimelineStore.open(":memory:") as store:
            with store.unit_of_work() as uow:
                ref = uow.upsert_author("1001", AuthorInfo(handle="alice"), now=T0)
                self.assertTrue(uow.insert_post(5, author_ref=ref, content="first", created_at=T0))
                self.assertFalse(uow.insert_post(5, author_ref=ref, content="edited", created_at=T1))

            row = store.conn.execute("SELECT content, created_at_epoch FROM posts WHERE id = 5").fetchone()
            self.assertEqual(row["content"], "first")
            self.assertEqual(int(row["created_at_epoch"]), int(T0.timestamp() * 1000))

    def test_metrics_require_existing_post(self) -> None:
        with SQLiteTimelineStore.open(":memory:") as store:
            with self.assertRaises(StorageError):
                with store.unit_of_work() as uow:
                    uow.append_metric(404, EngagementSnapshot(likes=1), collected_at=T0)
            self.assertEqual(store.metric_count(), 0)

    def test_metrics_are_append_only(self) -> None:
        with SQLiteTimelineStore.open(":memory:") as store:
            with store.unit_of_work() as uow:
                ref = uow.upsert_author("1001", AuthorInfo(handle="alice"), now=T0)
                uow.insert_post(5, author_ref=ref, content="x", created_at=T0)
                uow.append_metric(5, EngagementSnapshot(likes=1), collected_at=T0)
                uow.append_metric(5, EngagementSnapshot(likes=2), collected_at=T1)

            self.assertEqual(store.metric_count_for(5), 2)

            with self.assertRaises(sqlite3.DatabaseError):
                store.conn.execute("UPDATE engagement_metrics SET likes = 99")
            with self.assertRaises(sqlite3.DatabaseError):
                store.conn.execute("DELETE FROM engagement_metrics")
            self.assertEqual(store.metric_count(), 2)

    def test_unit_of_work_rolls_back_on_error(self) -> None:
        with SQLiteTimelineStore.open(":memory:") as store:
            with self.assertRaises(RuntimeError):
                with store.unit_of_work() as uow:
                    uow.upsert_author("1001", AuthorInfo(handle="alice"), now=T0)
                    raise RuntimeError("boom")

            self.assertEqual(store.author_count(), 0)
            self.assertFalse(store.conn.in_transaction)


if __name__ == "__main__":
    unittest.main()
