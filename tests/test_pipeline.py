from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from timeline_ingest.config_schema import AppConfig, FiltersConfig, SinkConfig
from timeline_ingest.dry_run import run_dry_run
from timeline_ingest.offline import OfflineTimelineFetcher, default_offline_items, timeline_item
from timeline_ingest.persist import RelationalPersister
from timeline_ingest.pipeline import build_persister, run_pipeline
from timeline_ingest.snapshot import SnapshotPersister, load_snapshot
from timeline_ingest.storage import SQLiteTimelineStore

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _config(*, mode: str = "snapshot", strict: bool = False) -> AppConfig:
    filters = (
        FiltersConfig(include_referenced=False, include_retweet_text=False, max_age_days=1)
        if strict
        else FiltersConfig()
    )
    return AppConfig(filters=filters, sink=SinkConfig(mode=mode))  # type: ignore[arg-type]


class TestRunPipeline(unittest.TestCase):
    def test_relational_run_reports_persisted_and_skipped(self) -> None:
        fetcher = OfflineTimelineFetcher(items=default_offline_items(NOW))

        with SQLiteTimelineStore.open(":memory:") as store:
            persister = RelationalPersister(store, clock=lambda: NOW)
            result = run_pipeline(_config(mode="relational"), fetcher=fetcher, persister=persister, now=NOW)

            self.assertEqual(result.fetched, 6)
            self.assertEqual(result.normalized, 6)
            self.assertEqual(result.persist.persisted, 5)
            self.assertEqual(dict(result.persist.skip_reasons), {"missing_author_id": 1})
            self.assertEqual(store.post_count(), 5)
            self.assertEqual(store.author_count(), 4)

    def test_strict_filters_drop_retweets_and_quotes(self) -> None:
        fetcher = OfflineTimelineFetcher(items=default_offline_items(NOW))

        with tempfile.TemporaryDirectory() as td:
            persister = SnapshotPersister(td, today=lambda: NOW.date())
            result = run_pipeline(_config(strict=True), fetcher=fetcher, persister=persister, now=NOW)

            self.assertEqual(result.normalized, 4)
            self.assertEqual(dict(result.rejected), {"retweet": 1, "referenced_post": 1})

            posts = load_snapshot(result.persist.target)
            self.assertEqual(len(posts), 4)
            self.assertEqual(
                [p.author.handle for p in posts],
                ["alice", "bob", "dave", "erin"],
            )
            self.assertEqual(posts[1].videos, ("https://video.example.com/r_2176.mp4",))

    def test_snapshot_runs_accumulate_without_duplicates(self) -> None:
        first = [
            timeline_item(
                post_id="10", user_id="1", handle="a", name="A", text="v1", created_at=NOW
            )
        ]
        second = [
            timeline_item(
                post_id="10", user_id="1", handle="a", name="A", text="v2", created_at=NOW
            ),
            timeline_item(
                post_id="9", user_id="1", handle="a", name="A", text="older", created_at=NOW
            ),
        ]

        with tempfile.TemporaryDirectory() as td:
            persister = SnapshotPersister(td, today=lambda: NOW.date())
            run_pipeline(_config(), fetcher=OfflineTimelineFetcher(items=first), persister=persister, now=NOW)
            result = run_pipeline(
                _config(), fetcher=OfflineTimelineFetcher(items=second), persister=persister, now=NOW
            )

            posts = load_snapshot(result.persist.target)
            self.assertEqual([(p.post_id, p.full_text) for p in posts], [(10, "v2"), (9, "older")])
            self.assertEqual(result.persist.persisted, 2)

    def test_build_persister_selects_sink(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            snap = build_persister(_config(), base_dir=td)
            self.assertIsInstance(snap, SnapshotPersister)

            with self.assertRaises(ValueError):
                build_persister(_config(mode="relational"), base_dir=td)

            with SQLiteTimelineStore.open(Path(td) / "t.sqlite") as store:
                rel = build_persister(_config(mode="relational"), base_dir=td, store=store)
                self.assertIsInstance(rel, RelationalPersister)


class TestDryRun(unittest.TestCase):
    def test_normalizes_without_persisting(self) -> None:
        items = default_offline_items(NOW)
        items.append(items[0])

        result = run_dry_run(_config(strict=True), fetcher=OfflineTimelineFetcher(items=items), now=NOW)

        self.assertEqual(result.fetched_count, 7)
        self.assertEqual(result.normalized_count, 5)
        self.assertEqual(result.duplicate_count, 1)
        self.assertEqual(result.rejected, {"retweet": 1, "referenced_post": 1})
        assert result.example_post is not None
        self.assertEqual(result.example_post["postUrl"], "https://x.com/alice/status/1850000000000000003")


if __name__ == "__main__":
    unittest.main()
