from __future__ import annotations

import json
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Any, Callable, Sequence

from .dedupe import merge_posts
from .errors import StorageError
from .persist import PersistResult
from .post import NormalizedPost
from .run_log import RunLogger


def snapshot_path(directory: str | Path, day: date) -> Path:
    return Path(directory) / f"{day.isoformat()}.json"


def load_snapshot(path: str | Path) -> list[NormalizedPost]:
    """
    Read a day snapshot; a missing file is an empty snapshot.

    A file that exists but cannot be parsed raises StorageError rather than
    being silently replaced.
    """
    p = Path(path)
    if not p.exists():
        return []

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise StorageError(f"Failed to read snapshot {p}: {e}") from e

    if not isinstance(data, list):
        raise StorageError(f"Snapshot {p} must contain a JSON array")

    posts: list[NormalizedPost] = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        post = NormalizedPost.from_dict(entry)
        if post is not None:
            posts.append(post)
    return posts


def write_snapshot_atomic(path: str | Path, posts: Sequence[NormalizedPost]) -> None:
    """
    Write the full array to a temp file beside `path`, then rename it into place.

    Lone surrogates (truncated emoji) are written as JSON `\\uXXXX` escapes so
    the file stays valid UTF-8 and loads back to the same text.
    """
    p = Path(path)
    payload = json.dumps([post.to_dict() for post in posts], indent=2, ensure_ascii=False)
    data = (payload + "\n").encode("utf-8", "backslashreplace")

    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=p.parent)
    except OSError as e:
        raise StorageError(f"Failed to prepare snapshot write for {p}: {e}") from e

    replaced = False
    try:
        with os.fdopen(fd, "wb") as fp:
            fp.write(data)
            fp.flush()
            os.fsync(fp.fileno())
        os.replace(tmp_name, p)
        replaced = True
    except OSError as e:
        raise StorageError(f"Failed to write snapshot {p}: {e}") from e
    finally:
        if not replaced:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass


class SnapshotPersister:
    """Read-merge-write sink for the per-day JSON snapshot."""

    mode = "snapshot"

    def __init__(
        self,
        directory: str | Path,
        *,
        today: Callable[[], date] | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self._directory = Path(directory)
        self._today = today or date.today
        self._logger = logger

    def current_path(self) -> Path:
        return snapshot_path(self._directory, self._today())

    def persist(self, posts: Sequence[NormalizedPost], raw_items: Sequence[Any] = ()) -> PersistResult:
        path = self.current_path()
        existing = load_snapshot(path)
        merged = merge_posts(existing, posts)
        write_snapshot_atomic(path, merged)

        if self._logger is not None:
            self._logger.info(
                "snapshot_written",
                path=str(path),
                existing=len(existing),
                incoming=len(posts),
                merged=len(merged),
            )

        return PersistResult(mode=self.mode, persisted=len(merged), target=str(path))
