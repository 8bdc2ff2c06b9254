from __future__ import annotations

import unittest

from timeline_ingest.dedupe import SeenKeys, merge_posts
from timeline_ingest.post import AuthorInfo, NormalizedPost


def _post(url: str, text: str = "") -> NormalizedPost:
    return NormalizedPost(author=AuthorInfo(handle="a"), post_url=url, full_text=text)


def _url(post_id: str) -> str:
    return f"https://x.com/a/status/{post_id}"


class TestMergePosts(unittest.TestCase):
    def test_new_version_replaces_stored_one(self) -> None:
        merged = merge_posts([_post("A", "old")], [_post("A", "new")])

        self.assertEqual(len(merged), 1)
        self.assertEqual(merged[0].post_url, "A")
        self.assertEqual(merged[0].full_text, "new")

    def test_replacement_is_whole_record(self) -> None:
        old = NormalizedPost(
            author=AuthorInfo(handle="a", bio="old bio"),
            post_url=_url("5"),
            images=("https://img/1.jpg",),
        )
        new = NormalizedPost(author=AuthorInfo(handle="a"), post_url=_url("5"))

        merged = merge_posts([old], [new])
        self.assertEqual(merged, [new])

    def test_sorts_descending_by_numeric_id(self) -> None:
        posts = [_post(_url("9")), _post(_url("100")), _post(_url("10"))]
        merged = merge_posts([], posts)
        self.assertEqual(
            [p.post_url for p in merged],
            [_url("100"), _url("10"), _url("9")],
        )

    def test_sort_handles_snowflake_ids_of_different_lengths(self) -> None:
        previous = [_post(_url("999999999999999999"))]
        new = [_post(_url("1850000000000000003")), _post(_url("1850000000000000002"))]

        merged = merge_posts(previous, new)
        self.assertEqual(
            [p.post_id for p in merged],
            [1850000000000000003, 1850000000000000002, 999999999999999999],
        )

    def test_order_independent_of_collection_order(self) -> None:
        a = [_post(_url("3")), _post(_url("1"))]
        b = [_post(_url("2"))]
        self.assertEqual(merge_posts(a, b), merge_posts(b, a))

    def test_non_numeric_ids_trail(self) -> None:
        merged = merge_posts([_post("B"), _post(_url("1"))], [_post("A")])
        self.assertEqual([p.post_url for p in merged], [_url("1"), "A", "B"])


class TestSeenKeys(unittest.TestCase):
    def test_tracks_post_urls(self) -> None:
        seen = SeenKeys()
        post = _post(_url("1"))

        self.assertFalse(seen.has_post(post))
        self.assertEqual(seen.add_post(post), _url("1"))
        self.assertTrue(seen.has_post(_post(_url("1"), "other text")))


if __name__ == "__main__":
    unittest.main()
