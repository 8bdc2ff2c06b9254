from __future__ import annotations

import unittest
from datetime import datetime, timezone

from timeline_ingest.raw_item import (
    coerce_id,
    coerce_int,
    coerce_str,
    get_path,
    parse_created_at,
)


class _Obj:
    def __init__(self, **kwargs: object) -> None:
        for k, v in kwargs.items():
            setattr(self, k, v)


class TestGetPath(unittest.TestCase):
    def test_resolves_nested_mappings_and_lists(self) -> None:
        item = {"raw": {"result": {"media": [{"type": "photo"}, {"type": "video"}]}}}

        self.assertEqual(get_path(item, "raw.result.media.1.type"), "video")
        self.assertEqual(get_path(item, "raw.result.media.-1.type"), "video")

    def test_returns_default_for_missing_null_or_wrong_shape(self) -> None:
        item = {"a": {"b": None, "c": "text", "d": [1, 2]}}

        self.assertEqual(get_path(item, "a.missing", "dflt"), "dflt")
        self.assertEqual(get_path(item, "a.b", "dflt"), "dflt")
        self.assertEqual(get_path(item, "a.b.deeper", "dflt"), "dflt")
        self.assertEqual(get_path(item, "a.c.length", "dflt"), "dflt")
        self.assertEqual(get_path(item, "a.d.5", "dflt"), "dflt")
        self.assertEqual(get_path(item, "a.d.x", "dflt"), "dflt")
        self.assertEqual(get_path(None, "a", "dflt"), "dflt")
        self.assertEqual(get_path(item, "", "dflt"), "dflt")
        self.assertEqual(get_path(item, "a..c", "dflt"), "dflt")

    def test_reads_object_attributes(self) -> None:
        item = _Obj(user=_Obj(legacy={"screenName": "alice"}))
        self.assertEqual(get_path(item, "user.legacy.screenName"), "alice")
        self.assertIsNone(get_path(item, "user.restId"))

    def test_falsy_values_are_not_replaced(self) -> None:
        item = {"count": 0, "flag": False, "text": ""}
        self.assertEqual(get_path(item, "count", 9), 0)
        self.assertEqual(get_path(item, "flag", True), False)
        self.assertEqual(get_path(item, "text", "x"), "")


class TestCoercion(unittest.TestCase):
    def test_coerce_int(self) -> None:
        self.assertEqual(coerce_int(5), 5)
        self.assertEqual(coerce_int("1234"), 1234)
        self.assertEqual(coerce_int(" 7 "), 7)
        self.assertEqual(coerce_int(3.0), 3)
        self.assertEqual(coerce_int(3.5), 0)
        self.assertEqual(coerce_int(True), 0)
        self.assertEqual(coerce_int("n/a"), 0)
        self.assertEqual(coerce_int(None, 4), 4)

    def test_coerce_id(self) -> None:
        self.assertEqual(coerce_id("1850000000000000003"), "1850000000000000003")
        self.assertEqual(coerce_id(42), "42")
        self.assertEqual(coerce_id("0042"), "42")
        self.assertIsNone(coerce_id("abc"))
        self.assertIsNone(coerce_id(""))
        self.assertIsNone(coerce_id(-1))
        self.assertIsNone(coerce_id(None))

    def test_coerce_str(self) -> None:
        self.assertEqual(coerce_str("x"), "x")
        self.assertEqual(coerce_str(3), "")
        self.assertEqual(coerce_str(None, "d"), "d")


class TestParseCreatedAt(unittest.TestCase):
    def test_parses_timeline_format(self) -> None:
        dt = parse_created_at("Wed Oct 10 20:19:24 +0000 2018")
        self.assertEqual(dt, datetime(2018, 10, 10, 20, 19, 24, tzinfo=timezone.utc))

    def test_parses_iso_and_normalizes_to_utc(self) -> None:
        dt = parse_created_at("2024-05-01T09:00:00+09:00")
        self.assertEqual(dt, datetime(2024, 5, 1, 0, 0, 0, tzinfo=timezone.utc))
        self.assertEqual(
            parse_created_at("2024-05-01T00:00:00Z"),
            datetime(2024, 5, 1, tzinfo=timezone.utc),
        )

    def test_returns_none_when_unparseable(self) -> None:
        self.assertIsNone(parse_created_at("yesterday"))
        self.assertIsNone(parse_created_at(None))
        self.assertIsNone(parse_created_at(""))


if __name__ == "__main__":
    unittest.main()
