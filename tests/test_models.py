import unittest

from lib.instagram.json_tree import dig, dig_number, dig_str
from lib.instagram.models import VideoDetails


class VideoDetailsMergeTests(unittest.TestCase):
    def test_first_writer_wins(self):
        current = VideoDetails(author="X")
        merged = current.merge(VideoDetails(author="Y", title="T"))
        self.assertEqual(merged.author, "X")
        self.assertEqual(merged.title, "T")

    def test_merge_is_pure(self):
        current = VideoDetails(title="T")
        merged = current.merge(VideoDetails(video_url="https://cdn.example.com/v.mp4"))
        self.assertIsNone(current.video_url)
        self.assertEqual(merged.video_url, "https://cdn.example.com/v.mp4")

    def test_blank_values_count_as_missing(self):
        merged = VideoDetails(title="   ").merge(VideoDetails(title="Real"))
        self.assertEqual(merged.title, "Real")
        self.assertIsNone(VideoDetails().merge(VideoDetails(author="  ")).author)

    def test_duration_flips_stream_flag_once(self):
        merged = VideoDetails().merge(VideoDetails(duration_ms=12500, is_stream=False))
        self.assertEqual(merged.duration_ms, 12500)
        self.assertFalse(merged.is_stream)
        again = merged.merge(VideoDetails(duration_ms=99000, is_stream=False))
        self.assertEqual(again.duration_ms, 12500)

    def test_zero_duration_leaves_stream(self):
        merged = VideoDetails().merge(VideoDetails(duration_ms=0))
        self.assertTrue(merged.is_stream)

    def test_completeness(self):
        partial = VideoDetails(video_url="u", title="t", author="a")
        self.assertTrue(partial.is_partial())
        self.assertFalse(partial.is_complete())
        self.assertTrue(partial.merge(VideoDetails(thumbnail_url="th")).is_complete())
        self.assertFalse(VideoDetails().is_partial())

    def test_contributes_to(self):
        current = VideoDetails(author="X")
        self.assertFalse(VideoDetails(author="Y").contributes_to(current))
        self.assertTrue(VideoDetails(title="T").contributes_to(current))


class JsonTreeTests(unittest.TestCase):
    def setUp(self):
        self.data = {"a": {"b": [{"c": "text"}, 3.5]}, "flag": True}

    def test_nested_lookup(self):
        self.assertEqual(dig_str(self.data, "a", "b", 0, "c"), "text")
        self.assertEqual(dig_number(self.data, "a", "b", "1"), 3.5)

    def test_missing_paths_are_none(self):
        self.assertIsNone(dig(self.data, "a", "x", "y"))
        self.assertIsNone(dig(self.data, "a", "b", 5))
        self.assertIsNone(dig(self.data, "a", "b", -1))
        self.assertIsNone(dig(self.data, "a", "b", "first"))
        self.assertIsNone(dig(self.data, "a", "b", 0, "c", "deeper"))
        self.assertIsNone(dig(None, "a"))

    def test_type_guards(self):
        self.assertIsNone(dig_str(self.data, "a", "b", 1))
        self.assertIsNone(dig_number(self.data, "flag"))
        self.assertIsNone(dig_number(self.data, "a", "b", 0, "c"))

    def test_number_too_large_for_float(self):
        self.assertIsNone(dig_number({"n": 10 ** 400}, "n"))
        self.assertEqual(dig_number({"n": 10 ** 300}, "n"), 1e300)


if __name__ == "__main__":
    unittest.main()
