import threading
import unittest

from lib.cache_manager import ResultCache, build_instagram_cache_key
from lib.instagram.track import NO_TRACK, PlayableTrack


class FakeTimer:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _track(identifier="https://instagram.com/p/ABC"):
    return PlayableTrack(
        title="Title",
        author="Author",
        length=12500,
        identifier=identifier,
        is_stream=False,
        uri="https://cdn.example.com/v.mp4",
        artwork_url="https://cdn.example.com/t.jpg",
    )


class ResultCacheTests(unittest.TestCase):
    def setUp(self):
        self.timer = FakeTimer()
        self.cache = ResultCache(maxsize=2, ttl=60, timer=self.timer)

    def test_key_is_versioned(self):
        self.assertTrue(build_instagram_cache_key("https://instagram.com/p/A").startswith("ig:"))
        self.assertTrue(build_instagram_cache_key("https://instagram.com/p/A").endswith("https://instagram.com/p/A"))

    def test_reads_are_independent_copies(self):
        original = _track()
        self.cache.put(original.identifier, original)
        original.title = "mutated after put"

        first = self.cache.get(original.identifier)
        second = self.cache.get(original.identifier)
        self.assertEqual(first, second)
        self.assertIsNot(first, second)
        self.assertEqual(first.title, "Title")

        first.title = "changed by caller"
        self.assertEqual(second.title, "Title")
        self.assertEqual(self.cache.get(original.identifier).title, "Title")

    def test_no_track_sentinel_is_stored_as_is(self):
        self.cache.put("https://instagram.com/p/GONE", NO_TRACK)
        self.assertIs(self.cache.get("https://instagram.com/p/GONE"), NO_TRACK)

    def test_only_terminal_results_are_cacheable(self):
        with self.assertRaises(TypeError):
            self.cache.put("https://instagram.com/p/X", RuntimeError("boom"))
        with self.assertRaises(TypeError):
            self.cache.put("https://instagram.com/p/X", None)
        self.assertEqual(len(self.cache), 0)

    def test_entries_expire_after_ttl(self):
        self.cache.put("https://instagram.com/p/A", _track())
        self.timer.now = 59
        self.assertIsNotNone(self.cache.get("https://instagram.com/p/A"))
        self.timer.now = 61
        self.assertIsNone(self.cache.get("https://instagram.com/p/A"))
        self.assertNotIn("https://instagram.com/p/A", self.cache)

    def test_capacity_evicts_least_recently_used(self):
        self.cache.put("https://instagram.com/p/A", _track())
        self.cache.put("https://instagram.com/p/B", _track())
        self.cache.put("https://instagram.com/p/C", _track())
        self.assertEqual(len(self.cache), 2)
        self.assertIsNone(self.cache.get("https://instagram.com/p/A"))
        self.assertIsNotNone(self.cache.get("https://instagram.com/p/C"))

    def test_invalidate_all(self):
        self.cache.put("https://instagram.com/p/A", NO_TRACK)
        self.cache.invalidate_all()
        self.assertEqual(len(self.cache), 0)

    def test_concurrent_writers(self):
        cache = ResultCache(maxsize=50, ttl=60)

        def writer(n):
            for i in range(200):
                cache.put(f"https://instagram.com/p/{n}-{i % 40}", _track())
                cache.get(f"https://instagram.com/p/{n}-{(i * 7) % 40}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertLessEqual(len(cache), 50)


if __name__ == "__main__":
    unittest.main()
