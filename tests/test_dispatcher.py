import random
import unittest
from unittest.mock import MagicMock

import requests

from lib.instagram.dispatcher import IDENTITY_PROFILES, RequestDispatcher
from lib.instagram.models import FetchStatus


def _response(status_code, text="", reason="OK"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.content = text.encode("utf-8")
    resp.reason = reason
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


def _dispatcher(resp=None, side_effect=None, seed=7):
    session = MagicMock()
    if side_effect is not None:
        session.get.side_effect = side_effect
    else:
        session.get.return_value = resp
    return RequestDispatcher(session=session, rng=random.Random(seed)), session


class RequestDispatcherTests(unittest.TestCase):
    def test_success_returns_body(self):
        resp = _response(200, "<html>post</html>")
        dispatcher, session = _dispatcher(resp)

        outcome = dispatcher.fetch("https://instagram.com/p/ABC")

        self.assertEqual(outcome.status, FetchStatus.SUCCESS)
        self.assertEqual(outcome.html, "<html>post</html>")
        resp.__exit__.assert_called_once()
        _, kwargs = session.get.call_args
        self.assertEqual(kwargs["timeout"], (dispatcher.connect_timeout, dispatcher.read_timeout))
        self.assertIn(kwargs["headers"], IDENTITY_PROFILES)

    def test_status_classification(self):
        cases = {
            404: FetchStatus.NOT_FOUND,
            429: FetchStatus.RATE_LIMITED,
            403: FetchStatus.ACCESS_DENIED,
            500: FetchStatus.REJECTED,
            301: FetchStatus.REJECTED,
        }
        for code, expected in cases.items():
            with self.subTest(code=code):
                resp = _response(code, "error page", reason="Nope")
                dispatcher, _ = _dispatcher(resp)
                outcome = dispatcher.fetch("https://instagram.com/p/ABC")
                self.assertEqual(outcome.status, expected)
                self.assertEqual(outcome.status_code, code)
                self.assertIsNone(outcome.html)
                resp.__exit__.assert_called_once()

    def test_rejected_keeps_reason(self):
        dispatcher, _ = _dispatcher(_response(503, reason="Service Unavailable"))
        outcome = dispatcher.fetch("https://instagram.com/p/ABC")
        self.assertEqual(outcome.reason, "Service Unavailable")

    def test_network_error_carries_cause(self):
        err = requests.ConnectionError("connection refused")
        dispatcher, _ = _dispatcher(side_effect=err)
        outcome = dispatcher.fetch("https://instagram.com/p/ABC")
        self.assertEqual(outcome.status, FetchStatus.NETWORK_ERROR)
        self.assertIs(outcome.cause, err)

    def test_timeout_is_a_network_error(self):
        dispatcher, _ = _dispatcher(side_effect=requests.Timeout("read timed out"))
        self.assertEqual(dispatcher.fetch("https://instagram.com/p/ABC").status, FetchStatus.NETWORK_ERROR)

    def test_identity_selection_is_seedable(self):
        a = RequestDispatcher(session=MagicMock(), rng=random.Random(1234))
        b = RequestDispatcher(session=MagicMock(), rng=random.Random(1234))
        picks_a = [a.pick_identity()["User-Agent"] for _ in range(10)]
        picks_b = [b.pick_identity()["User-Agent"] for _ in range(10)]
        self.assertEqual(picks_a, picks_b)
        for ua in picks_a:
            self.assertIn(ua, [p["User-Agent"] for p in IDENTITY_PROFILES])

    def test_configure_timeouts(self):
        dispatcher, _ = _dispatcher(_response(200, "ok"))
        dispatcher.configure_timeouts(connect_timeout=1.5)
        self.assertEqual(dispatcher.connect_timeout, 1.5)
        dispatcher.configure_timeouts(read_timeout=3)
        self.assertEqual((dispatcher.connect_timeout, dispatcher.read_timeout), (1.5, 3))


if __name__ == "__main__":
    unittest.main()
