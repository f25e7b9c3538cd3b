"""Page fetcher with rotated browser identity and HTTP outcome classification."""
from __future__ import annotations

import logging
import os
import random
from typing import Dict, List, Optional

import requests

from lib.instagram.models import FetchOutcome

logger = logging.getLogger(__name__)

HTTP_CONNECT_TIMEOUT_S = float(os.getenv("INSTAGRAM_HTTP_CONNECT_TIMEOUT_S", "10"))
HTTP_READ_TIMEOUT_S = float(os.getenv("INSTAGRAM_HTTP_READ_TIMEOUT_S", "20"))

ACCEPT_HEADER = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
    "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
)
ACCEPT_LANGUAGE = "en-US,en;q=0.9"

IDENTITY_PROFILES: List[Dict[str, str]] = [
    {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/114.0.0.0 Safari/537.36"
        ),
        "Accept": ACCEPT_HEADER,
        "Accept-Language": ACCEPT_LANGUAGE,
    },
    {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/114.0",
        "Accept": ACCEPT_HEADER,
        "Accept-Language": ACCEPT_LANGUAGE,
    },
    {
        "User-Agent": (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/16.5 Safari/605.1.15"
        ),
        "Accept": ACCEPT_HEADER,
        "Accept-Language": ACCEPT_LANGUAGE,
    },
]


class RequestDispatcher:
    """Fetch a post page and classify the HTTP outcome.

    No retries happen here; a caller wanting retry semantics re-invokes the
    lookup.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
        connect_timeout: float = HTTP_CONNECT_TIMEOUT_S,
        read_timeout: float = HTTP_READ_TIMEOUT_S,
        profiles: Optional[List[Dict[str, str]]] = None,
    ):
        self.session = session or requests.Session()
        self.rng = rng or random.Random()
        self.profiles = list(profiles or IDENTITY_PROFILES)
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    def configure_timeouts(self, connect_timeout: float | None = None, read_timeout: float | None = None) -> None:
        if connect_timeout is not None:
            self.connect_timeout = connect_timeout
        if read_timeout is not None:
            self.read_timeout = read_timeout

    def pick_identity(self) -> Dict[str, str]:
        return dict(self.rng.choice(self.profiles))

    def fetch(self, url: str) -> FetchOutcome:
        headers = self.pick_identity()
        logger.debug(f"[IG dispatch] GET {url} ua={headers.get('User-Agent')}")
        try:
            with self.session.get(
                url,
                headers=headers,
                timeout=(self.connect_timeout, self.read_timeout),
            ) as resp:
                status = resp.status_code
                if 200 <= status < 300:
                    return FetchOutcome.success(resp.text, status_code=status)

                # drain so the pooled connection can be reused
                _ = resp.content
                logger.warning(f"[IG dispatch] request failed: {status} {resp.reason} url={url}")
                if status == 404:
                    return FetchOutcome.not_found()
                if status == 429:
                    return FetchOutcome.rate_limited()
                if status == 403:
                    return FetchOutcome.access_denied()
                return FetchOutcome.rejected(status, resp.reason)
        except requests.RequestException as e:
            logger.error(f"[IG dispatch] network error url={url}: {e}")
            return FetchOutcome.network_error(e)

    def close(self) -> None:
        self.session.close()
