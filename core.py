#!/usr/bin/env python3
"""
Instagram の投稿 URL を再生可能なトラックに解決するコアモジュール。

reference -> cache lookup -> (miss) fetch -> extraction pipeline
          -> outcome classifier -> optional cache store -> response
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from lib.cache_manager import INSTAGRAM_CACHE_MAXSIZE, INSTAGRAM_CACHE_TTL_S, ResultCache
from lib.instagram.classifier import OutcomeClassifier, Resolution
from lib.instagram.dispatcher import RequestDispatcher
from lib.instagram.models import FetchStatus, PostReference
from lib.instagram.normalizer import INSTAGRAM_DOMAIN, is_search_identifier, normalize_post_url
from lib.instagram.pipeline import ExtractionPipeline
from lib.instagram.track import NO_TRACK, SOURCE_NAME, NoTrack, PlayableTrack, TrackFactory

# Configure logger for this module
logger = logging.getLogger(__name__)

LoadResult = Optional[Union[PlayableTrack, NoTrack]]


class InstagramSourceManager:
    """Resolve Instagram post/reel URLs into playable tracks.

    load_item() returns None for identifiers that are not ours (so another
    source can try), NO_TRACK when the post does not exist, a PlayableTrack on
    success, and raises TrackLoadError for everything else.
    """

    source_name = SOURCE_NAME

    def __init__(
        self,
        dispatcher: Optional[RequestDispatcher] = None,
        pipeline: Optional[ExtractionPipeline] = None,
        cache: Optional[ResultCache] = None,
        factory: Optional[TrackFactory] = None,
    ):
        self.dispatcher = dispatcher or RequestDispatcher()
        self.pipeline = pipeline or ExtractionPipeline()
        self.cache = cache if cache is not None else ResultCache()
        self.factory = factory or TrackFactory()
        self.classifier = OutcomeClassifier(self.factory)
        logger.info(
            f"[IG] source manager initialized (cache ttl={self.cache.ttl}s maxsize={self.cache.maxsize})"
        )

    def load_item(self, identifier: Optional[str]) -> LoadResult:
        if not identifier or not (INSTAGRAM_DOMAIN in identifier or is_search_identifier(identifier)):
            return None

        if is_search_identifier(identifier):
            logger.warning(f"[IG] search ({identifier}) is not supported; only direct post/reel URLs work")
            return NO_TRACK

        reference = normalize_post_url(identifier)
        if reference is None:
            logger.debug(f"[IG] identifier {identifier} did not match the post URL pattern")
            return None

        cached = self.cache.get(reference.url)
        if cached is not None:
            logger.debug(f"[IG] cache hit: {reference.url}")
            return cached
        logger.debug(f"[IG] cache miss: {reference.url}")

        resolution = self._resolve(reference)
        if resolution.cacheable:
            self.cache.put(reference.url, resolution.cache_value)
        return resolution.unwrap()

    def _resolve(self, reference: PostReference) -> Resolution:
        try:
            fetched = self.dispatcher.fetch(reference.url)
            if fetched.status is not FetchStatus.SUCCESS:
                return self.classifier.classify_fetch(fetched, reference)
            outcome = self.pipeline.run(fetched.html or "")
            return self.classifier.classify_extraction(outcome, reference)
        except Exception as e:
            return self.classifier.classify_exception(e, reference)

    def encode_track(self, track: PlayableTrack) -> bytes:
        return self.factory.encode(track)

    def decode_track(self, info: Dict[str, Any], data: bytes) -> PlayableTrack:
        return self.factory.decode(info, data)

    def configure_requests(self, connect_timeout: float | None = None, read_timeout: float | None = None) -> None:
        self.dispatcher.configure_timeouts(connect_timeout, read_timeout)

    def shutdown(self) -> None:
        logger.info("[IG] shutting down source manager")
        self.cache.invalidate_all()
        self.dispatcher.close()
        self.factory.close()


_default_manager: InstagramSourceManager | None = None


def get_source_manager() -> InstagramSourceManager:
    global _default_manager
    if _default_manager is None:
        _default_manager = InstagramSourceManager(
            cache=ResultCache(maxsize=INSTAGRAM_CACHE_MAXSIZE, ttl=INSTAGRAM_CACHE_TTL_S),
        )
    return _default_manager
