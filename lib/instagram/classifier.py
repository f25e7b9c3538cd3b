"""
取得結果 / 抽出結果をドメインの応答に振り分ける。

| 結果                     | 応答                       | キャッシュ         |
|--------------------------|----------------------------|--------------------|
| RESOLVED                 | PlayableTrack              | する               |
| NOT_FOUND (404)          | NO_TRACK                   | する               |
| FAILED (scraping)        | SUSPICIOUS エラー          | NO_TRACK として    |
| RATE_LIMITED (429)       | COMMON エラー              | しない             |
| ACCESS_DENIED / REJECTED | SUSPICIOUS エラー          | しない             |
| NETWORK_ERROR            | SUSPICIOUS エラー (cause)  | しない             |
| 想定外の例外             | FAULT エラー (cause)       | しない             |
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from lib.instagram.models import (
    ExtractionOutcome,
    ExtractionStatus,
    FetchOutcome,
    FetchStatus,
    PostReference,
)
from lib.instagram.track import (
    NO_TRACK,
    NoTrack,
    PlayableTrack,
    Severity,
    TrackFactory,
    TrackLoadError,
)

logger = logging.getLogger(__name__)

LoadedItem = Union[PlayableTrack, NoTrack]


class ScrapingError(Exception):
    """Page fetched, but no strategy produced a usable media URL."""


@dataclass(frozen=True)
class Resolution:
    item: Optional[LoadedItem] = None
    error: Optional[TrackLoadError] = None
    cache_value: Optional[LoadedItem] = None

    @property
    def cacheable(self) -> bool:
        return self.cache_value is not None

    def unwrap(self) -> LoadedItem:
        if self.error is not None:
            raise self.error from self.error.cause
        return self.item


class OutcomeClassifier:
    def __init__(self, factory: Optional[TrackFactory] = None):
        self.factory = factory or TrackFactory()

    def classify_fetch(self, outcome: FetchOutcome, reference: PostReference) -> Resolution:
        """Non-success fetch outcomes; SUCCESS must go through the pipeline instead."""
        status = outcome.status
        meta = {"url": reference.url, "status_code": outcome.status_code}

        if status is FetchStatus.NOT_FOUND:
            return self.classify_extraction(ExtractionOutcome.not_found(), reference)
        if status is FetchStatus.RATE_LIMITED:
            return Resolution(error=TrackLoadError(
                "Instagram rate limit exceeded. Try again later.", Severity.COMMON, meta=meta,
            ))
        if status is FetchStatus.ACCESS_DENIED:
            return Resolution(error=TrackLoadError(
                "Access denied by Instagram (403). May require login or different approach.",
                Severity.SUSPICIOUS,
                meta=meta,
            ))
        if status is FetchStatus.REJECTED:
            reason = f" {outcome.reason}" if outcome.reason else ""
            return Resolution(error=TrackLoadError(
                f"Instagram rejected the request: {outcome.status_code}{reason}",
                Severity.SUSPICIOUS,
                meta=meta,
            ))
        if status is FetchStatus.NETWORK_ERROR:
            logger.error(f"[IG classify] network error loading {reference.url}: {outcome.cause}")
            return Resolution(error=TrackLoadError(
                "Failed to retrieve Instagram video details due to network issue.",
                Severity.SUSPICIOUS,
                cause=outcome.cause,
                meta=meta,
            ))
        raise ValueError(f"fetch outcome {status.value} is not an error outcome")

    def classify_extraction(self, outcome: ExtractionOutcome, reference: PostReference) -> Resolution:
        if outcome.status is ExtractionStatus.RESOLVED:
            track = self.factory.build(outcome.details, reference)
            logger.info(
                f"[IG classify] resolved via {track.extraction_method}: "
                f"title='{track.title}' author='{track.author}' uri='{track.uri}'"
            )
            return Resolution(item=track, cache_value=track)

        if outcome.status is ExtractionStatus.NOT_FOUND:
            return Resolution(item=NO_TRACK, cache_value=NO_TRACK)

        # scraping failure: surfaced, but cached as NO_TRACK until the TTL runs out
        cause = ScrapingError(f"{outcome.reason} ({reference.url})")
        logger.warning(f"[IG classify] scraping failed for {reference.url}: {outcome.reason}")
        return Resolution(
            error=TrackLoadError(
                "Could not extract video information. Instagram's structure may have changed.",
                Severity.SUSPICIOUS,
                cause=cause,
                meta={"url": reference.url, "reason": outcome.reason},
            ),
            cache_value=NO_TRACK,
        )

    def classify_exception(self, exc: Exception, reference: PostReference) -> Resolution:
        logger.error(f"[IG classify] unexpected error loading {reference.url}: {exc}", exc_info=exc)
        return Resolution(error=TrackLoadError(
            "An unexpected error occurred while loading the Instagram video.",
            Severity.FAULT,
            cause=exc,
            meta={"url": reference.url},
        ))
