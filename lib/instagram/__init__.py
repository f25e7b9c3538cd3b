"""
Instagram post resolution: fetching, extraction and track building.

Public API:
  - ExtractionPipeline().run(html) -> ExtractionOutcome
  - RequestDispatcher().fetch(url) -> FetchOutcome
  - OutcomeClassifier(factory) -> Resolution
  - normalize_post_url(identifier) -> PostReference | None
"""
from lib.instagram.classifier import OutcomeClassifier, Resolution, ScrapingError
from lib.instagram.dispatcher import RequestDispatcher
from lib.instagram.models import (
    ExtractionMethod,
    ExtractionOutcome,
    ExtractionStatus,
    FetchOutcome,
    FetchStatus,
    PostReference,
    VideoDetails,
)
from lib.instagram.normalizer import normalize_post_url
from lib.instagram.pipeline import ExtractionPipeline
from lib.instagram.track import (
    NO_TRACK,
    HttpStreamProvider,
    NoTrack,
    PlayableTrack,
    Severity,
    TrackFactory,
    TrackLoadError,
)

__all__ = [
    "OutcomeClassifier",
    "Resolution",
    "ScrapingError",
    "RequestDispatcher",
    "ExtractionMethod",
    "ExtractionOutcome",
    "ExtractionStatus",
    "FetchOutcome",
    "FetchStatus",
    "PostReference",
    "VideoDetails",
    "normalize_post_url",
    "ExtractionPipeline",
    "NO_TRACK",
    "HttpStreamProvider",
    "NoTrack",
    "PlayableTrack",
    "Severity",
    "TrackFactory",
    "TrackLoadError",
]
