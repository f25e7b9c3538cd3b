"""
抽出パイプライン: 戦略を固定順で適用し、first-writer-wins でマージする。

順番:
1. StructuredDataExtractor（埋め込み JSON）
2. DomMetaExtractor（meta タグ）          ... 未完成のときだけ
3. RegexFallbackExtractor（生 HTML）      ... 1, 2 が何も見つけられなかったときだけ
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional
from urllib.parse import urlparse

from lib.instagram.extractors import (
    DomMetaExtractor,
    PageDocument,
    RegexFallbackExtractor,
    StructuredDataExtractor,
)
from lib.instagram.models import UNKNOWN_METHOD, ExtractionOutcome, VideoDetails
from lib.instagram.normalizer import unescape_url

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Instagram Video"
DEFAULT_AUTHOR = "Unknown Artist"


class ExtractionPipeline:
    def __init__(
        self,
        structured: Optional[StructuredDataExtractor] = None,
        dom: Optional[DomMetaExtractor] = None,
        regex: Optional[RegexFallbackExtractor] = None,
    ):
        self.structured = structured or StructuredDataExtractor()
        self.dom = dom or DomMetaExtractor()
        self.regex = regex or RegexFallbackExtractor()

    def run(self, html: str) -> ExtractionOutcome:
        if not html or not html.strip():
            return ExtractionOutcome.failed("received empty page content")

        document = PageDocument(html)
        details = self.extract_details(document)

        details = replace(
            details,
            video_url=unescape_url(details.video_url),
            thumbnail_url=unescape_url(details.thumbnail_url),
        )

        if not details.video_url:
            return ExtractionOutcome.failed("no playable media url found")
        parsed = urlparse(details.video_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc or " " in details.video_url:
            return ExtractionOutcome.failed(f"extracted media url is malformed: {details.video_url}")

        details = details.merge(VideoDetails(title=DEFAULT_TITLE, author=DEFAULT_AUTHOR))
        return ExtractionOutcome.resolved(details)

    def extract_details(self, document: PageDocument) -> VideoDetails:
        details = VideoDetails()

        details = self._apply(self.structured, document, details)
        if details.is_complete():
            return details

        details = self._apply(self.dom, document, details)
        if details.is_complete():
            return details

        if details.extraction_method == UNKNOWN_METHOD:
            logger.warning("[IG pipeline] structured/DOM extraction found nothing, falling back to regex")
            details = self._apply(self.regex, document, details)

        return details

    def _apply(self, strategy, document: PageDocument, details: VideoDetails) -> VideoDetails:
        candidate = strategy.extract(document, details)
        if candidate is None:
            logger.debug(f"[IG pipeline] {strategy.name} yielded no new data")
            return details
        merged = details.merge(candidate).with_method(strategy.name)
        if not merged.is_complete():
            logger.debug(f"[IG pipeline] partial data after {strategy.name}")
        return merged
