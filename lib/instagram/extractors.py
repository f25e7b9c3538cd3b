"""
投稿 HTML からの抽出戦略。

各戦略は extract(document, current) で「まだ埋まっていないフィールド」の候補を
VideoDetails として返す。何も見つからなければ None（例外ではない）。
マージは ExtractionPipeline 側で VideoDetails.merge() により行う。
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, List, Optional

from bs4 import BeautifulSoup

from lib.instagram.json_tree import dig, dig_number, dig_str
from lib.instagram.models import ExtractionMethod, VideoDetails
from lib.instagram.normalizer import (
    author_from_title,
    parse_duration_ms,
    title_from_caption,
    unescape_url,
)

logger = logging.getLogger(__name__)

SHARED_DATA_SCRIPT_PATTERN = re.compile(
    r'<script type="text/javascript">window\._sharedData\s?=\s?(\{.*?\});</script>', re.DOTALL
)
ADDITIONAL_DATA_SCRIPT_PATTERN = re.compile(
    r"<script type=\"text/javascript\">window\.__additionalDataLoaded\('.*?',(\{.*?\})\);</script>",
    re.DOTALL,
)
VIDEO_OBJECT_MARKER = re.compile(r'"@type"\s*:\s*"VideoObject"')


class PageDocument:
    """One fetched page; the DOM is parsed lazily and shared between strategies."""

    def __init__(self, html: str):
        self.html = html or ""
        self._soup: Optional[BeautifulSoup] = None

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html, "html.parser")
        return self._soup


# =========================
# Structured data (embedded JSON)
# =========================

def _duration_candidate(value: Any) -> VideoDetails:
    duration_ms = parse_duration_ms(value)
    return VideoDetails(duration_ms=duration_ms, is_stream=duration_ms == 0)


def _shortcode_media_candidate(media: Any) -> Optional[VideoDetails]:
    """graphql.shortcode_media 形式のノードを VideoDetails に写像する。"""
    if not isinstance(media, dict):
        return None
    caption = dig_str(media, "edge_media_to_caption", "edges", 0, "node", "text")
    candidate = VideoDetails(
        video_url=dig_str(media, "video_url"),
        thumbnail_url=dig_str(media, "display_url"),
        title=title_from_caption(caption),
        author=dig_str(media, "owner", "username"),
    )
    return candidate.merge(_duration_candidate(dig_number(media, "video_duration")))


def _json_ld_candidate(root: Any) -> Optional[VideoDetails]:
    if isinstance(root, list):
        root = next(
            (item for item in root if isinstance(item, dict) and item.get("@type") == "VideoObject"),
            None,
        )
    if dig_str(root, "@type") != "VideoObject":
        return None

    thumbnail = dig(root, "thumbnailUrl")
    if isinstance(thumbnail, list):
        thumbnail = dig_str(thumbnail, 0)
    author = dig_str(root, "author", "name")
    if author is None:
        author = dig_str(root, "author", 0, "name")

    candidate = VideoDetails(
        video_url=dig_str(root, "contentUrl"),
        thumbnail_url=thumbnail if isinstance(thumbnail, str) else None,
        title=dig_str(root, "name") or title_from_caption(dig_str(root, "caption")),
        author=author,
    )
    return candidate.merge(_duration_candidate(dig_str(root, "duration")))


class StructuredDataExtractor:
    """Embedded JSON blobs, probed in fixed order until the details are complete."""

    name = ExtractionMethod.STRUCTURED.value

    def __init__(self) -> None:
        self.probes: List[Callable[[PageDocument], Optional[VideoDetails]]] = [
            self.probe_shared_data,
            self.probe_additional_data,
            self.probe_json_ld,
        ]

    def extract(self, document: PageDocument, current: VideoDetails) -> Optional[VideoDetails]:
        candidate = VideoDetails()
        for probe in self.probes:
            found = probe(document)
            if found is not None:
                candidate = candidate.merge(found)
            if current.merge(candidate).is_complete():
                break
        return candidate if candidate.contributes_to(current) else None

    def probe_shared_data(self, document: PageDocument) -> Optional[VideoDetails]:
        data = _load_script_json(document.html, SHARED_DATA_SCRIPT_PATTERN, "_sharedData")
        post_page = dig(data, "entry_data", "PostPage", 0)
        media = dig(post_page, "graphql", "shortcode_media")
        if media is None:
            media = dig(post_page, "media")
        return _shortcode_media_candidate(media)

    def probe_additional_data(self, document: PageDocument) -> Optional[VideoDetails]:
        data = _load_script_json(document.html, ADDITIONAL_DATA_SCRIPT_PATTERN, "additionalData")
        media = dig(data, "graphql", "shortcode_media")
        if media is None:
            media = dig(data, "shortcode_media")
        return _shortcode_media_candidate(media)

    def probe_json_ld(self, document: PageDocument) -> Optional[VideoDetails]:
        for script in document.soup.find_all("script", attrs={"type": "application/ld+json"}):
            text = script.string or script.get_text() or ""
            if not (VIDEO_OBJECT_MARKER.search(text) or "video_url" in text or "contentUrl" in text):
                continue
            try:
                root = json.loads(text)
            except ValueError as e:
                logger.debug(f"[IG structured] ld+json parse failed: {e}")
                continue
            candidate = _json_ld_candidate(root)
            if candidate is not None:
                return candidate
        return None


def _load_script_json(html: str, pattern: re.Pattern, label: str) -> Any:
    match = pattern.search(html)
    if not match:
        return None
    try:
        return json.loads(match.group(1))
    except ValueError as e:
        logger.debug(f"[IG structured] {label} parse failed: {e}")
        return None


# =========================
# DOM (meta tags)
# =========================

class DomMetaExtractor:
    """OpenGraph meta tags and the first <video src>."""

    name = ExtractionMethod.DOM.value

    def extract(self, document: PageDocument, current: VideoDetails) -> Optional[VideoDetails]:
        soup = document.soup

        video_url = None
        if not current.video_url:
            video_url = _meta_content(soup, "og:video", "og:video:secure_url")
            if video_url is None:
                video = soup.find("video")
                src = video.get("src") if video is not None else None
                video_url = src.strip() if isinstance(src, str) and src.strip() else None

        title = None if current.title else _meta_content(soup, "og:title")
        thumbnail_url = None if current.thumbnail_url else _meta_content(soup, "og:image", "og:image:secure_url")

        author = None
        if not current.author:
            author = author_from_title(current.title or title)
            if author is None:
                author = _meta_content(soup, "og:description")

        candidate = VideoDetails(
            video_url=video_url,
            title=title,
            author=author,
            thumbnail_url=thumbnail_url,
        )
        if current.duration_ms == 0:
            raw_duration = _meta_content(soup, "og:video:duration", "video:duration")
            if raw_duration is not None and parse_duration_ms(raw_duration) == 0:
                logger.debug(f"[IG dom] unparseable duration meta: {raw_duration}")
            candidate = candidate.merge(_duration_candidate(raw_duration))

        return candidate if candidate.contributes_to(current) else None


def _meta_content(soup: BeautifulSoup, *names: str) -> Optional[str]:
    """property= を優先し、無ければ name= で meta を探す。"""
    for name in names:
        for attr in ("property", "name"):
            meta = soup.find("meta", attrs={attr: name})
            if meta is None:
                continue
            content = meta.get("content")
            if isinstance(content, str) and content.strip():
                return content.strip()
    return None


# =========================
# Regex fallback
# =========================

VIDEO_URL_PATTERNS = [
    re.compile(r'"video_url"\s*:\s*"([^"]+)"'),
    re.compile(r'<meta\s+property="og:video(?:.*?)"\s+content="([^"]+)"'),
    re.compile(r'<video.*?src="([^"]+)".*?>'),
]
TITLE_PATTERN = re.compile(r'<meta\s+property="og:title"\s+content="([^"]+)"')
OWNER_PATTERN = re.compile(r'"owner"\s*:\s*\{\s*"username"\s*:\s*"([^"]+)"')
THUMBNAIL_PATTERNS = [
    re.compile(r'<meta\s+property="og:image(?:.*?)"\s+content="([^"]+)"'),
    re.compile(r'"display_url"\s*:\s*"([^"]+)"'),
]
DURATION_PATTERN = re.compile(r'"video_duration"\s*:\s*([\d.]+)\s*[,}]')


class RegexFallbackExtractor:
    """Literal patterns against the raw page text; last resort."""

    name = ExtractionMethod.REGEX.value

    def extract(self, document: PageDocument, current: VideoDetails) -> Optional[VideoDetails]:
        html = document.html

        video_url = None if current.video_url else _first_match(html, VIDEO_URL_PATTERNS)
        title = None if current.title else _find_match(TITLE_PATTERN, html)

        author = None
        if not current.author:
            author = author_from_title(current.title or title)
            if author is None:
                author = _find_match(OWNER_PATTERN, html)

        thumbnail_url = None if current.thumbnail_url else _first_match(html, THUMBNAIL_PATTERNS)

        candidate = VideoDetails(
            video_url=video_url,
            title=title,
            author=author,
            thumbnail_url=thumbnail_url,
        )
        if current.duration_ms == 0:
            candidate = candidate.merge(_duration_candidate(_find_match(DURATION_PATTERN, html)))

        return candidate if candidate.contributes_to(current) else None


def _find_match(pattern: re.Pattern, content: str) -> Optional[str]:
    match = pattern.search(content)
    if not match:
        return None
    return unescape_url(match.group(1))


def _first_match(content: str, patterns: List[re.Pattern]) -> Optional[str]:
    for pattern in patterns:
        found = _find_match(pattern, content)
        if found:
            return found
    return None
