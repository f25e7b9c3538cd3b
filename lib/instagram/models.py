"""
Instagram 投稿解決のデータモデル。
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


UNKNOWN_METHOD = "unknown"


class ExtractionMethod(str, Enum):
    """
    抽出戦略の名前。
    優先順位: STRUCTURED > DOM > REGEX
    """
    STRUCTURED = "structured"   # 埋め込み JSON (_sharedData / additionalData / ld+json)
    DOM = "dom"                 # meta タグ / <video src>
    REGEX = "regex"             # 生 HTML へのリテラルパターン


class FetchStatus(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    ACCESS_DENIED = "access_denied"
    REJECTED = "rejected"
    NETWORK_ERROR = "network_error"


class ExtractionStatus(str, Enum):
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class PostReference:
    """正規化済みの投稿 URL（キャッシュキー兼取得先）。"""
    url: str
    shortcode: str
    kind: str  # "p" | "reel"


@dataclass(frozen=True)
class VideoDetails:
    """
    戦略間で共有される抽出結果。

    フィールドは一度埋まったら上書きしない（first-writer-wins）。
    merge() は新しいインスタンスを返す純粋関数。
    """
    video_url: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration_ms: int = 0
    is_stream: bool = True
    extraction_method: str = UNKNOWN_METHOD

    def is_complete(self) -> bool:
        return all(_present(v) for v in (self.video_url, self.title, self.author, self.thumbnail_url))

    def is_partial(self) -> bool:
        return any(_present(v) for v in (self.video_url, self.title, self.author, self.thumbnail_url))

    def merge(self, candidate: VideoDetails) -> VideoDetails:
        """Fill only the fields still missing here from *candidate*."""
        merged = replace(
            self,
            video_url=self.video_url if _present(self.video_url) else _clean(candidate.video_url),
            title=self.title if _present(self.title) else _clean(candidate.title),
            author=self.author if _present(self.author) else _clean(candidate.author),
            thumbnail_url=self.thumbnail_url if _present(self.thumbnail_url) else _clean(candidate.thumbnail_url),
        )
        if self.duration_ms == 0 and candidate.duration_ms > 0:
            merged = replace(merged, duration_ms=candidate.duration_ms, is_stream=False)
        return merged

    def contributes_to(self, current: VideoDetails) -> bool:
        """True when merging this candidate into *current* would change anything."""
        return current.merge(self) != current

    def with_method(self, method: str) -> VideoDetails:
        return replace(self, extraction_method=method)


@dataclass(frozen=True)
class FetchOutcome:
    """RequestDispatcher.fetch() の結果。"""
    status: FetchStatus
    html: Optional[str] = None
    status_code: Optional[int] = None
    reason: Optional[str] = None
    cause: Optional[BaseException] = None

    @classmethod
    def success(cls, html: str, status_code: int = 200) -> FetchOutcome:
        return cls(FetchStatus.SUCCESS, html=html, status_code=status_code)

    @classmethod
    def not_found(cls) -> FetchOutcome:
        return cls(FetchStatus.NOT_FOUND, status_code=404)

    @classmethod
    def rate_limited(cls) -> FetchOutcome:
        return cls(FetchStatus.RATE_LIMITED, status_code=429)

    @classmethod
    def access_denied(cls) -> FetchOutcome:
        return cls(FetchStatus.ACCESS_DENIED, status_code=403)

    @classmethod
    def rejected(cls, status_code: int, reason: str | None = None) -> FetchOutcome:
        return cls(FetchStatus.REJECTED, status_code=status_code, reason=reason)

    @classmethod
    def network_error(cls, cause: BaseException) -> FetchOutcome:
        return cls(FetchStatus.NETWORK_ERROR, cause=cause)


@dataclass(frozen=True)
class ExtractionOutcome:
    """ExtractionPipeline.run() の結果。"""
    status: ExtractionStatus
    details: Optional[VideoDetails] = None
    reason: Optional[str] = None

    @classmethod
    def resolved(cls, details: VideoDetails) -> ExtractionOutcome:
        return cls(ExtractionStatus.RESOLVED, details=details)

    @classmethod
    def not_found(cls) -> ExtractionOutcome:
        return cls(ExtractionStatus.NOT_FOUND)

    @classmethod
    def failed(cls, reason: str) -> ExtractionOutcome:
        return cls(ExtractionStatus.FAILED, reason=reason)


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _clean(value: Optional[str]) -> Optional[str]:
    if not _present(value):
        return None
    return value.strip()
