"""
正規化ヘルパー: URL / タイトル / 作者名 / 再生時間のゆらぎを吸収する。
"""
from __future__ import annotations

import math
import re
from typing import Any, Optional
from urllib.parse import urlparse

from lib.instagram.models import PostReference


INSTAGRAM_DOMAIN = "instagram.com"
POST_URL_PATTERN = re.compile(
    r"^(?:https?://)?(?:www\.)?instagram\.com/(?P<kind>p|reel)/(?P<shortcode>[a-zA-Z0-9_-]+)/?.*$"
)
SEARCH_PREFIX_PATTERN = re.compile(r"^(issearch|igsearch):.*")

TITLE_MAX_LENGTH = 150
TITLE_TRUNCATED_LENGTH = 147

_AUTHOR_FROM_TITLE_PATTERN = re.compile(r"^(.+?)(?:\s+on Instagram:.*|\s*\(@[^)]+\))")

ISO8601_DURATION_PATTERN = re.compile(
    r"^P(?:(?P<weeks>\d+(?:\.\d+)?)W)?(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?=\d)(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)
_NUMERIC_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")


def is_search_identifier(identifier: str) -> bool:
    return bool(SEARCH_PREFIX_PATTERN.match(identifier or ""))


def normalize_post_url(identifier: str) -> Optional[PostReference]:
    """
    投稿 URL を正規化して PostReference を返す。形式外なら None。

    - scheme が無ければ https を補う
    - query / fragment / shortcode 以降のパスを落とす
    - 末尾スラッシュを落とす（キャッシュキーのゆらぎ防止）
    """
    s = (identifier or "").strip()
    match = POST_URL_PATTERN.match(s)
    if not match:
        return None

    if "://" not in s:
        s = f"https://{s}"
    parsed = urlparse(s)
    kind = match.group("kind")
    shortcode = match.group("shortcode")
    url = f"{parsed.scheme}://{parsed.netloc}/{kind}/{shortcode}"
    return PostReference(url=url, shortcode=shortcode, kind=kind)


def title_from_caption(caption: Optional[str]) -> Optional[str]:
    """
    キャプション本文からタイトルを作る:
    - 最初の改行までを使う
    - 前後の空白を削る
    - 150 文字を超えたら 147 文字 + "..."
    """
    if not caption:
        return None
    first_line = re.split(r"\r?\n", caption, maxsplit=1)[0].strip()
    if len(first_line) > TITLE_MAX_LENGTH:
        return first_line[:TITLE_TRUNCATED_LENGTH] + "..."
    return first_line


def author_from_title(title: Optional[str]) -> Optional[str]:
    """
    og:title 形式の文字列から作者名を推定する:
    - "<name> on Instagram: ..." / "<name> (@handle)" なら <name>
    - 空白を含まない 30 文字未満の文字列ならそれ自体
    - それ以外は None
    """
    if not title:
        return None
    match = _AUTHOR_FROM_TITLE_PATTERN.match(title)
    if match:
        return match.group(1).strip()
    if " " not in title and len(title) < 30:
        return title
    return None


def parse_duration_ms(value: Any) -> int:
    """
    Normalize a duration to milliseconds.

    Numbers (or numeric strings) are seconds, ISO-8601 strings like "PT1M5S"
    are decoded. Anything unparseable returns 0.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return _seconds_to_ms(value)
    if not isinstance(value, str):
        return 0

    s = value.strip()
    if _NUMERIC_PATTERN.match(s):
        return _seconds_to_ms(float(s))

    matched = ISO8601_DURATION_PATTERN.match(s.upper())
    if matched is None or s.upper() == "P":
        return 0
    weeks = float(matched.group("weeks") or 0)
    days = float(matched.group("days") or 0)
    hours = float(matched.group("hours") or 0)
    minutes = float(matched.group("minutes") or 0)
    seconds = float(matched.group("seconds") or 0)
    total_seconds = weeks * 604_800 + days * 86_400 + hours * 3_600 + minutes * 60 + seconds
    return _seconds_to_ms(total_seconds)


def _seconds_to_ms(seconds: float) -> int:
    # 範囲外（inf / 巨大な int）は「不明」と同じ扱い
    try:
        ms = float(seconds) * 1000
    except OverflowError:
        return 0
    if not math.isfinite(ms) or ms < 0:
        return 0
    return round(ms)


def unescape_url(url: Optional[str]) -> Optional[str]:
    """JSON 由来の "\\/" を "/" に戻す。"""
    if url is None:
        return None
    return url.replace("\\/", "/")
