"""Playable track descriptor, error taxonomy and the compact track codec."""
from __future__ import annotations

import copy
import io
import logging
import struct
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Dict, Iterator, Optional, Protocol

import httpx

from lib.instagram.models import PostReference, VideoDetails

logger = logging.getLogger(__name__)

SOURCE_NAME = "instagram"
MAX_UTF_LENGTH = 0xFFFF
STREAM_CHUNK_SIZE = 64 * 1024


class Severity(str, Enum):
    COMMON = "common"           # expected / recoverable (e.g. rate limit)
    SUSPICIOUS = "suspicious"   # likely an upstream change or refusal
    FAULT = "fault"             # our bug


class TrackLoadError(Exception):
    """Classified load failure surfaced to the caller."""

    def __init__(
        self,
        message: str,
        severity: Severity,
        cause: BaseException | None = None,
        meta: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.cause = cause
        self.meta = meta or {}


class NoTrack:
    """Sentinel: the post does not exist (or could not be parsed)."""

    _instance: Optional[NoTrack] = None

    def __new__(cls) -> NoTrack:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_TRACK"

    def __copy__(self) -> NoTrack:
        return self

    def __deepcopy__(self, memo: dict) -> NoTrack:
        return self


NO_TRACK = NoTrack()


class StreamProvider(Protocol):
    """Produce a playable byte stream given a resolved media URL."""

    def open(self, url: str, offset: int = 0) -> Iterator[bytes]:
        ...


class HttpStreamProvider:
    """Ranged HTTP GET over httpx; bytes are yielded as they arrive."""

    def __init__(self, client: httpx.Client | None = None, timeout: float = 30.0):
        self.client = client or httpx.Client(follow_redirects=True, timeout=httpx.Timeout(timeout))

    def open(self, url: str, offset: int = 0) -> Iterator[bytes]:
        headers = {"Range": f"bytes={offset}-"} if offset > 0 else {}
        with self.client.stream("GET", url, headers=headers) as resp:
            resp.raise_for_status()
            for chunk in resp.iter_bytes(STREAM_CHUNK_SIZE):
                yield chunk

    def close(self) -> None:
        self.client.close()


@dataclass
class PlayableTrack:
    title: str
    author: str
    length: int
    identifier: str
    is_stream: bool
    uri: str
    artwork_url: Optional[str] = None
    source_name: str = SOURCE_NAME
    extraction_method: Optional[str] = None
    provider: Optional[StreamProvider] = field(default=None, repr=False, compare=False)

    @property
    def stream_url(self) -> str:
        return self.uri

    def make_clone(self) -> PlayableTrack:
        return copy.copy(self)

    def open_stream(self, offset: int = 0) -> Iterator[bytes]:
        if self.provider is None:
            raise RuntimeError(f"no stream provider attached to {self.identifier}")
        return self.provider.open(self.uri, offset)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "length": self.length,
            "identifier": self.identifier,
            "is_stream": self.is_stream,
            "uri": self.uri,
            "artwork_url": self.artwork_url,
            "source_name": self.source_name,
            "extraction_method": self.extraction_method,
        }


class TrackFactory:
    """Builds tracks and picks the stream provider per source."""

    def __init__(self, providers: Dict[str, StreamProvider] | None = None):
        self.providers: Dict[str, StreamProvider] = dict(providers or {})
        self._lock = threading.Lock()

    def provider_for(self, source_name: str) -> StreamProvider:
        # lookups run concurrently; only one client may be created per source
        with self._lock:
            provider = self.providers.get(source_name)
            if provider is None:
                provider = HttpStreamProvider()
                self.providers[source_name] = provider
            return provider

    def build(self, details: VideoDetails, reference: PostReference) -> PlayableTrack:
        return PlayableTrack(
            title=details.title or "",
            author=details.author or "",
            length=details.duration_ms,
            identifier=reference.url,
            is_stream=details.is_stream,
            uri=details.video_url or "",
            artwork_url=details.thumbnail_url,
            extraction_method=details.extraction_method,
            provider=self.provider_for(SOURCE_NAME),
        )

    def encode(self, track: PlayableTrack) -> bytes:
        return encode_track(track)

    def decode(self, info: Dict[str, Any], data: bytes) -> PlayableTrack:
        stream_url = read_utf(io.BytesIO(data))
        return PlayableTrack(
            title=info.get("title") or "",
            author=info.get("author") or "",
            length=int(info.get("length") or 0),
            identifier=info.get("identifier") or "",
            is_stream=bool(info.get("is_stream", True)),
            uri=stream_url,
            artwork_url=info.get("artwork_url"),
            source_name=info.get("source_name") or SOURCE_NAME,
            provider=self.provider_for(info.get("source_name") or SOURCE_NAME),
        )

    def close(self) -> None:
        with self._lock:
            providers = list(self.providers.values())
        for provider in providers:
            close = getattr(provider, "close", None)
            if close is not None:
                close()


# =========================
# Compact codec (DataOutput.writeUTF layout)
# =========================

def encode_track(track: PlayableTrack) -> bytes:
    buf = io.BytesIO()
    write_utf(buf, track.stream_url)
    return buf.getvalue()


def write_utf(stream: BinaryIO, text: str) -> None:
    """2-byte big-endian length + modified UTF-8 body."""
    body = _encode_modified_utf8(text)
    if len(body) > MAX_UTF_LENGTH:
        raise ValueError(f"encoded string too long: {len(body)} bytes")
    stream.write(struct.pack(">H", len(body)))
    stream.write(body)


def read_utf(stream: BinaryIO) -> str:
    header = stream.read(2)
    if len(header) != 2:
        raise ValueError("truncated length prefix")
    (length,) = struct.unpack(">H", header)
    body = stream.read(length)
    if len(body) != length:
        raise ValueError(f"truncated body: expected {length} bytes, got {len(body)}")
    return _decode_modified_utf8(body)


def _encode_modified_utf8(text: str) -> bytes:
    raw = text.encode("utf-16-be", "surrogatepass")
    out = bytearray()
    for i in range(0, len(raw), 2):
        unit = (raw[i] << 8) | raw[i + 1]
        if 0x0001 <= unit <= 0x007F:
            out.append(unit)
        elif unit <= 0x07FF:
            out.append(0xC0 | (unit >> 6))
            out.append(0x80 | (unit & 0x3F))
        else:
            out.append(0xE0 | (unit >> 12))
            out.append(0x80 | ((unit >> 6) & 0x3F))
            out.append(0x80 | (unit & 0x3F))
    return bytes(out)


def _decode_modified_utf8(body: bytes) -> str:
    units = bytearray()
    i = 0
    while i < len(body):
        b = body[i]
        if b < 0x80:
            unit = b
            i += 1
        elif b & 0xE0 == 0xC0:
            if i + 1 >= len(body) or body[i + 1] & 0xC0 != 0x80:
                raise ValueError(f"malformed input around byte {i}")
            unit = ((b & 0x1F) << 6) | (body[i + 1] & 0x3F)
            i += 2
        elif b & 0xF0 == 0xE0:
            if i + 2 >= len(body) or body[i + 1] & 0xC0 != 0x80 or body[i + 2] & 0xC0 != 0x80:
                raise ValueError(f"malformed input around byte {i}")
            unit = ((b & 0x0F) << 12) | ((body[i + 1] & 0x3F) << 6) | (body[i + 2] & 0x3F)
            i += 3
        else:
            raise ValueError(f"malformed input around byte {i}")
        units += struct.pack(">H", unit)
    return units.decode("utf-16-be", "surrogatepass")
