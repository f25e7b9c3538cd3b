from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import os
import time
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

# env-driven settings are read at import time by core / lib
load_dotenv()

from core import InstagramSourceManager, get_source_manager  # noqa: E402
from lib.instagram.track import NO_TRACK, PlayableTrack, Severity, TrackLoadError  # noqa: E402

# Basic logging configuration to ensure logger outputs appear in the terminal
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn.error")
logger.setLevel(logging.INFO)

SEVERITY_STATUS = {
    Severity.COMMON: 429,
    Severity.SUSPICIOUS: 502,
    Severity.FAULT: 500,
}


# =========================
# Pydantic models
# =========================

class TrackModel(BaseModel):
    title: str
    author: str
    length: int
    identifier: str
    is_stream: bool
    uri: str
    artwork_url: Optional[str] = None
    source_name: str = "instagram"
    extraction_method: Optional[str] = None


class TrackResponse(BaseModel):
    track: TrackModel
    encoded: str  # base64 of the compact form (playback URL only)
    meta: Optional[Dict[str, Any]] = None


class DecodeBody(BaseModel):
    encoded: str
    title: str = ""
    author: str = ""
    length: int = 0
    identifier: str = ""
    is_stream: bool = True
    artwork_url: Optional[str] = None


# =========================
# FastAPI app & CORS
# =========================

app = FastAPI(
    title="Instagram Track Resolver",
    version="1.0.0",
)


@app.on_event("startup")
def _init_source_manager():
    app.state.manager = get_source_manager()
    logger.info("instagram-track-resolver: startup event triggered")


@app.on_event("shutdown")
def _shutdown_source_manager():
    manager = getattr(app.state, "manager", None)
    if manager is not None:
        manager.shutdown()


default_origins = [
    "http://localhost:3000",
]

# 環境変数 ALLOWED_ORIGINS があればそれを優先（カンマ区切り）
env_origins = os.getenv("ALLOWED_ORIGINS")
if env_origins:
    origins = [o.strip() for o in env_origins.split(",") if o.strip()]
else:
    origins = default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================
# Health check
# =========================

@app.get("/health", tags=["system"])
def health() -> Dict[str, Any]:
    return {
        "ok": True,
        "status": "ok",
        "build_commit": os.getenv("RENDER_GIT_COMMIT", "local")[:7],
    }


@app.get("/", tags=["system"])
def root() -> Dict[str, Any]:
    return {"ok": True, "status": "ok"}


# =========================
# Core helpers
# =========================

def _sanitize_url(raw: str) -> str:
    """
    Basic server-side URL sanitization: trim whitespace, strip surrounding
    angle brackets and surrounding single/double quotes.
    """
    if not raw:
        return raw
    s = raw.strip()
    if s.startswith('<') and s.endswith('>'):
        s = s[1:-1].strip()
    s = s.strip('\'"')
    return s


def _get_manager(request: Request) -> InstagramSourceManager:
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        manager = get_source_manager()
        request.app.state.manager = manager
    return manager


def _track_response(manager: InstagramSourceManager, track: PlayableTrack, meta: Dict[str, Any]) -> Dict[str, Any]:
    encoded = base64.b64encode(manager.encode_track(track)).decode("ascii")
    return {"track": track.to_dict(), "encoded": encoded, "meta": meta}


# =========================
# Endpoints
# =========================

@app.get("/api/track", response_model=TrackResponse)
async def get_track(
    request: Request,
    url: str = Query(..., description="Instagram post or reel URL"),
):
    t0_total = time.time()
    clean_url = _sanitize_url(url)
    manager = _get_manager(request)

    try:
        item = await asyncio.to_thread(manager.load_item, clean_url)
    except TrackLoadError as e:
        logger.error(f"[api/track] {e.severity.value} error for url={clean_url}: {e} meta={e.meta}")
        raise HTTPException(status_code=SEVERITY_STATUS[e.severity], detail={
            "error": e.message,
            "severity": e.severity.value,
            "cause": str(e.cause) if e.cause else None,
            "url": clean_url,
        })

    total_ms = (time.time() - t0_total) * 1000
    if item is None:
        raise HTTPException(status_code=422, detail={"error": "Unsupported URL", "url": clean_url})
    if item is NO_TRACK:
        raise HTTPException(status_code=404, detail={"error": "No track found", "url": clean_url})

    logger.info(
        f"[PERF] url_len={len(clean_url)} cache_size={len(manager.cache)} "
        f"total_api_ms={total_ms:.1f} method={item.extraction_method}"
    )
    return _track_response(manager, item, {"total_api_ms": float(total_ms)})


@app.post("/api/track/decode", response_model=TrackModel)
def decode_track(body: DecodeBody, request: Request):
    """Rebuild a track from its compact form plus caller-supplied metadata."""
    manager = _get_manager(request)
    try:
        data = base64.b64decode(body.encoded, validate=True)
        track = manager.decode_track(body.model_dump(exclude={"encoded"}), data)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Failed to decode track: {e}")
    return track.to_dict()


# =========================
# Local dev entrypoint
# =========================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
