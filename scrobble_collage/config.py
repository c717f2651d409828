"""Configuration objects and constants for collage generation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("scrobble_collage")

DEFAULT_LASTFM_ENDPOINT = "https://ws.audioscrobbler.com/2.0/"
USER_AGENT = "scrobble-collage/0.1 (+https://github.com/scrobble-collage/scrobble-collage)"

# Image URLs stop being returned by the API at around 500 items per page
LASTFM_PAGE_CAP = 500
ARTIST_ALBUM_LOOKUP_COUNT = 500

BACKOFF_SCHEDULE = (0.2, 0.5, 1.0)
WEBP_QUALITY = 70
CELL_TEXT_INSET = 10
DEFAULT_DOWNLOAD_WORKERS = 10


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s is set to %r which is not an integer; using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s is set to %r which is not a number; using %s", name, raw, default)
        return default


@dataclass
class CollageConfig:
    """Top-level settings that control fetching, downloading and rendering."""

    lastfm_endpoint: str = DEFAULT_LASTFM_ENDPOINT
    lastfm_api_key: str = ""
    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    max_album_images: Optional[int] = None
    max_artist_images: Optional[int] = 100
    max_track_images: Optional[int] = 25
    download_workers: int = DEFAULT_DOWNLOAD_WORKERS
    request_timeout: float = 15.0
    cache_max_size: int = 10_000
    font_regular: Optional[str] = None
    font_bold: Optional[str] = None

    def __post_init__(self) -> None:
        if self.download_workers < 1:
            logger.warning(
                "download_workers must be at least 1, got %d; using %d",
                self.download_workers,
                DEFAULT_DOWNLOAD_WORKERS,
            )
            self.download_workers = DEFAULT_DOWNLOAD_WORKERS

    @property
    def spotify_enabled(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)

    @classmethod
    def from_env(cls) -> "CollageConfig":
        """Build a config from environment variables, keeping defaults for unset values."""
        defaults = cls()
        return cls(
            lastfm_endpoint=os.getenv("LASTFM_ENDPOINT") or defaults.lastfm_endpoint,
            lastfm_api_key=os.getenv("LASTFM_API_KEY", defaults.lastfm_api_key),
            spotify_client_id=os.getenv("SPOTIFY_CLIENT_ID") or None,
            spotify_client_secret=os.getenv("SPOTIFY_CLIENT_SECRET") or None,
            max_album_images=_env_int("MAX_ALBUM_IMAGES", defaults.max_album_images),
            max_artist_images=_env_int("MAX_ARTIST_IMAGES", defaults.max_artist_images),
            max_track_images=_env_int("MAX_TRACK_IMAGES", defaults.max_track_images),
            download_workers=_env_int("DOWNLOAD_WORKERS", defaults.download_workers)
            or defaults.download_workers,
            request_timeout=_env_float("REQUEST_TIMEOUT", defaults.request_timeout),
            cache_max_size=_env_int("CACHE_MAX_SIZE", defaults.cache_max_size)
            or defaults.cache_max_size,
            font_regular=os.getenv("FONT_REGULAR") or None,
            font_bold=os.getenv("FONT_BOLD") or None,
        )
