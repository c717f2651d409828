"""High-level orchestration: ranked list in, encoded collage out."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import requests
from PIL import Image

from .cache import ImageUrlCache
from .collages import TrackResolver, check_ceiling, get_albums, get_artists, get_tracks
from .compositor import create_collage, encode_collage, load_font
from .config import CollageConfig
from .errors import CollageCancelled
from .images import ImageDownloader
from .lastfm import LastfmClient
from .models import CollageType, RankedItem, image_size_for
from .request import CollageRequest
from .spotify import SpotifyClient

logger = logging.getLogger("scrobble_collage")


@dataclass
class CollageResult:
    """The composed collage and the bytes to hand back to the caller."""

    image: Image.Image
    data: bytes
    content_type: str
    item_count: int
    fetch_seconds: float
    download_seconds: float
    render_seconds: float

    @property
    def extension(self) -> str:
        return "webp" if self.content_type == "image/webp" else "jpg"


class CollageGenerator:
    """Owns the provider clients, the artwork downloader and the shared cache.

    One instance serves many requests; nothing request-specific is stored on it.
    """

    def __init__(
        self,
        config: CollageConfig,
        cache: Optional[ImageUrlCache] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.cache = cache if cache is not None else ImageUrlCache(config.cache_max_size)
        self.session = session or requests.Session()
        self.lastfm = LastfmClient(config, session=self.session)
        spotify = None
        if config.spotify_enabled:
            spotify = SpotifyClient(
                config.spotify_client_id or "",
                config.spotify_client_secret or "",
                session=self.session,
                timeout=config.request_timeout,
            )
        self.tracks = TrackResolver(self.lastfm, self.cache, spotify)
        self.downloader = ImageDownloader(
            self.cache,
            session=self.session,
            workers=config.download_workers,
            timeout=config.request_timeout,
        )

    def fetch_items(
        self,
        request: CollageRequest,
        cancel: Optional[threading.Event] = None,
    ) -> Sequence[RankedItem]:
        check_ceiling(request.method, request.count, self.config)
        image_size = image_size_for(request.count)
        if request.method == CollageType.ARTIST:
            return get_artists(
                self.lastfm, request.username, request.period, request.count, image_size, cancel
            )
        if request.method == CollageType.TRACK:
            return get_tracks(
                self.lastfm,
                self.tracks,
                request.username,
                request.period,
                request.count,
                image_size,
                cancel,
            )
        return get_albums(
            self.lastfm, request.username, request.period, request.count, image_size, cancel
        )

    def generate(
        self,
        request: CollageRequest,
        cancel: Optional[threading.Event] = None,
    ) -> CollageResult:
        """Run the whole pipeline for one request.

        Raises a ``CollageError`` subclass for anything that aborts the
        request; per-item artwork failures only leave a blank cell.
        """
        cancel = cancel or threading.Event()
        request.validate()
        logger.info(
            "Generating %s collage for %s (%s, %dx%d)",
            request.method.value,
            request.username,
            request.period.value,
            request.rows,
            request.columns,
        )

        start = time.perf_counter()
        items = self.fetch_items(request, cancel)
        fetched = time.perf_counter()

        self.downloader.download_all(items, cancel)
        downloaded = time.perf_counter()
        if cancel.is_set():
            raise CollageCancelled("Cancelled before rendering")

        options = request.display_options()
        path = self.config.font_bold if options.bold_font else self.config.font_regular
        font = load_font(options.font_size, options.bold_font, path)
        image, webp = create_collage(items, options, font)
        data, content_type = encode_collage(image, webp)
        rendered = time.perf_counter()

        result = CollageResult(
            image=image,
            data=data,
            content_type=content_type,
            item_count=len(items),
            fetch_seconds=fetched - start,
            download_seconds=downloaded - fetched,
            render_seconds=rendered - downloaded,
        )
        logger.debug(
            "Timing for %s -> fetch: %.2fs | download: %.2fs | render: %.2fs",
            request.username,
            result.fetch_seconds,
            result.download_seconds,
            result.render_seconds,
        )
        return result
