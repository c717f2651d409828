"""Concurrent artwork downloading and decoding."""

from __future__ import annotations

import io
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePosixPath
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import requests
from filetype import guess
from PIL import Image, UnidentifiedImageError

from .cache import ImageUrlCache
from .config import BACKOFF_SCHEDULE, USER_AGENT
from .errors import CollageCancelled
from .models import RankedItem

logger = logging.getLogger("scrobble_collage")

JPEG_EXTENSIONS = {".jpg", ".jpeg"}
GIF_EXTENSIONS = {".gif"}
PIL_FORMATS = {
    "jpg": "JPEG",
    "png": "PNG",
    "gif": "GIF",
    "webp": "WEBP",
    "bmp": "BMP",
    "tif": "TIFF",
}


class ImageAcquisitionError(Exception):
    """A retryable failure while fetching or decoding artwork."""


class ImageFetchError(ImageAcquisitionError):
    pass


class ImageDecodeError(ImageAcquisitionError):
    pass


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def get_extension(url: str) -> str:
    """Return the lowercase file extension of the last URL path segment."""
    return PurePosixPath(urlparse(url).path).suffix.lower()


def decode_image(data: bytes, extension: str) -> Image.Image:
    """Decode image bytes, picking a decoder from the URL extension.

    JPEG and GIF URLs are decoded strictly as that format; anything else is
    sniffed from its signature and falls back to Pillow's auto-detection.
    """
    if extension in JPEG_EXTENSIONS:
        formats: Optional[List[str]] = ["JPEG"]
    elif extension in GIF_EXTENSIONS:
        formats = ["GIF"]
    else:
        detected = detect_image_format(data)
        formats = [PIL_FORMATS[detected]] if detected in PIL_FORMATS else None
    try:
        with Image.open(io.BytesIO(data), formats=formats) as img:
            img.load()
            return img.convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Unable to decode image ({extension or 'no extension'}): {exc}") from exc


class ImageDownloader:
    """Downloads artwork for ranked items with a bounded worker pool.

    Failures are isolated per item: an item whose artwork cannot be fetched
    after every retry is left without an image. Only cancellation escapes.
    """

    def __init__(
        self,
        cache: ImageUrlCache,
        session: Optional[requests.Session] = None,
        workers: int = 10,
        timeout: float = 15.0,
        backoff_schedule: Sequence[float] = BACKOFF_SCHEDULE,
    ) -> None:
        self.cache = cache
        self.session = session or requests.Session()
        self.workers = workers
        self.timeout = timeout
        self.backoff_schedule = tuple(backoff_schedule)

    @property
    def max_attempts(self) -> int:
        return len(self.backoff_schedule)

    def download(self, url: str) -> Image.Image:
        try:
            resp = self.session.get(url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ImageFetchError(f"Failed to fetch {url}: {exc}") from exc
        if resp.status_code != 200:
            raise ImageFetchError(f"Unexpected status code {resp.status_code} for {url}")
        return decode_image(resp.content, get_extension(url))

    def download_with_retry(
        self,
        item: RankedItem,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        """Attach the decoded artwork to ``item``; returns whether it succeeded."""
        url = item.image_url
        if not url:
            return True
        cancel = cancel or threading.Event()

        last_error: Optional[Exception] = None
        for attempt, delay in enumerate(self.backoff_schedule, start=1):
            if cancel.is_set():
                raise CollageCancelled("Cancelled while downloading images")
            try:
                image = self.download(url)
            except ImageAcquisitionError as exc:
                last_error = exc
                logger.warning("Attempt %d/%d failed for %s: %s", attempt, self.max_attempts, url, exc)
                if cancel.wait(delay):
                    raise CollageCancelled("Cancelled during download backoff") from exc
                continue

            item.set_image(image)
            self.cache.set(item.identifier(), item.cache_entry())
            return True

        logger.error(
            "Giving up on %s after %d attempts: %s", url, self.max_attempts, last_error
        )
        return False

    def download_all(
        self,
        items: Sequence[RankedItem],
        cancel: Optional[threading.Event] = None,
    ) -> int:
        """Download artwork for every item in place; returns the number of images attached."""
        if not items:
            return 0
        cancel = cancel or threading.Event()
        start = time.perf_counter()
        cancelled = False
        attached = 0

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="artwork") as pool:
            futures = [pool.submit(self.download_with_retry, item, cancel) for item in items]
            for item, future in zip(items, futures):
                try:
                    future.result()
                except CollageCancelled:
                    cancelled = True
                except Exception:  # pylint: disable=broad-except
                    logger.exception("Unexpected error downloading %s", item.image_url)
                else:
                    if item.image is not None:
                        attached += 1

        if cancelled or cancel.is_set():
            raise CollageCancelled("Cancelled while downloading images")
        logger.info(
            "Downloaded %d/%d images in %.2fs",
            attached,
            len(items),
            time.perf_counter() - start,
        )
        return attached
