"""Paged retrieval of ranked lists from the Last.fm API."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Generic, List, Mapping, Optional, Tuple, Type, TypeVar

import requests

from .config import LASTFM_PAGE_CAP, USER_AGENT, CollageConfig
from .errors import (
    CollageCancelled,
    DecodeFailed,
    FetchFailed,
    NoImageFound,
    UserNotFound,
    scrub_api_key,
)
from .models import Period

logger = logging.getLogger("scrobble_collage")


def _parse_images(raw: Any) -> Dict[str, str]:
    images: Dict[str, str] = {}
    for image in raw or []:
        size = image.get("size", "")
        link = image.get("#text", "")
        if size and link:
            images[size] = link
    return images


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class LastfmAlbum:
    name: str
    artist: str
    playcount: str
    mbid: str = ""
    url: str = ""
    images: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "LastfmAlbum":
        artist = data.get("artist") or {}
        return cls(
            name=data.get("name", ""),
            artist=artist.get("name", "") if isinstance(artist, dict) else str(artist),
            playcount=str(data.get("playcount", "")),
            mbid=data.get("mbid", "") or "",
            url=data.get("url", "") or "",
            images=_parse_images(data.get("image")),
        )


@dataclass
class LastfmArtist:
    name: str
    playcount: str
    mbid: str = ""
    url: str = ""
    images: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "LastfmArtist":
        return cls(
            name=data.get("name", ""),
            playcount=str(data.get("playcount", "")),
            mbid=data.get("mbid", "") or "",
            url=data.get("url", "") or "",
            images=_parse_images(data.get("image")),
        )


@dataclass
class LastfmTrack:
    name: str
    artist: str
    playcount: str
    mbid: str = ""
    url: str = ""
    images: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "LastfmTrack":
        artist = data.get("artist") or {}
        return cls(
            name=data.get("name", ""),
            artist=artist.get("name", "") if isinstance(artist, dict) else str(artist),
            playcount=str(data.get("playcount", "")),
            mbid=data.get("mbid", "") or "",
            url=data.get("url", "") or "",
            images=_parse_images(data.get("image")),
        )


R = TypeVar("R")
P = TypeVar("P", bound="PageResult[Any]")


@dataclass
class PageResult(Generic[R]):
    """One decoded page of a ranked list, or the running aggregate of several."""

    METHOD: ClassVar[str] = ""
    ENVELOPE: ClassVar[str] = ""
    RECORD_KEY: ClassVar[str] = ""

    items: List[R] = field(default_factory=list)
    page: int = 0
    total_pages: int = 0
    total: int = 0

    @classmethod
    def parse_record(cls, data: Mapping[str, Any]) -> R:
        raise NotImplementedError

    @classmethod
    def from_json(cls: Type[P], payload: Any) -> P:
        """Decode a page envelope; raises ``DecodeFailed`` when it is malformed."""
        try:
            envelope = payload[cls.ENVELOPE]
            records = envelope.get(cls.RECORD_KEY, [])
            if isinstance(records, dict):
                # a single-item page comes back as an object, not a list
                records = [records]
            attr = envelope.get("@attr", {})
            return cls(
                items=[cls.parse_record(record) for record in records],
                page=_as_int(attr.get("page")),
                total_pages=_as_int(attr.get("totalPages")),
                total=_as_int(attr.get("total")),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise DecodeFailed(f"Malformed {cls.METHOD} response: {exc!r}") from exc

    def append(self: P, other: P) -> None:
        self.items.extend(other.items)
        self.page = other.page
        self.total_pages = other.total_pages
        self.total = other.total

    @property
    def total_fetched(self) -> int:
        return len(self.items)


@dataclass
class TopAlbumsPage(PageResult[LastfmAlbum]):
    METHOD: ClassVar[str] = "user.gettopalbums"
    ENVELOPE: ClassVar[str] = "topalbums"
    RECORD_KEY: ClassVar[str] = "album"

    @classmethod
    def parse_record(cls, data: Mapping[str, Any]) -> LastfmAlbum:
        return LastfmAlbum.from_json(data)


@dataclass
class TopArtistsPage(PageResult[LastfmArtist]):
    METHOD: ClassVar[str] = "user.gettopartists"
    ENVELOPE: ClassVar[str] = "topartists"
    RECORD_KEY: ClassVar[str] = "artist"

    @classmethod
    def parse_record(cls, data: Mapping[str, Any]) -> LastfmArtist:
        return LastfmArtist.from_json(data)


@dataclass
class TopTracksPage(PageResult[LastfmTrack]):
    METHOD: ClassVar[str] = "user.gettoptracks"
    ENVELOPE: ClassVar[str] = "toptracks"
    RECORD_KEY: ClassVar[str] = "track"

    @classmethod
    def parse_record(cls, data: Mapping[str, Any]) -> LastfmTrack:
        return LastfmTrack.from_json(data)


class LastfmClient:
    """Thin wrapper around the Last.fm REST endpoint."""

    def __init__(
        self,
        config: CollageConfig,
        session: Optional[requests.Session] = None,
        page_cap: int = LASTFM_PAGE_CAP,
    ) -> None:
        self.endpoint = config.lastfm_endpoint
        self.api_key = config.lastfm_api_key
        self.timeout = config.request_timeout
        self.page_cap = page_cap
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def _get(self, params: Dict[str, Any]) -> requests.Response:
        query = dict(params, api_key=self.api_key, format="json")
        start = time.perf_counter()
        try:
            response = self.session.get(self.endpoint, params=query, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchFailed(scrub_api_key(f"Last.fm request failed: {exc}")) from None
        logger.debug(
            "Last.fm %s completed in %.2fs (status=%s)",
            params.get("method"),
            time.perf_counter() - start,
            response.status_code,
        )
        return response

    def fetch_page(
        self,
        page_type: Type[P],
        username: str,
        period: Period,
        limit: int,
        page: int,
    ) -> P:
        response = self._get(
            {
                "method": page_type.METHOD,
                "user": username,
                "period": Period(period).value,
                "limit": limit,
                "page": page,
            }
        )
        if response.status_code == 404:
            raise UserNotFound(username)
        if not 200 <= response.status_code < 300:
            raise FetchFailed(
                f"Unexpected status code {response.status_code} from {page_type.METHOD}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodeFailed(f"Invalid JSON from {page_type.METHOD}: {exc}") from exc
        if isinstance(payload, dict) and "error" in payload:
            raise FetchFailed(
                f"{page_type.METHOD} returned error {payload.get('error')}: {payload.get('message', '')}"
            )
        return page_type.from_json(payload)

    def fetch_ranked(
        self,
        page_type: Type[P],
        username: str,
        period: Period,
        count: int,
        cancel: Optional[threading.Event] = None,
    ) -> P:
        """Fetch pages sequentially until ``count`` items are aggregated.

        Paging also stops once the provider reports the current page as the
        last one, or reports no pagination at all.
        """
        logger.info("Fetching %s for %s (count=%d)", page_type.METHOD, username, count)
        result: Optional[P] = None
        total_fetched = 0
        page = 1
        while count > total_fetched:
            if cancel is not None and cancel.is_set():
                raise CollageCancelled("Cancelled while fetching ranked list")
            limit = min(count - total_fetched, self.page_cap)
            logger.debug(
                "Fetching page %d (limit=%d, fetched=%d/%d)", page, limit, total_fetched, count
            )
            current = self.fetch_page(page_type, username, period, limit, page)
            if result is None:
                result = current
            else:
                result.append(current)
            total_fetched = result.total_fetched
            if current.total_pages == page or current.total_pages == 0:
                break
            page += 1
        if result is None:
            result = page_type(page=1)
        return result

    def top_albums(
        self, username: str, period: Period, count: int, cancel: Optional[threading.Event] = None
    ) -> TopAlbumsPage:
        return self.fetch_ranked(TopAlbumsPage, username, period, count, cancel)

    def top_artists(
        self, username: str, period: Period, count: int, cancel: Optional[threading.Event] = None
    ) -> TopArtistsPage:
        return self.fetch_ranked(TopArtistsPage, username, period, count, cancel)

    def top_tracks(
        self, username: str, period: Period, count: int, cancel: Optional[threading.Event] = None
    ) -> TopTracksPage:
        return self.fetch_ranked(TopTracksPage, username, period, count, cancel)

    def track_info(self, track: str, artist: str, image_size: str) -> Tuple[str, str]:
        """Return ``(album_name, image_url)`` for a track from ``track.getInfo``."""
        response = self._get({"method": "track.getInfo", "track": track, "artist": artist})
        if response.status_code == 404:
            raise NoImageFound(f"Track not found: {artist} - {track}")
        if response.status_code != 200:
            raise FetchFailed(f"Unexpected status code {response.status_code} from track.getInfo")
        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodeFailed(f"Invalid JSON from track.getInfo: {exc}") from exc
        album = (payload.get("track") or {}).get("album") or {}
        image_url = _parse_images(album.get("image")).get(image_size, "")
        if not image_url:
            raise NoImageFound(f"No {image_size} image for {artist} - {track}")
        return album.get("title", ""), image_url
