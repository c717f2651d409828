"""Normalization of ranked-list records into drawable collage items."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Tuple

from .cache import ImageUrlCache
from .config import ARTIST_ALBUM_LOOKUP_COUNT, CollageConfig
from .errors import CollageCancelled, CollageError, NoImageFound, TooManyImages
from .lastfm import LastfmClient, LastfmTrack
from .models import AlbumItem, ArtistItem, CollageType, ImageSize, Period, TrackItem
from .spotify import SpotifyClient

logger = logging.getLogger("scrobble_collage")


def check_ceiling(collage_type: CollageType, count: int, config: CollageConfig) -> None:
    """Reject requests whose size exceeds the ceiling for their list type."""
    limit = {
        CollageType.ALBUM: config.max_album_images,
        CollageType.ARTIST: config.max_artist_images,
        CollageType.TRACK: config.max_track_images,
    }[CollageType(collage_type)]
    if limit is not None and count > limit:
        raise TooManyImages(CollageType(collage_type).value, count, limit)


def get_albums(
    client: LastfmClient,
    username: str,
    period: Period,
    count: int,
    image_size: ImageSize,
    cancel: Optional[threading.Event] = None,
) -> List[AlbumItem]:
    result = client.top_albums(username, period, count, cancel)
    return [
        AlbumItem(
            name=album.name,
            artist=album.artist,
            playcount=album.playcount,
            mbid=album.mbid,
            image_size=image_size.name,
            image_url=album.images.get(image_size.name, ""),
        )
        for album in result.items[:count]
    ]


def _artist_key(name: str) -> str:
    return name.strip().casefold()


def get_artists(
    client: LastfmClient,
    username: str,
    period: Period,
    count: int,
    image_size: ImageSize,
    cancel: Optional[threading.Event] = None,
) -> List[ArtistItem]:
    """Build artist items, back-filling artwork from the user's top albums.

    Artist records carry no usable artwork, so each artist takes the cover of
    their most played album. Albums arrive ordered by play count, so the first
    album seen for an artist wins.
    """
    artists = client.top_artists(username, period, count, cancel)
    albums = client.top_albums(username, period, ARTIST_ALBUM_LOOKUP_COUNT, cancel)

    covers: Dict[str, str] = {}
    for album in albums.items:
        url = album.images.get(image_size.name, "")
        key = _artist_key(album.artist)
        if url and key not in covers:
            covers[key] = url

    items = [
        ArtistItem(
            name=artist.name,
            playcount=artist.playcount,
            mbid=artist.mbid,
            url=artist.url,
            image_size=image_size.name,
            image_url=covers.get(_artist_key(artist.name), ""),
        )
        for artist in artists.items[:count]
    ]
    missing = sum(1 for item in items if not item.image_url)
    if missing:
        logger.info("%d/%d artists have no album artwork", missing, len(items))
    return items


class TrackResolver:
    """Resolves artwork for tracks via ``track.getInfo`` with a Spotify fallback."""

    def __init__(
        self,
        client: LastfmClient,
        cache: ImageUrlCache,
        spotify: Optional[SpotifyClient] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.spotify = spotify

    def lookup(
        self,
        track: str,
        artist: str,
        image_size: ImageSize,
        cancel: Optional[threading.Event] = None,
    ) -> Tuple[str, str]:
        try:
            return self.client.track_info(track, artist, image_size.name)
        except CollageError as exc:
            logger.warning("Last.fm has no artwork for %s - %s: %s", artist, track, exc)
        if cancel is not None and cancel.is_set():
            raise CollageCancelled("Cancelled while resolving track artwork")
        if self.spotify is None:
            raise NoImageFound(f"No artwork found for {artist} - {track}")
        try:
            return self.spotify.search_track(track, artist)
        except CollageError as exc:
            logger.warning("Spotify has no artwork for %s - %s: %s", artist, track, exc)
        raise NoImageFound(f"No artwork found for {artist} - {track}")

    def resolve(
        self,
        item: TrackItem,
        image_size: ImageSize,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        """Fill in ``image_url`` and ``album``; returns whether the cache answered.

        Once ``cancel`` is set the item is left untouched and no lookup is made.
        """
        if cancel is not None and cancel.is_set():
            return False
        entry = self.cache.get(item.identifier())
        if entry is not None:
            item.image_url = entry.url
            item.album = entry.album
            return True
        try:
            album, url = self.lookup(item.name, item.artist, image_size, cancel)
        except CollageCancelled:
            return False
        except NoImageFound as exc:
            logger.error("%s", exc)
            return False
        item.album = album
        item.image_url = url
        return False


def get_tracks(
    client: LastfmClient,
    resolver: TrackResolver,
    username: str,
    period: Period,
    count: int,
    image_size: ImageSize,
    cancel: Optional[threading.Event] = None,
) -> List[TrackItem]:
    """Build track items, resolving each track's artwork concurrently.

    One worker per track: this is only acceptable because track collages are
    capped at a small size (see ``check_ceiling``).
    """
    result = client.top_tracks(username, period, count, cancel)
    records: List[LastfmTrack] = result.items[:count]
    items = [
        TrackItem(
            name=track.name,
            artist=track.artist,
            playcount=track.playcount,
            mbid=track.mbid,
            image_size=image_size.name,
        )
        for track in records
    ]
    if not items:
        return items
    if cancel is not None and cancel.is_set():
        raise CollageCancelled("Cancelled before resolving track artwork")

    start = time.perf_counter()
    with ThreadPoolExecutor(max_workers=len(items), thread_name_prefix="track-info") as pool:
        futures = [pool.submit(resolver.resolve, item, image_size, cancel) for item in items]
        wait(futures)
    cache_hits = 0
    for item, future in zip(items, futures):
        try:
            cache_hits += bool(future.result())
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected error resolving artwork for %s - %s", item.artist, item.name)

    if cancel is not None and cancel.is_set():
        raise CollageCancelled("Cancelled while resolving track artwork")
    logger.info(
        "Resolved track artwork for %s in %.2fs (cache hits: %d/%d)",
        username,
        time.perf_counter() - start,
        cache_hits,
        len(items),
    )
    return items
