from __future__ import annotations

import threading

import pytest

from conftest import FakeResponse, FakeSession, album_record, lastfm_image_list, top_albums_payload
from scrobble_collage.cache import ImageUrlCache
from scrobble_collage.collages import TrackResolver, check_ceiling, get_albums, get_artists, get_tracks
from scrobble_collage.config import CollageConfig
from scrobble_collage.errors import CollageCancelled, DecodeFailed, NoImageFound, TooManyImages
from scrobble_collage.lastfm import LastfmClient
from scrobble_collage.models import EXTRA_LARGE, LARGE, CacheEntry, CollageType, Period, TrackItem
from scrobble_collage.spotify import SEARCH_URL, TOKEN_URL, SpotifyClient


def top_artists_payload(names):
    return {
        "topartists": {
            "artist": [
                {"name": name, "playcount": str(100 - i), "mbid": "", "url": f"https://last.fm/{name}"}
                for i, name in enumerate(names)
            ],
            "@attr": {"page": "1", "totalPages": "1", "total": str(len(names))},
        }
    }


def top_tracks_payload(tracks):
    return {
        "toptracks": {
            "track": [
                {"name": name, "artist": {"name": artist}, "playcount": "5", "mbid": ""}
                for name, artist in tracks
            ],
            "@attr": {"page": "1", "totalPages": "1", "total": str(len(tracks))},
        }
    }


def track_info_payload(album, url):
    return {"track": {"album": {"title": album, "image": lastfm_image_list(url)}}}


@pytest.mark.parametrize(
    "collage_type,count",
    [(CollageType.ARTIST, 121), (CollageType.TRACK, 26)],
)
def test_ceiling_rejects_oversized_requests(config, collage_type, count):
    with pytest.raises(TooManyImages) as excinfo:
        check_ceiling(collage_type, count, config)
    assert excinfo.value.status_code == 400


def test_ceiling_allows_configured_sizes(config):
    check_ceiling(CollageType.ARTIST, 100, config)
    check_ceiling(CollageType.TRACK, 25, config)
    check_ceiling(CollageType.ALBUM, 225, config)
    with pytest.raises(TooManyImages):
        check_ceiling(CollageType.ALBUM, 50, CollageConfig(max_album_images=49))


def test_albums_use_requested_size_tier(config):
    records = [
        album_record("One", "A", url="https://img.test/one.jpg"),
        album_record("Two", "B"),
    ]
    records[0]["image"] = lastfm_image_list("https://img.test/one-large.jpg", size="large")
    session = FakeSession(lambda url, params: FakeResponse(payload=top_albums_payload(records)))

    items = get_albums(LastfmClient(config, session=session), "tester", Period.OVERALL, 2, LARGE)

    assert [(item.name, item.artist) for item in items] == [("One", "A"), ("Two", "B")]
    assert items[0].image_url == "https://img.test/one-large.jpg"
    assert items[0].image_size == "large"
    assert items[1].image_url == ""


def test_artists_take_cover_of_most_played_album(config):
    albums = [
        album_record("Best", "Radiohead", url="https://img.test/best.jpg"),
        album_record("Second", "Radiohead", url="https://img.test/second.jpg"),
        album_record("Other", "björk", url="https://img.test/other.jpg"),
    ]

    def handler(url, params):
        if params["method"] == "user.gettopartists":
            return FakeResponse(payload=top_artists_payload(["Radiohead", "Björk", "Nobody"]))
        return FakeResponse(payload=top_albums_payload(albums))

    session = FakeSession(handler)
    items = get_artists(
        LastfmClient(config, session=session), "tester", Period.OVERALL, 3, EXTRA_LARGE
    )

    assert [item.image_url for item in items] == [
        "https://img.test/best.jpg",
        "https://img.test/other.jpg",
        "",
    ]
    assert items[0].parameters() == {"artist": "Radiohead", "playcount": "100"}
    album_calls = session.calls_to("user.gettopalbums")
    assert len(album_calls) == 1
    assert album_calls[0]["limit"] == 500


def lastfm_track_handler(known):
    def handler(url, params):
        if params.get("method") == "user.gettoptracks":
            return FakeResponse(payload=top_tracks_payload([("Song", "Band"), ("Rare", "Unknown")]))
        if params.get("method") == "track.getInfo":
            if params["track"] in known:
                album, image = known[params["track"]]
                return FakeResponse(payload=track_info_payload(album, image))
            return FakeResponse(status_code=404, payload={"error": 6, "message": "Track not found"})
        raise AssertionError(f"unexpected call to {url}")

    return handler


def test_tracks_resolve_album_and_artwork(config):
    session = FakeSession(lastfm_track_handler({"Song": ("Record", "https://img.test/song.jpg")}))
    client = LastfmClient(config, session=session)
    cache = ImageUrlCache()

    items = get_tracks(
        client, TrackResolver(client, cache), "tester", Period.OVERALL, 2, EXTRA_LARGE
    )

    assert [(item.name, item.album, item.image_url) for item in items] == [
        ("Song", "Record", "https://img.test/song.jpg"),
        ("Rare", "", ""),
    ]
    assert len(session.calls_to("track.getInfo")) == 2


def test_cached_track_skips_lookup(config):
    session = FakeSession(lastfm_track_handler({}))
    client = LastfmClient(config, session=session)
    cache = ImageUrlCache()
    item = TrackItem(name="Song", artist="Band", playcount="1")
    cache.set(item.identifier(), CacheEntry(url="https://img.test/cached.jpg", album="Cached"))

    assert TrackResolver(client, cache).resolve(item, EXTRA_LARGE) is True

    assert item.image_url == "https://img.test/cached.jpg"
    assert item.album == "Cached"
    assert session.calls == []


def test_spotify_fills_in_missing_track_artwork(config):
    lastfm = lastfm_track_handler({})

    def handler(url, params):
        if url == TOKEN_URL:
            return FakeResponse(payload={"access_token": "token", "expires_in": 3600})
        if url == SEARCH_URL:
            return FakeResponse(
                payload={
                    "tracks": {
                        "items": [
                            {
                                "album": {
                                    "name": "Spotify Album",
                                    "images": [
                                        {"url": "https://sp.test/64.jpg", "width": 64},
                                        {"url": "https://sp.test/640.jpg", "width": 640},
                                    ],
                                }
                            }
                        ]
                    }
                }
            )
        return lastfm(url, params)

    session = FakeSession(handler)
    client = LastfmClient(config, session=session)
    spotify = SpotifyClient("id", "secret", session=session)
    resolver = TrackResolver(client, ImageUrlCache(), spotify)
    item = TrackItem(name="Rare", artist="Unknown", playcount="1")

    assert resolver.resolve(item, EXTRA_LARGE) is False

    assert item.album == "Spotify Album"
    assert item.image_url == "https://sp.test/640.jpg"
    assert [method for method, url, _ in session.calls if url == TOKEN_URL] == ["POST"]


def test_spotify_token_is_reused(config):
    def handler(url, params):
        if url == TOKEN_URL:
            return FakeResponse(payload={"access_token": "token", "expires_in": 3600})
        return FakeResponse(payload={"tracks": {"items": []}})

    session = FakeSession(handler)
    spotify = SpotifyClient("id", "secret", session=session)
    for _ in range(3):
        with pytest.raises(NoImageFound):
            spotify.search_track("Song", "Band")

    assert len([call for call in session.calls if call[1] == TOKEN_URL]) == 1
    assert len([call for call in session.calls if call[1] == SEARCH_URL]) == 3


def test_cancel_during_ranked_fetch_skips_track_lookups(config):
    cancel = threading.Event()
    tracks = [(f"Song {index}", "Band") for index in range(25)]

    def handler(url, params):
        if params.get("method") == "user.gettoptracks":
            cancel.set()
            return FakeResponse(payload=top_tracks_payload(tracks))
        return FakeResponse(payload=track_info_payload("Record", "https://img.test/song.jpg"))

    session = FakeSession(handler)
    client = LastfmClient(config, session=session)
    resolver = TrackResolver(client, ImageUrlCache())

    with pytest.raises(CollageCancelled):
        get_tracks(client, resolver, "tester", Period.OVERALL, 25, EXTRA_LARGE, cancel)
    assert session.calls_to("track.getInfo") == []


def test_cancelled_resolve_makes_no_request(config):
    session = FakeSession(lastfm_track_handler({}))
    client = LastfmClient(config, session=session)
    cancel = threading.Event()
    cancel.set()
    item = TrackItem(name="Song", artist="Band", playcount="1")

    assert TrackResolver(client, ImageUrlCache()).resolve(item, EXTRA_LARGE, cancel) is False
    assert session.calls == []
    assert item.image_url == ""


def test_cancel_between_providers_skips_spotify(config):
    cancel = threading.Event()

    def handler(url, params):
        if params.get("method") == "track.getInfo":
            cancel.set()
            return FakeResponse(status_code=404, payload={"error": 6})
        raise AssertionError(f"unexpected call to {url}")

    session = FakeSession(handler)
    client = LastfmClient(config, session=session)
    spotify = SpotifyClient("id", "secret", session=session)
    item = TrackItem(name="Rare", artist="Unknown", playcount="1")

    assert TrackResolver(client, ImageUrlCache(), spotify).resolve(item, EXTRA_LARGE, cancel) is False
    assert [url for _, url, _ in session.calls] == ["https://lastfm.test/2.0/"]
    assert item.image_url == ""


def test_malformed_spotify_token_is_decode_failed():
    session = FakeSession(lambda url, params: FakeResponse(payload={"token_type": "Bearer"}))
    with pytest.raises(DecodeFailed):
        SpotifyClient("id", "secret", session=session).search_track("Song", "Band")


def test_non_json_spotify_responses_are_decode_failed():
    def handler(url, params):
        if url == TOKEN_URL:
            return FakeResponse(payload={"access_token": "token", "expires_in": 3600})
        return FakeResponse(content=b"<html>busy</html>")

    spotify = SpotifyClient("id", "secret", session=FakeSession(handler))
    with pytest.raises(DecodeFailed):
        spotify.search_track("Song", "Band")

    broken = SpotifyClient(
        "id", "secret", session=FakeSession(lambda url, params: FakeResponse(content=b"oops"))
    )
    with pytest.raises(DecodeFailed):
        broken.search_track("Song", "Band")


def test_malformed_spotify_response_leaves_track_without_artwork(config):
    lastfm = lastfm_track_handler({})

    def handler(url, params):
        if url == TOKEN_URL:
            return FakeResponse(content=b"not json")
        return lastfm(url, params)

    session = FakeSession(handler)
    client = LastfmClient(config, session=session)
    resolver = TrackResolver(client, ImageUrlCache(), SpotifyClient("id", "secret", session=session))
    item = TrackItem(name="Rare", artist="Unknown", playcount="1")

    assert resolver.resolve(item, EXTRA_LARGE) is False
    assert item.image_url == ""
