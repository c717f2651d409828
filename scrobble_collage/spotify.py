"""Spotify search used as a fallback source for track artwork."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional, Tuple

import requests

from .config import USER_AGENT
from .errors import DecodeFailed, FetchFailed, NoImageFound

logger = logging.getLogger("scrobble_collage")

TOKEN_URL = "https://accounts.spotify.com/api/token"
SEARCH_URL = "https://api.spotify.com/v1/search"
# Refresh slightly before the provider's stated expiry
TOKEN_EXPIRY_MARGIN = 60.0


class SpotifyClient:
    """Client-credentials Spotify client with a lazily refreshed token."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def _access_token(self) -> str:
        with self._lock:
            if self._token and time.monotonic() < self._expires_at:
                return self._token
            try:
                resp = self.session.post(
                    TOKEN_URL,
                    data={"grant_type": "client_credentials"},
                    auth=(self.client_id, self.client_secret),
                    headers={"User-Agent": USER_AGENT},
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                raise FetchFailed(f"Spotify authentication failed: {exc}") from exc
            if resp.status_code != 200:
                raise FetchFailed(f"Spotify authentication failed with status {resp.status_code}")
            try:
                payload = resp.json()
                self._token = payload["access_token"]
                expires_in = float(payload.get("expires_in", 3600))
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                raise DecodeFailed(f"Malformed Spotify token response: {exc!r}") from exc
            self._expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0.0)
            logger.debug("Obtained Spotify token valid for %.0fs", expires_in)
            return self._token

    def search_track(self, track: str, artist: str) -> Tuple[str, str]:
        """Return ``(album_name, image_url)`` for the best match of a track."""
        token = self._access_token()
        try:
            resp = self.session.get(
                SEARCH_URL,
                params={"q": f"track:{track} artist:{artist}", "type": "track", "limit": 1},
                headers={"Authorization": f"Bearer {token}", "User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise FetchFailed(f"Spotify search failed: {exc}") from exc
        if resp.status_code != 200:
            raise FetchFailed(f"Spotify search failed with status {resp.status_code}")

        try:
            items = (resp.json().get("tracks") or {}).get("items") or []
        except (ValueError, AttributeError) as exc:
            raise DecodeFailed(f"Malformed Spotify search response: {exc!r}") from exc
        if not items:
            raise NoImageFound(f"No Spotify match for {artist} - {track}")
        album = items[0].get("album") or {}
        images = sorted(
            album.get("images") or [],
            key=lambda image: image.get("width") or 0,
            reverse=True,
        )
        if not images or not images[0].get("url"):
            raise NoImageFound(f"Spotify match for {artist} - {track} has no artwork")
        return album.get("name", ""), images[0]["url"]
