from __future__ import annotations

import io
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
import requests
from PIL import Image

from scrobble_collage.config import CollageConfig


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        content: Optional[bytes] = None,
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        if content is None and payload is not None:
            content = json.dumps(payload).encode("utf-8")
        self.content = content or b""

    def json(self) -> Any:
        if self._payload is None:
            return json.loads(self.content.decode("utf-8"))
        return self._payload


Handler = Callable[[str, Dict[str, Any]], FakeResponse]


class FakeSession:
    """Stands in for ``requests.Session``; routes every call through ``handler``."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.headers: Dict[str, str] = {}
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def get(self, url: str, params=None, headers=None, timeout=None) -> FakeResponse:
        params = dict(params or {})
        self.calls.append(("GET", url, params))
        return self.handler(url, params)

    def post(self, url: str, data=None, auth=None, headers=None, timeout=None) -> FakeResponse:
        params = dict(data or {})
        self.calls.append(("POST", url, params))
        return self.handler(url, params)

    def calls_to(self, method: str) -> List[Dict[str, Any]]:
        return [params for _, _, params in self.calls if params.get("method") == method]


def image_bytes(fmt: str = "JPEG", color=(200, 30, 30), size=(40, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def lastfm_image_list(url: str, size: str = "extralarge") -> List[Dict[str, str]]:
    return [
        {"size": "small", "#text": url.replace(".jpg", "-s.jpg")},
        {"size": size, "#text": url},
    ]


def album_record(name: str, artist: str, playcount: int = 10, url: str = "") -> Dict[str, Any]:
    return {
        "name": name,
        "artist": {"name": artist, "mbid": "", "url": ""},
        "playcount": str(playcount),
        "mbid": "",
        "url": f"https://www.last.fm/music/{artist}/{name}",
        "image": lastfm_image_list(url) if url else [],
    }


def top_albums_payload(records, page: int = 1, total_pages: int = 1) -> Dict[str, Any]:
    return {
        "topalbums": {
            "album": records,
            "@attr": {
                "user": "tester",
                "page": str(page),
                "totalPages": str(total_pages),
                "perPage": str(len(records)),
                "total": str(len(records) * max(total_pages, 1)),
            },
        }
    }


def raise_connection_error(url: str, params: Dict[str, Any]) -> FakeResponse:
    raise requests.ConnectionError(f"connection refused for {url}")


@pytest.fixture
def config() -> CollageConfig:
    return CollageConfig(lastfm_endpoint="https://lastfm.test/2.0/", lastfm_api_key="secret-key")
