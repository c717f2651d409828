"""Data models used throughout the collage pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from PIL import Image


class CollageType(str, Enum):
    ALBUM = "album"
    ARTIST = "artist"
    TRACK = "track"


class Period(str, Enum):
    OVERALL = "overall"
    SEVEN_DAYS = "7day"
    ONE_MONTH = "1month"
    THREE_MONTHS = "3month"
    SIX_MONTHS = "6month"
    TWELVE_MONTHS = "12month"


class TextLocation(str, Enum):
    TOP_LEFT = "topleft"
    TOP_CENTRE = "topcentre"
    TOP_RIGHT = "topright"
    BOTTOM_LEFT = "bottomleft"
    BOTTOM_CENTRE = "bottomcentre"
    BOTTOM_RIGHT = "bottomright"

    @property
    def is_top(self) -> bool:
        return self.value.startswith("top")

    @property
    def horizontal(self) -> str:
        """Return ``left``, ``centre`` or ``right``."""
        return self.value[3:] if self.is_top else self.value[6:]


@dataclass(frozen=True)
class ImageSize:
    """A provider image size tier and the cell dimension it renders at."""

    name: str
    dimension: int


EXTRA_LARGE = ImageSize("extralarge", 300)
LARGE = ImageSize("large", 174)
MEDIUM = ImageSize("medium", 64)
SMALL = ImageSize("small", 34)


def image_size_for(cell_count: int) -> ImageSize:
    """Pick the largest image tier that keeps the canvas a sensible size."""
    if cell_count <= 100:
        return EXTRA_LARGE
    if cell_count <= 1000:
        return LARGE
    if cell_count <= 2000:
        return MEDIUM
    return SMALL


@dataclass(frozen=True)
class CacheEntry:
    """Resolved artwork for an item, keyed by the item identifier."""

    url: str
    album: str = ""


@dataclass
class RankedItem:
    """One ranked entity placed into one grid cell.

    The acquisition engine sets ``image`` exactly once; nothing else is
    mutated after the normalizer has produced the item.
    """

    name: str
    playcount: str
    image_url: str = ""
    mbid: str = ""
    image_size: str = EXTRA_LARGE.name
    image: Optional[Image.Image] = field(default=None, repr=False, compare=False)

    def label(self) -> str:
        return ""

    def identifier(self) -> str:
        if self.mbid:
            return self.mbid + self.image_size
        return self.name + self.label() + self.image_size

    def cache_entry(self) -> CacheEntry:
        return CacheEntry(url=self.image_url)

    def parameters(self) -> Dict[str, str]:
        raise NotImplementedError

    def set_image(self, image: Optional[Image.Image]) -> None:
        self.image = image


@dataclass
class AlbumItem(RankedItem):
    artist: str = ""

    def label(self) -> str:
        return self.artist

    def parameters(self) -> Dict[str, str]:
        return {"artist": self.artist, "album": self.name, "playcount": self.playcount}


@dataclass
class ArtistItem(RankedItem):
    url: str = ""

    def label(self) -> str:
        return self.url

    def parameters(self) -> Dict[str, str]:
        return {"artist": self.name, "playcount": self.playcount}


@dataclass
class TrackItem(RankedItem):
    artist: str = ""
    album: str = ""

    def label(self) -> str:
        return self.artist

    def cache_entry(self) -> CacheEntry:
        return CacheEntry(url=self.image_url, album=self.album)

    def parameters(self) -> Dict[str, str]:
        return {
            "track": self.name,
            "artist": self.artist,
            "album": self.album,
            "playcount": self.playcount,
        }


@dataclass(frozen=True)
class DisplayOptions:
    """Read-only settings for a single render."""

    rows: int
    columns: int
    image_dimension: int = EXTRA_LARGE.dimension
    track_name: bool = False
    artist_name: bool = False
    album_name: bool = False
    play_count: bool = False
    text_location: TextLocation = TextLocation.TOP_LEFT
    font_size: float = 12
    bold_font: bool = False
    width: int = 0
    height: int = 0
    grayscale: bool = False
    webp: bool = False

    @property
    def resize(self) -> bool:
        return self.width > 0 or self.height > 0

    @property
    def cell_count(self) -> int:
        return self.rows * self.columns
