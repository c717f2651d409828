"""Resolved collage requests and their validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Type, TypeVar

from .errors import InvalidRequest
from .models import CollageType, DisplayOptions, Period, TextLocation, image_size_for

MAX_GRID_SIDE = 15
MAX_OUTPUT_DIMENSION = 3000
MIN_FONT_SIZE = 8
MAX_FONT_SIZE = 30

E = TypeVar("E", CollageType, Period, TextLocation)

TRUE_VALUES = {"1", "t", "true", "yes", "on"}
FALSE_VALUES = {"0", "f", "false", "no", "off", ""}


def _enum(enum_type: Type[E], value: Any, name: str) -> E:
    try:
        return enum_type(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        raise InvalidRequest(f"invalid {name} {value!r} (expected one of: {choices})") from None


def _int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"invalid {name}: {value!r}") from None


def _bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise InvalidRequest(f"invalid {name}: {value!r}")


@dataclass
class CollageRequest:
    """Everything the pipeline needs to know about one collage."""

    username: str
    method: CollageType = CollageType.ALBUM
    period: Period = Period.SEVEN_DAYS
    rows: int = 3
    columns: int = 3
    display_track: bool = False
    display_artist: bool = False
    display_album: bool = False
    play_count: bool = False
    width: int = 0
    height: int = 0
    font_size: int = 12
    bold_font: bool = False
    grayscale: bool = False
    webp: bool = False
    text_location: TextLocation = TextLocation.TOP_LEFT

    @classmethod
    def from_values(cls, **raw: Any) -> "CollageRequest":
        """Coerce loosely typed values (e.g. query strings) into a validated request."""
        request = cls(
            username=str(raw.get("username") or ""),
            method=_enum(CollageType, raw.get("method") or CollageType.ALBUM, "method"),
            period=_enum(Period, raw.get("period") or Period.SEVEN_DAYS, "period"),
            rows=_int(raw.get("rows", 3), "rows"),
            columns=_int(raw.get("columns", 3), "columns"),
            display_track=_bool(raw.get("track", False), "track"),
            display_artist=_bool(raw.get("artist", False), "artist"),
            display_album=_bool(raw.get("album", False), "album"),
            play_count=_bool(raw.get("playcount", False), "playcount"),
            width=_int(raw.get("width", 0), "width"),
            height=_int(raw.get("height", 0), "height"),
            font_size=_int(raw.get("fontsize", 12), "font size"),
            bold_font=_bool(raw.get("boldfont", False), "boldfont"),
            grayscale=_bool(raw.get("grayscale", False), "grayscale"),
            webp=_bool(raw.get("webp", False), "webp"),
            text_location=_enum(
                TextLocation, raw.get("textlocation") or TextLocation.TOP_LEFT, "text location"
            ),
        )
        request.validate()
        return request

    @property
    def count(self) -> int:
        return self.rows * self.columns

    def validate(self) -> None:
        if not self.username:
            raise InvalidRequest("username is required")
        for name in ("rows", "columns"):
            value = getattr(self, name)
            if not 1 <= value <= MAX_GRID_SIDE:
                raise InvalidRequest(f"{name} must be between 1 and {MAX_GRID_SIDE}, got {value}")
        for name in ("width", "height"):
            value = getattr(self, name)
            if not 0 <= value <= MAX_OUTPUT_DIMENSION:
                raise InvalidRequest(
                    f"{name} must be between 0 and {MAX_OUTPUT_DIMENSION}, got {value}"
                )
        if not MIN_FONT_SIZE <= self.font_size <= MAX_FONT_SIZE:
            raise InvalidRequest(
                f"font size must be between {MIN_FONT_SIZE} and {MAX_FONT_SIZE}, got {self.font_size}"
            )

    def display_options(self) -> DisplayOptions:
        return DisplayOptions(
            rows=self.rows,
            columns=self.columns,
            image_dimension=image_size_for(self.count).dimension,
            track_name=self.display_track,
            artist_name=self.display_artist,
            album_name=self.display_album,
            play_count=self.play_count,
            text_location=self.text_location,
            font_size=self.font_size,
            bold_font=self.bold_font,
            width=self.width,
            height=self.height,
            grayscale=self.grayscale,
            webp=self.webp,
        )
