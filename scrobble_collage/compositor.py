"""Grid composition, text overlay and encoding of the final collage."""

from __future__ import annotations

import io
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageDraw, ImageFont

from .config import CELL_TEXT_INSET, WEBP_QUALITY
from .models import DisplayOptions, RankedItem, TextLocation

logger = logging.getLogger("scrobble_collage")

FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

FIELD_ORDER = ("track", "artist", "album", "playcount")
LINE_SPACING = 3
TEXT_MARGIN = 20
TEXT_TOP_OFFSET = 8

# Tried in order when no font file is configured
SYSTEM_FONTS = {
    False: (
        "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf",
        "/usr/share/fonts/noto/NotoSans-Regular.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    ),
    True: (
        "/usr/share/fonts/truetype/noto/NotoSans-Bold.ttf",
        "/usr/share/fonts/noto/NotoSans-Bold.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    ),
}

_font_cache: Dict[Tuple[Optional[str], float, bool], FontType] = {}


def load_font(size: float, bold: bool = False, path: Optional[str] = None) -> FontType:
    """Load the overlay font, falling back to system fonts and then Pillow's default."""
    cache_key = (path, size, bold)
    if cache_key in _font_cache:
        return _font_cache[cache_key]

    candidates = [path] if path else []
    candidates.extend(SYSTEM_FONTS[bold])
    font: Optional[FontType] = None
    for candidate in candidates:
        if not os.path.exists(candidate):
            if candidate == path:
                logger.warning("Font file %s does not exist; falling back", candidate)
            continue
        try:
            font = ImageFont.truetype(candidate, size)
            break
        except OSError as exc:
            logger.error("Unable to load font %s: %s", candidate, exc)
    if font is None:
        font = ImageFont.load_default(size=size)
    _font_cache[cache_key] = font
    return font


@dataclass
class TextPlacement:
    """A single overlay line and the baseline position it was drawn at."""

    text: str
    x: float
    y: float


def text_lines(parameters: Dict[str, str], options: DisplayOptions) -> List[str]:
    """Return the overlay lines for a cell in drawing order.

    Bottom anchors draw from the bottom edge upwards, so their order is
    reversed to keep the lines reading top to bottom.
    """
    enabled = {
        "track": options.track_name,
        "artist": options.artist_name,
        "album": options.album_name,
        "playcount": options.play_count,
    }
    lines = [
        parameters[name]
        for name in FIELD_ORDER
        if enabled[name] and parameters.get(name)
    ]
    if not options.text_location.is_top:
        lines.reverse()
    return lines


def text_offset(
    text_width: float,
    text_height: float,
    cell_width: float,
    location: TextLocation,
) -> Tuple[float, float]:
    """Offset of a line within its cell for the configured anchor."""
    usable = cell_width - TEXT_MARGIN
    horizontal = location.horizontal
    if horizontal == "centre":
        x = usable / 2 - text_width / 2
    elif horizontal == "right":
        x = usable - text_width
    else:
        x = 0.0
    y = 0.0 if location.is_top else usable - text_height
    return x, y


def _measure(draw: ImageDraw.ImageDraw, text: str, font: FontType) -> Tuple[float, float]:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font, anchor="ls")
    return right - left, bottom - top


def place_text(
    draw: ImageDraw.ImageDraw,
    item: RankedItem,
    options: DisplayOptions,
    font: FontType,
    x: int,
    y: int,
) -> List[TextPlacement]:
    """Draw the overlay lines for one cell with a one pixel drop shadow."""
    placements: List[TextPlacement] = []
    line_height = options.font_size + LINE_SPACING
    cursor = TEXT_TOP_OFFSET + options.font_size
    for text in text_lines(item.parameters(), options):
        width, height = _measure(draw, text, font)
        dx, dy = text_offset(width, height, options.image_dimension, options.text_location)
        tx = x + CELL_TEXT_INSET + dx
        ty = y + cursor + dy
        draw.text((tx + 1, ty + 1), text, font=font, fill=(0, 0, 0), anchor="ls")
        draw.text((tx, ty), text, font=font, fill=(255, 255, 255), anchor="ls")
        placements.append(TextPlacement(text, tx, ty))
        if options.text_location.is_top:
            cursor += line_height
        else:
            cursor -= line_height
    return placements


def cell_origin(index: int, options: DisplayOptions) -> Tuple[int, int]:
    """Top-left pixel of the cell for item ``index`` (row-major)."""
    return (
        (index % options.columns) * options.image_dimension,
        (index // options.columns) * options.image_dimension,
    )


def resize_image(image: Image.Image, width: int, height: int) -> Image.Image:
    """Resize to ``width`` x ``height``; a zero dimension keeps the aspect ratio."""
    if width == 0 and height == 0:
        logger.info("Unable to resize image, both width and height are 0")
        return image
    if (width, height) == image.size:
        return image
    if height == 0:
        height = int(width * image.height / image.width)
    elif width == 0:
        width = int(height * image.width / image.height)
    if (width, height) == image.size:
        return image
    return image.resize((max(width, 1), max(height, 1)), Image.Resampling.LANCZOS)


def webp_encode(image: Image.Image, quality: int = WEBP_QUALITY) -> bytes:
    buffer = io.BytesIO()
    # method=0 is libwebp's fastest, lowest memory setting
    image.save(buffer, format="WEBP", quality=quality, method=0)
    return buffer.getvalue()


def create_collage(
    items: Sequence[RankedItem],
    options: DisplayOptions,
    font: Optional[FontType] = None,
) -> Tuple[Image.Image, Optional[bytes]]:
    """Compose the grid and return the image plus webp bytes when requested."""
    start = time.perf_counter()
    dimension = options.image_dimension
    canvas = Image.new("RGB", (dimension * options.columns, dimension * options.rows), (0, 0, 0))
    draw = ImageDraw.Draw(canvas)
    if font is None:
        font = load_font(options.font_size, options.bold_font)

    for index, item in enumerate(items[: options.cell_count]):
        x, y = cell_origin(index, options)
        if item.image is not None:
            cell = item.image
            if cell.size != (dimension, dimension):
                cell = cell.resize((dimension, dimension), Image.Resampling.LANCZOS)
            canvas.paste(cell.convert("RGB"), (x, y))
        place_text(draw, item, options, font, x, y)

    collage = canvas
    if options.resize:
        collage = resize_image(collage, options.width, options.height)
    if options.grayscale:
        collage = collage.convert("L")

    webp: Optional[bytes] = None
    # TODO: webp is skipped for grayscale output; decide whether that is intended
    if options.webp and not options.grayscale:
        logger.info("Converting collage to webp")
        try:
            webp = webp_encode(collage)
        except (OSError, ValueError, KeyError) as exc:
            logger.error("Unable to create webp image: %s", exc)

    logger.info(
        "Collage created in %.2fs (rows=%d, columns=%d)",
        time.perf_counter() - start,
        options.rows,
        options.columns,
    )
    return collage, webp


def encode_collage(image: Image.Image, webp: Optional[bytes] = None) -> Tuple[bytes, str]:
    """Return the bytes to hand back and their content type; JPEG is the fallback."""
    if webp:
        return webp, "image/webp"
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG")
    return buffer.getvalue(), "image/jpeg"
