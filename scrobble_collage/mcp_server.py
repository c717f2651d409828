"""MCP server exposing collage generation as a tool."""

from __future__ import annotations

import logging
from typing import Optional

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP, Image

from .config import CollageConfig
from .generator import CollageGenerator
from .request import CollageRequest

logger = logging.getLogger("scrobble_collage.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="scrobble-collage")

_generator: Optional[CollageGenerator] = None


def _get_generator() -> CollageGenerator:
    # Built lazily so the artwork cache lives as long as the server process
    global _generator
    if _generator is None:
        _generator = CollageGenerator(CollageConfig.from_env())
    return _generator


@mcp.tool()
def collage(
    username: str,
    method: str = "album",
    period: str = "7day",
    rows: int = 3,
    columns: int = 3,
    artist: bool = False,
    album: bool = False,
    track: bool = False,
    playcount: bool = False,
    width: int = 0,
    height: int = 0,
    fontsize: int = 12,
    boldfont: bool = False,
    grayscale: bool = False,
    webp: bool = False,
    textlocation: str = "topleft",
) -> Image:
    """Render a Last.fm user's top albums, artists or tracks as a grid image."""

    request = CollageRequest.from_values(
        username=username,
        method=method,
        period=period,
        rows=rows,
        columns=columns,
        artist=artist,
        album=album,
        track=track,
        playcount=playcount,
        width=width,
        height=height,
        fontsize=fontsize,
        boldfont=boldfont,
        grayscale=grayscale,
        webp=webp,
        textlocation=textlocation,
    )
    result = _get_generator().generate(request)
    return Image(data=result.data, format="webp" if result.extension == "webp" else "jpeg")


def main() -> None:
    """Entry point for running the MCP server."""
    load_dotenv()
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
