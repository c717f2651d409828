"""Command-line entry point for generating collages."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .config import CollageConfig
from .errors import CollageCancelled, CollageError, status_for
from .generator import CollageGenerator
from .models import CollageType, Period, TextLocation
from .request import (
    MAX_FONT_SIZE,
    MAX_GRID_SIDE,
    MAX_OUTPUT_DIMENSION,
    MIN_FONT_SIZE,
    CollageRequest,
)
from .utils import default_output_path

logger = logging.getLogger("scrobble_collage.cli")

EXIT_FAILURE = 1
EXIT_CLIENT_ERROR = 2
EXIT_CANCELLED = 130


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Render a Last.fm user's top albums, artists or tracks as a grid image.",
    )
    parser.add_argument("username", help="Last.fm username")
    parser.add_argument(
        "--method",
        choices=[member.value for member in CollageType],
        default=CollageType.ALBUM.value,
        help="Which ranked list to draw (default: album)",
    )
    parser.add_argument(
        "--period",
        choices=[member.value for member in Period],
        default=Period.SEVEN_DAYS.value,
        help="Time window the ranking covers (default: 7day)",
    )
    parser.add_argument(
        "--rows", type=int, default=3, help=f"Grid rows, 1-{MAX_GRID_SIDE} (default: 3)"
    )
    parser.add_argument(
        "--columns", type=int, default=3, help=f"Grid columns, 1-{MAX_GRID_SIDE} (default: 3)"
    )
    parser.add_argument("--artist", action="store_true", help="Overlay the artist name")
    parser.add_argument("--album", action="store_true", help="Overlay the album name")
    parser.add_argument("--track", action="store_true", help="Overlay the track name")
    parser.add_argument("--playcount", action="store_true", help="Overlay the play count")
    parser.add_argument(
        "--width",
        type=int,
        default=0,
        help=f"Resize the collage to this width, 0-{MAX_OUTPUT_DIMENSION} (0 keeps the aspect ratio)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=0,
        help=f"Resize the collage to this height, 0-{MAX_OUTPUT_DIMENSION} (0 keeps the aspect ratio)",
    )
    parser.add_argument(
        "--fontsize",
        type=int,
        default=12,
        help=f"Overlay font size, {MIN_FONT_SIZE}-{MAX_FONT_SIZE} (default: 12)",
    )
    parser.add_argument("--bold", action="store_true", help="Use the bold overlay font")
    parser.add_argument("--grayscale", action="store_true", help="Convert the collage to grayscale")
    parser.add_argument("--webp", action="store_true", help="Encode as webp instead of JPEG")
    parser.add_argument(
        "--textlocation",
        choices=[member.value for member in TextLocation],
        default=TextLocation.TOP_LEFT.value,
        help="Where overlay text is anchored in each cell (default: topleft)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="File to write; defaults to <username>-<method>-<period>.<jpg|webp>",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def build_request(args: argparse.Namespace) -> CollageRequest:
    return CollageRequest.from_values(
        username=args.username,
        method=args.method,
        period=args.period,
        rows=args.rows,
        columns=args.columns,
        artist=args.artist,
        album=args.album,
        track=args.track,
        playcount=args.playcount,
        width=args.width,
        height=args.height,
        fontsize=args.fontsize,
        boldfont=args.bold,
        grayscale=args.grayscale,
        webp=args.webp,
        textlocation=args.textlocation,
    )


def run(args: argparse.Namespace, generator: Optional[CollageGenerator] = None) -> int:
    cancel = threading.Event()

    def _cancel(signum, frame):  # noqa: ARG001 - signal handler signature
        logger.warning("Interrupted; cancelling collage generation")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _cancel)
    try:
        request = build_request(args)
        generator = generator or CollageGenerator(CollageConfig.from_env())
        result = generator.generate(request, cancel)
    except CollageCancelled:
        logger.warning("Collage generation cancelled")
        return EXIT_CANCELLED
    except CollageError as exc:
        status = status_for(exc)
        logger.error("%s (status %d)", exc, status)
        return EXIT_CLIENT_ERROR if 400 <= status < 500 else EXIT_FAILURE
    finally:
        signal.signal(signal.SIGINT, previous)

    output = args.output or default_output_path(
        request.username, request.method.value, request.period.value, result.extension
    )
    output.write_bytes(result.data)
    logger.info(
        "Saved %dx%d collage (%d items, %s) to %s",
        result.image.width,
        result.image.height,
        result.item_count,
        result.content_type,
        output,
    )
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
