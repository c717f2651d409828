"""Utility helpers for string normalization and path handling."""

from __future__ import annotations

import re
from pathlib import Path

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(value: str, fallback: str = "collage") -> str:
    """Generate a filesystem-friendly slug using ASCII characters only."""
    normalized = value.encode("ascii", "ignore").decode("ascii")
    normalized = normalized.lower()
    normalized = SLUG_PATTERN.sub("-", normalized).strip("-")
    return normalized or fallback


def default_output_path(username: str, method: str, period: str, extension: str) -> Path:
    return Path(f"{slugify(username, fallback='user')}-{method}-{period}.{extension}")
