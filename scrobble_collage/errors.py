"""Exception types raised by the collage pipeline."""

from __future__ import annotations

import re

API_KEY_PATTERN = re.compile(r"([?&])api_key=[^&\s'\"]+&?")


def scrub_api_key(message: str) -> str:
    """Strip api_key query values from a message before it is logged or raised."""
    return API_KEY_PATTERN.sub(r"\1", message)


class CollageError(Exception):
    """Base class for errors that abort a collage request."""

    status_code = 500


class InvalidRequest(CollageError):
    status_code = 400


class TooManyImages(CollageError):
    status_code = 400

    def __init__(self, collage_type: str, count: int, limit: int) -> None:
        super().__init__(
            f"Requested {count} images but {collage_type} collages allow at most {limit}"
        )
        self.collage_type = collage_type
        self.count = count
        self.limit = limit


class UserNotFound(CollageError):
    status_code = 404

    def __init__(self, username: str) -> None:
        super().__init__(f"User not found: {username}")
        self.username = username


class FetchFailed(CollageError):
    """A ranked-list page could not be retrieved."""


class DecodeFailed(FetchFailed):
    """A ranked-list page was retrieved but its body was malformed."""


class CollageCancelled(CollageError):
    # 499 is the de-facto status for a client closed request
    status_code = 499


class NoImageFound(CollageError):
    """No artwork could be resolved for a single item."""


def status_for(exc: BaseException) -> int:
    if isinstance(exc, CollageError):
        return exc.status_code
    return 500
