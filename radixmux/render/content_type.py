"""Content type detection for requests and responses."""

from __future__ import annotations

import enum
from typing import Any, Callable

from ..request import Request, ResponseRecorder

CONTENT_TYPE_CTX_KEY = ("radixmux.render", "ContentType")

Handler = Callable[[ResponseRecorder, Request], Any]


class ContentType(enum.IntEnum):
    """Common HTTP content types."""

    UNKNOWN = 0
    PLAIN_TEXT = 1
    HTML = 2
    JSON = 3
    XML = 4
    FORM = 5
    EVENT_STREAM = 6


_MEDIA_TYPES = {
    "text/plain": ContentType.PLAIN_TEXT,
    "text/html": ContentType.HTML,
    "application/xhtml+xml": ContentType.HTML,
    "application/json": ContentType.JSON,
    "text/javascript": ContentType.JSON,
    "text/xml": ContentType.XML,
    "application/xml": ContentType.XML,
    "application/x-www-form-urlencoded": ContentType.FORM,
    "text/event-stream": ContentType.EVENT_STREAM,
}


def get_content_type(value: str) -> ContentType:
    """Classify a media type string, ignoring any parameters after ';'."""
    media = value.split(";", 1)[0].strip()
    return _MEDIA_TYPES.get(media, ContentType.UNKNOWN)


def set_content_type(content_type: ContentType) -> Callable[[Handler], Handler]:
    """Return a middleware that forces the content type seen by later handlers."""

    def middleware(next_handler: Handler) -> Handler:
        def handler(w: ResponseRecorder, r: Request) -> Any:
            return next_handler(w, r.with_context(CONTENT_TYPE_CTX_KEY, content_type))

        return handler

    return middleware


def _forced(request: Request) -> ContentType | None:
    value = request.value(CONTENT_TYPE_CTX_KEY)
    return value if isinstance(value, ContentType) else None


def get_request_content_type(request: Request) -> ContentType:
    """Return the forced content type, or the one named by the Content-Type header."""
    forced = _forced(request)
    if forced is not None:
        return forced
    return get_content_type(request.headers.get("Content-Type", ""))


def get_accepted_content_type(request: Request) -> ContentType:
    """Return the forced content type, or the first one the Accept header names.

    An unknown or missing Accept header means plain text.
    """
    forced = _forced(request)
    if forced is not None:
        return forced
    first = request.headers.get("Accept", "").split(",")[0]
    content_type = get_content_type(first.strip())
    if content_type == ContentType.UNKNOWN:
        return ContentType.PLAIN_TEXT
    return content_type