"""Decoding of request bodies by content type."""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from typing import IO, Any, Union
from urllib.parse import parse_qsl

from ..request import Request
from .content_type import ContentType, get_request_content_type

Body = Union[bytes, bytearray, str, IO[bytes], IO[str], None]

_JSON_WHITESPACE = " \t\n\r"


class DecodeError(ValueError):
    """Raised when a request body cannot be decoded."""


def _raw(body: Body) -> bytes | str:
    if body is None:
        return b""
    if hasattr(body, "read"):
        body = body.read()
    if isinstance(body, (bytes, str)):
        return body
    return bytes(body)


def _text(body: Body) -> str:
    raw = _raw(body)
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"render: body is not valid utf-8: {exc}") from exc


def decode_json(body: Body) -> Any:
    """Decode the first JSON value of body; anything after it is ignored."""
    text = _text(body).lstrip(_JSON_WHITESPACE)
    if not text:
        raise DecodeError("render: unexpected end of JSON input")
    try:
        value, _ = json.JSONDecoder().raw_decode(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"render: {exc}") from exc
    return value


def decode_xml(body: Body) -> ET.Element:
    """Decode an XML document and return its root element."""
    raw = _raw(body)
    if not raw.strip():
        raise DecodeError("render: unexpected end of XML input")
    try:
        return ET.fromstring(raw)
    except ET.ParseError as exc:
        raise DecodeError(f"render: {exc}") from exc


def decode_form(body: Body) -> dict[str, str | list[str]]:
    """Decode a URL-encoded form.

    A key given once maps to its value; a repeated key maps to the list of
    its values in order.
    """
    grouped: dict[str, list[str]] = {}
    for key, value in parse_qsl(_text(body), keep_blank_values=True):
        grouped.setdefault(key, []).append(value)
    return {key: values[0] if len(values) == 1 else values for key, values in grouped.items()}


def default_decoder(request: Request) -> Any:
    """Decode the request body according to its content type."""
    content_type = get_request_content_type(request)
    if content_type == ContentType.JSON:
        return decode_json(request.body)
    if content_type == ContentType.XML:
        return decode_xml(request.body)
    if content_type == ContentType.FORM:
        return decode_form(request.body)
    raise DecodeError("render: unable to automatically decode the request content type")