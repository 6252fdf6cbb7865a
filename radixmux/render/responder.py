"""Writing response payloads as JSON, XML, text, raw data or event streams."""

from __future__ import annotations

import base64
import dataclasses
import json
import xml.etree.ElementTree as ET
from collections.abc import Iterator, Mapping
from typing import Any

from ..request import Request, ResponseRecorder
from .content_type import ContentType, get_accepted_content_type
from .payload import Renderer, run_renderers

STATUS_CTX_KEY = ("radixmux.render", "Status")

XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n'

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&#34;",
    "'": "&#39;",
    "\t": "&#x9;",
    "\n": "&#xA;",
    "\r": "&#xD;",
}


def status(request: Request, code: int) -> None:
    """Record a response status hint on the request for the responders to use."""
    request.context = {**request.context, STATUS_CTX_KEY: code}


def _write_status(w: ResponseRecorder, r: Request) -> None:
    code = r.value(STATUS_CTX_KEY)
    if isinstance(code, int) and not isinstance(code, bool):
        w.write_header(code)


def _http_error(w: ResponseRecorder, message: str, code: int) -> None:
    w.set_header("Content-Type", "text/plain; charset=utf-8")
    w.set_header("X-Content-Type-Options", "nosniff")
    w.write_header(code)
    w.write(message + "\n")


def _public_fields(value: Any) -> list[tuple[str, Any]]:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        pairs = [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]
    else:
        pairs = list(vars(value).items())
    return [(name, item) for name, item in pairs if not name.startswith("_")]


def _to_jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return {str(key): _to_jsonable(item) for key, item in items}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    if (dataclasses.is_dataclass(value) and not isinstance(value, type)) or hasattr(value, "__dict__"):
        return {name: _to_jsonable(item) for name, item in _public_fields(value)}
    raise TypeError(f"json: unsupported type: {type(value).__name__}")


def _encode_json(value: Any) -> str:
    text = json.dumps(
        _to_jsonable(value), ensure_ascii=False, separators=(",", ":"), allow_nan=False
    )
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def _escape_xml(text: str) -> str:
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in text)


def _marshal_xml(value: Any, name: str | None = None) -> str:
    if value is None:
        return ""
    if isinstance(value, ET.Element):
        return ET.tostring(value, encoding="unicode")
    if isinstance(value, (list, tuple)):
        return "".join(_marshal_xml(item, name) for item in value)
    if isinstance(value, bool):
        tag = name or "bool"
        return f"<{tag}>{'true' if value else 'false'}</{tag}>"
    if isinstance(value, int):
        tag = name or "int"
        return f"<{tag}>{int(value)}</{tag}>"
    if isinstance(value, float):
        tag = name or "float64"
        return f"<{tag}>{value!r}</{tag}>"
    if isinstance(value, str):
        tag = name or "string"
        return f"<{tag}>{_escape_xml(value)}</{tag}>"
    if isinstance(value, (bytes, bytearray)):
        tag = name or "bytes"
        return f"<{tag}>{_escape_xml(bytes(value).decode('utf-8', errors='replace'))}</{tag}>"
    if isinstance(value, Mapping):
        raise TypeError(f"xml: unsupported type: {type(value).__name__}")
    if (dataclasses.is_dataclass(value) and not isinstance(value, type)) or hasattr(value, "__dict__"):
        tag = name or type(value).__name__
        inner = "".join(_marshal_xml(item, field_name) for field_name, item in _public_fields(value))
        return f"<{tag}>{inner}</{tag}>"
    raise TypeError(f"xml: unsupported type: {type(value).__name__}")


def plain_text(w: ResponseRecorder, r: Request, text: str) -> None:
    """Write text with a text/plain content type."""
    w.set_header("Content-Type", "text/plain; charset=utf-8")
    _write_status(w, r)
    w.write(text)


def data(w: ResponseRecorder, r: Request, payload: bytes) -> None:
    """Write raw bytes with an application/octet-stream content type."""
    w.set_header("Content-Type", "application/octet-stream")
    _write_status(w, r)
    w.write(bytes(payload))


def html(w: ResponseRecorder, r: Request, text: str) -> None:
    """Write text with a text/html content type."""
    w.set_header("Content-Type", "text/html; charset=utf-8")
    _write_status(w, r)
    w.write(text)


def json_response(w: ResponseRecorder, r: Request, value: Any) -> None:
    """Write value as JSON, with HTML characters escaped and a trailing newline."""
    try:
        encoded = _encode_json(value) + "\n"
    except (TypeError, ValueError, RecursionError) as exc:
        _http_error(w, str(exc), 500)
        return
    w.set_header("Content-Type", "application/json")
    _write_status(w, r)
    w.write(encoded)


def xml_response(w: ResponseRecorder, r: Request, value: Any) -> None:
    """Write value as XML, adding an XML header unless one is in the first 100 bytes."""
    try:
        encoded = _marshal_xml(value).encode("utf-8")
    except (TypeError, ValueError) as exc:
        _http_error(w, str(exc), 500)
        return
    w.set_header("Content-Type", "application/xml; charset=utf-8")
    _write_status(w, r)
    if b"<?xml" not in encoded[:100]:
        w.write(XML_HEADER)
    w.write(encoded)


def no_content(w: ResponseRecorder, r: Request) -> None:
    """Respond with 204 No Content."""
    w.write_header(204)


def _flush(w: ResponseRecorder) -> None:
    flush = getattr(w, "flush", None)
    if callable(flush):
        flush()


def _prepare_item(w: ResponseRecorder, r: Request, item: Any) -> Any:
    if isinstance(item, Renderer):
        try:
            run_renderers(w, r, item)
        except Exception as exc:  # the error itself becomes the item
            return exc
    return item


def _event_stream(w: ResponseRecorder, r: Request, stream: Iterator[Any]) -> None:
    w.set_header("Content-Type", "text/event-stream; charset=utf-8")
    w.set_header("Cache-Control", "no-cache")
    if r.proto_major == 1:
        w.set_header("Connection", "keep-alive")
    w.write_header(200)

    while True:
        if r.done.is_set():
            w.write('event: error\ndata: {"error":"Server Timeout"}\n\n')
            return
        try:
            item = next(stream)
        except StopIteration:
            w.write("event: EOF\n\n")
            return
        item = _prepare_item(w, r, item)
        try:
            payload = _encode_json(item)
        except (TypeError, ValueError, RecursionError) as exc:
            w.write(f'event: error\ndata: {{"error":"{exc}"}}\n\n')
            _flush(w)
            continue
        w.write(f"event: data\ndata: {payload}\n\n")
        _flush(w)


def _stream_into_list(w: ResponseRecorder, r: Request, stream: Iterator[Any]) -> list[Any] | None:
    collected: list[Any] = []
    while True:
        if r.done.is_set():
            _http_error(w, "Server Timeout", 504)
            return None
        try:
            item = next(stream)
        except StopIteration:
            return collected
        collected.append(_prepare_item(w, r, item))


def respond(w: ResponseRecorder, r: Request, value: Any) -> None:
    """Write value in the format the request accepts, JSON unless XML is asked for.

    An iterator is treated as a stream: sent as server-sent events when the
    request accepts them, otherwise collected into a list first.
    """
    if isinstance(value, Iterator):
        if get_accepted_content_type(r) == ContentType.EVENT_STREAM:
            _event_stream(w, r, value)
            return
        value = _stream_into_list(w, r, value)

    if get_accepted_content_type(r) == ContentType.XML:
        xml_response(w, r, value)
    else:
        json_response(w, r, value)


def render(w: ResponseRecorder, r: Request, value: Renderer) -> None:
    """Run the renderers of value top-down, then respond with it."""
    run_renderers(w, r, value)
    respond(w, r, value)


def render_list(w: ResponseRecorder, r: Request, values: list[Renderer]) -> None:
    """Run the renderers of every value, then respond with the whole list."""
    for value in values:
        run_renderers(w, r, value)
    respond(w, r, values)