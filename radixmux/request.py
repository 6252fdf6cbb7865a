"""Request, response recorder and routing context types."""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, unquote

ROUTE_CTX_KEY = ("radixmux", "RouteContext")


def _canonical_header(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


@dataclass
class Params:
    """Ordered URL parameter keys and values."""

    keys: list[str] = field(default_factory=list)
    values: list[str] = field(default_factory=list)

    def add(self, key: str, value: str) -> None:
        """Append a key and its value."""
        self.keys.append(key)
        self.values.append(value)

    def get(self, key: str) -> str:
        """Return the most recently added value for key, or an empty string."""
        for k, v in zip(reversed(self.keys), reversed(self.values[: len(self.keys)])):
            if k == key:
                return v
        return ""

    def __iter__(self):
        return iter(zip(self.keys, self.values))

    def __len__(self) -> int:
        return len(self.keys)


@dataclass
class RouteContext:
    """Routing state carried through one request."""

    routes: Any = None
    route_path: str = ""
    route_method: str = ""
    url_params: Params = field(default_factory=Params)
    route_patterns: list[str] = field(default_factory=list)
    route_params: Params = field(default_factory=Params)
    route_pattern: str = ""
    methods_allowed: list[int] = field(default_factory=list)
    method_not_allowed: bool = False

    def reset(self) -> None:
        """Clear all routing state so the context can be reused."""
        self.routes = None
        self.route_path = ""
        self.route_method = ""
        self.route_patterns.clear()
        self.url_params.keys.clear()
        self.url_params.values.clear()
        self.route_pattern = ""
        self.route_params.keys.clear()
        self.route_params.values.clear()
        self.methods_allowed.clear()
        self.method_not_allowed = False

    def url_param(self, key: str) -> str:
        """Return the URL parameter recorded for key, or an empty string."""
        return self.url_params.get(key)


@dataclass
class Request:
    """An HTTP request as seen by handlers and middlewares.

    The path may be given in its escaped form; it is decoded into ``path``
    and the escaped form is kept in ``raw_path`` when decoding loses
    information (for instance an encoded slash).
    """

    method: str = "GET"
    path: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    raw_path: str = ""
    proto_major: int = 1
    context: dict[Any, Any] = field(default_factory=dict)
    pattern: str = ""
    done: threading.Event = field(default_factory=threading.Event)
    _path_values: dict[str, str] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.headers = {_canonical_header(k): v for k, v in self.headers.items()}
        if not self.raw_path and "%" in self.path:
            raw = self.path
            decoded = unquote(raw)
            self.path = decoded
            if quote(decoded, safe="/$&+,:;=@") != raw:
                self.raw_path = raw

    def with_context(self, key: Any, value: Any) -> Request:
        """Return a copy of the request carrying an extra context value."""
        new = copy.copy(self)
        new.context = {**self.context, key: value}
        new._path_values = dict(self._path_values)
        return new

    def value(self, key: Any) -> Any:
        """Return the context value stored under key, or None."""
        return self.context.get(key)

    def set_path_value(self, key: str, value: str) -> None:
        """Record a named path value on the request."""
        self._path_values[key] = value

    def path_value(self, key: str) -> str:
        """Return a named path value, or an empty string."""
        return self._path_values.get(key, "")


@dataclass
class ResponseRecorder:
    """Collects what a handler writes: status, headers and body."""

    status: int = 200
    headers: dict[str, list[str]] = field(default_factory=dict)
    body: bytearray = field(default_factory=bytearray)
    wrote_header: bool = False
    flushed: bool = False

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def set_header(self, name: str, value: str) -> None:
        """Replace all values of a header."""
        self.headers[_canonical_header(name)] = [value]

    def add_header(self, name: str, value: str) -> None:
        """Append a value to a header."""
        self.headers.setdefault(_canonical_header(name), []).append(value)

    def get_header(self, name: str) -> str:
        """Return the first value of a header, or an empty string."""
        values = self.headers.get(_canonical_header(name))
        return values[0] if values else ""

    def header_values(self, name: str) -> list[str]:
        """Return every value of a header."""
        return list(self.headers.get(_canonical_header(name), []))

    def write_header(self, status: int) -> None:
        """Set the response status; only the first call has effect."""
        if self.wrote_header:
            return
        self.status = status
        self.wrote_header = True

    def write(self, data: bytes | str | None) -> int:
        """Append to the body, sending a 200 status first if none was set."""
        if not self.wrote_header:
            self.write_header(200)
        if data is None:
            return 0
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.body.extend(data)
        return len(data)

    def flush(self) -> None:
        """Mark the response as flushed."""
        if not self.wrote_header:
            self.write_header(200)
        self.flushed = True


def route_context(request: Request) -> RouteContext | None:
    """Return the routing context attached to a request, if any."""
    rctx = request.value(ROUTE_CTX_KEY)
    return rctx if isinstance(rctx, RouteContext) else None


def url_param(request: Request, key: str) -> str:
    """Return a URL parameter of the request, or an empty string."""
    rctx = route_context(request)
    return rctx.url_param(key) if rctx is not None else ""