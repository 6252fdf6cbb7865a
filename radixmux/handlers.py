"""Middleware chaining, default responders and route walking."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from .methods import method_name
from .request import Request, ResponseRecorder

Handler = Callable[[ResponseRecorder, Request], Any]
Middleware = Callable[[Handler], Handler]
WalkFunc = Callable[..., Any]


def _compose(middlewares: Sequence[Middleware], endpoint: Handler) -> Handler:
    """Wrap endpoint so the first middleware is the outermost one."""
    handler = endpoint
    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler


@dataclass(eq=False)
class ChainHandler:
    """An endpoint handler wrapped by a fixed stack of middlewares.

    The middlewares are applied once, when the chain handler is built.
    """

    endpoint: Handler
    middlewares: tuple[Middleware, ...] = ()
    _handler: Handler = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.middlewares = tuple(self.middlewares)
        self._handler = _compose(self.middlewares, self.endpoint)

    def __call__(self, w: ResponseRecorder, r: Request) -> Any:
        return self._handler(w, r)


def chain(*middlewares: Middleware) -> Callable[[Handler], ChainHandler]:
    """Return a function that wraps an endpoint with the given middlewares.

    ``chain(mw1, mw2)(endpoint)`` runs mw1, then mw2, then endpoint.
    """
    stack = tuple(middlewares)

    def wrap(endpoint: Handler) -> ChainHandler:
        return ChainHandler(endpoint, stack)

    return wrap


def default_not_found(w: ResponseRecorder, r: Request) -> None:
    """Respond with a plain-text 404 page."""
    w.set_header("Content-Type", "text/plain; charset=utf-8")
    w.set_header("X-Content-Type-Options", "nosniff")
    w.write_header(404)
    w.write("404 page not found\n")


def method_not_allowed_responder(*methods_allowed: int) -> Handler:
    """Return a handler answering 405 with an Allow header per allowed method."""
    allowed = tuple(methods_allowed)

    def respond(w: ResponseRecorder, r: Request) -> None:
        for flag in allowed:
            name = method_name(flag)
            if name is not None:
                w.add_header("Allow", name)
        w.write_header(405)
        w.write(None)

    return respond


def walk(router: Any, fn: WalkFunc) -> None:
    """Call fn(method, route, handler, *middlewares) for every route of router.

    Mounted sub-routers are visited recursively with their full path and the
    middlewares of every router above them. An exception raised by fn stops
    the walk and propagates.
    """
    _walk(router, fn, "", ())


def _walk(router: Any, fn: WalkFunc, parent_route: str, parent_mws: tuple[Middleware, ...]) -> None:
    for route in router.routes():
        mws = (*parent_mws, *router.middlewares())

        if route.sub_routes is not None:
            _walk(route.sub_routes, fn, parent_route + route.pattern, mws)
            continue

        full_route = (parent_route + route.pattern).replace("/*/", "/")
        for method, handler in route.handlers.items():
            if method == "*":
                continue
            if isinstance(handler, ChainHandler):
                fn(method, full_route, handler.endpoint, *mws, *handler.middlewares)
            else:
                fn(method, full_route, handler, *mws)