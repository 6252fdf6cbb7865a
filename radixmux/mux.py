"""HTTP route multiplexer built on the radix routing tree."""

from __future__ import annotations

from typing import Any, Callable

from .handlers import Handler, Middleware, chain, default_not_found, method_not_allowed_responder
from .methods import (
    CONNECT,
    DELETE,
    GET,
    HEAD,
    OPTIONS,
    PATCH,
    POST,
    PUT,
    STUB,
    TRACE,
    RoutingError,
    all_methods,
    lookup_method,
)
from .request import ROUTE_CTX_KEY, Request, ResponseRecorder, RouteContext, route_context
from .tree import Node, Route


def _is_routes(obj: Any) -> bool:
    """Whether obj exposes the routing interface a mounted router offers."""
    return all(callable(getattr(obj, name, None)) for name in ("routes", "middlewares", "match", "find"))


class Mux:
    """Routes requests through a middleware stack and a radix tree of handlers.

    A Mux is itself a handler: call it with a response recorder and a request.
    """

    def __init__(self) -> None:
        self._handler: Handler | None = None
        self.tree = Node()
        self._method_not_allowed: Handler | None = None
        self._parent: Mux | None = None
        self._not_found: Handler | None = None
        self._middlewares: list[Middleware] = []
        self._inline = False

    def __call__(self, w: ResponseRecorder, r: Request) -> None:
        if self._handler is None:
            self.not_found_handler()(w, r)
            return
        if route_context(r) is not None:
            self._handler(w, r)
            return
        rctx = RouteContext(routes=self)
        self._handler(w, r.with_context(ROUTE_CTX_KEY, rctx))

    def use(self, *middlewares: Middleware) -> None:
        """Append middlewares to the stack; only allowed before any route."""
        if self._handler is not None:
            raise RoutingError("radixmux: all middlewares must be defined before routes on a mux")
        self._middlewares.extend(middlewares)

    def handle(self, pattern: str, handler: Handler) -> None:
        """Route pattern for every method, or for the method prefixing it ("GET /x")."""
        for idx, ch in enumerate(pattern):
            if ch in " \t":
                method, rest = pattern[:idx], pattern[idx + 1 :].lstrip(" \t")
                self.method(method, rest, handler)
                return
        self._register(all_methods(), pattern, handler)

    def method(self, method: str, pattern: str, handler: Handler) -> None:
        """Route pattern for the named method (case-insensitive)."""
        flag = lookup_method(method.upper())
        if flag is None:
            raise RoutingError(f"radixmux: '{method}' http method is not supported.")
        self._register(flag, pattern, handler)

    def connect(self, pattern: str, handler: Handler) -> None:
        """Route pattern for CONNECT."""
        self._register(CONNECT, pattern, handler)

    def delete(self, pattern: str, handler: Handler) -> None:
        """Route pattern for DELETE."""
        self._register(DELETE, pattern, handler)

    def get(self, pattern: str, handler: Handler) -> None:
        """Route pattern for GET."""
        self._register(GET, pattern, handler)

    def head(self, pattern: str, handler: Handler) -> None:
        """Route pattern for HEAD."""
        self._register(HEAD, pattern, handler)

    def options(self, pattern: str, handler: Handler) -> None:
        """Route pattern for OPTIONS."""
        self._register(OPTIONS, pattern, handler)

    def patch(self, pattern: str, handler: Handler) -> None:
        """Route pattern for PATCH."""
        self._register(PATCH, pattern, handler)

    def post(self, pattern: str, handler: Handler) -> None:
        """Route pattern for POST."""
        self._register(POST, pattern, handler)

    def put(self, pattern: str, handler: Handler) -> None:
        """Route pattern for PUT."""
        self._register(PUT, pattern, handler)

    def trace(self, pattern: str, handler: Handler) -> None:
        """Route pattern for TRACE."""
        self._register(TRACE, pattern, handler)

    def not_found(self, handler: Handler) -> None:
        """Set the handler for unknown paths, here and on sub-routers lacking one."""
        target: Mux = self
        fn = handler
        if self._inline and self._parent is not None:
            target = self._parent
            fn = chain(*self._middlewares)(handler)

        target._not_found = fn

        def propagate(sub: Mux) -> None:
            if sub._not_found is None:
                sub.not_found(fn)

        target._update_sub_routes(propagate)

    def method_not_allowed(self, handler: Handler) -> None:
        """Set the handler for known paths with an unsupported method."""
        target: Mux = self
        fn = handler
        if self._inline and self._parent is not None:
            target = self._parent
            fn = chain(*self._middlewares)(handler)

        target._method_not_allowed = fn

        def propagate(sub: Mux) -> None:
            if sub._method_not_allowed is None:
                sub.method_not_allowed(fn)

        target._update_sub_routes(propagate)

    def with_middlewares(self, *middlewares: Middleware) -> Mux:
        """Return an inline router whose routes run the extra middlewares."""
        if not self._inline and self._handler is None:
            self._update_route_handler()

        stack = list(self._middlewares) if self._inline else []
        stack.extend(middlewares)

        im = Mux()
        im.tree = self.tree
        im._inline = True
        im._parent = self
        im._middlewares = stack
        im._not_found = self._not_found
        im._method_not_allowed = self._method_not_allowed
        return im

    def group(self, fn: Callable[[Mux], Any] | None) -> Mux:
        """Create an inline router with a copy of the middleware stack and pass it to fn."""
        im = self.with_middlewares()
        if fn is not None:
            fn(im)
        return im

    def route(self, pattern: str, fn: Callable[[Mux], Any] | None) -> Mux:
        """Build a new router with fn and mount it on pattern."""
        if fn is None:
            raise RoutingError(f"radixmux: attempting to Route() a nil subrouter on '{pattern}'")
        sub = new_router()
        fn(sub)
        self.mount(pattern, sub)
        return sub

    def mount(self, pattern: str, handler: Handler | None) -> None:
        """Attach a handler or sub-router to serve everything below pattern."""
        if handler is None:
            raise RoutingError(f"radixmux: attempting to Mount() a nil handler on '{pattern}'")

        if self.tree.find_pattern(pattern + "*") or self.tree.find_pattern(pattern + "/*"):
            raise RoutingError(
                f"radixmux: attempting to Mount() a handler on an existing path, '{pattern}'"
            )

        if isinstance(handler, Mux):
            if handler._not_found is None and self._not_found is not None:
                handler.not_found(self._not_found)
            if handler._method_not_allowed is None and self._method_not_allowed is not None:
                handler.method_not_allowed(self._method_not_allowed)

        def mount_handler(w: ResponseRecorder, r: Request) -> None:
            rctx = route_context(r)
            assert rctx is not None
            rctx.route_path = self._next_route_path(rctx)

            keys, values = rctx.url_params.keys, rctx.url_params.values
            last = len(keys) - 1
            if last >= 0 and keys[last] == "*" and len(values) > last:
                values[last] = ""

            handler(w, r)

        everything = all_methods()
        if not pattern or not pattern.endswith("/"):
            self._register(everything | STUB, pattern, mount_handler)
            self._register(everything | STUB, pattern + "/", mount_handler)
            pattern += "/"

        subroutes = handler if _is_routes(handler) else None
        method = everything | STUB if subroutes is not None else everything
        node = self._register(method, pattern + "*", mount_handler)
        if subroutes is not None:
            node.subroutes = subroutes

    def routes(self) -> list[Route]:
        """Return the routes registered in this router's tree."""
        return self.tree.routes()

    def middlewares(self) -> list[Middleware]:
        """Return the middleware stack."""
        return list(self._middlewares)

    def match(self, rctx: RouteContext, method: str, path: str) -> bool:
        """Whether a handler exists for method and path; rctx is updated."""
        return self.find(rctx, method, path) != ""

    def find(self, rctx: RouteContext, method: str, path: str) -> str:
        """Return the full routing pattern serving method and path, or an empty string."""
        flag = lookup_method(method)
        if flag is None:
            return ""

        node, _, _ = self.tree.find_route(rctx, flag, path)
        pattern = rctx.route_pattern

        if node is not None:
            if node.subroutes is None:
                assert node.endpoints is not None
                return node.endpoints[flag].pattern

            rctx.route_path = self._next_route_path(rctx)
            sub_pattern = node.subroutes.find(rctx, method, rctx.route_path)
            if not sub_pattern:
                return ""
            pattern = pattern.removesuffix("/*") + sub_pattern

        return pattern

    def not_found_handler(self) -> Handler:
        """Return the custom 404 handler, or the default one."""
        return self._not_found if self._not_found is not None else default_not_found

    def method_not_allowed_handler(self, *methods_allowed: int) -> Handler:
        """Return the custom 405 handler, or one listing the allowed methods."""
        if self._method_not_allowed is not None:
            return self._method_not_allowed
        return method_not_allowed_responder(*methods_allowed)

    def _register(self, method: int, pattern: str, handler: Handler) -> Node:
        if not pattern or pattern[0] != "/":
            raise RoutingError(f"radixmux: routing pattern must begin with '/' in '{pattern}'")

        if not self._inline and self._handler is None:
            self._update_route_handler()

        if self._inline:
            self._handler = self._route_http
            endpoint: Handler = chain(*self._middlewares)(handler)
        else:
            endpoint = handler

        return self.tree.insert_route(method, pattern, endpoint)

    def _route_http(self, w: ResponseRecorder, r: Request) -> None:
        rctx = route_context(r)
        assert rctx is not None

        route_path = rctx.route_path or r.raw_path or r.path or "/"

        if not rctx.route_method:
            rctx.route_method = r.method
        flag = lookup_method(rctx.route_method)
        if flag is None:
            self.method_not_allowed_handler()(w, r)
            return

        _, _, endpoint = self.tree.find_route(rctx, flag, route_path)
        if endpoint is not None:
            for key, value in rctx.url_params:
                r.set_path_value(key, value)
            r.pattern = rctx.route_pattern
            endpoint(w, r)
            return

        if rctx.method_not_allowed:
            self.method_not_allowed_handler(*rctx.methods_allowed)(w, r)
        else:
            self.not_found_handler()(w, r)

    @staticmethod
    def _next_route_path(rctx: RouteContext) -> str:
        keys, values = rctx.route_params.keys, rctx.route_params.values
        last = len(keys) - 1
        if last >= 0 and keys[last] == "*" and len(values) > last:
            return "/" + values[last]
        return "/"

    def _update_sub_routes(self, fn: Callable[[Mux], None]) -> None:
        for route in self.tree.routes():
            if isinstance(route.sub_routes, Mux):
                fn(route.sub_routes)

    def _update_route_handler(self) -> None:
        self._handler = chain(*self._middlewares)(self._route_http)


def new_router() -> Mux:
    """Return a new, empty router."""
    return Mux()