# radixmux

A small, composable HTTP request router. Routes are stored in a radix tree
that understands static segments, named parameters (`{id}`), parameters
constrained by a regular expression (`{id:[0-9]+}`) and a trailing catch-all
(`*`). Routers can carry middleware stacks, be grouped inline, and be mounted
inside one another to split a large service into independent parts.

It has no dependencies outside the standard library.

## Handlers, requests and responses

A handler is any callable taking a response writer and a request:
`handler(w, r)`. A middleware is a callable that takes a handler and returns a
new handler. A `Mux` is itself a handler, so it can be called directly or
mounted inside another router.

The request and response types live in `radixmux.request`:

- `Request(method=..., path=..., headers=..., body=...)` describes a request.
  A percent-encoded path is decoded into `path`; when decoding would lose
  information (an encoded slash, for instance) the escaped form is kept in
  `raw_path`, and routing uses it. `with_context(key, value)` returns a copy
  carrying an extra context value, read back with `value(key)`. After routing,
  `path_value(key)` returns a matched parameter and `pattern` holds the
  matched routing pattern.
- `ResponseRecorder` collects what a handler writes: `status`, `headers`,
  `body` and `text`, with `set_header`, `add_header`, `get_header`,
  `header_values`, `write_header`, `write` and `flush`.
- `url_param(request, key)` and `route_context(request)` give a handler its
  URL parameters and routing state.

## Defining and serving routes

```python
from radixmux.mux import new_router
from radixmux.request import Request, ResponseRecorder, url_param


def index(w, r):
    w.write(b"welcome")


def show_article(w, r):
    w.write(f"article {url_param(r, 'id')}")


def list_files(w, r):
    w.write(f"path: {url_param(r, '*')}")


router = new_router()
router.get("/", index)
router.get("/articles/{id:[0-9]+}", show_article)
router.get("/files/*", list_files)

# A method can also be given inside the pattern.
router.handle("POST /articles", index)

w = ResponseRecorder()
router(w, Request(method="GET", path="/articles/42"))
print(w.status, w.text)   # 200 article 42
```

Supported methods are CONNECT, DELETE, GET, HEAD, OPTIONS, PATCH, POST, PUT
and TRACE, each with its own method on `Mux` (`get`, `post`, ...), plus
`method(name, pattern, handler)` and `handle(pattern, handler)` for every
method. Further methods can be added with
`radixmux.methods.register_method("BOO")` and then used with
`router.method("BOO", "/hi", handler)`.

Invalid patterns, unsupported methods, duplicate parameter keys, adding
middleware after routes, and mounting twice on the same path raise
`radixmux.methods.RoutingError`.

## Middleware, groups and sub-routers

```python
def audit(next_handler):
    def handler(w, r):
        w.set_header("X-Audited", "yes")
        next_handler(w, r)
    return handler


def show_user(w, r):
    w.write(f"user {url_param(r, 'user')}")


router = new_router()
router.use(audit)                      # applies to every route of this router

router.with_middlewares(audit).get("/inline", index)   # applies to one route

def admin_routes(r):
    r.use(audit)
    r.get("/dashboard", index)

router.group(admin_routes)             # inline group sharing the tree

def user_routes(r):
    r.get("/", index)
    r.get("/{user}", show_user)

router.route("/users", user_routes)    # a new sub-router mounted on /users
```

`mount(pattern, handler)` attaches any handler, usually another router, below
a path. Custom responses for unknown paths and unsupported methods are set with
`not_found(handler)` and `method_not_allowed(handler)`; sub-routers without
their own inherit them. By default an unknown path answers
`404 page not found` and an unsupported method answers 405 with an `Allow`
header listing the methods registered for that path.

`radixmux.handlers.chain(mw1, mw2)(endpoint)` builds a `ChainHandler` that
runs the middlewares in order before the endpoint.

## Inspecting a router

```python
from radixmux.request import RouteContext

rctx = RouteContext()
router.find(rctx, "GET", "/users/alice")   # "/users/{user}"
rctx.reset()
router.match(rctx, "HEAD", "/nope")        # False
```

`router.routes()` lists the registered routes as `radixmux.tree.Route`
objects, and `radixmux.handlers.walk(router, fn)` visits every method and full
route path, calling `fn(method, route, handler, *middlewares)`.

## Rendering responses

The `radixmux.render` package decodes request bodies and writes responses:

- `content_type.get_content_type`, `get_request_content_type` and
  `get_accepted_content_type` classify `Content-Type` and `Accept` headers
  into a `ContentType`; `set_content_type` is a middleware forcing one.
- `decoder.default_decoder` decodes JSON, XML (to an `Element`) or form bodies
  (to a dict) according to the request content type, raising `DecodeError`
  otherwise.
- `payload.bind(request, target)` decodes a request into a `Binder`, setting
  attributes from the decoded mapping and calling `bind` on nested binders
  first. `Renderer` objects have `render` called on them and on their
  renderer fields, top-down, before being written.
- `responder.respond` writes JSON unless the request accepts XML; an iterator
  is sent as server-sent events when the request accepts
  `text/event-stream`, and collected into a list otherwise. `render`,
  `render_list`, `json_response`, `xml_response`, `plain_text`, `html`,
  `data` and `no_content` write responses; `status(request, code)` sets the
  status they will use.

## What it does not do

radixmux routes and answers requests that are handed to it; it does not
listen on a socket or speak HTTP on the wire. To serve traffic, build a
`Request` and a `ResponseRecorder` from whatever server you use, call the
router with them, and send back the recorded status, headers and body.