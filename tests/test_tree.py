import pytest

from radixmux.methods import DELETE, GET, POST, PUT, RoutingError, all_methods
from radixmux.request import RouteContext
from radixmux.tree import (
    Node,
    NodeType,
    longest_prefix,
    pat_next_segment,
    pat_param_keys,
)


class _Handler:
    def __init__(self, name):
        self.name = name

    def __call__(self, w, r):
        return None

    def __repr__(self):
        return f"<handler {self.name}>"


_HANDLERS = {}


def _h(name):
    return _HANDLERS.setdefault(name, _Handler(name))


def _lookup(tree, method, path):
    rctx = RouteContext()
    _, endpoints, _ = tree.find_route(rctx, method, path)
    handler = None
    if endpoints and method in endpoints:
        handler = endpoints[method].handler
    return handler, list(rctx.route_params.keys), list(rctx.route_params.values)


@pytest.fixture(scope="module")
def basic_tree():
    tr = Node()
    inserts = [
        ("/", "index"),
        ("/favicon.ico", "favicon"),
        ("/pages/*", "stub"),
        ("/article", "article_list"),
        ("/article/", "article_list"),
        ("/article/near", "article_near"),
        ("/article/{id}", "stub"),
        ("/article/{id}", "article_show"),
        ("/article/{id}", "article_show"),
        ("/article/@{user}", "article_by_user"),
        ("/article/{sup}/{opts}", "article_show_opts"),
        ("/article/{id}/{opts}", "article_show_opts"),
        ("/article/{iffd}/edit", "stub"),
        ("/article/{id}//related", "article_show_related"),
        ("/article/slug/{month}/-/{day}/{year}", "article_slug"),
        ("/admin/user", "user_list"),
        ("/admin/user/", "stub"),
        ("/admin/user/", "user_list"),
        ("/admin/user//{id}", "user_show"),
        ("/admin/user/{id}", "user_show"),
        ("/admin/apps/{id}", "admin_app_show"),
        ("/admin/apps/{id}/*", "admin_app_show_catchall"),
        ("/admin/*", "stub"),
        ("/admin/*", "admin_catchall"),
        ("/users/{userID}/profile", "user_profile"),
        ("/users/super/*", "user_super"),
        ("/users/*", "user_all"),
        ("/hubs/{hubID}/view", "hub_view1"),
        ("/hubs/{hubID}/view/*", "hub_view2"),
        ("/hubs/{hubID}/*", "subrouter"),
        ("/hubs/{hubID}/users", "hub_view3"),
    ]
    for pattern, name in inserts:
        tr.insert_route(GET, pattern, _h(name))
    return tr


BASIC_CASES = [
    ("/", "index", [], []),
    ("/favicon.ico", "favicon", [], []),
    ("/pages", None, [], []),
    ("/pages/", "stub", ["*"], [""]),
    ("/pages/yes", "stub", ["*"], ["yes"]),
    ("/article", "article_list", [], []),
    ("/article/", "article_list", [], []),
    ("/article/near", "article_near", [], []),
    ("/article/neard", "article_show", ["id"], ["neard"]),
    ("/article/123", "article_show", ["id"], ["123"]),
    ("/article/123/456", "article_show_opts", ["id", "opts"], ["123", "456"]),
    ("/article/@peter", "article_by_user", ["user"], ["peter"]),
    ("/article/22//related", "article_show_related", ["id"], ["22"]),
    ("/article/111/edit", "stub", ["iffd"], ["111"]),
    (
        "/article/slug/sept/-/4/2015",
        "article_slug",
        ["month", "day", "year"],
        ["sept", "4", "2015"],
    ),
    ("/article/:id", "article_show", ["id"], [":id"]),
    ("/admin/user", "user_list", [], []),
    ("/admin/user/", "user_list", [], []),
    ("/admin/user/1", "user_show", ["id"], ["1"]),
    ("/admin/user//1", "user_show", ["id"], ["1"]),
    ("/admin/hi", "admin_catchall", ["*"], ["hi"]),
    ("/admin/lots/of/:fun", "admin_catchall", ["*"], ["lots/of/:fun"]),
    ("/admin/apps/333", "admin_app_show", ["id"], ["333"]),
    ("/admin/apps/333/woot", "admin_app_show_catchall", ["id", "*"], ["333", "woot"]),
    ("/hubs/123/view", "hub_view1", ["hubID"], ["123"]),
    ("/hubs/123/view/index.html", "hub_view2", ["hubID", "*"], ["123", "index.html"]),
    ("/hubs/123/users", "hub_view3", ["hubID"], ["123"]),
    ("/users/123/profile", "user_profile", ["userID"], ["123"]),
    ("/users/super/123/okay/yes", "user_super", ["*"], ["123/okay/yes"]),
    ("/users/123/okay/yes", "user_all", ["*"], ["123/okay/yes"]),
]


@pytest.mark.parametrize("path,name,keys,values", BASIC_CASES)
def test_tree(basic_tree, path, name, keys, values):
    handler, got_keys, got_values = _lookup(basic_tree, GET, path)
    assert handler is (_h(name) if name else None)
    assert got_keys == keys
    assert got_values == values


@pytest.fixture(scope="module")
def moar_tree():
    tr = Node()
    inserts = [
        (GET, "/articlefun", "m5"),
        (GET, "/articles/{id}", "m0"),
        (DELETE, "/articles/{slug}", "m8"),
        (GET, "/articles/search", "m1"),
        (GET, "/articles/{id}:delete", "m8"),
        (GET, "/articles/{iidd}!sup", "m4"),
        (GET, "/articles/{id}:{op}", "m3"),
        (GET, "/articles/{id}:{op}", "m2"),
        (GET, "/articles/{slug:^[a-z]+}/posts", "m0"),
        (GET, "/articles/{id}/posts/{pid}", "m6"),
        (GET, "/articles/{id}/posts/{month}/{day}/{year}/{slug}", "m7"),
        (GET, "/articles/{id}.json", "m10"),
        (GET, "/articles/{id}/data.json", "m11"),
        (GET, "/articles/files/{file}.{ext}", "m12"),
        (PUT, "/articles/me", "m13"),
        (GET, "/pages/*", "m0"),
        (GET, "/pages/*", "m9"),
        (GET, "/users/{id}", "m14"),
        (GET, "/users/{id}/settings/{key}", "m15"),
        (GET, "/users/{id}/settings/*", "m16"),
    ]
    for method, pattern, name in inserts:
        tr.insert_route(method, pattern, _h(name))
    return tr


MOAR_CASES = [
    (GET, "/articles/search", "m1", [], []),
    (GET, "/articlefun", "m5", [], []),
    (GET, "/articles/123", "m0", ["id"], ["123"]),
    (DELETE, "/articles/123mm", "m8", ["slug"], ["123mm"]),
    (GET, "/articles/789:delete", "m8", ["id"], ["789"]),
    (GET, "/articles/789!sup", "m4", ["iidd"], ["789"]),
    (GET, "/articles/123:sync", "m2", ["id", "op"], ["123", "sync"]),
    (GET, "/articles/456/posts/1", "m6", ["id", "pid"], ["456", "1"]),
    (
        GET,
        "/articles/456/posts/09/04/1984/juice",
        "m7",
        ["id", "month", "day", "year", "slug"],
        ["456", "09", "04", "1984", "juice"],
    ),
    (GET, "/articles/456.json", "m10", ["id"], ["456"]),
    (GET, "/articles/456/data.json", "m11", ["id"], ["456"]),
    (GET, "/articles/files/file.zip", "m12", ["file", "ext"], ["file", "zip"]),
    (GET, "/articles/files/photos.tar.gz", "m12", ["file", "ext"], ["photos", "tar.gz"]),
    (PUT, "/articles/me", "m13", [], []),
    (GET, "/articles/me", "m0", ["id"], ["me"]),
    (GET, "/pages", None, [], []),
    (GET, "/pages/", "m9", ["*"], [""]),
    (GET, "/pages/yes", "m9", ["*"], ["yes"]),
    (GET, "/users/1", "m14", ["id"], ["1"]),
    (GET, "/users/", None, [], []),
    (GET, "/users/2/settings/password", "m15", ["id", "key"], ["2", "password"]),
    (GET, "/users/2/settings/", "m16", ["id", "*"], ["2", ""]),
]


@pytest.mark.parametrize("method,path,name,keys,values", MOAR_CASES)
def test_tree_moar(moar_tree, method, path, name, keys, values):
    handler, got_keys, got_values = _lookup(moar_tree, method, path)
    assert handler is (_h(name) if name else None)
    assert got_keys == keys
    assert got_values == values


@pytest.fixture(scope="module")
def regexp_tree():
    tr = Node()
    tr.insert_route(GET, "/articles/{rid:^[0-9]{5,6}}", _h("r7"))
    tr.insert_route(GET, "/articles/{zid:^0[0-9]+}", _h("r3"))
    tr.insert_route(GET, "/articles/{name:^@[a-z]+}/posts", _h("r4"))
    tr.insert_route(GET, "/articles/{op:^[0-9]+}/run", _h("r5"))
    tr.insert_route(GET, "/articles/{id:^[0-9]+}", _h("r1"))
    tr.insert_route(GET, "/articles/{id:^[1-9]+}-{aux}", _h("r6"))
    tr.insert_route(GET, "/articles/{slug}", _h("r2"))
    return tr


REGEXP_CASES = [
    ("/articles", None, [], []),
    ("/articles/12345", "r7", ["rid"], ["12345"]),
    ("/articles/123", "r1", ["id"], ["123"]),
    ("/articles/how-to-build-a-router", "r2", ["slug"], ["how-to-build-a-router"]),
    ("/articles/0456", "r3", ["zid"], ["0456"]),
    ("/articles/@pk/posts", "r4", ["name"], ["@pk"]),
    ("/articles/1/run", "r5", ["op"], ["1"]),
    ("/articles/1122", "r1", ["id"], ["1122"]),
    ("/articles/1122-yes", "r6", ["id", "aux"], ["1122", "yes"]),
]


@pytest.mark.parametrize("path,name,keys,values", REGEXP_CASES)
def test_tree_regexp(regexp_tree, path, name, keys, values):
    handler, got_keys, got_values = _lookup(regexp_tree, GET, path)
    assert handler is (_h(name) if name else None)
    assert got_keys == keys
    assert got_values == values


@pytest.fixture(scope="module")
def recursive_tree():
    tr = Node()
    tr.insert_route(GET, "/one/{firstId:[a-z0-9-]+}/{secondId:[a-z0-9-]+}/first", _h("rr1"))
    tr.insert_route(GET, "/one/{firstId:[a-z0-9-_]+}/{secondId:[a-z0-9-_]+}/second", _h("rr2"))
    return tr


RECURSIVE_CASES = [
    ("/one/hello/world/first", "rr1", ["firstId", "secondId"], ["hello", "world"]),
    ("/one/hi_there/ok/second", "rr2", ["firstId", "secondId"], ["hi_there", "ok"]),
    ("/one///first", None, [], []),
    ("/one/hi/123/second", "rr2", ["firstId", "secondId"], ["hi", "123"]),
]


@pytest.mark.parametrize("path,name,keys,values", RECURSIVE_CASES)
def test_tree_regexp_recursive(recursive_tree, path, name, keys, values):
    handler, got_keys, got_values = _lookup(recursive_tree, GET, path)
    assert handler is (_h(name) if name else None)
    assert got_keys == keys
    assert got_values == values


@pytest.mark.parametrize(
    "url,matches",
    [
        ("/13", True),
        ("/a13", False),
        ("/13.jpg", False),
        ("/a13.jpg", False),
        ("/a/foo", True),
        ("//foo", False),
        ("//test", True),
    ],
)
def test_tree_regex_match_whole_param(url, matches):
    tr = Node()
    tr.insert_route(GET, "/{id:[0-9]+}", _h("whole"))
    tr.insert_route(GET, "/{x:.+}/foo", _h("whole"))
    tr.insert_route(GET, "/{param:[0-9]*}/test", _h("whole"))
    _, _, handler = tr.find_route(RouteContext(), GET, url)
    assert handler is (_h("whole") if matches else None)


@pytest.fixture(scope="module")
def pattern_tree():
    tr = Node()
    tr.insert_route(GET, "/pages/*", _h("p1"))
    tr.insert_route(GET, "/articles/{id}/*", _h("p2"))
    tr.insert_route(GET, "/articles/{slug}/{uid}/*", _h("p3"))
    return tr


@pytest.mark.parametrize(
    "pattern,expected",
    [
        ("/pages", False),
        ("/pages*", False),
        ("/pages/*", True),
        ("/articles/{id}/*", True),
        ("/articles/{something}/*", True),
        ("/articles/{slug}/{uid}/*", True),
    ],
)
def test_tree_find_pattern(pattern_tree, pattern, expected):
    assert pattern_tree.find_pattern(pattern) is expected


def test_find_route_records_url_params_and_pattern():
    tr = Node()
    tr.insert_route(GET, "/users/{id}", _h("u"))
    rctx = RouteContext()
    node, _, handler = tr.find_route(rctx, GET, "/users/7")
    assert handler is _h("u")
    assert node.is_leaf()
    assert rctx.url_params.keys == ["id"]
    assert rctx.url_params.values == ["7"]
    assert rctx.route_pattern == "/users/{id}"
    assert rctx.route_patterns == ["/users/{id}"]


def test_find_route_flags_method_not_allowed():
    tr = Node()
    tr.insert_route(GET, "/hi", _h("hi"))
    rctx = RouteContext()
    assert tr.find_route(rctx, POST, "/hi") == (None, None, None)
    assert rctx.method_not_allowed is True
    assert rctx.methods_allowed == [GET]


def test_insert_all_methods_registers_each():
    tr = Node()
    tr.insert_route(all_methods(), "/any", _h("any"))
    for method in (GET, POST, PUT, DELETE):
        _, _, handler = tr.find_route(RouteContext(), method, "/any")
        assert handler is _h("any")


def test_routes_groups_handlers_by_pattern():
    tr = Node()
    tr.insert_route(GET, "/a", _h("ga"))
    tr.insert_route(POST, "/a", _h("pa"))
    tr.insert_route(GET, "/b/{id}", _h("gb"))
    routes = {route.pattern: route for route in tr.routes()}
    assert set(routes) == {"/a", "/b/{id}"}
    assert routes["/a"].handlers == {"GET": _h("ga"), "POST": _h("pa")}
    assert routes["/b/{id}"].handlers == {"GET": _h("gb")}
    assert routes["/a"].sub_routes is None


def test_routes_includes_catch_all_method_marker():
    tr = Node()
    tr.insert_route(all_methods(), "/x", _h("x"))
    [route] = tr.routes()
    assert route.handlers["*"] is _h("x")
    assert route.handlers["GET"] is _h("x")
    assert route.handlers["TRACE"] is _h("x")


def test_empty_tree_has_no_routes():
    assert Node().routes() == []
    assert Node().is_leaf() is False


def test_pat_next_segment_regexp():
    seg = pat_next_segment("/{id:[0-9]+}/x")
    assert seg.typ == NodeType.REGEXP
    assert seg.key == "id"
    assert seg.rexpat == "^[0-9]+$"
    assert seg.tail == "/"
    assert (seg.start, seg.end) == (1, 12)


def test_pat_next_segment_param_with_tail():
    seg = pat_next_segment("{file}.{ext}")
    assert seg.typ == NodeType.PARAM
    assert seg.key == "file"
    assert seg.tail == "."
    assert (seg.start, seg.end) == (0, 6)


def test_pat_next_segment_static_and_catch_all():
    static = pat_next_segment("/abc")
    assert static.typ == NodeType.STATIC
    assert static.end == 4
    wild = pat_next_segment("/a/*")
    assert wild.typ == NodeType.CATCH_ALL
    assert wild.key == "*"
    assert (wild.start, wild.end) == (3, 4)


@pytest.mark.parametrize(
    "pattern",
    ["/*/wildcard/must/be/at/end", "/*/wildcard/{must}/be/at/end", "/{id"],
)
def test_pat_next_segment_rejects_bad_patterns(pattern):
    with pytest.raises(RoutingError):
        pat_next_segment(pattern)


def test_pat_param_keys():
    assert pat_param_keys("/a/{x}/{y:[0-9]+}/*") == ["x", "y", "*"]
    assert pat_param_keys("/static") == []


def test_pat_param_keys_rejects_duplicates():
    with pytest.raises(RoutingError):
        pat_param_keys("/articles/{id}/{id}")


def test_insert_route_rejects_wildcard_in_middle():
    with pytest.raises(RoutingError):
        Node().insert_route(GET, "/*/wildcard/must/be/at/end", _h("bad"))


def test_insert_route_rejects_invalid_regexp():
    with pytest.raises(RoutingError):
        Node().insert_route(GET, "/{id:[a-}", _h("bad"))


@pytest.mark.parametrize(
    "k1,k2,expected",
    [("/articles", "/articlefun", 8), ("abc", "abc", 3), ("", "abc", 0), ("x", "y", 0)],
)
def test_longest_prefix(k1, k2, expected):
    assert longest_prefix(k1, k2) == expected