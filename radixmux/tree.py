"""Radix tree that stores routing patterns and resolves request paths."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, NamedTuple

from .methods import STUB, RoutingError, all_methods, method_name
from .request import RouteContext

# Stand-in for "no delimiter byte": never present in a request path.
_NO_BYTE = "\x00"


class NodeType(enum.IntEnum):
    """Kinds of tree nodes, in the order they are searched."""

    STATIC = 0
    REGEXP = 1
    PARAM = 2
    CATCH_ALL = 3


@dataclass
class Endpoint:
    """Handler registered for one method on a leaf node."""

    handler: Any = None
    pattern: str = ""
    param_keys: list[str] = field(default_factory=list)


@dataclass
class Route:
    """Routing information for one pattern: its handlers by method name."""

    sub_routes: Any
    handlers: dict[str, Any]
    pattern: str


class _Segment(NamedTuple):
    typ: NodeType
    key: str
    rexpat: str
    tail: str
    start: int
    end: int


def _method_bits(mask: int) -> Iterator[int]:
    while mask:
        low = mask & -mask
        yield low
        mask ^= low


def _binary_find_edge(nodes: list[Node], label: str) -> Node | None:
    lo, hi = 0, len(nodes) - 1
    idx = 0
    while lo <= hi:
        idx = lo + (hi - lo) // 2
        if label > nodes[idx].label:
            lo = idx + 1
        elif label < nodes[idx].label:
            hi = idx - 1
        else:
            break
    return nodes[idx] if nodes[idx].label == label else None


def _sort_nodes(nodes: list[Node]) -> None:
    nodes.sort(key=lambda n: n.label)
    # Param nodes delimited by '/' are tried last.
    for idx, candidate in reversed(list(enumerate(nodes))):
        if candidate.typ > NodeType.STATIC and candidate.tail == "/":
            nodes[idx], nodes[-1] = nodes[-1], nodes[idx]
            return


@dataclass(eq=False)
class Node:
    """A node of the routing tree; the root is an empty static node."""

    typ: NodeType = NodeType.STATIC
    label: str = _NO_BYTE
    tail: str = _NO_BYTE
    prefix: str = ""
    rex: re.Pattern[str] | None = None
    endpoints: dict[int, Endpoint] | None = None
    subroutes: Any = None
    children: list[list[Node]] = field(
        default_factory=lambda: [[] for _ in NodeType], repr=False
    )

    def insert_route(self, method: int, pattern: str, handler: Any) -> Node:
        """Register a handler for method flags on pattern; return the leaf node."""
        n: Node = self
        search = pattern
        while True:
            if not search:
                n._set_endpoint(method, handler, pattern)
                return n

            label = search[0]
            seg_typ = NodeType.STATIC
            seg_tail = _NO_BYTE
            seg_end = 0
            seg_rexpat = ""
            if label in ("{", "*"):
                seg = pat_next_segment(search)
                seg_typ, seg_rexpat, seg_tail, seg_end = seg.typ, seg.rexpat, seg.tail, seg.end

            prefix = seg_rexpat if seg_typ == NodeType.REGEXP else ""

            parent = n
            edge = n._get_edge(seg_typ, label, seg_tail, prefix)

            if edge is None:
                child = Node(label=label, tail=seg_tail, prefix=search)
                leaf = parent._add_child(child, search)
                leaf._set_endpoint(method, handler, pattern)
                return leaf
            n = edge

            if n.typ > NodeType.STATIC:
                search = search[seg_end:]
                continue

            common = longest_prefix(search, n.prefix)
            if common == len(n.prefix):
                search = search[common:]
                continue

            # Split the static node at the common prefix.
            child = Node(typ=NodeType.STATIC, prefix=search[:common])
            parent._replace_child(search[0], seg_tail, child)

            n.label = n.prefix[common]
            n.prefix = n.prefix[common:]
            child._add_child(n, n.prefix)

            search = search[common:]
            if not search:
                child._set_endpoint(method, handler, pattern)
                return child

            subchild = Node(typ=NodeType.STATIC, label=search[0], prefix=search)
            leaf = child._add_child(subchild, search)
            leaf._set_endpoint(method, handler, pattern)
            return leaf

    def _add_child(self, child: Node, prefix: str) -> Node:
        search = prefix
        leaf = child
        seg = pat_next_segment(search)

        if seg.typ != NodeType.STATIC:
            if seg.typ == NodeType.REGEXP:
                try:
                    rex = re.compile(seg.rexpat)
                except re.error as exc:
                    raise RoutingError(
                        f"radixmux: invalid regexp pattern '{seg.rexpat}' in route param"
                    ) from exc
                child.prefix = seg.rexpat
                child.rex = rex

            if seg.start == 0:
                child.typ = seg.typ
                start = len(search) if seg.typ == NodeType.CATCH_ALL else seg.end
                child.tail = seg.tail
                if start != len(search):
                    search = search[start:]
                    nn = Node(typ=NodeType.STATIC, label=search[0], prefix=search)
                    leaf = child._add_child(nn, search)
            elif seg.start > 0:
                child.typ = NodeType.STATIC
                child.prefix = search[: seg.start]
                child.rex = None
                search = search[seg.start :]
                nn = Node(typ=seg.typ, label=search[0], tail=seg.tail)
                leaf = child._add_child(nn, search)

        group = self.children[child.typ]
        group.append(child)
        _sort_nodes(group)
        return leaf

    def _replace_child(self, label: str, tail: str, child: Node) -> None:
        group = self.children[child.typ]
        for idx, existing in enumerate(group):
            if existing.label == label and existing.tail == tail:
                child.label = label
                child.tail = tail
                group[idx] = child
                return
        raise RoutingError("radixmux: replacing missing child")

    def _get_edge(self, ntyp: NodeType, label: str, tail: str, prefix: str) -> Node | None:
        for candidate in self.children[ntyp]:
            if candidate.label == label and candidate.tail == tail:
                if ntyp == NodeType.REGEXP and candidate.prefix != prefix:
                    continue
                return candidate
        return None

    def _endpoint(self, method: int) -> Endpoint:
        assert self.endpoints is not None
        return self.endpoints.setdefault(method, Endpoint())

    def _set_endpoint(self, method: int, handler: Any, pattern: str) -> None:
        if self.endpoints is None:
            self.endpoints = {}

        param_keys = pat_param_keys(pattern)

        if method & STUB == STUB:
            self._endpoint(STUB).handler = handler

        everything = all_methods()
        targets = [everything, *_method_bits(everything)] if method & everything == everything else [method]
        for flag in targets:
            ep = self._endpoint(flag)
            ep.handler = handler
            ep.pattern = pattern
            ep.param_keys = param_keys

    def find_route(
        self, rctx: RouteContext, method: int, path: str
    ) -> tuple[Node | None, dict[int, Endpoint] | None, Any]:
        """Resolve path for method flag.

        Returns the matching node, its endpoints and the handler, or three
        Nones. The context's route params, URL params and patterns are updated.
        """
        rctx.route_pattern = ""
        rctx.route_params.keys.clear()
        rctx.route_params.values.clear()

        found = self._find(rctx, method, path)
        if found is None:
            return None, None, None

        rctx.url_params.keys.extend(rctx.route_params.keys)
        rctx.url_params.values.extend(rctx.route_params.values)

        assert found.endpoints is not None
        ep = found.endpoints[method]
        if ep.pattern:
            rctx.route_pattern = ep.pattern
            rctx.route_patterns.append(ep.pattern)

        return found, found.endpoints, ep.handler

    def _check_leaf(self, rctx: RouteContext, method: int) -> bool:
        """Record the params if the leaf serves method; otherwise note allowed methods."""
        if not self.is_leaf():
            return False
        assert self.endpoints is not None
        ep = self.endpoints.get(method)
        if ep is not None and ep.handler is not None:
            rctx.route_params.keys.extend(ep.param_keys)
            return True
        everything = all_methods()
        rctx.methods_allowed.extend(
            flag for flag in self.endpoints if flag not in (everything, STUB)
        )
        rctx.method_not_allowed = True
        return False

    def _find(self, rctx: RouteContext, method: int, path: str) -> Node | None:
        search = path
        values = rctx.route_params.values

        for ntyp, nodes in zip(NodeType, self.children):
            if not nodes:
                continue

            xn: Node | None = None
            xsearch = search
            label = search[0] if search else _NO_BYTE

            if ntyp == NodeType.STATIC:
                xn = _binary_find_edge(nodes, label)
                if xn is None or not xsearch.startswith(xn.prefix):
                    continue
                xsearch = xsearch[len(xn.prefix) :]

            elif ntyp in (NodeType.PARAM, NodeType.REGEXP):
                if not xsearch:
                    continue

                for xn in nodes:
                    p = xsearch.find(xn.tail)
                    if p < 0:
                        if xn.tail == "/":
                            p = len(xsearch)
                        else:
                            continue
                    elif ntyp == NodeType.REGEXP and p == 0:
                        continue

                    segment = xsearch[:p]
                    if ntyp == NodeType.REGEXP and xn.rex is not None:
                        if not xn.rex.search(segment):
                            continue
                    elif "/" in segment:
                        continue

                    prevlen = len(values)
                    values.append(segment)
                    xsearch = xsearch[p:]

                    if not xsearch and xn._check_leaf(rctx, method):
                        return xn

                    found = xn._find(rctx, method, xsearch)
                    if found is not None:
                        return found

                    del values[prevlen:]
                    xsearch = search

                values.append("")

            else:
                values.append(search)
                xn = nodes[0]
                xsearch = ""

            if xn is None:
                continue

            if not xsearch and xn._check_leaf(rctx, method):
                return xn

            found = xn._find(rctx, method, xsearch)
            if found is not None:
                return found

            if xn.typ > NodeType.STATIC and values:
                values.pop()

        return None

    def _find_edge(self, ntyp: NodeType, label: str) -> Node | None:
        nodes = self.children[ntyp]
        if ntyp == NodeType.CATCH_ALL:
            return nodes[0]
        return _binary_find_edge(nodes, label)

    def is_leaf(self) -> bool:
        """Whether any endpoint has been registered on this node."""
        return self.endpoints is not None

    def find_pattern(self, pattern: str) -> bool:
        """Whether a routing pattern of the same shape is already in the tree."""
        for nodes in self.children:
            if not nodes:
                continue

            edge = self._find_edge(nodes[0].typ, pattern[0])
            if edge is None:
                continue

            if edge.typ == NodeType.STATIC:
                idx = longest_prefix(pattern, edge.prefix)
                if idx < len(edge.prefix):
                    continue
            elif edge.typ in (NodeType.PARAM, NodeType.REGEXP):
                idx = pattern.find("}") + 1
            else:
                idx = longest_prefix(pattern, "*")

            rest = pattern[idx:]
            if not rest:
                return True
            return edge.find_pattern(rest)
        return False

    def routes(self) -> list[Route]:
        """Return one Route per registered pattern found in the tree."""
        found: list[Route] = []

        def visit(eps: dict[int, Endpoint], subroutes: Any) -> bool:
            stub = eps.get(STUB)
            if stub is not None and stub.handler is not None and subroutes is None:
                return False

            by_pattern: dict[str, dict[int, Endpoint]] = {}
            for flag, ep in eps.items():
                if ep.pattern:
                    by_pattern.setdefault(ep.pattern, {})[flag] = ep

            everything = all_methods()
            for pattern, group in by_pattern.items():
                handlers: dict[str, Any] = {}
                catch = group.get(everything)
                if catch is not None and catch.handler is not None:
                    handlers["*"] = catch.handler
                for flag, ep in group.items():
                    if ep.handler is None:
                        continue
                    name = method_name(flag)
                    if name is not None:
                        handlers[name] = ep.handler
                found.append(Route(subroutes, handlers, pattern))
            return False

        self._walk(visit)
        return found

    def _walk(self, fn: Callable[[dict[int, Endpoint], Any], bool]) -> bool:
        if (self.endpoints is not None or self.subroutes is not None) and fn(
            self.endpoints or {}, self.subroutes
        ):
            return True
        return any(child._walk(fn) for group in self.children for child in group)


def pat_next_segment(pattern: str) -> _Segment:
    """Describe the next segment of a pattern.

    Returns the node type, param key, anchored regexp, delimiter after the
    param, and the start and end offsets of the segment.
    """
    ps = pattern.find("{")
    ws = pattern.find("*")

    if ps < 0 and ws < 0:
        return _Segment(NodeType.STATIC, "", "", _NO_BYTE, 0, len(pattern))

    if ps >= 0 and ws >= 0 and ws < ps:
        raise RoutingError(
            "radixmux: wildcard '*' must be the last pattern in a route, otherwise use a '{param}'"
        )

    tail = "/"

    if ps >= 0:
        nt = NodeType.PARAM
        depth = 0
        pe = ps
        for offset, ch in enumerate(pattern[ps:]):
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    pe = ps + offset
                    break
        if pe == ps:
            raise RoutingError("radixmux: route param closing delimiter '}' is missing")

        key = pattern[ps + 1 : pe]
        pe += 1
        if pe < len(pattern):
            tail = pattern[pe]

        key, sep, rexpat = key.partition(":")
        if sep:
            nt = NodeType.REGEXP
        if rexpat:
            if not rexpat.startswith("^"):
                rexpat = "^" + rexpat
            if not rexpat.endswith("$"):
                rexpat += "$"

        return _Segment(nt, key, rexpat, tail, ps, pe)

    if ws < len(pattern) - 1:
        raise RoutingError(
            "radixmux: wildcard '*' must be the last value in a route. "
            "trim trailing text or use a '{param}' instead"
        )
    return _Segment(NodeType.CATCH_ALL, "*", "", _NO_BYTE, ws, len(pattern))


def pat_param_keys(pattern: str) -> list[str]:
    """Return the param keys of a pattern in order; duplicates are an error."""
    keys: list[str] = []
    rest = pattern
    while True:
        seg = pat_next_segment(rest)
        if seg.typ == NodeType.STATIC:
            return keys
        if seg.key in keys:
            raise RoutingError(
                f"radixmux: routing pattern '{pattern}' contains duplicate param key, '{seg.key}'"
            )
        keys.append(seg.key)
        rest = rest[seg.end :]


def longest_prefix(k1: str, k2: str) -> int:
    """Return the length of the common prefix of two strings."""
    count = 0
    for a, b in zip(k1, k2):
        if a != b:
            break
        count += 1
    return count