"""HTTP method flags used by the routing tree, and the registry of known methods."""

from __future__ import annotations

STUB = 1 << 0
CONNECT = 1 << 1
DELETE = 1 << 2
GET = 1 << 3
HEAD = 1 << 4
OPTIONS = 1 << 5
PATCH = 1 << 6
POST = 1 << 7
PUT = 1 << 8
TRACE = 1 << 9

_STANDARD_METHODS = {
    "CONNECT": CONNECT,
    "DELETE": DELETE,
    "GET": GET,
    "HEAD": HEAD,
    "OPTIONS": OPTIONS,
    "PATCH": PATCH,
    "POST": POST,
    "PUT": PUT,
    "TRACE": TRACE,
}

# Width of the flag word the method set is limited to.
_INT_SIZE = 64


class RoutingError(ValueError):
    """Raised when a route, pattern or method cannot be registered or used."""


class _MethodRegistry:
    """Mapping between method names and their bit flags."""

    def __init__(self) -> None:
        self.flags: dict[str, int] = dict(_STANDARD_METHODS)
        self.names: dict[int, str] = {flag: name for name, flag in self.flags.items()}
        self.all = 0
        for flag in self.flags.values():
            self.all |= flag

    def register(self, method: str) -> int | None:
        if not method:
            return None
        method = method.upper()
        existing = self.flags.get(method)
        if existing is not None:
            return existing
        count = len(self.flags)
        if count > _INT_SIZE - 2:
            raise RoutingError(
                f"radixmux: max number of methods reached ({_INT_SIZE})"
            )
        flag = 2 << count
        self.flags[method] = flag
        self.names[flag] = method
        self.all |= flag
        return flag


_REGISTRY = _MethodRegistry()


def register_method(method: str) -> int | None:
    """Add support for a custom HTTP method and return its flag.

    The name is upper-cased. Registering a known method returns its existing
    flag; an empty name is ignored and returns None.
    """
    return _REGISTRY.register(method)


def lookup_method(method: str) -> int | None:
    """Return the flag of an exactly spelled method name, or None if unknown."""
    return _REGISTRY.flags.get(method)


def method_name(flag: int) -> str | None:
    """Return the method name for a single flag, or None if it has none."""
    return _REGISTRY.names.get(flag)


def all_methods() -> int:
    """Return the mask of every known method, standard and registered."""
    return _REGISTRY.all