"""Renderer and Binder payload protocols and their recursive application."""

from __future__ import annotations

import abc
import dataclasses
from typing import Any, Iterator, Mapping

from ..request import Request, ResponseRecorder
from .decoder import default_decoder


class Renderer(abc.ABC):
    """A response payload that prepares itself before being written."""

    @abc.abstractmethod
    def render(self, w: ResponseRecorder, r: Request) -> None:
        """Prepare the payload; raise to abort the response."""


class Binder(abc.ABC):
    """A request payload that post-processes itself after decoding."""

    @abc.abstractmethod
    def bind(self, r: Request) -> None:
        """Validate or complete the payload; raise to reject the request."""


def _field_values(obj: Any) -> Iterator[Any]:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        for f in dataclasses.fields(obj):
            yield getattr(obj, f.name)
    elif hasattr(obj, "__dict__"):
        yield from list(vars(obj).values())


def _is_record(obj: Any) -> bool:
    if isinstance(obj, type):
        return False
    return dataclasses.is_dataclass(obj) or hasattr(obj, "__dict__")


def _populate(target: Any, data: Mapping[str, Any]) -> None:
    for key, value in data.items():
        if not isinstance(key, str) or key.startswith("_") or not hasattr(target, key):
            continue
        current = getattr(target, key)
        if callable(current) and not _is_record(current):
            continue
        if isinstance(value, Mapping) and _is_record(current) and not isinstance(current, Mapping):
            _populate(current, value)
        else:
            setattr(target, key, value)


def run_renderers(w: ResponseRecorder, r: Request, value: Renderer) -> None:
    """Call render on value, then on each of its non-None Renderer fields, top-down."""
    value.render(w, r)
    for field_value in _field_values(value):
        if isinstance(field_value, Renderer):
            run_renderers(w, r, field_value)


def _run_binders(r: Request, target: Binder) -> None:
    for field_value in _field_values(target):
        if isinstance(field_value, Binder):
            _run_binders(r, field_value)
    target.bind(r)


def bind(request: Request, target: Binder) -> Binder:
    """Decode the request body into target, then run its binders bottom-up.

    Keys of a decoded mapping set the matching attributes of target; nested
    mappings fill nested objects. Returns target.
    """
    data = default_decoder(request)
    if isinstance(data, Mapping):
        _populate(target, data)
    _run_binders(request, target)
    return target