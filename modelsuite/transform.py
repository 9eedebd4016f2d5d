"""
Record transformers.

A transformer reads values from keys other than a model's field names and
writes them under the field names, so externally shaped rows (CSV headers,
API payloads) can be handed straight to ``Model.create``::

    tf = transformer({"foo": {"from": "bar"}})
    tf({"bar": 1})            # {"bar": 1, "foo": 1}
    tf({"bar": 1}, True)      # {"foo": 1}

    tf = transformer({"foo": {"from": "bar"}}, only=True)
    tf({"bar": 1})            # {"foo": 1}
"""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

from modelsuite.utils.logging_utils import get_logger

Record = Dict[str, Any]

_MAX_GETTER_ARGS = 3


def getter(key, default=None) -> Callable:
    """
    Create a property getter from a key. A callable ``key`` is returned as-is.

    String-key getters fall back to ``default`` whenever the stored value is
    falsy, so ``0``, ``""`` and ``False`` are replaced too.
    """

    if callable(key):
        return key

    def get(record, *args):
        return record.get(key) or default

    return get


def field_source(field: Any) -> Any:
    """Return a field definition's ``from`` entry, or ``None`` for shorthand fields."""

    if isinstance(field, Mapping):
        return field.get("from")
    return None


def _positional_arity(fn: Callable) -> int:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return 1

    count = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return _MAX_GETTER_ARGS
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return max(1, min(count, _MAX_GETTER_ARGS))


@dataclass(frozen=True)
class ByKey:
    """Reads ``record[key]``, falling back to ``default`` on falsy values."""

    key: str
    default: Any = None

    def __call__(self, record: Mapping, name: str, field: Any) -> Any:
        return record.get(self.key) or self.default


@dataclass(frozen=True)
class ByFunction:
    """Calls ``fn(record, name, field)`` trimmed to the arguments ``fn`` accepts."""

    fn: Callable
    arity: int

    @classmethod
    def wrap(cls, fn: Callable) -> "ByFunction":
        return cls(fn, _positional_arity(fn))

    def __call__(self, record: Mapping, name: str, field: Any) -> Any:
        return self.fn(*(record, name, field)[: self.arity])


def resolve_getter(source: Any):
    if callable(source):
        return ByFunction.wrap(source)
    return ByKey(source)


def transformer(fields: Mapping, only: bool = False) -> Callable[..., Record]:
    """
    Build a transform function for a mapping of field definitions.

    Only fields carrying a ``from`` entry take part. ``from`` may name a key
    in the input record or be a function called with
    ``(record, name, field)``; functions may accept fewer arguments.

    The returned ``transform(record, only=None)`` never mutates ``record``.
    A non-``None`` ``only`` at call time takes precedence over the factory
    value.
    """

    getters = {}
    for name, field in fields.items():
        source = field_source(field)
        if source:
            getters[name] = (field, resolve_getter(source))

    factory_only = only
    get_logger("transform").debug("Built transform sources=%s only=%s", list(getters), factory_only)

    def transform(record: Mapping, only: Optional[bool] = None) -> Record:
        transformed = {name: get(record, name, field) for name, (field, get) in getters.items()}
        effective = factory_only if only is None else only
        if effective:
            return transformed
        merged = dict(record)
        merged.update(transformed)
        return merged

    transform.sources = tuple(getters)
    return transform


def transform_stream(transform: Callable[[Mapping], Record], records: Iterable[Mapping]) -> Iterator[Record]:
    """Lazily apply ``transform`` to each record of ``records``, one at a time."""

    for record in records:
        yield transform(record)
