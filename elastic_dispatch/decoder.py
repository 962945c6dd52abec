"""Pluggable decoding of response bodies.

A decoder turns the raw bytes of a response into the type a caller asked
for. ``target=None`` means plain JSON values (dict, list, str, ...);
any other target is validated with pydantic, so models, ``dict[str, Any]``,
``list[int]`` and the like all work.
"""

import collections.abc
import json
import threading
import types
from decimal import Decimal
from functools import lru_cache
from typing import (Any, List, Protocol, Set, Type, Union, get_args, get_origin,
                    runtime_checkable)

from pydantic import BaseModel, TypeAdapter, ValidationError

from elastic_dispatch.errors import DecodeError


@runtime_checkable
class Decoder(Protocol):
    def decode(self, data: bytes, target: Any = None) -> Any:
        ...


@lru_cache(maxsize=256)
def _type_adapter(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def _validate(value: Any, target: Any) -> Any:
    if target is None:
        return value
    try:
        return _type_adapter(target).validate_python(value)
    except ValidationError as e:
        raise DecodeError(f"cannot decode response into {target!r}: {e}") from e


class DefaultDecoder:
    """Standard JSON decoding."""

    def loads(self, data: bytes) -> Any:
        return json.loads(data)

    def decode(self, data: bytes, target: Any = None) -> Any:
        try:
            value = self.loads(data)
        except ValueError as e:
            raise DecodeError(f"invalid JSON in response body: {e}") from e
        return _validate(value, target)


class NumberDecoder(DefaultDecoder):
    """Keeps floating point literals as ``Decimal`` instead of ``float``.

    Integers are already exact in Python, so 64-bit IDs and counters survive
    either way; this decoder additionally keeps large or precise decimals
    from being rounded.
    """

    def loads(self, data: bytes) -> Any:
        return json.loads(data, parse_float=Decimal)


def _declared_keys(model: Type[BaseModel]) -> Set[str]:
    keys: Set[str] = set()
    for name, field in model.model_fields.items():
        keys.add(name)
        if field.alias:
            keys.add(field.alias)
        if isinstance(field.validation_alias, str):
            keys.add(field.validation_alias)
    return keys


def _undeclared_keys(value: Any, annotation: Any, path: str = "") -> List[str]:
    """Dotted paths of keys in ``value`` that ``annotation`` does not declare, at any depth."""
    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Union or origin is types.UnionType:
        first: List[str] = []
        for arg in args:
            if arg is type(None):
                continue
            found = _undeclared_keys(value, arg, path)
            if not found:
                return []
            first = first or found
        return first

    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        if not isinstance(value, dict):
            return []
        declared = _declared_keys(annotation)
        found = [f"{path}{key}" for key in value if key not in declared]
        for name, field in annotation.model_fields.items():
            for key in (field.alias, field.validation_alias, name):
                if isinstance(key, str) and key in value:
                    found.extend(_undeclared_keys(value[key], field.annotation, f"{path}{key}."))
                    break
        return found

    if origin in (list, set, frozenset, collections.abc.Sequence) and isinstance(value, list) and args:
        found = []
        for i, item in enumerate(value):
            found.extend(_undeclared_keys(item, args[0], f"{path}{i}."))
        return found

    if origin in (dict, collections.abc.Mapping) and isinstance(value, dict) and len(args) == 2:
        found = []
        for key, item in value.items():
            found.extend(_undeclared_keys(item, args[1], f"{path}{key}."))
        return found

    return []


class StrictDecoder(DefaultDecoder):
    """Rejects fields the target does not declare, in nested models too.

    Used in tests to notice when the server's response shape drifts away
    from the models. Models declared with ``extra="allow"`` are held to their
    declared fields as well.
    """

    def decode(self, data: bytes, target: Any = None) -> Any:
        try:
            value = self.loads(data)
        except ValueError as e:
            raise DecodeError(f"invalid JSON in response body: {e}") from e
        if target is None:
            return value
        undeclared = _undeclared_keys(value, target)
        if undeclared:
            raise DecodeError(f"cannot decode response into {target!r}: undeclared fields {', '.join(undeclared)}")
        return _validate(value, target)


class CountingDecoder:
    """Wraps another decoder and counts how often it is invoked."""

    def __init__(self, inner: Decoder | None = None) -> None:
        self.inner: Decoder = inner if inner is not None else DefaultDecoder()
        self._lock = threading.Lock()
        self._count = 0

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def decode(self, data: bytes, target: Any = None) -> Any:
        with self._lock:
            self._count += 1
        return self.inner.decode(data, target)
