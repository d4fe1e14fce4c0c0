# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Pair keys and the typing helpers used to compare member types."""

from __future__ import annotations

import collections.abc
import inspect
import types
import typing
from collections.abc import Callable
from typing import Any, NamedTuple, Union


class PairKey(NamedTuple):
    """Ordered (source type, destination type) identity of a mapping."""

    source: type
    destination: type

    def __str__(self) -> str:
        return f"{self.source.__qualname__} -> {self.destination.__qualname__}"

    def reversed(self) -> PairKey:
        return PairKey(self.destination, self.source)


class _Unset:
    """Sentinel for "no value supplied" where ``None`` is a legal value."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


# Destination container factory per collection origin. Abstract origins
# produce lists.
_COLLECTION_FACTORIES: dict[Any, Callable[[list[Any]], Any]] = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Iterable: list,
    collections.abc.Collection: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
}


def unwrap_optional(tp: Any) -> Any:
    """``X | None`` -> ``X``. Other unions are returned unchanged."""
    origin = typing.get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def is_optional(tp: Any) -> bool:
    origin = typing.get_origin(tp)
    return (origin is Union or origin is types.UnionType) and type(None) in typing.get_args(tp)


def runtime_class(tp: Any) -> type | None:
    """The class an annotation denotes at run time, if there is one."""
    tp = unwrap_optional(tp)
    if isinstance(tp, type):
        return tp
    origin = typing.get_origin(tp)
    if isinstance(origin, type):
        return origin
    return None


def collection_info(tp: Any) -> tuple[Callable[[list[Any]], Any], Any] | None:
    """Return ``(container factory, element type)`` for a sequence/set type.

    ``tuple[X, ...]`` is a collection; fixed-length tuples are not. Bare
    ``list`` yields an element type of ``Any``.
    """
    tp = unwrap_optional(tp)
    origin = typing.get_origin(tp) or tp
    if origin not in _COLLECTION_FACTORIES:
        return None
    args = typing.get_args(tp)
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple, args[0]
        if args:
            return None
    return _COLLECTION_FACTORIES[origin], (args[0] if args else Any)


def is_describable(tp: Any) -> bool:
    """Whether the type is a user class whose members can be mapped."""
    cls = runtime_class(tp)
    if cls is None or cls.__module__ == "builtins":
        return False
    return collection_info(tp) is None and not issubclass(cls, (collections.abc.Mapping, str, bytes))


def is_assignable(source: Any, destination: Any) -> bool:
    """Whether a value annotated *source* may be stored in *destination* as-is."""
    if destination is Any or source is Any:
        return True
    if source == destination:
        return True
    # Optionality is not checked: unset members hold None anyway.
    source, destination = unwrap_optional(source), unwrap_optional(destination)
    if source == destination or destination is object:
        return True

    dest_origin = typing.get_origin(destination)
    if dest_origin is Union or dest_origin is types.UnionType:
        return any(is_assignable(source, arm) for arm in typing.get_args(destination))

    if isinstance(source, type) and isinstance(destination, type):
        if destination is float and source is int:
            return True
        return issubclass(source, destination)

    src_origin = typing.get_origin(source)
    if src_origin is not None and src_origin == dest_origin:
        src_args, dest_args = typing.get_args(source), typing.get_args(destination)
        return len(src_args) == len(dest_args) and all(
            is_assignable(s, d) for s, d in zip(src_args, dest_args, strict=True)
        )
    if src_origin is not None and isinstance(destination, type) and isinstance(src_origin, type):
        # list[int] into a bare ``list`` annotation
        return issubclass(src_origin, destination)
    return False


def type_label(tp: Any) -> str:
    if isinstance(tp, type):
        return tp.__qualname__
    return repr(tp).replace("typing.", "")


def positional_arity(fn: Callable[..., Any], maximum: int) -> int:
    """Number of positional arguments *fn* accepts, capped at *maximum*.

    Lets hooks, conditions and expressions declare only the arguments they
    use: ``lambda src: ...`` and ``lambda src, dest, member, ctx: ...`` are
    both accepted.
    """
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return 1
    count = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return maximum
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return max(1, min(count, maximum))
