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
"""Extension points: value resolvers, type converters and mapping hooks.

None of these require a base class. Any object with the right method
satisfies the protocol::

    class AgeResolver:
        def resolve(self, source, destination, member, context):
            return date.today().year - source.date_of_birth.year

    class BoolToStatusConverter:
        def convert(self, value, context):
            return "Active" if value else "Inactive"
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from flymap.mapping.types import PairKey, positional_arity

if TYPE_CHECKING:
    from flymap.mapping.descriptors import MemberDescriptor

T = TypeVar("T")

Hook = Callable[..., None]
"""``hook(source, destination)`` or ``hook(source, destination, context)``."""


@runtime_checkable
class ValueResolver(Protocol):
    """Produces the value of one destination member from the whole source."""

    def resolve(
        self,
        source: Any,
        destination: Any,
        member: MemberDescriptor,
        context: ResolutionContext,
    ) -> Any: ...


@runtime_checkable
class MemberValueResolver(Protocol):
    """Produces a destination member value from one source member's value."""

    def resolve(
        self,
        source: Any,
        destination: Any,
        source_value: Any,
        member: MemberDescriptor,
        context: ResolutionContext,
    ) -> Any: ...


@runtime_checkable
class TypeConverter(Protocol):
    """Converts a value of one type into another, reusable across members."""

    def convert(self, value: Any, context: ResolutionContext) -> Any: ...


class FunctionConverter:
    """Adapts ``fn(value)`` or ``fn(value, context)`` to :class:`TypeConverter`."""

    __slots__ = ("_fn", "_arity")

    def __init__(self, fn: Callable[..., Any]) -> None:
        self._fn = fn
        self._arity = positional_arity(fn, 2)

    def convert(self, value: Any, context: ResolutionContext) -> Any:
        if self._arity == 1:
            return self._fn(value)
        return self._fn(value, context)

    def __repr__(self) -> str:
        return f"FunctionConverter({getattr(self._fn, '__qualname__', self._fn)!r})"


def instantiate(extension: Any) -> Any:
    """Classes are instantiated with no arguments; instances pass through."""
    return extension() if isinstance(extension, type) else extension


def as_converter(converter: Any) -> TypeConverter:
    converter = instantiate(converter)
    if isinstance(converter, TypeConverter):
        return converter
    if callable(converter):
        return FunctionConverter(converter)
    raise TypeError(f"{converter!r} is neither a TypeConverter nor a callable")


@dataclass(frozen=True)
class ConverterBinding:
    """A converter registered for an exact (source type, destination type)."""

    source: Any
    destination: Any
    converter: TypeConverter

    def convert(self, value: Any, context: ResolutionContext) -> Any:
        return self.converter.convert(value, context)


def call_hook(hook: Hook, source: Any, destination: Any, context: ResolutionContext) -> None:
    if positional_arity(hook, 3) >= 3:
        hook(source, destination, context)
    else:
        hook(source, destination)


@dataclass
class ResolutionContext:
    """Per-call state handed to resolvers, converters, expressions and hooks.

    ``items`` carries caller-supplied values (``mapper.map(src, Dest,
    items={"locale": "de"})``). ``map`` maps a sub-object with the same
    engine, sharing the context.
    """

    mapper: Any
    items: dict[str, Any] = field(default_factory=dict)
    pair: PairKey | None = None
    depth: int = 0

    def map(self, source: Any, destination_type: type[T]) -> T:
        return self.mapper.map(source, destination_type, items=self.items)

    def nested(self, pair: PairKey) -> ResolutionContext:
        return ResolutionContext(mapper=self.mapper, items=self.items, pair=pair, depth=self.depth + 1)
