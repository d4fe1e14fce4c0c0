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
"""Type descriptors: the members a type exposes, discovered once per type.

Supported shapes:

- pydantic models (``model_fields``)
- dataclasses (``dataclasses.fields``)
- plain classes: annotations across the MRO, ``__slots__``, properties and
  ``__init__`` parameters

Usage::

    registry = TypeDescriptorRegistry()
    descriptor = registry.describe(UserDTO)
    [m.name for m in descriptor.members]
"""

from __future__ import annotations

import dataclasses
import inspect
import threading
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel

from flymap.kernel.exceptions import ReflectionError
from flymap.mapping.naming import normalize

logger = structlog.get_logger("flymap.mapping.descriptors")


class TypeKind(Enum):
    """How a described type stores and allocates its members."""

    DATACLASS = "dataclass"
    PYDANTIC = "pydantic"
    PLAIN = "plain"


@dataclass(frozen=True)
class MemberDescriptor:
    """One accessible member of a type."""

    name: str
    type: Any = Any
    readable: bool = True
    writable: bool = True
    has_default: bool = False
    init: bool = False

    @property
    def fillable(self) -> bool:
        """Settable by attribute, or accepted as a constructor keyword."""
        return self.writable or self.init

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TypeDescriptor:
    """Immutable description of a type's members, in declaration order."""

    type: type
    kind: TypeKind
    members: tuple[MemberDescriptor, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {m.name: m for m in self.members})
        normalized: dict[str, MemberDescriptor] = {}
        for member in self.members:
            normalized.setdefault(normalize(member.name), member)
        object.__setattr__(self, "_by_normalized", normalized)

    @property
    def names(self) -> list[str]:
        return [m.name for m in self.members]

    @property
    def writable_members(self) -> list[MemberDescriptor]:
        return [m for m in self.members if m.writable]

    @property
    def requires_construction(self) -> bool:
        """True when some member can only be set through the constructor (frozen types)."""
        return any(m.init and not m.writable for m in self.members)

    def member(self, name: str) -> MemberDescriptor | None:
        return self._by_name.get(name)  # type: ignore[attr-defined]

    def find(self, name: str, case_insensitive: bool = True) -> MemberDescriptor | None:
        """Find a member by exact name, then by normalised name."""
        found = self.member(name)
        if found is None and case_insensitive:
            found = self._by_normalized.get(normalize(name))  # type: ignore[attr-defined]
        return found

    def find_normalized(self, key: str) -> MemberDescriptor | None:
        return self._by_normalized.get(key)  # type: ignore[attr-defined]

    def create_instance(self) -> Any:
        """Allocate a blank instance without running validation.

        Defaults are applied; required members without a default hold None.
        """
        cls = self.type
        if self.kind is TypeKind.PYDANTIC:
            model_fields = cls.model_fields  # type: ignore[attr-defined]
            required = {name: None for name, info in model_fields.items() if info.is_required()}
            return cls.model_construct(**required)  # type: ignore[attr-defined]

        if self.kind is TypeKind.DATACLASS:
            instance = cls.__new__(cls)
            for field in dataclasses.fields(cls):
                if field.default is not dataclasses.MISSING:
                    value = field.default
                elif field.default_factory is not dataclasses.MISSING:
                    value = field.default_factory()
                else:
                    value = None
                object.__setattr__(instance, field.name, value)
            return instance

        try:
            instance = cls()
        except TypeError:
            instance = cls.__new__(cls)
        self._fill_missing(instance, {})
        return instance

    def construct(self, values: dict[str, Any]) -> Any:
        """Build an instance through its constructor from member *values*.

        Used for types whose members cannot be assigned after construction.
        Constructor members missing from *values* take their default, or
        None when they have none.
        """
        cls = self.type
        if self.kind is TypeKind.PYDANTIC:
            kwargs = {name: None for name, info in cls.model_fields.items() if info.is_required()}  # type: ignore[attr-defined]
            kwargs.update(values)
            return cls.model_construct(**kwargs)  # type: ignore[attr-defined]

        arguments: dict[str, Any] = {}
        later: dict[str, Any] = {}
        for member in self.members:
            if member.name in values:
                if member.init:
                    arguments[member.name] = values[member.name]
                else:
                    later[member.name] = values[member.name]
            elif member.init and not member.has_default:
                arguments[member.name] = None
        instance = cls(**arguments)
        for name, value in later.items():
            if self.kind is TypeKind.DATACLASS:
                object.__setattr__(instance, name, value)
            else:
                setattr(instance, name, value)
        if self.kind is TypeKind.PLAIN:
            self._fill_missing(instance, values)
        return instance

    def _fill_missing(self, instance: Any, values: dict[str, Any]) -> None:
        # Annotation-only members have no attribute until something sets one.
        defaults = _init_defaults(self.type)
        for member in self.members:
            if not member.writable or member.name in values or hasattr(instance, member.name):
                continue
            setattr(instance, member.name, defaults.get(member.name))


class TypeDescriptorRegistry:
    """Builds and caches :class:`TypeDescriptor` objects by type identity.

    Safe to share between threads: each type is described exactly once.
    """

    def __init__(self) -> None:
        self._descriptors: dict[type, TypeDescriptor] = {}
        self._lock = threading.Lock()

    def describe(self, target: type) -> TypeDescriptor:
        descriptor = self._descriptors.get(target)
        if descriptor is not None:
            return descriptor
        with self._lock:
            descriptor = self._descriptors.get(target)
            if descriptor is None:
                descriptor = self._build(target)
                self._descriptors[target] = descriptor
                logger.debug("type_described", type=target.__qualname__, members=descriptor.names)
        return descriptor

    def __contains__(self, target: type) -> bool:
        return target in self._descriptors

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def _build(self, target: type) -> TypeDescriptor:
        if not isinstance(target, type):
            raise ReflectionError(target)
        if issubclass(target, BaseModel):
            kind, members = TypeKind.PYDANTIC, self._pydantic_members(target)
        elif dataclasses.is_dataclass(target):
            kind, members = TypeKind.DATACLASS, self._dataclass_members(target)
        else:
            kind, members = TypeKind.PLAIN, self._plain_members(target)
        if not members:
            raise ReflectionError(target)
        return TypeDescriptor(type=target, kind=kind, members=tuple(members))

    @staticmethod
    def _pydantic_members(target: type[BaseModel]) -> list[MemberDescriptor]:
        frozen = bool(target.model_config.get("frozen", False))
        members = [
            MemberDescriptor(
                name=name,
                type=info.annotation if info.annotation is not None else Any,
                writable=not frozen and not info.frozen,
                has_default=not info.is_required(),
                init=True,
            )
            for name, info in target.model_fields.items()
            if not name.startswith("_")
        ]
        return members + _property_members(target, {m.name for m in members})

    @staticmethod
    def _dataclass_members(target: type) -> list[MemberDescriptor]:
        hints = _type_hints(target)
        frozen = target.__dataclass_params__.frozen  # type: ignore[attr-defined]
        members = [
            MemberDescriptor(
                name=field.name,
                type=hints.get(field.name, Any),
                writable=not frozen,
                has_default=(
                    field.default is not dataclasses.MISSING or field.default_factory is not dataclasses.MISSING
                ),
                init=field.init,
            )
            for field in dataclasses.fields(target)
            if not field.name.startswith("_")
        ]
        return members + _property_members(target, {m.name for m in members})

    @staticmethod
    def _plain_members(target: type) -> list[MemberDescriptor]:
        hints = _type_hints(target)
        params = _init_parameters(target)
        members: dict[str, MemberDescriptor] = {}

        def add(name: str, tp: Any = Any, has_default: bool = False) -> None:
            # A read-only property backed by a constructor argument
            attr = inspect.getattr_static(target, name, None)
            writable = not (isinstance(attr, property) and attr.fset is None)
            members[name] = MemberDescriptor(
                name=name, type=tp, writable=writable, has_default=has_default, init=name in params
            )

        for name, tp in hints.items():
            if name.startswith("_") or typing.get_origin(tp) is typing.ClassVar:
                continue
            add(name, tp, has_default=hasattr(target, name) or _has_default(params.get(name)))

        for klass in reversed(target.__mro__):
            for name in getattr(klass, "__slots__", ()):
                if not name.startswith("_") and name not in members:
                    add(name, has_default=_has_default(params.get(name)))

        for param in params.values():
            if param.name.startswith("_") or param.name in members:
                continue
            annotation = param.annotation
            if annotation is inspect.Parameter.empty or isinstance(annotation, str):
                annotation = Any
            add(param.name, annotation, has_default=_has_default(param))

        ordered = list(members.values())
        return ordered + _property_members(target, set(members))


def _init_parameters(target: type) -> dict[str, inspect.Parameter]:
    """Keyword-capable ``__init__`` parameters, by name."""
    init = getattr(target, "__init__", None)
    if init is None or init is object.__init__:
        return {}
    try:
        params = list(inspect.signature(init).parameters.values())[1:]
    except (TypeError, ValueError):
        return {}
    keyword = (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    return {p.name: p for p in params if p.kind in keyword}


def _has_default(param: inspect.Parameter | None) -> bool:
    return param is not None and param.default is not inspect.Parameter.empty


def _type_hints(target: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(target)
    except (NameError, TypeError):
        # Unresolvable forward references: keep the names, drop the types.
        hints: dict[str, Any] = {}
        for klass in reversed(target.__mro__):
            for name in inspect.get_annotations(klass):
                hints[name] = Any
        return hints


def _property_members(target: type, taken: set[str]) -> list[MemberDescriptor]:
    found: dict[str, property] = {}
    for klass in reversed(target.__mro__):
        # pydantic's own properties (model_extra, ...) are not data members
        if klass is object or klass.__module__.startswith("pydantic"):
            continue
        for name, attr in vars(klass).items():
            if isinstance(attr, property) and not name.startswith("_") and name not in taken:
                found[name] = attr

    members: list[MemberDescriptor] = []
    for name, attr in found.items():
        returns = Any
        if attr.fget is not None:
            try:
                returns = typing.get_type_hints(attr.fget).get("return", Any)
            except (NameError, TypeError):
                returns = Any
        members.append(MemberDescriptor(name=name, type=returns, writable=attr.fset is not None))
    return members


def _init_defaults(target: type) -> dict[str, Any]:
    return {name: p.default for name, p in _init_parameters(target).items() if _has_default(p)}
