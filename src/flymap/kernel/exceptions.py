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
"""Unified exception hierarchy for flymap.

All library exceptions inherit from FlyMapException, so callers can catch
one type to handle every mapping failure, or a subclass for targeted handling.

Categories:
- ConfigurationException: problems in the declared mappings, raised while
  registering, sealing, describing types or validating.
- MappingExecutionException: problems while running a plan against data.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def _type_name(tp: Any) -> str:
    return getattr(tp, "__qualname__", None) or getattr(tp, "__name__", None) or repr(tp)


def _pair_name(pair: Any) -> str:
    source, destination = pair
    return f"{_type_name(source)} -> {_type_name(destination)}"


# =============================================================================
# Base Exception
# =============================================================================


class FlyMapException(Exception):
    """Base exception for all flymap errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "MAPPING_SEALED").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationException(FlyMapException):
    """The declared mapping configuration is invalid or incomplete."""


class ReflectionError(ConfigurationException):
    """A type exposes no accessible members and cannot take part in mapping."""

    def __init__(self, target: type) -> None:
        self.target = target
        super().__init__(
            f"Type '{_type_name(target)}' exposes no accessible members",
            code="REFLECTION_NO_MEMBERS",
            context={"type": _type_name(target)},
        )


class AlreadySealedError(ConfigurationException):
    """Registration was attempted after the configuration store was sealed."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: the mapping configuration is sealed",
            code="MAPPING_SEALED",
            context={"operation": operation},
        )


class UnknownMemberError(ConfigurationException):
    """A rule names a member the type does not expose."""

    def __init__(self, target: type, member: str) -> None:
        self.target = target
        self.member = member
        super().__init__(
            f"Type '{_type_name(target)}' has no member named '{member}'",
            code="MAPPING_UNKNOWN_MEMBER",
            context={"type": _type_name(target), "member": member},
        )


class MappingNotFoundError(ConfigurationException):
    """No mapping is registered for the requested type pair."""

    def __init__(self, pair: tuple[type, type]) -> None:
        self.pair = pair
        super().__init__(
            f"No mapping registered for {_pair_name(pair)}",
            code="MAPPING_NOT_FOUND",
            context={"pair": _pair_name(pair)},
        )


class UnresolvedBaseMappingError(ConfigurationException):
    """One or more ``include_base`` references point at unregistered pairs.

    ``missing`` maps each derived pair to the base pair it could not find.
    """

    def __init__(self, missing: Iterable[tuple[tuple[type, type], tuple[type, type]]]) -> None:
        self.missing = list(missing)
        lines = [f"  {_pair_name(derived)} includes {_pair_name(base)}" for derived, base in self.missing]
        super().__init__(
            "Unresolved base mappings:\n" + "\n".join(lines),
            code="MAPPING_UNRESOLVED_BASE",
            context={"missing": [(_pair_name(d), _pair_name(b)) for d, b in self.missing]},
        )


class CyclicMappingError(ConfigurationException):
    """The type-pair graph contains a cycle that would recurse without end."""

    def __init__(self, cycle: list[tuple[type, type]]) -> None:
        self.cycle = cycle
        chain = " => ".join(f"({_pair_name(p)})" for p in cycle)
        super().__init__(
            f"Cyclic mapping detected: {chain}. Nested members are mapped without tracking visited "
            "instances, so every cycle is rejected, optional back-references included. "
            "Break it with ignore() or a map_from() expression on the back-reference member.",
            code="MAPPING_CYCLE",
            context={"cycle": [_pair_name(p) for p in cycle]},
        )


class ConfigurationValidationError(ConfigurationException):
    """Strict validation found problems in the sealed configuration."""

    def __init__(self, issues: list[Any], code: str = "MAPPING_INVALID") -> None:
        self.issues = list(issues)
        lines = [f"  {issue}" for issue in self.issues]
        super().__init__(
            f"Mapping configuration has {len(self.issues)} issue(s):\n" + "\n".join(lines),
            code=code,
            context={"issues": [str(issue) for issue in self.issues]},
        )


class UnconvertibleMemberError(ConfigurationValidationError):
    """A member pair has mismatched types and no registered converter."""

    def __init__(self, issues: list[Any]) -> None:
        super().__init__(issues, code="MAPPING_UNCONVERTIBLE")


# =============================================================================
# Execution Exceptions
# =============================================================================


class MappingExecutionException(FlyMapException):
    """A compiled plan failed while running against concrete data."""


class NullSourceError(MappingExecutionException):
    """``map`` or ``map_into`` was called without a source instance."""

    def __init__(self, pair: tuple[type, type] | None = None, argument: str = "source") -> None:
        self.pair = pair
        where = f" for {_pair_name(pair)}" if pair is not None else ""
        super().__init__(
            f"Cannot map a missing {argument}{where}",
            code="MAPPING_NULL_SOURCE",
            context={"argument": argument, "pair": _pair_name(pair) if pair else None},
        )


class MemberMappingError(MappingExecutionException):
    """Filling a single destination member failed.

    The underlying failure is chained as ``__cause__``.
    """

    def __init__(
        self,
        pair: tuple[type, type],
        member: str,
        reason: str,
        code: str = "MAPPING_MEMBER_FAILED",
    ) -> None:
        self.pair = pair
        self.member = member
        self.reason = reason
        super().__init__(
            f"Error mapping {_pair_name(pair)}, member '{member}': {reason}",
            code=code,
            context={"pair": _pair_name(pair), "member": member},
        )


class ResolverExecutionError(MemberMappingError):
    """A bound value resolver raised while producing a member value."""

    def __init__(self, pair: tuple[type, type], member: str, resolver: Any, cause: BaseException) -> None:
        self.resolver = resolver
        name = _type_name(type(resolver))
        super().__init__(
            pair,
            member,
            f"resolver {name} failed: {cause}",
            code="MAPPING_RESOLVER_FAILED",
        )
        self.context["resolver"] = name


class ImmutableDestinationError(MappingExecutionException):
    """``map_into`` was given an instance whose members cannot be reassigned."""

    def __init__(self, pair: tuple[type, type], members: Iterable[str]) -> None:
        self.pair = pair
        self.members = list(members)
        super().__init__(
            f"Cannot update an existing {_type_name(pair[1])}: members {', '.join(self.members)} "
            "are set only by its constructor. Use map() to build a new instance",
            code="MAPPING_IMMUTABLE_DESTINATION",
            context={"pair": _pair_name(pair), "members": self.members},
        )


class ConstructionError(MappingExecutionException):
    """The destination constructor rejected the mapped member values."""

    def __init__(self, pair: tuple[type, type], cause: BaseException) -> None:
        self.pair = pair
        super().__init__(
            f"Error constructing {_type_name(pair[1])} for {_pair_name(pair)}: {cause}",
            code="MAPPING_CONSTRUCTION_FAILED",
            context={"pair": _pair_name(pair)},
        )
