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
"""Member mapping rules and the strategy factories used to declare them.

Example::

    mapper.register_pair(User, UserDTO) \\
        .for_member("full_name", map_from(lambda u: f"{u.first_name} {u.last_name}")) \\
        .for_member("age", resolve_using(AgeResolver)) \\
        .for_member("email", when(lambda u: u.is_active)) \\
        .ignore("password_hash")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from flymap.mapping.adapters import instantiate
from flymap.mapping.types import UNSET, positional_arity


class RuleKind(Enum):
    """How a destination member is filled."""

    CONVENTION = "convention"
    SOURCE_PATH = "source_path"
    EXPRESSION = "expression"
    RESOLVER = "resolver"
    IGNORED = "ignored"


@dataclass(frozen=True)
class MemberStrategy:
    """The fill strategy of a rule. Build with the factories below.

    Attributes:
        kind: Which way the member is filled.
        source_path: Dotted source member path (``SOURCE_PATH``), or the
            member handed to a member value resolver.
        expression: ``fn(source[, destination[, member[, context]]])``.
        expression_arity: Positional arguments ``expression`` accepts.
        resolver: A ValueResolver or MemberValueResolver instance.
        condition: ``pred(source[, destination])``; the member keeps its
            current value when it returns false.
        null_substitute: Value used when the source value is None.
        reversible: Mirror this rule when the pair is reversed.
    """

    kind: RuleKind
    source_path: str | None = None
    expression: Callable[..., Any] | None = None
    expression_arity: int = 1
    resolver: Any = None
    condition: Callable[..., bool] | None = None
    condition_arity: int = 1
    null_substitute: Any = UNSET
    reversible: bool = False

    @property
    def has_null_substitute(self) -> bool:
        return self.null_substitute is not UNSET


@dataclass(frozen=True)
class MappingRule:
    """One declared relationship between a destination member and a strategy."""

    destination: str
    strategy: MemberStrategy

    @property
    def kind(self) -> RuleKind:
        return self.strategy.kind


def _condition_fields(condition: Callable[..., bool] | None) -> dict[str, Any]:
    if condition is None:
        return {}
    return {"condition": condition, "condition_arity": positional_arity(condition, 2)}


def map_from(
    source: str | Callable[..., Any],
    *,
    condition: Callable[..., bool] | None = None,
    null_substitute: Any = UNSET,
    reversible: bool = False,
) -> MemberStrategy:
    """Fill from a source member path (``"category.name"``) or an expression.

    Only path rules can be ``reversible``; expressions are never mirrored.
    """
    if isinstance(source, str):
        return MemberStrategy(
            kind=RuleKind.SOURCE_PATH,
            source_path=source,
            null_substitute=null_substitute,
            reversible=reversible,
            **_condition_fields(condition),
        )
    if not callable(source):
        raise TypeError(f"map_from expects a member path or a callable, got {source!r}")
    if reversible:
        raise ValueError("Expression rules cannot be reversed")
    return MemberStrategy(
        kind=RuleKind.EXPRESSION,
        expression=source,
        expression_arity=positional_arity(source, 4),
        null_substitute=null_substitute,
        **_condition_fields(condition),
    )


def resolve_using(
    resolver: Any,
    *,
    source_member: str | None = None,
    condition: Callable[..., bool] | None = None,
    null_substitute: Any = UNSET,
) -> MemberStrategy:
    """Fill with a resolver object or class.

    With ``source_member`` the resolver is a MemberValueResolver and receives
    that member's value as well.
    """
    resolver = instantiate(resolver)
    if not callable(getattr(resolver, "resolve", None)):
        raise TypeError(f"{resolver!r} has no resolve() method")
    return MemberStrategy(
        kind=RuleKind.RESOLVER,
        resolver=resolver,
        source_path=source_member,
        null_substitute=null_substitute,
        **_condition_fields(condition),
    )


def when(condition: Callable[..., bool], *, null_substitute: Any = UNSET) -> MemberStrategy:
    """Keep the convention fill but only apply it when *condition* holds."""
    return MemberStrategy(kind=RuleKind.CONVENTION, null_substitute=null_substitute, **_condition_fields(condition))


def substitute_null(value: Any) -> MemberStrategy:
    """Keep the convention fill, using *value* when the source value is None."""
    return MemberStrategy(kind=RuleKind.CONVENTION, null_substitute=value)


def ignore() -> MemberStrategy:
    """Never fill the member; it keeps its default or current value."""
    return MemberStrategy(kind=RuleKind.IGNORED)
