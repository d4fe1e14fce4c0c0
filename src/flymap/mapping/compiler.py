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
"""Plan compiler: turns a type pair's configuration into an executable plan.

For every destination member that can be set, either by attribute or
through the constructor, the compiler picks, in order:

1. An explicit rule on the pair, or one inherited through ``include_base``.
2. A source member with the same name and an assignable or convertible type.
3. A flattened source path inferred from the member name
   (``category_name`` <- ``source.category.name``).
4. Nothing: the member is reported as unmapped and keeps its default.

Plans are compiled once per pair, on first use, and cached.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import structlog

from flymap.kernel.exceptions import CyclicMappingError, MappingNotFoundError, ReflectionError, UnknownMemberError
from flymap.mapping.adapters import ConverterBinding, Hook
from flymap.mapping.descriptors import MemberDescriptor, TypeDescriptor
from flymap.mapping.naming import normalize, split_segments
from flymap.mapping.rules import MemberStrategy, RuleKind
from flymap.mapping.store import MappingConfigurationStore, TypePairConfig
from flymap.mapping.types import (
    UNSET,
    PairKey,
    collection_info,
    is_assignable,
    is_describable,
    runtime_class,
    type_label,
)

logger = structlog.get_logger("flymap.mapping.compiler")


class StepSource(Enum):
    """Where a plan step takes its raw value from."""

    PATH = "path"
    EXPRESSION = "expression"
    RESOLVER = "resolver"
    MEMBER_RESOLVER = "member_resolver"


class ValueShape(Enum):
    """How a raw value is turned into the destination member's value."""

    ASSIGN = "assign"
    CONVERT = "convert"
    NESTED = "nested"
    COLLECTION = "collection"
    DYNAMIC = "dynamic"


@dataclass(frozen=True)
class ValueAdapter:
    shape: ValueShape
    converter: ConverterBinding | None = None
    pair: PairKey | None = None
    factory: Callable[[list[Any]], Any] | None = None
    element: ValueAdapter | None = None
    target: Any = Any

    def dependencies(self) -> set[PairKey]:
        if self.pair is not None:
            return {self.pair}
        if self.element is not None:
            return self.element.dependencies()
        return set()


ASSIGN = ValueAdapter(ValueShape.ASSIGN)


@dataclass(frozen=True)
class PlanStep:
    """Fills one destination member."""

    member: MemberDescriptor
    source: StepSource
    path: tuple[str, ...] = ()
    expression: Callable[..., Any] | None = None
    expression_arity: int = 1
    resolver: Any = None
    adapter: ValueAdapter = ASSIGN
    condition: Callable[..., bool] | None = None
    condition_arity: int = 1
    null_substitute: Any = UNSET
    origin: str = "convention"
    inherited: bool = False

    @property
    def name(self) -> str:
        return self.member.name

    def describe(self) -> str:
        if self.source is StepSource.PATH:
            origin = ".".join(self.path)
        elif self.source is StepSource.EXPRESSION:
            origin = "<expression>"
        else:
            origin = type(self.resolver).__qualname__
        text = f"{self.name} <- {origin} [{self.adapter.shape.value}]"
        if self.condition is not None:
            text += " if <condition>"
        return text


@dataclass(frozen=True)
class UnconvertibleMember:
    """A destination member matched a source member of an incompatible type."""

    member: str
    source_path: str
    source_type: Any
    destination_type: Any

    def __str__(self) -> str:
        return (
            f"{self.member}: cannot convert {self.source_path} "
            f"({type_label(self.source_type)}) to {type_label(self.destination_type)}"
        )


@dataclass(frozen=True)
class CompiledPlan:
    """Ordered fill steps for one type pair, plus compile-time findings."""

    pair: PairKey
    destination: TypeDescriptor
    steps: tuple[PlanStep, ...]
    ignored: frozenset[str] = frozenset()
    before_hooks: tuple[Hook, ...] = ()
    after_hooks: tuple[Hook, ...] = ()
    unmapped: tuple[str, ...] = ()
    unconvertible: tuple[UnconvertibleMember, ...] = ()
    read_only: tuple[str, ...] = ()
    implicit: bool = False
    _by_name: dict[str, PlanStep] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_name.update({step.name: step for step in self.steps})

    @property
    def members(self) -> list[str]:
        return [step.name for step in self.steps]

    @property
    def constructed(self) -> bool:
        """Whether the destination must be built through its constructor."""
        return self.destination.requires_construction

    def step(self, member: str) -> PlanStep | None:
        return self._by_name.get(member)

    def dependencies(self) -> set[PairKey]:
        found: set[PairKey] = set()
        for step in self.steps:
            found |= step.adapter.dependencies()
        return found

    def describe(self) -> str:
        lines = [str(self.pair)] + [f"  {step.describe()}" for step in self.steps]
        lines += [f"  {name} (ignored)" for name in sorted(self.ignored)]
        lines += [f"  {name} (unmapped)" for name in self.unmapped]
        lines += [f"  {name} (read-only)" for name in self.read_only]
        return "\n".join(lines)


class PlanCompiler:
    """Builds and caches :class:`CompiledPlan` objects per type pair.

    Args:
        store: The configuration store the plans are compiled from.
        case_insensitive: Match ``first_name`` against ``FirstName``.
        flattening: Resolve ``category_name`` from ``category.name``.
        create_missing_maps: Compile convention-only plans for pairs that
            were never registered instead of raising MappingNotFoundError.
    """

    def __init__(
        self,
        store: MappingConfigurationStore,
        *,
        case_insensitive: bool = True,
        flattening: bool = True,
        create_missing_maps: bool = True,
    ) -> None:
        self._store = store
        self._registry = store.registry
        self._case_insensitive = case_insensitive
        self._flattening = flattening
        self._create_missing_maps = create_missing_maps
        self._plans: dict[PairKey, CompiledPlan] = {}
        self._lock = threading.RLock()
        store.add_seal_listener(self.detect_cycles)

    @property
    def store(self) -> MappingConfigurationStore:
        return self._store

    def compile(self, key: PairKey) -> CompiledPlan:
        """Return the plan for *key*, compiling it on first use.

        Seals the store if it is still open.
        """
        plan = self._plans.get(key)
        if plan is not None:
            return plan
        self._store.seal()
        with self._lock:
            return self._plan_for(key, self._plans)

    def cached(self, key: PairKey) -> CompiledPlan | None:
        return self._plans.get(key)

    def compile_all(self) -> list[CompiledPlan]:
        return [self.compile(config.key) for config in self._store.pairs()]

    def detect_cycles(self, store: MappingConfigurationStore) -> None:
        """Reject nested-pair graphs that would recurse without end.

        Runs as a seal listener, so plans are built into a scratch cache.
        """
        scratch: dict[PairKey, CompiledPlan] = {}
        graph: dict[PairKey, set[PairKey]] = {}
        for config in store.pairs():
            plan = self._plan_for(config.key, scratch)
            edges = plan.dependencies()
            if config.base is not None:
                edges.add(config.base)
            graph[config.key] = edges

        done: set[PairKey] = set()

        def visit(key: PairKey, trail: list[PairKey]) -> None:
            if key in trail:
                raise CyclicMappingError(trail[trail.index(key):] + [key])
            if key in done:
                return
            for dependency in sorted(graph.get(key, ()), key=str):
                visit(dependency, trail + [key])
            done.add(key)

        for key in graph:
            visit(key, [])

    # ------------------------------------------------------------------
    # Plan building
    # ------------------------------------------------------------------

    def _plan_for(self, key: PairKey, cache: dict[PairKey, CompiledPlan]) -> CompiledPlan:
        plan = cache.get(key)
        if plan is None:
            plan = self._build(key, cache)
            cache[key] = plan
            if cache is self._plans:
                logger.debug("plan_compiled", pair=str(key), steps=len(plan.steps), unmapped=list(plan.unmapped))
        return plan

    def _build(self, key: PairKey, cache: dict[PairKey, CompiledPlan]) -> CompiledPlan:
        config = self._store.get(key)
        implicit = config is None
        if config is None:
            if not self._create_missing_maps:
                raise MappingNotFoundError(key)
            config = TypePairConfig(key=key)

        source = self._registry.describe(key.source)
        destination = self._registry.describe(key.destination)
        base = self._plan_for(config.base, cache) if config.base is not None else None
        base_steps = {step.name: step for step in base.steps} if base else {}
        base_ignored = base.ignored if base else frozenset()
        rules = config.effective_rules()

        steps: list[PlanStep] = []
        ignored: set[str] = set()
        unmapped: list[str] = []
        unconvertible: list[UnconvertibleMember] = []
        read_only: list[str] = []

        for member in destination.members:
            rule = rules.get(member.name)
            if (rule is None and member.name in base_ignored) or (rule is not None and rule.kind is RuleKind.IGNORED):
                ignored.add(member.name)
                continue
            if not member.fillable:
                if rule is not None or self._matches_source(source, member):
                    read_only.append(member.name)
                continue

            inherited = base_steps.get(member.name)
            if inherited is not None:
                inherited = replace(inherited, member=member, inherited=True)

            step: PlanStep | None
            if rule is not None and rule.kind is not RuleKind.CONVENTION:
                step = self._explicit_step(key, source, member, rule.strategy, unconvertible)
            elif inherited is not None and inherited.origin == "explicit":
                step = inherited if rule is None else self._with_modifiers(inherited, rule.strategy)
            else:
                step = self._convention_step(source, member, unconvertible) or inherited
                if step is not None and rule is not None:
                    step = self._with_modifiers(step, rule.strategy)

            if step is None:
                if not any(u.member == member.name for u in unconvertible):
                    unmapped.append(member.name)
                continue
            steps.append(step)

        return CompiledPlan(
            pair=key,
            destination=destination,
            steps=tuple(steps),
            ignored=frozenset(ignored),
            before_hooks=(base.before_hooks if base else ()) + tuple(config.before_hooks),
            after_hooks=(base.after_hooks if base else ()) + tuple(config.after_hooks),
            unmapped=tuple(unmapped),
            unconvertible=tuple(unconvertible),
            read_only=tuple(read_only),
            implicit=implicit,
        )

    @staticmethod
    def _with_modifiers(step: PlanStep, strategy: MemberStrategy) -> PlanStep:
        """Layer a condition or null substitute over *step*, keeping what it already has."""
        changes: dict[str, Any] = {"origin": "explicit"}
        if strategy.condition is not None:
            changes["condition"] = strategy.condition
            changes["condition_arity"] = strategy.condition_arity
        if strategy.has_null_substitute:
            changes["null_substitute"] = strategy.null_substitute
        return replace(step, **changes)

    def _matches_source(self, source: TypeDescriptor, member: MemberDescriptor) -> bool:
        match = source.find(member.name, self._case_insensitive)
        return match is not None and match.readable

    def _explicit_step(
        self,
        key: PairKey,
        source: TypeDescriptor,
        member: MemberDescriptor,
        strategy: MemberStrategy,
        unconvertible: list[UnconvertibleMember],
    ) -> PlanStep | None:
        modifiers: dict[str, Any] = {
            "condition": strategy.condition,
            "condition_arity": strategy.condition_arity,
            "null_substitute": strategy.null_substitute,
            "origin": "explicit",
        }
        dynamic = ValueAdapter(ValueShape.DYNAMIC, target=member.type)

        if strategy.kind is RuleKind.EXPRESSION:
            return PlanStep(
                member=member,
                source=StepSource.EXPRESSION,
                expression=strategy.expression,
                expression_arity=strategy.expression_arity,
                adapter=dynamic,
                **modifiers,
            )

        if strategy.kind is RuleKind.RESOLVER:
            if strategy.source_path is None:
                return PlanStep(member=member, source=StepSource.RESOLVER, resolver=strategy.resolver, adapter=dynamic, **modifiers)
            path, _ = self._resolve_path(key.source, source, strategy.source_path)
            return PlanStep(
                member=member,
                source=StepSource.MEMBER_RESOLVER,
                path=path,
                resolver=strategy.resolver,
                adapter=dynamic,
                **modifiers,
            )

        path, source_type = self._resolve_path(key.source, source, strategy.source_path or member.name)
        adapter = self._adapter_for(source_type, member.type)
        if adapter is None:
            unconvertible.append(UnconvertibleMember(member.name, ".".join(path), source_type, member.type))
            return None
        return PlanStep(member=member, source=StepSource.PATH, path=path, adapter=adapter, **modifiers)

    def _convention_step(
        self,
        source: TypeDescriptor,
        member: MemberDescriptor,
        unconvertible: list[UnconvertibleMember],
    ) -> PlanStep | None:
        match = source.find(member.name, self._case_insensitive)
        if match is not None and match.readable:
            adapter = self._adapter_for(match.type, member.type)
            if adapter is None:
                unconvertible.append(UnconvertibleMember(member.name, match.name, match.type, member.type))
                return None
            return PlanStep(member=member, source=StepSource.PATH, path=(match.name,), adapter=adapter)

        if not self._flattening:
            return None
        chain = self._flatten(source, split_segments(member.name), top_level=True)
        if chain is None:
            return None
        path, source_type = chain
        adapter = self._adapter_for(source_type, member.type)
        if adapter is None:
            unconvertible.append(UnconvertibleMember(member.name, ".".join(path), source_type, member.type))
            return None
        return PlanStep(member=member, source=StepSource.PATH, path=tuple(path), adapter=adapter, origin="flattening")

    def _flatten(
        self,
        descriptor: TypeDescriptor,
        segments: list[str],
        *,
        top_level: bool = False,
    ) -> tuple[list[str], Any] | None:
        """Find ``a.b.c`` whose names, joined, spell *segments*. Longest prefix first."""
        for size in range(len(segments), 0, -1):
            if top_level and size == len(segments):
                continue
            candidate = descriptor.find_normalized(normalize("".join(segments[:size])))
            if candidate is None or not candidate.readable:
                continue
            rest = segments[size:]
            if not rest:
                return [candidate.name], candidate.type
            if not is_describable(candidate.type):
                continue
            try:
                nested = self._registry.describe(runtime_class(candidate.type))  # type: ignore[arg-type]
            except ReflectionError:
                continue
            found = self._flatten(nested, rest)
            if found is not None:
                return [candidate.name] + found[0], found[1]
        return None

    def _resolve_path(self, source_type: type, descriptor: TypeDescriptor, path: str) -> tuple[tuple[str, ...], Any]:
        """Resolve a dotted path to real member names and the leaf type."""
        names: list[str] = []
        current: TypeDescriptor | None = descriptor
        current_type: Any = source_type
        for segment in path.split("."):
            if current is None:
                names.append(segment)
                current_type = Any
                continue
            found = current.find(segment, self._case_insensitive)
            if found is None:
                raise UnknownMemberError(current.type, segment)
            names.append(found.name)
            current_type = found.type
            current = None
            if is_describable(found.type):
                try:
                    current = self._registry.describe(runtime_class(found.type))  # type: ignore[arg-type]
                except ReflectionError:
                    current = None
        return tuple(names), current_type

    def _adapter_for(self, source: Any, destination: Any) -> ValueAdapter | None:
        """How a value typed *source* becomes one typed *destination*, or None."""
        if source == destination:
            return ASSIGN
        binding = self._store.find_converter(source, destination)
        if binding is not None:
            return ValueAdapter(ValueShape.CONVERT, converter=binding)
        if source is Any and destination is not Any:
            return ValueAdapter(ValueShape.DYNAMIC, target=destination)

        source_cls, destination_cls = runtime_class(source), runtime_class(destination)
        if source_cls is not None and destination_cls is not None:
            config = self._store.find_pair(source_cls, destination_cls)
            if config is not None:
                return ValueAdapter(ValueShape.NESTED, pair=config.key)

        source_items, destination_items = collection_info(source), collection_info(destination)
        if source_items is not None and destination_items is not None:
            element = self._adapter_for(source_items[1], destination_items[1])
            if element is None:
                return None
            return ValueAdapter(ValueShape.COLLECTION, factory=destination_items[0], element=element)

        if is_assignable(source, destination):
            return ASSIGN
        return None
