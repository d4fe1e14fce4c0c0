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
"""Mapping executor: runs a compiled plan against concrete instances.

``map`` allocates a fresh destination; ``map_into`` updates one supplied by
the caller and leaves every member the plan does not fill untouched.

Destinations whose members can only be set through the constructor (frozen
dataclasses, frozen pydantic models, read-only properties backed by
``__init__`` arguments) are built from the collected member values once
every step has run. Their before hooks, conditions and expressions see
``None`` as the destination, since no instance exists yet.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from flymap.kernel.exceptions import (
    ConstructionError,
    FlyMapException,
    ImmutableDestinationError,
    MemberMappingError,
    NullSourceError,
    ResolverExecutionError,
)
from flymap.mapping.adapters import ResolutionContext, call_hook
from flymap.mapping.compiler import CompiledPlan, PlanCompiler, PlanStep, StepSource, ValueAdapter, ValueShape
from flymap.mapping.types import UNSET, collection_info, runtime_class

# Returned when a path crosses a None before its last member.
_ABSENT = object()

Assign = Callable[[str, Any], None]


class MappingExecutor:
    """Executes :class:`CompiledPlan` objects. Stateless between calls."""

    def __init__(self, compiler: PlanCompiler) -> None:
        self._compiler = compiler
        self._store = compiler.store

    def map(self, plan: CompiledPlan, source: Any, context: ResolutionContext) -> Any:
        """Map *source* into a newly allocated destination instance."""
        if source is None:
            raise NullSourceError(plan.pair)
        if plan.constructed:
            return self._construct(plan, source, context)
        destination = plan.destination.create_instance()
        return self._run(plan, source, destination, context, update=False)

    def map_into(self, plan: CompiledPlan, source: Any, destination: Any, context: ResolutionContext) -> Any:
        """Map *source* onto *destination* and return it."""
        if source is None:
            raise NullSourceError(plan.pair)
        if destination is None:
            raise NullSourceError(plan.pair, argument="destination")
        if plan.constructed:
            frozen = [m.name for m in plan.destination.members if m.init and not m.writable]
            raise ImmutableDestinationError(plan.pair, frozen)
        return self._run(plan, source, destination, context, update=True)

    def _run(self, plan: CompiledPlan, source: Any, destination: Any, context: ResolutionContext, *, update: bool) -> Any:
        assign = partial(setattr, destination)
        for hook in plan.before_hooks:
            call_hook(hook, source, destination, context)
        for step in plan.steps:
            self._apply(plan, step, source, destination, context, assign, update)
        for hook in plan.after_hooks:
            call_hook(hook, source, destination, context)
        return destination

    def _construct(self, plan: CompiledPlan, source: Any, context: ResolutionContext) -> Any:
        values: dict[str, Any] = {}
        for hook in plan.before_hooks:
            call_hook(hook, source, None, context)
        for step in plan.steps:
            self._apply(plan, step, source, None, context, values.__setitem__, False)
        try:
            destination = plan.destination.construct(values)
        except (TypeError, ValueError) as exc:
            raise ConstructionError(plan.pair, exc) from exc
        for hook in plan.after_hooks:
            call_hook(hook, source, destination, context)
        return destination

    def _apply(
        self,
        plan: CompiledPlan,
        step: PlanStep,
        source: Any,
        destination: Any,
        context: ResolutionContext,
        assign: Assign,
        update: bool,
    ) -> None:
        if step.condition is not None:
            args = (source, destination)[: step.condition_arity]
            if not step.condition(*args):
                return

        value = self._produce(plan, step, source, destination, context)

        if value is None or value is _ABSENT:
            if step.null_substitute is not UNSET:
                assign(step.name, step.null_substitute)
            elif value is None and step.adapter.shape is not ValueShape.COLLECTION:
                assign(step.name, None)
            return

        try:
            if update and step.adapter.shape is ValueShape.NESTED:
                value = self._update_nested(step, value, destination, context)
            else:
                value = self._adapt(step.adapter, value, context)
        except FlyMapException:
            raise
        except Exception as exc:
            raise MemberMappingError(plan.pair, step.name, f"{type(exc).__name__}: {exc}") from exc
        assign(step.name, value)

    def _produce(self, plan: CompiledPlan, step: PlanStep, source: Any, destination: Any, context: ResolutionContext) -> Any:
        if step.source is StepSource.RESOLVER or step.source is StepSource.MEMBER_RESOLVER:
            try:
                if step.source is StepSource.RESOLVER:
                    return step.resolver.resolve(source, destination, step.member, context)
                source_value = self._read_path(plan, step, source)
                if source_value is _ABSENT:
                    source_value = None
                return step.resolver.resolve(source, destination, source_value, step.member, context)
            except FlyMapException:
                raise
            except Exception as exc:
                raise ResolverExecutionError(plan.pair, step.name, step.resolver, exc) from exc

        if step.source is StepSource.EXPRESSION:
            args = (source, destination, step.member, context)[: step.expression_arity]
            try:
                return step.expression(*args)  # type: ignore[misc]
            except FlyMapException:
                raise
            except Exception as exc:
                raise MemberMappingError(plan.pair, step.name, f"expression failed: {exc}") from exc

        return self._read_path(plan, step, source)

    @staticmethod
    def _read_path(plan: CompiledPlan, step: PlanStep, source: Any) -> Any:
        current = source
        for index, name in enumerate(step.path):
            if current is None:
                return _ABSENT if index else None
            try:
                current = getattr(current, name)
            except AttributeError as exc:
                raise MemberMappingError(plan.pair, step.name, f"source has no member '{name}'") from exc
        return current

    def _update_nested(self, step: PlanStep, value: Any, destination: Any, context: ResolutionContext) -> Any:
        plan = self._compiler.compile(step.adapter.pair)  # type: ignore[arg-type]
        existing = getattr(destination, step.name, None)
        if isinstance(existing, plan.destination.type) and not plan.constructed:
            return self.map_into(plan, value, existing, context.nested(plan.pair))
        return self.map(plan, value, context.nested(plan.pair))

    def _adapt(self, adapter: ValueAdapter, value: Any, context: ResolutionContext) -> Any:
        shape = adapter.shape
        if shape is ValueShape.ASSIGN:
            return value
        if shape is ValueShape.CONVERT:
            return adapter.converter.convert(value, context)  # type: ignore[union-attr]
        if shape is ValueShape.NESTED:
            plan = self._compiler.compile(adapter.pair)  # type: ignore[arg-type]
            return self.map(plan, value, context.nested(plan.pair))
        if shape is ValueShape.COLLECTION:
            element = adapter.element
            items = [None if item is None else self._adapt(element, item, context) for item in value]  # type: ignore[arg-type]
            return adapter.factory(items)  # type: ignore[misc]
        return self._adapt_dynamic(adapter.target, value, context)

    def _adapt_dynamic(self, target: Any, value: Any, context: ResolutionContext) -> Any:
        """Adapt a value whose type is only known at run time."""
        binding = self._store.find_converter(type(value), target)
        if binding is not None:
            return binding.convert(value, context)

        target_cls = runtime_class(target)
        if target_cls is None or isinstance(value, target_cls):
            items = collection_info(target)
            if items is not None and isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
                factory, element = items
                return factory([None if v is None else self._adapt_dynamic(element, v, context) for v in value])
            return value

        config = self._store.find_pair(type(value), target_cls)
        if config is not None:
            plan = self._compiler.compile(config.key)
            return self.map(plan, value, context.nested(plan.pair))
        return value
