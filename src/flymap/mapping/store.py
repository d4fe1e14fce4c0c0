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
"""Mapping configuration store: declared type pairs, rules and converters.

Registration happens once, before any mapping traffic. The store is sealed
on first use; afterwards it is read-only and safe to share between threads.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from flymap.kernel.exceptions import (
    AlreadySealedError,
    CyclicMappingError,
    UnknownMemberError,
    UnresolvedBaseMappingError,
)
from flymap.mapping.adapters import ConverterBinding, Hook, as_converter
from flymap.mapping.descriptors import TypeDescriptorRegistry
from flymap.mapping.rules import MappingRule, MemberStrategy, RuleKind, ignore, map_from
from flymap.mapping.types import PairKey, is_describable, unwrap_optional

logger = structlog.get_logger("flymap.mapping.store")

SealListener = Callable[["MappingConfigurationStore"], None]


@dataclass
class TypePairConfig:
    """Everything declared for one ordered (source, destination) pair.

    ``rules`` keeps insertion order; a later rule for the same destination
    member overrides an earlier one.
    """

    key: PairKey
    rules: list[MappingRule] = field(default_factory=list)
    base: PairKey | None = None
    before_hooks: list[Hook] = field(default_factory=list)
    after_hooks: list[Hook] = field(default_factory=list)
    reverse: bool = False

    def effective_rules(self) -> dict[str, MappingRule]:
        effective: dict[str, MappingRule] = {}
        for rule in self.rules:
            effective[rule.destination] = rule
        return effective

    def has_rule(self, member: str) -> bool:
        return any(rule.destination == member for rule in self.rules)


class TypePairConfigBuilder:
    """Fluent handle on a :class:`TypePairConfig` returned by ``register_pair``."""

    def __init__(self, store: MappingConfigurationStore, config: TypePairConfig) -> None:
        self._store = store
        self._config = config

    @property
    def key(self) -> PairKey:
        return self._config.key

    @property
    def config(self) -> TypePairConfig:
        return self._config

    def for_member(self, member: str, strategy: MemberStrategy | str | Callable[..., Any]) -> TypePairConfigBuilder:
        """Declare how *member* is filled. Strings and callables mean ``map_from``."""
        if not isinstance(strategy, MemberStrategy):
            strategy = map_from(strategy)
        self._store.add_rule(self, member, strategy)
        return self

    def ignore(self, *members: str) -> TypePairConfigBuilder:
        for member in members:
            self._store.add_rule(self, member, ignore())
        return self

    def before_map(self, hook: Hook) -> TypePairConfigBuilder:
        self._store.add_hook(self, hook, after=False)
        return self

    def after_map(self, hook: Hook) -> TypePairConfigBuilder:
        self._store.add_hook(self, hook, after=True)
        return self

    def include_base(self, base_source: type, base_destination: type) -> TypePairConfigBuilder:
        self._store.include_base(self, base_source, base_destination)
        return self

    def reverse_map(self) -> TypePairConfigBuilder:
        """Register the mirrored pair and return its builder."""
        return self._store.reverse(self)

    def __repr__(self) -> str:
        return f"TypePairConfigBuilder({self.key})"


class MappingConfigurationStore:
    """Holds every :class:`TypePairConfig` and converter, keyed by type pair."""

    def __init__(self, registry: TypeDescriptorRegistry | None = None) -> None:
        self._registry = registry or TypeDescriptorRegistry()
        self._pairs: dict[PairKey, TypePairConfig] = {}
        self._converters: dict[tuple[Any, Any], ConverterBinding] = {}
        self._seal_listeners: list[SealListener] = []
        self._sealed = False
        self._lock = threading.RLock()

    @property
    def registry(self) -> TypeDescriptorRegistry:
        return self._registry

    @property
    def sealed(self) -> bool:
        return self._sealed

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_pair(self, source: type, destination: type, *, reverse: bool = False) -> TypePairConfigBuilder:
        """Begin, or resume, the rule set of a type pair.

        Registering the same pair twice merges the rule sets.
        """
        self._check_open("register a type pair")
        # Reject memberless types now rather than on first use.
        self._registry.describe(source)
        self._registry.describe(destination)

        key = PairKey(source, destination)
        config = self._pairs.get(key)
        if config is None:
            config = self._pairs[key] = TypePairConfig(key=key)
            logger.debug("type_pair_registered", pair=str(key))
        builder = TypePairConfigBuilder(self, config)
        if reverse:
            self.reverse(builder)
        return builder

    def add_rule(self, builder: TypePairConfigBuilder, member: str, strategy: MemberStrategy) -> None:
        """Append a rule; it shadows earlier rules for the same member."""
        self._check_open("add a mapping rule")
        key = builder.key
        if self._registry.describe(key.destination).member(member) is None:
            raise UnknownMemberError(key.destination, member)
        if strategy.source_path is not None:
            self._check_source_path(key.source, strategy.source_path)
        builder.config.rules.append(MappingRule(destination=member, strategy=strategy))

    def add_hook(self, builder: TypePairConfigBuilder, hook: Hook, *, after: bool) -> None:
        self._check_open("add a mapping hook")
        if not callable(hook):
            raise TypeError(f"Mapping hook {hook!r} is not callable")
        hooks = builder.config.after_hooks if after else builder.config.before_hooks
        hooks.append(hook)

    def reverse(self, builder: TypePairConfigBuilder) -> TypePairConfigBuilder:
        """Register the mirrored pair of *builder*.

        The mirrored pair maps by convention. Rules declared ``reversible``
        on the original pair are mirrored when the store is sealed, unless
        the mirrored pair declares its own rule for that member. Expression
        and resolver rules are never mirrored.
        """
        self._check_open("reverse a type pair")
        builder.config.reverse = True
        mirror = builder.key.reversed()
        return self.register_pair(mirror.source, mirror.destination)

    def include_base(self, builder: TypePairConfigBuilder, base_source: type, base_destination: type) -> None:
        """Merge the base pair's rules into this pair when its plan is compiled.

        The base pair may be registered later, as long as it exists by the
        time the store is sealed.
        """
        self._check_open("include a base mapping")
        builder.config.base = PairKey(base_source, base_destination)

    def register_converter(self, source: Any, destination: Any, converter: Any) -> ConverterBinding:
        """Register a converter for every member of type *source* -> *destination*."""
        self._check_open("register a type converter")
        binding = ConverterBinding(source=source, destination=destination, converter=as_converter(converter))
        self._converters[(source, destination)] = binding
        logger.debug("type_converter_registered", source=repr(source), destination=repr(destination))
        return binding

    def add_seal_listener(self, listener: SealListener) -> None:
        """Run *listener* during :meth:`seal`, before the store closes."""
        self._seal_listeners.append(listener)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, key: PairKey) -> TypePairConfig | None:
        return self._pairs.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._pairs

    def pairs(self) -> list[TypePairConfig]:
        return list(self._pairs.values())

    def find_pair(self, source: type, destination: type) -> TypePairConfig | None:
        """The pair registered for *source* or its nearest registered base class."""
        for klass in getattr(source, "__mro__", (source,)):
            config = self._pairs.get(PairKey(klass, destination))
            if config is not None:
                return config
        return None

    def find_converter(self, source: Any, destination: Any) -> ConverterBinding | None:
        binding = self._converters.get((source, destination))
        if binding is None:
            binding = self._converters.get((unwrap_optional(source), unwrap_optional(destination)))
        return binding

    # ------------------------------------------------------------------
    # Sealing
    # ------------------------------------------------------------------

    def seal(self) -> None:
        """Close the store to registration.

        Raises:
            UnresolvedBaseMappingError: an ``include_base`` target is missing.
            CyclicMappingError: base inclusions, or nested pairs (checked by
                seal listeners), form a cycle.
        """
        if self._sealed:
            return
        with self._lock:
            if self._sealed:
                return
            self._mirror_reversible_rules()

            missing = [
                (config.key, config.base)
                for config in self._pairs.values()
                if config.base is not None and config.base not in self._pairs
            ]
            if missing:
                raise UnresolvedBaseMappingError(missing)
            self._check_base_cycles()

            for listener in self._seal_listeners:
                listener(self)

            self._sealed = True
            logger.info("mapping_configuration_sealed", pairs=len(self._pairs), converters=len(self._converters))

    def _mirror_reversible_rules(self) -> None:
        for config in list(self._pairs.values()):
            if not config.reverse:
                continue
            mirror = self._pairs[config.key.reversed()]
            for rule in config.effective_rules().values():
                strategy = rule.strategy
                if not strategy.reversible or strategy.kind is not RuleKind.SOURCE_PATH:
                    continue
                path = strategy.source_path or ""
                if "." in path or mirror.has_rule(path):
                    continue
                # Mirrored rules sit first so explicit rules on the mirror win.
                mirror.rules.insert(0, MappingRule(destination=path, strategy=map_from(rule.destination)))

    def _check_base_cycles(self) -> None:
        for config in self._pairs.values():
            chain = [config.key]
            base = config.base
            while base is not None:
                if base in chain:
                    raise CyclicMappingError(chain[chain.index(base):] + [base])
                chain.append(base)
                base = self._pairs[base].base

    def _check_open(self, operation: str) -> None:
        if self._sealed:
            raise AlreadySealedError(operation)

    def _check_source_path(self, source: type, path: str) -> None:
        """Validate the first segment of a dotted source path."""
        head = path.split(".", 1)[0]
        if not is_describable(source):
            return
        descriptor = self._registry.describe(source)
        if descriptor.member(head) is None:
            raise UnknownMemberError(source, head)
