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
"""Convention-based type-to-type mapper.

Maps between dataclasses, pydantic models and plain classes by matching
member names, with explicit rules, resolvers, converters, flattening,
nested and collection mapping, and base-pair inclusion.

Example::

    mapper = Mapper()
    mapper.register_pair(User, UserDTO) \\
        .for_member("full_name", map_from(lambda u: f"{u.first_name} {u.last_name}"))
    dto = mapper.map(user, UserDTO)

    # Update an existing instance, leaving unmapped members alone
    mapper.map_into(patch, existing_dto)
"""

from __future__ import annotations

import importlib
import threading
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, Field, field_validator

from flymap.core.config import Config, config_properties
from flymap.kernel.exceptions import ConfigurationException, NullSourceError
from flymap.logging.port import LoggingPort
from flymap.logging.structlog_adapter import StructlogAdapter
from flymap.mapping.adapters import ConverterBinding, ResolutionContext
from flymap.mapping.compiler import CompiledPlan, PlanCompiler
from flymap.mapping.descriptors import TypeDescriptorRegistry
from flymap.mapping.executor import MappingExecutor
from flymap.mapping.profile import Profile
from flymap.mapping.rules import MemberStrategy, map_from
from flymap.mapping.store import MappingConfigurationStore, TypePairConfigBuilder
from flymap.mapping.types import PairKey
from flymap.mapping.validation import MappingIssue, MappingValidator

S = TypeVar("S")
D = TypeVar("D")

logger = structlog.get_logger("flymap.mapping.mapper")


@config_properties(prefix="flymap.mapping")
class MappingProperties(BaseModel):
    """Mapper settings bound from the ``flymap.mapping`` config section.

    Attributes:
        profiles: Dotted paths of Profile classes applied by ``from_config``.
        create_missing_maps: Map unregistered pairs by convention.
        case_insensitive: Match member names ignoring case and underscores.
        flattening: Fill ``a_b`` from ``source.a.b``.
        validate_on_seal: Run :meth:`Mapper.validate` when sealing.
        strict: Treat validation issues as errors.
    """

    profiles: list[str] = Field(default_factory=list)
    create_missing_maps: bool = True
    case_insensitive: bool = True
    flattening: bool = True
    validate_on_seal: bool = False
    strict: bool = False

    @field_validator("profiles", mode="before")
    @classmethod
    def _split_profiles(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class Mapper:
    """Entry point for registering and running mappings.

    Registration (``register_pair``, ``add_rule``, ``reverse``,
    ``include_base``, ``register_converter``, ``add_profile``) happens
    before the first mapping call; that call seals the configuration.
    A sealed Mapper is safe to share between threads.
    """

    def __init__(
        self,
        properties: MappingProperties | None = None,
        *,
        registry: TypeDescriptorRegistry | None = None,
    ) -> None:
        self._properties = properties or MappingProperties()
        self._store = MappingConfigurationStore(registry or TypeDescriptorRegistry())
        self._compiler = PlanCompiler(
            self._store,
            case_insensitive=self._properties.case_insensitive,
            flattening=self._properties.flattening,
            create_missing_maps=self._properties.create_missing_maps,
        )
        self._executor = MappingExecutor(self._compiler)
        self._validator = MappingValidator(self._store, self._compiler)
        self._seal_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Config, *, logging_port: LoggingPort | None = None) -> Mapper:
        """Build a Mapper from ``flymap.mapping`` settings and apply its profiles.

        Unless ``flymap.logging.enabled`` is false, ``flymap.logging`` is first
        applied through *logging_port* (a :class:`StructlogAdapter` by default).
        """
        if _is_enabled(config.get("flymap.logging.enabled", True)):
            (logging_port or StructlogAdapter()).configure(config)
        properties = config.bind(MappingProperties)
        mapper = cls(properties)
        for path in properties.profiles:
            mapper.add_profile(_import_profile(path))
        return mapper

    @property
    def properties(self) -> MappingProperties:
        return self._properties

    @property
    def store(self) -> MappingConfigurationStore:
        return self._store

    @property
    def compiler(self) -> PlanCompiler:
        return self._compiler

    @property
    def sealed(self) -> bool:
        return self._store.sealed

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_pair(self, source_type: type[S], dest_type: type[D], *, reverse: bool = False) -> TypePairConfigBuilder:
        return self._store.register_pair(source_type, dest_type, reverse=reverse)

    create_map = register_pair

    def add_rule(self, builder: TypePairConfigBuilder, member: str, strategy: MemberStrategy) -> None:
        self._store.add_rule(builder, member, strategy)

    def reverse(self, builder: TypePairConfigBuilder) -> TypePairConfigBuilder:
        return self._store.reverse(builder)

    def include_base(self, builder: TypePairConfigBuilder, base_source: type, base_destination: type) -> None:
        self._store.include_base(builder, base_source, base_destination)

    def register_converter(self, source: Any, destination: Any, converter: Any) -> ConverterBinding:
        return self._store.register_converter(source, destination, converter)

    def add_mapping(
        self,
        source_type: type[S],
        dest_type: type[D],
        *,
        field_map: dict[str, str] | None = None,
        transformers: dict[str, Callable[[Any], Any]] | None = None,
        exclude: set[str] | None = None,
    ) -> TypePairConfigBuilder:
        """Register a pair from renames, value transformers and exclusions.

        Args:
            field_map: Maps source field names to destination field names.
            transformers: Functions applied to the matched source value,
                keyed by destination field name.
            exclude: Destination fields to leave unmapped.
        """
        builder = self.register_pair(source_type, dest_type)
        renames = {dst: src for src, dst in (field_map or {}).items()}
        for dest_field, src_field in renames.items():
            builder.for_member(dest_field, map_from(src_field))
        for dest_field, transform in (transformers or {}).items():
            src_field = renames.get(dest_field, dest_field)
            builder.for_member(dest_field, map_from(_transformed(src_field, transform)))
        builder.ignore(*sorted(exclude or ()))
        return builder

    def add_profile(self, profile: Profile | type[Profile]) -> None:
        if isinstance(profile, type):
            profile = profile()
        profile.apply(self)
        logger.debug("mapping_profile_applied", profile=profile.name)

    def seal(self) -> None:
        """Close registration; optionally validate per ``validate_on_seal``."""
        if self._store.sealed:
            return
        with self._seal_lock:
            if self._store.sealed:
                return
            self._store.seal()
            if self._properties.validate_on_seal:
                self._validator.validate(strict=self._properties.strict)

    def validate(self, *, strict: bool | None = None) -> list[MappingIssue]:
        """Report unmapped and unconvertible members of every registered pair."""
        self.seal()
        return self._validator.validate(strict=self._properties.strict if strict is None else strict)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def get_plan(self, source_type: type, dest_type: type) -> CompiledPlan:
        """The compiled plan used to map *source_type* to *dest_type*."""
        self.seal()
        config = self._store.find_pair(source_type, dest_type)
        key = config.key if config is not None else PairKey(source_type, dest_type)
        return self._compiler.compile(key)

    def map(self, source: S, dest_type: type[D], *, items: dict[str, Any] | None = None) -> D:
        """Map *source* to a new instance of *dest_type*.

        Without a registered pair, a converter registered for
        ``(type(source), dest_type)`` converts the whole value.
        """
        if source is None:
            raise NullSourceError(argument="source")
        self.seal()
        source_type = type(source)
        if self._store.find_pair(source_type, dest_type) is None:
            binding = self._store.find_converter(source_type, dest_type)
            if binding is not None:
                return binding.convert(source, self._context(PairKey(source_type, dest_type), items))
        plan = self.get_plan(source_type, dest_type)
        return self._executor.map(plan, source, self._context(plan.pair, items))

    def map_into(self, source: Any, destination: D, *, items: dict[str, Any] | None = None) -> D:
        """Fill *destination* from *source*; members outside the plan are kept."""
        if source is None:
            raise NullSourceError(argument="source")
        if destination is None:
            raise NullSourceError(argument="destination")
        plan = self.get_plan(type(source), type(destination))
        return self._executor.map_into(plan, source, destination, self._context(plan.pair, items))

    def map_list(self, sources: Iterable[S], dest_type: type[D], *, items: dict[str, Any] | None = None) -> list[D]:
        """Map every element of *sources*, preserving order."""
        return [self.map(s, dest_type, items=items) for s in sources]

    def _context(self, pair: PairKey, items: dict[str, Any] | None) -> ResolutionContext:
        return ResolutionContext(mapper=self, items=items if items is not None else {}, pair=pair)


def _is_enabled(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no", "off")
    return bool(value)


def _transformed(field: str, transform: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def expression(source: Any) -> Any:
        return transform(getattr(source, field))

    return expression


def _import_profile(path: str) -> type[Profile]:
    module_name, _, attr = path.rpartition(".")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError, ValueError) as exc:
        raise ConfigurationException(
            f"Cannot import mapping profile '{path}': {exc}",
            code="PROFILE_IMPORT_FAILED",
            context={"profile": path},
        ) from exc
    if not (isinstance(target, type) and issubclass(target, Profile)):
        raise ConfigurationException(
            f"'{path}' is not a Profile subclass",
            code="PROFILE_INVALID",
            context={"profile": path},
        )
    return target
