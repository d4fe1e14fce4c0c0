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
"""flymap mapping engine: descriptors, configuration, plans and execution."""

from flymap.mapping.adapters import (
    ConverterBinding,
    MemberValueResolver,
    ResolutionContext,
    TypeConverter,
    ValueResolver,
)
from flymap.mapping.compiler import CompiledPlan, PlanCompiler, PlanStep
from flymap.mapping.descriptors import MemberDescriptor, TypeDescriptor, TypeDescriptorRegistry
from flymap.mapping.executor import MappingExecutor
from flymap.mapping.mapper import Mapper, MappingProperties
from flymap.mapping.profile import Profile
from flymap.mapping.rules import (
    MappingRule,
    MemberStrategy,
    RuleKind,
    ignore,
    map_from,
    resolve_using,
    substitute_null,
    when,
)
from flymap.mapping.store import MappingConfigurationStore, TypePairConfig, TypePairConfigBuilder
from flymap.mapping.types import PairKey
from flymap.mapping.validation import IssueKind, MappingIssue, MappingValidator

__all__ = [
    # Facade
    "Mapper",
    "MappingProperties",
    "Profile",
    # Registration
    "MappingConfigurationStore",
    "TypePairConfig",
    "TypePairConfigBuilder",
    "MappingRule",
    "MemberStrategy",
    "RuleKind",
    "map_from",
    "resolve_using",
    "when",
    "substitute_null",
    "ignore",
    # Descriptors
    "TypeDescriptorRegistry",
    "TypeDescriptor",
    "MemberDescriptor",
    "PairKey",
    # Plans
    "PlanCompiler",
    "CompiledPlan",
    "PlanStep",
    "MappingExecutor",
    # Extension points
    "ValueResolver",
    "MemberValueResolver",
    "TypeConverter",
    "ConverterBinding",
    "ResolutionContext",
    # Validation
    "MappingValidator",
    "MappingIssue",
    "IssueKind",
]
