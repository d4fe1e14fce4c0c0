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
"""Configuration validation: destination members a plan cannot fill."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from flymap.kernel.exceptions import ConfigurationValidationError, UnconvertibleMemberError
from flymap.mapping.compiler import PlanCompiler
from flymap.mapping.store import MappingConfigurationStore
from flymap.mapping.types import PairKey

logger = structlog.get_logger("flymap.mapping.validation")


class IssueKind(Enum):
    UNMAPPED = "unmapped"
    UNCONVERTIBLE = "unconvertible"
    READ_ONLY = "read-only"


@dataclass(frozen=True)
class MappingIssue:
    """A destination member no plan step fills."""

    pair: PairKey
    member: str
    kind: IssueKind
    detail: str = ""

    def __str__(self) -> str:
        text = f"{self.pair}: {self.member} is {self.kind.value}"
        return f"{text} ({self.detail})" if self.detail else text


class MappingValidator:
    """Checks every registered pair once the store is sealed."""

    def __init__(self, store: MappingConfigurationStore, compiler: PlanCompiler) -> None:
        self._store = store
        self._compiler = compiler

    def validate(self, *, strict: bool = False) -> list[MappingIssue]:
        """Seal the store, compile every pair and collect issues.

        Issues are warnings unless *strict* is set.

        Raises:
            UnconvertibleMemberError: strict mode and a member pair has
                incompatible types with no converter.
            ConfigurationValidationError: strict mode and a member is unmapped.
        """
        self._store.seal()
        issues: list[MappingIssue] = []
        for plan in self._compiler.compile_all():
            for member in plan.unconvertible:
                issues.append(MappingIssue(plan.pair, member.member, IssueKind.UNCONVERTIBLE, str(member)))
            for name in plan.unmapped:
                issues.append(MappingIssue(plan.pair, name, IssueKind.UNMAPPED))
            for name in plan.read_only:
                issues.append(MappingIssue(plan.pair, name, IssueKind.READ_ONLY, "no setter and not a constructor argument"))

        for issue in issues:
            logger.warning("mapping_issue", pair=str(issue.pair), member=issue.member, kind=issue.kind.value)

        if strict and issues:
            unconvertible = [i for i in issues if i.kind is IssueKind.UNCONVERTIBLE]
            if unconvertible:
                raise UnconvertibleMemberError(unconvertible)
            raise ConfigurationValidationError(issues)
        return issues
