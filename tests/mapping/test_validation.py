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
"""Tests for MappingValidator: unmapped and unconvertible members."""

from dataclasses import dataclass

import pytest

from flymap.kernel.exceptions import ConfigurationValidationError, UnconvertibleMemberError
from flymap.mapping import Mapper, MappingProperties, ignore
from flymap.mapping.types import PairKey
from flymap.mapping.validation import IssueKind


@dataclass
class Account:
    id: int
    owner: str
    balance: float


@dataclass
class AccountDTO:
    id: int = 0
    owner: str = ""
    balance: float = 0.0


@dataclass
class AccountSummary:
    id: int = 0
    owner: str = ""
    rating: str = ""


@dataclass
class AccountView:
    id: int = 0
    owner: list[int] | None = None


class TestValidate:
    def test_complete_configuration_has_no_issues(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountDTO)

        assert mapper.validate() == []

    def test_unmapped_member_is_reported(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountSummary)

        issues = mapper.validate()

        assert len(issues) == 1
        assert issues[0].pair == PairKey(Account, AccountSummary)
        assert issues[0].member == "rating"
        assert issues[0].kind is IssueKind.UNMAPPED
        assert "rating" in str(issues[0])

    def test_ignored_member_is_not_reported(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountSummary).for_member("rating", ignore())

        assert mapper.validate() == []

    def test_unconvertible_member_is_reported(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountView)

        issues = mapper.validate()

        assert [(i.member, i.kind) for i in issues] == [("owner", IssueKind.UNCONVERTIBLE)]

    def test_converter_makes_member_convertible(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountView)
        mapper.register_converter(str, list[int] | None, lambda s: [ord(c) for c in s])

        assert mapper.validate() == []
        assert mapper.map(Account(1, "ab", 0.0), AccountView).owner == [97, 98]


class TestStrictValidation:
    def test_strict_raises_for_unmapped_member(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountSummary)

        with pytest.raises(ConfigurationValidationError) as exc_info:
            mapper.validate(strict=True)

        assert not isinstance(exc_info.value, UnconvertibleMemberError)
        assert [i.member for i in exc_info.value.issues] == ["rating"]

    def test_strict_raises_unconvertible_error(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountView)

        with pytest.raises(UnconvertibleMemberError) as exc_info:
            mapper.validate(strict=True)

        assert exc_info.value.code == "MAPPING_UNCONVERTIBLE"

    def test_strict_property_is_the_default(self) -> None:
        mapper = Mapper(MappingProperties(strict=True))
        mapper.register_pair(Account, AccountSummary)

        with pytest.raises(ConfigurationValidationError):
            mapper.validate()

    def test_validate_on_seal_runs_with_first_map(self) -> None:
        mapper = Mapper(MappingProperties(validate_on_seal=True, strict=True))
        mapper.register_pair(Account, AccountSummary)

        with pytest.raises(ConfigurationValidationError):
            mapper.map(Account(1, "x", 1.0), AccountSummary)

    def test_validation_issues_do_not_block_mapping_when_lenient(self) -> None:
        mapper = Mapper(MappingProperties(validate_on_seal=True))
        mapper.register_pair(Account, AccountSummary)

        summary = mapper.map(Account(1, "x", 1.0), AccountSummary)

        assert summary.owner == "x"
        assert summary.rating == ""


@dataclass(frozen=True)
class AccountRecord:
    id: int
    owner: str
    balance: float


class AccountBadge:
    def __init__(self, owner: str = "") -> None:
        self.owner = owner

    @property
    def balance(self) -> float:
        return 0.0


class TestImmutableDestinations:
    def test_frozen_destination_has_no_issues(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountRecord)

        assert mapper.validate() == []

    def test_read_only_member_matching_source_is_reported(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountBadge)

        issues = mapper.validate()

        assert [(i.member, i.kind) for i in issues] == [("balance", IssueKind.READ_ONLY)]
        assert "constructor" in str(issues[0])

    def test_strict_raises_for_read_only_member(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Account, AccountBadge)

        with pytest.raises(ConfigurationValidationError) as exc_info:
            mapper.validate(strict=True)

        assert [i.kind for i in exc_info.value.issues] == [IssueKind.READ_ONLY]
