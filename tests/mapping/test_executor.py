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
"""Tests for MappingExecutor semantics, driven through the Mapper facade."""

from dataclasses import dataclass, field

import pytest
from pydantic import BaseModel, ConfigDict

from flymap.kernel.exceptions import (
    ConstructionError,
    ImmutableDestinationError,
    MemberMappingError,
    NullSourceError,
    ResolverExecutionError,
)
from flymap.mapping import Mapper, map_from, resolve_using, substitute_null, when
from flymap.mapping.adapters import ResolutionContext
from flymap.mapping.types import PairKey


@dataclass
class Category:
    name: str
    description: str = ""


@dataclass
class Address:
    street: str
    city: str


@dataclass
class AddressDTO:
    street: str = ""
    city: str = ""


@dataclass
class Item:
    sku: str
    price: float


@dataclass
class ItemDTO:
    sku: str = ""
    price: float = 0.0


@dataclass
class Customer:
    name: str
    is_active: bool = True
    email: str | None = None
    address: Address | None = None
    category: Category | None = None
    items: list[Item] | None = field(default_factory=list)


@dataclass
class CustomerDTO:
    name: str = ""
    email: str | None = "unchanged@example.com"
    address: AddressDTO | None = None
    category_name: str = "unset"
    items: list[ItemDTO] = field(default_factory=list)
    notes: str = "keep me"


def _mapper() -> Mapper:
    mapper = Mapper()
    mapper.register_pair(Customer, CustomerDTO)
    mapper.register_pair(Address, AddressDTO)
    mapper.register_pair(Item, ItemDTO)
    return mapper


class TestNullHandling:
    def test_null_nested_object_yields_none_not_empty_instance(self) -> None:
        dto = _mapper().map(Customer(name="Ann", address=None), CustomerDTO)

        assert dto.address is None

    def test_flattened_member_left_unset_when_intermediate_is_null(self) -> None:
        dto = _mapper().map(Customer(name="Ann", category=None), CustomerDTO)

        assert dto.category_name == "unset"

    def test_flattened_member_filled_when_chain_present(self) -> None:
        dto = _mapper().map(Customer(name="Ann", category=Category(name="Electronics")), CustomerDTO)

        assert dto.category_name == "Electronics"

    def test_null_collection_leaves_destination_default(self) -> None:
        dto = _mapper().map(Customer(name="Ann", items=None), CustomerDTO)

        assert dto.items == []

    def test_null_scalar_is_copied(self) -> None:
        dto = _mapper().map(Customer(name="Ann", email=None), CustomerDTO)

        assert dto.email is None

    def test_null_substitute_replaces_none(self) -> None:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).for_member("email", substitute_null("n/a"))

        assert mapper.map(Customer(name="Ann"), CustomerDTO).email == "n/a"

    def test_executor_rejects_missing_source(self) -> None:
        mapper = _mapper()
        plan = mapper.get_plan(Customer, CustomerDTO)
        executor = mapper._executor

        with pytest.raises(NullSourceError):
            executor.map(plan, None, ResolutionContext(mapper=mapper))


class TestNestedAndCollections:
    def test_nested_object_is_mapped_with_its_pair(self) -> None:
        dto = _mapper().map(Customer(name="Ann", address=Address("1 Main", "Oslo")), CustomerDTO)

        assert dto.address == AddressDTO(street="1 Main", city="Oslo")

    def test_collection_elements_are_mapped_in_order(self) -> None:
        items = [Item("a", 1.0), Item("b", 2.5), Item("c", 3.0)]

        dto = _mapper().map(Customer(name="Ann", items=items), CustomerDTO)

        assert [i.sku for i in dto.items] == ["a", "b", "c"]
        assert all(isinstance(i, ItemDTO) for i in dto.items)

    def test_empty_collection_maps_to_empty_collection(self) -> None:
        dto = _mapper().map(Customer(name="Ann", items=[]), CustomerDTO)

        assert dto.items == []


class TestMapInto:
    def test_members_without_plan_step_are_untouched(self) -> None:
        existing = CustomerDTO(name="Old", notes="hand-written", category_name="Books")

        result = _mapper().map_into(Customer(name="New", category=None), existing)

        assert result is existing
        assert existing.name == "New"
        assert existing.notes == "hand-written"
        assert existing.category_name == "Books"

    def test_ignored_member_keeps_current_value(self) -> None:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).ignore("name")
        existing = CustomerDTO(name="Keep")

        mapper.map_into(Customer(name="Drop"), existing)

        assert existing.name == "Keep"

    def test_existing_nested_object_is_updated_in_place(self) -> None:
        address = AddressDTO(street="old", city="old")
        existing = CustomerDTO(address=address)

        _mapper().map_into(Customer(name="Ann", address=Address("new", "Bergen")), existing)

        assert existing.address is address
        assert address.city == "Bergen"


class TestConditions:
    def _conditional_mapper(self) -> Mapper:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).for_member("email", when(lambda c: c.is_active))
        return mapper

    def test_false_condition_keeps_pre_call_value(self) -> None:
        existing = CustomerDTO(email="before@example.com")

        self._conditional_mapper().map_into(Customer(name="A", is_active=False, email="x@y.z"), existing)

        assert existing.email == "before@example.com"

    def test_false_condition_keeps_default_on_fresh_instance(self) -> None:
        dto = self._conditional_mapper().map(Customer(name="A", is_active=False, email="x@y.z"), CustomerDTO)

        assert dto.email == "unchanged@example.com"

    def test_true_condition_applies_fill(self) -> None:
        dto = self._conditional_mapper().map(Customer(name="A", is_active=True, email="x@y.z"), CustomerDTO)

        assert dto.email == "x@y.z"

    def test_condition_may_inspect_destination(self) -> None:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).for_member(
            "name", map_from("name", condition=lambda src, dest: dest.name == "")
        )
        existing = CustomerDTO(name="Set")

        mapper.map_into(Customer(name="Other"), existing)

        assert existing.name == "Set"


class UpperNameResolver:
    def resolve(self, source, destination, member, context):
        return f"{source.name.upper()}:{member.name}"


class FailingResolver:
    def resolve(self, source, destination, member, context):
        raise KeyError("missing lookup")


class ItemCountResolver:
    def resolve(self, source, destination, source_value, member, context):
        return f"{len(source_value or [])} items"


class TestResolversAndExpressions:
    def test_resolver_receives_member_identity(self) -> None:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).for_member("notes", resolve_using(UpperNameResolver))

        assert mapper.map(Customer(name="ann"), CustomerDTO).notes == "ANN:notes"

    def test_member_value_resolver_receives_source_member(self) -> None:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).for_member(
            "notes", resolve_using(ItemCountResolver(), source_member="items")
        )

        dto = mapper.map(Customer(name="a", items=[Item("x", 1.0)]), CustomerDTO)

        assert dto.notes == "1 items"

    def test_resolver_failure_names_member_and_pair(self) -> None:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).for_member("notes", resolve_using(FailingResolver))

        with pytest.raises(ResolverExecutionError) as exc_info:
            mapper.map(Customer(name="a"), CustomerDTO)

        error = exc_info.value
        assert error.member == "notes"
        assert error.pair == PairKey(Customer, CustomerDTO)
        assert isinstance(error.__cause__, KeyError)

    def test_multi_argument_expression_sees_destination_and_context(self) -> None:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).for_member(
            "notes", map_from(lambda src, dest, member, ctx: f"{dest.name}/{member.name}/{ctx.items['tag']}")
        )

        dto = mapper.map(Customer(name="Ann"), CustomerDTO, items={"tag": "vip"})

        assert dto.notes == "Ann/notes/vip"

    def test_expression_failure_is_wrapped(self) -> None:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).for_member("notes", map_from(lambda c: 1 / 0))

        with pytest.raises(MemberMappingError) as exc_info:
            mapper.map(Customer(name="a"), CustomerDTO)

        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)

    def test_expression_result_is_mapped_through_registered_pair(self) -> None:
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO).for_member(
            "address", map_from(lambda c: Address(street=c.name, city="Derived"))
        )

        dto = mapper.map(Customer(name="Elm"), CustomerDTO)

        assert dto.address == AddressDTO(street="Elm", city="Derived")


class TestHooks:
    def test_before_steps_after_order(self) -> None:
        calls: list[str] = []
        mapper = _mapper()
        mapper.register_pair(Customer, CustomerDTO) \
            .before_map(lambda src, dest: calls.append(f"before:{dest.name!r}")) \
            .after_map(lambda src, dest, ctx: calls.append(f"after:{dest.name!r}:{ctx.pair}"))

        mapper.map(Customer(name="Ann"), CustomerDTO)

        assert calls == ["before:''", "after:'Ann':Customer -> CustomerDTO"]


@dataclass
class Person:
    name: str
    age: int


@dataclass(frozen=True)
class PersonRecord:
    name: str
    age: int
    country: str = "NO"


class PersonModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    age: int


@dataclass
class Household:
    head: Person
    size: int


@dataclass
class HouseholdDTO:
    head: PersonRecord | None = None
    size: int = 0


class Badge:
    def __init__(self, name: str, age: int = 0) -> None:
        self._name = name
        self.age = age

    @property
    def name(self) -> str:
        return self._name


class PersonCard:
    name: str
    nickname: str


class TestConstructorOnlyDestinations:
    def test_frozen_dataclass_is_built_through_constructor(self) -> None:
        record = Mapper().map(Person("Ann", 3), PersonRecord)

        assert record == PersonRecord(name="Ann", age=3, country="NO")

    def test_frozen_pydantic_model_is_built_with_values(self) -> None:
        model = Mapper().map(Person("Ann", 3), PersonModel)

        assert (model.name, model.age) == ("Ann", 3)

    def test_read_only_property_filled_through_init(self) -> None:
        badge = Mapper().map(Person("Ann", 3), Badge)

        assert (badge.name, badge.age) == ("Ann", 3)

    def test_conditions_and_after_hooks_still_apply(self) -> None:
        seen: list[PersonRecord] = []
        mapper = Mapper()
        mapper.register_pair(Person, PersonRecord) \
            .for_member("age", when(lambda p: p.age > 18)) \
            .for_member("country", map_from(lambda p, dest: "SE" if dest is None else "??")) \
            .after_map(lambda src, dest: seen.append(dest))

        record = mapper.map(Person("Kid", 7), PersonRecord)

        assert record.age is None
        assert record.country == "SE"
        assert seen == [record]

    def test_nested_frozen_destination(self) -> None:
        dto = Mapper().map(Household(Person("Ann", 40), 2), HouseholdDTO)

        assert dto.head == PersonRecord("Ann", 40)

    def test_map_into_frozen_destination_is_rejected(self) -> None:
        with pytest.raises(ImmutableDestinationError) as exc_info:
            Mapper().map_into(Person("Ann", 3), PersonRecord("Old", 1))

        assert exc_info.value.members == ["name", "age", "country"]
        assert exc_info.value.code == "MAPPING_IMMUTABLE_DESTINATION"

    def test_map_into_replaces_nested_frozen_member(self) -> None:
        existing = HouseholdDTO(head=PersonRecord("Old", 1), size=1)

        Mapper().map_into(Household(Person("New", 2), 3), existing)

        assert existing.head == PersonRecord("New", 2)
        assert existing.size == 3

    def test_constructor_failure_is_wrapped(self) -> None:
        @dataclass(frozen=True)
        class Positive:
            value: int

            def __post_init__(self) -> None:
                if self.value <= 0:
                    raise ValueError("value must be positive")

        @dataclass
        class Raw:
            value: int

        with pytest.raises(ConstructionError) as exc_info:
            Mapper().map(Raw(-1), Positive)

        assert isinstance(exc_info.value.__cause__, ValueError)


class TestPlainDestinations:
    def test_unmapped_annotation_only_member_is_present(self) -> None:
        card = Mapper().map(Person("Ann", 3), PersonCard)

        assert card.name == "Ann"
        assert card.nickname is None

    def test_member_skipped_by_condition_is_present(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Person, PersonCard).for_member("name", when(lambda p: p.age > 18))

        card = mapper.map(Person("Kid", 7), PersonCard)

        assert card.name is None
