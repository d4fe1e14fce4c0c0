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
"""Tests for the Mapper facade: registration, mapping calls and plans."""

from dataclasses import dataclass, field

import pytest

from flymap.kernel.exceptions import AlreadySealedError, MappingNotFoundError, NullSourceError
from flymap.mapping import Mapper, MappingProperties, map_from


@dataclass
class Book:
    isbn: str
    title: str
    author: str
    in_print: bool = True


@dataclass
class BookSummary:
    title: str
    author: str


@dataclass
class Listing:
    heading: str
    author: str
    available: bool = True


@dataclass
class ShelfEntry:
    title: str
    author: str
    notes: str = ""
    genres: list[str] = field(default_factory=list)


class Shelf:
    def __init__(self, aisle: int, row: str) -> None:
        self.aisle = aisle
        self.row = row


def _book(**overrides) -> Book:
    values = {"isbn": "978-0", "title": "Dune", "author": "Herbert"}
    values.update(overrides)
    return Book(**values)


class TestConventionMapping:
    def test_members_with_equal_names_are_copied(self) -> None:
        summary = Mapper().map(_book(), BookSummary)

        assert summary == BookSummary(title="Dune", author="Herbert")

    def test_unmatched_source_members_are_dropped(self) -> None:
        summary = Mapper().map(_book(isbn="978-1", in_print=False), BookSummary)

        assert not hasattr(summary, "isbn")
        assert not hasattr(summary, "in_print")

    def test_destination_defaults_survive_for_unmatched_members(self) -> None:
        entry = Mapper().map(BookSummary("Emma", "Austen"), ShelfEntry)

        assert (entry.title, entry.author) == ("Emma", "Austen")
        assert entry.notes == ""
        assert entry.genres == []

    def test_mapping_a_type_onto_itself_builds_a_copy(self) -> None:
        entry = ShelfEntry("Emma", "Austen", notes="signed", genres=["novel"])

        copy = Mapper().map(entry, ShelfEntry)

        assert copy == entry
        assert copy is not entry

    def test_unregistered_pair_matches_identical_names_only(self) -> None:
        listing = Mapper().map(_book(), Listing)

        assert listing.heading is None
        assert listing.author == "Herbert"

    def test_unregistered_pair_rejected_without_create_missing_maps(self) -> None:
        mapper = Mapper(MappingProperties(create_missing_maps=False))

        with pytest.raises(MappingNotFoundError):
            mapper.map(_book(), BookSummary)


class TestAddMapping:
    def test_field_map_renames_members(self) -> None:
        mapper = Mapper()
        mapper.add_mapping(Book, Listing, field_map={"title": "heading", "in_print": "available"})

        listing = mapper.map(_book(in_print=False), Listing)

        assert listing == Listing(heading="Dune", author="Herbert", available=False)

    def test_transformer_keyed_by_destination_member(self) -> None:
        mapper = Mapper()
        mapper.add_mapping(Book, BookSummary, transformers={"author": str.upper})

        summary = mapper.map(_book(), BookSummary)

        assert summary.author == "HERBERT"
        assert summary.title == "Dune"

    def test_transformer_reads_renamed_source_member(self) -> None:
        mapper = Mapper()
        mapper.add_mapping(
            Book,
            Listing,
            field_map={"title": "heading"},
            transformers={"heading": lambda title: title[::-1]},
        )

        assert mapper.map(_book(), Listing).heading == "enuD"

    def test_excluded_member_keeps_destination_default(self) -> None:
        mapper = Mapper()
        mapper.add_mapping(
            Book,
            Listing,
            field_map={"title": "heading", "in_print": "available"},
            exclude={"available"},
        )

        listing = mapper.map(_book(in_print=False), Listing)

        assert listing.heading == "Dune"
        assert listing.available is True


class TestMapList:
    def test_each_element_is_mapped_in_order(self) -> None:
        books = [_book(title="Dune"), _book(title="Emma", author="Austen")]

        summaries = Mapper().map_list(books, BookSummary)

        assert [s.title for s in summaries] == ["Dune", "Emma"]
        assert all(type(s) is BookSummary for s in summaries)

    def test_empty_input_gives_empty_list(self) -> None:
        assert Mapper().map_list([], BookSummary) == []

    def test_generator_input_is_accepted(self) -> None:
        summaries = Mapper().map_list((_book(title=t) for t in ("A", "B")), BookSummary)

        assert len(summaries) == 2


class TestWholeValueConversion:
    def test_converter_turns_object_into_scalar(self) -> None:
        mapper = Mapper()
        mapper.register_converter(Shelf, str, lambda s: f"{s.aisle}-{s.row}")

        assert mapper.map(Shelf(4, "B"), str) == "4-B"


class TestLifecycle:
    def test_first_map_seals_registration(self) -> None:
        mapper = Mapper()
        mapper.map(_book(), BookSummary)

        assert mapper.sealed
        with pytest.raises(AlreadySealedError):
            mapper.register_pair(Book, Listing)

    def test_none_source_raises(self) -> None:
        with pytest.raises(NullSourceError):
            Mapper().map(None, BookSummary)

    def test_none_destination_raises(self) -> None:
        with pytest.raises(NullSourceError):
            Mapper().map_into(_book(), None)


class TestGetPlan:
    def test_plan_reports_filled_and_unmapped_members(self) -> None:
        mapper = Mapper()
        mapper.register_pair(Book, Listing).for_member("heading", map_from("title"))

        plan = mapper.get_plan(Book, Listing)

        assert plan.members == ["heading", "author"]
        assert plan.unmapped == ("available",)
        assert "heading <- title" in plan.describe()

    def test_plan_is_compiled_once(self) -> None:
        mapper = Mapper()

        assert mapper.get_plan(Book, BookSummary) is mapper.get_plan(Book, BookSummary)
