"""Tests for name mappers, plans and extractors."""

import datetime
import enum
import logging
from dataclasses import dataclass
from typing import Any, NamedTuple, Optional

import msgspec
import pytest

from sqlbind.core.mapping import NameMapper, build_plan, get_plan
from sqlbind.core.result import MapExtractor, ResultCursor, SchemaExtractor
from sqlbind.exceptions import MappingError, StateError


class Status(enum.Enum):
    ACTIVE = "A"
    INACTIVE = "I"


@dataclass
class Person:
    id: int
    firstName: str  # noqa: N815
    age: Optional[int] = None


class PersonStruct(msgspec.Struct):
    id: int
    first_name: str
    status: Status = Status.ACTIVE


class PersonTuple(NamedTuple):
    id: int
    first_name: str


class PlainPerson:
    id: int
    first_name: str
    born: datetime.date


class FakeCursor:
    """Minimal DB-API cursor over in-memory rows."""

    def __init__(self, columns: "list[str]", rows: "list[tuple[Any, ...]]") -> None:
        self.description = [(column, None, None, None, None, None, None) for column in columns]
        self._rows = list(rows)
        self.fetched = 0

    def fetchone(self) -> Any:
        if not self._rows:
            return None
        self.fetched += 1
        return self._rows.pop(0)

    def fetchall(self) -> "list[Any]":
        rows, self._rows = self._rows, []
        self.fetched += len(rows)
        return rows


@pytest.mark.parametrize(
    ("mapper", "column", "field"),
    [
        (NameMapper.RELAXED, "first_name", "firstName"),
        (NameMapper.RELAXED, "FIRST_NAME", "first_name"),
        (NameMapper.RELAXED, "first-name", "FirstName"),
        (NameMapper.SNAKE_CASE, "first_name", "firstName"),
        (NameMapper.CAMEL_CASE, "first_name", "firstName"),
        (NameMapper.AS_IS, "first_name", "first_name"),
    ],
)
def test_name_mappers_match_column_and_field(mapper: NameMapper, column: str, field: str) -> None:
    assert mapper(column) == mapper(field)


def test_as_is_mapper_is_exact() -> None:
    assert NameMapper.AS_IS("first_name") != NameMapper.AS_IS("firstName")


def test_underscore_column_maps_to_camel_case_field() -> None:
    plan = build_plan(("id", "first_name"), Person)

    assert plan.field_names == ("id", "firstName")
    assert plan.materialize((1, "Ann")) == Person(id=1, firstName="Ann")


def test_unmatched_columns_are_skipped_in_lenient_mode() -> None:
    plan = build_plan(("id", "first_name", "shoe_size"), Person)

    assert plan.materialize((1, "Ann", 44)) == Person(1, "Ann")


def test_unmatched_column_fails_in_strict_mode() -> None:
    with pytest.raises(MappingError, match="shoe_size"):
        build_plan(("id", "first_name", "shoe_size"), Person, strict=True)


def test_values_are_converted_to_field_types() -> None:
    plan = build_plan(("id", "first_name", "status"), PersonStruct)

    assert plan.materialize(("7", "Bo", "I")) == PersonStruct(7, "Bo", Status.INACTIVE)


def test_null_is_not_replaced_by_default() -> None:
    plan = build_plan(("id", "first_name", "age"), Person)

    assert plan.materialize((1, "Ann", None)).age is None


def test_conversion_failure_names_the_column() -> None:
    plan = build_plan(("id", "first_name"), Person)

    with pytest.raises(MappingError) as exc_info:
        plan.materialize(("abc", "Ann"))

    assert exc_info.value.column == "id"
    assert "(column: 'id')" in str(exc_info.value)


@pytest.mark.parametrize(
    ("row", "column"),
    [
        ((1, "Ann", float("nan")), "age"),
        ((1, "Ann", "inf"), "age"),
        ((1, b"\xff", 3), "first_name"),
    ],
)
def test_unrepresentable_values_raise_mapping_error(row: "tuple[Any, ...]", column: str) -> None:
    plan = build_plan(("id", "first_name", "age"), Person)

    with pytest.raises(MappingError) as exc_info:
        plan.materialize(row)

    assert exc_info.value.column == column


def test_named_tuple_and_plain_class_targets() -> None:
    assert build_plan(("ID", "FirstName"), PersonTuple).materialize((1, "Ann")) == PersonTuple(1, "Ann")

    plain = build_plan(("id", "first_name", "born"), PlainPerson).materialize((1, "Ann", "2000-01-31"))
    assert (plain.id, plain.first_name, plain.born) == (1, "Ann", datetime.date(2000, 1, 31))


def test_map_plan_keeps_labels_and_order() -> None:
    plan = build_plan(("first_name", "ID"), None)
    row = plan.materialize(("Ann", 1))

    assert row == {"first_name": "Ann", "ID": 1}
    assert list(row) == ["first_name", "ID"]


def test_get_plan_reuses_cached_plan() -> None:
    first = get_plan(("id", "first_name"), Person)
    second = get_plan(("id", "first_name"), Person)
    third = get_plan(("first_name", "id"), Person)

    assert first is second
    assert third is not first
    assert third.materialize(("Ann", 1)) == Person(1, "Ann")


def test_custom_reader_for_one_field() -> None:
    readers = {(Person, "firstName"): lambda value: value.strip().title()}
    plan = build_plan(("id", "first_name"), Person, readers=readers)

    assert plan.materialize((1, "  ann lee ")) == Person(1, "Ann Lee")
    assert build_plan(("id", "first_name"), Person).materialize((1, " ann ")) == Person(1, " ann ")


def test_custom_reader_for_declared_type() -> None:
    readers = {Status: lambda value: Status.ACTIVE if value == "yes" else Status.INACTIVE}
    plan = build_plan(("id", "first_name", "status"), PersonStruct, readers=readers)

    assert plan.materialize((1, "Ann", "yes")) == PersonStruct(1, "Ann", Status.ACTIVE)
    assert plan.materialize((2, "Bob", "no")) == PersonStruct(2, "Bob", Status.INACTIVE)


def test_field_reader_takes_precedence_over_type_reader() -> None:
    readers = {str: lambda value: "by type", (PersonTuple, "first_name"): lambda value: "by field"}

    assert build_plan(("id", "first_name"), PersonTuple, readers=readers).materialize((1, "x")).first_name == "by field"


def test_custom_reader_failure_names_the_column() -> None:
    plan = build_plan(("id", "first_name", "status"), PersonStruct, readers={Status: lambda value: Status(value)})

    with pytest.raises(MappingError) as exc_info:
        plan.materialize((1, "Ann", "bogus"))

    assert exc_info.value.column == "status"


def test_get_plan_keys_cache_by_readers() -> None:
    readers = {(Person, "firstName"): str.upper}

    plain = get_plan(("id", "first_name"), Person)
    custom = get_plan(("id", "first_name"), Person, readers=readers)

    assert plain is not custom
    assert custom is get_plan(("id", "first_name"), Person, readers=dict(readers))
    assert custom.materialize((1, "ann")) == Person(1, "ANN")
    assert plain.materialize((1, "ann")) == Person(1, "ann")


def test_duplicate_labels_in_map_mode(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="sqlbind.core.mapping"):
        plan = build_plan(("id", "name", "id"), None)

    assert plan.materialize((1, "Ann", 2)) == {"id": 2, "name": "Ann"}
    assert any("Duplicate column label 'id'" in record.getMessage() for record in caplog.records)

    with pytest.raises(MappingError) as exc_info:
        build_plan(("id", "name", "id"), None, strict=True)
    assert exc_info.value.column == "id"


def test_columns_mapping_to_same_field(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="sqlbind.core.mapping"):
        plan = build_plan(("first_name", "id", "FirstName"), Person)

    assert plan.field_names == ("firstName", "id")
    assert plan.materialize(("Ann", 1, "Bob")) == Person(1, "Ann")
    assert any("already read from column 'first_name'" in record.getMessage() for record in caplog.records)

    with pytest.raises(MappingError) as exc_info:
        build_plan(("first_name", "id", "FirstName"), Person, strict=True)
    assert exc_info.value.column == "FirstName"


def test_strict_map_extractor_rejects_duplicate_labels() -> None:
    extractor = MapExtractor(ResultCursor(FakeCursor(["id", "id"], [(1, 2)])), strict=True)

    with pytest.raises(MappingError):
        extractor.all()


def test_schema_extractor_shapes() -> None:
    cursor = ResultCursor(FakeCursor(["id", "first_name"], [(1, "A"), (2, "B"), (3, "C"), (4, "D")]))
    extractor = SchemaExtractor(cursor, Person)

    assert not extractor.is_empty()
    assert extractor.first() == Person(1, "A")
    assert extractor.first_n(2) == [Person(2, "B"), Person(3, "C")]
    assert extractor.all() == [Person(4, "D")]
    assert extractor.is_empty()
    assert extractor.first() is None


def test_extractor_iterates_lazily() -> None:
    fake = FakeCursor(["id", "first_name"], [(1, "A"), (2, "B"), (3, "C")])
    iterator = iter(SchemaExtractor(ResultCursor(fake), Person))

    assert next(iterator) == Person(1, "A")
    assert fake.fetched == 1


def test_map_extractor() -> None:
    extractor = MapExtractor(ResultCursor(FakeCursor(["id", "first_name"], [(1, "A"), (2, "B")])))

    assert extractor.all() == [{"id": 1, "first_name": "A"}, {"id": 2, "first_name": "B"}]


def test_empty_result() -> None:
    extractor = SchemaExtractor(ResultCursor(FakeCursor(["id", "first_name"], [])), Person)

    assert extractor.is_empty()
    assert extractor.all() == []
    assert extractor.first_n(5) == []


def test_negative_limit_is_rejected() -> None:
    extractor = MapExtractor(ResultCursor(FakeCursor(["id"], [(1,)])))

    with pytest.raises(ValueError, match="negative"):
        extractor.first_n(-1)


def test_cursor_without_result_set() -> None:
    fake = FakeCursor([], [])
    fake.description = None  # type: ignore[assignment]

    with pytest.raises(StateError):
        ResultCursor(fake)
