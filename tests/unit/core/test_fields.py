from dataclasses import dataclass, field
from typing import ClassVar, NamedTuple, Optional

import msgspec
import pytest

from sqlbind.core.fields import FieldInfo, create_instance, get_fields, read_fields, write_field
from sqlbind.exceptions import BindingError, MappingError


@dataclass
class Book:
    id: Optional[int]
    title: str
    tags: list = field(default_factory=list)


@dataclass(frozen=True)
class FrozenBook:
    id: int
    title: str


class BookStruct(msgspec.Struct):
    title: str
    id: Optional[int] = None


class BookTuple(NamedTuple):
    id: int
    title: str = "untitled"


class PlainBook:
    registry: ClassVar[dict] = {}
    id: int
    title: str = ""


def test_dataclass_fields() -> None:
    assert get_fields(Book) == (
        FieldInfo("id", Optional[int], True),
        FieldInfo("title", str, True),
        FieldInfo("tags", list, False),
    )


def test_struct_named_tuple_and_plain_class_fields() -> None:
    assert [f.name for f in get_fields(BookStruct)] == ["title", "id"]
    assert [f.required for f in get_fields(BookTuple)] == [True, False]
    assert get_fields(PlainBook) == (FieldInfo("id", int, True), FieldInfo("title", str, False))


def test_class_without_fields_is_rejected() -> None:
    class Empty:
        pass

    with pytest.raises(MappingError):
        get_fields(Empty)


def test_read_fields() -> None:
    book = Book(1, "Dune")

    assert read_fields(book) == {"id": 1, "title": "Dune", "tags": []}
    assert read_fields(book, ("title",)) == {"title": "Dune"}
    assert read_fields({"id": 1, "x": 2}, ("id", "missing")) == {"id": 1}


def test_write_field() -> None:
    book = Book(None, "Dune")
    mapping: dict = {}

    write_field(book, "id", 5)
    write_field(mapping, "id", 6)

    assert book.id == 5
    assert mapping == {"id": 6}


@pytest.mark.parametrize("record", [FrozenBook(1, "Dune"), BookTuple(1, "Dune")])
def test_write_field_on_immutable_record_fails(record: object) -> None:
    with pytest.raises(BindingError, match="immutable"):
        write_field(record, "id", 5)


def test_write_unknown_field_fails() -> None:
    with pytest.raises(BindingError, match="Cannot write field 'nope'"):
        write_field(Book(None, "Dune"), "nope", 1)


def test_create_instance() -> None:
    assert create_instance(Book, {"id": 1, "title": "Dune"}) == Book(1, "Dune")
    assert create_instance(BookTuple, {"id": 1}) == BookTuple(1, "untitled")

    plain = create_instance(PlainBook, {"id": 3})
    assert (plain.id, plain.title) == (3, "")


def test_create_instance_with_missing_required_field() -> None:
    with pytest.raises(MappingError, match="Cannot create Book"):
        create_instance(Book, {"title": "Dune"})
