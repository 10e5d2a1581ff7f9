"""Tests for value resolution, binding policy and quoting."""

import datetime
import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

import pytest

from sqlbind.adapters.sqlite import sqlite_statement_config
from sqlbind.core.binding import BindInfo, ParameterBinder, Quoter, SQLExpression, SQLType, resolve_value
from sqlbind.core.parameters import ParameterStyle, parse_template
from sqlbind.exceptions import BindingError, MissingParameterError, UnknownParameterError


class Status(enum.Enum):
    ACTIVE = "A"
    INACTIVE = "I"
    BANNED = "B"


@dataclass
class Person:
    id: int
    first_name: str
    status: Status
    nickname: str = ""


def test_repeated_parameter_receives_the_same_value() -> None:
    binder = ParameterBinder(parse_template("SELECT * FROM t WHERE a = :x OR b = :x"))
    binder.set("x", 5)

    sql, parameters = binder.bind()

    assert sql == "SELECT * FROM t WHERE a = ? OR b = ?"
    assert parameters == [5, 5]


def test_parameters_follow_placeholder_order() -> None:
    binder = ParameterBinder(parse_template("SELECT :b, :a, :b"))
    binder.set_mapping({"a": 1, "b": 2})

    assert binder.bind()[1] == [2, 1, 2]


def test_missing_parameter_is_reported_at_bind_time() -> None:
    binder = ParameterBinder(parse_template("SELECT :a, :b, :c"))
    binder.set("b", 1)

    with pytest.raises(MissingParameterError) as exc_info:
        binder.bind()

    assert exc_info.value.missing == ("a", "c")
    assert "a, c" in str(exc_info.value)


def test_unknown_name_is_rejected() -> None:
    binder = ParameterBinder(parse_template("SELECT :a"))

    with pytest.raises(UnknownParameterError):
        binder.set("nope", 1)
    with pytest.raises(UnknownParameterError):
        binder.set_mapping({"a": 1, "nope": 2})
    assert not binder.is_bound("a")


def test_record_fields_not_in_template_are_ignored() -> None:
    binder = ParameterBinder(parse_template("UPDATE person SET first_name = :first_name WHERE id = :id"))
    binder.set_record(Person(id=7, first_name="Ann", status=Status.ACTIVE))

    assert binder.bind()[1] == ["Ann", 7]


def test_null_binds_as_none() -> None:
    binder = ParameterBinder(parse_template("SELECT :a"))
    binder.set("a", None)

    assert binder.bind()[1] == [None]


def test_last_assignment_wins() -> None:
    binder = ParameterBinder(parse_template("SELECT :a"))
    binder.set("a", 1)
    binder.set("a", 2)

    assert binder.bind()[1] == [2]


def test_enum_binds_by_ordinal_by_default() -> None:
    assert resolve_value(Status.BANNED, "status") == 2


def test_enum_binds_by_name_when_stored_as_text() -> None:
    assert resolve_value(Status.BANNED, "status", BindInfo(enums_as_text=True)) == "BANNED"
    assert resolve_value(Status.BANNED, "status", BindInfo(enums_as_text={"status"})) == "BANNED"
    assert resolve_value(Status.BANNED, "other", BindInfo(enums_as_text={"status"})) == 2


def test_enum_policy_from_subclass() -> None:
    class TextEnums(BindInfo):
        def save_enum_as_text(self, owner_type: Any, name: str) -> bool:
            return owner_type is Person

    binder = ParameterBinder(parse_template("INSERT INTO person (status) VALUES (:status)"), TextEnums())
    binder.set_record(Person(id=1, first_name="Ann", status=Status.INACTIVE))

    assert binder.bind()[1] == ["INACTIVE"]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (True, True),
        (42, 42),
        (1.5, 1.5),
        (Decimal("1.10"), Decimal("1.10")),
        ("text", "text"),
        (b"\x00\x01", b"\x00\x01"),
        (bytearray(b"ab"), b"ab"),
        (datetime.datetime(2024, 1, 2, 3, 4, 5), datetime.datetime(2024, 1, 2, 3, 4, 5)),
        (datetime.date(2024, 1, 2), datetime.date(2024, 1, 2)),
        (datetime.time(3, 4, 5), datetime.time(3, 4, 5)),
        (UUID("12345678-1234-5678-1234-567812345678"), "12345678-1234-5678-1234-567812345678"),
        ({"a": 1}, '{"a":1}'),
        ([1, 2], "[1,2]"),
    ],
)
def test_default_type_inference(value: Any, expected: Any) -> None:
    assert resolve_value(value, "p") == expected


def test_unsupported_type_is_a_binding_error() -> None:
    with pytest.raises(BindingError, match="Cannot bind value of type object to parameter 'p'") as exc_info:
        resolve_value(object(), "p", sql="SELECT :p")

    assert exc_info.value.parameter == "p"


def test_sql_type_override_by_name() -> None:
    bind_info = BindInfo(sql_types={(None, "code", None): SQLType.VARCHAR})

    assert resolve_value(12, "code", bind_info) == "12"
    assert resolve_value(12, "other", bind_info) == 12


def test_sql_type_override_most_specific_key_wins() -> None:
    bind_info = BindInfo(
        sql_types={
            (None, "value", None): SQLType.VARCHAR,
            (Person, "value", int): SQLType.FLOAT,
        }
    )

    assert bind_info.get_sql_type(Person, "value", int) is SQLType.FLOAT
    assert bind_info.get_sql_type(None, "value", int) is SQLType.VARCHAR
    assert bind_info.get_sql_type(Person, "other", int) is None


def test_override_conversion_failure_is_reported() -> None:
    bind_info = BindInfo(sql_types={(None, "n", None): SQLType.INTEGER})

    with pytest.raises(BindingError, match="parameter 'n'"):
        resolve_value("not a number", "n", bind_info)
    with pytest.raises(BindingError):
        resolve_value(1.5, "n", bind_info)


@pytest.mark.parametrize("value", [Decimal("3.5"), Decimal("Infinity"), Decimal("NaN"), float("inf")])
def test_integer_override_rejects_non_integral_numbers(value: Any) -> None:
    bind_info = BindInfo(sql_types={(None, "n", None): SQLType.INTEGER})

    with pytest.raises(BindingError, match="parameter 'n'"):
        resolve_value(value, "n", bind_info)


def test_integer_override_accepts_integral_decimal() -> None:
    bind_info = BindInfo(sql_types={(None, "n", None): SQLType.BIGINT})

    assert resolve_value(Decimal("4.00"), "n", bind_info) == 4


def test_enum_with_integer_override_binds_ordinal() -> None:
    bind_info = BindInfo(sql_types={(None, None, Status): SQLType.SMALLINT}, enums_as_text=True)

    assert resolve_value(Status.INACTIVE, "status", bind_info) == 1


def test_coercion_map_is_applied_last() -> None:
    coercion = sqlite_statement_config.type_coercion_map

    assert resolve_value(True, "p", coercion_map=coercion) == 1
    assert resolve_value(Decimal("2.50"), "p", coercion_map=coercion) == "2.50"
    assert resolve_value(datetime.datetime(2024, 1, 2, 3, 4), "p", coercion_map=coercion) == "2024-01-02T03:04:00"
    assert resolve_value(datetime.date(2024, 1, 2), "p", coercion_map=coercion) == "2024-01-02"


def test_transformer_receives_record_name_value_and_quoter() -> None:
    seen: list[Any] = []

    def upper(record: Any, name: str, value: Any, quoter: Quoter) -> Any:
        seen.append((record, name, value, isinstance(quoter, Quoter)))
        return value.upper()

    person = Person(id=1, first_name="ann", status=Status.ACTIVE)
    binder = ParameterBinder(
        parse_template("INSERT INTO person (first_name) VALUES (:first_name)"),
        BindInfo(transformers={"first_name": upper}),
    )
    binder.set_record(person)

    assert binder.bind()[1] == ["ANN"]
    assert seen == [(person, "first_name", "ann", True)]


def test_transformer_expression_is_spliced_into_sql() -> None:
    def lower(record: Any, name: str, value: Any, quoter: Quoter) -> Any:
        return quoter.sql_function("LOWER", value)

    binder = ParameterBinder(
        parse_template("SELECT * FROM t WHERE a = :a AND b = :b AND c = :b", ParameterStyle.NUMERIC),
        BindInfo(transformers={"b": lower}),
    )
    binder.set_mapping({"a": 1, "b": "O'Brien"})

    sql, parameters = binder.bind()

    assert sql == "SELECT * FROM t WHERE a = $1 AND b = LOWER('O''Brien') AND c = LOWER('O''Brien')"
    assert parameters == [1]


def test_bound_sql_expression_is_spliced_into_sql() -> None:
    binder = ParameterBinder(parse_template("UPDATE t SET modified = :now WHERE id = :id"))
    binder.set_mapping({"now": SQLExpression("CURRENT_TIMESTAMP"), "id": 3})

    assert binder.bind() == ("UPDATE t SET modified = CURRENT_TIMESTAMP WHERE id = ?", [3])


def test_quoter_doubles_embedded_quotes() -> None:
    assert Quoter().quote_value("O'Brien") == "'O''Brien'"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, "NULL"),
        (42, "42"),
        (1.5, "1.5"),
        (Decimal("3.10"), "3.10"),
        (True, "TRUE"),
        (Status.ACTIVE, "'ACTIVE'"),
        (datetime.date(2024, 1, 2), "'2024-01-02'"),
        (SQLExpression("NOW()"), "NOW()"),
    ],
)
def test_quoter_values(value: Any, expected: str) -> None:
    assert Quoter().quote_value(value) == expected


def test_quoter_identifiers_follow_dialect() -> None:
    assert Quoter().quote_identifier("person") == '"person"'
    assert Quoter("mysql").quote_identifier("person") == "`person`"


def test_sql_expression_equality() -> None:
    assert SQLExpression("NOW()") == SQLExpression("NOW()")
    assert str(SQLExpression("NOW()")) == "NOW()"
