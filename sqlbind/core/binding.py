"""Conversion of application values into driver-ready bind values.

The binder resolves every assigned value exactly once and fans it out to all
placeholder positions of its parameter. Resolution runs, in order:

1. the transformer registered for the parameter (may return an :class:`SQLExpression`),
2. the enum policy (ordinal or name),
3. an explicit :class:`SQLType` override from :class:`BindInfo`, or default type inference,
4. the driver's type coercion map.
"""

import datetime
import enum
from collections.abc import Collection, Mapping
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Final, Optional, Union
from uuid import UUID

from mypy_extensions import mypyc_attr
from sqlglot import exp

from sqlbind.core.fields import read_fields
from sqlbind.exceptions import BindingError, MissingParameterError, UnknownParameterError
from sqlbind.utils.serializers import to_json
from sqlbind.utils.type_guards import is_dict

if TYPE_CHECKING:
    from sqlglot.dialects.dialect import DialectType

    from sqlbind.core.parameters import SQLInfo

__all__ = (
    "BindInfo",
    "ParameterBinder",
    "Quoter",
    "SQLExpression",
    "SQLType",
    "Transformer",
    "TypeCoercionMap",
    "resolve_value",
)

TypeCoercionMap = Mapping[type, Callable[[Any], Any]]


class SQLType(str, enum.Enum):
    """Storage types a value can be bound as."""

    VARCHAR = "VARCHAR"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    SMALLINT = "SMALLINT"
    DECIMAL = "DECIMAL"
    FLOAT = "FLOAT"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    BINARY = "BINARY"
    JSON = "JSON"
    NULL = "NULL"

    def __str__(self) -> str:
        return self.value

    def convert(self, value: Any) -> Any:
        """Convert a Python value into the driver form of this type.

        Raises:
            TypeError: If the value has no representation in this type.
        """
        if value is None or self is SQLType.NULL:
            return None
        try:
            return _SQL_TYPE_CONVERTERS[self](value)
        except (ValueError, ArithmeticError) as exc:
            msg = f"Cannot bind {type(value).__name__} value {value!r} as {self.value}: {exc}"
            raise TypeError(msg) from exc


def _to_varchar(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8")
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


def _to_int(value: Any) -> int:
    if (isinstance(value, float) and not value.is_integer()) or (
        isinstance(value, Decimal) and value != value.to_integral_value()
    ):
        msg = "fractional value would be truncated"
        raise ValueError(msg)
    if isinstance(value, (int, float, Decimal, str)):
        return int(value)
    msg = f"Cannot bind {type(value).__name__} as an integer"
    raise TypeError(msg)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float, str)):
        return Decimal(str(value))
    msg = f"Cannot bind {type(value).__name__} as DECIMAL"
    raise TypeError(msg)


def _to_float(value: Any) -> float:
    if isinstance(value, (int, float, Decimal, str)):
        return float(value)
    msg = f"Cannot bind {type(value).__name__} as FLOAT"
    raise TypeError(msg)


def _to_bool(value: Any) -> bool:
    if isinstance(value, (bool, int)):
        return bool(value)
    msg = f"Cannot bind {type(value).__name__} as BOOLEAN"
    raise TypeError(msg)


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        return datetime.date.fromisoformat(value)
    msg = f"Cannot bind {type(value).__name__} as DATE"
    raise TypeError(msg)


def _to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.datetime):
        return value.time()
    if isinstance(value, datetime.time):
        return value
    if isinstance(value, str):
        return datetime.time.fromisoformat(value)
    msg = f"Cannot bind {type(value).__name__} as TIME"
    raise TypeError(msg)


def _to_timestamp(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min)
    if isinstance(value, str):
        return datetime.datetime.fromisoformat(value)
    msg = f"Cannot bind {type(value).__name__} as TIMESTAMP"
    raise TypeError(msg)


def _to_binary(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, UUID):
        return value.bytes
    msg = f"Cannot bind {type(value).__name__} as BINARY"
    raise TypeError(msg)


def _to_json(value: Any) -> str:
    if isinstance(value, str):
        return value
    return to_json(value)


_SQL_TYPE_CONVERTERS: Final["dict[SQLType, Callable[[Any], Any]]"] = {
    SQLType.VARCHAR: _to_varchar,
    SQLType.INTEGER: _to_int,
    SQLType.BIGINT: _to_int,
    SQLType.SMALLINT: _to_int,
    SQLType.DECIMAL: _to_decimal,
    SQLType.FLOAT: _to_float,
    SQLType.BOOLEAN: _to_bool,
    SQLType.DATE: _to_date,
    SQLType.TIME: _to_time,
    SQLType.TIMESTAMP: _to_timestamp,
    SQLType.BINARY: _to_binary,
    SQLType.JSON: _to_json,
}


def infer_sql_type(value: Any) -> "Optional[SQLType]":
    """Default storage type of a Python value, or None if there is none."""
    if value is None:
        return SQLType.NULL
    # bool before int, datetime before date
    if isinstance(value, bool):
        return SQLType.BOOLEAN
    if isinstance(value, int):
        return SQLType.BIGINT
    if isinstance(value, float):
        return SQLType.FLOAT
    if isinstance(value, Decimal):
        return SQLType.DECIMAL
    if isinstance(value, str):
        return SQLType.VARCHAR
    if isinstance(value, (bytes, bytearray, memoryview)):
        return SQLType.BINARY
    if isinstance(value, datetime.datetime):
        return SQLType.TIMESTAMP
    if isinstance(value, datetime.date):
        return SQLType.DATE
    if isinstance(value, datetime.time):
        return SQLType.TIME
    if isinstance(value, UUID):
        return SQLType.VARCHAR
    if isinstance(value, (dict, list)):
        return SQLType.JSON
    return None


@mypyc_attr(allow_interpreted_subclasses=False)
class SQLExpression:
    """Raw SQL text to be spliced into a statement instead of bound as a value.

    Never build an expression from untrusted input; it is not escaped.
    """

    __slots__ = ("sql",)

    def __init__(self, sql: str) -> None:
        self.sql = sql

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SQLExpression) and other.sql == self.sql

    def __hash__(self) -> int:
        return hash(("SQLExpression", self.sql))

    def __str__(self) -> str:
        return self.sql

    def __repr__(self) -> str:
        return f"SQLExpression({self.sql!r})"


@mypyc_attr(allow_interpreted_subclasses=False)
class Quoter:
    """Quotes literals and identifiers for one SQL dialect using sqlglot.

    Args:
        dialect: sqlglot dialect name, or None for the generic dialect.
    """

    __slots__ = ("dialect",)

    def __init__(self, dialect: "DialectType" = None) -> None:
        self.dialect = dialect

    def quote_value(self, value: Any) -> str:
        """Render a value as an SQL literal.

        ``None`` renders as ``NULL``, numbers and booleans unquoted and
        :class:`SQLExpression` verbatim. Everything else becomes a string literal
        with embedded quotes doubled.
        """
        if isinstance(value, SQLExpression):
            return value.sql
        if value is None:
            return "NULL"
        if isinstance(value, enum.Enum):
            return self.quote_value(value.name)
        if isinstance(value, bool):
            return exp.Boolean(this=value).sql(dialect=self.dialect)
        if isinstance(value, (int, float, Decimal)):
            return exp.Literal.number(value).sql(dialect=self.dialect)
        if isinstance(value, (dict, list)):
            return self.quote_value(to_json(value))
        return exp.Literal.string(_to_varchar(value)).sql(dialect=self.dialect)

    def quote_identifier(self, name: str) -> str:
        """Render a table or column name as a quoted identifier."""
        return exp.to_identifier(name, quoted=True).sql(dialect=self.dialect)

    def sql_function(self, name: str, *args: Any) -> SQLExpression:
        """Build a function call whose arguments are quoted literals, e.g. ``LOWER('ABC')``."""
        return SQLExpression(f"{name}({', '.join(self.quote_value(arg) for arg in args)})")


Transformer = Callable[[Any, str, Any, Quoter], Any]
"""``(record, name, value, quoter) -> value``; may return an :class:`SQLExpression`."""


class BindInfo:
    """Binding policy shared by every statement created from one template.

    Subclass and override :meth:`get_sql_type` or :meth:`save_enum_as_text` for
    rules that cannot be expressed as data.

    Args:
        sql_types: Storage type overrides keyed by ``(owner_type, name, value_type)``.
            Any element of the key may be ``None`` to match everything.
        enums_as_text: ``True`` to bind every enum by name, or the parameter names
            whose enums are bound by name. Other enums bind by ordinal.
        transformers: Value transformers keyed by parameter name.
    """

    __slots__ = ("_enums_as_text", "_sql_types", "transformers")

    def __init__(
        self,
        sql_types: "Optional[Mapping[tuple[Optional[type], Optional[str], Optional[type]], SQLType]]" = None,
        enums_as_text: "Union[bool, Collection[str]]" = False,
        transformers: "Optional[Mapping[str, Transformer]]" = None,
    ) -> None:
        self._sql_types = dict(sql_types or {})
        self._enums_as_text: Union[bool, frozenset[str]] = (
            enums_as_text if isinstance(enums_as_text, bool) else frozenset(enums_as_text)
        )
        self.transformers: dict[str, Transformer] = dict(transformers or {})

    def get_sql_type(self, owner_type: "Optional[type]", name: str, value_type: type) -> "Optional[SQLType]":
        """Return the storage type override for a value, most specific key first."""
        if not self._sql_types:
            return None
        for key in (
            (owner_type, name, value_type),
            (owner_type, name, None),
            (None, name, value_type),
            (None, name, None),
            (owner_type, None, value_type),
            (None, None, value_type),
        ):
            sql_type = self._sql_types.get(key)
            if sql_type is not None:
                return sql_type
        return None

    def save_enum_as_text(self, owner_type: "Optional[type]", name: str) -> bool:
        """Whether an enum bound to ``name`` is stored by name instead of ordinal."""
        if isinstance(self._enums_as_text, bool):
            return self._enums_as_text
        return name in self._enums_as_text

    def get_transformer(self, name: str) -> "Optional[Transformer]":
        return self.transformers.get(name)

    def with_transformer(self, name: str, transformer: Transformer) -> "BindInfo":
        """Return a copy with an additional transformer."""
        return BindInfo(self._sql_types, self._enums_as_text, {**self.transformers, name: transformer})

    def __repr__(self) -> str:
        return (
            f"BindInfo(sql_types={len(self._sql_types)}, enums_as_text={self._enums_as_text!r}, "
            f"transformers={sorted(self.transformers)!r})"
        )


DEFAULT_BIND_INFO: Final = BindInfo()
_INTEGER_TYPES: Final = frozenset({SQLType.INTEGER, SQLType.BIGINT, SQLType.SMALLINT})


def _enum_ordinal(value: enum.Enum) -> int:
    return list(type(value)).index(value)


def _coerce(value: Any, coercion_map: "Optional[TypeCoercionMap]") -> Any:
    if not coercion_map or value is None:
        return value
    for cls in type(value).__mro__:
        coercer = coercion_map.get(cls)
        if coercer is not None:
            return coercer(value)
    return value


def resolve_value(
    value: Any,
    name: str,
    bind_info: BindInfo = DEFAULT_BIND_INFO,
    *,
    record: Any = None,
    quoter: "Optional[Quoter]" = None,
    coercion_map: "Optional[TypeCoercionMap]" = None,
    sql: "Optional[str]" = None,
) -> Any:
    """Resolve one value into its driver form, or an :class:`SQLExpression`.

    Args:
        value: The application value.
        name: The parameter (or field) name it is bound to.
        bind_info: Binding policy.
        record: The record the value was read from, if any.
        quoter: Quoter handed to transformers.
        coercion_map: Driver-specific final conversions keyed by Python type.
        sql: Template text for error messages.

    Raises:
        BindingError: If the value cannot be bound.

    Returns:
        The driver-ready value.
    """
    owner_type = None if record is None or is_dict(record) else type(record)
    transformer = bind_info.get_transformer(name)
    if transformer is not None:
        value = transformer(record, name, value, quoter or Quoter())
    if isinstance(value, SQLExpression):
        return value
    if value is None:
        return None

    sql_type = bind_info.get_sql_type(owner_type, name, type(value))
    if isinstance(value, enum.Enum):
        if sql_type in _INTEGER_TYPES:
            value = _enum_ordinal(value)
        elif sql_type is SQLType.VARCHAR or (sql_type is None and bind_info.save_enum_as_text(owner_type, name)):
            value = value.name
        elif sql_type is None:
            value = _enum_ordinal(value)
        else:
            value = value.value

    if sql_type is None:
        sql_type = infer_sql_type(value)
        if sql_type is None:
            msg = f"Cannot bind value of type {type(value).__name__} to parameter {name!r}"
            raise BindingError(msg, sql, name)
    try:
        converted = sql_type.convert(value)
    except TypeError as exc:
        raise BindingError(f"{exc} (parameter {name!r})", sql, name) from exc
    return _coerce(converted, coercion_map)


class ParameterBinder:
    """Collects values for the parameters of one template and renders driver SQL.

    Values may be assigned individually, from a mapping or from a record; they
    are resolved when :meth:`bind` is called so that the last assignment wins.
    """

    __slots__ = ("bind_info", "coercion_map", "info", "quoter", "_values")

    def __init__(
        self,
        info: "SQLInfo",
        bind_info: BindInfo = DEFAULT_BIND_INFO,
        quoter: "Optional[Quoter]" = None,
        coercion_map: "Optional[TypeCoercionMap]" = None,
    ) -> None:
        self.info = info
        self.bind_info = bind_info
        self.quoter = quoter or Quoter()
        self.coercion_map = coercion_map
        self._values: dict[str, tuple[Any, Any]] = {}

    def set(self, name: str, value: Any, record: Any = None) -> None:
        """Assign a value to a named parameter.

        Raises:
            UnknownParameterError: If the template has no such parameter.
        """
        if not self.info.has_parameter(name):
            raise UnknownParameterError(name, self.info.original_text)
        self._values[name] = (value, record)

    def set_mapping(self, values: "Mapping[str, Any]") -> None:
        """Assign every entry of a mapping. Unknown keys are rejected."""
        for name in values:
            if not self.info.has_parameter(name):
                raise UnknownParameterError(name, self.info.original_text)
        for name, value in values.items():
            self._values[name] = (value, values)

    def set_record(self, record: Any) -> None:
        """Assign the record fields whose names match template parameters. Other fields are ignored."""
        if is_dict(record):
            fields = {name: record[name] for name in self.info.parameter_names if name in record}
        else:
            fields = read_fields(record, self.info.parameter_names)
        for name, value in fields.items():
            self._values[name] = (value, record)

    def is_bound(self, name: str) -> bool:
        return name in self._values

    def missing(self) -> "tuple[str, ...]":
        """Parameter names that have no value yet, in order of first appearance."""
        return tuple(name for name in self.info.parameter_names if name not in self._values)

    def clear(self) -> None:
        self._values.clear()

    def resolve(self) -> "dict[str, Any]":
        """Resolve every assigned value.

        Raises:
            MissingParameterError: If any parameter is unassigned.
        """
        missing = self.missing()
        if missing:
            raise MissingParameterError(missing, self.info.original_text)
        resolved: dict[str, Any] = {}
        for name in self.info.parameter_names:
            value, record = self._values[name]
            resolved[name] = resolve_value(
                value,
                name,
                self.bind_info,
                record=record,
                quoter=self.quoter,
                coercion_map=self.coercion_map,
                sql=self.info.original_text,
            )
        return resolved

    def bind(self) -> "tuple[str, list[Any]]":
        """Render the driver SQL and the positional parameter list.

        Each resolved value is repeated at every position of its parameter;
        :class:`SQLExpression` values are spliced into the SQL instead.

        Returns:
            The SQL text and its parameters.
        """
        resolved = self.resolve()
        expressions = {name: value.sql for name, value in resolved.items() if isinstance(value, SQLExpression)}
        sql, names = self.info.render(expressions)
        return sql, [resolved[name] for name in names]

