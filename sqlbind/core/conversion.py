"""Conversion of database column values to declared Python field types.

Converters are resolved once per target type (see :func:`get_converter`) and
reused for every row. A converter raises :class:`TypeError` when the value cannot
be represented in the target type; the materializer turns that into a
:class:`~sqlbind.exceptions.MappingError` naming the column.
"""

import datetime
import enum
import types
from decimal import Decimal
from functools import lru_cache
from typing import Any, Callable, Final, TypeVar, Union, get_args, get_origin
from uuid import UUID

import msgspec

from sqlbind.utils.serializers import from_json
from sqlbind.utils.type_guards import is_dataclass, is_enum_type, is_msgspec_struct_type

__all__ = ("Converter", "get_converter", "to_value_type")

Converter = Callable[[Any], Any]

_BOOL_TRUE_VALUES: Final[frozenset[str]] = frozenset({"true", "1", "yes", "y", "t", "on"})
_BOOL_FALSE_VALUES: Final[frozenset[str]] = frozenset({"false", "0", "no", "n", "f", "off"})


def _fail(value: Any, target: str) -> TypeError:
    return TypeError(f"Cannot convert {type(value).__name__} value {value!r} to {target}")


def _identity(value: Any) -> Any:
    return value


def _convert_to_int(value: Any) -> int:
    number = value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            # "42.0"
            try:
                number = float(value)
            except ValueError:
                raise _fail(value, "int") from None
    if isinstance(number, (int, float, Decimal)):
        try:
            return int(number)
        except (ValueError, ArithmeticError):
            # NaN and infinity
            pass
    raise _fail(value, "int")


def _convert_to_float(value: Any) -> float:
    if isinstance(value, (int, float, Decimal, str)):
        try:
            return float(value)
        except (ValueError, ArithmeticError):
            pass
    raise _fail(value, "float")


def _convert_to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float, str)) and not isinstance(value, bool):
        try:
            return Decimal(str(value))
        except ArithmeticError:
            pass
    raise _fail(value, "Decimal")


def _convert_to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _BOOL_TRUE_VALUES:
            return True
        if lowered in _BOOL_FALSE_VALUES:
            return False
    raise _fail(value, "bool")


def _convert_to_str(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            raise _fail(value, "str") from None
    return str(value)


def _convert_to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return value.encode("utf-8")
        except UnicodeEncodeError:
            pass
    raise _fail(value, "bytes")


def _convert_to_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min)
    if isinstance(value, str):
        try:
            return datetime.datetime.fromisoformat(value)
        except ValueError:
            pass
    raise _fail(value, "datetime")


def _convert_to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value)
        except ValueError:
            try:
                return datetime.datetime.fromisoformat(value).date()
            except ValueError:
                pass
    raise _fail(value, "date")


def _convert_to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.datetime):
        return value.time()
    if isinstance(value, datetime.time):
        return value
    if isinstance(value, str):
        try:
            return datetime.time.fromisoformat(value)
        except ValueError:
            pass
    raise _fail(value, "time")


def _convert_to_uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            pass
    if isinstance(value, (bytes, bytearray)) and len(value) == 16:  # noqa: PLR2004
        return UUID(bytes=bytes(value))
    raise _fail(value, "UUID")


def _convert_to_dict(value: Any) -> "dict[str, Any]":
    if isinstance(value, dict):
        return value
    if isinstance(value, (str, bytes)):
        try:
            parsed = from_json(value)
        except msgspec.DecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
    raise _fail(value, "dict")


def _convert_to_list(value: Any) -> "list[Any]":
    if isinstance(value, list):
        return value
    if isinstance(value, (tuple, set, frozenset)):
        return list(value)
    if isinstance(value, (str, bytes)):
        try:
            parsed = from_json(value)
        except msgspec.DecodeError:
            parsed = None
        if isinstance(parsed, list):
            return parsed
    raise _fail(value, "list")


_CONVERTERS: Final["dict[type, Converter]"] = {
    int: _convert_to_int,
    float: _convert_to_float,
    Decimal: _convert_to_decimal,
    bool: _convert_to_bool,
    str: _convert_to_str,
    bytes: _convert_to_bytes,
    datetime.datetime: _convert_to_datetime,
    datetime.date: _convert_to_date,
    datetime.time: _convert_to_time,
    UUID: _convert_to_uuid,
    dict: _convert_to_dict,
    list: _convert_to_list,
}


def _enum_converter(enum_type: "type[enum.Enum]") -> Converter:
    members = list(enum_type)

    def convert(value: Any) -> enum.Enum:
        if isinstance(value, enum_type):
            return value
        try:
            return enum_type(value)
        except ValueError:
            pass
        if isinstance(value, str) and value in enum_type.__members__:
            return enum_type[value]
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(members):
            return members[value]
        raise _fail(value, enum_type.__name__)

    return convert


def _schema_converter(schema_type: type) -> Converter:
    def convert(value: Any) -> Any:
        if isinstance(value, schema_type):
            return value
        try:
            if isinstance(value, (str, bytes)):
                value = from_json(value)
            return msgspec.convert(value, type=schema_type)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            msg = f"Cannot convert value to {schema_type.__name__}: {exc}"
            raise TypeError(msg) from exc

    return convert


def _union_converter(members: "tuple[Any, ...]") -> Converter:
    converters = [(member, get_converter(member)) for member in members]

    def convert(value: Any) -> Any:
        if value is None:
            return None
        for member, _ in converters:
            if isinstance(member, type) and type(value) is member:
                return value
        for _, converter in converters:
            try:
                return converter(value)
            except TypeError:
                continue
        names = " | ".join(getattr(member, "__name__", repr(member)) for member in members)
        raise _fail(value, names)

    return convert


def _exact_or(target: type, converter: Converter) -> Converter:
    def convert(value: Any) -> Any:
        if value is None or type(value) is target:
            return value
        return converter(value)

    return convert


@lru_cache(maxsize=512)
def get_converter(target: Any) -> Converter:
    """Resolve the converter for a declared field type.

    ``None`` always passes through unchanged, whether or not the declared type
    is optional.

    Args:
        target: A type or typing construct such as ``Optional[int]`` or ``list[str]``.

    Returns:
        A callable converting one column value.
    """
    if target is Any or target is None or target is type(None) or isinstance(target, (str, TypeVar)):
        return _identity

    origin = get_origin(target)
    if origin is Union or origin is types.UnionType:
        members = tuple(arg for arg in get_args(target) if arg is not type(None))
        if len(members) == 1:
            return get_converter(members[0])
        return _union_converter(members)
    if origin is not None:
        # Annotated[X, ...], list[int], dict[str, Any] and friends convert by their container.
        if getattr(target, "__metadata__", None) is not None:
            return get_converter(get_args(target)[0])
        return get_converter(origin) if isinstance(origin, type) else _identity

    if not isinstance(target, type):
        return _identity
    if is_enum_type(target):
        return _exact_or(target, _enum_converter(target))
    if target in _CONVERTERS:
        return _exact_or(target, _CONVERTERS[target])
    if is_dataclass(target) or is_msgspec_struct_type(target):
        return _exact_or(target, _schema_converter(target))
    if target is object:
        return _identity

    def convert(value: Any) -> Any:
        if value is None or isinstance(value, target):
            return value
        raise _fail(value, target.__name__)

    return convert


def to_value_type(value: Any, value_type: Any) -> Any:
    """Convert a database value to the specified Python type.

    Args:
        value: The value to convert.
        value_type: The target type.

    Raises:
        TypeError: If the value cannot be converted to the specified type.

    Returns:
        The converted value.

    Examples:
        >>> to_value_type("42", int)
        42
        >>> to_value_type('{"key": "value"}', dict)
        {'key': 'value'}
    """
    return get_converter(value_type)(value)
