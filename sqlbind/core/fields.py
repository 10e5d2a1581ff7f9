"""Field readers for structured records.

Each record type is inspected once; the resulting :class:`FieldInfo` table is
cached and reused for every bind and every materialized row of that type.
Supported record types are dataclasses, msgspec structs, named tuples and plain
annotated classes with a no-argument constructor.
"""

import dataclasses
from collections.abc import Mapping, MutableMapping
from functools import lru_cache
from typing import Any, ClassVar, Optional, get_origin, get_type_hints

from msgspec.structs import fields as struct_fields

from sqlbind.exceptions import BindingError, MappingError
from sqlbind.utils.type_guards import is_dataclass, is_dict, is_msgspec_struct_type, is_namedtuple_type

__all__ = ("FieldInfo", "create_instance", "get_fields", "get_field_names", "read_fields", "write_field")


@dataclasses.dataclass(frozen=True)
class FieldInfo:
    """Name, declared type and default of one record field."""

    name: str
    type: Any = Any
    required: bool = True


def _type_hints(record_type: type) -> "dict[str, Any]":
    try:
        return get_type_hints(record_type)
    except (NameError, TypeError):
        return dict(getattr(record_type, "__annotations__", {}))


@lru_cache(maxsize=256)
def get_fields(record_type: type) -> "tuple[FieldInfo, ...]":
    """Describe the fields of a record type.

    Args:
        record_type: A dataclass, msgspec struct, named tuple or annotated class.

    Raises:
        MappingError: If the type exposes no fields.

    Returns:
        Field descriptors in declaration order.
    """
    if is_msgspec_struct_type(record_type):
        return tuple(
            FieldInfo(f.name, f.type, f.required) for f in struct_fields(record_type)
        )
    hints = _type_hints(record_type)
    if is_dataclass(record_type):
        return tuple(
            FieldInfo(
                f.name,
                hints.get(f.name, Any),
                f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING,
            )
            for f in dataclasses.fields(record_type)
            if f.init
        )
    if is_namedtuple_type(record_type):
        defaults = getattr(record_type, "_field_defaults", {})
        return tuple(
            FieldInfo(name, hints.get(name, Any), name not in defaults) for name in record_type._fields
        )
    fields = tuple(
        FieldInfo(name, hint, not hasattr(record_type, name))
        for name, hint in hints.items()
        if not name.startswith("_") and get_origin(hint) is not ClassVar and hint is not ClassVar
    )
    if not fields:
        msg = f"{record_type.__name__} has no annotated fields"
        raise MappingError(msg)
    return fields


def get_field_names(record_type: type) -> "tuple[str, ...]":
    return tuple(f.name for f in get_fields(record_type))


def read_fields(record: Any, names: "Optional[tuple[str, ...]]" = None) -> "dict[str, Any]":
    """Read field values from a record or mapping.

    Args:
        record: The record. Mappings are read by key.
        names: Restrict the result to these field names.

    Returns:
        Field values keyed by field name.
    """
    if is_dict(record):
        if names is None:
            return dict(record)
        return {name: record[name] for name in names if name in record}
    field_names = get_field_names(type(record))
    if names is not None:
        field_names = tuple(name for name in field_names if name in names)
    return {name: getattr(record, name) for name in field_names}


def write_field(record: Any, name: str, value: Any) -> None:
    """Assign ``value`` to the field ``name`` of ``record``.

    Raises:
        BindingError: If the record is immutable or has no such field.
    """
    if isinstance(record, MutableMapping):
        record[name] = value
        return
    if isinstance(record, Mapping) or not hasattr(record, name):
        msg = f"Cannot write field {name!r} on {type(record).__name__}"
        raise BindingError(msg, parameter=name)
    try:
        setattr(record, name, value)
    except AttributeError as exc:
        msg = f"Cannot write field {name!r} on immutable {type(record).__name__}"
        raise BindingError(msg, parameter=name) from exc


def create_instance(record_type: type, values: "dict[str, Any]") -> Any:
    """Build a record from field values.

    Dataclasses, structs and named tuples are constructed with keyword
    arguments so defaults apply to missing fields; plain classes are created
    with no arguments and populated attribute by attribute.

    Raises:
        MappingError: If the type cannot be constructed from the values.
    """
    if is_dataclass(record_type) or is_msgspec_struct_type(record_type) or is_namedtuple_type(record_type):
        try:
            return record_type(**values)
        except TypeError as exc:
            msg = f"Cannot create {record_type.__name__}: {exc}"
            raise MappingError(msg) from exc
    try:
        instance = record_type()
    except TypeError as exc:
        msg = f"{record_type.__name__} needs a no-argument constructor to be used as a result type"
        raise MappingError(msg) from exc
    for name, value in values.items():
        setattr(instance, name, value)
    return instance
