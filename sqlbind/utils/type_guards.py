"""Type guard functions for runtime type checking in sqlbind.

These checks let the type checker narrow record and schema types instead of
relying on scattered ``hasattr()`` calls.
"""

import dataclasses
import enum
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from msgspec import Struct

if TYPE_CHECKING:
    from typing_extensions import TypeGuard

    from sqlbind.typing import DataclassProtocol

__all__ = (
    "is_dataclass",
    "is_dataclass_instance",
    "is_dict",
    "is_enum_type",
    "is_msgspec_struct_type",
    "is_namedtuple_type",
)


def is_dataclass_instance(obj: Any) -> "TypeGuard[DataclassProtocol]":
    """Check if an object is a dataclass instance.

    Args:
        obj: An object to check.

    Returns:
        True if the object is a dataclass instance.
    """
    return not isinstance(obj, type) and dataclasses.is_dataclass(obj)


def is_dataclass(obj: Any) -> bool:
    """Check if an object is a dataclass type or instance.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    if isinstance(obj, type) and hasattr(obj, "__dataclass_fields__"):
        return True
    return is_dataclass_instance(obj)


def is_msgspec_struct_type(obj: Any) -> "TypeGuard[type[Struct]]":
    """Check if a value is a msgspec struct class."""
    return isinstance(obj, type) and issubclass(obj, Struct)


def is_namedtuple_type(obj: Any) -> "TypeGuard[type[tuple[Any, ...]]]":
    """Check if a value is a ``typing.NamedTuple`` or ``collections.namedtuple`` class."""
    return isinstance(obj, type) and issubclass(obj, tuple) and hasattr(obj, "_fields")


def is_dict(obj: Any) -> "TypeGuard[Mapping[str, Any]]":
    """Check if a value is a mapping.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    return isinstance(obj, Mapping)


def is_enum_type(obj: Any) -> "TypeGuard[type[enum.Enum]]":
    return isinstance(obj, type) and issubclass(obj, enum.Enum)
