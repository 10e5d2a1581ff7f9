from dataclasses import Field
from typing import Any, ClassVar, Protocol

from typing_extensions import TypeVar

__all__ = ("DataclassProtocol", "ModelT")


class DataclassProtocol(Protocol):
    """Protocol for instance checking dataclasses."""

    __dataclass_fields__: "ClassVar[dict[str, Field[Any]]]"


ModelT = TypeVar("ModelT", bound=Any)
"""Type of the schema a result row is materialized into."""
