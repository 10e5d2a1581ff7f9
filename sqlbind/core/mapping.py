"""Column-to-field planning for result materialization.

A :class:`MaterializationPlan` is computed once from a cursor's column labels
and a target type, then applied to every row. Plans are cached per target shape
and rebuilt when a cursor with different column labels comes along.
"""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Callable, Final, Optional

from mypy_extensions import mypyc_attr

from sqlbind.core.cache import get_plan_cache
from sqlbind.core.conversion import Converter, get_converter
from sqlbind.core.fields import create_instance, get_fields
from sqlbind.exceptions import MappingError
from sqlbind.utils.logging import get_logger
from sqlbind.utils.text import camelize, relax, snake_case

if TYPE_CHECKING:
    from sqlbind.core.cache import PlanCache

__all__ = ("ColumnReaders", "MaterializationPlan", "NameMapper", "build_plan", "get_plan")

logger = get_logger("core.mapping")


class NameMapper:
    """Normalizes column labels and field names so that equal results match.

    Provided mappers:

    - ``NameMapper.RELAXED``: case-insensitive, ignoring ``_``, ``-`` and spaces (default)
    - ``NameMapper.AS_IS``: exact match
    - ``NameMapper.SNAKE_CASE``: ``firstName`` and ``first_name`` both become ``first_name``
    - ``NameMapper.CAMEL_CASE``: ``first_name`` and ``firstName`` both become ``firstName``
    """

    __slots__ = ("_func", "name")

    RELAXED: "NameMapper"
    AS_IS: "NameMapper"
    SNAKE_CASE: "NameMapper"
    CAMEL_CASE: "NameMapper"

    def __init__(self, name: str, func: "Callable[[str], str]") -> None:
        self.name = name
        self._func = func

    def __call__(self, name: str) -> str:
        return self._func(name)

    def __repr__(self) -> str:
        return f"NameMapper.{self.name}"


NameMapper.RELAXED = NameMapper("RELAXED", relax)
NameMapper.AS_IS = NameMapper("AS_IS", str)
NameMapper.SNAKE_CASE = NameMapper("SNAKE_CASE", snake_case)
NameMapper.CAMEL_CASE = NameMapper("CAMEL_CASE", camelize)

MAP_TARGET: Final = dict

ColumnReaders = Mapping[Any, Converter]
"""Custom column readers keyed by ``(schema_type, field_name)`` or by a declared field type."""


@mypyc_attr(allow_interpreted_subclasses=False)
class MaterializationPlan:
    """Precomputed mapping from column positions to target fields.

    Applying a plan keeps no reference to the row.
    """

    __slots__ = ("_slots", "signature", "target")

    def __init__(
        self, target: Any, signature: "tuple[str, ...]", slots: "Sequence[tuple[int, str, Converter]]"
    ) -> None:
        self.target = target
        self.signature = signature
        self._slots = tuple(slots)

    @property
    def is_map(self) -> bool:
        return self.target is MAP_TARGET

    @property
    def field_names(self) -> "tuple[str, ...]":
        return tuple(slot[1] for slot in self._slots)

    def materialize(self, row: Any) -> Any:
        """Convert one cursor row into a target instance or an ordered ``dict``.

        Raises:
            MappingError: If a column value cannot be converted to its field type.
        """
        if self.is_map:
            return {name: row[index] for index, name, _ in self._slots}
        values: dict[str, Any] = {}
        for index, name, converter in self._slots:
            try:
                values[name] = converter(row[index])
            except (TypeError, ValueError) as exc:
                raise MappingError(str(exc), column=self.signature[index]) from exc
        return create_instance(self.target, values)

    def __repr__(self) -> str:
        target = "dict" if self.is_map else getattr(self.target, "__name__", repr(self.target))
        return f"MaterializationPlan({target}, columns={self.signature!r})"


def _find_reader(readers: "ColumnReaders", schema_type: type, field: Any) -> "Optional[Converter]":
    reader = readers.get((schema_type, field.name))
    if reader is None:
        try:
            reader = readers.get(field.type)
        except TypeError:
            # unhashable annotation
            return None
    return reader


def build_plan(
    signature: "Sequence[str]",
    schema_type: "Optional[type]" = None,
    name_mapper: NameMapper = NameMapper.RELAXED,
    strict: bool = False,
    readers: "Optional[ColumnReaders]" = None,
) -> MaterializationPlan:
    """Build a plan without consulting the cache.

    Args:
        signature: Column labels in cursor order.
        schema_type: Target type, or None (or ``dict``) for ordered maps keyed by column label.
        name_mapper: Applied to both column labels and field names.
        strict: Raise instead of skipping columns that match no field, and on
            duplicate column labels or columns that map to the same field.
        readers: Custom readers that replace the built-in converter of a field,
            looked up by ``(schema_type, field_name)`` and then by declared type.

    Raises:
        MappingError: In strict mode, if a column matches no field or
            the columns cannot be mapped one to one.

    Returns:
        The plan.
    """
    labels = tuple(signature)
    if schema_type is None or schema_type is MAP_TARGET:
        seen: set[str] = set()
        for label in labels:
            if label in seen:
                if strict:
                    msg = "Duplicate column label in result"
                    raise MappingError(msg, column=label)
                logger.debug("Duplicate column label %r: the last column wins", label)
            seen.add(label)
        passthrough = get_converter(Any)
        return MaterializationPlan(MAP_TARGET, labels, [(i, label, passthrough) for i, label in enumerate(labels)])

    fields_by_key: dict[str, Any] = {}
    for field in get_fields(schema_type):
        fields_by_key.setdefault(name_mapper(field.name), field)

    slots: list[tuple[int, str, Converter]] = []
    assigned: dict[str, str] = {}
    for index, label in enumerate(labels):
        field = fields_by_key.get(name_mapper(label))
        if field is None:
            if strict:
                msg = f"No field of {schema_type.__name__} matches result column"
                raise MappingError(msg, column=label)
            logger.debug("Skipping column %r: no matching field on %s", label, schema_type.__name__)
            continue
        if field.name in assigned:
            if strict:
                msg = f"Result column maps to field {field.name!r} already read from column {assigned[field.name]!r}"
                raise MappingError(msg, column=label)
            logger.debug(
                "Skipping column %r: field %r already read from column %r", label, field.name, assigned[field.name]
            )
            continue
        assigned[field.name] = label
        reader = _find_reader(readers, schema_type, field) if readers else None
        slots.append((index, field.name, reader if reader is not None else get_converter(field.type)))
    return MaterializationPlan(schema_type, labels, slots)


def get_plan(
    signature: "Sequence[str]",
    schema_type: "Optional[type]" = None,
    name_mapper: NameMapper = NameMapper.RELAXED,
    strict: bool = False,
    cache: "Optional[PlanCache]" = None,
    readers: "Optional[ColumnReaders]" = None,
) -> MaterializationPlan:
    """Return the cached plan for this target and column signature, building it if needed."""
    labels = tuple(signature)
    target = MAP_TARGET if schema_type is None else schema_type
    plan_cache = cache if cache is not None else get_plan_cache()
    readers_key = frozenset(readers.items()) if readers else None
    return plan_cache.get(
        (target, name_mapper, strict, readers_key),
        labels,
        lambda: build_plan(labels, target, name_mapper, strict, readers),
    )
