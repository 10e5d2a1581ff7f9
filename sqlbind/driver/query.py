"""SELECT statements and their result shapes."""

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Optional, overload

from sqlbind.core.conversion import to_value_type
from sqlbind.core.result import MapExtractor, ResultCursor, SchemaExtractor
from sqlbind.driver._statement import SQLStatement, StatementState
from sqlbind.exceptions import MappingError
from sqlbind.typing import ModelT

if TYPE_CHECKING:
    from sqlbind.core.cache import PlanCache

__all__ = ("SQLQuery",)


class SQLQuery(SQLStatement):
    """A statement that returns rows.

    Every result method executes the query on first use; later calls keep
    reading from the same result until :meth:`reset` is called.
    """

    __slots__ = ("_result", "plan_cache")

    def __init__(self, *args: Any, plan_cache: "Optional[PlanCache]" = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._result: Optional[ResultCursor] = None
        self.plan_cache = plan_cache

    def execute(self) -> ResultCursor:
        """Execute the query and return its row cursor."""
        cursor = self._execute()
        self._result = ResultCursor(cursor, self.sql)
        return self._result

    def _get_result(self) -> ResultCursor:
        if self._state is StatementState.EXECUTED and self._result is not None:
            return self._result
        return self.execute()

    def reset(self) -> "SQLQuery":
        super().reset()
        self._result = None
        return self

    def close(self) -> None:
        self._result = None
        super().close()

    def get_extractor(self, schema_type: "type[ModelT]") -> "SchemaExtractor[ModelT]":
        """Return an extractor that converts rows into ``schema_type`` instances."""
        config = self.config
        return SchemaExtractor(
            self._get_result(),
            schema_type,
            config.name_mapper,
            config.strict_mapping,
            self.plan_cache,
            config.custom_readers,
        )

    def get_map_extractor(self) -> MapExtractor:
        """Return an extractor that converts rows into ``dict``s keyed by column label."""
        return MapExtractor(self._get_result(), self.plan_cache, self.config.strict_mapping)

    def _extractor(self, schema_type: "Optional[type[Any]]") -> "SchemaExtractor[Any] | MapExtractor":
        if schema_type is None:
            return self.get_map_extractor()
        return self.get_extractor(schema_type)

    @overload
    def fetch_all(self, schema_type: None = None) -> "list[dict[str, Any]]": ...
    @overload
    def fetch_all(self, schema_type: "type[ModelT]") -> "list[ModelT]": ...
    def fetch_all(self, schema_type: "Optional[type[Any]]" = None) -> "list[Any]":
        """Materialize every row, as ``schema_type`` instances or as ``dict``s."""
        return self._extractor(schema_type).all()

    @overload
    def fetch_first(self, schema_type: None = None) -> "Optional[dict[str, Any]]": ...
    @overload
    def fetch_first(self, schema_type: "type[ModelT]") -> "Optional[ModelT]": ...
    def fetch_first(self, schema_type: "Optional[type[Any]]" = None) -> Any:
        """Materialize the first row, or return None if there are no rows."""
        return self._extractor(schema_type).first()

    @overload
    def fetch_many(self, limit: int, schema_type: None = None) -> "list[dict[str, Any]]": ...
    @overload
    def fetch_many(self, limit: int, schema_type: "type[ModelT]") -> "list[ModelT]": ...
    def fetch_many(self, limit: int, schema_type: "Optional[type[Any]]" = None) -> "list[Any]":
        """Materialize at most ``limit`` rows."""
        return self._extractor(schema_type).first_n(limit)

    def iter_rows(self, schema_type: "Optional[type[Any]]" = None) -> "Iterator[Any]":
        """Lazily materialize rows, pulling one row from the cursor at a time."""
        return iter(self._extractor(schema_type))

    def scalar(self, value_type: "Optional[type[Any]]" = None) -> Any:
        """Return the first column of the first row.

        Args:
            value_type: Convert the value to this type.

        Raises:
            MappingError: If the query returned no rows, or the value cannot be converted.
        """
        result = self._get_result()
        row = result.fetchone()
        if row is None:
            msg = "Query returned no rows"
            raise MappingError(msg, column=result.columns[0] if result.columns else None)
        return self._convert(row[0], value_type, result.columns[0])

    def first_column(self, value_type: "Optional[type[Any]]" = None, limit: "Optional[int]" = None) -> "list[Any]":
        """Return the first column of every remaining row, or of at most ``limit`` rows."""
        result = self._get_result()
        rows = result.fetchall() if limit is None else result.fetchmany(limit)
        return [self._convert(row[0], value_type, result.columns[0]) for row in rows]

    def exists(self) -> bool:
        """Whether the query returns at least one row."""
        return self._get_result().peek() is not None

    @staticmethod
    def _convert(value: Any, value_type: "Optional[type[Any]]", column: str) -> Any:
        if value_type is None:
            return value
        try:
            return to_value_type(value, value_type)
        except TypeError as exc:
            raise MappingError(str(exc), column=column) from exc
