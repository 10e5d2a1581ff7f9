"""Row cursors and extractors that materialize result rows.

Extractors pull rows from the cursor one at a time; nothing is fetched ahead
except the single row needed to answer :meth:`is_empty`.
"""

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Generic, Optional

from typing_extensions import TypeVar

from sqlbind.core.mapping import MaterializationPlan, NameMapper, get_plan
from sqlbind.exceptions import StateError, handle_database_exceptions

if TYPE_CHECKING:
    from sqlbind.core.cache import PlanCache
    from sqlbind.core.mapping import ColumnReaders
    from sqlbind.protocols import CursorProtocol

__all__ = ("MapExtractor", "ResultCursor", "SchemaExtractor", "materialize")

RowT = TypeVar("RowT", default=Any)

_NOT_FETCHED = object()


def materialize(plan: MaterializationPlan, row: Any) -> Any:
    """Apply ``plan`` to one row."""
    return plan.materialize(row)


class ResultCursor:
    """Read-only view of an executed DB-API cursor.

    The statement that executed the cursor owns it; closing the statement
    invalidates this view.
    """

    __slots__ = ("_cursor", "_peeked", "columns", "sql")

    def __init__(self, cursor: "CursorProtocol", sql: "Optional[str]" = None) -> None:
        if cursor.description is None:
            msg = "Statement did not produce a result set"
            raise StateError(msg)
        self._cursor = cursor
        self._peeked: Any = _NOT_FETCHED
        self.columns: tuple[str, ...] = tuple(column[0] for column in cursor.description)
        self.sql = sql

    def peek(self) -> Any:
        """Return the next row without consuming it, or None if there is none."""
        if self._peeked is _NOT_FETCHED:
            with handle_database_exceptions(self.sql):
                self._peeked = self._cursor.fetchone()
        return self._peeked

    def fetchone(self) -> Any:
        row = self.peek()
        self._peeked = _NOT_FETCHED
        return row

    def fetchmany(self, size: int) -> "list[Any]":
        rows: list[Any] = []
        while len(rows) < size:
            row = self.fetchone()
            if row is None:
                break
            rows.append(row)
        return rows

    def fetchall(self) -> "list[Any]":
        rows = []
        if self._peeked is not _NOT_FETCHED:
            if self._peeked is None:
                return []
            rows.append(self._peeked)
            self._peeked = _NOT_FETCHED
        with handle_database_exceptions(self.sql):
            rows.extend(self._cursor.fetchall())
        return rows

    def __iter__(self) -> "Iterator[Any]":
        while (row := self.fetchone()) is not None:
            yield row


class _Extractor(Generic[RowT]):
    __slots__ = ("_plan", "cursor")

    def __init__(self, cursor: ResultCursor) -> None:
        self.cursor = cursor
        self._plan: Optional[MaterializationPlan] = None

    def _get_plan(self) -> MaterializationPlan:
        raise NotImplementedError

    @property
    def plan(self) -> MaterializationPlan:
        if self._plan is None:
            self._plan = self._get_plan()
        return self._plan

    def is_empty(self) -> bool:
        """Whether no rows remain."""
        return self.cursor.peek() is None

    def first(self) -> "Optional[RowT]":
        """Materialize the next row, or return None if there is none."""
        row = self.cursor.fetchone()
        if row is None:
            return None
        return self.plan.materialize(row)

    def first_n(self, limit: int) -> "list[RowT]":
        """Materialize at most ``limit`` rows."""
        if limit < 0:
            msg = f"limit must not be negative, got {limit}"
            raise ValueError(msg)
        plan = self.plan
        return [plan.materialize(row) for row in self.cursor.fetchmany(limit)]

    def all(self) -> "list[RowT]":
        """Materialize every remaining row."""
        plan = self.plan
        return [plan.materialize(row) for row in self.cursor.fetchall()]

    def __iter__(self) -> "Iterator[RowT]":
        plan = self.plan
        for row in self.cursor:
            yield plan.materialize(row)


class SchemaExtractor(_Extractor[RowT]):
    """Materializes rows into instances of a structured type."""

    __slots__ = ("name_mapper", "plan_cache", "readers", "schema_type", "strict")

    def __init__(
        self,
        cursor: ResultCursor,
        schema_type: "type[RowT]",
        name_mapper: NameMapper = NameMapper.RELAXED,
        strict: bool = False,
        plan_cache: "Optional[PlanCache]" = None,
        readers: "Optional[ColumnReaders]" = None,
    ) -> None:
        super().__init__(cursor)
        self.schema_type = schema_type
        self.name_mapper = name_mapper
        self.strict = strict
        self.plan_cache = plan_cache
        self.readers = readers

    def _get_plan(self) -> MaterializationPlan:
        return get_plan(
            self.cursor.columns, self.schema_type, self.name_mapper, self.strict, self.plan_cache, self.readers
        )


class MapExtractor(_Extractor["dict[str, Any]"]):
    """Materializes rows into ``dict``s keyed by column label, in column order.

    With duplicate column labels the last column wins, unless ``strict`` is set.
    """

    __slots__ = ("plan_cache", "strict")

    def __init__(self, cursor: ResultCursor, plan_cache: "Optional[PlanCache]" = None, strict: bool = False) -> None:
        super().__init__(cursor)
        self.plan_cache = plan_cache
        self.strict = strict

    def _get_plan(self) -> MaterializationPlan:
        return get_plan(self.cursor.columns, None, NameMapper.AS_IS, self.strict, self.plan_cache)
