from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Optional

__all__ = (
    "BatchInsertError",
    "BindingError",
    "ExecutionError",
    "ImproperConfigurationError",
    "MappingError",
    "MissingParameterError",
    "ParseError",
    "SQLBindError",
    "StateError",
    "UnknownParameterError",
    "handle_database_exceptions",
)


class SQLBindError(Exception):
    """Base exception class from which all sqlbind exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLBindError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


def _with_sql(message: str, sql: Optional[str]) -> str:
    if sql:
        return f"{message}\nSQL: {sql}"
    return message


class ParseError(SQLBindError):
    """Malformed SQL template: unterminated literal or comment, dangling marker."""

    sql: Optional[str]
    offset: Optional[int]

    def __init__(self, message: str, sql: Optional[str] = None, offset: Optional[int] = None) -> None:
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(detail=_with_sql(message, sql))
        self.sql = sql
        self.offset = offset


class BindingError(SQLBindError):
    """A value could not be bound to a named parameter."""

    sql: Optional[str]
    parameter: Optional[str]

    def __init__(self, message: str, sql: Optional[str] = None, parameter: Optional[str] = None) -> None:
        super().__init__(detail=_with_sql(message, sql))
        self.sql = sql
        self.parameter = parameter


class MissingParameterError(BindingError):
    """Raised when named parameters are still unbound at execute time."""

    missing: "tuple[str, ...]"

    def __init__(self, missing: "tuple[str, ...]", sql: Optional[str] = None) -> None:
        names = ", ".join(missing)
        super().__init__(f"SQL contains named parameters that have not been bound: {names}", sql, missing[0])
        self.missing = missing


class UnknownParameterError(BindingError):
    """Raised when a value is bound to a name the SQL does not contain."""

    def __init__(self, parameter: str, sql: Optional[str] = None) -> None:
        super().__init__(f"No such parameter: {parameter!r}", sql, parameter)


class MappingError(SQLBindError):
    """A result column could not be mapped onto its target field or key."""

    column: Optional[str]

    def __init__(self, message: str, column: Optional[str] = None) -> None:
        if column is not None:
            message = f"{message} (column: {column!r})"
        super().__init__(detail=message)
        self.column = column


class ExecutionError(SQLBindError):
    """Wraps a failure raised by the underlying database driver."""

    sql: Optional[str]

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        super().__init__(detail=_with_sql(message, sql))
        self.sql = sql


class BatchInsertError(ExecutionError):
    """A chunk of a batch insert failed. Earlier chunks were already executed."""

    chunk: int
    rows_inserted: int

    def __init__(self, message: str, chunk: int, rows_inserted: int, sql: Optional[str] = None) -> None:
        super().__init__(f"{message} (chunk {chunk}, {rows_inserted} rows inserted before failure)", sql)
        self.chunk = chunk
        self.rows_inserted = rows_inserted


class StateError(SQLBindError):
    """Operation invoked in an invalid lifecycle state."""


class ImproperConfigurationError(SQLBindError):
    """Improper Configuration error.

    Raised when a builder or configuration object is used with missing or contradicting settings.
    """


@contextmanager
def handle_database_exceptions(sql: Optional[str] = None) -> Generator[None, None, None]:
    """Wrap driver failures into :class:`ExecutionError`.

    Errors that already belong to the sqlbind hierarchy pass through untouched.

    Args:
        sql: The template text to attach for diagnostics.
    """
    try:
        yield
    except SQLBindError:
        raise
    except Exception as exc:
        msg = f"Database error: {exc}"
        raise ExecutionError(msg, sql) from exc
