"""Lifecycle shared by every prepared statement kind."""

import contextlib
import weakref
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from typing_extensions import Self

from sqlbind.config import DEFAULT_STATEMENT_CONFIG, StatementConfig
from sqlbind.core.binding import ParameterBinder
from sqlbind.exceptions import StateError, handle_database_exceptions
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from sqlbind.core.parameters import SQLInfo
    from sqlbind.protocols import ConnectionProtocol, CursorProtocol

__all__ = ("SQLStatement", "StatementState")

logger = get_logger("driver")


class StatementState(str, Enum):
    """Lifecycle states of a prepared statement."""

    CREATED = "created"
    BOUND = "bound"
    EXECUTED = "executed"
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value


def _release_cursor(cursor: "CursorProtocol") -> None:
    with contextlib.suppress(Exception):
        cursor.close()


class SQLStatement:
    """A parsed template bound to a connection, with values assigned by name.

    The statement owns one DB-API cursor, opened on first execution and
    released by :meth:`close`, by leaving a ``with`` block, or when the
    statement is garbage collected.

    Args:
        connection: A DB-API connection.
        info: The parsed template.
        config: Binding and mapping settings.
        reusable: Whether :meth:`reset` may be used to execute again with new values.
    """

    __slots__ = ("__weakref__", "_binder", "_cursor", "_finalizer", "_state", "config", "connection", "info", "reusable")

    def __init__(
        self,
        connection: "ConnectionProtocol",
        info: "SQLInfo",
        config: "Optional[StatementConfig]" = None,
        reusable: bool = True,
    ) -> None:
        self.connection = connection
        self.info = info
        self.config = config or DEFAULT_STATEMENT_CONFIG
        self.reusable = reusable
        self._binder = ParameterBinder(info, self.config.bind_info, self.config.quoter, self.config.type_coercion_map)
        self._cursor: Optional[CursorProtocol] = None
        self._finalizer: Optional[weakref.finalize] = None
        self._state = StatementState.CREATED

    @property
    def state(self) -> StatementState:
        return self._state

    @property
    def sql(self) -> str:
        """The template text this statement was created from."""
        return self.info.original_text

    @property
    def closed(self) -> bool:
        return self._state is StatementState.CLOSED

    def _ensure_bindable(self) -> None:
        if self._state is StatementState.CLOSED:
            msg = "Cannot bind values: statement is closed"
            raise StateError(msg)
        if self._state is StatementState.EXECUTED:
            msg = "Cannot bind values after execution: call reset() first"
            raise StateError(msg)

    def bind(self, name: str, value: Any) -> Self:
        """Assign a value to a named parameter.

        The value is used for every occurrence of the parameter in the template.

        Args:
            name: Parameter name without the leading marker.
            value: The value.

        Raises:
            UnknownParameterError: If the template has no such parameter.
            StateError: If the statement was executed or closed.

        Returns:
            The statement, for chaining.
        """
        self._ensure_bindable()
        self._binder.set(name, value)
        self._state = StatementState.BOUND
        return self

    set = bind

    def bind_mapping(self, values: "Mapping[str, Any]") -> Self:
        """Assign every entry of ``values``. Keys that are not parameters are rejected."""
        self._ensure_bindable()
        self._binder.set_mapping(values)
        self._state = StatementState.BOUND
        return self

    def bind_record(self, record: Any) -> Self:
        """Assign the fields of ``record`` that match parameter names."""
        self._ensure_bindable()
        self._binder.set_record(record)
        self._state = StatementState.BOUND
        return self

    def is_bound(self, name: str) -> bool:
        return self._binder.is_bound(name)

    def reset(self) -> Self:
        """Clear all values so the statement can be bound and executed again.

        Raises:
            StateError: If the statement is closed or single-use.
        """
        if self._state is StatementState.CLOSED:
            msg = "Cannot reset a closed statement"
            raise StateError(msg)
        if not self.reusable:
            msg = f"{type(self).__name__} is single-use and cannot be reset"
            raise StateError(msg)
        self._binder.clear()
        self._state = StatementState.CREATED
        return self

    def _get_cursor(self) -> "CursorProtocol":
        if self._cursor is None:
            with handle_database_exceptions(self.sql):
                cursor = self.connection.cursor()
            self._cursor = cursor
            self._finalizer = weakref.finalize(self, _release_cursor, cursor)
        return self._cursor

    def _execute(self, sql: "Optional[str]" = None, parameters: "Optional[list[Any]]" = None) -> "CursorProtocol":
        """Run the statement once and move it to ``EXECUTED``.

        Args:
            sql: Driver SQL to run instead of the bound template.
            parameters: Parameters for ``sql``.

        Raises:
            StateError: If the statement was already executed or is closed.
            MissingParameterError: If a parameter has no value.
            ExecutionError: If the driver fails.

        Returns:
            The executed cursor.
        """
        if self._state is StatementState.CLOSED:
            msg = "Cannot execute a closed statement"
            raise StateError(msg)
        if self._state is StatementState.EXECUTED:
            msg = "Statement was already executed: call reset() to execute again"
            raise StateError(msg)
        if sql is None:
            sql, parameters = self._binder.bind()
        cursor = self._get_cursor()
        logger.debug("Executing SQL: %s", sql, extra={"extra_fields": {"parameter_count": len(parameters or ())}})
        with handle_database_exceptions(self.sql):
            cursor.execute(sql, parameters or ())
        self._state = StatementState.EXECUTED
        return cursor

    def close(self) -> None:
        """Release the cursor. Safe to call more than once."""
        if self._state is StatementState.CLOSED:
            return
        self._state = StatementState.CLOSED
        if self._finalizer is not None:
            self._finalizer()
        self._cursor = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: "Optional[type[BaseException]]",
        exc_val: "Optional[BaseException]",
        exc_tb: "Optional[TracebackType]",
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.sql!r}, state={self._state.value})"
