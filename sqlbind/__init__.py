"""sqlbind: named-parameter SQL templates and row materialization for DB-API drivers."""

from sqlbind import adapters, core, driver, exceptions, typing, utils
from sqlbind.__metadata__ import __version__
from sqlbind.config import StatementConfig
from sqlbind.core.binding import BindInfo, Quoter, SQLExpression, SQLType
from sqlbind.core.mapping import NameMapper
from sqlbind.core.parameters import ParameterStyle, SQLInfo
from sqlbind.driver import (
    SQL,
    BatchInsertBuilder,
    InsertBuilder,
    SQLBatchInsert,
    SQLInsert,
    SQLQuery,
    SQLSession,
    SQLTemplate,
    SQLUpdate,
)
from sqlbind.exceptions import (
    BatchInsertError,
    BindingError,
    ExecutionError,
    MappingError,
    MissingParameterError,
    ParseError,
    SQLBindError,
    StateError,
    UnknownParameterError,
)

__all__ = (
    "SQL",
    "BatchInsertBuilder",
    "BatchInsertError",
    "BindInfo",
    "BindingError",
    "ExecutionError",
    "InsertBuilder",
    "MappingError",
    "MissingParameterError",
    "NameMapper",
    "ParameterStyle",
    "ParseError",
    "Quoter",
    "SQLBatchInsert",
    "SQLBindError",
    "SQLExpression",
    "SQLInfo",
    "SQLInsert",
    "SQLQuery",
    "SQLSession",
    "SQLTemplate",
    "SQLType",
    "SQLUpdate",
    "StateError",
    "StatementConfig",
    "UnknownParameterError",
    "__version__",
    "adapters",
    "core",
    "driver",
    "exceptions",
    "typing",
    "utils",
)
