"""Entry points: parsed SQL objects and the sessions that prepare statements from them.

``SQL.simple()`` wraps a template that only contains named parameters.
``SQL.template()`` additionally allows ``~%name%`` variables that are replaced
by SQL text (identifiers, literals, ORDER BY clauses) before the result is
parsed. Values for variables are set per session::

    sql = SQL.template("SELECT * FROM ~%table% WHERE age > :minAge ~%orderBy%")
    with sql.session(connection).set_identifier("table", "person").set_order_by("age").prepare_query() as query:
        people = query.bind("minAge", 18).fetch_all(Person)
"""

import re
from collections.abc import Collection
from typing import TYPE_CHECKING, Any, Final, Optional

from typing_extensions import Self

from sqlbind.config import DEFAULT_STATEMENT_CONFIG, StatementConfig
from sqlbind.core.cache import get_template_cache
from sqlbind.core.parameters import parse_template
from sqlbind.driver.batch import BatchInsertBuilder
from sqlbind.driver.insert import InsertBuilder, SQLInsert
from sqlbind.driver.query import SQLQuery
from sqlbind.driver.update import SQLUpdate
from sqlbind.exceptions import MissingParameterError, ParseError, UnknownParameterError

if TYPE_CHECKING:
    from sqlbind.core.binding import Quoter
    from sqlbind.core.parameters import SQLInfo
    from sqlbind.protocols import ConnectionProtocol

__all__ = ("SQL", "SQLSession", "SQLTemplate")

TEMPLATE_VARIABLE_RE: Final = re.compile(r"~%([A-Za-z_][A-Za-z0-9_]*)%")
ORDER_BY_VARIABLE: Final = "orderBy"


def _parse(text: str, config: StatementConfig) -> "SQLInfo":
    if config.enable_caching:
        return get_template_cache().get(text, config.parameter_style)
    return parse_template(text, config.parameter_style)


class SQL:
    """A SQL template and the configuration for statements created from it.

    Instances are immutable and may be shared between threads; sessions may not.
    """

    __slots__ = ("_info", "config", "text")

    def __init__(self, text: str, config: "Optional[StatementConfig]" = None) -> None:
        self.text = text
        self.config = config or DEFAULT_STATEMENT_CONFIG
        self._info: Optional[SQLInfo] = None

    @classmethod
    def simple(cls, text: str, config: "Optional[StatementConfig]" = None) -> "SQL":
        """Create SQL with named parameters only. The text is parsed immediately.

        Raises:
            ParseError: If the text is not a valid template.
        """
        sql = cls(text, config)
        sql._info = _parse(text, sql.config)
        return sql

    @classmethod
    def template(cls, text: str, config: "Optional[StatementConfig]" = None) -> "SQLTemplate":
        """Create SQL with ``~%name%`` variables in addition to named parameters."""
        return SQLTemplate(text, config)

    @staticmethod
    def insert(record_type: "Optional[type]" = None) -> InsertBuilder:
        """Start building a single-row insert for ``record_type``."""
        return InsertBuilder(record_type)

    @staticmethod
    def batch_insert(record_type: "Optional[type]" = None) -> BatchInsertBuilder:
        """Start building a chunked batch insert for ``record_type``."""
        return BatchInsertBuilder(record_type)

    @property
    def info(self) -> "SQLInfo":
        if self._info is None:
            self._info = _parse(self.text, self.config)
        return self._info

    @property
    def variables(self) -> "tuple[str, ...]":
        """Names of ``~%name%`` template variables; always empty for simple SQL."""
        return ()

    def session(self, connection: "ConnectionProtocol") -> "SQLSession":
        """Open a session on ``connection``."""
        return SQLSession(self, connection)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.text!r})"


class SQLTemplate(SQL):
    """SQL whose ``~%name%`` variables are filled in per session before parsing."""

    __slots__ = ("_variables",)

    def __init__(self, text: str, config: "Optional[StatementConfig]" = None) -> None:
        super().__init__(text, config)
        if not text or text.isspace():
            msg = "SQL template must not be blank"
            raise ParseError(msg)
        self._variables = tuple(dict.fromkeys(TEMPLATE_VARIABLE_RE.findall(text)))

    @property
    def variables(self) -> "tuple[str, ...]":
        return self._variables

    @property
    def info(self) -> "SQLInfo":
        if self._variables:
            msg = "Template variables must be set through a session before the SQL can be parsed"
            raise MissingParameterError(self._variables, self.text)
        return super().info

    def render(self, values: "dict[str, str]") -> str:
        """Replace every variable with its SQL text.

        Raises:
            MissingParameterError: If a variable has no value.
        """
        missing = tuple(name for name in self._variables if name not in values)
        if missing:
            raise MissingParameterError(missing, self.text)
        return TEMPLATE_VARIABLE_RE.sub(lambda match: values[match.group(1)], self.text)


class SQLSession:
    """Prepares statements from one :class:`SQL` on one connection.

    Not safe for concurrent use.
    """

    __slots__ = ("_variables", "connection", "quoter", "sql")

    def __init__(self, sql: SQL, connection: "ConnectionProtocol") -> None:
        self.sql = sql
        self.connection = connection
        self.quoter: Quoter = sql.config.quoter
        self._variables: dict[str, str] = {}

    @property
    def config(self) -> StatementConfig:
        return self.sql.config

    def set(self, name: str, sql_text: str) -> Self:
        """Replace the variable ``name`` with raw SQL text. The text is not escaped.

        Raises:
            UnknownParameterError: If the template has no such variable.
        """
        if name not in self.sql.variables:
            raise UnknownParameterError(name, self.sql.text)
        self._variables[name] = sql_text
        return self

    def set_value(self, name: str, value: Any) -> Self:
        """Replace the variable with a quoted literal; collections become a comma-separated list."""
        if isinstance(value, Collection) and not isinstance(value, (str, bytes, bytearray, dict)):
            return self.set(name, ", ".join(self.quoter.quote_value(item) for item in value))
        return self.set(name, self.quoter.quote_value(value))

    def set_identifier(self, name: str, identifier: str) -> Self:
        """Replace the variable with a quoted identifier such as a table or column name."""
        return self.set(name, self.quoter.quote_identifier(identifier))

    def set_order_by(self, column: str, descending: bool = False, variable: str = ORDER_BY_VARIABLE) -> Self:
        """Replace ``~%orderBy%`` (or ``variable``) with ``ORDER BY <column> [DESC]``."""
        clause = f"ORDER BY {self.quoter.quote_identifier(column)}"
        if descending:
            clause += " DESC"
        return self.set(variable, clause)

    def quote_value(self, value: Any) -> str:
        return self.quoter.quote_value(value)

    def quote_identifier(self, name: str) -> str:
        return self.quoter.quote_identifier(name)

    def _info(self) -> "SQLInfo":
        sql = self.sql
        if isinstance(sql, SQLTemplate) and sql.variables:
            # Rendered text embeds per-session literals; parse it without caching.
            return parse_template(sql.render(self._variables), sql.config.parameter_style)
        return sql.info

    def prepare_query(self) -> SQLQuery:
        """Prepare a SELECT statement."""
        return SQLQuery(self.connection, self._info(), self.config)

    def prepare_update(self) -> SQLUpdate:
        """Prepare an UPDATE, DELETE or DDL statement."""
        return SQLUpdate(self.connection, self._info(), self.config)

    def prepare_insert(self, retrieve_keys: bool = True, returning: "Optional[str]" = None) -> SQLInsert:
        """Prepare an INSERT statement.

        Args:
            retrieve_keys: Retrieve the key generated by the database after execution.
            returning: Key column produced by a ``RETURNING`` clause in the SQL.
        """
        return SQLInsert(self.connection, self._info(), self.config, retrieve_keys=retrieve_keys, returning=returning)

    def execute(self) -> int:
        """Execute the SQL once, without parameters.

        Returns:
            The number of affected rows as reported by the driver.
        """
        with SQLUpdate(self.connection, self._info(), self.config, reusable=False) as statement:
            return statement.execute()
