"""Single-row INSERT statements and the builder that generates them from a record type."""

from collections.abc import Iterable, Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, Optional

from typing_extensions import Self

from sqlbind.config import DEFAULT_STATEMENT_CONFIG, StatementConfig
from sqlbind.core.cache import get_template_cache
from sqlbind.core.conversion import to_value_type
from sqlbind.core.fields import get_field_names, get_fields, write_field
from sqlbind.core.mapping import NameMapper
from sqlbind.core.parameters import parse_template
from sqlbind.driver._statement import SQLStatement, StatementState
from sqlbind.exceptions import ImproperConfigurationError, MappingError, StateError, handle_database_exceptions
from sqlbind.utils.type_guards import is_dict

if TYPE_CHECKING:
    from sqlbind.core.parameters import SQLInfo
    from sqlbind.protocols import ConnectionProtocol, CursorProtocol

__all__ = ("InsertBuilder", "SQLInsert", "assign_key")


def assign_key(record: Any, key_field: str, key: Any) -> None:
    """Write a generated key onto ``record``, converted to the field's declared type."""
    if not is_dict(record):
        field_type = next((f.type for f in get_fields(type(record)) if f.name == key_field), None)
        if field_type is not None:
            try:
                key = to_value_type(key, field_type)
            except TypeError as exc:
                raise MappingError(str(exc), column=key_field) from exc
    write_field(record, key_field, key)


class SQLInsert(SQLStatement):
    """An INSERT statement that can hand back the key generated by the database.

    Keys come from ``cursor.lastrowid``, or from the first column of the
    statement's result when it has a ``RETURNING`` clause (set ``returning``).

    Args:
        *args: Passed to :class:`SQLStatement`.
        retrieve_keys: Whether to retrieve generated keys at all.
        returning: Name of the key column produced by a ``RETURNING`` clause.
        **kwargs: Passed to :class:`SQLStatement`.
    """

    __slots__ = ("_key_field", "_record", "retrieve_keys", "returning")

    def __init__(self, *args: Any, retrieve_keys: bool = True, returning: "Optional[str]" = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.retrieve_keys = retrieve_keys
        self.returning = returning
        self._record: Any = None
        self._key_field: Optional[str] = None

    def bind_record(self, record: Any, key_field: "Optional[str]" = None) -> Self:  # type: ignore[override]
        """Bind the fields of ``record`` and remember where to write the generated key.

        Args:
            record: The record to insert.
            key_field: Field of ``record`` that receives the generated key after :meth:`execute`.

        Returns:
            The statement, for chaining.
        """
        super().bind_record(record)
        self._record = record
        self._key_field = key_field
        return self

    def bind_mapping(self, values: "Mapping[str, Any]", key_field: "Optional[str]" = None) -> Self:  # type: ignore[override]
        """Bind a mapping. With ``key_field`` the generated key is stored under that key."""
        if key_field is not None and not isinstance(values, MutableMapping):
            msg = "key_field requires a mutable mapping"
            raise ImproperConfigurationError(msg)
        super().bind_mapping(values)
        self._record = values
        self._key_field = key_field
        return self

    def reset(self) -> Self:
        super().reset()
        self._record = None
        self._key_field = None
        return self

    def _read_key(self, cursor: "CursorProtocol") -> Any:
        with handle_database_exceptions(self.sql):
            if self.returning is not None:
                row = cursor.fetchone()
                if row is None:
                    msg = "INSERT returned no generated key"
                    raise MappingError(msg, column=self.returning)
                return row[0]
            return cursor.lastrowid

    def execute(self) -> None:
        """Execute the insert and write the generated key back onto the bound record, if requested."""
        self._run()

    def execute_and_get_key(self) -> Any:
        """Execute the insert and return the generated key.

        Raises:
            StateError: If the statement was prepared without key retrieval.
        """
        if not self.retrieve_keys:
            msg = "Statement was prepared without retrieval of generated keys"
            raise StateError(msg)
        return self._run()

    def _run(self) -> Any:
        cursor = self._execute()
        if not self.retrieve_keys:
            return None
        key = self._read_key(cursor)
        if self._key_field is not None and self._record is not None:
            assign_key(self._record, self._key_field, key)
        return key

    def insert_all(self, records: "Iterable[Any]", key_field: "Optional[str]" = None) -> int:
        """Insert the records one by one, resetting the statement in between.

        Args:
            records: Records (or mappings) to insert.
            key_field: Field receiving each generated key.

        Returns:
            The number of inserted records.
        """
        count = 0
        for record in records:
            if self._state is not StatementState.CREATED:
                self.reset()
            if is_dict(record):
                self.bind_mapping(record, key_field)
            else:
                self.bind_record(record, key_field)
            self._run()
            count += 1
        return count


class InsertBuilder:
    """Generates an ``INSERT`` statement from the fields of a record type.

    Example:
        >>> insert = (
        ...     InsertBuilder()
        ...     .of(Person)
        ...     .into("person")
        ...     .excluding("id")
        ...     .prepare(connection)
        ... )
    """

    __slots__ = ("_config", "_excluded", "_included", "_name_mapper", "_record_type", "_returning", "_table")

    def __init__(self, record_type: "Optional[type]" = None) -> None:
        self._record_type = record_type
        self._table: Optional[str] = None
        self._included: Optional[tuple[str, ...]] = None
        self._excluded: Optional[tuple[str, ...]] = None
        self._name_mapper: NameMapper = NameMapper.AS_IS
        self._config: StatementConfig = DEFAULT_STATEMENT_CONFIG
        self._returning: Optional[str] = None

    def of(self, record_type: type) -> Self:
        """Set the record type whose fields become the inserted columns."""
        self._record_type = record_type
        return self

    def into(self, table: str) -> Self:
        """Set the table. Defaults to the record type's name."""
        self._table = table
        return self

    def including(self, *fields: str) -> Self:
        """Insert only these fields."""
        self._check_field_filter()
        self._included = fields
        return self

    def excluding(self, *fields: str) -> Self:
        """Insert every field except these."""
        self._check_field_filter()
        self._excluded = fields
        return self

    def _check_field_filter(self) -> None:
        if self._included is not None or self._excluded is not None:
            msg = "including() or excluding() may be called only once"
            raise ImproperConfigurationError(msg)

    def with_name_mapper(self, name_mapper: NameMapper) -> Self:
        """Set the mapping from field names to column names. Defaults to ``NameMapper.AS_IS``."""
        self._name_mapper = name_mapper
        return self

    def with_config(self, config: StatementConfig) -> Self:
        self._config = config
        return self

    def returning(self, column: str) -> Self:
        """Retrieve the generated key through ``RETURNING column`` instead of ``lastrowid``."""
        self._returning = column
        return self

    @property
    def record_type(self) -> type:
        if self._record_type is None:
            msg = "No record type specified: call of() first"
            raise ImproperConfigurationError(msg)
        return self._record_type

    @property
    def table(self) -> str:
        return self._table or self.record_type.__name__

    def fields(self) -> "tuple[str, ...]":
        """The record fields that are inserted, in declaration order.

        Raises:
            ImproperConfigurationError: If a field filter names an unknown field or leaves nothing to insert.
        """
        names = get_field_names(self.record_type)
        requested = self._included if self._included is not None else self._excluded or ()
        unknown = [name for name in requested if name not in names]
        if unknown:
            msg = f"{self.record_type.__name__} has no field(s): {', '.join(unknown)}"
            raise ImproperConfigurationError(msg)
        if self._included is not None:
            names = tuple(name for name in names if name in self._included)
        elif self._excluded is not None:
            names = tuple(name for name in names if name not in self._excluded)
        if not names:
            msg = "No fields left to insert"
            raise ImproperConfigurationError(msg)
        return names

    def columns(self) -> "list[tuple[str, str]]":
        """``(field, column)`` pairs of the inserted fields."""
        return [(name, self._name_mapper(name)) for name in self.fields()]

    def build_sql(self) -> str:
        """Render the INSERT template with one named parameter per field."""
        quoter = self._config.quoter
        pairs = self.columns()
        columns = ", ".join(quoter.quote_identifier(column) for _, column in pairs)
        values = ", ".join(f":{field}" for field, _ in pairs)
        sql = f"INSERT INTO {quoter.quote_identifier(self.table)} ({columns}) VALUES ({values})"
        if self._returning is not None:
            sql += f" RETURNING {quoter.quote_identifier(self._returning)}"
        return sql

    def _parse(self, sql: str) -> "SQLInfo":
        if self._config.enable_caching:
            return get_template_cache().get(sql, self._config.parameter_style)
        return parse_template(sql, self._config.parameter_style)

    def prepare(self, connection: "ConnectionProtocol", retrieve_keys: bool = True) -> SQLInsert:
        """Create the insert statement on ``connection``."""
        return SQLInsert(
            connection,
            self._parse(self.build_sql()),
            self._config,
            retrieve_keys=retrieve_keys,
            returning=self._returning,
        )
