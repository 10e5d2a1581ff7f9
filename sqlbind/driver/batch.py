"""Chunked multi-row INSERT."""

import contextlib
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any, Optional

from typing_extensions import Self

from sqlbind.config import DEFAULT_STATEMENT_CONFIG, StatementConfig
from sqlbind.core.binding import SQLExpression, resolve_value
from sqlbind.core.fields import read_fields
from sqlbind.core.mapping import NameMapper
from sqlbind.driver.insert import InsertBuilder, assign_key
from sqlbind.exceptions import (
    BatchInsertError,
    ImproperConfigurationError,
    MissingParameterError,
    SQLBindError,
    handle_database_exceptions,
)
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlbind.core.binding import Transformer
    from sqlbind.protocols import ConnectionProtocol, CursorProtocol

__all__ = ("BatchInsertBuilder", "SQLBatchInsert", "iter_chunks")

logger = get_logger("driver.batch")


def iter_chunks(records: "Sequence[Any]", chunk_size: "Optional[int]") -> "Iterator[Sequence[Any]]":
    """Split ``records`` into consecutive chunks of at most ``chunk_size``; None means one chunk."""
    if not records:
        return
    size = len(records) if chunk_size is None else chunk_size
    for start in range(0, len(records), size):
        yield records[start : start + size]


class SQLBatchInsert:
    """Inserts records in chunks, one multi-row ``INSERT ... VALUES (...), (...)`` per chunk.

    Values are bound as parameters, except transformer results that are
    :class:`~sqlbind.core.binding.SQLExpression` objects, which are written into
    the SQL as is. When ``commit_per_chunk`` is set the connection is committed after
    every chunk, so a failure in chunk *k* leaves chunks ``1..k-1`` committed.
    """

    __slots__ = ("chunk_size", "columns", "commit_per_chunk", "config", "connection", "name_mapper", "table")

    def __init__(
        self,
        connection: "ConnectionProtocol",
        table: str,
        columns: "Sequence[tuple[str, str]]",
        config: "Optional[StatementConfig]" = None,
        chunk_size: "Optional[int]" = None,
        commit_per_chunk: bool = True,
        name_mapper: NameMapper = NameMapper.AS_IS,
    ) -> None:
        self.connection = connection
        self.table = table
        self.columns = tuple(columns)
        self.config = config or DEFAULT_STATEMENT_CONFIG
        self.chunk_size = chunk_size
        self.commit_per_chunk = commit_per_chunk
        self.name_mapper = name_mapper

    def build_chunk(self, records: "Sequence[Any]", key_column: "Optional[str]" = None) -> "tuple[str, list[Any]]":
        """Render the SQL and parameters that insert ``records`` in one statement."""
        config = self.config
        quoter = config.quoter
        style = config.parameter_style
        field_names = tuple(field for field, _ in self.columns)
        head = (
            f"INSERT INTO {quoter.quote_identifier(self.table)} "
            f"({', '.join(quoter.quote_identifier(column) for _, column in self.columns)}) VALUES "
        )
        parameters: list[Any] = []
        rows: list[str] = []
        for record in records:
            values = read_fields(record, field_names)
            if len(values) < len(field_names):
                raise MissingParameterError(tuple(field for field in field_names if field not in values), head)
            items: list[str] = []
            for field in field_names:
                value = resolve_value(
                    values[field],
                    field,
                    config.bind_info,
                    record=record,
                    quoter=quoter,
                    coercion_map=config.type_coercion_map,
                    sql=head,
                )
                if isinstance(value, SQLExpression):
                    items.append(style.escape(value.sql))
                else:
                    parameters.append(value)
                    items.append(style.placeholder(len(parameters)))
            rows.append(f"({', '.join(items)})")
        sql = head + ", ".join(rows)
        if key_column is not None:
            sql += f" RETURNING {quoter.quote_identifier(key_column)}"
        return sql, parameters

    def _run(self, records: "Sequence[Any]", key_column: "Optional[str]") -> "tuple[int, list[Any]]":
        total = 0
        keys: list[Any] = []
        if not records:
            return total, keys
        with handle_database_exceptions():
            cursor: CursorProtocol = self.connection.cursor()
        try:
            for number, chunk in enumerate(iter_chunks(records, self.chunk_size), start=1):
                sql = None
                try:
                    sql, parameters = self.build_chunk(chunk, key_column)
                    cursor.execute(sql, parameters)
                    if key_column is not None:
                        keys.extend(row[0] for row in cursor.fetchall())
                    if self.commit_per_chunk:
                        self.connection.commit()
                except SQLBindError as exc:
                    msg = f"Batch insert failed: {exc.detail}"
                    raise BatchInsertError(msg, number, total) from exc
                except Exception as exc:
                    msg = f"Batch insert failed: {exc}"
                    raise BatchInsertError(msg, number, total, sql) from exc
                total += len(chunk)
                logger.debug("Inserted chunk %d (%d rows, %d total) into %s", number, len(chunk), total, self.table)
        finally:
            with contextlib.suppress(Exception):
                cursor.close()
        return total, keys

    def insert_batch(self, records: "Sequence[Any]") -> int:
        """Insert all records.

        Returns:
            The number of inserted rows.
        """
        total, _ = self._run(records, None)
        return total

    def insert_batch_and_get_keys(self, records: "Sequence[Any]", key_column: str) -> "list[Any]":
        """Insert all records and return the generated keys, in record order."""
        _, keys = self._run(records, key_column)
        return keys

    def insert_batch_and_set_keys(
        self, records: "Sequence[Any]", key_field: str, key_column: "Optional[str]" = None
    ) -> "list[Any]":
        """Insert all records and write each generated key onto its record.

        Args:
            records: Mutable records or mappings.
            key_field: Field receiving the key.
            key_column: Key column; defaults to the column name of ``key_field``
                under :attr:`name_mapper`.

        Returns:
            The generated keys.
        """
        keys = self.insert_batch_and_get_keys(records, key_column or self.name_mapper(key_field))
        for record, key in zip(records, keys):
            assign_key(record, key_field, key)
        return keys


class BatchInsertBuilder(InsertBuilder):
    """Configures a :class:`SQLBatchInsert` for a record type."""

    __slots__ = ("_chunk_size", "_commit_per_chunk", "_transformers")

    def __init__(self, record_type: "Optional[type]" = None) -> None:
        super().__init__(record_type)
        self._chunk_size: Optional[int] = None
        self._commit_per_chunk = True
        self._transformers: dict[str, Transformer] = {}

    def with_chunk_size(self, chunk_size: int) -> Self:
        """Insert at most ``chunk_size`` rows per statement. By default all rows go in one statement."""
        if chunk_size <= 0:
            msg = f"chunk_size must be greater than zero, got {chunk_size}"
            raise ImproperConfigurationError(msg)
        self._chunk_size = chunk_size
        return self

    def with_commit_per_chunk(self, commit_per_chunk: bool) -> Self:
        """Commit the connection after every chunk (the default)."""
        self._commit_per_chunk = commit_per_chunk
        return self

    def with_transformer(self, field: str, transformer: "Transformer") -> Self:
        """Transform the value of ``field`` before it is bound."""
        self._transformers[field] = transformer
        return self

    def prepare(self, connection: "ConnectionProtocol") -> SQLBatchInsert:  # type: ignore[override]
        """Create the batch insert on ``connection``."""
        config = self._config
        if self._transformers:
            bind_info = config.bind_info
            for field, transformer in self._transformers.items():
                bind_info = bind_info.with_transformer(field, transformer)
            config = config.replace(bind_info=bind_info)
        return SQLBatchInsert(
            connection,
            self.table,
            self.columns(),
            config,
            chunk_size=self._chunk_size,
            commit_per_chunk=self._commit_per_chunk,
            name_mapper=self._name_mapper,
        )
