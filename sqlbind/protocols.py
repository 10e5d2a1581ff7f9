"""Runtime-checkable protocols for the DB-API objects sqlbind drives.

Any PEP 249 connection satisfies :class:`ConnectionProtocol`; the bundled
adapters are only tested against :mod:`sqlite3`.
"""

from collections.abc import Sequence
from typing import Any, Optional, Protocol, runtime_checkable

__all__ = ("ConnectionProtocol", "CursorProtocol")


@runtime_checkable
class CursorProtocol(Protocol):
    """The subset of a DB-API cursor used by statements and extractors."""

    @property
    def description(self) -> Optional[Sequence[Sequence[Any]]]: ...

    @property
    def rowcount(self) -> int: ...

    @property
    def lastrowid(self) -> Any: ...

    def execute(self, operation: str, parameters: Any = ..., /) -> Any: ...

    def fetchone(self) -> Any: ...

    def fetchmany(self, size: int = ..., /) -> Sequence[Any]: ...

    def fetchall(self) -> Sequence[Any]: ...

    def close(self) -> Any: ...


@runtime_checkable
class ConnectionProtocol(Protocol):
    """The subset of a DB-API connection sqlbind needs."""

    def cursor(self) -> Any: ...

    def commit(self) -> Any: ...

    def rollback(self) -> Any: ...
