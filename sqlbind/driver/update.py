"""UPDATE, DELETE and DDL statements."""

from sqlbind.driver._statement import SQLStatement

__all__ = ("SQLUpdate",)


class SQLUpdate(SQLStatement):
    """A statement executed for its side effects."""

    __slots__ = ()

    def execute(self) -> int:
        """Execute the statement.

        Returns:
            The number of affected rows as reported by the driver (``-1`` when unknown).
        """
        return self._execute().rowcount
