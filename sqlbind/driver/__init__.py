from sqlbind.driver._statement import SQLStatement, StatementState
from sqlbind.driver.batch import BatchInsertBuilder, SQLBatchInsert
from sqlbind.driver.insert import InsertBuilder, SQLInsert
from sqlbind.driver.query import SQLQuery
from sqlbind.driver.session import SQL, SQLSession, SQLTemplate
from sqlbind.driver.update import SQLUpdate

__all__ = (
    "SQL",
    "BatchInsertBuilder",
    "InsertBuilder",
    "SQLBatchInsert",
    "SQLInsert",
    "SQLQuery",
    "SQLSession",
    "SQLStatement",
    "SQLTemplate",
    "SQLUpdate",
    "StatementState",
)
