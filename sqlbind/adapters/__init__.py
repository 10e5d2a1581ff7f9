from sqlbind.adapters.sqlite import sqlite_statement_config

__all__ = ("sqlite_statement_config",)
