"""Preset configuration for the standard library :mod:`sqlite3` driver."""

import datetime
from decimal import Decimal

from sqlbind.config import StatementConfig
from sqlbind.core.parameters import ParameterStyle
from sqlbind.utils.serializers import to_json

__all__ = ("sqlite_statement_config",)

sqlite_statement_config = StatementConfig(
    parameter_style=ParameterStyle.QMARK,
    dialect="sqlite",
    type_coercion_map={
        bool: int,
        datetime.datetime: lambda v: v.isoformat(),
        datetime.date: lambda v: v.isoformat(),
        datetime.time: lambda v: v.isoformat(),
        Decimal: str,
        dict: to_json,
        list: to_json,
        tuple: lambda v: to_json(list(v)),
    },
)
