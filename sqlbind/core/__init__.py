"""Parsing, binding, caching and materialization.

- parameters.py: named-parameter scanner producing immutable ``SQLInfo``
- cache.py: single-flight template and plan caches
- binding.py: binding policy, value resolution and quoting
- fields.py: cached field tables for record types
- conversion.py: column value to field type conversions
- mapping.py: name mappers and materialization plans
- result.py: row cursors and extractors
"""

from sqlbind.core.binding import BindInfo, ParameterBinder, Quoter, SQLExpression, SQLType, Transformer, resolve_value
from sqlbind.core.cache import CacheKey, CacheStats, PlanCache, SingleFlightCache, TemplateCache, get_plan_cache, get_template_cache
from sqlbind.core.conversion import get_converter, to_value_type
from sqlbind.core.fields import FieldInfo, create_instance, get_fields, read_fields, write_field
from sqlbind.core.mapping import ColumnReaders, MaterializationPlan, NameMapper, build_plan, get_plan
from sqlbind.core.parameters import NamedParameter, ParameterStyle, SQLInfo, TemplateParser, parse_template
from sqlbind.core.result import MapExtractor, ResultCursor, SchemaExtractor, materialize

__all__ = (
    "BindInfo",
    "CacheKey",
    "CacheStats",
    "ColumnReaders",
    "FieldInfo",
    "MapExtractor",
    "MaterializationPlan",
    "NameMapper",
    "NamedParameter",
    "ParameterBinder",
    "ParameterStyle",
    "PlanCache",
    "Quoter",
    "ResultCursor",
    "SQLExpression",
    "SQLInfo",
    "SQLType",
    "SchemaExtractor",
    "SingleFlightCache",
    "TemplateCache",
    "TemplateParser",
    "Transformer",
    "build_plan",
    "create_instance",
    "get_converter",
    "get_fields",
    "get_plan",
    "get_plan_cache",
    "get_template_cache",
    "materialize",
    "parse_template",
    "read_fields",
    "resolve_value",
    "to_value_type",
    "write_field",
)
