from typing import TYPE_CHECKING, Any, Final, Optional

from mypy_extensions import mypyc_attr

from sqlbind.core.binding import DEFAULT_BIND_INFO, BindInfo, Quoter, TypeCoercionMap
from sqlbind.core.mapping import NameMapper
from sqlbind.core.parameters import ParameterStyle

if TYPE_CHECKING:
    from sqlglot.dialects.dialect import DialectType

    from sqlbind.core.mapping import ColumnReaders

__all__ = ("StatementConfig",)

STATEMENT_CONFIG_SLOTS: Final = (
    "bind_info",
    "custom_readers",
    "dialect",
    "enable_caching",
    "name_mapper",
    "parameter_style",
    "strict_mapping",
    "type_coercion_map",
)


@mypyc_attr(allow_interpreted_subclasses=False)
class StatementConfig:
    """Settings shared by every statement created from one template.

    Instances are treated as immutable; use :meth:`replace` to derive a
    modified copy.
    """

    __slots__ = STATEMENT_CONFIG_SLOTS

    def __init__(
        self,
        parameter_style: ParameterStyle = ParameterStyle.QMARK,
        dialect: "DialectType" = None,
        bind_info: "Optional[BindInfo]" = None,
        name_mapper: NameMapper = NameMapper.RELAXED,
        strict_mapping: bool = False,
        type_coercion_map: "Optional[TypeCoercionMap]" = None,
        enable_caching: bool = True,
        custom_readers: "Optional[ColumnReaders]" = None,
    ) -> None:
        """Initialize a statement configuration.

        Args:
            parameter_style: Placeholder style written into the driver SQL.
            dialect: sqlglot dialect used to quote literals and identifiers.
            bind_info: Binding policy (type overrides, enum policy, transformers).
            name_mapper: Matches result columns to fields of result types.
            strict_mapping: Fail when a result column matches no field, or when columns collide,
                instead of skipping it.
            type_coercion_map: Final driver-specific conversions keyed by Python type.
            enable_caching: Parse templates through the process-wide template cache.
            custom_readers: Column readers keyed by ``(schema_type, field_name)`` or by
                declared field type, used instead of the built-in conversion when
                materializing results. A reader receives the raw column value and
                raises ``TypeError`` or ``ValueError`` when it cannot convert it.
        """
        self.parameter_style = parameter_style
        self.dialect = dialect
        self.bind_info = bind_info if bind_info is not None else DEFAULT_BIND_INFO
        self.name_mapper = name_mapper
        self.strict_mapping = strict_mapping
        self.type_coercion_map = dict(type_coercion_map) if type_coercion_map else {}
        self.enable_caching = enable_caching
        self.custom_readers = dict(custom_readers) if custom_readers else {}

    @property
    def quoter(self) -> Quoter:
        return Quoter(self.dialect)

    def replace(self, **kwargs: Any) -> "StatementConfig":
        """Return a copy with the given attributes changed.

        Args:
            **kwargs: Attributes to update

        Raises:
            TypeError: If a keyword is not a configuration attribute.

        Returns:
            New StatementConfig instance with updated attributes
        """
        for key in kwargs:
            if key not in STATEMENT_CONFIG_SLOTS:
                msg = f"{key!r} is not a field in {type(self).__name__}"
                raise TypeError(msg)
        current_kwargs = {slot: getattr(self, slot) for slot in STATEMENT_CONFIG_SLOTS}
        current_kwargs.update(kwargs)
        return type(self)(**current_kwargs)

    def __repr__(self) -> str:
        field_strs = [f"{slot}={getattr(self, slot)!r}" for slot in STATEMENT_CONFIG_SLOTS]
        return f"{self.__class__.__name__}({', '.join(field_strs)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return False
        return all(getattr(self, slot) == getattr(other, slot) for slot in STATEMENT_CONFIG_SLOTS)

    def __hash__(self) -> int:
        return hash((self.parameter_style, str(self.dialect), self.name_mapper, self.strict_mapping, self.enable_caching))


DEFAULT_STATEMENT_CONFIG: Final = StatementConfig()
