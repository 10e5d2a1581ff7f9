"""Named-parameter parsing and SQL normalization.

A template such as ``SELECT * FROM person WHERE age > :minAge`` is scanned once,
character by character. Named parameters are recognized only outside string
literals, quoted identifiers and comments; each occurrence is replaced with the
driver's positional placeholder and its 1-based position is recorded against the
parameter name.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Optional

from mypy_extensions import mypyc_attr

from sqlbind.exceptions import ParseError, UnknownParameterError
from sqlbind.utils.text import is_identifier_part, is_identifier_start

__all__ = ("NamedParameter", "ParameterStyle", "SQLInfo", "TemplateParser", "parse_template")

PARAMETER_MARKER = ":"


class ParameterStyle(str, Enum):
    """Driver-native positional placeholder styles."""

    QMARK = "qmark"
    NUMERIC = "numeric"
    FORMAT = "format"
    POSITIONAL_COLON = "positional_colon"

    def __str__(self) -> str:
        return self.value

    def placeholder(self, position: int) -> str:
        """Render the placeholder for a 1-based position."""
        if self is ParameterStyle.QMARK:
            return "?"
        if self is ParameterStyle.FORMAT:
            return "%s"
        if self is ParameterStyle.NUMERIC:
            return f"${position}"
        return f":{position}"

    def escape(self, text: str) -> str:
        """Escape literal SQL text so the driver does not mistake it for a placeholder."""
        if self is ParameterStyle.FORMAT:
            return text.replace("%", "%%")
        return text


@dataclass(frozen=True)
class NamedParameter:
    """A parameter name and every placeholder position it occupies."""

    name: str
    """Parameter name as written after the marker."""

    positions: "tuple[int, ...]"
    """Strictly increasing 1-based placeholder positions."""


@mypyc_attr(allow_interpreted_subclasses=False)
class SQLInfo:
    """Immutable result of parsing one template.

    Instances are created once per distinct template text and shared between
    threads and statements.
    """

    __slots__ = ("_parameters", "_placeholder_names", "_segments", "normalized_text", "original_text", "style")

    def __init__(
        self,
        original_text: str,
        segments: "Sequence[str]",
        placeholder_names: "Sequence[str]",
        style: ParameterStyle = ParameterStyle.QMARK,
    ) -> None:
        if len(segments) != len(placeholder_names) + 1:
            msg = "SQLInfo requires exactly one more text segment than placeholders"
            raise ValueError(msg)
        self.original_text = original_text
        self.style = style
        self._segments = tuple(segments)
        self._placeholder_names = tuple(placeholder_names)

        positions: dict[str, list[int]] = {}
        for position, name in enumerate(self._placeholder_names, start=1):
            positions.setdefault(name, []).append(position)
        self._parameters: Mapping[str, NamedParameter] = MappingProxyType(
            {name: NamedParameter(name, tuple(pos)) for name, pos in positions.items()}
        )

        parts = [self._segments[0]]
        for position, segment in enumerate(self._segments[1:], start=1):
            parts.append(style.placeholder(position))
            parts.append(segment)
        self.normalized_text = "".join(parts)

    @property
    def parameters(self) -> "Mapping[str, NamedParameter]":
        """Read-only mapping of parameter name to :class:`NamedParameter`, in order of first appearance."""
        return self._parameters

    @property
    def parameter_names(self) -> "tuple[str, ...]":
        return tuple(self._parameters)

    @property
    def placeholder_names(self) -> "tuple[str, ...]":
        """Parameter name for each placeholder, by position."""
        return self._placeholder_names

    @property
    def parameter_count(self) -> int:
        """Number of distinct parameter names."""
        return len(self._parameters)

    @property
    def placeholder_count(self) -> int:
        return len(self._placeholder_names)

    def has_parameter(self, name: str) -> bool:
        return name in self._parameters

    def get_parameter(self, name: str) -> NamedParameter:
        """Look up a parameter by name.

        Raises:
            UnknownParameterError: If the template does not contain the parameter.
        """
        try:
            return self._parameters[name]
        except KeyError:
            raise UnknownParameterError(name, self.original_text) from None

    def render(self, expressions: "Optional[Mapping[str, str]]" = None) -> "tuple[str, tuple[str, ...]]":
        """Produce driver SQL, splicing raw SQL expressions in place of some parameters.

        Placeholders of the remaining parameters are renumbered so that numbered
        styles stay contiguous.

        Args:
            expressions: Raw SQL text keyed by parameter name.

        Returns:
            The SQL text and the parameter name of each remaining placeholder, in order.
        """
        if not expressions:
            return self.normalized_text, self._placeholder_names
        parts = [self._segments[0]]
        names: list[str] = []
        for name, segment in zip(self._placeholder_names, self._segments[1:]):
            if name in expressions:
                parts.append(self.style.escape(expressions[name]))
            else:
                names.append(name)
                parts.append(self.style.placeholder(len(names)))
            parts.append(segment)
        return "".join(parts), tuple(names)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SQLInfo):
            return NotImplemented
        return self.original_text == other.original_text and self.style == other.style

    def __hash__(self) -> int:
        return hash((self.original_text, self.style))

    def __repr__(self) -> str:
        return f"SQLInfo({self.normalized_text!r}, parameters={list(self._parameters)!r})"


@mypyc_attr(allow_interpreted_subclasses=False)
class TemplateParser:
    """Single-pass scanner that extracts named parameters from SQL text."""

    __slots__ = ("style",)

    def __init__(self, style: ParameterStyle = ParameterStyle.QMARK) -> None:
        self.style = style

    def parse(self, text: str) -> SQLInfo:
        """Parse a template into an :class:`SQLInfo`.

        Args:
            text: Raw SQL text containing ``:name`` parameters.

        Raises:
            ParseError: If the text is blank, contains an unterminated literal,
                quoted identifier or block comment, a dangling marker, or two
                parameters without separating text.

        Returns:
            The parsed template.
        """
        if not text or text.isspace():
            msg = "SQL template must not be blank"
            raise ParseError(msg)

        segments: list[str] = []
        names: list[str] = []
        start = 0
        i = 0
        n = len(text)
        while i < n:
            char = text[i]
            if char in {"'", '"'}:
                i = self._skip_quoted(text, i)
            elif char == "-" and text.startswith("--", i):
                newline = text.find("\n", i + 2)
                i = n if newline == -1 else newline + 1
            elif char == "/" and text.startswith("/*", i):
                close = text.find("*/", i + 2)
                if close == -1:
                    msg = "Unterminated block comment"
                    raise ParseError(msg, text, i)
                i = close + 2
            elif char == PARAMETER_MARKER:
                if i + 1 < n and text[i + 1] == PARAMETER_MARKER:
                    i += 2
                    continue
                if i + 1 >= n or not is_identifier_start(text[i + 1]):
                    msg = "Dangling parameter marker"
                    raise ParseError(msg, text, i)
                end = i + 2
                while end < n and is_identifier_part(text[end]):
                    end += 1
                if end + 1 < n and text[end] == PARAMETER_MARKER and is_identifier_start(text[end + 1]):
                    msg = f"Adjacent parameters are not allowed: {text[i:end]} directly followed by another parameter"
                    raise ParseError(msg, text, end)
                segments.append(self.style.escape(text[start:i]))
                names.append(text[i + 1 : end])
                start = i = end
            else:
                i += 1
        segments.append(self.style.escape(text[start:]))
        return SQLInfo(text, segments, names, self.style)

    @staticmethod
    def _skip_quoted(text: str, opened_at: int) -> int:
        """Return the index just past the closing quote. Doubled quotes do not close."""
        quote = text[opened_at]
        i = opened_at + 1
        while True:
            close = text.find(quote, i)
            if close == -1:
                kind = "string literal" if quote == "'" else "quoted identifier"
                msg = f"Unterminated {kind}"
                raise ParseError(msg, text, opened_at)
            if close + 1 < len(text) and text[close + 1] == quote:
                i = close + 2
                continue
            return close + 1


def parse_template(text: str, style: ParameterStyle = ParameterStyle.QMARK) -> SQLInfo:
    """Parse ``text`` without going through the template cache."""
    return TemplateParser(style).parse(text)
