"""Identifier and name conversions used by the name mappers."""

import re
from functools import lru_cache

# Handles sequences like "HTTPRequest" -> "HTTP_Request" or "SSLError" -> "SSL_Error"
_SNAKE_CASE_RE_ACRONYM_SEQUENCE = re.compile(r"([A-Z\d]+)([A-Z][a-z])")
# Handles transitions like "camelCase" -> "camel_Case"
_SNAKE_CASE_RE_LOWER_UPPER_TRANSITION = re.compile(r"([a-z\d])([A-Z])")
_SNAKE_CASE_RE_REPLACE_SEP = re.compile(r"[-\s.]+")
_SNAKE_CASE_RE_CLEAN_MULTIPLE_UNDERSCORE = re.compile(r"__+")
_SNAKE_CASE_RE_LEADING_DIGIT_UNDERSCORE = re.compile(r"^([0-9])_+")
_RELAXED_RE_STRIP = re.compile(r"[_\-\s]+")

__all__ = (
    "camelize",
    "is_identifier_part",
    "is_identifier_start",
    "relax",
    "snake_case",
)


def is_identifier_start(char: str) -> bool:
    """Whether ``char`` may begin a parameter or variable name."""
    return char == "_" or char.isalpha()


def is_identifier_part(char: str) -> bool:
    """Whether ``char`` may continue a parameter or variable name."""
    return char == "_" or char.isalnum()


@lru_cache(maxsize=512)
def camelize(string: str) -> str:
    """Convert a string to camel case.

    Args:
        string (str): The string to convert.

    Returns:
        str: The converted string.
    """
    words = [word for word in string.split("_") if word]
    if not words:
        return string
    return words[0][0].lower() + words[0][1:] + "".join(word.capitalize() for word in words[1:])


@lru_cache(maxsize=512)
def snake_case(string: str) -> str:
    """Convert a string to snake_case.

    Handles CamelCase, PascalCase, strings with spaces, hyphens, or dots
    as separators, and ensures single underscores. Acronyms are kept
    together (e.g., "HTTPRequest" becomes "http_request").

    Args:
        string: The string to convert.

    Returns:
        The snake_case version of the string.
    """
    if not string:
        return ""
    s = string.strip()
    s = _SNAKE_CASE_RE_REPLACE_SEP.sub("_", s)
    s = _SNAKE_CASE_RE_ACRONYM_SEQUENCE.sub(r"\1_\2", s)
    s = _SNAKE_CASE_RE_LOWER_UPPER_TRANSITION.sub(r"\1_\2", s)
    s = re.sub(r"[^\w_]", "", s, flags=re.UNICODE)
    s = _SNAKE_CASE_RE_CLEAN_MULTIPLE_UNDERSCORE.sub("_", s)
    s = s.lower().strip("_")
    return _SNAKE_CASE_RE_LEADING_DIGIT_UNDERSCORE.sub(r"\1", s)


@lru_cache(maxsize=1024)
def relax(string: str) -> str:
    """Fold a name to its case- and separator-insensitive form.

    ``first_name``, ``FirstName``, ``first-name`` and ``FIRST NAME`` all fold to ``firstname``.
    """
    return _RELAXED_RE_STRIP.sub("", string).lower()
