"""JSON serialization utilities for sqlbind.

Re-exports the msgspec-backed encoders from the core serialization module.
"""

from typing import Any, Literal, overload

from sqlbind._serialization import decode_json, encode_json

__all__ = ("from_json", "to_json")


@overload
def to_json(data: Any, *, as_bytes: Literal[False] = ...) -> str: ...


@overload
def to_json(data: Any, *, as_bytes: Literal[True]) -> bytes: ...


def to_json(data: Any, *, as_bytes: bool = False) -> "str | bytes":
    """Encode data to JSON string or bytes.

    Args:
        data: Data to encode.
        as_bytes: Whether to return bytes instead of string.

    Returns:
        JSON string or bytes representation based on as_bytes parameter.
    """
    if as_bytes:
        return encode_json(data, as_bytes=True)
    return encode_json(data, as_bytes=False)


@overload
def from_json(data: str) -> Any: ...


@overload
def from_json(data: bytes, *, decode_bytes: bool = ...) -> Any: ...


def from_json(data: "str | bytes", *, decode_bytes: bool = True) -> Any:
    """Decode JSON string or bytes to Python object.

    Args:
        data: JSON string or bytes to decode.
        decode_bytes: Whether to decode bytes input (vs passing through).

    Returns:
        Decoded Python object.
    """
    if isinstance(data, bytes):
        return decode_json(data, decode_bytes=decode_bytes)
    return decode_json(data)
