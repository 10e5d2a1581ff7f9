"""JSON encoding and decoding backed by msgspec."""

import datetime
import enum
from decimal import Decimal
from typing import Any, Literal, overload
from uuid import UUID

import msgspec

__all__ = ("decode_json", "encode_json")


def _type_to_string(value: Any) -> Any:
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    msg = f"Unsupported type: {type(value)!r}"
    raise TypeError(msg)


_encoder = msgspec.json.Encoder(enc_hook=_type_to_string)
_decoder = msgspec.json.Decoder()


@overload
def encode_json(data: Any, *, as_bytes: Literal[False] = ...) -> str: ...


@overload
def encode_json(data: Any, *, as_bytes: Literal[True]) -> bytes: ...


def encode_json(data: Any, *, as_bytes: bool = False) -> "str | bytes":
    encoded = _encoder.encode(data)
    if as_bytes:
        return encoded
    return encoded.decode("utf-8")


def decode_json(data: "str | bytes", *, decode_bytes: bool = True) -> Any:
    if isinstance(data, bytes) and not decode_bytes:
        return data
    return _decoder.decode(data)
