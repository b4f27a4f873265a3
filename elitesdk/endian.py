"""Big-endian packing of fundamental values and string splitting."""

from __future__ import annotations

import struct
from functools import lru_cache
from typing import Any, Iterable

_TYPE_CODES = frozenset("?bBhHiIqQfd")


def split_string(text: str, delimiter: str) -> list[str]:
    """Split text at every occurrence of delimiter."""
    if not delimiter:
        raise ValueError("delimiter must not be empty")
    return text.split(delimiter)


@lru_cache(maxsize=None)
def _codec(type_code: str, count: int = 1) -> struct.Struct:
    if type_code not in _TYPE_CODES or len(type_code) != 1:
        raise ValueError(f"unsupported type code: {type_code!r}")
    if count < 0:
        raise ValueError("count must not be negative")
    return struct.Struct(f">{count}{type_code}")


def pack(type_code: str, value: Any) -> bytes:
    """Pack one value of the given struct type code in big-endian order."""
    try:
        return _codec(type_code).pack(value)
    except struct.error as exc:
        raise ValueError(str(exc)) from exc


def pack_array(type_code: str, values: Iterable[Any]) -> bytes:
    """Pack a sequence of values of one type in big-endian order."""
    items = list(values)
    try:
        return _codec(type_code, len(items)).pack(*items)
    except struct.error as exc:
        raise ValueError(str(exc)) from exc


def _read(codec: struct.Struct, data: bytes, offset: int) -> tuple[tuple, int]:
    end = offset + codec.size
    if offset < 0 or end > len(data):
        raise ValueError(f"need {codec.size} bytes at offset {offset}, have {len(data)}")
    return codec.unpack_from(data, offset), end


def unpack(type_code: str, data: bytes, offset: int = 0) -> tuple[Any, int]:
    """Read one big-endian value; return it with the offset just past it."""
    (value,), end = _read(_codec(type_code), data, offset)
    return value, end


def unpack_array(type_code: str, data: bytes, offset: int, count: int) -> tuple[list, int]:
    """Read count big-endian values; return them with the offset just past them."""
    values, end = _read(_codec(type_code, count), data, offset)
    return list(values), end