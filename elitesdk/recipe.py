"""RTSI recipes: variable types, data package decoding and input packing."""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Iterable

from elitesdk.datatypes import EliteError, ErrorCode
from elitesdk.endian import pack, pack_array, split_string, unpack, unpack_array

_RECIPE_ID_INDEX = 3
_PAYLOAD_START = 4


class RtsiType(Enum):
    """Variable types an RTSI recipe can carry, as (struct code, element count)."""

    BOOL = ("?", 1)
    UINT8 = ("B", 1)
    UINT16 = ("H", 1)
    UINT32 = ("I", 1)
    UINT64 = ("Q", 1)
    INT32 = ("i", 1)
    DOUBLE = ("d", 1)
    VECTOR3D = ("d", 3)
    VECTOR6D = ("d", 6)
    VECTOR6INT32 = ("i", 6)
    VECTOR6UINT32 = ("I", 6)

    def __init__(self, type_code: str, count: int) -> None:
        self.type_code = type_code
        self.count = count

    @property
    def is_vector(self) -> bool:
        return self.count > 1

    def default(self) -> Any:
        """Return the zero value of this type."""
        if self.type_code == "?":
            zero: Any = False
        elif self.type_code == "d":
            zero = 0.0
        else:
            zero = 0
        return [zero] * self.count if self.is_vector else zero

    def _scalar(self, value: Any) -> Any:
        if self.type_code == "?":
            return bool(value)
        if self.type_code == "d":
            return float(value)
        return int(value)

    def coerce(self, value: Any) -> Any:
        """Convert value to this type; raise ValueError or TypeError if it does not fit."""
        if self.is_vector:
            items = list(value)
            if len(items) != self.count:
                raise ValueError(f"{self.name} needs {self.count} elements, got {len(items)}")
            result: Any = [self._scalar(item) for item in items]
        else:
            result = self._scalar(value)
        self.encode(result)
        return result

    def encode(self, value: Any) -> bytes:
        """Pack a value of this type in big-endian order."""
        if self.is_vector:
            return pack_array(self.type_code, value)
        return pack(self.type_code, value)

    def decode(self, data: bytes, offset: int) -> tuple[Any, int]:
        """Read a value of this type; return it with the offset just past it."""
        if self.is_vector:
            return unpack_array(self.type_code, data, offset, self.count)
        return unpack(self.type_code, data, offset)


class RtsiRecipe:
    """A named list of RTSI variables with their types and latest values."""

    def __init__(self, names: Iterable[str]) -> None:
        self._names = list(names)
        self._lock = threading.Lock()
        self._recipe_id: int | None = None
        self._types: dict[str, RtsiType] = {}
        self._values: dict[str, Any] = {}

    @property
    def names(self) -> list[str]:
        return list(self._names)

    @property
    def recipe_id(self) -> int | None:
        return self._recipe_id

    @property
    def types(self) -> dict[str, RtsiType]:
        with self._lock:
            return dict(self._types)

    def parse_type_package(self, package: bytes) -> None:
        """Read the recipe id and variable types from a setup reply.

        The package is one whole message: a 3-byte header, the recipe id,
        then the comma separated type names.
        """
        package = bytes(package)
        if len(package) < _PAYLOAD_START:
            raise EliteError(ErrorCode.RTSI_RECIPE_PARSER_FAIL, "setup package too short")
        type_names = split_string(package[_PAYLOAD_START:].decode("ascii", errors="replace"), ",")
        if len(type_names) != len(self._names):
            raise EliteError(ErrorCode.RTSI_RECIPE_PARSER_FAIL, "not match recipe")
        types: dict[str, RtsiType] = {}
        for name, type_name in zip(self._names, type_names):
            try:
                types[name] = RtsiType[type_name]
            except KeyError:
                raise EliteError(
                    ErrorCode.RTSI_UNKNOWN_VARIABLE_TYPE,
                    f'variable "{name}" error type: {type_name}',
                ) from None
        with self._lock:
            self._recipe_id = package[_RECIPE_ID_INDEX]
            self._types = types
            self._values = {name: kind.default() for name, kind in types.items()}

    def parse_data_package(self, package: bytes) -> bool:
        """Update values from a data message; return False if it is for another recipe."""
        package = bytes(package)
        with self._lock:
            if self._recipe_id is None:
                raise EliteError(ErrorCode.RTSI_RECIPE_PARSER_FAIL, "recipe types not set")
            if len(package) < _PAYLOAD_START:
                raise EliteError(ErrorCode.RTSI_RECIPE_PARSER_FAIL, "data package too short")
            if package[_RECIPE_ID_INDEX] != self._recipe_id:
                return False
            offset = _PAYLOAD_START
            updated: dict[str, Any] = {}
            for name in self._names:
                try:
                    updated[name], offset = self._types[name].decode(package, offset)
                except ValueError as exc:
                    raise EliteError(ErrorCode.RTSI_RECIPE_PARSER_FAIL, str(exc)) from exc
            self._values.update(updated)
        return True

    def pack_to_bytes(self) -> bytes:
        """Return the recipe id followed by every value packed in recipe order."""
        with self._lock:
            if self._recipe_id is None:
                raise EliteError(ErrorCode.RTSI_RECIPE_PARSER_FAIL, "bad recipe")
            chunks = [bytes([self._recipe_id])]
            for name in self._names:
                if name not in self._values:
                    raise EliteError(ErrorCode.RTSI_RECIPE_PARSER_FAIL, "bad recipe")
                chunks.append(self._types[name].encode(self._values[name]))
        return b"".join(chunks)

    def get_value(self, name: str) -> Any:
        """Return the current value of a variable; raise KeyError if it is not in the recipe."""
        with self._lock:
            if name not in self._values:
                raise KeyError(f"no variable {name!r} in recipe")
            value = self._values[name]
        return list(value) if isinstance(value, list) else value

    def set_value(self, name: str, value: Any) -> bool:
        """Set a variable; return False if it is unknown or the value does not fit its type."""
        with self._lock:
            kind = self._types.get(name)
            if kind is None:
                return False
            try:
                self._values[name] = kind.coerce(value)
            except (TypeError, ValueError):
                return False
        return True