"""Controller and SDK version numbers."""

from __future__ import annotations

from dataclasses import dataclass, fields

_UINT32_MAX = 0xFFFFFFFF


@dataclass(order=True)
class VersionInfo:
    """A version as major.minor.bugfix.build, ordered field by field."""

    major: int = 0
    minor: int = 0
    bugfix: int = 0
    build: int = 0

    def __post_init__(self) -> None:
        for field in fields(self):
            value = getattr(self, field.name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{field.name} must be an int")
            if not 0 <= value <= _UINT32_MAX:
                raise ValueError(f"{field.name} out of range: {value}")

    @classmethod
    def from_string(cls, text: str) -> "VersionInfo":
        """Parse "major.minor.bugfix.build"; missing trailing parts are 0."""
        parts = text.strip().split(".")
        if len(parts) > 4:
            raise ValueError(f"too many version parts: {text!r}")
        if not all(part.isascii() and part.isdigit() for part in parts):
            raise ValueError(f"invalid version string: {text!r}")
        return cls(*(int(part) for part in parts))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.bugfix}.{self.build}"