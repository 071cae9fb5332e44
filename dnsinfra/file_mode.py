"""Unix file permission modes written in octal notation."""

from __future__ import annotations

import re

_OCTAL_DIGITS = re.compile(r"\+?[0-7]+")
_U32_MAX = 0xFFFF_FFFF


class FileMode:
    """An unsigned 32-bit file mode, parsed from and shown in octal."""

    __slots__ = ("_mode",)

    def __init__(self, mode: int) -> None:
        mode = int(mode)
        if not 0 <= mode <= _U32_MAX:
            raise ValueError(f"file mode out of range: {mode}")
        self._mode = mode

    @classmethod
    def parse(cls, text: str) -> FileMode:
        """Parse an octal mode such as ``644``, ``0644``, ``o644`` or ``0o644``."""
        digits = text.strip()
        if digits.startswith("0o"):
            digits = digits[2:]
        if digits.startswith("o"):
            digits = digits[1:]
        if not _OCTAL_DIGITS.fullmatch(digits):
            raise ValueError(f"invalid octal file mode: {text!r}")
        value = int(digits, 8)
        if value > _U32_MAX:
            raise ValueError(f"file mode out of range: {text!r}")
        return cls(value)

    def __int__(self) -> int:
        return self._mode

    __index__ = __int__

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FileMode):
            return self._mode == other._mode
        if isinstance(other, int) and not isinstance(other, bool):
            return self._mode == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._mode)

    def __repr__(self) -> str:
        return f"0o{self._mode:o}"