"""String conversion helpers and table/column naming strategies."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Callable

_RECORD_SEPARATOR = "\x1e"
_SIGNED = re.compile(r"[+-]?[0-9]+")
_UNSIGNED = re.compile(r"[0-9]+")
_BITS = (8, 16, 32, 64)
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}

DEFAULT_NAME_STRATEGY = "snakeString"
SNAKE_ACRONYM_NAME_STRATEGY = "snakeStringWithAcronym"


def _check_bits(bits: int) -> None:
    if bits not in _BITS:
        raise ValueError(f"unsupported bit size {bits}")


class StrTo:
    """A string that converts itself to other types; it may be cleared to an absent state."""

    __slots__ = ("_value",)

    def __init__(self, value: str = "") -> None:
        self._value = value

    def set(self, value: str) -> None:
        if value:
            self._value = value
        else:
            self.clear()

    def clear(self) -> None:
        self._value = _RECORD_SEPARATOR

    def exists(self) -> bool:
        return self._value != _RECORD_SEPARATOR

    def __str__(self) -> str:
        return self._value if self.exists() else ""

    def __repr__(self) -> str:
        return f"StrTo({str(self)!r})" if self.exists() else "StrTo(<cleared>)"

    def to_bool(self) -> bool:
        text = str(self)
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"invalid boolean syntax: {text!r}")

    def to_float(self) -> float:
        text = str(self)
        if text != text.strip() or "_" in text:
            raise ValueError(f"invalid float syntax: {text!r}")
        try:
            return float(text)
        except ValueError:
            body = text.lstrip("+-")
            if body[:2].lower() == "0x":
                return float.fromhex(text)
            raise

    def to_int(self, bits: int = 32) -> int:
        """Parse a signed decimal integer of the given bit size.

        A 64-bit value beyond range wraps to two's complement.
        """
        _check_bits(bits)
        text = str(self)
        if not _SIGNED.fullmatch(text):
            raise ValueError(f"invalid integer syntax: {text!r}")
        value = int(text)
        low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        if low <= value <= high:
            return value
        if bits == 64:
            return _wrap_int64(value)
        raise ValueError(f"value out of range for {bits} bits: {text!r}")

    def to_uint(self, bits: int = 32) -> int:
        """Parse an unsigned decimal integer; 64-bit values beyond range keep their low bits."""
        _check_bits(bits)
        text = str(self)
        mask = (1 << bits) - 1
        if _UNSIGNED.fullmatch(text):
            value = int(text)
            if value <= mask:
                return value
            if bits == 64:
                return value & mask
            raise ValueError(f"value out of range for {bits} bits: {text!r}")
        if bits == 64 and _SIGNED.fullmatch(text):
            return abs(int(text)) & mask
        raise ValueError(f"invalid unsigned integer syntax: {text!r}")


def _wrap_int64(value: int) -> int:
    value &= (1 << 64) - 1
    return value - (1 << 64) if value >= (1 << 63) else value


def _format_float(value: float) -> str:
    if value != value:
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def to_str(value: Any, *args: int) -> str:
    """Render a value as text; numbers are always decimal, floats in shortest fixed-point form.

    Extra arguments are accepted for compatibility and do not change the result.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def to_int64(value: Any) -> int:
    """Return an integer as a signed 64-bit value, wrapping larger ones."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"to_int64 needs an integer, not `{type(value).__name__}`")
    return _wrap_int64(int(value))


def snake_string_with_acronym(s: str) -> str:
    """Snake-case a name, keeping runs of capitals together: PicURL -> pic_url."""
    out: list[str] = []
    count = len(s)
    for i, ch in enumerate(s):
        before = i > 0 and "a" <= s[i - 1] <= "z"
        after = i + 1 < count and "a" <= s[i + 1] <= "z"
        if i > 0 and "A" <= ch <= "Z" and (before or after):
            out.append("_")
        out.append(ch)
    return "".join(out).lower()


def snake_string(s: str) -> str:
    """Snake-case a name: XxYy -> xx_yy, XxYY -> xx_y_y."""
    out: list[str] = []
    seen = False
    for i, ch in enumerate(s):
        if i > 0 and "A" <= ch <= "Z" and seen:
            out.append("_")
        if ch != "_":
            seen = True
        out.append(ch)
    return "".join(out).lower()


def camel_string(s: str) -> str:
    """Camel-case a snake name: xx_yy -> XxYy."""
    out: list[str] = []
    capitalise = True
    for ch in s:
        if ch == "_":
            capitalise = True
            continue
        if capitalise:
            if "a" <= ch <= "z":
                ch = ch.upper()
            capitalise = False
        out.append(ch)
    return "".join(out)


_STRATEGIES: dict[str, Callable[[str], str]] = {
    DEFAULT_NAME_STRATEGY: snake_string,
    SNAKE_ACRONYM_NAME_STRATEGY: snake_string_with_acronym,
}
_state: dict[str, str] = {"strategy": DEFAULT_NAME_STRATEGY}


def set_name_strategy(strategy: str) -> Callable[[str], str]:
    """Select the naming strategy by name and return the converter it resolves to."""
    _state["strategy"] = strategy
    return _STRATEGIES.get(strategy, snake_string)


def name_strategy() -> str:
    return _state["strategy"]


def convert_name(s: str) -> str:
    """Apply the current naming strategy, falling back to plain snake case."""
    return _STRATEGIES.get(_state["strategy"], snake_string)(s)