"""Wrapping 32-bit sequence numbers."""

from __future__ import annotations

from functools import total_ordering

_MODULUS = 1 << 32
_MASK = _MODULUS - 1
_SIGN_BIT = 1 << 31
_ONE_QUARTER = _MASK // 4
_THREE_QUARTERS = _ONE_QUARTER * 3


def _offset(amount: int) -> int:
    """Validate an offset that may be any 32-bit signed or unsigned value."""
    if not -_SIGN_BIT <= amount <= _MASK:
        raise OverflowError(f"sequence offset {amount} does not fit into 32 bits")
    return amount


@total_ordering
class Seq:
    """A 32-bit sequence number that wraps around.

    The distance between the lowest and highest sequence number in use must
    not exceed ``Seq.USABLE_INTERVAL``, otherwise comparisons are unreliable.
    """

    __slots__ = ("_value",)

    ZERO: Seq
    MINUS_ONE: Seq
    USABLE_INTERVAL: int = _ONE_QUARTER

    def __init__(self, value: int = 0) -> None:
        if not 0 <= value <= _MASK:
            raise ValueError(f"sequence number {value} out of 32-bit range")
        self._value = value

    @property
    def value(self) -> int:
        """The raw unsigned value."""
        return self._value

    def __add__(self, other: int) -> Seq:
        if isinstance(other, Seq) or not isinstance(other, int):
            return NotImplemented
        return Seq((self._value + _offset(other)) & _MASK)

    def __sub__(self, other):
        """``Seq - Seq`` gives the signed distance; ``Seq - int`` steps back."""
        if isinstance(other, Seq):
            diff = (self._value - other._value) & _MASK
            return diff - _MODULUS if diff >= _SIGN_BIT else diff
        if isinstance(other, int):
            return Seq((self._value - _offset(other)) & _MASK)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Seq):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __lt__(self, other: Seq) -> bool:
        if not isinstance(other, Seq):
            return NotImplemented
        if self._value < _ONE_QUARTER and other._value >= _THREE_QUARTERS:
            return False
        if other._value < _ONE_QUARTER and self._value >= _THREE_QUARTERS:
            return True
        return self._value < other._value

    def __int__(self) -> int:
        return self._value

    def __str__(self) -> str:
        return str(self._value)

    def __repr__(self) -> str:
        return f"Seq({self._value})"


Seq.ZERO = Seq(0)
Seq.MINUS_ONE = Seq(_MASK)