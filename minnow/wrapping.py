"""32-bit wrapping sequence numbers relative to an arbitrary zero point."""

from __future__ import annotations

from dataclasses import dataclass

_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1
_WRAP = 1 << 32


@dataclass(frozen=True)
class Wrap32:
    """A 32-bit unsigned value that wraps back to zero after 2**32 - 1."""

    raw_value: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw_value", self.raw_value & _MASK32)

    @staticmethod
    def wrap(n: int, zero_point: Wrap32) -> Wrap32:
        """Wrap the absolute sequence number ``n`` relative to ``zero_point``."""
        return zero_point + n

    def unwrap(self, zero_point: Wrap32, checkpoint: int) -> int:
        """Return the absolute sequence number closest to ``checkpoint`` that wraps to this value."""
        if checkpoint < 0 or checkpoint > _MASK64:
            raise ValueError("checkpoint must be an unsigned 64-bit integer")
        seqno = (self.raw_value - zero_point.raw_value) & _MASK32
        low = (seqno + checkpoint - checkpoint % _WRAP) & _MASK64
        if low >= checkpoint:
            low = (low - _WRAP) & _MASK64
        if abs(low - checkpoint) <= _WRAP >> 1:
            return low
        return (low + _WRAP) & _MASK64

    def __add__(self, n: int) -> Wrap32:
        if not isinstance(n, int):
            return NotImplemented
        return Wrap32(self.raw_value + n)

    def __str__(self) -> str:
        return f"Wrap32<{self.raw_value}>"