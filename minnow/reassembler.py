"""Reassembly of indexed, possibly overlapping substrings into a byte stream."""

from __future__ import annotations

from minnow.byte_stream import Writer

_MASK64 = (1 << 64) - 1


class Reassembler:
    """Collects out-of-order substrings and writes them in order to a stream."""

    def __init__(self) -> None:
        self._bytes = bytearray()
        self._filled: list[bool] = []
        self._last = False
        self._pending = 0

    def insert(self, first_index: int, data: bytes, is_last_substring: bool, output: Writer) -> None:
        """Insert ``data`` starting at stream index ``first_index``.

        Bytes that fall outside the writer's available capacity are discarded;
        the stream is closed once the last substring has been fully written.
        """
        pushed = output.bytes_pushed()
        out_of_bounds = pushed + output.available_capacity()

        if data and first_index < out_of_bounds:
            self._store(first_index - pushed, data, output.available_capacity())
            ready = next(
                (i for i, filled in enumerate(self._filled) if not filled),
                len(self._filled),
            )
            output.push(bytes(self._bytes[:ready]))
            del self._bytes[:ready]
            del self._filled[:ready]
            self._pending -= ready

        if is_last_substring:
            self._last = True
        if self._last and self._pending == 0:
            output.close()

    def _store(self, offset: int, data: bytes, available: int) -> None:
        needed = (offset + len(data)) & _MASK64
        if len(self._bytes) <= needed:
            new_size = min(needed, available)
            if new_size >= len(self._bytes):
                grow = new_size - len(self._bytes)
                self._bytes.extend(bytes(grow))
                self._filled.extend([False] * grow)
            else:
                del self._bytes[new_size:]
                del self._filled[new_size:]

        lo = max(offset, 0)
        hi = min(offset + len(data), len(self._bytes))
        if lo >= hi:
            return
        self._pending += self._filled[lo:hi].count(False)
        self._bytes[lo:hi] = data[lo - offset : hi - offset]
        self._filled[lo:hi] = [True] * (hi - lo)

    def bytes_pending(self) -> int:
        """Number of bytes held here and not yet written to the stream."""
        return self._pending