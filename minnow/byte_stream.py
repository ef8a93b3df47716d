"""A bounded in-memory byte stream with separate writer and reader views."""

from __future__ import annotations


class ByteStream:
    """A stream of bytes with a fixed buffer capacity."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._capacity = capacity
        self._buffer = bytearray()
        self._bytes_pushed = 0
        self._bytes_popped = 0
        self._closed = False
        self._error = False
        self._writer = Writer(self)
        self._reader = Reader(self)

    def reader(self) -> Reader:
        """The reading side of the stream."""
        return self._reader

    def writer(self) -> Writer:
        """The writing side of the stream."""
        return self._writer


class Writer:
    """The writing side of a :class:`ByteStream`."""

    def __init__(self, stream: ByteStream) -> None:
        self._stream = stream

    def push(self, data: bytes) -> None:
        """Append as much of ``data`` as the available capacity allows."""
        view = memoryview(data)
        s = self._stream
        if s._closed or s._error:
            return
        chunk = view[: self.available_capacity()]
        s._buffer.extend(chunk)
        s._bytes_pushed += len(chunk)

    def close(self) -> None:
        """Signal that nothing more will be written."""
        self._stream._closed = True

    def set_error(self) -> None:
        """Signal that the stream suffered an error."""
        self._stream._error = True

    def is_closed(self) -> bool:
        return self._stream._closed

    def available_capacity(self) -> int:
        return self._stream._capacity - len(self._stream._buffer)

    def bytes_pushed(self) -> int:
        return self._stream._bytes_pushed


class Reader:
    """The reading side of a :class:`ByteStream`."""

    def __init__(self, stream: ByteStream) -> None:
        self._stream = stream

    def peek(self) -> bytes:
        """Return the bytes currently buffered, without removing them."""
        return bytes(self._stream._buffer)

    def pop(self, length: int) -> None:
        """Remove up to ``length`` bytes from the front of the buffer."""
        if length < 0:
            raise ValueError("length must not be negative")
        s = self._stream
        count = min(length, len(s._buffer))
        del s._buffer[:count]
        s._bytes_popped += count

    def is_finished(self) -> bool:
        """True once the stream is closed and fully drained."""
        return self._stream._closed and not self._stream._buffer

    def has_error(self) -> bool:
        return self._stream._error

    def bytes_buffered(self) -> int:
        return len(self._stream._buffer)

    def bytes_popped(self) -> int:
        return self._stream._bytes_popped


def read(reader: Reader, length: int) -> bytes:
    """Peek and pop up to ``length`` bytes from ``reader``."""
    out = bytearray()
    while reader.bytes_buffered() and len(out) < length:
        view = reader.peek()
        if not view:
            raise RuntimeError("Reader.peek() returned no bytes")
        view = view[: length - len(out)]
        out += view
        reader.pop(len(view))
    return bytes(out)