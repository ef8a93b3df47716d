"""The receiving half of a TCP endpoint."""

from __future__ import annotations

from minnow.byte_stream import Writer
from minnow.reassembler import Reassembler
from minnow.tcp_messages import TCPReceiverMessage, TCPSenderMessage
from minnow.wrapping import Wrap32

_UINT64 = 1 << 64
_WINDOW_LIMIT = 0xFFFF


class TCPReceiver:
    """Turns sender segments into stream bytes and produces acknowledgments."""

    def __init__(self) -> None:
        self._zero: Wrap32 | None = None

    def receive(
        self, message: TCPSenderMessage, reassembler: Reassembler, inbound_stream: Writer
    ) -> None:
        """Insert the segment's payload into the reassembler at its stream index."""
        if message.syn:
            self._zero = message.seqno
        if self._zero is None:
            return

        # Index of the last byte written, in unsigned 64-bit arithmetic.
        checkpoint = (inbound_stream.bytes_pushed() - 1) % _UINT64
        stream_index = message.seqno.unwrap(self._zero, checkpoint)
        if not message.syn:
            stream_index = (stream_index - 1) % _UINT64

        reassembler.insert(stream_index, message.payload, message.fin, inbound_stream)

    def send(self, inbound_stream: Writer) -> TCPReceiverMessage:
        """Build the acknowledgment and window advertisement for the peer."""
        if self._zero is None:
            ackno = None
        else:
            consumed = 1 + inbound_stream.bytes_pushed() + int(inbound_stream.is_closed())
            ackno = self._zero + consumed
        return TCPReceiverMessage(
            ackno=ackno,
            window_size=min(inbound_stream.available_capacity(), _WINDOW_LIMIT),
        )