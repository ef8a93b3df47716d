"""The sending half of a TCP endpoint."""

from __future__ import annotations

import random
from collections import deque

from minnow.byte_stream import Reader
from minnow.tcp_messages import TCPReceiverMessage, TCPSenderMessage
from minnow.wrapping import Wrap32

MAX_PAYLOAD_SIZE = 1000


class TCPSender:
    """Segments an outbound stream, tracks acknowledgments and retransmits on timeout."""

    def __init__(self, initial_rto_ms: int, fixed_isn: Wrap32 | None = None) -> None:
        if fixed_isn is None:
            fixed_isn = Wrap32(random.SystemRandom().getrandbits(32))
        self._next_seqno = fixed_isn
        self._zero_point = fixed_isn
        self._initial_rto_ms = initial_rto_ms
        self._alarm = initial_rto_ms
        self._outstanding: deque[TCPSenderMessage] = deque()
        self._sent: deque[TCPSenderMessage] = deque()
        self._window = 1
        self._retransmissions = 0
        self._elapsed = 0
        self._syn_sent = False
        self._fin_sent = False

    def sequence_numbers_in_flight(self) -> int:
        """How many sequence numbers are sent but not yet acknowledged."""
        return sum(msg.sequence_length() for msg in self._sent)

    def consecutive_retransmissions(self) -> int:
        """How many retransmissions have happened since the last new acknowledgment."""
        return self._retransmissions

    def maybe_send(self) -> TCPSenderMessage | None:
        """Return the next segment waiting to go out, if any."""
        if not self._outstanding:
            return None
        return self._outstanding.popleft()

    def push(self, outbound_stream: Reader) -> None:
        """Fill the peer's window with segments read from ``outbound_stream``."""
        window = self._window or 1
        in_flight = self.sequence_numbers_in_flight()
        room = window - in_flight if window >= in_flight else 0

        while room and not self._fin_sent:
            seg_size = min(room, MAX_PAYLOAD_SIZE, outbound_stream.bytes_buffered())
            msg = TCPSenderMessage(seqno=self._next_seqno)
            if not self._syn_sent:
                msg.syn = True
                self._syn_sent = True

            msg.payload = outbound_stream.peek()[:seg_size]
            outbound_stream.pop(seg_size)
            room -= seg_size

            if outbound_stream.is_finished() and room:
                msg.fin = True
                self._fin_sent = True

            if msg.sequence_length() == 0:
                break
            self._outstanding.append(msg)
            self._sent.append(msg)
            self._next_seqno = self._next_seqno + msg.sequence_length()

    def send_empty_message(self) -> TCPSenderMessage:
        """A segment with no flags or payload carrying the next sequence number."""
        return TCPSenderMessage(seqno=self._next_seqno)

    def receive(self, msg: TCPReceiverMessage) -> None:
        """Take in the peer's acknowledgment and window size."""
        self._window = msg.window_size
        if msg.ackno is None:
            return
        ack = msg.ackno.unwrap(self._zero_point, 0)
        if ack > self._next_seqno.unwrap(self._zero_point, 0):
            return

        acked = False
        while self._sent and (
            self._sent[0].seqno.unwrap(self._zero_point, 0) + self._sent[0].sequence_length() <= ack
        ):
            self._sent.popleft()
            acked = True

        if acked:
            self._elapsed = 0
            self._retransmissions = 0
            self._alarm = self._initial_rto_ms
            if self._outstanding:
                self._outstanding.popleft()

    def tick(self, ms_since_last_tick: int) -> None:
        """Advance the retransmission timer by ``ms_since_last_tick`` milliseconds."""
        self._elapsed += ms_since_last_tick
        if self._elapsed >= self._alarm:
            if self._window > 0:
                self._retransmissions += 1
                self._alarm *= 2
            if self._sent:
                self._outstanding.append(self._sent[0])
            self._elapsed = 0