"""Messages exchanged between a TCP sender and a TCP receiver."""

from __future__ import annotations

from dataclasses import dataclass, field

from minnow.wrapping import Wrap32


@dataclass
class TCPSenderMessage:
    """A segment from the sender: sequence number, flags and payload."""

    seqno: Wrap32 = field(default_factory=lambda: Wrap32(0))
    syn: bool = False
    payload: bytes = b""
    fin: bool = False

    def sequence_length(self) -> int:
        """Number of sequence numbers the segment occupies (SYN and FIN count one each)."""
        return int(self.syn) + len(self.payload) + int(self.fin)


@dataclass
class TCPReceiverMessage:
    """A reply from the receiver: acknowledgment number and window size."""

    ackno: Wrap32 | None = None
    window_size: int = 0