import random
from dataclasses import dataclass

import pytest

from minnow.byte_stream import ByteStream
from minnow.tcp_messages import TCPReceiverMessage
from minnow.tcp_sender import MAX_PAYLOAD_SIZE, TCPSender
from minnow.wrapping import Wrap32

TIMEOUT_DFLT = 1000
MAX_RETX_ATTEMPTS = 8
DEFAULT_TEST_WINDOW = 137
SEND_CAPACITY = 64000


@dataclass(frozen=True)
class Sent:
    """A sent segment with its seqno given as an offset from the ISN."""

    syn: bool
    fin: bool
    seqno: int
    data: bytes


SYN = Sent(syn=True, fin=False, seqno=0, data=b"")


class _Harness:
    """A byte stream feeding a sender; sequence numbers are given as offsets from the ISN."""

    def __init__(self, isn, rto=TIMEOUT_DFLT):
        self.isn = isn
        self.stream = ByteStream(SEND_CAPACITY)
        self.sender = TCPSender(rto, isn)

    def push(self, data=b"", close=False):
        if data:
            self.stream.writer().push(data)
        if close:
            self.stream.writer().close()
        self.sender.push(self.stream.reader())

    def close(self):
        self.push(close=True)

    def receive(self, ackno, win=DEFAULT_TEST_WINDOW, push=True):
        self.sender.receive(TCPReceiverMessage(ackno, win))
        if push:
            self.sender.push(self.stream.reader())

    def ack(self, offset, win=DEFAULT_TEST_WINDOW):
        self.receive(self.isn + offset, win)

    def tick(self, ms):
        """Let time pass; report whether too many retransmissions have happened."""
        self.sender.tick(ms)
        return self.sender.consecutive_retransmissions() > MAX_RETX_ATTEMPTS

    def take(self):
        msg = self.sender.maybe_send()
        if msg is None:
            return None
        assert len(msg.payload) <= MAX_PAYLOAD_SIZE
        return Sent(msg.syn, msg.fin, msg.seqno.unwrap(self.isn, 0), msg.payload)

    def next_seqno(self):
        msg = self.sender.send_empty_message()
        assert msg.sequence_length() == 0
        return msg.seqno.unwrap(self.isn, 0)

    def flight(self):
        return self.sender.sequence_numbers_in_flight()

    def state(self):
        return self.next_seqno(), self.flight()


@pytest.fixture(params=[0, 12345, 0x80000000, 0xFFFFFFFF])
def isn(request):
    return Wrap32(request.param)


def _connected(isn, win=DEFAULT_TEST_WINDOW, rto=TIMEOUT_DFLT):
    h = _Harness(isn, rto)
    h.push()
    assert h.take() == SYN
    h.ack(1, win)
    return h


def _block(rng, i):
    size = rng.randint(1, 10)
    return bytes(ord("a") + (i + j) % 26 for j in range(size))


# --- connect ---


def test_syn_sent_after_first_push(isn):
    h = _Harness(isn)
    h.push()
    assert h.take() == SYN
    assert h.state() == (1, 1)


def test_syn_acked(isn):
    h = _Harness(isn)
    h.push()
    assert h.take() == SYN
    assert h.state() == (1, 1)
    h.ack(1)
    assert h.take() is None
    assert h.flight() == 0


def test_syn_wrong_ack(isn):
    h = _Harness(isn)
    h.push()
    assert h.take() == SYN
    assert h.flight() == 1
    h.ack(0)
    assert h.state() == (1, 1)
    assert h.take() is None


def test_syn_acked_then_data(isn):
    h = _connected(isn)
    assert h.state() == (1, 0)
    assert h.take() is None
    h.push(b"abcdefgh")
    h.tick(1)
    msg = h.take()
    assert (msg.seqno, msg.data) == (1, b"abcdefgh")
    assert h.state() == (9, 8)
    h.ack(9)
    assert h.state() == (9, 0)
    assert h.take() is None


# --- transmit ---


def test_three_short_writes(isn):
    h = _Harness(isn)
    h.push()
    assert h.take() == SYN
    assert h.state() == (1, 1)
    h.ack(1)
    assert h.state() == (1, 0)
    for data, seqno in ((b"ab", 1), (b"cd", 3), (b"abcd", 5)):
        h.push(data)
        msg = h.take()
        assert (msg.seqno, msg.data) == (seqno, data)
    assert h.state() == (9, 8)


@pytest.mark.parametrize(
    "rounds, win, ack_each, seed",
    [(10000, DEFAULT_TEST_WINDOW, True, 144), (1000, 65000, False, 2023)],
    ids=["continuous acks", "ack at end"],
)
def test_many_short_writes(isn, rounds, win, ack_each, seed):
    rng = random.Random(seed)
    h = _connected(isn, win)
    assert h.state() == (1, 0)
    bytes_sent = 0
    for i in range(rounds):
        data = _block(rng, i)
        assert h.next_seqno() == bytes_sent + 1
        h.push(data)
        bytes_sent += len(data)
        assert h.flight() == (len(data) if ack_each else bytes_sent)
        msg = h.take()
        assert (msg.seqno, msg.data) == (1 + bytes_sent - len(data), data)
        assert h.take() is None
        if ack_each:
            h.ack(1 + bytes_sent)
    h.ack(1 + bytes_sent)
    assert h.flight() == 0


def test_window_filling(isn):
    h = _connected(isn, win=3)
    assert h.state() == (1, 0)
    h.push(b"01234567")
    for data, next_seqno in ((b"012", 4), (b"345", 7), (b"67", 9)):
        assert h.flight() == len(data)
        assert h.take().data == data
        assert h.next_seqno() == next_seqno
        assert h.take() is None
        h.ack(next_seqno, win=3)
    assert h.flight() == 0
    assert h.take() is None


def test_immediate_writes_respect_window(isn):
    h = _connected(isn, win=3)
    assert h.state() == (1, 0)
    for pushed, flight, sent, next_seqno in ((b"01", 2, b"01", 3), (b"23", 3, b"2", 4)):
        h.push(pushed)
        assert h.flight() == flight
        assert h.take().data == sent
        assert h.next_seqno() == next_seqno
        assert h.take() is None


# --- retransmission ---

RETX_TIMEOUTS = [10, 1000, 9999]


@pytest.mark.parametrize("retx_timeout", RETX_TIMEOUTS)
def test_retx_syn_twice_then_ack(isn, retx_timeout):
    h = _Harness(isn, retx_timeout)
    h.push()
    assert h.take() == SYN
    assert h.state() == (1, 1)
    assert h.take() is None
    for wait in (retx_timeout, 2 * retx_timeout):
        h.tick(wait - 1)
        assert h.take() is None
        h.tick(1)
        assert h.take() == SYN
        assert h.state() == (1, 1)
    h.ack(1)
    assert h.state() == (1, 0)


@pytest.mark.parametrize("retx_timeout", RETX_TIMEOUTS)
def test_retx_syn_until_too_many(isn, retx_timeout):
    h = _Harness(isn, retx_timeout)
    h.push()
    assert h.take() == SYN
    assert h.state() == (1, 1)
    assert h.take() is None
    for attempt in range(MAX_RETX_ATTEMPTS):
        assert not h.tick((retx_timeout << attempt) - 1)
        assert h.take() is None
        assert not h.tick(1)
        assert h.take() == SYN
        assert h.state() == (1, 1)
    assert not h.tick((retx_timeout << MAX_RETX_ATTEMPTS) - 1)
    assert h.tick(1)


@pytest.mark.parametrize("retx_timeout", RETX_TIMEOUTS)
def test_data_retx_succeed_then_retx_till_limit(isn, retx_timeout):
    h = _connected(isn, rto=retx_timeout)
    assert h.take() is None
    h.push(b"abcd")
    assert len(h.take().data) == 4
    assert h.take() is None
    h.ack(5)
    assert h.flight() == 0
    h.push(b"efgh")
    assert len(h.take().data) == 4
    assert h.take() is None
    assert not h.tick(retx_timeout)
    assert len(h.take().data) == 4
    assert h.take() is None
    h.ack(9)
    assert h.flight() == 0
    h.push(b"ijkl")
    msg = h.take()
    assert (msg.seqno, len(msg.data)) == (9, 4)
    for attempt in range(MAX_RETX_ATTEMPTS):
        assert not h.tick((retx_timeout << attempt) - 1)
        assert h.take() is None
        assert not h.tick(1)
        msg = h.take()
        assert (msg.seqno, len(msg.data)) == (9, 4)
        assert h.flight() == 4
    assert not h.tick((retx_timeout << MAX_RETX_ATTEMPTS) - 1)
    assert h.tick(1)


# --- window ---


@pytest.mark.parametrize(
    "win, data, sent",
    [
        (4, b"abcdefg", b"abcd"),
        (6, b"abcdefg", b"abcdef"),
        *[(w, b"a" * 2000, b"a" * w) for w in (5, 37, 64, 99)],
    ],
)
def test_window_limits_segment(isn, win, data, sent):
    h = _connected(isn, win)
    assert h.take() is None
    h.push(data)
    msg = h.take()
    assert (msg.syn, msg.fin, msg.data) == (False, False, sent)
    assert h.take() is None


def test_window_growth_is_exploited(isn):
    h = _connected(isn, win=4)
    assert h.take() is None
    h.push(b"0123456789")
    first = h.take()
    assert (first.syn, first.fin, first.data) == (False, False, b"0123")
    h.ack(5, win=5)
    second = h.take()
    assert (second.syn, second.fin, second.data) == (False, False, b"45678")
    assert h.take() is None


@pytest.mark.parametrize(
    "win, ack_offset, ack_win, first, rest",
    [
        (7, 8, 1, b"1234567", b""),
        (7, 1, 8, b"1234567", b""),
        (3, 1, 8, b"123", b"4567"),
    ],
    ids=["FIN waits for window", "FIN waits for window II", "FIN piggybacks"],
)
def test_fin_occupies_space_in_window(isn, win, ack_offset, ack_win, first, rest):
    h = _connected(isn, win)
    assert h.take() is None
    h.push(b"1234567")
    h.close()
    msg = h.take()
    assert (msg.syn, msg.fin, msg.data) == (False, False, first)
    assert h.take() is None
    h.ack(ack_offset, win=ack_win)
    last = h.take()
    assert (last.fin, last.data) == (True, rest)
    assert h.take() is None


# --- acknowledgments ---


@pytest.mark.parametrize(
    "rounds",
    [[(b"a", 1)], [(b"a", 2), (b"b", 1)]],
    ids=["repeat ack ignored", "old ack ignored"],
)
def test_stale_ack_is_ignored(isn, rounds):
    h = _connected(isn)
    assert h.take() is None
    for data, ack_offset in rounds:
        h.push(data)
        msg = h.take()
        assert (msg.syn, msg.fin, msg.data) == (False, False, data)
        assert h.take() is None
        h.ack(ack_offset)
        assert h.take() is None


def test_impossible_ackno_is_ignored(isn):
    h = _Harness(isn)
    h.push()
    assert h.take() == SYN
    assert h.flight() == 1
    h.ack(2, win=1000)
    assert h.flight() == 1


# --- close ---


@pytest.mark.parametrize("data, seqno, flight", [(b"", 2, 1), (b"hello", 7, 6)])
def test_fin_sent(isn, data, seqno, flight):
    h = _connected(isn)
    assert h.state() == (1, 0)
    h.push(data, close=True)
    msg = h.take()
    assert (msg.fin, msg.seqno, msg.data) == (True, 1, data)
    assert h.state() == (seqno, flight)
    assert h.take() is None


def test_syn_and_fin(isn):
    h = _Harness(isn)
    h.receive(None, win=1024, push=False)
    h.close()
    assert h.take() == Sent(syn=True, fin=True, seqno=0, data=b"")
    assert h.state() == (2, 2)
    assert h.take() is None


@pytest.mark.parametrize("ack_offset, flight", [(2, 0), (1, 1)], ids=["acked", "not acked"])
def test_fin_ack(isn, ack_offset, flight):
    h = _connected(isn)
    assert h.state() == (1, 0)
    h.close()
    msg = h.take()
    assert (msg.fin, msg.seqno) == (True, 1)
    assert h.state() == (2, 1)
    h.ack(ack_offset)
    assert h.state() == (2, flight)
    assert h.take() is None


def test_fin_retransmitted(isn):
    h = _connected(isn)
    assert h.state() == (1, 0)
    h.close()
    msg = h.take()
    assert (msg.fin, msg.seqno) == (True, 1)
    assert h.state() == (2, 1)
    h.ack(1)
    assert h.flight() == 1
    assert h.take() is None
    h.tick(TIMEOUT_DFLT - 1)
    assert h.state() == (2, 1)
    assert h.take() is None
    h.tick(1)
    msg = h.take()
    assert (msg.fin, msg.seqno) == (True, 1)
    assert h.state() == (2, 1)
    assert h.take() is None
    h.tick(1)
    assert h.state() == (2, 1)
    assert h.take() is None
    h.ack(2)
    assert h.state() == (2, 0)
    assert h.take() is None


def test_empty_message_carries_isn_before_sending(isn):
    h = _Harness(isn)
    assert h.state() == (0, 0)
    assert h.take() is None