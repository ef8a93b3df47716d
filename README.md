# minnow

A small TCP/IP stack written in pure Python with no dependencies. Each layer is a
plain object that you drive by hand. Nothing runs in the background: there are no
threads, and time advances only when you call `tick`. All data is `bytes`.

## Layers

- `minnow.byte_stream`
  - `ByteStream(capacity)` is a bounded in-memory byte pipe. It has two sides:
    - `writer()` gives a `Writer` with `push`, `close`, `set_error`, `is_closed`,
      `available_capacity` and `bytes_pushed`.
    - `reader()` gives a `Reader` with `peek`, `pop`, `is_finished`, `has_error`,
      `bytes_buffered` and `bytes_popped`.
  - `push` keeps only as much data as fits in the free capacity. Once the stream
    is closed or has an error, `push` discards everything.
  - `read(reader, length)` peeks and pops up to `length` bytes and returns them.
- `minnow.reassembler`
  - `Reassembler.insert(first_index, data, is_last_substring, output)` accepts
    substrings that may arrive out of order or overlap. It writes them to a
    `Writer` in order.
  - Bytes that lie beyond the writer's available capacity are dropped.
  - The writer is closed once the last substring has been written in full.
  - `bytes_pending()` reports how many bytes are held but not yet written.
- `minnow.wrapping`
  - `Wrap32` is a frozen 32-bit sequence number.
  - `Wrap32.wrap(n, zero_point)` turns an absolute sequence number into a `Wrap32`.
  - `unwrap(zero_point, checkpoint)` returns the absolute value closest to
    `checkpoint`. It raises `ValueError` if the checkpoint is not an unsigned
    64-bit integer.
  - Adding an `int` to a `Wrap32` wraps around modulo 2**32.
- `minnow.tcp_messages`
  - `TCPSenderMessage` has the fields `seqno`, `syn`, `payload` and `fin`.
    Its `sequence_length()` counts SYN and FIN as one each.
  - `TCPReceiverMessage` has the fields `ackno` and `window_size`.
- `minnow.tcp_receiver`
  - `TCPReceiver.receive(message, reassembler, inbound_stream)` discards segments
    until a SYN arrives. After that it inserts each payload at its stream index.
  - `send(inbound_stream)` returns the acknowledgement number and a window size
    capped at 65535.
- `minnow.tcp_sender`
  - `TCPSender(initial_rto_ms, fixed_isn=None)` chooses a random initial sequence
    number unless you give one.
  - `push(reader)` fills the peer's window with segments of at most
    `MAX_PAYLOAD_SIZE` (1000) payload bytes. It sets SYN on the first segment and
    FIN once the stream is finished and the window has room. A zero window is
    treated as a window of one.
  - `maybe_send()` hands out queued segments one at a time.
  - `receive(msg)` takes in acknowledgements. It ignores acknowledgement numbers
    beyond what has been sent.
  - `tick(ms)` retransmits the oldest unacknowledged segment when the timer
    expires. When the window is non-zero, each expiry also doubles the timeout
    and counts a retransmission.
  - `sequence_numbers_in_flight()` and `consecutive_retransmissions()` report the
    sender's state.
- `minnow.frames`
  - Defines `EthernetFrame`, `ARPMessage`, `IPv4Header` and `InternetDatagram`.
    Each has `serialize()` and a `parse()` class method. `parse()` raises
    `ValueError` on malformed input.
  - `IPv4Header.compute_checksum()` fills in the Internet checksum.
  - `format_ethernet_address` renders addresses as `aa:bb:cc:dd:ee:ff`.
  - `ETHERNET_BROADCAST` is the broadcast address.
- `minnow.network_interface`
  - `NetworkInterface(ethernet_address, ip_address)` wraps datagrams in Ethernet
    frames. It resolves next hops with ARP:
    - While a next hop is unknown, it queues datagrams and broadcasts one ARP
      request. It does not send that request again within 5 seconds.
    - It learns mappings from every ARP message it receives. Learned mappings
      expire after 30 seconds.
    - It answers ARP requests for its own IP address.
  - `recv_frame` returns the `InternetDatagram` carried by an IPv4 frame addressed
    to it, or to the broadcast address, and `None` otherwise.
- `minnow.router`
  - `AsyncNetworkInterface` stores received datagrams for `maybe_receive()`.
  - `Router` holds several interfaces. Its `add_route(route_prefix, prefix_length,
    next_hop, interface_num)` adds a forwarding rule. Its `route()` forwards every
    waiting datagram by longest-prefix match:
    - It decrements the TTL and recomputes the checksum.
    - It drops datagrams whose TTL is 1 or less.
    - When a route has no next hop, it sends the datagram straight to its
      destination address.

## Examples

```python
from minnow.byte_stream import ByteStream, read
from minnow.reassembler import Reassembler

stream = ByteStream(64)
reassembler = Reassembler()
reassembler.insert(1, b"b", False, stream.writer())
reassembler.insert(0, b"a", True, stream.writer())

assert read(stream.reader(), 2) == b"ab"
assert stream.reader().is_finished()
```

```python
from minnow.wrapping import Wrap32

assert Wrap32(1).unwrap(Wrap32(0), 0xFFFFFFFF) == (1 << 32) + 1
```

```python
from minnow.frames import EthernetFrame, InternetDatagram, IPv4Header
from minnow.network_interface import NetworkInterface

iface = NetworkInterface(bytes.fromhex("020000000001"), "10.0.0.1")
header = IPv4Header(src=0x0A000001, dst=0x0A000002, length=25)
header.compute_checksum()
iface.send_datagram(InternetDatagram(header, b"hello"), "10.0.0.2")

arp_request = iface.maybe_send()
assert arp_request.ethertype == EthernetFrame.TYPE_ARP
assert iface.maybe_send() is None
```

## Command line

`webget HOST PATH` opens a TCP connection to port 80 of HOST. It sends an
HTTP/1.1 `GET` request for PATH with `Connection: close`, and copies the raw
response to standard output until the server closes the connection.

```
webget example.com /index.html
```

The same functions are available in `minnow.webget`: `build_request(host, path)`,
`get_url(host, path, out)` and `main(argv)`.

## What it does not do

- `webget` uses the operating system's own TCP, not the classes in this package.
- No class joins `TCPSender` and `TCPReceiver` into one connection, and nothing
  carries segments over a real network or device. You move messages and frames
  between the objects yourself.
- `TCPSender` counts consecutive retransmissions but never gives up or aborts on
  its own. It is up to you to decide when too many retransmissions have happened.

## Tests

```
pip install -e ".[test]"
pytest
```