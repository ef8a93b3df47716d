"""Longest-prefix-match routing of IPv4 datagrams between network interfaces."""

from __future__ import annotations

import dataclasses
from collections import deque
from dataclasses import dataclass
from ipaddress import IPv4Address

from minnow.frames import EthernetFrame, InternetDatagram
from minnow.network_interface import NetworkInterface

_MASK32 = 0xFFFFFFFF


class AsyncNetworkInterface(NetworkInterface):
    """A network interface that stores received datagrams for later retrieval."""

    def __init__(self, ethernet_address: bytes, ip_address: IPv4Address | str | int) -> None:
        super().__init__(ethernet_address, ip_address)
        self._datagrams_in: deque[InternetDatagram] = deque()

    def recv_frame(self, frame: EthernetFrame) -> None:  # type: ignore[override]
        """Handle a frame, keeping any IPv4 datagram it carries."""
        dgram = super().recv_frame(frame)
        if dgram is not None:
            self._datagrams_in.append(dgram)

    def maybe_receive(self) -> InternetDatagram | None:
        """Return the oldest received datagram, if any."""
        if not self._datagrams_in:
            return None
        return self._datagrams_in.popleft()


@dataclass(frozen=True)
class _Route:
    prefix: int
    prefix_length: int
    next_hop: IPv4Address | None
    interface_num: int

    def matches(self, address: int) -> bool:
        if self.prefix_length == 0:
            return True
        mask = (_MASK32 << (32 - self.prefix_length)) & _MASK32
        return (address & mask) == self.prefix


class Router:
    """A router with several interfaces that forwards by longest matching prefix."""

    def __init__(self) -> None:
        self._interfaces: list[AsyncNetworkInterface] = []
        self._routes: list[_Route] = []

    def add_interface(self, interface: AsyncNetworkInterface) -> int:
        """Add an interface and return its index."""
        self._interfaces.append(interface)
        return len(self._interfaces) - 1

    def interface(self, n: int) -> AsyncNetworkInterface:
        """The interface with index ``n``."""
        if not 0 <= n < len(self._interfaces):
            raise IndexError(f"no interface {n}")
        return self._interfaces[n]

    def add_route(
        self,
        route_prefix: int,
        prefix_length: int,
        next_hop: IPv4Address | None,
        interface_num: int,
    ) -> None:
        """Add a forwarding rule; ``next_hop`` None means the destination is directly attached."""
        if not 0 <= prefix_length <= 32:
            raise ValueError("prefix length must be between 0 and 32")
        hop = None if next_hop is None else IPv4Address(next_hop)
        self._routes.append(_Route(route_prefix & _MASK32, prefix_length, hop, interface_num))
        self._routes.sort(key=lambda route: route.prefix_length, reverse=True)

    def route(self) -> None:
        """Forward every datagram waiting on every interface."""
        for iface in self._interfaces:
            while (dgram := iface.maybe_receive()) is not None:
                route = next((r for r in self._routes if r.matches(dgram.header.dst)), None)
                if route is not None and dgram.header.ttl > 1:
                    self._forward(dgram, route)

    def _forward(self, dgram: InternetDatagram, route: _Route) -> None:
        header = dataclasses.replace(dgram.header, ttl=dgram.header.ttl - 1)
        header.compute_checksum()
        forwarded = InternetDatagram(header, dgram.payload)
        next_hop = route.next_hop if route.next_hop is not None else IPv4Address(header.dst)
        self.interface(route.interface_num).send_datagram(forwarded, next_hop)