"""A network interface joining IPv4 with Ethernet, resolving addresses with ARP."""

from __future__ import annotations

import dataclasses
import logging
from collections import deque
from dataclasses import dataclass
from ipaddress import IPv4Address

from minnow.frames import (
    ETHERNET_BROADCAST,
    ARPMessage,
    EthernetFrame,
    InternetDatagram,
    format_ethernet_address,
)

logger = logging.getLogger(__name__)

RESEND_THRESHOLD_MS = 5000
MAPPING_THRESHOLD_MS = 30000


@dataclass
class _Mapping:
    eth: bytes
    age: int = 0


class NetworkInterface:
    """Translates datagrams into Ethernet frames and back, learning addresses with ARP."""

    def __init__(self, ethernet_address: bytes, ip_address: IPv4Address | str | int) -> None:
        self.ethernet_address = bytes(ethernet_address)
        self.ip_address = IPv4Address(ip_address)
        self._mappings: dict[int, _Mapping] = {}
        self._arp_timeout: dict[int, int] = {}
        self._arp_waiting: dict[int, deque[EthernetFrame]] = {}
        self._send_queue: deque[EthernetFrame] = deque()
        logger.debug(
            "Network interface has Ethernet address %s and IP address %s",
            format_ethernet_address(self.ethernet_address),
            self.ip_address,
        )

    def _arp_frame(self, dst: bytes, message: ARPMessage) -> EthernetFrame:
        return EthernetFrame(
            dst=dst,
            src=self.ethernet_address,
            ethertype=EthernetFrame.TYPE_ARP,
            payload=message.serialize(),
        )

    def send_datagram(self, dgram: InternetDatagram, next_hop: IPv4Address | str | int) -> None:
        """Queue ``dgram`` for the next hop, asking for its Ethernet address if unknown."""
        hop = int(IPv4Address(next_hop))
        frame = EthernetFrame(
            dst=ETHERNET_BROADCAST,
            src=self.ethernet_address,
            ethertype=EthernetFrame.TYPE_IPV4,
            payload=dgram.serialize(),
        )

        mapping = self._mappings.get(hop)
        if mapping is not None:
            self._send_queue.append(dataclasses.replace(frame, dst=mapping.eth))
            return

        if hop not in self._arp_timeout:
            request = ARPMessage(
                opcode=ARPMessage.OPCODE_REQUEST,
                sender_ethernet_address=self.ethernet_address,
                sender_ip_address=int(self.ip_address),
                target_ip_address=hop,
            )
            self._send_queue.append(self._arp_frame(ETHERNET_BROADCAST, request))
            self._arp_timeout[hop] = 0
        self._arp_waiting.setdefault(hop, deque()).append(frame)

    def recv_frame(self, frame: EthernetFrame) -> InternetDatagram | None:
        """Handle an arriving frame; return its datagram if it carries IPv4 for us."""
        if frame.dst not in (ETHERNET_BROADCAST, self.ethernet_address):
            return None

        if frame.ethertype == EthernetFrame.TYPE_IPV4:
            try:
                return InternetDatagram.parse(frame.payload)
            except ValueError:
                return None
        if frame.ethertype != EthernetFrame.TYPE_ARP:
            return None
        try:
            arp = ARPMessage.parse(frame.payload)
        except ValueError:
            return None

        sender_ip = arp.sender_ip_address
        self._mappings[sender_ip] = _Mapping(arp.sender_ethernet_address)

        waiting = self._arp_waiting.get(sender_ip)
        if waiting:
            self._send_queue.extend(
                dataclasses.replace(queued, dst=arp.sender_ethernet_address) for queued in waiting
            )
            waiting.clear()

        if arp.target_ip_address == int(self.ip_address) and arp.opcode == ARPMessage.OPCODE_REQUEST:
            reply = ARPMessage(
                opcode=ARPMessage.OPCODE_REPLY,
                sender_ethernet_address=self.ethernet_address,
                sender_ip_address=arp.target_ip_address,
                target_ethernet_address=frame.src,
                target_ip_address=sender_ip,
            )
            self._send_queue.append(self._arp_frame(arp.sender_ethernet_address, reply))
            self._arp_timeout[arp.target_ip_address] = 0

        return None

    def tick(self, ms_since_last_tick: int) -> None:
        """Age learned mappings and pending ARP requests, expiring the old ones."""
        kept: dict[int, _Mapping] = {}
        for ip, mapping in self._mappings.items():
            age = mapping.age + ms_since_last_tick
            if age <= MAPPING_THRESHOLD_MS:
                kept[ip] = _Mapping(mapping.eth, age)
            else:
                self._arp_waiting.pop(ip, None)
        self._mappings = kept

        self._arp_timeout = {
            ip: age + ms_since_last_tick
            for ip, age in self._arp_timeout.items()
            if age + ms_since_last_tick <= RESEND_THRESHOLD_MS
        }

    def maybe_send(self) -> EthernetFrame | None:
        """Return the next frame ready for transmission, if any."""
        if not self._send_queue:
            return None
        return self._send_queue.popleft()