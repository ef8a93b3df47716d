"""Ethernet frames, ARP messages and IPv4 datagrams with their wire formats."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar

ETHERNET_ADDRESS_LENGTH = 6
ETHERNET_BROADCAST = b"\xff" * ETHERNET_ADDRESS_LENGTH

_ETH_HEADER = struct.Struct("!6s6sH")
_ARP = struct.Struct("!HHBBH6sI6sI")
_IPV4_HEADER = struct.Struct("!BBHHHBBHII")


def _check_ethernet_address(address: bytes) -> bytes:
    address = bytes(address)
    if len(address) != ETHERNET_ADDRESS_LENGTH:
        raise ValueError(f"an Ethernet address has {ETHERNET_ADDRESS_LENGTH} bytes, got {len(address)}")
    return address


def format_ethernet_address(address: bytes) -> str:
    """Render an Ethernet address as colon-separated lower-case hex."""
    return ":".join(f"{byte:02x}" for byte in _check_ethernet_address(address))


def _internet_checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\x00"
    total = sum(int.from_bytes(data[i : i + 2], "big") for i in range(0, len(data), 2))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


@dataclass
class EthernetFrame:
    """An Ethernet frame: destination, source, EtherType and payload."""

    TYPE_IPV4: ClassVar[int] = 0x0800
    TYPE_ARP: ClassVar[int] = 0x0806

    dst: bytes = ETHERNET_BROADCAST
    src: bytes = bytes(ETHERNET_ADDRESS_LENGTH)
    ethertype: int = 0x0800
    payload: bytes = b""

    def serialize(self) -> bytes:
        header = _ETH_HEADER.pack(
            _check_ethernet_address(self.dst), _check_ethernet_address(self.src), self.ethertype
        )
        return header + bytes(self.payload)

    @classmethod
    def parse(cls, data: bytes) -> EthernetFrame:
        """Parse a frame from wire bytes; raise ValueError if it is too short."""
        if len(data) < _ETH_HEADER.size:
            raise ValueError("truncated Ethernet header")
        dst, src, ethertype = _ETH_HEADER.unpack_from(data)
        return cls(dst=dst, src=src, ethertype=ethertype, payload=bytes(data[_ETH_HEADER.size :]))


@dataclass
class ARPMessage:
    """An Address Resolution Protocol message for IPv4 over Ethernet."""

    OPCODE_REQUEST: ClassVar[int] = 1
    OPCODE_REPLY: ClassVar[int] = 2
    TYPE_ETHERNET: ClassVar[int] = 1

    opcode: int = 1
    sender_ethernet_address: bytes = bytes(ETHERNET_ADDRESS_LENGTH)
    sender_ip_address: int = 0
    target_ethernet_address: bytes = bytes(ETHERNET_ADDRESS_LENGTH)
    target_ip_address: int = 0
    hardware_type: int = 1
    protocol_type: int = EthernetFrame.TYPE_IPV4

    def serialize(self) -> bytes:
        return _ARP.pack(
            self.hardware_type,
            self.protocol_type,
            ETHERNET_ADDRESS_LENGTH,
            4,
            self.opcode,
            _check_ethernet_address(self.sender_ethernet_address),
            self.sender_ip_address,
            _check_ethernet_address(self.target_ethernet_address),
            self.target_ip_address,
        )

    @classmethod
    def parse(cls, data: bytes) -> ARPMessage:
        """Parse an ARP message; raise ValueError unless it is a valid IPv4-over-Ethernet one."""
        if len(data) < _ARP.size:
            raise ValueError("truncated ARP message")
        (hw_type, proto_type, hw_len, proto_len, opcode,
         sender_eth, sender_ip, target_eth, target_ip) = _ARP.unpack_from(data)
        if hw_type != cls.TYPE_ETHERNET or proto_type != EthernetFrame.TYPE_IPV4:
            raise ValueError("unsupported ARP hardware or protocol type")
        if hw_len != ETHERNET_ADDRESS_LENGTH or proto_len != 4:
            raise ValueError("unsupported ARP address lengths")
        if opcode not in (cls.OPCODE_REQUEST, cls.OPCODE_REPLY):
            raise ValueError(f"unknown ARP opcode {opcode}")
        return cls(
            opcode=opcode,
            sender_ethernet_address=sender_eth,
            sender_ip_address=sender_ip,
            target_ethernet_address=target_eth,
            target_ip_address=target_ip,
            hardware_type=hw_type,
            protocol_type=proto_type,
        )


@dataclass
class IPv4Header:
    """An IPv4 header without options."""

    DEFAULT_TTL: ClassVar[int] = 128
    PROTO_TCP: ClassVar[int] = 6

    ver: int = 4
    hlen: int = 5
    tos: int = 0
    length: int = 0
    ident: int = 0
    df: bool = True
    mf: bool = False
    offset: int = 0
    ttl: int = 128
    proto: int = 6
    cksum: int = 0
    src: int = 0
    dst: int = 0

    def serialize(self) -> bytes:
        flags = (int(self.df) << 14) | (int(self.mf) << 13) | (self.offset & 0x1FFF)
        fixed = _IPV4_HEADER.pack(
            (self.ver << 4) | self.hlen,
            self.tos,
            self.length,
            self.ident,
            flags,
            self.ttl,
            self.proto,
            self.cksum,
            self.src,
            self.dst,
        )
        return fixed + bytes(max(self.hlen * 4 - _IPV4_HEADER.size, 0))

    def compute_checksum(self) -> None:
        """Set ``cksum`` to the Internet checksum of the header."""
        self.cksum = 0
        self.cksum = _internet_checksum(self.serialize())

    @classmethod
    def parse(cls, data: bytes) -> IPv4Header:
        """Parse a header; raise ValueError if it is malformed."""
        if len(data) < _IPV4_HEADER.size:
            raise ValueError("truncated IPv4 header")
        (ver_hlen, tos, length, ident, flags, ttl, proto,
         cksum, src, dst) = _IPV4_HEADER.unpack_from(data)
        ver, hlen = ver_hlen >> 4, ver_hlen & 0x0F
        if ver != 4:
            raise ValueError(f"not an IPv4 header (version {ver})")
        if hlen < 5 or len(data) < hlen * 4:
            raise ValueError("bad IPv4 header length")
        return cls(
            ver=ver,
            hlen=hlen,
            tos=tos,
            length=length,
            ident=ident,
            df=bool(flags & 0x4000),
            mf=bool(flags & 0x2000),
            offset=flags & 0x1FFF,
            ttl=ttl,
            proto=proto,
            cksum=cksum,
            src=src,
            dst=dst,
        )


@dataclass
class InternetDatagram:
    """An IPv4 datagram: header and payload."""

    header: IPv4Header = field(default_factory=IPv4Header)
    payload: bytes = b""

    def serialize(self) -> bytes:
        return self.header.serialize() + bytes(self.payload)

    @classmethod
    def parse(cls, data: bytes) -> InternetDatagram:
        """Parse a datagram; raise ValueError if it is malformed."""
        header = IPv4Header.parse(data)
        header_length = header.hlen * 4
        if header.length < header_length or header.length > len(data):
            raise ValueError("IPv4 total length does not match the data")
        return cls(header=header, payload=bytes(data[header_length : header.length]))