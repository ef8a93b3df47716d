"""A user-space TCP/IP stack: byte streams, reassembly, TCP sender and receiver, ARP and routing."""

__version__ = "0.1.0"