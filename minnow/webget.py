"""Fetch a URL over HTTP/1.1 and copy the raw response to standard output."""

from __future__ import annotations

import socket
import sys
from typing import BinaryIO, Sequence

HTTP_PORT = 80
_CHUNK = 4096


def build_request(host: str, path: str) -> bytes:
    """The HTTP/1.1 GET request for ``path`` on ``host``."""
    request = (
        f"GET {path} HTTP/1.1\r\n"
        f"Host: {host}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return request.encode()


def get_url(host: str, path: str, out: BinaryIO | None = None) -> None:
    """Request ``path`` from ``host`` and write the response to ``out`` until the server closes."""
    print(f"Function called: get_URL({host}, {path})", file=sys.stderr)
    if out is None:
        out = sys.stdout.buffer
    with socket.create_connection((host, HTTP_PORT)) as sock:
        sock.sendall(build_request(host, path))
        while chunk := sock.recv(_CHUNK):
            out.write(chunk)
    out.flush()


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point: ``webget HOST PATH``."""
    args = sys.argv[1:] if argv is None else list(argv)
    prog = "webget"
    if len(args) != 2:
        print(f"Usage: {prog} HOST PATH", file=sys.stderr)
        print(f"\tExample: {prog} stanford.edu /class/cs144", file=sys.stderr)
        return 1
    host, path = args
    try:
        get_url(host, path)
    except Exception as exc:  # report any failure and exit non-zero
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())