"""TCP transport for relay-shim.

Contains:
- parse_address: Split a host:port (or [v6]:port) relay address
- SocketTransport: Transport over a connected socket
- dial_tcp: Open a TCP connection to the relay
- TcpDialer: dial_tcp with a fixed timeout, remembering the transport
"""

import logging
import socket

from common.errors import AddressError

logger = logging.getLogger(__name__)


def parse_address(address: str) -> tuple[str, int]:
    """Parse "host:port" into (host, port). IPv6 hosts must be bracketed."""
    host, sep, port_str = address.rpartition(":")
    if not sep or not host:
        raise AddressError(f"Missing port in address {address!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise AddressError(f"IPv6 address must be bracketed: {address!r}")

    try:
        port = int(port_str)
    except ValueError as e:
        raise AddressError(f"Invalid port in address {address!r}") from e
    if not 0 < port < 65536:
        raise AddressError(f"Port out of range in address {address!r}")

    return host, port


class SocketTransport:
    """Transport backed by a connected stream socket."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    def read(self, size: int, /) -> bytes:
        return self._sock.recv(size)

    def write(self, data: bytes, /) -> int:
        self._sock.sendall(data)
        return len(data)

    def settimeout(self, timeout: float | None) -> None:
        self._sock.settimeout(timeout)

    def close(self) -> None:
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer already gone; close() below still releases the fd
            pass
        self._sock.close()


def dial_tcp(address: str, timeout: float | None = None) -> SocketTransport:
    """Open a TCP connection to address.

    timeout applies to the dial and every later socket operation until
    changed with SocketTransport.settimeout(); None blocks indefinitely.
    """
    host, port = parse_address(address)
    sock = socket.create_connection((host, port), timeout=timeout)
    logger.debug(f"TCP connection to {host}:{port} established (timeout={timeout})")
    return SocketTransport(sock)


class TcpDialer:
    """Dialer over dial_tcp that keeps the transport it opened."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self.transport: SocketTransport | None = None

    def __call__(self, address: str) -> SocketTransport:
        self.transport = dial_tcp(address, timeout=self.timeout)
        return self.transport
