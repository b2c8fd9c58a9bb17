"""Relay connection state machine for relay-shim.

A ProxyConnection dials the relay, sends one handshake message describing
the destination and identity certificates, and reads a single status byte.
Once the relay accepts, read() and write() pass bytes straight through to
the transport.

Lifecycle:
  CLOSED -> CONNECTING -> HANDSHAKING -> CONNECTED -> CLOSED
  Any failure during connect() returns to CLOSED with the transport closed.

Each instance is single-use: create a new one for every connection attempt.
"""

import logging
import threading
from collections.abc import Iterable
from types import TracebackType

from common.certs import IdentityCertificate
from common.encoding import build_handshake, classify_response, encode_handshake
from common.errors import AlreadyClosedError, InvalidStateError, StreamClosedError
from common.protocol import (
    RESPONSE_BUFFER_SIZE,
    TRACE,
    ConnState,
    Dialer,
    Transport,
)
from common.transport import dial_tcp

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 4096

# Attributes that are part of the handshake and frozen once it is sent
_HANDSHAKE_FIELDS = frozenset(
    {"username", "interface", "dest_host", "dest_port", "dest_tls", "identity_certificates"}
)


class ProxyConnection:
    """Byte stream to a destination host, established through a relay."""

    def __init__(
        self,
        username: str = "",
        interface: str = "",
        dest_host: str = "",
        dest_port: int = 0,
        dest_tls: bool = False,
        identity_certificates: Iterable[IdentityCertificate] = (),
        dialer: Dialer = dial_tcp,
    ) -> None:
        self._lock = threading.Lock()
        self._state = ConnState.CLOSED
        self._transport: Transport | None = None
        self._dialer = dialer
        self._attempted = False
        self._handshake_sent = False

        self.username = username
        self.interface = interface
        self.dest_host = dest_host
        self.dest_port = dest_port
        self.dest_tls = dest_tls
        self.identity_certificates = list(identity_certificates)

    def __setattr__(self, name: str, value: object) -> None:
        if name in _HANDSHAKE_FIELDS and getattr(self, "_handshake_sent", False):
            raise InvalidStateError(f"Cannot change {name} after the handshake was sent")
        super().__setattr__(name, value)

    def __repr__(self) -> str:
        return (
            f"ProxyConnection(state={self._state.name}, "
            f"dest={self.dest_host}:{self.dest_port}, tls={self.dest_tls})"
        )

    def __enter__(self) -> "ProxyConnection":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.state != ConnState.CLOSED:
            self.close()

    @property
    def state(self) -> ConnState:
        with self._lock:
            return self._state

    @property
    def closed(self) -> bool:
        return self.state == ConnState.CLOSED

    def connect(self, address: str) -> None:
        """Dial the relay at address and perform the handshake.

        Blocks until the relay accepts or the attempt fails. On any
        failure the transport is closed and the state is CLOSED.

        Raises:
            InvalidStateError: Not CLOSED, or this instance was already used.
            KeyEncodingError: An identity key could not be encoded (nothing sent).
            RelayError subclass: The relay reported a failure or sent no reply.
            OSError: Dialing, writing or reading the transport failed.
            StreamClosedError: close() ran before the attempt finished.
        """
        with self._lock:
            if self._state != ConnState.CLOSED or self._attempted:
                raise InvalidStateError(
                    f"Cannot connect from state {self._state.name}; "
                    "use a new connection for each attempt"
                )
            self._attempted = True
            self._state = ConnState.CONNECTING

        logger.info(f"Dialing relay {address}")
        try:
            transport = self._dialer(address)
        except BaseException:
            with self._lock:
                self._state = ConnState.CLOSED
            raise

        with self._lock:
            closed_while_dialing = self._state is not ConnState.CONNECTING
            if not closed_while_dialing:
                self._transport = transport
                self._state = ConnState.HANDSHAKING
        if closed_while_dialing:
            transport.close()
            raise StreamClosedError("Connection closed while dialing")

        try:
            self._handshake(transport)
        except BaseException as e:
            logger.warning(f"Handshake with relay {address} failed: {e}")
            self._release(transport)
            raise

        with self._lock:
            if self._transport is not transport:
                # close() ran while the handshake was in flight
                raise StreamClosedError("Connection closed during handshake")
            self._state = ConnState.CONNECTED
        logger.info(f"Relay {address} connected to {self.dest_host}:{self.dest_port}")

    def _handshake(self, transport: Transport) -> None:
        certs = tuple(self.identity_certificates)
        msg = build_handshake(
            username=self.username,
            interface=self.interface,
            host=self.dest_host,
            port=self.dest_port,
            ssl=self.dest_tls,
            identity_certificates=certs,
        )
        payload = encode_handshake(msg)

        self.identity_certificates = certs
        self._handshake_sent = True
        transport.write(payload)
        logger.debug(
            f"Sent handshake ({len(payload)} bytes, {len(msg.certs)} cert(s), "
            f"dest={msg.host}:{msg.port}, ssl={msg.ssl})"
        )

        response = transport.read(RESPONSE_BUFFER_SIZE)
        logger.log(TRACE, f"Relay response: {response!r}")
        classify_response(response)

    def _release(self, transport: Transport) -> None:
        """Close transport if it is still owned and mark the connection CLOSED."""
        with self._lock:
            owned = self._transport is transport
            self._transport = None
            self._state = ConnState.CLOSED
        if owned:
            transport.close()

    def close(self) -> None:
        """Close the connection and its transport.

        Raises AlreadyClosedError if the connection is already closed.
        """
        with self._lock:
            if self._state == ConnState.CLOSED:
                raise AlreadyClosedError("Connection already closed")
            transport = self._transport
            self._transport = None
            self._state = ConnState.CLOSED

        if transport is not None:
            transport.close()
        logger.info("Relay connection closed")

    def read(self, size: int = DEFAULT_READ_SIZE) -> bytes | None:
        """Read up to size bytes from the destination.

        Returns None while the handshake is pending and b"" once closed.
        """
        with self._lock:
            state = self._state
            transport = self._transport

        if state in (ConnState.CONNECTING, ConnState.HANDSHAKING):
            return None
        if state == ConnState.CLOSED or transport is None:
            return b""
        return transport.read(size)

    def write(self, data: bytes) -> int | None:
        """Write data to the destination.

        Returns 0 while the handshake is pending.
        Raises StreamClosedError once closed.
        """
        with self._lock:
            state = self._state
            transport = self._transport

        if state in (ConnState.CONNECTING, ConnState.HANDSHAKING):
            return 0
        if state == ConnState.CLOSED or transport is None:
            raise StreamClosedError("Write to closed connection")
        return transport.write(data)
