"""Common modules for relay-shim.

This package contains the protocol pieces used by the client:
- protocol: ConnState, ResponseStatus, Transport Protocol, wire constants
- errors: Error taxonomy
- certs: Identity certificate packaging and loading
- encoding: Handshake encoding and response classification
- transport: TCP transport and address parsing
- report: Reporting abstractions
"""

from common.certs import (
    CertificateRecord,
    IdentityCertificate,
    load_identity_certificate,
    package_certificates,
)
from common.encoding import (
    HandshakeMessage,
    build_handshake,
    classify_response,
    encode_handshake,
)
from common.errors import (
    AddressError,
    AlreadyClosedError,
    CertificateLoadError,
    DestinationRefusedError,
    DestinationResetError,
    DestinationTimeoutError,
    DestinationUnreachableError,
    HostNotFoundError,
    InvalidStateError,
    KeyEncodingError,
    ProxyError,
    RelayError,
    RelayProtocolError,
    StreamClosedError,
)
from common.protocol import (
    HANDSHAKE_TERMINATOR,
    RESPONSE_BUFFER_SIZE,
    ConnState,
    Dialer,
    ResponseStatus,
    Transport,
)
from common.transport import SocketTransport, TcpDialer, dial_tcp, parse_address

__all__ = [
    # Protocol
    "ConnState",
    "ResponseStatus",
    "Transport",
    "Dialer",
    "RESPONSE_BUFFER_SIZE",
    "HANDSHAKE_TERMINATOR",
    # Certificates
    "IdentityCertificate",
    "CertificateRecord",
    "package_certificates",
    "load_identity_certificate",
    # Encoding
    "HandshakeMessage",
    "build_handshake",
    "encode_handshake",
    "classify_response",
    # Transport
    "SocketTransport",
    "TcpDialer",
    "dial_tcp",
    "parse_address",
    # Exceptions
    "ProxyError",
    "InvalidStateError",
    "AlreadyClosedError",
    "StreamClosedError",
    "KeyEncodingError",
    "CertificateLoadError",
    "AddressError",
    "RelayError",
    "DestinationUnreachableError",
    "DestinationResetError",
    "DestinationRefusedError",
    "HostNotFoundError",
    "DestinationTimeoutError",
    "RelayProtocolError",
]
