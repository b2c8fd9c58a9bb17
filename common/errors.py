"""Exceptions for relay-shim.

Transport failures are not wrapped: whatever the transport raises (an
OSError for sockets) reaches the caller unchanged.
"""

from common.protocol import ResponseStatus


class ProxyError(Exception):
    """Base class for relay-shim errors."""

    pass


class InvalidStateError(ProxyError):
    """Raised when an operation is not allowed in the connection's current state."""

    pass


class AlreadyClosedError(InvalidStateError):
    """Raised when closing a connection that is already closed."""

    pass


class StreamClosedError(ProxyError):
    """Raised when writing to a closed connection."""

    pass


class KeyEncodingError(ProxyError):
    """Raised when a private key cannot be encoded as PKCS#8."""

    pass


class CertificateLoadError(ProxyError):
    """Raised when certificate or key files cannot be loaded."""

    pass


class AddressError(ProxyError, ValueError):
    """Raised when a relay address is not of the form host:port."""

    pass


class RelayError(ProxyError):
    """Raised when the relay reports that the handshake failed.

    status is None when the relay closed without replying or sent a byte
    outside the status vocabulary. code is the raw status byte, or None
    when nothing was received.
    """

    kind = "relay_error"
    default_message = "The relay rejected the connection"

    def __init__(
        self,
        message: str | None = None,
        status: ResponseStatus | None = None,
        code: int | None = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.status = status
        self.code = code


class DestinationUnreachableError(RelayError):
    kind = "unreachable"
    default_message = "The proxy could not connect to the destination"


class DestinationResetError(RelayError):
    kind = "conn_reset"
    default_message = "Connection reset"


class DestinationRefusedError(RelayError):
    kind = "conn_refused"
    default_message = "Connection refused"


class HostNotFoundError(RelayError):
    kind = "not_found"
    default_message = "Host not found"


class DestinationTimeoutError(RelayError):
    kind = "conn_timeout"
    default_message = "Connection timed out"


class RelayProtocolError(RelayError):
    kind = "protocol"
    default_message = "Unrecognised status from the relay"


# Status codes that fail the handshake, mapped to the error raised for them
STATUS_ERRORS: dict[ResponseStatus, type[RelayError]] = {
    ResponseStatus.UNREACHABLE: DestinationUnreachableError,
    ResponseStatus.RESET: DestinationResetError,
    ResponseStatus.REFUSED: DestinationRefusedError,
    ResponseStatus.NOT_FOUND: HostNotFoundError,
    ResponseStatus.TIMEOUT: DestinationTimeoutError,
}
