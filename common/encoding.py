"""Handshake encoding and response classification for relay-shim.

The handshake is a single JSON document terminated by a newline:

  {"username": ..., "interface": ..., "host": ..., "port": ...,
   "ssl": ..., "certs": [{"chain": [base64(PEM), ...], "key": base64(PKCS#8)}]}

The relay answers with one ASCII status digit (see ResponseStatus).
"""

import base64
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from common.certs import CertificateRecord, IdentityCertificate, package_certificates
from common.errors import (
    STATUS_ERRORS,
    DestinationUnreachableError,
    RelayProtocolError,
)
from common.protocol import HANDSHAKE_TERMINATOR, ResponseStatus

logger = logging.getLogger(__name__)


@dataclass
class HandshakeMessage:
    """The single message sent to the relay before any data flows."""

    username: str
    interface: str
    host: str
    port: int
    ssl: bool
    certs: list[CertificateRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Return the wire shape of the message."""
        return {
            "username": self.username,
            "interface": self.interface,
            "host": self.host,
            "port": self.port,
            "ssl": self.ssl,
            "certs": [
                {
                    "chain": [
                        base64.b64encode(pem.encode("ascii")).decode("ascii")
                        for pem in record.chain
                    ],
                    "key": base64.b64encode(record.key).decode("ascii"),
                }
                for record in self.certs
            ],
        }


def build_handshake(
    username: str,
    interface: str,
    host: str,
    port: int,
    ssl: bool,
    identity_certificates: Iterable[IdentityCertificate] = (),
) -> HandshakeMessage:
    """Assemble a handshake message, packaging any identity certificates.

    Raises KeyEncodingError if a private key cannot be encoded.
    """
    return HandshakeMessage(
        username=username,
        interface=interface,
        host=host,
        port=int(port),
        ssl=bool(ssl),
        certs=package_certificates(identity_certificates),
    )


def encode_handshake(msg: HandshakeMessage) -> bytes:
    """Serialize a handshake message to its newline-terminated wire form."""
    return json.dumps(msg.to_dict()).encode("utf-8") + HANDSHAKE_TERMINATOR


def classify_response(data: bytes) -> ResponseStatus:
    """Classify the relay's reply by its first byte.

    Returns ResponseStatus.ACCEPTED on success.

    Raises:
        DestinationUnreachableError: Empty reply or status 0.
        RelayError subclass: Any other failure status (see STATUS_ERRORS).
        RelayProtocolError: First byte is not a known status digit.
    """
    if not data:
        raise DestinationUnreachableError()

    code = data[0]
    if len(data) > 1:
        logger.debug(f"Discarding {len(data) - 1} byte(s) after relay status")

    status = ResponseStatus.from_byte(code)
    if status is None:
        raise RelayProtocolError(
            f"Unrecognised status byte from the relay: {bytes([code])!r}", code=code
        )
    if status == ResponseStatus.ACCEPTED:
        return status

    raise STATUS_ERRORS[status](status=status, code=code)
