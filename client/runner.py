"""Client runner for relay-shim.

Contains run_client() which connects through the relay, prints a handshake
report and optionally pipes stdin/stdout through the connection, returning
an exit code based on the result.
"""

import io
import logging
import os
import sys
import threading
from dataclasses import dataclass, field
from enum import IntEnum

from client.connection import DEFAULT_READ_SIZE, ProxyConnection
from common.certs import IdentityCertificate, load_identity_certificate
from common.errors import (
    AddressError,
    CertificateLoadError,
    KeyEncodingError,
    ProxyError,
    RelayError,
)
from common.protocol import Dialer
from common.report import HandshakeReport
from common.transport import TcpDialer

logger = logging.getLogger(__name__)

DEFAULT_RELAY_ADDR = "127.0.0.1:7999"
DEFAULT_INTERFACE = ""


class ExitCode(IntEnum):
    """Exit codes for client operations."""

    SUCCESS = 0  # Handshake accepted (and pipe finished, if requested)
    HANDSHAKE_FAILED = 1  # Relay reported a failure status
    TRANSPORT_ERROR = 2  # Dial, read or write failed
    CONFIG_ERROR = 3  # Bad address or certificate material


@dataclass
class ClientConfig:
    """Resolved settings for a relay connection."""

    relay: str
    dest_host: str
    dest_port: int
    username: str = ""
    interface: str = DEFAULT_INTERFACE
    dest_tls: bool = False
    cert_files: list[tuple[str, str]] = field(default_factory=list)  # (cert, key)
    timeout_s: float | None = None
    pipe: bool = False

    @classmethod
    def env_defaults(cls) -> dict[str, str]:
        """Settings taken from the environment when not given on the command line."""
        return {
            "relay": os.environ.get("RELAY_ADDR", DEFAULT_RELAY_ADDR),
            "username": os.environ.get("RELAY_USERNAME", ""),
            "interface": os.environ.get("RELAY_INTERFACE", DEFAULT_INTERFACE),
        }


def load_certificates(cert_files: list[tuple[str, str]]) -> list[IdentityCertificate]:
    """Load every (cert, key) file pair."""
    return [load_identity_certificate(cert, key) for cert, key in cert_files]


def pipe_stream(
    conn: ProxyConnection,
    stdin: io.BufferedIOBase,
    stdout: io.BufferedIOBase,
) -> None:
    """Copy stdin to the connection and the connection to stdout until EOF."""

    def upstream() -> None:
        try:
            while chunk := stdin.read1(DEFAULT_READ_SIZE):
                conn.write(chunk)
        except (OSError, ProxyError) as e:
            logger.warning(f"Stopped forwarding stdin: {e}")
            return
        logger.debug("stdin closed")

    sender = threading.Thread(target=upstream, daemon=True)
    sender.start()

    while True:
        data = conn.read(DEFAULT_READ_SIZE)
        if not data:
            break
        stdout.write(data)
        stdout.flush()
    logger.debug("Relay stream ended")


def run_client(
    config: ClientConfig,
    dialer: Dialer | None = None,
    stdin: io.BufferedIOBase | None = None,
    stdout: io.BufferedIOBase | None = None,
) -> int:
    """Run client: handshake + optional pipe. Returns exit code."""
    tcp_dialer = None
    if dialer is None:
        dialer = tcp_dialer = TcpDialer(timeout=config.timeout_s)

    try:
        certs = load_certificates(config.cert_files)
    except CertificateLoadError as e:
        logger.error(f"Failed to load certificates: {e}")
        HandshakeReport(connected=False, error=e).print()
        return ExitCode.CONFIG_ERROR

    conn = ProxyConnection(
        username=config.username,
        interface=config.interface,
        dest_host=config.dest_host,
        dest_port=config.dest_port,
        dest_tls=config.dest_tls,
        identity_certificates=certs,
        dialer=dialer,
    )
    destination = f"{config.dest_host}:{config.dest_port}"
    logger.info(f"Client: connecting to {destination} via {config.relay}...")

    try:
        conn.connect(config.relay)
    except RelayError as e:
        logger.warning(f"Relay refused {destination}: {e}")
        HandshakeReport(connected=False, error=e).print()
        return ExitCode.HANDSHAKE_FAILED
    except (AddressError, KeyEncodingError) as e:
        logger.error(f"Invalid configuration: {e}")
        HandshakeReport(connected=False, error=e).print()
        return ExitCode.CONFIG_ERROR
    except OSError as e:
        logger.error(f"Transport error: {e}")
        HandshakeReport(connected=False, error=e).print()
        return ExitCode.TRANSPORT_ERROR

    try:
        if not config.pipe:
            HandshakeReport(
                connected=True,
                relay=config.relay,
                destination=destination,
                tls=config.dest_tls,
                cert_count=len(certs),
            ).print()
            return ExitCode.SUCCESS

        # stdout carries the stream, so no report is printed
        logger.info(f"Piping stdin/stdout through {destination}")
        if tcp_dialer is not None and tcp_dialer.transport is not None:
            # The timeout covers dial and handshake; an idle stream may block
            tcp_dialer.transport.settimeout(None)
        pipe_stream(
            conn,
            stdin if stdin is not None else sys.stdin.buffer,
            stdout if stdout is not None else sys.stdout.buffer,
        )
        return ExitCode.SUCCESS

    except (OSError, ProxyError) as e:
        logger.error(f"Stream error: {e}")
        return ExitCode.TRANSPORT_ERROR

    finally:
        if not conn.closed:
            conn.close()
