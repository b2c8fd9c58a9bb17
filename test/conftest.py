"""pytest configuration and fixtures for relay-shim tests.

Provides:
- MockTransport: Scripted in-memory transport for unit tests
- FakeRelay: Threaded loopback TCP relay for integration tests
- Certificate fixtures generated with cryptography
- Markers for unit vs integration tests
"""

import datetime
import io
import json
import socket
import threading
import time
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from common.certs import IdentityCertificate


class MockTransport:
    """Mock transport for unit testing.

    Writes are recorded in `written`. Reads are served from a buffer of
    scripted relay output; an empty buffer reads as end of stream.
    """

    def __init__(self, response: bytes = b"") -> None:
        self._incoming = io.BytesIO(response)
        self._lock = threading.Lock()
        self.written = bytearray()
        self.writes: list[bytes] = []
        self.reads = 0
        self.closed = False
        self.close_calls = 0
        self.read_error: OSError | None = None
        self.write_error: OSError | None = None

    def read(self, size: int, /) -> bytes:
        with self._lock:
            self.reads += 1
            if self.read_error is not None:
                raise self.read_error
            return self._incoming.read(size)

    def write(self, data: bytes, /) -> int:
        with self._lock:
            if self.write_error is not None:
                raise self.write_error
            self.writes.append(bytes(data))
            self.written.extend(data)
            return len(data)

    def close(self) -> None:
        with self._lock:
            self.closed = True
            self.close_calls += 1

    def inject(self, data: bytes) -> None:
        """Append data to the read buffer as if sent by the relay."""
        with self._lock:
            pos = self._incoming.tell()
            self._incoming.seek(0, 2)
            self._incoming.write(data)
            self._incoming.seek(pos)


class MockDialer:
    """Dialer returning a fixed transport and recording dialed addresses."""

    def __init__(self, transport: MockTransport | None = None, error: OSError | None = None) -> None:
        self.transport = transport
        self.error = error
        self.addresses: list[str] = []

    def __call__(self, address: str) -> MockTransport:
        self.addresses.append(address)
        if self.error is not None:
            raise self.error
        assert self.transport is not None
        return self.transport


def handshake_json(written: bytes) -> dict:
    """Decode a handshake written to a transport, checking its terminator."""
    assert written.endswith(b"\n")
    assert written.count(b"\n") == 1
    return json.loads(written[:-1])


class FakeRelay:
    """Minimal relay for integration tests.

    Accepts one connection at a time, records the handshake line, replies
    with `status` (nothing if None) and then echoes data back until the
    client disconnects. Each echo waits `echo_delay` seconds; with
    `echo_once` the relay hangs up after the first echo.
    """

    def __init__(
        self, status: bytes | None = b"1", echo_delay: float = 0.0, echo_once: bool = False
    ) -> None:
        self.status = status
        self.echo_delay = echo_delay
        self.echo_once = echo_once
        self.handshakes: list[dict] = []
        self._server = socket.create_server(("127.0.0.1", 0))
        self._server.settimeout(0.2)
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._running = True
        self._thread.start()

    @property
    def address(self) -> str:
        host, port = self._server.getsockname()[:2]
        return f"{host}:{port}"

    def _serve(self) -> None:
        while self._running:
            try:
                conn, _ = self._server.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            with conn:
                self._handle(conn)

    def _handle(self, conn: socket.socket) -> None:
        conn.settimeout(5.0)
        # The client sends nothing after the handshake until it sees the status
        with conn.makefile("rb") as reader:
            line = reader.readline()
        if not line:
            return
        self.handshakes.append(json.loads(line))
        if self.status is None:
            return
        conn.sendall(self.status)
        while True:
            try:
                data = conn.recv(4096)
            except OSError:
                return
            if not data:
                return
            time.sleep(self.echo_delay)
            conn.sendall(data)
            if self.echo_once:
                return

    def close(self) -> None:
        self._running = False
        self._server.close()
        self._thread.join(timeout=5)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (loopback TCP)")


def _make_cert(
    subject_cn: str,
    key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
    issuer_cn: str | None = None,
    issuer_key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey | None = None,
) -> x509.Certificate:
    now = datetime.datetime.now(datetime.timezone.utc)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, subject_cn)])
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_cn or subject_cn)])
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(issuer_key or key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def ec_identity() -> IdentityCertificate:
    """Self-signed EC client certificate with a one-entry chain."""
    key = ec.generate_private_key(ec.SECP256R1())
    return IdentityCertificate(chain=(_make_cert("client", key),), key=key)


@pytest.fixture(scope="session")
def rsa_identity() -> IdentityCertificate:
    """RSA client certificate with a leaf + intermediate chain."""
    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    leaf_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ca = _make_cert("intermediate", ca_key)
    leaf = _make_cert("leaf", leaf_key, issuer_cn="intermediate", issuer_key=ca_key)
    return IdentityCertificate(chain=(leaf, ca), key=leaf_key)


@pytest.fixture
def identity_files(tmp_path: Path, rsa_identity: IdentityCertificate) -> tuple[Path, Path]:
    """Write the RSA identity to a PEM chain file and a PKCS#8 PEM key file."""
    cert_path = tmp_path / "client.pem"
    key_path = tmp_path / "client.key"
    cert_path.write_bytes(
        b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in rsa_identity.chain)
    )
    key_path.write_bytes(
        rsa_identity.key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return cert_path, key_path


@pytest.fixture
def fake_relay() -> Generator[Callable[..., FakeRelay], None, None]:
    """Factory for FakeRelay instances, closed after the test."""
    relays: list[FakeRelay] = []

    def make(status: bytes | None = b"1", **kwargs: object) -> FakeRelay:
        relay = FakeRelay(status, **kwargs)  # type: ignore[arg-type]
        relays.append(relay)
        return relay

    yield make

    for relay in relays:
        relay.close()
