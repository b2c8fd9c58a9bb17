"""Identity certificate packaging for relay-shim.

Contains:
- IdentityCertificate: Client certificate chain plus its private key
- CertificateRecord: Transport-safe form embedded in the handshake
- package_certificates: Convert identity certificates to records
- load_identity_certificate: Load a certificate chain and key from disk
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import (
    dsa,
    ec,
    ed448,
    ed25519,
    rsa,
    x448,
    x25519,
)
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from common.errors import CertificateLoadError, KeyEncodingError

logger = logging.getLogger(__name__)

# Key types the relay accepts in PKCS#8 form
SUPPORTED_KEY_TYPES = (
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    ed25519.Ed25519PrivateKey,
    ed448.Ed448PrivateKey,
    dsa.DSAPrivateKey,
    x25519.X25519PrivateKey,
    x448.X448PrivateKey,
)


@dataclass(frozen=True)
class IdentityCertificate:
    """A client certificate chain (leaf first) and its private key."""

    chain: tuple[x509.Certificate, ...]
    key: PrivateKeyTypes

    @classmethod
    def from_der(
        cls, chain: Sequence[bytes], key: PrivateKeyTypes
    ) -> "IdentityCertificate":
        """Build from DER-encoded certificates, leaf first."""
        try:
            certs = tuple(x509.load_der_x509_certificate(der) for der in chain)
        except ValueError as e:
            raise CertificateLoadError(f"Invalid DER certificate: {e}") from e
        return cls(chain=certs, key=key)


@dataclass
class CertificateRecord:
    """Transport-safe form of an identity certificate."""

    chain: list[str] = field(default_factory=list)  # PEM "CERTIFICATE" blocks
    key: bytes = b""  # PKCS#8 DER


def encode_private_key(key: PrivateKeyTypes) -> bytes:
    """Encode a private key as unencrypted PKCS#8 DER.

    Raises KeyEncodingError if the key type is unsupported or the
    backend refuses to serialize it.
    """
    if not isinstance(key, SUPPORTED_KEY_TYPES):
        raise KeyEncodingError(
            f"Failed to marshal private key: unsupported key type {type(key).__name__}"
        )
    try:
        return key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyEncodingError(f"Failed to marshal private key: {e}") from e


def package_certificates(
    certs: Iterable[IdentityCertificate],
) -> list[CertificateRecord]:
    """Convert identity certificates into handshake records.

    Chain order is preserved. Any key that cannot be encoded aborts the
    whole conversion with KeyEncodingError.
    """
    records = []
    for ident in certs:
        chain = [
            cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for cert in ident.chain
        ]
        records.append(CertificateRecord(chain=chain, key=encode_private_key(ident.key)))
    logger.debug(f"Packaged {len(records)} identity certificate(s)")
    return records


def load_identity_certificate(
    cert_file: str | Path,
    key_file: str | Path,
    password: bytes | None = None,
) -> IdentityCertificate:
    """Load a PEM certificate chain and a PEM or DER private key."""
    try:
        cert_data = Path(cert_file).read_bytes()
        key_data = Path(key_file).read_bytes()
    except OSError as e:
        raise CertificateLoadError(f"Cannot read certificate material: {e}") from e

    try:
        chain = x509.load_pem_x509_certificates(cert_data)
    except ValueError as e:
        raise CertificateLoadError(f"Invalid certificate file {cert_file}: {e}") from e

    try:
        if b"-----BEGIN" in key_data:
            key = serialization.load_pem_private_key(key_data, password=password)
        else:
            key = serialization.load_der_private_key(key_data, password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CertificateLoadError(f"Invalid private key file {key_file}: {e}") from e

    logger.info(f"Loaded identity certificate {cert_file} ({len(chain)} in chain)")
    return IdentityCertificate(chain=tuple(chain), key=key)
