"""Reporting abstractions for relay-shim.

Contains:
- Report ABC: Base class for all reports
- HandshakeReport: Report after the relay handshake completes
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from common.errors import RelayError


class Report(ABC):
    """Abstract base class for reports."""

    @abstractmethod
    def print(self) -> None:
        """Print the report to stdout."""
        pass

    @abstractmethod
    def success(self) -> bool:
        """Return True if the report indicates success."""
        pass


@dataclass
class HandshakeReport(Report):
    """Report after the relay handshake completes.

    When connected=True, relay and destination are required.
    When connected=False, error should be set.
    """

    connected: bool
    relay: str | None = None
    destination: str | None = None
    tls: bool = False
    cert_count: int = 0
    error: Exception | None = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.connected:
            if self.relay is None:
                raise ValueError("relay is required when connected=True")
            if self.destination is None:
                raise ValueError("destination is required when connected=True")

    def print(self) -> None:
        """Print the handshake report."""
        if self.connected:
            tls = ", tls" if self.tls else ""
            print(f"Handshake: SUCCESS (relay={self.relay}, dest={self.destination}{tls})")
            if self.cert_count:
                print(f"Identity certificates: {self.cert_count}")
        elif isinstance(self.error, RelayError):
            print(f"Handshake: FAILED ({self.error.kind}: {self.error})")
        else:
            print(f"Handshake: FAILED ({self.error})")

    def success(self) -> bool:
        """Return True if the handshake succeeded."""
        return self.connected
