"""Protocol definitions for relay-shim.

Contains:
- ConnState enum for the connection lifecycle
- ResponseStatus enum for the relay's status byte
- Transport Protocol for type checking
- Wire constants for the handshake
- Logging configuration
"""

import logging
import os
from collections.abc import Callable
from enum import IntEnum
from typing import Protocol

# TRACE logging level (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Log level for the CLI (configurable via envvar)
LOG_LEVEL = os.environ.get("RELAY_LOG_LEVEL", "INFO").upper()


class ConnState(IntEnum):
    """Lifecycle states of a relay connection."""

    CLOSED = 0
    CONNECTING = 1
    HANDSHAKING = 2
    CONNECTED = 3


class ResponseStatus(IntEnum):
    """Status codes sent by the relay as a single ASCII digit."""

    UNREACHABLE = 0
    ACCEPTED = 1
    RESET = 2
    REFUSED = 3
    NOT_FOUND = 4
    TIMEOUT = 5

    @property
    def wire_byte(self) -> bytes:
        """The ASCII digit the relay sends for this status."""
        return str(self.value).encode("ascii")

    @classmethod
    def from_byte(cls, value: int) -> "ResponseStatus | None":
        """Map a raw status byte to a status, or None if it is not one."""
        if not ord("0") <= value <= ord("9"):
            return None
        try:
            return cls(value - ord("0"))
        except ValueError:
            return None


class Transport(Protocol):
    """Protocol for the byte stream a connection runs over."""

    def read(self, size: int, /) -> bytes: ...
    def write(self, data: bytes, /) -> int | None: ...
    def close(self) -> None: ...


Dialer = Callable[[str], Transport]

# Read size for the relay's status response
RESPONSE_BUFFER_SIZE = 1024

# Terminates the handshake document so the relay can read a single line
HANDSHAKE_TERMINATOR = b"\n"
