"""Client package for relay-shim.

Contains the relay connection and its runner:
- connection: ProxyConnection state machine and pass-through I/O

Note: run_client and ExitCode are not exported here. Import directly from
client.runner when needed.
"""

from client.connection import ProxyConnection

__all__ = [
    "ProxyConnection",
]
