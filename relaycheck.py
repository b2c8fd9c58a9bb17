#!/usr/bin/env python3
"""Relay handshake check tool.

Connects to a destination through a relay, reports the handshake result and
optionally pipes stdin/stdout through the established stream.
"""

import argparse
import logging
import sys

from client.runner import ClientConfig, ExitCode, run_client
from common.errors import AddressError
from common.protocol import LOG_LEVEL
from common.transport import parse_address

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    defaults = ClientConfig.env_defaults()
    parser = argparse.ArgumentParser(
        description="Connect to a destination through a relay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s irc.example.org:6667                   Check the relay can reach a host
  %(prog)s -r 10.0.0.5:7999 --tls irc.example.org:6697
  %(prog)s --cert client.pem client.key --tls irc.example.org:6697
  %(prog)s --pipe irc.example.org:6667            Pipe stdin/stdout through the relay

Environment:
  RELAY_ADDR, RELAY_USERNAME, RELAY_INTERFACE, RELAY_LOG_LEVEL
""",
    )
    parser.add_argument("destination", help="Destination as host:port")
    parser.add_argument(
        "-r",
        "--relay",
        default=defaults["relay"],
        help=f"Relay address (default: {defaults['relay']})",
    )
    parser.add_argument(
        "-u", "--username", default=defaults["username"], help="Username presented to the relay"
    )
    parser.add_argument(
        "-i",
        "--interface",
        default=defaults["interface"],
        help="Egress interface the relay should bind to",
    )
    parser.add_argument(
        "--tls", action="store_true", help="Ask the relay to use TLS toward the destination"
    )
    parser.add_argument(
        "--cert",
        nargs=2,
        action="append",
        default=[],
        metavar=("CERT", "KEY"),
        help="Client certificate chain and key files (repeatable)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=None,
        help=(
            "Timeout in seconds for the dial and handshake; "
            "--pipe streams without one (default: none)"
        ),
    )
    parser.add_argument(
        "--pipe", action="store_true", help="Pipe stdin/stdout through the connection"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else LOG_LEVEL,
        stream=sys.stderr,
    )

    try:
        dest_host, dest_port = parse_address(args.destination)
    except AddressError as e:
        logger.error(f"Invalid destination: {e}")
        return ExitCode.CONFIG_ERROR

    config = ClientConfig(
        relay=args.relay,
        dest_host=dest_host,
        dest_port=dest_port,
        username=args.username,
        interface=args.interface,
        dest_tls=args.tls,
        cert_files=[(cert, key) for cert, key in args.cert],
        timeout_s=args.timeout,
        pipe=args.pipe,
    )
    return run_client(config)


if __name__ == "__main__":
    sys.exit(main())
