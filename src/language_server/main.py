"""CHIP-8 Language Server Main Entry Point

Command-line interface for the CHIP-8 assembly language server.
"""

import sys
import os
import argparse
import logging

# Add src/ to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from language_server.server import c8_server


def main() -> int:
    """Main entry point for the language server."""
    parser = argparse.ArgumentParser(
        description="CHIP-8 Language Server - Provides LSP support for CHIP-8 assembly",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  c8-language-server                      # Start language server on stdio
  c8-language-server --tcp                # Start language server on TCP
  c8-language-server --tcp --port 2087    # Start on specific TCP port
"""
    )

    parser.add_argument(
        "--tcp",
        action="store_true",
        help="Use TCP transport instead of stdio"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=2087,
        help="Port number for TCP (default: 2087)"
    )

    parser.add_argument(
        "--host",
        default="localhost",
        help="Host address for TCP (default: localhost)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="CHIP-8 Language Server v0.1.0"
    )

    args = parser.parse_args()

    # stdout carries the protocol on stdio, so logs go to stderr
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        stream=sys.stderr)

    try:
        if args.tcp:
            print(f"Starting CHIP-8 Language Server on TCP {args.host}:{args.port}")
            c8_server.start_tcp(args.host, args.port)
        else:
            print("Starting CHIP-8 Language Server on stdio", file=sys.stderr)
            c8_server.start_io()

        return 0

    except KeyboardInterrupt:
        print("\nServer interrupted by user", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
