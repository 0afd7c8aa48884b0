#!/usr/bin/env python3
"""
CLI entry point for the DriftPick WebSocket Server.

Usage:
    python -m driftpick.server.run_server [--host HOST] [--port PORT] [--config CONFIG]
"""

import argparse
import sys

from driftpick.server.websocket_server import run_server


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="DriftPick WebSocket Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Start server on default port (8765):
        python -m driftpick.server.run_server

    Start server on custom port with a custom config:
        python -m driftpick.server.run_server --port 9000 --config my_config.yaml

Connect the browser extension to ws://localhost:8765, send
{"type": "command", "command": "start_tracking"} and publish target
rectangles with {"type": "targets", "targets": [...]}.
        """
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host address to bind to (default: 127.0.0.1 for localhost only)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8765,
        help="Port to listen on (default: 8765)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/config.yaml",
        help="Path to configuration file (default: config/config.yaml)"
    )
    args = parser.parse_args(argv)

    print(f"DriftPick server: ws://{args.host}:{args.port} (config: {args.config})")

    try:
        run_server(host=args.host, port=args.port, config_path=args.config)
    except OSError as e:
        print(f"\nError: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
