"""
modstream - Main Entry Point

Streams Modbus holding registers to browser viewers over WebSockets.

Usage:
    modstream serve                       # Use ./config.yaml (created if missing)
    modstream serve --config my.yaml      # Use custom config file
    modstream serve --dry-run             # Print config and exit
    modstream simulate                    # Run a demo Modbus device on :5020
    modstream init-config --force         # (Re)write a default config file

The server will:
1. Load configuration from YAML (MODSTREAM_CONFIG overrides the path)
2. Serve the viewer page on web_ui_host:web_ui_port
3. Stream live register snapshots to every /ws connection
"""

import argparse
import asyncio
import dataclasses
import os
import sys
from pathlib import Path

from modstream.common.config import (
    AppConfig,
    DEFAULT_CONFIG_PATH,
    Protocol,
    load_config,
    save_config,
)
from modstream.common.logging_setup import configure_all, get_service_logger

logger = get_service_logger("main")


def print_config_summary(config: AppConfig) -> None:
    """Print a summary of the configuration."""
    print("\n" + "=" * 60)
    print("  MODSTREAM - MODBUS LIVE REGISTER VIEWER")
    print("=" * 60)

    if config.protocol == Protocol.RTU:
        print(f"\n  Device: RTU {config.serial_port} "
              f"({config.baudrate} baud, {config.parity}, {config.stopbits} stop)")
    else:
        print(f"\n  Device: TCP {config.server_ip}:{config.server_port}")
    print(f"  Unit ID: {config.slave_id}")

    last = config.start_address + config.quantity - 1
    print(f"\n  Polling:")
    if config.quantity:
        print(f"    - Registers: {config.start_address}-{last} ({config.quantity})")
    else:
        print(f"    - Registers: none")
    print(f"    - Interval: {config.delay_seconds}s")
    print(f"    - Device timeout: {config.timeout}s")

    print(f"\n  Web UI: http://{config.web_ui_host}:{config.web_ui_port}")
    print("=" * 60 + "\n")


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="modstream",
        description="Stream Modbus registers to browser viewers over WebSockets",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("MODSTREAM_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=("json", "text"),
        default=os.environ.get("MODSTREAM_LOG_FORMAT", "json"),
        help="Log output format (default: json)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    default_config = os.environ.get("MODSTREAM_CONFIG", DEFAULT_CONFIG_PATH)

    serve_parser = subparsers.add_parser("serve", help="Run the web viewer")
    serve_parser.add_argument(
        "--config", "-c",
        default=default_config,
        help=f"Path to configuration file (default: {default_config})",
    )
    serve_parser.add_argument("--host", help="Override web_ui_host")
    serve_parser.add_argument("--port", type=int, help="Override web_ui_port")
    serve_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print configuration and exit without starting the server",
    )

    sim_parser = subparsers.add_parser("simulate", help="Run a demo Modbus TCP device")
    sim_parser.add_argument("--host", default="0.0.0.0", help="Host to bind")
    sim_parser.add_argument("--port", type=int, default=5020, help="Port to bind")
    sim_parser.add_argument("--start-address", type=int, default=0,
                            help="First counting register")
    sim_parser.add_argument("--count", type=int, default=10,
                            help="Number of counting registers")

    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "--config", "-c",
        default=default_config,
        help=f"Path to configuration file (default: {default_config})",
    )
    init_parser.add_argument("--force", action="store_true",
                             help="Overwrite an existing file")

    return parser


def run_serve(args: argparse.Namespace) -> int:
    """Load configuration and run the web service."""
    from modstream.services.web.service import main as web_main

    config = load_config(args.config)

    overrides = {}
    if args.host:
        overrides["web_ui_host"] = args.host
    if args.port:
        overrides["web_ui_port"] = args.port
    if overrides:
        config = dataclasses.replace(config, **overrides)

    print_config_summary(config)

    if args.dry_run:
        print("Dry run mode - exiting without starting server")
        return 0

    logger.info("Starting server...")
    print("Press Ctrl+C to stop\n")

    try:
        asyncio.run(web_main(config))
    except KeyboardInterrupt:
        print("\nStopped by user")
    return 0


def run_simulate(args: argparse.Namespace) -> int:
    """Run the demo Modbus device."""
    from modstream.simulator import run_simulator

    try:
        asyncio.run(run_simulator(
            host=args.host,
            port=args.port,
            start_address=args.start_address,
            count=args.count,
        ))
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nStopped by user")
    return 0


def run_init_config(args: argparse.Namespace) -> int:
    """Write a default configuration file."""
    path = Path(args.config)
    if path.exists() and not args.force:
        print(f"{path} already exists (use --force to overwrite)")
        return 1

    save_config(AppConfig(), path)
    print(f"Wrote default configuration to {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_all(args.log_level, args.log_format == "json")

    if args.command == "serve":
        return run_serve(args)
    elif args.command == "simulate":
        return run_simulate(args)
    elif args.command == "init-config":
        return run_init_config(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
