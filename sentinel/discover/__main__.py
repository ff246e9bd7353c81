"""Sentinel MCP discovery entry point.

Usage::

    python -m sentinel.discover [--config PATH] [-p PORT] [-n CIDR] ...

Prints the scan report as JSON on stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from sentinel.discovery import (
    ConfigurationError,
    DiscoveryService,
    PortRange,
    ScanConfiguration,
    discover_from_environment,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m sentinel.discover",
        description="Discover MCP servers on localhost and network ranges",
    )
    parser.add_argument("--config", metavar="PATH", help="JSON scan configuration file")
    parser.add_argument(
        "--from-env",
        action="store_true",
        help="Read scan options from SENTINEL_* environment variables",
    )
    parser.add_argument(
        "-p", "--port", dest="ports", type=int, action="append", default=[],
        help="Known MCP port (repeatable)",
    )
    parser.add_argument(
        "--port-range", dest="port_ranges", action="append", default=[], metavar="START-END",
        help="Inclusive localhost port range (repeatable)",
    )
    parser.add_argument(
        "-n", "--network", dest="networks", action="append", default=[], metavar="CIDR",
        help="Network range to scan with the known ports (repeatable)",
    )
    parser.add_argument("--timeout", type=float, help="Per-probe timeout in seconds")
    parser.add_argument("--max-concurrent", type=int, help="Maximum probes in flight")
    parser.add_argument("--deadline", type=float, help="Overall scan deadline in seconds")
    parser.add_argument(
        "--env-servers",
        action="store_true",
        help="Also probe URLs from MCP_SERVER_URL / MCP_SERVERS / MODEL_CONTEXT_PROTOCOL_URL",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")
    return parser


def build_config(args: argparse.Namespace) -> ScanConfiguration:
    if args.config:
        config = ScanConfiguration.load(args.config)
    elif args.from_env:
        config = ScanConfiguration.from_env()
    else:
        config = ScanConfiguration()

    config.known_ports.extend(args.ports)
    config.port_ranges.extend(PortRange.parse(r) for r in args.port_ranges)
    config.network_ranges.extend(args.networks)
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.max_concurrent is not None:
        config.max_concurrent = args.max_concurrent
    if args.deadline is not None:
        config.deadline = args.deadline
    return config


async def run(config: ScanConfiguration, env_servers: bool) -> dict:
    service = DiscoveryService()
    report = await service.scan(config)
    if env_servers:
        await discover_from_environment(service)
    output = report.to_dict()
    output["servers"] = [s.to_dict() for s in service.snapshot()]
    return output


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s", stream=sys.stderr)

    try:
        config = build_config(args)
    except ConfigurationError as exc:
        parser.error(str(exc))

    try:
        output = asyncio.run(run(config, args.env_servers))
    except KeyboardInterrupt:
        print("\nDiscovery cancelled.", file=sys.stderr)
        return 1

    json.dump(output, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
