#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import argparse
import logging
import os
import sys
from enum import IntEnum

import uvicorn

from iotc.transform_adapter.lib.constants import (
    DEFAULT_HOST,
    DEFAULT_LOG_LEVEL,
    ENV_BRIDGE_URL,
    ENV_CONFIG_PATH,
    ENV_LOG_LEVEL,
    ENV_PORT,
    TRANSFORM_ADAPTER_LOGGER_NAME,
)
from iotc.transform_adapter.lib.load_config import load_config
from iotc.transform_adapter.server.app import create_adapter
from iotc.transform_adapter.server.errors import ConfigurationError
from iotc.transform_adapter.server.route_table import RouteTable
from iotc.transform_adapter.server.transform_cache import TransformCache


# Exit codes for the CLI
class ExitCode(IntEnum):
    # Common linux codes (0-9)
    GEN_SUCCESS = 0  # Generic success for any command
    GEN_ERROR = 1  # Unexpected errors
    INIT_ERROR = 2  # Initialization errors (missing/invalid settings)

    # Config errors (10-19)
    CONFIG_INVALID = 10


logger = logging.getLogger(TRANSFORM_ADAPTER_LOGGER_NAME)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.captureWarnings(True)


def parse_port(value) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ValueError("invalid port: %r" % value)
    if not 0 < port < 65536:
        raise ValueError("invalid port: %r" % value)
    return port


def serve(args) -> ExitCode:
    """Load config, build the adapter and serve it until interrupted."""
    try:
        port = parse_port(args.port)
    except ValueError as e:
        logger.critical("%s", e)
        return ExitCode.INIT_ERROR

    if not args.bridge_url:
        logger.critical("Missing Bridge URL (set %s or --bridge-url)", ENV_BRIDGE_URL)
        return ExitCode.INIT_ERROR

    if not args.config:
        logger.critical("Missing config file path (set %s or --config)", ENV_CONFIG_PATH)
        return ExitCode.INIT_ERROR

    try:
        messages = load_config(args.config)
        adapter = create_adapter(messages, args.bridge_url)
    except ConfigurationError as e:
        logger.critical("Unable to load config: %s", e)
        return ExitCode.CONFIG_INVALID

    logger.info("Server listening on port %d", port)
    uvicorn.run(adapter.app, host=args.host, port=port, log_config=None)
    return ExitCode.GEN_SUCCESS


def check_config(args) -> ExitCode:
    """Validate the config file and compile all of its queries, without serving."""
    if not args.config:
        logger.critical("Missing config file path (set %s or --config)", ENV_CONFIG_PATH)
        return ExitCode.INIT_ERROR

    try:
        table = RouteTable.build(load_config(args.config), TransformCache())
    except ConfigurationError as e:
        logger.error("Config check failed: %s", e)
        print("Config check failed: %s" % e)
        return ExitCode.CONFIG_INVALID

    print("Config OK: %d route(s)" % len(table))
    for route in table:
        print("  POST %s" % route.path)
    return ExitCode.GEN_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iotc-transform-adapter",
        description="Forward device HTTP messages to the IoT Central Device Bridge, reshaped with jq",
        epilog="""
Example:
  PORT=3000 BRIDGE_URL=https://bridge.example.com CONFIG_PATH=./config.json iotc-transform-adapter
  iotc-transform-adapter check-config --config ./config.json
""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument("--config", default=os.environ.get(ENV_CONFIG_PATH), help="Path to the JSON config file")
    parser.add_argument("--port", default=os.environ.get(ENV_PORT), help="Listen port")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Listen address")
    parser.add_argument("--bridge-url", default=os.environ.get(ENV_BRIDGE_URL), help="Device Bridge base URL")

    subparsers = parser.add_subparsers(dest="command", title="Available commands", metavar="<command>")
    serve_parser = subparsers.add_parser("serve", help="Run the adapter HTTP server (default)")
    check_parser = subparsers.add_parser("check-config", help="Validate the config file and exit")

    # Options may also follow the command; SUPPRESS keeps values given before it
    for p in (serve_parser, check_parser):
        p.add_argument("--config", default=argparse.SUPPRESS, help="Path to the JSON config file")
    serve_parser.add_argument("--port", default=argparse.SUPPRESS, help="Listen port")
    serve_parser.add_argument("--host", default=argparse.SUPPRESS, help="Listen address")
    serve_parser.add_argument("--bridge-url", default=argparse.SUPPRESS, help="Device Bridge base URL")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "check-config":
        return int(check_config(args))
    try:
        return int(serve(args))
    except KeyboardInterrupt:
        return int(ExitCode.GEN_SUCCESS)
    except Exception as e:
        logger.critical("Adapter stopped with unexpected error: %r", e)
        return int(ExitCode.GEN_ERROR)


if __name__ == "__main__":
    sys.exit(main())
