"""Command-line entry point for the mock package server."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from mockhttpd.models.config import ServerConfig
from mockhttpd.models.fault import FaultRule, MatchEnum
from mockhttpd.services.fault_table import load_fault_rules, parse_fault_option
from mockhttpd.services.server import MockServer
from mockhttpd.utils.logging import setup_logger

EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mockhttpd",
        description="Serve fixture files over HTTP, injecting download faults on demand.",
    )
    parser.add_argument("document_root", type=Path, help="Directory to serve")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: %(default)s)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port, 0 for any (default: %(default)s)")
    parser.add_argument("--socket", type=Path, dest="socket_path", help="Listen on a Unix socket instead of TCP")
    parser.add_argument("--log-file", type=Path, help="Write access and diagnostic log here")
    parser.add_argument("--error-log", type=Path, dest="error_log_file", help="Write warnings and errors here")
    parser.add_argument(
        "--fault",
        action="append",
        default=[],
        metavar="KIND:PATTERN",
        help="Inject KIND (not_found, truncate, size_mismatch, slow[@SECONDS], none) "
        "for filenames containing PATTERN. Repeatable, first match wins.",
    )
    parser.add_argument(
        "--fault-regex",
        action="append",
        default=[],
        metavar="KIND:REGEX",
        help="Like --fault but PATTERN is a regular expression",
    )
    parser.add_argument("--fault-file", type=Path, help="JSON file with fault rules, evaluated first")
    parser.add_argument("--timeout", type=float, default=30.0, help="Request read timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Turn parsed arguments into a ServerConfig.

    Raises:
        ValueError: If a fault rule is malformed or the rule file is unusable
        pydantic.ValidationError: If the settings are invalid (e.g. missing root)
    """
    rules: list[FaultRule] = []
    if args.fault_file:
        rules.extend(load_fault_rules(args.fault_file))
    rules.extend(parse_fault_option(text) for text in args.fault)
    rules.extend(parse_fault_option(text, MatchEnum.REGEX) for text in args.fault_regex)

    return ServerConfig(
        document_root=args.document_root,
        host=args.host,
        port=args.port,
        socket_path=args.socket_path,
        log_file=args.log_file,
        error_log_file=args.error_log_file,
        faults=tuple(rules),
        read_timeout=args.timeout,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for running the server."""
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
    except (ValidationError, ValueError) as e:
        print(f"mockhttpd: configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger = setup_logger(
        "mockhttpd",
        log_file=config.log_file,
        error_log_file=config.error_log_file,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    for rule in config.faults:
        logger.info(f"Fault rule: {rule.match.value} {rule.pattern!r} -> {rule.kind.value}")

    try:
        asyncio.run(MockServer(config).serve_forever())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except OSError as e:
        logger.error(f"Cannot listen: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
