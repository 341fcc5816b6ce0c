"""
Collusion oracle CLI entry point.

Run the oracle against a deployed contract and live chain data, or fully
offline against a recorded fixture.

Usage::

    python -m collusion_oracle --config oracle.yaml
    python -m collusion_oracle --fixture scenario.yaml --target 0x...dEaD
    python -m collusion_oracle --config oracle.yaml --status-port 5052 -v

Options:
    --config        Path to configuration YAML (environment variables override it)
    --fixture       Run offline: fixture chain data and an in-memory ledger
                    seeded with the fixture's declarations
    --target        Address to censor (overrides TARGET_ADDRESS)
    --status-port   Serve /oracle/v0/status and /metrics on this port
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from collusion_oracle.config import OracleConfig
from collusion_oracle.node import OracleNode

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    """Log formatter with ANSI colors per level."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)

        timestamp = self.formatTime(record, self.datefmt)
        colored_time = f"{self.CYAN}{timestamp}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"

        return f"{colored_time} {levelname} {name}: {record.getMessage()}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure logging for the oracle with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def build_config(args: argparse.Namespace) -> OracleConfig:
    """
    Merge the config file, the environment, and command-line overrides.

    `--fixture` switches both the beacon source and the ledger to their
    offline implementations.
    """
    overrides: dict[str, Any] = {}
    if args.fixture is not None:
        overrides |= {
            "beacon_source": "fixture",
            "ledger_backend": "memory",
            "fixture_path": args.fixture,
        }
    if args.target is not None:
        overrides["target_address"] = args.target
    if args.status_port is not None:
        overrides["status_port"] = args.status_port
    return OracleConfig.load(args.config, **overrides)


async def run_oracle(node: OracleNode, config: OracleConfig) -> None:
    """Run the oracle until interrupted."""
    logger.info(
        "Starting oracle (ledger: %s, chain data: %s, target: %s)",
        config.ledger_backend,
        config.beacon_source,
        config.target_address,
    )
    await node.run()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Collusion oracle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration YAML",
    )
    parser.add_argument(
        "--fixture",
        type=Path,
        default=None,
        help="Run offline against a recorded fixture",
    )
    parser.add_argument(
        "--target",
        type=str,
        default=None,
        help="Address to censor (overrides TARGET_ADDRESS)",
    )
    parser.add_argument(
        "--status-port",
        type=int,
        default=None,
        help="Port for the status and metrics server (disabled by default)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )

    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.no_color)

    try:
        config = build_config(args)
        node = OracleNode.from_config(config)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    try:
        asyncio.run(run_oracle(node, config))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
