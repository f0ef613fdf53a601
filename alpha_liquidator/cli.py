"""Command-line interface for the liquidator."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .bootstrap import build_components
from .config import load_config
from .logging_setup import configure_logging
from .services import Supervisor

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="alpha-liquidator",
        description="Lending protocol liquidator",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Run the liquidator loop until terminated")
    sub.add_parser("check", help="Check whether the liquidator account needs rebalancing")

    return parser


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    components = await build_components(config)
    supervisor = Supervisor(
        config, components.client, components.wallet, components.swap_router
    )

    if args.command == "run":
        await supervisor.run()
    elif args.command == "check":
        needs = await supervisor.check_health()
        print("Rebalancing needed" if needs else "Account balanced")
    return 0


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        sys.exit(asyncio.run(_run(args)))
    except (FileNotFoundError, ValueError) as e:
        logger.error("Startup failed: %s", e)
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Interrupted")
