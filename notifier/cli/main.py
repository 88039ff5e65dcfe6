"""CLI entrypoint for the notifier commands."""

from __future__ import annotations

import argparse
import logging

from notifier.notify.models import Audience
from notifier.shared.constants import DEFAULT_CONFIG_FILE
from notifier.workflow import run_generate_events, run_send

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        default=DEFAULT_CONFIG_FILE,
        help="Path to the JSON config file.",
    )


def add_send_arguments(parser: argparse.ArgumentParser) -> None:
    add_config_argument(parser)
    parser.add_argument(
        "--generate-events",
        action="store_true",
        help="Run event generation before sending.",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar over message sends.",
    )


def build_parser() -> argparse.ArgumentParser:
    """
    Build CLI parser.

    Returns:
        Argument parser.
    """
    parser = argparse.ArgumentParser(
        description="Detect interpretation changes and e-mail their subscribers"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser(
        "generate-events",
        help="Compare the source with the local cache and log change events.",
    )
    add_config_argument(generate)
    generate.add_argument(
        "--ignore-cache",
        action="store_true",
        help="Rebuild the cache from scratch without emitting events.",
    )

    notifications = subparsers.add_parser(
        "send-notifications",
        help="E-mail one notification per new event to subscribers.",
    )
    add_send_arguments(notifications)

    newsletters = subparsers.add_parser(
        "send-newsletters",
        help="E-mail a digest of recent events to each subscriber.",
    )
    add_send_arguments(newsletters)
    return parser


def run(args: argparse.Namespace) -> int:
    """
    Dispatch a parsed command.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Process exit code.
    """
    if args.command == "generate-events":
        return run_generate_events(args)
    if args.command == "send-notifications":
        return run_send(args, Audience.NOTIFICATIONS)
    return run_send(args, Audience.NEWSLETTERS)


def main() -> None:
    """
    Run CLI entrypoint.

    Returns:
        None.
    """
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    raise SystemExit(run(args))


if __name__ == "__main__":
    main()
