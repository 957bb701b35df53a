"""List Mackerel monitors filtered by service(s) or by notification group.

Usage:
  MACKEREL_APIKEY=... mackerel-list-monitors --service myservice [--format json] [--excludeAllServices]
  MACKEREL_APIKEY=... mackerel-list-monitors --service service1,service2,service3
  MACKEREL_APIKEY=... mackerel-list-monitors --notificationGroupId <id> [--format json]
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

import httpx

from opskit.cli.common import EXIT_OK, CommandParser, run_command, setup
from opskit.clients.mackerel import MackerelClient
from opskit.config import OpskitConfig
from opskit.errors import ConfigError
from opskit.services.monitors import list_filtered_monitors, render_monitors_json, render_monitors_text


def build_parser() -> CommandParser:
    parser = CommandParser(
        prog="mackerel-list-monitors",
        description="List Mackerel monitors filtered by service or notification group.",
        epilog=__doc__.split("\n\n", 1)[1],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--service", help="Service name; comma-separate several services.")
    parser.add_argument("--notificationGroupId", dest="notification_group_id", help="Notification group id.")
    parser.add_argument("--format", choices=("text", "json"), default="text", help="Output format (default: text).")
    parser.add_argument(
        "--excludeAllServices",
        dest="exclude_all_services",
        action="store_true",
        help="Drop monitors without scopes (they otherwise apply to every service).",
    )
    return parser


async def _run(
    args: argparse.Namespace,
    config: OpskitConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    config.require_mackerel_api_key()
    if not args.service and not args.notification_group_id:
        raise ConfigError("one of --service or --notificationGroupId is required")
    if args.service and args.notification_group_id:
        raise ConfigError("--service and --notificationGroupId cannot be used together")

    async with MackerelClient.from_config(config, transport=transport) as client:
        monitors = await list_filtered_monitors(
            client,
            service=args.service,
            notification_group_id=args.notification_group_id,
            exclude_all_services=args.exclude_all_services,
        )

    print(render_monitors_json(monitors) if args.format == "json" else render_monitors_text(monitors))
    return EXIT_OK


# PUBLIC_INTERFACE
def main(argv: Optional[list[str]] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    """Entry point for `mackerel-list-monitors`."""
    parser = build_parser()
    args, config = setup(parser, argv)
    return run_command(parser, lambda: _run(args, config, transport))


if __name__ == "__main__":
    sys.exit(main())
