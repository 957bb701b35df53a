"""Aggregate Mackerel alert history over [from, to) and print it as a Scrapbox table.

Each monitor's alert count, MTTR and availability are shown with the delta against
the preceding window of the same length.

Example:
  MACKEREL_APIKEY=... mackerel-alert-stats \\
    --from $(date -d "2 week ago" +%Y-%m-%dT%H:%M:%S+0900) --to $(date +%Y-%m-%dT%H:%M:%S+0900)
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

import httpx

from opskit.cli.common import EXIT_OK, CommandParser, run_command, setup
from opskit.clients.mackerel import MackerelClient
from opskit.config import OpskitConfig
from opskit.schemas.common import parse_iso_datetime
from opskit.services.alert_stats import build_alert_stats_report, render_report_json, render_report_table


def build_parser() -> CommandParser:
    parser = CommandParser(
        prog="mackerel-alert-stats",
        description="Per-monitor alert count, MTTR and availability with deltas against the previous window.",
        epilog=__doc__.split("\n\n", 2)[2],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--from", dest="window_from", help="Window start (ISO-8601, inclusive).")
    parser.add_argument("--to", dest="window_to", help="Window end (ISO-8601, exclusive).")
    parser.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="text renders a Scrapbox table (default); json dumps the report.",
    )
    parser.add_argument(
        "--fraction-digits",
        dest="fraction_digits",
        type=int,
        default=None,
        help="Decimal places for MTTR (default: ALERT_STATS_FRACTION_DIGITS or 0).",
    )
    return parser


async def _run(
    args: argparse.Namespace,
    config: OpskitConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    config.require_mackerel_api_key()
    window_from = parse_iso_datetime(args.window_from, "--from")
    window_to = parse_iso_datetime(args.window_to, "--to")
    fraction_digits = config.alert_stats_fraction_digits
    if args.fraction_digits is not None:
        fraction_digits = max(0, min(6, args.fraction_digits))

    async with MackerelClient.from_config(config, transport=transport) as client:
        report = await build_alert_stats_report(
            client,
            window_from,
            window_to,
            fraction_digits=fraction_digits,
            page_delay_sec=config.mackerel_page_delay_sec,
            max_pages=config.mackerel_max_alert_pages,
        )

    print(render_report_json(report) if args.format == "json" else render_report_table(report))
    return EXIT_OK


# PUBLIC_INTERFACE
def main(argv: Optional[list[str]] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    """Entry point for `mackerel-alert-stats`."""
    parser = build_parser()
    args, config = setup(parser, argv)
    return run_command(parser, lambda: _run(args, config, transport))


if __name__ == "__main__":
    sys.exit(main())
