"""Make a user maintainer of the GitHub teams found for them in an organization.

Usage:
  GITHUB_TOKEN=... github-make-team-maintainer [--dry-run] [--member-only] <org> <username>
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

import httpx

from opskit.cli.common import EXIT_OK, CommandParser, run_command, setup
from opskit.clients.github import GitHubClient
from opskit.config import OpskitConfig
from opskit.services.team_maintainer import assign_maintainer, fetch_teams, render_team_names, render_teams_json


def build_parser() -> CommandParser:
    parser = CommandParser(
        prog="github-make-team-maintainer",
        description="Set a user as maintainer of every team returned for them in an organization.",
        epilog=__doc__.split("\n\n", 1)[1],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Only print the team names.")
    parser.add_argument(
        "--member-only",
        dest="member_only",
        action="store_true",
        help="Use GraphQL to restrict to teams the user already belongs to.",
    )
    parser.add_argument("org", help="Organization login.")
    parser.add_argument("username", help="User login to promote.")
    return parser


async def _run(
    args: argparse.Namespace,
    config: OpskitConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    async with GitHubClient.from_config(config, transport=transport) as client:
        teams = await fetch_teams(client, args.org, args.username, member_only=args.member_only)
        if args.dry_run:
            print(render_team_names(teams))
            return EXIT_OK

        print(render_teams_json(teams))
        # Per-team failures are logged by assign_maintainer and do not fail the command.
        await assign_maintainer(client, args.org, args.username, teams)

    return EXIT_OK


# PUBLIC_INTERFACE
def main(argv: Optional[list[str]] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    """Entry point for `github-make-team-maintainer`."""
    parser = build_parser()
    args, config = setup(parser, argv)
    return run_command(parser, lambda: _run(args, config, transport))


if __name__ == "__main__":
    sys.exit(main())
