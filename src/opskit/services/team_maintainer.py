from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import httpx

from opskit.clients.github import GitHubClient
from opskit.errors import UpstreamError
from opskit.schemas.github import Team

logger = logging.getLogger(__name__)


@dataclass
class MaintainerResult:
    """Outcome of a maintainer assignment run."""

    succeeded: List[str] = field(default_factory=list)
    # (team slug, error message)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


# PUBLIC_INTERFACE
async def fetch_teams(client: GitHubClient, org: str, username: str, member_only: bool = False) -> List[Team]:
    """
    Teams to process for `username` in `org`.

    member_only=False lists org teams over REST (the query hint is passed through);
    member_only=True asks GraphQL for the teams the user actually belongs to.
    """
    logger.info("Fetching teams for %s in %s...", username, org)
    if member_only:
        teams = await client.list_member_teams(org, username)
    else:
        teams = await client.list_teams(org, query=username)
    logger.info("Found %d teams", len(teams))
    return teams


# PUBLIC_INTERFACE
async def assign_maintainer(client: GitHubClient, org: str, username: str, teams: Sequence[Team]) -> MaintainerResult:
    """
    Make `username` a maintainer of every team, one request at a time.

    A failing team is logged and skipped; the remaining teams are still processed.
    """
    logger.info("Setting %s as maintainer for %d teams in %s...", username, len(teams), org)
    result = MaintainerResult()
    for team in teams:
        logger.info("Processing team: %s", team.slug)
        try:
            membership = await client.set_team_membership(org, team.slug, username, role="maintainer")
        except UpstreamError as exc:
            logger.error("  x %s: %s\n  %s", team.slug, exc, exc.body)
            result.failed.append((team.slug, str(exc)))
            continue
        except httpx.HTTPError as exc:
            logger.error("  x Error processing team %s: %s", team.slug, exc)
            result.failed.append((team.slug, str(exc)))
            continue
        logger.info("  ok %s is now a %s of %s", username, membership.role, team.slug)
        result.succeeded.append(team.slug)

    logger.info("Done: %d succeeded, %d failed", len(result.succeeded), len(result.failed))
    return result


# PUBLIC_INTERFACE
def render_team_names(teams: Sequence[Team]) -> str:
    return "\n".join(["--- Team Names (dry-run mode) ---", *(t.name for t in teams)])


# PUBLIC_INTERFACE
def render_teams_json(teams: Sequence[Team]) -> str:
    payload = [t.model_dump(mode="json", exclude_none=True) for t in teams]
    return json.dumps(payload, indent=2, ensure_ascii=False)
