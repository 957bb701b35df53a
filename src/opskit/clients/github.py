from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from opskit.clients.base import BaseApiClient
from opskit.config import OpskitConfig, mask_secret
from opskit.errors import UpstreamError
from opskit.schemas.github import Team, TeamMembership, TeamRole

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"

_MEMBER_TEAMS_QUERY = """
query($org: String!, $login: String!, $after: String) {
  organization(login: $org) {
    teams(first: 100, after: $after, userLogins: [$login]) {
      nodes { databaseId name slug description }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""


class GitHubClient(BaseApiClient):
    """GitHub REST + GraphQL client authenticated with a bearer token."""

    service_name = "GitHub"

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout_sec: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "Accept": "application/vnd.github+json",
            },
            timeout_sec=timeout_sec,
            transport=transport,
        )

    # PUBLIC_INTERFACE
    @classmethod
    def from_config(
        cls, config: OpskitConfig, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "GitHubClient":
        """Build a client from config; raises ConfigError when GITHUB_TOKEN is unset."""
        token = config.require_github_token()
        logger.debug("GitHub API %s (token %s)", config.github_api_base, mask_secret(token))
        return cls(
            token,
            base_url=config.github_api_base,
            timeout_sec=config.http_timeout_sec,
            transport=transport,
        )

    # PUBLIC_INTERFACE
    async def list_teams(self, org: str, query: Optional[str] = None) -> List[Team]:
        """
        GET /orgs/{org}/teams, following Link rel="next" until exhausted.

        `query` is forwarded as-is; the REST endpoint does not filter on it, so callers
        wanting only a user's teams should use list_member_teams().
        """
        teams: List[Team] = []
        url: Optional[str] = f"/orgs/{org}/teams"
        params: Optional[Dict[str, Any]] = {"query": query, "per_page": 100}
        while url:
            response = await self._request("GET", url, params=params)
            teams.extend(Team.model_validate(t) for t in response.json())
            url = (response.links.get("next") or {}).get("url")
            # The next link already carries the query string.
            params = None
        return teams

    # PUBLIC_INTERFACE
    async def set_team_membership(
        self, org: str, team_slug: str, username: str, role: TeamRole = "maintainer"
    ) -> TeamMembership:
        """PUT /orgs/{org}/teams/{team_slug}/memberships/{username}."""
        response = await self._request(
            "PUT",
            f"/orgs/{org}/teams/{team_slug}/memberships/{username}",
            json={"role": role},
        )
        return TeamMembership.model_validate(response.json())

    # PUBLIC_INTERFACE
    async def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST /graphql; an `errors` payload is raised as UpstreamError even on HTTP 200."""
        response = await self._request("POST", "/graphql", json={"query": query, "variables": variables or {}})
        payload = response.json()
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(str(e.get("message", e)) for e in errors)
            raise UpstreamError(
                f"GitHub GraphQL returned errors: {messages}",
                status_code=response.status_code,
                method="POST",
                url=str(response.request.url),
                body=response.text,
            )
        return payload.get("data") or {}

    # PUBLIC_INTERFACE
    async def list_member_teams(self, org: str, login: str) -> List[Team]:
        """List the org teams `login` belongs to, via paginated GraphQL."""
        teams: List[Team] = []
        after: Optional[str] = None
        while True:
            data = await self.graphql(_MEMBER_TEAMS_QUERY, {"org": org, "login": login, "after": after})
            organization = data.get("organization")
            if organization is None:
                raise UpstreamError(f"GitHub organization {org!r} not found", status_code=404)
            conn = organization["teams"]
            for node in conn.get("nodes") or []:
                teams.append(
                    Team(
                        id=node.get("databaseId"),
                        name=node["name"],
                        slug=node["slug"],
                        description=node.get("description"),
                    )
                )
            page_info = conn.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return teams
            after = page_info.get("endCursor")
