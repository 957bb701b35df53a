from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TeamRole = Literal["member", "maintainer"]


class Team(BaseModel):
    """An organization team; unknown fields are kept so the JSON dump mirrors the API."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(..., description="Team display name.")
    slug: str = Field(..., description="URL-safe team identifier used in REST paths.")
    id: Optional[int] = Field(default=None, description="Numeric team id (REST only).")
    description: Optional[str] = Field(default=None, description="Team description.")


class TeamMembership(BaseModel):
    """Response of PUT /orgs/{org}/teams/{slug}/memberships/{username}."""

    role: TeamRole = Field(..., description="Role granted in the team.")
    state: Optional[str] = Field(default=None, description="active or pending.")
    url: Optional[str] = Field(default=None, description="Membership API URL.")
