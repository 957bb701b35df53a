from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from opskit.clients.base import BaseApiClient
from opskit.config import OpskitConfig, mask_secret
from opskit.schemas.mackerel import AlertPage, Monitor, NotificationGroup

logger = logging.getLogger(__name__)

# Upper limit accepted by GET /api/v0/alerts.
ALERTS_PAGE_LIMIT = 100


class MackerelClient(BaseApiClient):
    """Mackerel REST API (v0) client authenticated with X-Api-Key."""

    service_name = "Mackerel"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.mackerelio.com",
        timeout_sec: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            headers={"X-Api-Key": api_key, "Accept": "application/json"},
            timeout_sec=timeout_sec,
            transport=transport,
        )

    # PUBLIC_INTERFACE
    @classmethod
    def from_config(
        cls, config: OpskitConfig, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "MackerelClient":
        """Build a client from config; raises ConfigError when MACKEREL_APIKEY is unset."""
        api_key = config.require_mackerel_api_key()
        logger.debug("Mackerel API %s (key %s)", config.mackerel_api_base, mask_secret(api_key))
        return cls(
            api_key,
            base_url=config.mackerel_api_base,
            timeout_sec=config.http_timeout_sec,
            transport=transport,
        )

    # PUBLIC_INTERFACE
    async def list_monitors(self) -> List[Monitor]:
        """GET /api/v0/monitors."""
        data = await self._get_json("/api/v0/monitors")
        return [Monitor.model_validate(m) for m in data.get("monitors") or []]

    # PUBLIC_INTERFACE
    async def get_monitor(self, monitor_id: str) -> Monitor:
        """GET /api/v0/monitors/{id}; a deleted monitor surfaces as UpstreamError(404)."""
        data = await self._get_json(f"/api/v0/monitors/{monitor_id}")
        return Monitor.model_validate(data["monitor"])

    # PUBLIC_INTERFACE
    async def list_alerts(
        self,
        with_closed: bool = True,
        next_id: Optional[str] = None,
        limit: int = ALERTS_PAGE_LIMIT,
    ) -> AlertPage:
        """GET /api/v0/alerts: one page, newest first, with the cursor for the next page."""
        params = {
            "withClosed": "true" if with_closed else "false",
            "nextId": next_id,
            "limit": max(1, min(ALERTS_PAGE_LIMIT, int(limit))),
        }
        data = await self._get_json("/api/v0/alerts", params=params)
        return AlertPage.model_validate(data)

    # PUBLIC_INTERFACE
    async def list_notification_groups(self) -> List[NotificationGroup]:
        """GET /api/v0/notification-groups."""
        data = await self._get_json("/api/v0/notification-groups")
        return [NotificationGroup.model_validate(g) for g in data.get("notificationGroups") or []]
