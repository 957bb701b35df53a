from __future__ import annotations

import json
import logging
from typing import Iterable, List, Sequence

from opskit.clients.mackerel import MackerelClient
from opskit.errors import InputError
from opskit.schemas.mackerel import NAME_MATCHED_MONITOR_TYPES, Monitor, MonitorScopes, NotificationGroup

logger = logging.getLogger(__name__)

RULE = "─" * 80


def _service_of(scope: str) -> str:
    # "svc:role" -> "svc"; a bare "svc" scope is its own service.
    return scope.split(":")[0]


# PUBLIC_INTERFACE
def include_scopes(monitor: Monitor) -> List[str]:
    """Scopes a monitor applies to, from either the list or the {include, exclude} form."""
    scopes = monitor.scopes
    if scopes is None:
        return []
    if isinstance(scopes, MonitorScopes):
        return list(scopes.include)
    return list(scopes)


# PUBLIC_INTERFACE
def exclude_scopes(monitor: Monitor) -> List[str]:
    """Scopes a monitor explicitly excludes."""
    if isinstance(monitor.scopes, MonitorScopes):
        return list(monitor.scopes.exclude)
    return list(monitor.exclude_scopes or [])


# PUBLIC_INTERFACE
def parse_services(service: str) -> List[str]:
    """Split a comma-separated --service value, dropping blanks."""
    return [s.strip() for s in service.split(",") if s.strip()]


def _matches_services(monitor: Monitor, services: Sequence[str], exclude_all_services: bool) -> bool:
    if monitor.type in NAME_MATCHED_MONITOR_TYPES:
        return any(svc in monitor.name for svc in services)

    if monitor.scopes is None:
        return not exclude_all_services

    scopes = include_scopes(monitor)
    if not scopes:
        # Monitors without scopes apply to every host, hence to every service.
        return not exclude_all_services

    return any(_service_of(scope) in services for scope in scopes)


# PUBLIC_INTERFACE
def filter_by_service(monitors: Iterable[Monitor], service: str, exclude_all_services: bool = False) -> List[Monitor]:
    """
    Keep monitors associated with any of the comma-separated services.

    - external/expression/anomalyDetection/service monitors match on their name.
    - Scoped monitors match when a scope's service part is one of the services.
    - Unscoped monitors are kept unless exclude_all_services is set.
    """
    services = parse_services(service)
    return [m for m in monitors if _matches_services(m, services, exclude_all_services)]


# PUBLIC_INTERFACE
def find_notification_group(groups: Iterable[NotificationGroup], notification_group_id: str) -> NotificationGroup:
    """Return the group with the given id; raises InputError when it does not exist."""
    for group in groups:
        if group.id == notification_group_id:
            return group
    raise InputError(f"Notification group with id {notification_group_id} not found")


# PUBLIC_INTERFACE
def filter_by_notification_group(monitors: Iterable[Monitor], group: NotificationGroup) -> List[Monitor]:
    """Keep monitors the notification group routes: listed by id, or belonging to one of its services."""
    allowed_ids = {m.id for m in group.monitors}
    allowed_services = {s.name for s in group.services}

    def allowed(monitor: Monitor) -> bool:
        if monitor.id in allowed_ids:
            return True
        if monitor.service and monitor.service in allowed_services:
            return True
        return any(_service_of(scope) in allowed_services for scope in include_scopes(monitor))

    return [m for m in monitors if allowed(m)]


# PUBLIC_INTERFACE
async def list_filtered_monitors(
    client: MackerelClient,
    service: str | None = None,
    notification_group_id: str | None = None,
    exclude_all_services: bool = False,
) -> List[Monitor]:
    """Fetch all monitors and apply the service or notification-group filter."""
    logger.info("Fetching Mackerel monitors...")
    monitors = await client.list_monitors()
    logger.info("Fetched %d monitors", len(monitors))

    if service:
        logger.info('Filtering by service "%s"', service)
        monitors = filter_by_service(monitors, service, exclude_all_services)
    elif notification_group_id:
        logger.info('Filtering by notification group "%s"', notification_group_id)
        group = find_notification_group(await client.list_notification_groups(), notification_group_id)
        monitors = filter_by_notification_group(monitors, group)
    return monitors


# PUBLIC_INTERFACE
def render_monitors_json(monitors: Sequence[Monitor]) -> str:
    """Render monitors as a JSON array using the API's field names."""
    payload = [m.model_dump(mode="json", by_alias=True, exclude_none=True) for m in monitors]
    return json.dumps(payload, indent=2, ensure_ascii=False)


# PUBLIC_INTERFACE
def render_monitors_text(monitors: Sequence[Monitor]) -> str:
    """Render monitors as a human-readable list separated by horizontal rules."""
    lines = ["", f"Monitors ({len(monitors)})", "", RULE]
    for monitor in monitors:
        mute = " [muted]" if monitor.is_mute else ""
        lines.append(f"ID: {monitor.id}")
        lines.append(f"Name: {monitor.name}{mute}")
        lines.append(f"Type: {monitor.type}")
        scopes = include_scopes(monitor)
        if scopes:
            lines.append(f"Scopes: {', '.join(scopes)}")
        excluded = exclude_scopes(monitor)
        if excluded:
            lines.append(f"Exclude scopes: {', '.join(excluded)}")
        lines.append(RULE)
    return "\n".join(lines)
