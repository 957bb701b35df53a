from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Monitor types whose service association is only visible through their name.
NAME_MATCHED_MONITOR_TYPES = ("external", "expression", "anomalyDetection", "service")


class MonitorScopes(BaseModel):
    """Object form of monitor scopes: explicit include/exclude lists."""

    model_config = ConfigDict(populate_by_name=True)

    include: List[str] = Field(default_factory=list, description="Scopes (service or service:role) to include.")
    exclude: List[str] = Field(default_factory=list, description="Scopes (service or service:role) to exclude.")


class Monitor(BaseModel):
    """
    A Mackerel monitor rule.

    Only the fields the filters read are typed; everything else the API returns is
    kept as extra data so JSON output mirrors the upstream payload.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., description="Monitor id.")
    name: str = Field("", description="Display name.")
    type: str = Field(..., description="Monitor type (host, connectivity, service, external, expression, ...).")
    is_mute: bool = Field(False, description="Whether notifications are muted.", alias="isMute")

    # Absent (None) is distinct from an empty list for the service filter.
    scopes: Optional[Union[List[str], MonitorScopes]] = Field(
        default=None,
        description="Scopes as a list of strings, or an {include, exclude} object.",
    )
    exclude_scopes: Optional[List[str]] = Field(
        default=None,
        description="Excluded scopes (list form of the API).",
        alias="excludeScopes",
    )
    service: Optional[str] = Field(default=None, description="Service name for service monitors.")


class Alert(BaseModel):
    """A Mackerel alert. Timestamps arrive as epoch seconds and are parsed to aware datetimes."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    id: str = Field("", description="Alert id.")
    status: Optional[str] = Field(default=None, description="Alert status (OK, CRITICAL, WARNING, UNKNOWN).")
    type: str = Field(..., description="Monitor type that raised the alert (e.g. 'check', 'host').")

    # Null when the monitor has been deleted since the alert was raised.
    monitor_id: Optional[str] = Field(default=None, description="Monitor id.", alias="monitorId")
    host_id: Optional[str] = Field(default=None, description="Host id (host-scoped alerts).", alias="hostId")

    value: Optional[float] = Field(default=None, description="Metric value at alert time.")
    message: Optional[str] = Field(default=None, description="Alert message.")
    reason: Optional[str] = Field(default=None, description="Close reason.")

    opened_at: datetime = Field(..., description="When the alert opened.", alias="openedAt")
    closed_at: Optional[datetime] = Field(default=None, description="When the alert closed, if it did.", alias="closedAt")


class AlertPage(BaseModel):
    """One page of GET /api/v0/alerts."""

    model_config = ConfigDict(populate_by_name=True)

    alerts: List[Alert] = Field(default_factory=list, description="Alerts, newest first.")
    next_id: Optional[str] = Field(default=None, description="Cursor for the next (older) page.", alias="nextId")


class NotificationGroupMonitor(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    skip_default: bool = Field(False, alias="skipDefault")


class NotificationGroupService(BaseModel):
    name: str


class NotificationGroup(BaseModel):
    """A Mackerel notification group: the monitors and services it routes alerts for."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., description="Notification group id.")
    name: str = Field("", description="Display name.")
    notification_level: Optional[str] = Field(default=None, alias="notificationLevel")
    monitors: List[NotificationGroupMonitor] = Field(default_factory=list)
    services: List[NotificationGroupService] = Field(default_factory=list)
