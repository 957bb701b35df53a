from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class AlertStats(BaseModel):
    """Alert statistics for one monitor over one window."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    count: int = Field(0, ge=0, description="Number of alerts opened in the window.")
    mttr: float = Field(0.0, description="Mean time to repair in minutes.")
    # count * mttr: an approximation that ignores overlapping alerts.
    down_time: float = Field(0.0, description="Estimated downtime in minutes.", alias="downTime")


class MonitorAlertStats(BaseModel):
    """One report row: a monitor's stats in the current window and the one before it."""

    model_config = ConfigDict(populate_by_name=True)

    monitor_id: str = Field(..., alias="monitorId")
    monitor_name: str = Field(..., alias="monitorName")
    current: AlertStats
    previous: AlertStats
    availability: float = Field(..., description="Availability (%) in the current window.")
    previous_availability: float = Field(
        ..., description="Availability (%) in the previous window.", alias="previousAvailability"
    )


class AlertStatsReport(BaseModel):
    """Full alert statistics report for [from, to) compared with [previousFrom, from)."""

    model_config = ConfigDict(populate_by_name=True)

    window_from: datetime = Field(..., alias="from")
    window_to: datetime = Field(..., alias="to")
    previous_from: datetime = Field(..., alias="previousFrom")
    window_minutes: int = Field(..., ge=1, alias="windowMinutes")
    fraction_digits: int = Field(0, ge=0, alias="fractionDigits")
    monitors: List[MonitorAlertStats] = Field(default_factory=list)
