from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from opskit.clients.mackerel import MackerelClient
from opskit.errors import InputError, UpstreamError
from opskit.schemas.alert_stats import AlertStats, AlertStatsReport, MonitorAlertStats
from opskit.schemas.common import format_local, utc_now
from opskit.schemas.mackerel import Alert

logger = logging.getLogger(__name__)

# Check monitoring alerts carry no resolvable monitor name.
UNNAMED_ALERT_TYPES = ("check",)

AlertsByMonitor = Dict[Optional[str], List[Alert]]
Sleep = Callable[[float], Awaitable[None]]


# PUBLIC_INTERFACE
async def fetch_alerts(
    client: MackerelClient,
    oldest: datetime,
    page_delay_sec: float = 1.0,
    max_pages: int = 1000,
    sleep: Sleep = asyncio.sleep,
) -> List[Alert]:
    """
    Fetch alert history (closed alerts included), newest first, until it reaches `oldest`.

    Stops as soon as the oldest alert fetched so far opened at or before `oldest`, when the
    API returns no cursor or an empty page, or after `max_pages` pages. Waits
    `page_delay_sec` between page requests.
    """
    alerts: List[Alert] = []
    next_id: Optional[str] = None
    oldest_seen: Optional[datetime] = None

    for page_no in range(1, max(1, int(max_pages)) + 1):
        page = await client.list_alerts(with_closed=True, next_id=next_id)
        alerts.extend(page.alerts)
        if not page.alerts:
            break

        page_oldest = min(a.opened_at for a in page.alerts)
        oldest_seen = page_oldest if oldest_seen is None else min(oldest_seen, page_oldest)
        logger.debug("Fetched alert page %d (%d alerts, oldest %s)", page_no, len(page.alerts), oldest_seen)

        if oldest_seen <= oldest:
            break
        if not page.next_id:
            logger.info("Alert history exhausted before %s", oldest.isoformat())
            break
        if page_no >= max_pages:
            logger.warning(
                "Stopped alert pagination after %d pages; oldest alert fetched opened at %s",
                page_no,
                oldest_seen.isoformat(),
            )
            break

        next_id = page.next_id
        await sleep(page_delay_sec)

    logger.info("Fetched %d alerts", len(alerts))
    return alerts


def _round_half_up(value: float, fraction_digits: int) -> Decimal:
    # Ties round away from zero, so 2.5 renders as 3 rather than 2.
    exponent = Decimal(1).scaleb(-fraction_digits)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def _group_by_monitor(alerts: Iterable[Alert]) -> AlertsByMonitor:
    grouped: AlertsByMonitor = {}
    for alert in alerts:
        grouped.setdefault(alert.monitor_id, []).append(alert)
    return grouped


# PUBLIC_INTERFACE
def previous_window_start(window_from: datetime, window_to: datetime) -> datetime:
    """Start of the window of equal length immediately preceding [from, to): 2*from - to."""
    return window_from - (window_to - window_from)


# PUBLIC_INTERFACE
def window_minutes(window_from: datetime, window_to: datetime) -> int:
    return round((window_to - window_from).total_seconds() / 60)


# PUBLIC_INTERFACE
def partition_windows(
    alerts: Iterable[Alert],
    previous_from: datetime,
    window_from: datetime,
    window_to: datetime,
) -> Tuple[AlertsByMonitor, AlertsByMonitor]:
    """
    Split alerts by opening time into current [from, to) and previous [prev, from),
    each grouped by monitor id in first-seen order. Alerts outside [prev, to) are dropped.
    """
    current: List[Alert] = []
    previous: List[Alert] = []
    for alert in alerts:
        if window_from <= alert.opened_at < window_to:
            current.append(alert)
        elif previous_from <= alert.opened_at < window_from:
            previous.append(alert)
    return _group_by_monitor(current), _group_by_monitor(previous)


# PUBLIC_INTERFACE
def compute_mttr(alerts: Sequence[Alert], now: datetime, fraction_digits: int = 0) -> float:
    """Mean minutes from open to close (still-open alerts count up to `now`); 0 for no alerts."""
    if not alerts:
        return 0.0
    total = sum(((a.closed_at or now) - a.opened_at).total_seconds() / 60 for a in alerts)
    return float(_round_half_up(total / len(alerts), fraction_digits))


# PUBLIC_INTERFACE
def compute_alert_stats(alerts: Sequence[Alert], now: datetime, fraction_digits: int = 0) -> AlertStats:
    count = len(alerts)
    mttr = compute_mttr(alerts, now, fraction_digits)
    return AlertStats(count=count, mttr=mttr, down_time=count * mttr)


# PUBLIC_INTERFACE
def compute_availability(minutes: int, down_time: float) -> float:
    """Percentage of the window not covered by downtime."""
    return 100 * (minutes - down_time) / minutes


# PUBLIC_INTERFACE
def format_with_delta(value: float, previous: float, fraction_digits: int = 0) -> str:
    """Render `value(+delta)`; the sign is explicit for non-negative deltas."""
    sign = "+" if value >= previous else ""
    delta = _round_half_up(value - previous, fraction_digits)
    return f"{_round_half_up(value, fraction_digits)}({sign}{delta})"


def _is_reportable(monitor_id: Optional[str], alerts: Sequence[Alert]) -> bool:
    if not alerts or alerts[0].type in UNNAMED_ALERT_TYPES:
        return False
    # Deleted monitors leave alerts with a null monitorId.
    return monitor_id is not None and alerts[0].monitor_id is not None


# PUBLIC_INTERFACE
async def resolve_monitor_names(client: MackerelClient, monitor_ids: Iterable[str]) -> Dict[str, str]:
    """Look up display names; monitors that no longer exist (404) are left out."""
    names: Dict[str, str] = {}
    for monitor_id in monitor_ids:
        try:
            monitor = await client.get_monitor(monitor_id)
        except UpstreamError as exc:
            if not exc.not_found:
                raise
            logger.warning("Skipping monitor %s: not found (deleted?)", monitor_id)
            continue
        names[monitor_id] = monitor.name
    return names


# PUBLIC_INTERFACE
def summarize_windows(
    current: AlertsByMonitor,
    previous: AlertsByMonitor,
    names: Mapping[str, str],
    minutes: int,
    now: datetime,
    fraction_digits: int = 0,
) -> List[MonitorAlertStats]:
    """One row per monitor alerting in the current window, compared with the previous window."""
    rows: List[MonitorAlertStats] = []
    for monitor_id, alerts in current.items():
        if not _is_reportable(monitor_id, alerts) or monitor_id not in names:
            continue
        cur = compute_alert_stats(alerts, now, fraction_digits)
        prev = compute_alert_stats(previous.get(monitor_id) or [], now, fraction_digits)
        rows.append(
            MonitorAlertStats(
                monitor_id=monitor_id,
                monitor_name=names[monitor_id],
                current=cur,
                previous=prev,
                availability=compute_availability(minutes, cur.down_time),
                previous_availability=compute_availability(minutes, prev.down_time),
            )
        )
    return rows


# PUBLIC_INTERFACE
async def build_alert_stats_report(
    client: MackerelClient,
    window_from: datetime,
    window_to: datetime,
    fraction_digits: int = 0,
    page_delay_sec: float = 1.0,
    max_pages: int = 1000,
    now: Optional[datetime] = None,
    sleep: Sleep = asyncio.sleep,
) -> AlertStatsReport:
    """Fetch alerts back to the previous window and aggregate both windows per monitor."""
    if not window_from < window_to:
        raise InputError(f"invalid time range [{window_from.isoformat()}, {window_to.isoformat()})")
    minutes = window_minutes(window_from, window_to)
    if minutes < 1:
        raise InputError("time range must span at least one minute")

    previous_from = previous_window_start(window_from, window_to)
    now = now or utc_now()

    alerts = await fetch_alerts(client, previous_from, page_delay_sec=page_delay_sec, max_pages=max_pages, sleep=sleep)
    current, previous = partition_windows(alerts, previous_from, window_from, window_to)

    candidates = [mid for mid, group in current.items() if mid is not None and _is_reportable(mid, group)]
    names = await resolve_monitor_names(client, candidates)

    return AlertStatsReport(
        window_from=window_from,
        window_to=window_to,
        previous_from=previous_from,
        window_minutes=minutes,
        fraction_digits=fraction_digits,
        monitors=summarize_windows(current, previous, names, minutes, now, fraction_digits),
    )


# PUBLIC_INTERFACE
def render_report_table(report: AlertStatsReport) -> str:
    """Render the report as a Scrapbox table (tab-indented cells under a `table:` title)."""
    fd = report.fraction_digits
    lines = [
        f"table:Alert stats {format_local(report.window_from)} ~ {format_local(report.window_to)}"
        f" (previous: {format_local(report.previous_from)} ~ {format_local(report.window_from)})",
        "\tMonitor\tCount\tMTTR (min)\tAvailability (%)",
    ]
    for row in report.monitors:
        cells = [
            row.monitor_name,
            format_with_delta(row.current.count, row.previous.count),
            format_with_delta(row.current.mttr, row.previous.mttr, fd),
            format_with_delta(row.availability, row.previous_availability, 2),
        ]
        lines.append("\t" + "\t".join(cells))
    return "\n".join(lines)


# PUBLIC_INTERFACE
def render_report_json(report: AlertStatsReport) -> str:
    return json.dumps(report.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)
