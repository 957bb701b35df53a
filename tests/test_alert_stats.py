from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from fakes import T0, FakeMackerelApi, alert_doc, minutes
from opskit.clients.mackerel import MackerelClient
from opskit.errors import InputError, UpstreamError
from opskit.schemas.common import parse_iso_datetime
from opskit.schemas.mackerel import Alert
from opskit.services.alert_stats import (
    build_alert_stats_report,
    compute_alert_stats,
    compute_availability,
    compute_mttr,
    fetch_alerts,
    format_with_delta,
    partition_windows,
    previous_window_start,
    render_report_json,
    render_report_table,
    summarize_windows,
    window_minutes,
)


def _alert(alert_id: str, monitor_id, opened: datetime, closed=None, type_: str = "host") -> Alert:
    return Alert.model_validate(alert_doc(alert_id, monitor_id, opened, closed, type_))


async def _no_sleep(_: float) -> None:
    return None


def test_timestamps_parse_as_aware_utc():
    alert = _alert("a1", "m1", T0, T0 + minutes(5))
    assert alert.opened_at == T0
    assert alert.closed_at == T0 + minutes(5)
    assert alert.opened_at.tzinfo is not None


def test_mttr_of_no_alerts_is_zero():
    assert compute_mttr([], now=T0) == 0


def test_mttr_equals_constant_repair_time():
    alerts = [_alert(f"a{i}", "m1", T0 + minutes(30 * i), T0 + minutes(30 * i + 7)) for i in range(4)]
    assert compute_mttr(alerts, now=T0 + timedelta(days=1)) == 7


def test_mttr_counts_open_alerts_until_now():
    alerts = [
        _alert("a1", "m1", T0, T0 + minutes(10)),
        _alert("a2", "m1", T0 + minutes(40)),
    ]
    # (10 + 20) / 2
    assert compute_mttr(alerts, now=T0 + minutes(60)) == 15


def test_mttr_rounding_honours_fraction_digits():
    alerts = [
        _alert("a1", "m1", T0, T0 + minutes(1)),
        _alert("a2", "m1", T0, T0 + minutes(2)),
        _alert("a3", "m1", T0, T0 + minutes(2)),
    ]
    assert compute_mttr(alerts, now=T0, fraction_digits=2) == 1.67
    assert compute_mttr(alerts, now=T0) == 2


def test_mttr_rounds_ties_up():
    alerts = [
        _alert("a1", "m1", T0, T0 + minutes(2)),
        _alert("a2", "m1", T0, T0 + minutes(3)),
    ]
    # mean 2.5
    assert compute_mttr(alerts, now=T0) == 3
    assert compute_alert_stats(alerts, now=T0).down_time == 6


def test_stats_downtime_is_count_times_mttr():
    alerts = [_alert(f"a{i}", "m1", T0, T0 + minutes(6)) for i in range(3)]
    stats = compute_alert_stats(alerts, now=T0)
    assert (stats.count, stats.mttr, stats.down_time) == (3, 6, 18)


def test_availability_without_downtime_is_full():
    assert compute_availability(60 * 24, 0) == 100.0
    assert compute_availability(100, 25) == 75.0


def test_previous_window_has_equal_length():
    start, end = T0, T0 + timedelta(days=14)
    assert previous_window_start(start, end) == T0 - timedelta(days=14)
    assert window_minutes(start, end) == 14 * 24 * 60


def test_partition_is_disjoint_cover_of_both_windows():
    start, end = T0, T0 + timedelta(hours=2)
    prev = previous_window_start(start, end)
    opened = [
        prev - minutes(1),  # before both windows
        prev,
        prev + minutes(59),
        start - timedelta(seconds=1),
        start,
        start + minutes(90),
        end - timedelta(seconds=1),
        end,  # upper bound is exclusive
    ]
    alerts = [_alert(f"a{i}", f"m{i % 3}", ts) for i, ts in enumerate(opened)]

    current, previous = partition_windows(alerts, prev, start, end)
    current_ids = {a.id for group in current.values() for a in group}
    previous_ids = {a.id for group in previous.values() for a in group}
    in_range = {a.id for a in alerts if prev <= a.opened_at < end}

    assert current_ids.isdisjoint(previous_ids)
    assert current_ids | previous_ids == in_range
    assert current_ids == {"a4", "a5", "a6"}
    assert previous_ids == {"a1", "a2", "a3"}


def test_partition_groups_by_monitor_in_first_seen_order():
    alerts = [
        _alert("a1", "m2", T0 + minutes(3)),
        _alert("a2", "m1", T0 + minutes(2)),
        _alert("a3", "m2", T0 + minutes(1)),
    ]
    current, _ = partition_windows(alerts, T0 - minutes(10), T0, T0 + minutes(10))
    assert list(current) == ["m2", "m1"]
    assert [a.id for a in current["m2"]] == ["a1", "a3"]


@pytest.mark.parametrize(
    "value,previous,digits,expected",
    [
        (5, 3, 0, "5(+2)"),
        (3, 5, 0, "3(-2)"),
        (4, 4, 0, "4(+0)"),
        (99.5, 100.0, 2, "99.50(-0.50)"),
        (100.0, 99.25, 2, "100.00(+0.75)"),
        (2.5, 0, 0, "3(+3)"),
        (0.125, 0, 2, "0.13(+0.13)"),
    ],
)
def test_format_with_delta(value, previous, digits, expected):
    assert format_with_delta(value, previous, digits) == expected


def test_summarize_skips_check_deleted_and_unresolved_monitors():
    start, end = T0, T0 + minutes(100)
    current = {
        "m1": [_alert("a1", "m1", start, start + minutes(10))],
        "chk": [_alert("a2", "chk", start, start + minutes(10), type_="check")],
        None: [_alert("a3", None, start, start + minutes(10))],
        "gone": [_alert("a4", "gone", start, start + minutes(10))],
    }
    previous = {"m1": [_alert("p1", "m1", start - minutes(50), start - minutes(30))] * 2}

    rows = summarize_windows(current, previous, {"m1": "cpu", "chk": "check"}, 100, now=end)

    assert [r.monitor_id for r in rows] == ["m1"]
    row = rows[0]
    assert row.monitor_name == "cpu"
    assert (row.current.count, row.current.mttr) == (1, 10)
    assert (row.previous.count, row.previous.mttr, row.previous.down_time) == (2, 20, 40)
    assert row.availability == 90.0
    assert row.previous_availability == 60.0


@pytest.mark.anyio
async def test_fetch_alerts_stops_once_bound_is_reached(mackerel_api: FakeMackerelApi, mackerel_client: MackerelClient):
    # Newest first, one alert per hour going back 10 hours; 3 alerts per page.
    docs = [alert_doc(f"a{i}", "m1", T0 - timedelta(hours=i)) for i in range(10)]
    mackerel_api.set_alerts(docs, page_size=3)
    sleeps: list[float] = []

    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    alerts = await fetch_alerts(mackerel_client, T0 - timedelta(hours=4), page_delay_sec=1.0, sleep=record_sleep)

    # Page 2 reaches back past the bound (a5 is 5h old), so paging stops there.
    assert [a.id for a in alerts] == [f"a{i}" for i in range(6)]
    assert sleeps == [1.0]
    requests = mackerel_api.alert_requests()
    assert [r.url.params.get("nextId") for r in requests] == [None, "1"]
    assert all(r.url.params["withClosed"] == "true" for r in requests)


@pytest.mark.anyio
async def test_fetch_alerts_stops_when_history_is_exhausted(
    mackerel_api: FakeMackerelApi, mackerel_client: MackerelClient
):
    docs = [alert_doc(f"a{i}", "m1", T0 - timedelta(hours=i)) for i in range(5)]
    mackerel_api.set_alerts(docs, page_size=2)

    alerts = await fetch_alerts(mackerel_client, T0 - timedelta(days=30), sleep=_no_sleep)

    assert len(alerts) == 5
    assert len(mackerel_api.alert_requests()) == 3


@pytest.mark.anyio
async def test_fetch_alerts_respects_max_pages(mackerel_api: FakeMackerelApi, mackerel_client: MackerelClient):
    docs = [alert_doc(f"a{i}", "m1", T0 - timedelta(hours=i)) for i in range(10)]
    mackerel_api.set_alerts(docs, page_size=2)

    alerts = await fetch_alerts(mackerel_client, T0 - timedelta(days=30), max_pages=2, sleep=_no_sleep)

    assert len(alerts) == 4
    assert len(mackerel_api.alert_requests()) == 2


@pytest.mark.anyio
async def test_fetch_alerts_handles_empty_history(mackerel_api: FakeMackerelApi, mackerel_client: MackerelClient):
    mackerel_api.set_alerts([])
    assert await fetch_alerts(mackerel_client, T0, sleep=_no_sleep) == []


@pytest.mark.anyio
async def test_build_report_end_to_end(mackerel_api: FakeMackerelApi, mackerel_client: MackerelClient):
    start = T0
    end = T0 + timedelta(hours=10)  # 600 minute window
    mackerel_api.monitors = [
        {"id": "m1", "name": "cpu", "type": "host"},
        {"id": "m2", "name": "api latency", "type": "service"},
    ]
    docs = [
        alert_doc("c1", "m1", start + timedelta(hours=5), start + timedelta(hours=5, minutes=30)),
        alert_doc("c2", "m2", start + timedelta(hours=4), start + timedelta(hours=4, minutes=6)),
        alert_doc("c3", "deleted", start + timedelta(hours=3), start + timedelta(hours=3, minutes=1)),
        alert_doc("c4", "chk", start + timedelta(hours=2), start + timedelta(hours=2, minutes=1), type_="check"),
        alert_doc("c5", "m1", start + timedelta(hours=1), start + timedelta(hours=1, minutes=30)),
        alert_doc("p1", "m1", start - timedelta(hours=2), start - timedelta(hours=2) + minutes(60)),
        alert_doc("old", "m1", start - timedelta(hours=11)),
    ]
    mackerel_api.set_alerts(docs, page_size=3)

    report = await build_alert_stats_report(mackerel_client, start, end, now=end, sleep=_no_sleep)

    assert report.window_minutes == 600
    assert report.previous_from == start - timedelta(hours=10)
    by_id = {row.monitor_id: row for row in report.monitors}
    assert list(by_id) == ["m1", "m2"]

    m1 = by_id["m1"]
    assert (m1.current.count, m1.current.mttr, m1.current.down_time) == (2, 30, 60)
    assert (m1.previous.count, m1.previous.mttr) == (1, 60)
    assert m1.availability == 90.0
    assert m1.previous_availability == 90.0

    m2 = by_id["m2"]
    assert (m2.current.count, m2.previous.count) == (1, 0)
    assert m2.previous_availability == 100.0

    # Monitor names are looked up for reportable monitors only (check alerts are never resolved).
    looked_up = [r.url.path for r in mackerel_api.requests if r.url.path.startswith("/api/v0/monitors/")]
    assert looked_up == ["/api/v0/monitors/m1", "/api/v0/monitors/m2", "/api/v0/monitors/deleted"]

    table = render_report_table(report)
    lines = table.splitlines()
    assert lines[0].startswith("table:Alert stats ")
    assert lines[1] == "\tMonitor\tCount\tMTTR (min)\tAvailability (%)"
    assert lines[2] == "\tcpu\t2(+1)\t30(-30)\t90.00(+0.00)"
    assert lines[3] == "\tapi latency\t1(+1)\t6(+6)\t99.00(-1.00)"

    payload = json.loads(render_report_json(report))
    assert payload["windowMinutes"] == 600
    assert payload["monitors"][0]["monitorName"] == "cpu"
    assert payload["monitors"][0]["current"]["downTime"] == 60


@pytest.mark.anyio
async def test_build_report_rejects_empty_or_reversed_range(mackerel_client: MackerelClient):
    with pytest.raises(InputError, match="invalid time range"):
        await build_alert_stats_report(mackerel_client, T0, T0, sleep=_no_sleep)
    with pytest.raises(InputError, match="invalid time range"):
        await build_alert_stats_report(mackerel_client, T0 + minutes(5), T0, sleep=_no_sleep)
    with pytest.raises(InputError, match="one minute"):
        await build_alert_stats_report(
            mackerel_client, T0, T0 + timedelta(seconds=20), sleep=_no_sleep
        )


def test_naive_and_zulu_inputs_compare_with_api_timestamps():
    parsed = parse_iso_datetime("2024-01-15T00:00:00Z", "--from")
    assert parsed == datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert parse_iso_datetime("2024-01-15T09:00:00+09:00", "--to") == parsed
    with pytest.raises(InputError, match="--from"):
        parse_iso_datetime("yesterday", "--from")
    with pytest.raises(InputError, match="--to"):
        parse_iso_datetime(None, "--to")


def test_compact_utc_offset_is_accepted():
    # `date +%Y-%m-%dT%H:%M:%S%z` prints the offset without a colon.
    expected = datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert parse_iso_datetime("2024-01-15T09:00:00+0900", "--from") == expected
    assert parse_iso_datetime("2024-01-14T19:30:00.000-0430", "--from") == expected


@pytest.mark.anyio
async def test_build_report_aborts_on_monitor_lookup_server_error(
    mackerel_api: FakeMackerelApi, mackerel_client: MackerelClient
):
    mackerel_api.monitors = [{"id": "m1", "name": "cpu", "type": "host"}]
    mackerel_api.monitor_errors = {"m1": 500}
    mackerel_api.set_alerts([alert_doc("c1", "m1", T0 + minutes(5), T0 + minutes(10))])

    with pytest.raises(UpstreamError) as excinfo:
        await build_alert_stats_report(mackerel_client, T0, T0 + minutes(60), now=T0 + minutes(60), sleep=_no_sleep)
    assert excinfo.value.status_code == 500
    assert not excinfo.value.not_found
