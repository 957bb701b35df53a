from __future__ import annotations

import re
from datetime import datetime, timezone

from opskit.errors import InputError

# "+0900" style offsets, as printed by `date +%z`.
_COMPACT_OFFSET = re.compile(r"(\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)([+-]\d{2})(\d{2})$")


# PUBLIC_INTERFACE
def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def parse_iso_datetime(value: str | None, flag: str) -> datetime:
    """
    Parse an ISO-8601 timestamp given on the command line.

    Naive values are interpreted in the local timezone, matching how `date` output
    is usually pasted. Raises InputError naming the flag when missing or invalid.
    """
    if not value or not value.strip():
        raise InputError(f"{flag} is not set or invalid")
    raw = value.strip()
    # fromisoformat() only accepts "Z" and colon-less offsets on 3.11+.
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    raw = _COMPACT_OFFSET.sub(r"\1\2:\3", raw)
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise InputError(f"{flag} is not set or invalid: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


# PUBLIC_INTERFACE
def format_local(ts: datetime) -> str:
    """Render a timestamp in local time for human-facing report headers."""
    return ts.astimezone().strftime("%Y/%m/%d %H:%M:%S")
