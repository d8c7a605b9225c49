"""Date parsing and token-based formatting.

Date formats in templates and settings use the token vocabulary vault
users already know from other note tooling (``yyyy-MM-dd``,
``dd MMM yyyy HH:mm``), not ``strftime`` codes.  Text in single quotes
is literal: ``yyyy-MM-dd'T'HH:mm:ss``.

Supported tokens:

======  =========================  ======  ====================
Token   Meaning                    Token   Meaning
======  =========================  ======  ====================
yyyy    4-digit year               HH      hour 00-23
yy      2-digit year               H       hour 0-23
MMMM    month name                 hh      hour 01-12
MMM     short month name           h       hour 1-12
MM      month 01-12                mm      minute 00-59
M       month 1-12                 m       minute 0-59
dd      day 01-31                  ss      second 00-59
d       day 1-31                   s       second 0-59
EEEE    weekday name               SSS     milliseconds
EEE     short weekday name         a       AM / PM
ZZ      offset +hh:mm              Z       offset +h[:mm]
======  =========================  ======  ====================
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "yyyy-MM-dd"
DEFAULT_DATETIME_FORMAT = "yyyy-MM-dd HH:mm:ss"
# Legacy watermark format written by earlier releases.
WATERMARK_FORMAT = "yyyy-MM-dd'T'HH:mm:ss"

_MONTHS = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]
_WEEKDAYS = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

_TOKEN_RE = re.compile(
    r"'(?P<literal>[^']*)'|(?P<token>y+|M+|d+|E+|H+|h+|m+|s+|S+|a|Z+)"
)


def _offset(dt: datetime, with_colon_minutes: bool) -> str:
    delta = dt.utcoffset()
    if delta is None:
        return ""
    minutes = int(delta.total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    if with_colon_minutes:
        return f"{sign}{hours:02d}:{mins:02d}"
    return f"{sign}{hours}" + (f":{mins:02d}" if mins else "")


def _render_token(dt: datetime, token: str) -> str:
    kind, width = token[0], len(token)
    match kind:
        case "y":
            return f"{dt.year % 100:02d}" if width == 2 else f"{dt.year:04d}"
        case "M":
            if width >= 4:
                return _MONTHS[dt.month - 1]
            if width == 3:
                return _MONTHS[dt.month - 1][:3]
            return f"{dt.month:02d}" if width == 2 else str(dt.month)
        case "d":
            return f"{dt.day:02d}" if width >= 2 else str(dt.day)
        case "E":
            name = _WEEKDAYS[dt.weekday()]
            return name if width >= 4 else name[:3]
        case "H":
            return f"{dt.hour:02d}" if width >= 2 else str(dt.hour)
        case "h":
            hour = dt.hour % 12 or 12
            return f"{hour:02d}" if width >= 2 else str(hour)
        case "m":
            return f"{dt.minute:02d}" if width >= 2 else str(dt.minute)
        case "s":
            return f"{dt.second:02d}" if width >= 2 else str(dt.second)
        case "S":
            return f"{dt.microsecond // 1000:03d}"
        case "a":
            return "AM" if dt.hour < 12 else "PM"
        case "Z":
            return _offset(dt, with_colon_minutes=width >= 2)
    return token


def format_date(value: datetime, fmt: str) -> str:
    """Format *value* using the token format *fmt*."""
    parts: list[str] = []
    cursor = 0
    for match in _TOKEN_RE.finditer(fmt):
        parts.append(fmt[cursor : match.start()])
        if match.group("literal") is not None:
            parts.append(match.group("literal"))
        else:
            parts.append(_render_token(value, match.group("token")))
        cursor = match.end()
    parts.append(fmt[cursor:])
    return "".join(parts)


def parse_date_time(value: str | None) -> datetime | None:
    """Parse an ISO 8601 string (or a legacy watermark) into a datetime.

    Offset-aware values are converted to local time, naive values are
    taken as local time already.  Returns ``None`` for empty or
    unparseable input.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable date value: %r", value)
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed


def format_date_string(
    value: str | None, fmt: str | None = None
) -> str:
    """Parse an ISO date string and format it; empty string if absent."""
    parsed = parse_date_time(value)
    if parsed is None:
        return ""
    return format_date(parsed, fmt or DEFAULT_DATE_FORMAT)


def new_watermark(now: datetime | None = None) -> str:
    """Return the watermark string for *now* (local time with offset)."""
    moment = (now or datetime.now()).astimezone()
    return moment.isoformat(timespec="seconds")


def watermark_to_iso(sync_at: str | None) -> str | None:
    """Convert a stored watermark to a full ISO 8601 timestamp.

    An empty watermark means "sync everything" and yields ``None``.
    """
    parsed = parse_date_time(sync_at)
    if parsed is None:
        return None
    return parsed.astimezone().isoformat(timespec="seconds")
