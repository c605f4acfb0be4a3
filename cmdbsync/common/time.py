"""Common time utilities.

CMDB table APIs exchange timestamps as naive ``YYYY-MM-DD HH:MM:SS`` strings
in UTC. These helpers convert between that wire format and aware datetimes.
"""

from __future__ import annotations

import datetime as dt

CMDB_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def format_cmdb_timestamp(value: dt.datetime) -> str:
    """Render an aware datetime in the CMDB wire format (UTC, no offset).

    Raises
    ------
    ValueError
        If ``value`` is naive.

    """
    if value.tzinfo is None:
        msg = "CMDB timestamps must be timezone aware"
        raise ValueError(msg)
    return value.astimezone(dt.UTC).strftime(CMDB_TIMESTAMP_FORMAT)


def parse_cmdb_timestamp(value: str) -> dt.datetime:
    """Parse a CMDB timestamp into an aware UTC datetime.

    Accepts the table API format as well as ISO-8601 strings. Values without
    an offset are interpreted as UTC.

    Raises
    ------
    ValueError
        If ``value`` is not a recognised timestamp.

    """
    text = value.strip().replace("Z", "+00:00")
    try:
        # Naive by format; UTC is applied below.
        parsed = dt.datetime.strptime(text, CMDB_TIMESTAMP_FORMAT)  # noqa: DTZ007
    except ValueError:
        parsed = dt.datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)
