from datetime import date, datetime, time, timezone

from dateutil import parser as date_parser

STAY_HOUR = time(hour=12)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_instant(value) -> datetime | None:
    """Parse a calendar date or ISO instant; ``None`` when it cannot be read.

    Bare calendar dates are pinned to noon so that a stay runs from midday of
    the check-in day to midday of the check-out day.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime.combine(value, STAY_HOUR)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            return None
        if len(text) <= 10:
            return datetime.combine(parsed.date(), STAY_HOUR)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
