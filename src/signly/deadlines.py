"""Signing deadline parsing and validation.

Deadlines arrive as ISO 8601 strings (``YYYY-MM-DDTHH:mm:ss.sssZ``). The
common SQL form ``YYYY-MM-DD HH:mm:ss`` is accepted too and read as UTC.
"""

import calendar
import re
from datetime import datetime, timezone
from typing import Union

from .errors import InvalidDeadline

DEFAULT_HORIZON_MONTHS = 6

_FRACTION = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


def parse_deadline(value: Union[str, datetime]) -> datetime:
    """Parse a deadline into a timezone-aware UTC datetime.

    Args:
        value: ISO 8601 string, ``YYYY-MM-DD HH:mm:ss`` string, or datetime.
            Naive values are taken as UTC.

    Returns:
        Aware datetime in UTC.

    Raises:
        InvalidDeadline: If the value can't be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = (value or "").strip()
        if " " in text:
            text = f"{text.replace(' ', 'T', 1)}.000Z"
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        # fromisoformat before 3.11 only takes 3 or 6 fractional digits.
        text = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidDeadline(f"Unparseable signing deadline: {value!r}") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamped to the target month's last day."""
    index = moment.month - 1 + months
    year = moment.year + index // 12
    month = index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def validate_deadline(
    deadline: datetime,
    now: datetime,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> datetime:
    """Check that ``deadline`` lies strictly inside ``(now, now + horizon)``.

    Raises:
        InvalidDeadline: If the deadline already passed or is too far out.
    """
    if deadline <= now:
        raise InvalidDeadline("The signing deadline has already passed")
    if add_months(now, horizon_months) <= deadline:
        raise InvalidDeadline(
            f"The signing deadline must be less than {horizon_months} months away"
        )
    return deadline
