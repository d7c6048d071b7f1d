"""Normalize the date shapes found in request bodies and spreadsheets.

Everything that enters validation goes through :func:`normalize_date` and
comes out as a plain :class:`datetime.date` (or ``None`` when the value
cannot be read as a calendar date). Time-of-day and time zones never reach
the business rules.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

SPREADSHEET_EPOCH = date(1899, 12, 30)
# 25569 is 1970-01-01; smaller serials are treated as typos, not dates.
MIN_SPREADSHEET_SERIAL = 25569

_PART_SPLIT_RE = re.compile(r"[./-]")

# Tried in order; the first layout yielding a real calendar date wins.
STRING_LAYOUTS: tuple[tuple[str, tuple[str, str, str]], ...] = (
    ("DD.MM.YYYY", ("day", "month", "year")),
    ("YYYY-MM-DD", ("year", "month", "day")),
    ("DD/MM/YYYY", ("day", "month", "year")),
    ("MM/DD/YYYY", ("month", "day", "year")),
    ("YYYY/MM/DD", ("year", "month", "day")),
)

_FALLBACK_FORMATS = (
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%Y%m%d",
)


def _datetime_to_date(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def from_spreadsheet_serial(serial: int | float | Decimal) -> date | None:
    """Convert a spreadsheet day serial (1900 date system) to a date.

    Day 60 of that system is the fictitious 29 Feb 1900, so counting from
    30 Dec 1899 rather than 1 Jan 1900 absorbs the two-day offset.
    """

    try:
        number = float(serial)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= MIN_SPREADSHEET_SERIAL:
        return None
    try:
        return SPREADSHEET_EPOCH + timedelta(days=math.floor(number))
    except OverflowError:
        return None


def _date_from_parts(parts: list[str], order: tuple[str, str, str]) -> date | None:
    values = dict(zip(order, parts))
    year, month, day = values["year"], values["month"], values["day"]
    if not (len(year) == 4 and year.isdigit()):
        return None
    if not (1 <= len(month) <= 2 and month.isdigit()):
        return None
    if not (1 <= len(day) <= 2 and day.isdigit()):
        return None
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def _parse_generic(text: str) -> date | None:
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return _datetime_to_date(datetime.fromisoformat(candidate))
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_date_string(value: str) -> date | None:
    text = (value or "").strip()
    if not text:
        return None
    parts = [part.strip() for part in _PART_SPLIT_RE.split(text)]
    if len(parts) == 3:
        for _label, order in STRING_LAYOUTS:
            parsed = _date_from_parts(parts, order)
            if parsed is not None:
                return parsed
    return _parse_generic(text)


def normalize_date(value: Any) -> date | None:
    """Return the canonical calendar date for ``value`` or ``None``.

    Accepts ``date``/``datetime`` objects, spreadsheet serial numbers and
    strings in the layouts listed in :data:`STRING_LAYOUTS` (with an ISO /
    month-name fallback). Aware datetimes are read in UTC.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return _datetime_to_date(value)
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return from_spreadsheet_serial(value)
    if isinstance(value, str):
        return parse_date_string(value)
    return None
